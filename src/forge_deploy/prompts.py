"""Operator interaction capability injected into the controller and rollback."""

from abc import ABC, abstractmethod

import click


class Prompter(ABC):
    """Asks the operator for confirmations and choices."""

    @abstractmethod
    def confirm(self, message: str) -> bool:
        pass

    @abstractmethod
    def choose(self, message: str) -> str:
        pass

    def show(self, text: str) -> None:
        """Display supporting text (plans, listings) before a question."""
        pass


class ClickPrompter(Prompter):
    """Interactive prompts on the terminal."""

    def confirm(self, message: str) -> bool:
        return click.confirm(message, default=False)

    def choose(self, message: str) -> str:
        return click.prompt(message, type=str).strip()

    def show(self, text: str) -> None:
        click.echo(text)


class AutoApprovePrompter(Prompter):
    """Answers yes to every confirmation; used for --yes.

    Choices still go to the wrapped prompter.
    """

    def __init__(self, inner: Prompter):
        self.inner = inner

    def confirm(self, message: str) -> bool:
        return True

    def choose(self, message: str) -> str:
        return self.inner.choose(message)

    def show(self, text: str) -> None:
        self.inner.show(text)
