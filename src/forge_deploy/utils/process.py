"""Subprocess helpers for invoking external command-line tools."""

import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

from forge_deploy.utils.errors import ErrorContext, ExternalToolFailure, PrerequisiteMissing
from forge_deploy.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CommandResult:
    """Captured outcome of one external command."""
    args: List[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0

    def diagnostic(self) -> str:
        """Best available diagnostic text: stderr, else stdout tail."""
        text = self.stderr.strip() or self.stdout.strip()
        if not text:
            return f"exit code {self.returncode}"
        lines = text.splitlines()
        return "\n".join(lines[-20:])


def run_command(
    args: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
    input_text: Optional[str] = None,
) -> CommandResult:
    """Run a command and capture its output.

    Raises PrerequisiteMissing when the executable is not installed and
    ExternalToolFailure when it cannot be started or times out. A non-zero
    exit status is returned, not raised.
    """
    args = [str(a) for a in args]
    logger.debug(f"Running: {shlex.join(args)}", extra={'operation': args[0]})

    try:
        completed = subprocess.run(
            args,
            cwd=str(cwd) if cwd else None,
            capture_output=True,
            text=True,
            timeout=timeout,
            input=input_text,
        )
    except FileNotFoundError as e:
        raise PrerequisiteMissing(
            f"Executable not found: {args[0]}",
            missing=[args[0]],
            cause=e,
        )
    except subprocess.TimeoutExpired as e:
        raise ExternalToolFailure(
            args[0],
            f"timed out after {timeout}s",
            context=ErrorContext(command=shlex.join(args)),
            cause=e,
        )

    return CommandResult(
        args=args,
        returncode=completed.returncode,
        stdout=completed.stdout or '',
        stderr=completed.stderr or '',
    )


def run_checked(
    operation: str,
    args: Sequence[str],
    cwd: Optional[Union[str, Path]] = None,
    timeout: Optional[float] = None,
    input_text: Optional[str] = None,
) -> CommandResult:
    """Run a command and raise ExternalToolFailure on a non-zero exit."""
    result = run_command(args, cwd=cwd, timeout=timeout, input_text=input_text)
    if not result.ok:
        raise ExternalToolFailure(
            operation,
            result.diagnostic(),
            context=ErrorContext(
                command=shlex.join(result.args),
                exit_code=result.returncode,
            ),
        )
    return result
