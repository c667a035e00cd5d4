"""Prerequisite validation for a requested phase range."""

import shutil
from dataclasses import dataclass
from typing import Callable, FrozenSet, List, Optional

from botocore.exceptions import BotoCoreError, ClientError

from forge_deploy.config.parser import Config
from forge_deploy.state.manager import StateManager
from forge_deploy.utils.aws_client import AWSClientManager
from forge_deploy.utils.errors import PrerequisiteMissing, StateMissing
from forge_deploy.utils.logging import get_logger
from .steps import Step, StepRange

logger = get_logger(__name__)


@dataclass(frozen=True)
class Prerequisite:
    """One tool, credential or artifact some phases need."""
    name: str
    phases: FrozenSet[Step]
    check: Callable[[], bool]
    # Artifacts produced by provisioning are only required when it is not in range
    only_without_provision: bool = False


def aws_credentials_available(manager: AWSClientManager) -> bool:
    """True when STS accepts the configured credentials."""
    try:
        manager.validate_credentials()
        return True
    except (BotoCoreError, ClientError):
        return False


class PrerequisiteChecker:
    """Checks only what the phases in a range need. Read-only."""

    def __init__(
        self,
        config: Config,
        state_manager: StateManager,
        credentials_check: Callable[[], bool],
        which: Callable[[str], Optional[str]] = shutil.which,
    ):
        """
        Args:
            config: Loaded configuration
            state_manager: Pipeline state store
            credentials_check: Returns True when cloud credentials are usable
            which: Executable lookup
        """
        self.config = config
        self.state_manager = state_manager
        self.credentials_check = credentials_check
        self.which = which

    def _binary(self, name: str, *phases: Step) -> Prerequisite:
        return Prerequisite(
            name=f"{name} executable",
            phases=frozenset(phases),
            check=lambda: self.which(name) is not None,
        )

    def _local(self, kind: str, path, *phases: Step, produced_by_provision: bool = False) -> Prerequisite:
        return Prerequisite(
            name=f"{kind} ({path})",
            phases=frozenset(phases),
            check=path.exists,
            only_without_provision=produced_by_provision,
        )

    def _local_requirements(self) -> List[Prerequisite]:
        cfg = self.config
        paths = cfg.settings.paths
        ansible_dir = cfg.resolve(paths.ansible_dir)
        deploy_playbooks = [
            self._local("deploy playbook", ansible_dir / playbook, Step.DEPLOY)
            for playbook in cfg.settings.pipeline.deploy_playbooks
        ]
        configure_playbooks = [
            self._local("configure playbook", ansible_dir / playbook, Step.CONFIGURE)
            for playbook in cfg.settings.pipeline.configure_playbooks
        ]
        return [
            self._binary("terraform", Step.PROVISION),
            self._local("terraform directory", cfg.resolve(paths.terraform_dir), Step.PROVISION),
            self._binary("ansible", Step.CONFIGURE),
            self._binary("ansible-playbook", Step.CONFIGURE, Step.DEPLOY),
            self._local(
                "ansible inventory", cfg.inventory_path, Step.CONFIGURE, Step.DEPLOY,
                produced_by_provision=True,
            ),
            *configure_playbooks,
            self._local("application source directory", cfg.resolve(paths.app_source_dir), Step.DEPLOY),
            *deploy_playbooks,
            self._binary("ssh", Step.VERIFY),
            self._binary("ping", Step.VERIFY),
            self._local(
                "SSH private key", cfg.ssh_key_path, Step.CONFIGURE, Step.DEPLOY, Step.VERIFY,
                produced_by_provision=True,
            ),
        ]

    def requirements(self, step_range: StepRange) -> List[Prerequisite]:
        """Prerequisites relevant to the phases in ``step_range``."""
        steps = set(step_range.steps())
        provisioning = Step.PROVISION in steps
        selected = []
        for prereq in self._local_requirements():
            if not prereq.phases & steps:
                continue
            if prereq.only_without_provision and provisioning:
                continue
            selected.append(prereq)
        return selected

    def check(self, step_range: StepRange) -> List[str]:
        """Return the names of missing prerequisites (empty when all present)."""
        missing = [p.name for p in self.requirements(step_range) if not p.check()]

        # Credentials need a remote call; only ask once local checks pass
        if not missing and step_range.contains(Step.PROVISION):
            if not self.credentials_check():
                missing.append("AWS credentials (aws sts get-caller-identity)")

        return missing

    def ensure(self, step_range: StepRange) -> None:
        """Raise unless every prerequisite for ``step_range`` is present.

        Raises:
            StateMissing: Range starts after provisioning and no state exists
            PrerequisiteMissing: Any tool, credential or artifact is absent
        """
        if step_range.requires_state:
            if not self.state_manager.exists():
                raise StateMissing()
            state = self.state_manager.load()
            if state.last_completed_step < step_range.start - 1:
                logger.warning(
                    f"Last completed step is {state.last_completed_step}; "
                    f"starting at step {step_range.start} skips unfinished phases"
                )

        missing = self.check(step_range)
        if missing:
            raise PrerequisiteMissing(
                f"{len(missing)} prerequisite(s) missing for {step_range}",
                missing=missing,
            )
        logger.info(f"Prerequisites satisfied for {step_range}")
