"""Ansible configuration engine adapter."""

from pathlib import Path
from typing import Optional

from forge_deploy.utils.errors import ErrorContext, UnreachableTarget
from forge_deploy.utils.logging import get_logger
from forge_deploy.utils.process import run_checked, run_command
from .base import ConfigurationEngine

logger = get_logger(__name__)


class AnsibleEngine(ConfigurationEngine):
    """Runs ansible / ansible-playbook against the rendered inventory."""

    def __init__(
        self,
        ansible_dir: Path,
        inventory_path: Path,
        group: str,
        timeout: Optional[float] = None,
    ):
        self.ansible_dir = Path(ansible_dir)
        self.inventory_path = Path(inventory_path)
        self.group = group
        self.timeout = timeout

    def ping(self) -> None:
        logger.info("Testing Ansible connectivity...")
        result = run_command(
            ["ansible", self.group, "-m", "ping", "-i", str(self.inventory_path)],
            cwd=self.ansible_dir,
            timeout=self.timeout,
        )
        if not result.ok:
            raise UnreachableTarget(
                f"Target in group {self.group} did not answer the Ansible ping: {result.diagnostic()}",
                context=ErrorContext(operation="ansible ping", exit_code=result.returncode),
            )

    def run_playbook(self, playbook: str) -> None:
        logger.info(f"Running playbook {playbook}...")
        run_checked(
            f"ansible-playbook {playbook}",
            ["ansible-playbook", "-i", str(self.inventory_path), playbook],
            cwd=self.ansible_dir,
            timeout=self.timeout,
        )
