"""Terraform provisioning engine adapter."""

import json
from pathlib import Path
from typing import Any, Dict, Optional

from forge_deploy.utils.errors import ExternalToolFailure
from forge_deploy.utils.logging import get_logger
from forge_deploy.utils.process import run_checked
from .base import ProvisionOutputs, Provisioner

logger = get_logger(__name__)

PLAN_FILE = "tfplan"
REQUIRED_OUTPUTS = ("instance_public_ip", "instance_id")


class TerraformProvisioner(Provisioner):
    """Drives the terraform CLI in a working directory."""

    def __init__(self, working_dir: Path, timeout: Optional[float] = None, binary: str = "terraform"):
        """
        Args:
            working_dir: Directory holding the Terraform configuration
            timeout: Per-command timeout in seconds
            binary: terraform executable
        """
        self.working_dir = Path(working_dir)
        self.timeout = timeout
        self.binary = binary

    def _run(self, operation: str, *args: str):
        return run_checked(
            operation, [self.binary, *args], cwd=self.working_dir, timeout=self.timeout
        )

    def plan(self) -> str:
        logger.info("Initializing Terraform...")
        self._run("terraform init", "init", "-input=false")

        logger.info("Validating Terraform configuration...")
        self._run("terraform validate", "validate")

        logger.info("Planning infrastructure changes...")
        result = self._run("terraform plan", "plan", "-input=false", f"-out={PLAN_FILE}")
        return result.stdout

    def apply(self) -> None:
        if not (self.working_dir / PLAN_FILE).exists():
            raise ExternalToolFailure("terraform apply", f"no saved plan in {self.working_dir}")

        logger.info("Applying Terraform configuration...")
        self._run("terraform apply", "apply", "-input=false", PLAN_FILE)

    def outputs(self) -> ProvisionOutputs:
        result = self._run("terraform output", "output", "-json")
        try:
            raw: Dict[str, Any] = json.loads(result.stdout or "{}")
        except json.JSONDecodeError as e:
            raise ExternalToolFailure("terraform output", f"unparseable JSON: {e}", cause=e)

        values = {name: entry.get("value") for name, entry in raw.items() if isinstance(entry, dict)}
        missing = [name for name in REQUIRED_OUTPUTS if not values.get(name)]
        if missing:
            raise ExternalToolFailure(
                "terraform output", f"missing required outputs: {', '.join(missing)}"
            )

        return ProvisionOutputs(
            instance_public_ip=str(values["instance_public_ip"]),
            instance_id=str(values["instance_id"]),
            s3_bucket_name=values.get("s3_bucket_name"),
            ssh_command=values.get("ssh_command"),
        )

    def destroy(self) -> None:
        logger.info("Destroying Terraform-managed infrastructure...")
        self._run("terraform destroy", "destroy", "-input=false", "-auto-approve")
