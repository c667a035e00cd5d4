"""Executes one pipeline phase against its external collaborator."""

import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from forge_deploy.adapters.base import ConfigurationEngine, Provisioner, SnapshotStore
from forge_deploy.config.parser import Config
from forge_deploy.health.aggregator import HealthAggregator
from forge_deploy.health.models import HealthReport
from forge_deploy.state.inventory import write_inventory
from forge_deploy.state.manager import StateManager
from forge_deploy.state.models import PipelineState
from forge_deploy.utils.errors import DeploymentError, UnhealthyTarget
from forge_deploy.utils.logging import LogContext, get_logger
from .steps import Step

logger = get_logger(__name__)


class ExecutionStatus(Enum):
    """Status of execution."""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    SUCCESS = "success"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StepResult:
    """Result of executing a single phase."""

    step: Step
    status: ExecutionStatus
    detail: str = ""
    error: Optional[DeploymentError] = None
    report: Optional[HealthReport] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    def is_success(self) -> bool:
        return self.status == ExecutionStatus.SUCCESS

    def is_failed(self) -> bool:
        return self.status == ExecutionStatus.FAILED


class StepExecutor:
    """Runs exactly one phase per call and records it in the pipeline state.

    Every external invocation is fail-fast: the first failed result raises
    and nothing after it in the phase runs.
    """

    def __init__(
        self,
        config: Config,
        state_manager: StateManager,
        provisioner: Provisioner,
        configurator: ConfigurationEngine,
        health: HealthAggregator,
        snapshot_store_factory: Optional[Callable[[str], SnapshotStore]] = None,
        sleeper: Callable[[float], None] = time.sleep,
    ):
        """Initialize step executor.

        Args:
            config: Loaded configuration
            state_manager: Pipeline state store
            provisioner: Provisioning engine adapter
            configurator: Configuration engine adapter
            health: Health aggregator used by the verify phase
            snapshot_store_factory: Builds the snapshot store for a bucket name
            sleeper: Blocking wait used for the post-provision settle interval
        """
        self.config = config
        self.state_manager = state_manager
        self.provisioner = provisioner
        self.configurator = configurator
        self.health = health
        self.snapshot_store_factory = snapshot_store_factory
        self.sleeper = sleeper
        self._handlers = {
            Step.PROVISION: self._provision,
            Step.CONFIGURE: self._configure,
            Step.DEPLOY: self._deploy,
            Step.VERIFY: self._verify,
        }

    def plan_provision(self) -> str:
        """Produce the provisioning plan shown at the confirmation gate."""
        with LogContext(logger, phase=Step.PROVISION.label):
            return self.provisioner.plan()

    def execute(self, step: Step) -> StepResult:
        """Execute one phase.

        Raises:
            DeploymentError: The phase failed; the state still reflects the
                last successfully completed phase
        """
        start_time = datetime.utcnow()
        started = time.monotonic()

        with LogContext(logger, phase=step.label):
            logger.info(f"Step {int(step)}: {step.title}")
            result = self._handlers[step]()
            self.state_manager.record_step(step)

        result.start_time = start_time
        result.end_time = datetime.utcnow()
        result.duration = time.monotonic() - started
        logger.info(f"Step {int(step)} completed in {result.duration:.1f}s")
        return result

    def _provision(self) -> StepResult:
        settings = self.config.settings

        self.provisioner.apply()
        outputs = self.provisioner.outputs()

        # Facts are saved before the phase is recorded complete
        previous = self.state_manager.load_optional()
        state = PipelineState(
            target_address=outputs.instance_public_ip,
            instance_id=outputs.instance_id,
            bucket_name=outputs.s3_bucket_name,
            ssh_command=outputs.ssh_command,
            last_completed_step=0,
            metadata=previous.metadata if previous else {},
        )
        self.state_manager.save(state)
        logger.info(f"Instance IP: {state.target_address}")
        logger.info(f"Instance ID: {state.instance_id}")

        inventory = write_inventory(
            self.config.inventory_path,
            state,
            group=settings.pipeline.inventory_group,
            ssh_user=settings.ssh.user,
            ssh_key_path=self.config.ssh_key_path,
        )
        logger.debug(f"Wrote inventory {inventory}")

        if state.bucket_name and self.snapshot_store_factory:
            store = self.snapshot_store_factory(state.bucket_name)
            store.apply_expiration(settings.backup.prefix, settings.backup.retention_days)

        settle = settings.pipeline.settle_seconds
        if settle:
            logger.info(f"Waiting {settle} seconds for instance to initialize...")
            self.sleeper(settle)

        return StepResult(
            step=Step.PROVISION,
            status=ExecutionStatus.SUCCESS,
            detail=f"Provisioned {state.instance_id} at {state.target_address}",
        )

    def _configure(self) -> StepResult:
        state = self.state_manager.load()
        logger.info(f"Configuring {state.target_address}")

        # Raises UnreachableTarget, distinct from a failed playbook
        self.configurator.ping()

        playbooks = self.config.settings.pipeline.configure_playbooks
        for playbook in playbooks:
            self.configurator.run_playbook(playbook)

        return StepResult(
            step=Step.CONFIGURE,
            status=ExecutionStatus.SUCCESS,
            detail=f"Ran {len(playbooks)} configuration playbook(s)",
        )

    def _deploy(self) -> StepResult:
        state = self.state_manager.load()
        logger.info(f"Deploying application to {state.target_address}")

        playbooks = self.config.settings.pipeline.deploy_playbooks
        for playbook in playbooks:
            self.configurator.run_playbook(playbook)

        return StepResult(
            step=Step.DEPLOY,
            status=ExecutionStatus.SUCCESS,
            detail=f"Ran {len(playbooks)} deployment playbook(s)",
        )

    def _verify(self) -> StepResult:
        state = self.state_manager.load()
        report = self.health.run(state)

        if report.predominantly_failing:
            raise UnhealthyTarget(
                f"{report.fail_count} of {len(report.results)} health checks failed",
                report=report,
            )

        return StepResult(
            step=Step.VERIFY,
            status=ExecutionStatus.SUCCESS,
            detail=f"{report.pass_count} passed, {report.fail_count} failed",
            report=report,
        )
