"""Pipeline controller: ordered, resumable execution of a phase range."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional

from forge_deploy.health.models import HealthReport
from forge_deploy.prompts import Prompter
from forge_deploy.state.manager import StateManager
from forge_deploy.utils.errors import DeploymentError, UnhealthyTarget, error_handler
from forge_deploy.utils.logging import get_logger
from .executor import ExecutionStatus, StepExecutor, StepResult
from .prerequisites import PrerequisiteChecker
from .steps import LAST_STEP, Step, StepRange

logger = get_logger(__name__)


class PipelineOutcome(Enum):
    """Terminal states of a pipeline run."""
    COMPLETED_FULLY = "completed_fully"
    COMPLETED_PARTIALLY = "completed_partially"
    ABORTED_BY_OPERATOR = "aborted_by_operator"
    FAILED = "failed"


@dataclass
class PipelineSummary:
    """What ran, what was skipped, and how the run ended."""

    outcome: PipelineOutcome
    step_range: StepRange
    results: List[StepResult] = field(default_factory=list)
    skipped: List[Step] = field(default_factory=list)
    not_run: List[Step] = field(default_factory=list)
    failed_step: Optional[Step] = None
    error: Optional[DeploymentError] = None
    last_completed_step: int = 0
    health_report: Optional[HealthReport] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: float = 0.0  # seconds

    @property
    def executed(self) -> List[Step]:
        return [r.step for r in self.results if r.is_success()]

    @property
    def last_phase(self) -> Optional[Step]:
        """Last phase this run completed."""
        executed = self.executed
        return executed[-1] if executed else None

    @property
    def exit_code(self) -> int:
        return 1 if self.outcome == PipelineOutcome.FAILED else 0


class PipelineController:
    """Runs phases 1-4 in order, restricted to a requested range.

    Provisioning changes billed resources, so phase 1 waits behind an
    operator confirmation. The first failing phase stops the run and leaves
    the pipeline state as of the last completed phase; the operator resumes
    with a later run whose range starts at the failed phase.
    """

    def __init__(
        self,
        executor: StepExecutor,
        prerequisites: PrerequisiteChecker,
        prompter: Prompter,
        state_manager: StateManager,
    ):
        self.executor = executor
        self.prerequisites = prerequisites
        self.prompter = prompter
        self.state_manager = state_manager

    def run(self, step_range: Optional[StepRange] = None) -> PipelineSummary:
        """Execute the phases in ``step_range`` (default: all four).

        Raises:
            PrerequisiteMissing: Before any phase runs
        """
        step_range = step_range or StepRange.full()
        summary = PipelineSummary(
            outcome=PipelineOutcome.FAILED,
            step_range=step_range,
            start_time=datetime.utcnow(),
        )
        started = time.monotonic()
        logger.info(f"Starting pipeline for {step_range}")

        self.prerequisites.ensure(step_range)

        if step_range.contains(Step.PROVISION):
            try:
                plan = self.executor.plan_provision()
            except DeploymentError as e:
                self._record_failure(summary, Step.PROVISION, e)
                summary.not_run = step_range.steps()[1:]
                summary.skipped = [s for s in Step if not step_range.contains(s)]
                return self._finish(summary, started)

            if not self._confirm_provisioning(plan):
                summary.outcome = PipelineOutcome.ABORTED_BY_OPERATOR
                summary.not_run = step_range.steps()
                summary.skipped = [s for s in Step if not step_range.contains(s)]
                return self._finish(summary, started)

        failed = False
        for step in Step:
            if not step_range.contains(step):
                summary.skipped.append(step)
                logger.info(f"Skipping step {int(step)} ({step.label}): outside {step_range}")
                continue
            if failed:
                summary.not_run.append(step)
                continue

            try:
                result = self.executor.execute(step)
            except DeploymentError as e:
                self._record_failure(summary, step, e)
                failed = True
                continue

            summary.results.append(result)
            if result.report is not None:
                summary.health_report = result.report

        if not failed:
            if step_range.end == LAST_STEP:
                summary.outcome = PipelineOutcome.COMPLETED_FULLY
            else:
                summary.outcome = PipelineOutcome.COMPLETED_PARTIALLY

        return self._finish(summary, started)

    def _confirm_provisioning(self, plan: str) -> bool:
        self.prompter.show(plan)
        if self.prompter.confirm("Do you want to apply these changes?"):
            return True

        logger.warning("Deployment cancelled by operator at the provisioning gate")
        return False

    def _record_failure(self, summary: PipelineSummary, step: Step, error: DeploymentError) -> None:
        if error.context.phase is None:
            error.context.phase = step.label
        summary.failed_step = step
        summary.error = error
        summary.results.append(
            StepResult(step=step, status=ExecutionStatus.FAILED, detail=error.message, error=error)
        )
        if isinstance(error, UnhealthyTarget):
            summary.health_report = error.report
        error_handler.log_error(error)

    def _finish(self, summary: PipelineSummary, started: float) -> PipelineSummary:
        state = self.state_manager.load_optional()
        summary.last_completed_step = state.last_completed_step if state else 0
        summary.end_time = datetime.utcnow()
        summary.duration = time.monotonic() - started
        logger.info(
            f"Pipeline {summary.outcome.value}: last completed step {summary.last_completed_step}"
        )
        return summary
