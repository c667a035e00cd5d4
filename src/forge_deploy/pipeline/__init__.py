"""Pipeline orchestration: phases, prerequisites, execution and control."""

from forge_deploy.pipeline.steps import FIRST_STEP, LAST_STEP, Step, StepRange
from forge_deploy.pipeline.prerequisites import (
    Prerequisite,
    PrerequisiteChecker,
    aws_credentials_available,
)
from forge_deploy.pipeline.executor import ExecutionStatus, StepExecutor, StepResult
from forge_deploy.pipeline.controller import (
    PipelineController,
    PipelineOutcome,
    PipelineSummary,
)

__all__ = [
    # Phases
    'Step',
    'StepRange',
    'FIRST_STEP',
    'LAST_STEP',

    # Prerequisites
    'Prerequisite',
    'PrerequisiteChecker',
    'aws_credentials_available',

    # Execution
    'StepExecutor',
    'StepResult',
    'ExecutionStatus',

    # Control
    'PipelineController',
    'PipelineOutcome',
    'PipelineSummary',
]
