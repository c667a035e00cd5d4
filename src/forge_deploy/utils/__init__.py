"""Utility modules for logging, errors, AWS client management and subprocesses."""

from forge_deploy.utils.aws_client import AWSClientManager, AWSCredentials
from forge_deploy.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    DeploymentError,
    StateError,
    PrerequisiteMissing,
    StateMissing,
    UnreachableTarget,
    ExternalToolFailure,
    InvalidSelection,
    UnhealthyTarget,
    DegradedRestore,
    OperatorAbort,
    ErrorHandler,
    error_handler
)
from forge_deploy.utils.logging import get_logger, setup_logging
from forge_deploy.utils.process import CommandResult, run_command, run_checked

__all__ = [
    # AWS Client
    'AWSClientManager',
    'AWSCredentials',

    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'DeploymentError',
    'StateError',
    'PrerequisiteMissing',
    'StateMissing',
    'UnreachableTarget',
    'ExternalToolFailure',
    'InvalidSelection',
    'UnhealthyTarget',
    'DegradedRestore',
    'OperatorAbort',
    'ErrorHandler',
    'error_handler',

    # Logging
    'get_logger',
    'setup_logging',

    # Processes
    'CommandResult',
    'run_command',
    'run_checked',
]
