"""Deployment error taxonomy and the mapping from SDK/OS failures into it.

Every failure the pipeline reports is a ``DeploymentError`` subclass carrying
a category, a severity, the phase/operation/target it happened in, and a list
of concrete next steps for the operator. ``OperatorAbort`` sits outside the
hierarchy: declining a prompt is a clean exit, not a failure.
"""

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from botocore.exceptions import (
    BotoCoreError,
    ClientError,
    EndpointConnectionError,
    NoCredentialsError,
    PartialCredentialsError,
)

from forge_deploy.utils.logging import get_logger


class ErrorCategory(Enum):
    PREREQUISITE = "prerequisite"
    STATE = "state"
    NETWORK = "network"
    EXTERNAL_TOOL = "external_tool"
    CREDENTIAL = "credential"
    SELECTION = "selection"
    HEALTH = "health"
    RESTORE = "restore"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    CRITICAL = "critical"  # the run stops here
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class ErrorContext:
    """Where a failure happened."""
    phase: Optional[str] = None
    operation: Optional[str] = None
    target: Optional[str] = None
    command: Optional[str] = None
    exit_code: Optional[int] = None
    additional_info: Optional[Dict[str, Any]] = None


class DeploymentError(Exception):
    """Root of every reported failure."""

    default_category = ErrorCategory.UNKNOWN
    default_severity = ErrorSeverity.CRITICAL

    def __init__(
        self,
        message: str,
        category: Optional[ErrorCategory] = None,
        severity: Optional[ErrorSeverity] = None,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.severity = severity or self.default_severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = list(suggestions or [])

    def to_user_message(self) -> str:
        """Multi-line text for the terminal: headline, location, cause, numbered fixes."""
        where = [
            ("Phase", self.context.phase),
            ("Operation", self.context.operation),
            ("Target", self.context.target),
            ("Cause", self.cause),
        ]
        lines = [f"❌ {self.severity.value.upper()}: {self.message}"]
        lines += [f"   {label}: {value}" for label, value in where if value]
        if self.suggestions:
            lines.append("\n💡 Suggested fixes:")
            lines += [f"   {n}. {text}" for n, text in enumerate(self.suggestions, 1)]
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'type': type(self).__name__,
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': asdict(self.context),
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions,
        }


class StateError(DeploymentError):
    """The pipeline state file could not be read or written."""
    default_category = ErrorCategory.STATE


class PrerequisiteMissing(DeploymentError):
    """A required tool, credential or artifact is absent."""
    default_category = ErrorCategory.PREREQUISITE

    def __init__(self, message: str, missing: Optional[List[str]] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.missing = list(missing or [])

    def to_user_message(self) -> str:
        text = super().to_user_message()
        if not self.missing:
            return text
        return text + "\n\nMissing:\n" + "\n".join(f"   - {item}" for item in self.missing)


class StateMissing(PrerequisiteMissing):
    """A run starting after provisioning found no pipeline state."""

    def __init__(self, message: str = "No pipeline state found: run phase 1 first", **kwargs):
        kwargs.setdefault('suggestions', [
            'Provision the target first with: forge-deploy deploy --step 1',
            'Check that --config points at the same state directory as the provisioning run',
        ])
        super().__init__(message, **kwargs)


class UnreachableTarget(DeploymentError):
    """SSH, ping or HTTP could not reach the target."""
    default_category = ErrorCategory.NETWORK

    def __init__(self, message: str, **kwargs):
        kwargs.setdefault('suggestions', [
            'Check that the instance is running and its security group allows SSH',
            'Wait for the instance to finish booting and resume from this phase',
            'Verify the SSH key path and remote user in the configuration',
        ])
        super().__init__(message, **kwargs)


class ExternalToolFailure(DeploymentError):
    """terraform, ansible, ssh or S3 reported a failure; ``diagnostic`` is its output."""
    default_category = ErrorCategory.EXTERNAL_TOOL

    def __init__(self, operation: str, diagnostic: str, **kwargs):
        context = kwargs.pop('context', None) or ErrorContext()
        if not context.operation:
            context.operation = operation
        super().__init__(f"{operation} failed: {diagnostic}".rstrip(), context=context, **kwargs)
        self.operation = operation
        self.diagnostic = diagnostic


class InvalidSelection(DeploymentError):
    """Bad snapshot choice or step range."""
    default_category = ErrorCategory.SELECTION
    default_severity = ErrorSeverity.ERROR


class UnhealthyTarget(DeploymentError):
    """Verification saw more failing checks than passing ones."""
    default_category = ErrorCategory.HEALTH

    def __init__(self, message: str, report=None, **kwargs):
        super().__init__(message, **kwargs)
        self.report = report


class DegradedRestore(DeploymentError):
    """Restore got past archiving the live tree and then failed; ``archive_path`` holds the old tree."""
    default_category = ErrorCategory.RESTORE

    def __init__(self, message: str, archive_path: str, report=None, **kwargs):
        kwargs.setdefault('suggestions', [
            f"Inspect the application, or recover manually from {archive_path}",
            f"Manual recovery: stop the application, move {archive_path} back into place, start it",
        ])
        super().__init__(message, **kwargs)
        self.archive_path = archive_path
        self.report = report


class OperatorAbort(Exception):
    """Operator declined at a confirmation gate. Not an error."""


# code -> (category, headline, suggestions)
AWS_ERROR_CODES = {
    'InvalidClientTokenId': (ErrorCategory.CREDENTIAL, 'AWS credentials are invalid or expired', [
        'Check that your AWS credentials are correctly configured',
        'Verify credentials using: aws sts get-caller-identity',
    ]),
    'ExpiredToken': (ErrorCategory.CREDENTIAL, 'AWS session token has expired', [
        'Refresh your AWS session credentials',
    ]),
    'AccessDenied': (ErrorCategory.CREDENTIAL, 'Access denied to the snapshot bucket', [
        'Check the IAM policy attached to your user or role',
        'Verify the bucket policy allows this operation',
    ]),
    'NoSuchBucket': (ErrorCategory.STATE, 'Snapshot bucket does not exist', [
        'Re-run provisioning with: forge-deploy deploy --step 1',
        'Check the bucket name recorded in the pipeline state',
    ]),
    'NoSuchKey': (ErrorCategory.SELECTION, 'Snapshot not found in storage', [
        'List available snapshots with: forge-deploy snapshots',
        'The snapshot may have expired under the retention rule',
    ]),
    '404': (ErrorCategory.SELECTION, 'Object not found in storage', [
        'List available snapshots with: forge-deploy snapshots',
    ]),
}

NO_CREDENTIALS_SUGGESTIONS = [
    'Configure AWS credentials using: aws configure',
    'Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY environment variables',
    'Select a profile with aws.profile in the configuration file',
]


class ErrorHandler:
    """Converts botocore and OS-level exceptions into ``DeploymentError``s and logs them."""

    def __init__(self):
        self.logger = get_logger(__name__)

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> DeploymentError:
        if isinstance(error, DeploymentError):
            return error

        context = context or ErrorContext()
        if isinstance(error, ClientError):
            return self._from_client_error(error, context)
        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return PrerequisiteMissing(
                'AWS credentials are not configured',
                missing=['AWS credentials'],
                context=context,
                cause=error,
                suggestions=NO_CREDENTIALS_SUGGESTIONS,
            )
        if isinstance(error, (ConnectionError, TimeoutError, EndpointConnectionError)):
            return UnreachableTarget(
                f'Network error: {error}',
                context=context,
                cause=error,
                suggestions=['Check your network connection, VPN or proxy'],
            )
        if isinstance(error, BotoCoreError):
            return ExternalToolFailure(context.operation or 'AWS request', str(error), context=context, cause=error)

        return DeploymentError(
            str(error),
            severity=ErrorSeverity.ERROR,
            context=context,
            cause=error,
            suggestions=['Check logs for more details'],
        )

    def _from_client_error(self, error: ClientError, context: ErrorContext) -> DeploymentError:
        details = error.response.get('Error', {})
        code = details.get('Code', 'Unknown')
        text = details.get('Message', str(error))
        request_id = error.response.get('ResponseMetadata', {}).get('RequestId')
        context.additional_info = {**(context.additional_info or {}), 'request_id': request_id}
        operation = context.operation or 'AWS request'

        known = AWS_ERROR_CODES.get(code)
        if known is None:
            return ExternalToolFailure(
                operation,
                f"AWS Error ({code}): {text}",
                context=context,
                cause=error,
                suggestions=[f'AWS Request ID: {request_id}'],
            )

        category, headline, suggestions = known
        return ExternalToolFailure(
            operation,
            f"{headline}: {text}",
            category=category,
            context=context,
            cause=error,
            suggestions=suggestions,
        )

    def log_error(self, error: DeploymentError) -> None:
        """Full text at error/warning/info by severity, the dict form at debug."""
        if error.severity in (ErrorSeverity.CRITICAL, ErrorSeverity.ERROR):
            level = logging.ERROR
        elif error.severity == ErrorSeverity.WARNING:
            level = logging.WARNING
        else:
            level = logging.INFO
        self.logger.log(level, error.to_user_message())
        self.logger.debug(f"Error details: {error.to_dict()}")


error_handler = ErrorHandler()
