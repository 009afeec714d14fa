"""Error taxonomy for configuration, lifecycle and wait failures."""

from typing import Optional, Dict, Any, List, Iterable
from enum import Enum
from dataclasses import dataclass
from botocore.exceptions import ClientError, NoCredentialsError, PartialCredentialsError

from cumulus_aws.constants import NOT_FOUND_ERROR_CODES
from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorCategory(Enum):
    """Categories of errors raised by the plugin."""
    CONFIGURATION = "configuration"
    AWS = "aws"
    CREDENTIAL = "credential"
    PERMISSION = "permission"
    PROVISIONING = "provisioning"
    STATE = "state"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class ErrorSeverity(Enum):
    """Severity levels for errors."""
    CRITICAL = "critical"  # Nothing can proceed until fixed
    ERROR = "error"  # The current operation failed
    WARNING = "warning"


@dataclass
class ErrorContext:
    """Context information for an error."""
    resource_id: Optional[str] = None
    resource_type: Optional[str] = None
    operation: Optional[str] = None
    aws_service: Optional[str] = None
    request_id: Optional[str] = None
    additional_info: Optional[Dict[str, Any]] = None


class CumulusError(Exception):
    """Base exception for plugin errors."""

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        severity: ErrorSeverity = ErrorSeverity.ERROR,
        context: Optional[ErrorContext] = None,
        cause: Optional[Exception] = None,
        suggestions: Optional[List[str]] = None
    ):
        """Initialize the error.

        Args:
            message: Human-readable error message
            category: Error category
            severity: Error severity
            context: Additional context about the error
            cause: Original exception that caused this error
            suggestions: List of suggested fixes
        """
        super().__init__(message)
        self.message = message
        self.category = category
        self.severity = severity
        self.context = context or ErrorContext()
        self.cause = cause
        self.suggestions = suggestions or []

    def to_user_message(self) -> str:
        """Convert error to a user-friendly message.

        Returns:
            Formatted error message for display to user
        """
        lines = [f"{self.severity.value.upper()}: {self.message}"]

        if self.context.resource_id:
            lines.append(f"   Resource: {self.context.resource_id}")
        if self.context.operation:
            lines.append(f"   Operation: {self.context.operation}")

        if self.cause:
            lines.append(f"   Cause: {str(self.cause)}")

        if self.suggestions:
            lines.append("\nSuggested fixes:")
            for i, suggestion in enumerate(self.suggestions, 1):
                lines.append(f"   {i}. {suggestion}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        return {
            'message': self.message,
            'category': self.category.value,
            'severity': self.severity.value,
            'context': {
                'resource_id': self.context.resource_id,
                'resource_type': self.context.resource_type,
                'operation': self.context.operation,
                'aws_service': self.context.aws_service,
                'request_id': self.context.request_id,
                'additional_info': self.context.additional_info
            },
            'cause': str(self.cause) if self.cause else None,
            'suggestions': self.suggestions
        }


class ConfigurationError(CumulusError):
    """Invalid configuration, detected before any remote call is made."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CONFIGURATION,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class CredentialError(CumulusError):
    """Error related to AWS credentials."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.CREDENTIAL,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class ProvisioningError(CumulusError):
    """AWS accepted a request but reported it (partly) failed."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.PROVISIONING,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )


class StateError(CumulusError):
    """Error reading or writing persisted state."""

    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            category=ErrorCategory.STATE,
            severity=ErrorSeverity.CRITICAL,
            **kwargs
        )


class WaitTimeoutError(CumulusError):
    """A bounded poll loop did not observe its target status in time."""

    def __init__(self, operation: str, timeout: float, **kwargs):
        super().__init__(
            f"Timed out after {timeout:g}s waiting for {operation}",
            category=ErrorCategory.TIMEOUT,
            severity=ErrorSeverity.ERROR,
            **kwargs
        )
        self.operation = operation
        self.timeout = timeout


def error_code(error: ClientError) -> str:
    """Return the AWS error code carried by a ClientError."""
    return error.response.get('Error', {}).get('Code', 'Unknown')


def is_not_found(error: Exception, codes: Iterable[str] = NOT_FOUND_ERROR_CODES) -> bool:
    """Check whether an exception is a remote "does not exist" response.

    Args:
        error: Exception raised by a boto3 client call
        codes: Error codes that mean not-found for the calling service

    Returns:
        True if the error is a ClientError carrying one of the codes
    """
    return isinstance(error, ClientError) and error_code(error) in codes


class ErrorHandler:
    """Categorizes errors from AWS and other sources for display."""

    AWS_ERROR_MAPPING = {
        'InvalidClientTokenId': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS credentials are invalid or expired',
            'suggestions': [
                'Check that your AWS credentials are correctly configured',
                'Verify credentials using: aws sts get-caller-identity',
            ]
        },
        'ExpiredToken': {
            'category': ErrorCategory.CREDENTIAL,
            'message': 'AWS session token has expired',
            'suggestions': [
                'Refresh your AWS session credentials',
            ]
        },
        'AccessDenied': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to your user/role',
                'Check resource-based policies on the target resource'
            ]
        },
        'AccessDeniedException': {
            'category': ErrorCategory.PERMISSION,
            'message': 'Access denied - insufficient permissions',
            'suggestions': [
                'Check IAM policies attached to your user/role',
            ]
        },
        'ValidationException': {
            'category': ErrorCategory.AWS,
            'message': 'Invalid parameter or configuration',
            'suggestions': [
                'Review the error message for specific validation failures',
                'Check AWS documentation for parameter requirements'
            ]
        },
        'ThrottlingException': {
            'category': ErrorCategory.AWS,
            'message': 'API rate limit exceeded',
            'suggestions': [
                'Add a retry-on-throttling-condition to the client configuration',
                'Raise retry-count in the retry policy'
            ]
        },
    }

    def handle_exception(
        self,
        error: Exception,
        context: Optional[ErrorContext] = None
    ) -> CumulusError:
        """Convert an exception into a CumulusError.

        Args:
            error: The exception to handle
            context: Additional context about where the error occurred

        Returns:
            CumulusError with categorization and suggestions
        """
        context = context or ErrorContext()

        if isinstance(error, CumulusError):
            return error

        if isinstance(error, ClientError):
            return self._handle_aws_error(error, context)

        if isinstance(error, (NoCredentialsError, PartialCredentialsError)):
            return CredentialError(
                'No usable AWS credentials found',
                context=context,
                cause=error,
                suggestions=[
                    'Configure AWS credentials using: aws configure',
                    'Specify a profile with --profile flag'
                ]
            )

        return CumulusError(
            message=str(error),
            context=context,
            cause=error,
            suggestions=['Check logs for more details']
        )

    def _handle_aws_error(self, error: ClientError, context: ErrorContext) -> CumulusError:
        code = error_code(error)
        error_message = error.response.get('Error', {}).get('Message', str(error))
        context.request_id = error.response.get('ResponseMetadata', {}).get('RequestId')

        error_info = self.AWS_ERROR_MAPPING.get(code)
        if error_info:
            return CumulusError(
                message=f"{error_info['message']}: {error_message}",
                category=error_info['category'],
                context=context,
                cause=error,
                suggestions=error_info['suggestions']
            )

        return CumulusError(
            message=f"AWS Error ({code}): {error_message}",
            category=ErrorCategory.AWS,
            context=context,
            cause=error,
            suggestions=[f'AWS Request ID: {context.request_id}']
        )

    def log_error(self, error: CumulusError):
        """Log an error with appropriate level."""
        if error.severity == ErrorSeverity.WARNING:
            logger.warning(error.to_user_message())
        else:
            logger.error(error.to_user_message())
        logger.debug(f"Error details: {error.to_dict()}")


# Global error handler instance
error_handler = ErrorHandler()
