"""Utility modules for logging, errors, AWS clients, waits and JSON documents."""

from cumulus_aws.utils.errors import (
    ErrorCategory,
    ErrorSeverity,
    ErrorContext,
    CumulusError,
    ConfigurationError,
    CredentialError,
    ProvisioningError,
    StateError,
    WaitTimeoutError,
    ErrorHandler,
    error_handler,
    is_not_found,
)
from cumulus_aws.utils.logging import get_logger, setup_logging, LogContext
from cumulus_aws.utils.wait import wait_until

__all__ = [
    # Errors
    'ErrorCategory',
    'ErrorSeverity',
    'ErrorContext',
    'CumulusError',
    'ConfigurationError',
    'CredentialError',
    'ProvisioningError',
    'StateError',
    'WaitTimeoutError',
    'ErrorHandler',
    'error_handler',
    'is_not_found',

    # Logging
    'get_logger',
    'setup_logging',
    'LogContext',

    # Waits
    'wait_until',
]
