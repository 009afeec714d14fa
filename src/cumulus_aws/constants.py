"""Shared constants used across resources and client configuration."""

# Error codes botocore and the AWS services use to signal throttling
THROTTLING_ERROR_CODES = frozenset([
    'Throttling',
    'ThrottlingException',
    'ThrottledException',
    'RequestThrottledException',
    'TooManyRequestsException',
    'ProvisionedThroughputExceededException',
    'TransactionInProgressException',
    'RequestLimitExceeded',
    'BandwidthLimitExceeded',
    'LimitExceededException',
    'RequestThrottled',
    'SlowDown',
    'PriorRequestNotComplete',
    'EC2ThrottledException',
])

THROTTLING_STATUS_CODE = 429

CLOCK_SKEW_ERROR_CODES = frozenset([
    'RequestTimeTooSkewed',
    'RequestExpired',
    'InvalidSignatureException',
    'SignatureDoesNotMatch',
    'AuthFailure',
    'RequestInTheFuture',
])

# Error codes meaning "the resource does not exist"
NOT_FOUND_ERROR_CODES = frozenset([
    'ResourceNotFoundException',
    'NotFoundException',
    'NotFound',
    'NoSuchEntity',
    'AWS.SimpleQueueService.NonExistentQueue',
    'QueueDoesNotExist',
])

# Default bounded-wait settings (seconds)
DEFAULT_WAIT_TIMEOUT = 600
DEFAULT_WAIT_INTERVAL = 10

DEFAULT_CLIENT_CONFIGURATION = "default"

# Tags created by AWS itself; never managed locally
RESERVED_TAG_PREFIX = 'aws:'
MAX_TAGS_PER_RESOURCE = 50
