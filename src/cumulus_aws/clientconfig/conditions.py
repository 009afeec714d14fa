"""Retry conditions and the botocore retry checkers they compile to.

A retry condition is an immutable value built from static configuration. The
leaf variants test a single property of a failed attempt; ``And`` and ``Or``
compose children. ``to_checker()`` turns a condition into an object exposing
``is_retryable(context)``, which is what botocore's standard retry handler
consults on every failed attempt.
"""

from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, Tuple, Union

from botocore.exceptions import ConnectTimeoutError, ReadTimeoutError
from botocore.retries import quota, standard

from cumulus_aws.constants import (
    CLOCK_SKEW_ERROR_CODES,
    THROTTLING_ERROR_CODES,
    THROTTLING_STATUS_CODE,
)
from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)

# Token costs used when no cost override is configured (same as botocore)
DEFAULT_EXCEPTION_COST = 5
DEFAULT_TIMEOUT_EXCEPTION_COST = 10

# Key under which the tokens consumed by an attempt are kept in the request context
TOKEN_BUCKET_COST_KEY = 'cumulus_token_bucket_cost'


def is_throttling_error(context: standard.RetryContext) -> bool:
    """Whether a failed attempt was throttled by the service."""
    if context.get_error_code() in THROTTLING_ERROR_CODES:
        return True
    return context.http_response is not None and context.http_response.status_code == THROTTLING_STATUS_CODE


def default_exception_cost(context: standard.RetryContext) -> int:
    """Cost of a retry when no override is configured."""
    if isinstance(context.caught_exception, (ConnectTimeoutError, ReadTimeoutError)):
        return DEFAULT_TIMEOUT_EXCEPTION_COST
    return DEFAULT_EXCEPTION_COST


# --- checkers ---------------------------------------------------------------


class MaxRetriesChecker(standard.BaseRetryableChecker):
    """Allows a retry while fewer than max_retries retries have been made."""

    def __init__(self, max_retries: int):
        self._max_retries = max_retries

    def is_retryable(self, context):
        # attempt_number counts attempts made so far, so retries made = attempt_number - 1
        return context.attempt_number <= self._max_retries


class ErrorCodesChecker(standard.BaseRetryableChecker):
    def __init__(self, error_codes: FrozenSet[str]):
        self._error_codes = error_codes

    def is_retryable(self, context):
        return context.get_error_code() in self._error_codes


class StatusCodesChecker(standard.BaseRetryableChecker):
    def __init__(self, status_codes: FrozenSet[int]):
        self._status_codes = status_codes

    def is_retryable(self, context):
        if context.http_response is None:
            return False
        return context.http_response.status_code in self._status_codes


class ThrottlingChecker(standard.BaseRetryableChecker):
    def is_retryable(self, context):
        return is_throttling_error(context)


class ClockSkewChecker(standard.BaseRetryableChecker):
    def is_retryable(self, context):
        return context.get_error_code() in CLOCK_SKEW_ERROR_CODES


class AndRetryChecker(standard.BaseRetryableChecker):
    """Retryable only if every child allows it, evaluated left to right."""

    def __init__(self, checkers):
        self.checkers = checkers

    def is_retryable(self, context):
        return all(checker.is_retryable(context) for checker in self.checkers)


class OrRetryChecker(standard.BaseRetryableChecker):
    def __init__(self, checkers):
        self.checkers = checkers

    def is_retryable(self, context):
        return any(checker.is_retryable(context) for checker in self.checkers)


class TokenBucketChecker(standard.BaseRetryableChecker):
    """Retryable while the bucket holds enough tokens to pay for the retry.

    Each retry withdraws its cost from the bucket. When a retried request
    finally succeeds, the tokens it consumed are returned.
    """

    def __init__(self, bucket_size: int, cost_function: Callable[[standard.RetryContext], int]):
        self._quota = quota.RetryQuota(initial_capacity=bucket_size)
        self._cost_function = cost_function
        self._cost_key = f"{TOKEN_BUCKET_COST_KEY}-{id(self)}"

    @property
    def available_tokens(self) -> int:
        return self._quota.available_capacity

    def is_retryable(self, context):
        cost = self._cost_function(context)
        if not self._quota.acquire(cost):
            logger.debug(f"Token bucket exhausted ({self.available_tokens} left, {cost} needed)")
            return False
        if context.request_context is not None:
            context.request_context[self._cost_key] = cost
        return True

    def release(self, context, http_response, **kwargs):
        """after-call hook: refund the cost of a retry that ended in success."""
        if http_response is None or context is None:
            return
        if 200 <= http_response.status_code < 300 and self._cost_key in context:
            self._quota.release(context.pop(self._cost_key))


# --- conditions -------------------------------------------------------------


@dataclass(frozen=True)
class MaxRetries:
    count: int

    def to_checker(self):
        return MaxRetriesChecker(self.count)

    def describe(self) -> str:
        return f"max-retries({self.count})"


@dataclass(frozen=True)
class ErrorCodes:
    codes: FrozenSet[str]

    def to_checker(self):
        return ErrorCodesChecker(self.codes)

    def describe(self) -> str:
        return f"error-codes({', '.join(sorted(self.codes))})"


@dataclass(frozen=True)
class StatusCodes:
    codes: FrozenSet[int]

    def to_checker(self):
        return StatusCodesChecker(self.codes)

    def describe(self) -> str:
        return f"status-codes({', '.join(str(code) for code in sorted(self.codes))})"


@dataclass(frozen=True)
class Throttling:
    def to_checker(self):
        return ThrottlingChecker()

    def describe(self) -> str:
        return "throttling"


@dataclass(frozen=True)
class ClockSkew:
    def to_checker(self):
        return ClockSkewChecker()

    def describe(self) -> str:
        return "clock-skew"


@dataclass(frozen=True)
class TokenBucket:
    """Caps retries with a bucket of bucket_size tokens.

    Without a cost override every retry costs the default amount. An override
    applies to its own kind of failure: exception_cost to non-throttling
    errors, throttling_exception_cost to throttling errors.
    """

    bucket_size: int
    exception_cost: Optional[int] = None
    throttling_exception_cost: Optional[int] = None

    def cost_function(self) -> Callable[[standard.RetryContext], int]:
        if self.exception_cost is None and self.throttling_exception_cost is None:
            return default_exception_cost

        def cost(context: standard.RetryContext) -> int:
            if is_throttling_error(context):
                override = self.throttling_exception_cost
            else:
                override = self.exception_cost
            return override if override is not None else default_exception_cost(context)

        return cost

    def to_checker(self):
        return TokenBucketChecker(self.bucket_size, self.cost_function())

    def describe(self) -> str:
        return f"token-bucket({self.bucket_size})"


@dataclass(frozen=True)
class And:
    children: Tuple["RetryCondition", ...]

    def to_checker(self):
        return AndRetryChecker([child.to_checker() for child in self.children])

    def describe(self) -> str:
        return f"and({', '.join(child.describe() for child in self.children)})"


@dataclass(frozen=True)
class Or:
    children: Tuple["RetryCondition", ...]

    def to_checker(self):
        return OrRetryChecker([child.to_checker() for child in self.children])

    def describe(self) -> str:
        return f"or({', '.join(child.describe() for child in self.children)})"


RetryCondition = Union[MaxRetries, ErrorCodes, StatusCodes, Throttling, ClockSkew, TokenBucket, And, Or]


def iter_token_buckets(checker):
    """Yield every TokenBucketChecker inside a compiled checker tree."""
    if isinstance(checker, TokenBucketChecker):
        yield checker
    for child in getattr(checker, 'checkers', ()):
        yield from iter_token_buckets(child)
