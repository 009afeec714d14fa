"""Pydantic models for client configurations.

The models mirror the YAML layout (hyphenated keys). Pydantic checks the
shape and types of each block; ``check()`` enforces the semantic rules, such
as a retry condition node configuring exactly one variant, and raises
ConfigurationError before anything is compiled or any client is built.
"""

import re
from typing import Annotated, Any, ClassVar, Dict, List, Optional

from botocore.config import Config
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field

from cumulus_aws.clientconfig.conditions import (
    And,
    ClockSkew,
    ErrorCodes,
    MaxRetries,
    Or,
    RetryCondition,
    StatusCodes,
    Throttling,
    TokenBucket,
)
from cumulus_aws.utils.errors import ConfigurationError

_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1, "m": 60, "h": 3600}


def parse_duration(value: Any) -> Any:
    """Convert "500ms", "10s", "2m", "1h" or a bare number into seconds."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    if isinstance(value, str):
        match = _DURATION_PATTERN.match(value)
        if not match:
            raise ValueError(f"Invalid duration '{value}', expected e.g. '500ms', '10s', '2m' or '1h'")
        amount, unit = match.groups()
        return float(amount) * _DURATION_UNITS[unit or "s"]
    return value


Duration = Annotated[float, BeforeValidator(parse_duration)]


def _quoted(names: List[str]) -> str:
    return ", ".join(f"'{name}'" for name in names)


class ConfigModel(BaseModel):
    """Base for configuration blocks keyed by hyphenated names."""

    model_config = ConfigDict(
        alias_generator=lambda name: name.replace("_", "-"),
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    @classmethod
    def alias_of(cls, field_name: str) -> str:
        return cls.model_fields[field_name].alias or field_name


# --- leaf conditions --------------------------------------------------------


class MaxNumberOfRetryConditionConfig(ConfigModel):
    """Retry while fewer than max-number-of-retries retries have been made."""

    NAME: ClassVar[str] = "max-number-of-retry-condition"

    max_number_of_retries: Optional[int] = None

    def check(self) -> None:
        if self.max_number_of_retries is None:
            raise ConfigurationError(f"'max-number-of-retries' is required for '{self.NAME}'.")
        if self.max_number_of_retries < 0:
            raise ConfigurationError(f"'max-number-of-retries' cannot be less than 0 for '{self.NAME}'.")

    def to_condition(self) -> RetryCondition:
        return MaxRetries(self.max_number_of_retries)


class ErrorCodesConditionConfig(ConfigModel):
    """Retry when the AWS error code is one of error-codes."""

    NAME: ClassVar[str] = "retry-on-error-codes-condition"

    error_codes: Optional[List[str]] = None

    def check(self) -> None:
        if not self.error_codes:
            raise ConfigurationError(f"At least one entry in 'error-codes' is required for '{self.NAME}'.")

    def to_condition(self) -> RetryCondition:
        return ErrorCodes(frozenset(self.error_codes))


class StatusCodesConditionConfig(ConfigModel):
    """Retry when the HTTP status code is one of status-codes."""

    NAME: ClassVar[str] = "retry-on-status-codes-condition"

    status_codes: Optional[List[int]] = None

    def check(self) -> None:
        if not self.status_codes:
            raise ConfigurationError(f"At least one entry in 'status-codes' is required for '{self.NAME}'.")
        invalid = [code for code in self.status_codes if not 100 <= code <= 599]
        if invalid:
            raise ConfigurationError(
                f"Invalid HTTP status code(s) {invalid} for '{self.NAME}', valid range is 100 to 599."
            )

    def to_condition(self) -> RetryCondition:
        return StatusCodes(frozenset(self.status_codes))


class ThrottlingConditionConfig(ConfigModel):
    """Retry on throttling error codes or HTTP 429."""

    NAME: ClassVar[str] = "retry-on-throttling-condition"

    def check(self) -> None:
        """Takes no settings; always valid."""

    def to_condition(self) -> RetryCondition:
        return Throttling()


class ClockSkewConditionConfig(ConfigModel):
    """Retry when the request was rejected for clock skew."""

    NAME: ClassVar[str] = "retry-on-clock-skew-condition"

    def check(self) -> None:
        """Takes no settings; always valid."""

    def to_condition(self) -> RetryCondition:
        return ClockSkew()


class TokenBucketConditionConfig(ConfigModel):
    """Retry while a bucket of bucket-size tokens can pay for the retry.

    exception-cost overrides the cost of non-throttling failures and
    throttling-exception-cost the cost of throttling failures; only one of
    them may be configured. Without either, the default cost applies.
    """

    NAME: ClassVar[str] = "token-bucket-retry-condition"

    bucket_size: Optional[int] = None
    exception_cost: Optional[int] = None
    throttling_exception_cost: Optional[int] = None

    def check(self) -> None:
        if self.bucket_size is None or self.bucket_size < 1:
            raise ConfigurationError(f"'bucket-size' is required and cannot be less than 1 for '{self.NAME}'.")

        if self.exception_cost is not None and self.throttling_exception_cost is not None:
            raise ConfigurationError(
                f"Only one of 'exception-cost' or 'throttling-exception-cost' is allowed for '{self.NAME}'."
            )

        for field_name in ("exception_cost", "throttling_exception_cost"):
            value = getattr(self, field_name)
            if value is not None and value < 1:
                raise ConfigurationError(
                    f"'{self.alias_of(field_name)}' cannot be less than 1 for '{self.NAME}'."
                )

    def to_condition(self) -> RetryCondition:
        return TokenBucket(self.bucket_size, self.exception_cost, self.throttling_exception_cost)


# --- variant nodes ----------------------------------------------------------


class RetryConditionConfig(ConfigModel):
    """A node that must configure exactly one retry condition variant."""

    NAME: ClassVar[str] = "retry-condition"

    max_number_of_retry_condition: Optional[MaxNumberOfRetryConditionConfig] = None
    retry_on_error_codes_condition: Optional[ErrorCodesConditionConfig] = None
    retry_on_status_codes_condition: Optional[StatusCodesConditionConfig] = None
    retry_on_throttling_condition: Optional[ThrottlingConditionConfig] = None
    retry_on_clock_skew_condition: Optional[ClockSkewConditionConfig] = None
    and_retry_condition: Optional["AndRetryConditionConfig"] = None
    or_retry_condition: Optional["OrRetryConditionConfig"] = None

    @classmethod
    def variant_names(cls) -> List[str]:
        return [cls.alias_of(name) for name in cls.model_fields]

    def configured_variants(self) -> List[str]:
        return [
            self.alias_of(name)
            for name in type(self).model_fields
            if getattr(self, name) is not None
        ]

    def variant(self):
        for name in type(self).model_fields:
            value = getattr(self, name)
            if value is not None:
                return value
        return None

    def check(self) -> None:
        configured = self.configured_variants()
        if not configured:
            raise ConfigurationError(
                f"One of {_quoted(self.variant_names())} is required for '{self.NAME}'."
            )
        if len(configured) > 1:
            raise ConfigurationError(
                f"Only one of {_quoted(self.variant_names())} is allowed for '{self.NAME}' "
                f"(found: {_quoted(configured)})."
            )
        self.variant().check()

    def to_condition(self) -> RetryCondition:
        self.check()
        return self.variant().to_condition()


class CapacityRetryConditionConfig(RetryConditionConfig):
    """Decides whether there is capacity left to retry at all."""

    NAME: ClassVar[str] = "capacity-retry-condition"


class NestedRetryConditionConfig(RetryConditionConfig):
    """An entry of retry-conditions inside an and/or condition."""

    NAME: ClassVar[str] = "retry-conditions"

    token_bucket_retry_condition: Optional[TokenBucketConditionConfig] = None


class _CompositeConditionConfig(ConfigModel):
    retry_conditions: Optional[List[NestedRetryConditionConfig]] = None

    def check(self) -> None:
        if not self.retry_conditions:
            raise ConfigurationError(
                f"At least one entry in 'retry-conditions' is required for '{self.NAME}'."
            )
        for child in self.retry_conditions:
            child.check()

    def _children(self):
        return tuple(child.to_condition() for child in self.retry_conditions)


class AndRetryConditionConfig(_CompositeConditionConfig):
    NAME: ClassVar[str] = "and-retry-condition"

    def to_condition(self) -> RetryCondition:
        return And(self._children())


class OrRetryConditionConfig(_CompositeConditionConfig):
    NAME: ClassVar[str] = "or-retry-condition"

    def to_condition(self) -> RetryCondition:
        return Or(self._children())


RetryConditionConfig.model_rebuild()
CapacityRetryConditionConfig.model_rebuild()
NestedRetryConditionConfig.model_rebuild()
AndRetryConditionConfig.model_rebuild()
OrRetryConditionConfig.model_rebuild()


def validate_condition(node: RetryConditionConfig) -> None:
    """Raise ConfigurationError unless node (and every child) configures exactly one variant."""
    node.check()


def compile_condition(node: RetryConditionConfig):
    """Validate node and compile it into a botocore retry checker."""
    return node.to_condition().to_checker()


# --- policy and client configuration ----------------------------------------


class RetryPolicyConfig(ConfigModel):
    """Retry policy applied to every client built from a configuration."""

    NAME: ClassVar[str] = "retry-policy"

    retry_count: Optional[int] = None
    additional_retry_conditions_allowed: bool = True
    max_backoff: Optional[Duration] = None
    retry_condition: Optional[RetryConditionConfig] = None
    capacity_retry_condition: Optional[CapacityRetryConditionConfig] = None

    def check(self) -> None:
        if self.retry_count is not None and self.retry_count < 0:
            raise ConfigurationError(f"'retry-count' cannot be less than 0 for '{self.NAME}'.")
        if self.max_backoff is not None and self.max_backoff <= 0:
            raise ConfigurationError(f"'max-backoff' must be greater than 0 for '{self.NAME}'.")
        if self.retry_condition is not None:
            self.retry_condition.check()
        if self.capacity_retry_condition is not None:
            self.capacity_retry_condition.check()


class HttpClientConfig(ConfigModel):
    """HTTP settings passed to botocore."""

    NAME: ClassVar[str] = "http-client-configuration"

    connection_timeout: Optional[Duration] = None
    socket_timeout: Optional[Duration] = None
    max_connections: Optional[int] = None
    tcp_keepalive: Optional[bool] = None

    def check(self) -> None:
        for field_name in ("connection_timeout", "socket_timeout"):
            value = getattr(self, field_name)
            if value is not None and value <= 0:
                raise ConfigurationError(
                    f"'{self.alias_of(field_name)}' must be greater than 0 for '{self.NAME}'."
                )
        if self.max_connections is not None and self.max_connections < 1:
            raise ConfigurationError(f"'max-connections' cannot be less than 1 for '{self.NAME}'.")

    def config_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {}
        if self.connection_timeout is not None:
            kwargs["connect_timeout"] = self.connection_timeout
        if self.socket_timeout is not None:
            kwargs["read_timeout"] = self.socket_timeout
        if self.max_connections is not None:
            kwargs["max_pool_connections"] = self.max_connections
        if self.tcp_keepalive is not None:
            kwargs["tcp_keepalive"] = self.tcp_keepalive
        return kwargs


class ClientConfiguration(ConfigModel):
    """A named client configuration: HTTP settings plus retry policy."""

    http_client_configuration: HttpClientConfig = Field(default_factory=HttpClientConfig)
    retry_policy: Optional[RetryPolicyConfig] = None

    def check(self) -> None:
        self.http_client_configuration.check()
        if self.retry_policy is not None:
            self.retry_policy.check()

    def to_botocore_config(self) -> Config:
        """Build the botocore Config for clients using this configuration.

        Standard retry mode is always selected; when a retry policy is
        configured its handler replaces the standard one after the client is
        created (see cumulus_aws.clientconfig.policy).
        """
        retries: Dict[str, Any] = {"mode": "standard"}
        if self.retry_policy is not None and self.retry_policy.retry_count is not None:
            retries["total_max_attempts"] = self.retry_policy.retry_count + 1
        return Config(retries=retries, **self.http_client_configuration.config_kwargs())
