"""Client configuration: HTTP settings, retry policies and retry condition trees."""

from cumulus_aws.clientconfig.models import (
    ClientConfiguration,
    HttpClientConfig,
    RetryConditionConfig,
    RetryPolicyConfig,
    compile_condition,
    validate_condition,
)
from cumulus_aws.clientconfig.parser import load_client_configurations, parse_client_configurations
from cumulus_aws.clientconfig.policy import CompiledRetryPolicy, compile_retry_policy

__all__ = [
    "ClientConfiguration",
    "HttpClientConfig",
    "RetryConditionConfig",
    "RetryPolicyConfig",
    "compile_condition",
    "validate_condition",
    "load_client_configurations",
    "parse_client_configurations",
    "CompiledRetryPolicy",
    "compile_retry_policy",
]
