"""Compile a retry policy and install it on boto3 clients."""

from dataclasses import dataclass, field
from typing import Any, List, Optional

from botocore.retries import quota, standard

from cumulus_aws.clientconfig.conditions import (
    AndRetryChecker,
    MaxRetriesChecker,
    TokenBucketChecker,
    iter_token_buckets,
)
from cumulus_aws.clientconfig.models import RetryPolicyConfig
from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)

# Retries allowed when a custom condition is combined with the default limit
DEFAULT_RETRY_COUNT = 3
DEFAULT_MAX_BACKOFF = 20


class CapacityQuotaChecker:
    """Adapts a compiled capacity condition to botocore's retry quota interface."""

    def __init__(self, checker):
        self._checker = checker

    def acquire_retry_quota(self, context) -> bool:
        return self._checker.is_retryable(context)

    def release_retry_quota(self, context, http_response, **kwargs):
        for bucket in iter_token_buckets(self._checker):
            bucket.release(context, http_response)


@dataclass
class CompiledRetryPolicy:
    """Runtime pieces of a retry policy, ready to be installed on clients."""

    retry_checker: Any
    capacity_checker: Any
    max_backoff: float = DEFAULT_MAX_BACKOFF
    token_buckets: List[TokenBucketChecker] = field(default_factory=list)

    def build_handler(self) -> standard.RetryHandler:
        return standard.RetryHandler(
            retry_policy=standard.RetryPolicy(
                retry_checker=self.retry_checker,
                retry_backoff=standard.ExponentialBackoff(max_backoff=self.max_backoff),
            ),
            retry_event_adapter=standard.RetryEventAdapter(),
            retry_quota=self.capacity_checker,
        )

    def release(self, context, http_response, **kwargs):
        """after-call hook returning tokens consumed by a retried request that succeeded."""
        self.capacity_checker.release_retry_quota(context, http_response)
        for bucket in self.token_buckets:
            bucket.release(context, http_response)

    def install(self, client) -> standard.RetryHandler:
        """Replace the client's retry handler with one built from this policy.

        Args:
            client: A boto3 client created in standard retry mode

        Returns:
            The installed RetryHandler
        """
        service_event_name = client.meta.service_model.service_id.hyphenize()
        unique_id = f"retry-config-{service_event_name}"
        release_id = f"cumulus-retry-release-{service_event_name}"
        handler = self.build_handler()

        client.meta.events.unregister(f"needs-retry.{service_event_name}", unique_id=unique_id)
        client.meta.events.register(
            f"needs-retry.{service_event_name}", handler.needs_retry, unique_id=unique_id
        )
        client.meta.events.unregister(f"after-call.{service_event_name}", unique_id=release_id)
        client.meta.events.register(
            f"after-call.{service_event_name}", self.release, unique_id=release_id
        )
        logger.debug(f"Installed retry policy on {service_event_name} client")
        return handler


def compile_retry_policy(policy: Optional[RetryPolicyConfig]) -> CompiledRetryPolicy:
    """Validate a retry policy and compile it into runtime checkers.

    Without a retry-condition the standard botocore conditions apply, limited
    to retry-count retries. A custom retry-condition is combined with the
    retry-count limit unless additional-retry-conditions-allowed is false.
    Without a capacity-retry-condition botocore's default retry quota applies.
    """
    policy = policy or RetryPolicyConfig()
    policy.check()

    retry_count = policy.retry_count if policy.retry_count is not None else DEFAULT_RETRY_COUNT

    if policy.retry_condition is None:
        retry_checker = standard.StandardRetryConditions(max_attempts=retry_count + 1)
    else:
        custom = policy.retry_condition.to_condition().to_checker()
        if policy.additional_retry_conditions_allowed:
            retry_checker = AndRetryChecker([MaxRetriesChecker(retry_count), custom])
        else:
            retry_checker = custom

    if policy.capacity_retry_condition is None:
        capacity_checker = standard.RetryQuotaChecker(quota.RetryQuota())
    else:
        capacity_checker = CapacityQuotaChecker(policy.capacity_retry_condition.to_condition().to_checker())

    return CompiledRetryPolicy(
        retry_checker=retry_checker,
        capacity_checker=capacity_checker,
        max_backoff=policy.max_backoff if policy.max_backoff is not None else DEFAULT_MAX_BACKOFF,
        token_buckets=list(iter_token_buckets(retry_checker)),
    )
