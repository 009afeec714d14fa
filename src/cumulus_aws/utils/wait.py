"""Bounded poll loops for eventually-consistent operations."""

import time
from typing import Callable

from cumulus_aws.constants import DEFAULT_WAIT_INTERVAL, DEFAULT_WAIT_TIMEOUT
from cumulus_aws.utils.errors import WaitTimeoutError
from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)


def wait_until(
    check: Callable[[], bool],
    operation: str,
    timeout: float = DEFAULT_WAIT_TIMEOUT,
    interval: float = DEFAULT_WAIT_INTERVAL,
) -> None:
    """Block until check() returns True or the timeout elapses.

    The check is evaluated immediately, then once per interval. Exceptions
    raised by check propagate to the caller unchanged.

    Args:
        check: Zero-argument callable returning True once the target status is observed
        operation: Description of what is being waited for, used in logs and errors
        timeout: Maximum number of seconds to wait
        interval: Seconds to sleep between checks

    Raises:
        WaitTimeoutError: If the target status is not observed within timeout
    """
    start_time = time.monotonic()
    attempts = 0
    while True:
        attempts += 1
        if check():
            logger.debug(f"Observed {operation} after {attempts} check(s)")
            return
        if time.monotonic() - start_time >= timeout:
            raise WaitTimeoutError(operation, timeout)
        time.sleep(interval)
