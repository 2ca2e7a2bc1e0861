"""Blocking status polling shared by provider clients."""

from __future__ import annotations

from collections.abc import Callable

from loguru import logger
from tenacity import (
    RetryError,
    retry,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from otcmachine.constants import DEFAULT_WAIT_TIMEOUT, WAIT_INTERVAL
from otcmachine.exceptions import ProviderError, WaitTimeoutError


class _StatusPendingError(Exception):
    """Status not reached yet - retry."""


def wait_for_status(
    poll_fn: Callable[[], str],
    expected: str,
    *,
    failed: frozenset[str] = frozenset(),
    timeout: float = DEFAULT_WAIT_TIMEOUT,
    interval: float = WAIT_INTERVAL,
    description: str = "resource",
) -> None:
    """Poll until poll_fn returns the expected status.

    Any exception raised by poll_fn (for example MissingResourceError once
    a resource is gone) propagates immediately and is not retried.

    Args:
        poll_fn: Returns the current status string.
        expected: Status to wait for.
        failed: Terminal statuses that abort the wait.
        timeout: Maximum time to wait in seconds.
        interval: Time between polls in seconds.
        description: Description for log and error messages.

    Raises:
        WaitTimeoutError: If timeout is exceeded.
        ProviderError: If the resource reaches a failed status.
    """

    @retry(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_exception_type(_StatusPendingError),
    )
    def _check() -> None:
        status = poll_fn()
        if status == expected:
            return
        if status in failed:
            raise ProviderError(f"{description} reached status {status} while waiting for {expected}")
        logger.debug(f"{description}: status {status!r}, waiting for {expected!r}")
        raise _StatusPendingError()

    try:
        _check()
    except RetryError as e:
        raise WaitTimeoutError(
            f"Timeout waiting for {description} to become {expected} after {timeout:.0f}s"
        ) from e


def wait_until_gone(
    poll_fn: Callable[[], object],
    *,
    timeout: float = DEFAULT_WAIT_TIMEOUT,
    interval: float = WAIT_INTERVAL,
    description: str = "resource",
    gone: type[Exception],
) -> None:
    """Poll until poll_fn raises ``gone``, signalling the resource was deleted."""

    @retry(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=retry_if_exception_type(_StatusPendingError),
    )
    def _check() -> None:
        try:
            poll_fn()
        except gone:
            return
        raise _StatusPendingError()

    try:
        _check()
    except RetryError as e:
        raise WaitTimeoutError(f"{description} still present after {timeout:.0f}s") from e
