"""Retry utilities with exponential backoff for HTTP requests."""

import logging

import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

logger = structlog.get_logger(__name__)


def is_transient_http_error(exc: BaseException) -> bool:
    """Connection problems, timeouts, 429 and 5xx are worth retrying.

    Other 4xx responses will not change on a second attempt.
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or status >= 500
    return isinstance(exc, (httpx.TransportError, httpx.TimeoutException))


# Reusable retry decorator for HTTP requests (httpx)
http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=30),
    retry=retry_if_exception(is_transient_http_error),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)


# More patient retry for outbound email delivery
delivery_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception(is_transient_http_error),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
