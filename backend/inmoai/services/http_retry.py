"""
HTTP request helper with bounded retries and exponential backoff.

Any transport-level failure (connection refused, timeout, protocol error)
and any non-2xx status count as retryable. The delay starts at
``initial_backoff`` seconds and doubles after each failed attempt, so
``max_retries=3, initial_backoff=1.0`` means 4 attempts and waits of
1s, 2s and 4s between them.

Usage:
    async with httpx.AsyncClient() as client:
        response = await request_with_retry(
            client, "POST", url, max_retries=3, initial_backoff=1.0, json=payload
        )
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import structlog

logger = structlog.get_logger(__name__)

Sleeper = Callable[[float], Awaitable[None]]


async def request_with_retry(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    *,
    max_retries: int = 3,
    initial_backoff: float = 1.0,
    sleep: Sleeper = asyncio.sleep,
    **request_kwargs: Any,
) -> httpx.Response:
    """
    Send a request, retrying transient failures.

    Args:
        client:          Shared httpx client.
        method:          HTTP method, e.g. "POST".
        url:             Target URL.
        max_retries:     Retries after the first attempt (total attempts = max_retries + 1).
        initial_backoff: Seconds to wait before the first retry.
        sleep:           Awaitable sleep function (injectable for tests).
        **request_kwargs: Forwarded to ``client.request`` (json=, headers=, ...).

    Returns:
        The first response with a 2xx status.

    Raises:
        httpx.HTTPStatusError: The last attempt returned a non-2xx status.
        httpx.TransportError:  The last attempt failed at the network level.
    """
    backoff = initial_backoff
    retries_left = max_retries

    while True:
        try:
            response = await client.request(method, url, **request_kwargs)
            response.raise_for_status()
            return response
        except (httpx.TransportError, httpx.HTTPStatusError) as exc:
            if retries_left <= 0:
                logger.error("http_retry_exhausted", url=url, attempts=max_retries + 1, error=str(exc))
                raise
            logger.warning(
                "http_retry_scheduled",
                url=url,
                retries_left=retries_left,
                backoff_seconds=backoff,
                error=str(exc),
            )

        await sleep(backoff)
        retries_left -= 1
        backoff *= 2
