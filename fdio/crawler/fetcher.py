"""Request executor: a single bounded HTTP GET, no retries."""

from __future__ import annotations

import logging
import time
from typing import Callable, Mapping, Optional

import httpx

from fdio.config import CrawlConfig
from fdio.crawler.errors import TransportError
from fdio.crawler.models import FetchResponse

logger = logging.getLogger(__name__)


def fetch(
    url: str,
    headers: Optional[Mapping[str, str]] = None,
    *,
    config: Optional[CrawlConfig] = None,
    clock: Callable[[], float] = time.monotonic,
) -> FetchResponse:
    """GET *url* once and return the body, headers and status.

    Status codes are not judged here; a 403 from a rate-limited search still
    comes back as a :class:`FetchResponse` and the caller decides what the
    body means.

    The body is streamed so that ``config.request_timeout`` bounds the whole
    transfer, not just each read.

    Args:
        url: Absolute URL to fetch.
        headers: Optional request headers, forwarded verbatim.
        config: Supplies the connect and transfer timeouts.
        clock: Monotonic time source used for the transfer deadline.

    Raises:
        TransportError: On timeout (``kind="timeout"``) or any other
            connection-level failure (``kind="connection"``).
    """
    config = config or CrawlConfig()
    timeout = httpx.Timeout(config.request_timeout, connect=config.connect_timeout)

    logger.debug("GET %s", url)
    deadline = clock() + config.request_timeout
    try:
        with httpx.Client(
            headers=dict(headers) if headers else None,
            timeout=timeout,
            follow_redirects=True,
        ) as client:
            with client.stream("GET", url) as response:
                chunks = []
                for chunk in response.iter_bytes():
                    chunks.append(chunk)
                    if clock() > deadline:
                        raise TransportError(
                            f"transfer exceeded {config.request_timeout:g}s",
                            kind="timeout",
                            url=url,
                        )
                body = b"".join(chunks)
    except httpx.TimeoutException as exc:
        raise TransportError(f"request timed out: {exc}", kind="timeout", url=url) from exc
    except httpx.HTTPError as exc:
        raise TransportError(f"request failed: {exc}", kind="connection", url=url) from exc

    return FetchResponse(
        url=url,
        status_code=response.status_code,
        body=body,
        headers=response.headers,
        links=response.links,
    )
