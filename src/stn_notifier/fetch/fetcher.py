# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Bounded HTTP fetches over a shared aiohttp session.

Each call runs three strictly ordered steps:

1. Issue the request and reject non-success statuses before touching the
   body.
2. Stream the body through :func:`~stn_notifier.fetch.limits.read_limited`.
3. In archive mode, extract the single archive entry as text off the event
   loop.

No retries happen here; failures propagate to the caller unchanged.

Example:
    Fetching a screenshot and a data dump::

        session = create_http_session(timeout=30)
        fetcher = BoundedFetcher(session)

        jpeg = await fetcher.fetch_bytes(
            FetchRequest(url, method="POST", json=payload), limit=1024 * 1024
        )
        text = await fetcher.fetch_archive_text(
            FetchRequest(dump_url), limit=10 * 1024 * 1024,
            max_uncompressed=30 * 1024 * 1024,
        )
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import aiohttp
from yarl import URL

from ..errors import UpstreamError
from ..logger import get_logger
from .archive import extract_text
from .limits import read_limited

logger = get_logger("fetch")

STREAM_CHUNK_SIZE = 64 * 1024
DEFAULT_HTTP_TIMEOUT = 30


@dataclass(frozen=True)
class FetchRequest:
    """Description of one outbound call.

    Attributes:
        url: Absolute request URL.
        method: HTTP method, ``GET`` or ``POST``.
        json: Optional JSON body.
        params: Optional query parameters, kept out of logs.
        headers: Optional extra request headers.
    """

    url: str
    method: str = "GET"
    json: Any = None
    params: dict[str, str] | None = None
    headers: dict[str, str] | None = None

    @property
    def display_url(self) -> str:
        """URL without query string, safe to log."""
        return str(URL(self.url).with_query(None))


def create_http_session(timeout: float = DEFAULT_HTTP_TIMEOUT) -> aiohttp.ClientSession:
    """Create the process-wide HTTP session.

    Bodies are transparently decompressed (gzip/deflate) by aiohttp; size
    limits apply to the decompressed stream.
    """
    return aiohttp.ClientSession(
        timeout=aiohttp.ClientTimeout(total=timeout),
        auto_decompress=True,
    )


class BoundedFetcher:
    """Issue requests and return size-bounded payloads.

    Attributes:
        session: The shared ``aiohttp.ClientSession``.
    """

    def __init__(self, session: aiohttp.ClientSession):
        self.session = session

    async def fetch_bytes(self, request: FetchRequest, limit: int) -> bytes:
        """Return the raw response body, at most ``limit`` bytes.

        Raises:
            UpstreamError: The response status is not a success.
            DeclaredSizeExceededError: ``Content-Length`` exceeds ``limit``.
            ActualSizeExceededError: The body grew past ``limit``.
            aiohttp.ClientError: Transport-level failures.
        """
        logger.debug("%s %s (limit=%d bytes)", request.method, request.display_url, limit)
        async with self.session.request(
            request.method,
            request.url,
            json=request.json,
            params=request.params,
            headers=request.headers,
        ) as response:
            if not response.ok:
                logger.warning(
                    "%s %s failed with HTTP %d", request.method, request.display_url, response.status
                )
                raise UpstreamError(response.status, request.display_url, response.reason)

            body = await read_limited(
                response.content.iter_chunked(STREAM_CHUNK_SIZE),
                limit,
                declared_size=response.content_length,
            )

        logger.info("Fetched %d bytes from %s", len(body), request.display_url)
        return body

    async def fetch_archive_text(
        self, request: FetchRequest, limit: int, max_uncompressed: int
    ) -> str:
        """Return the text of the single entry of the archive at ``request``.

        The compressed body is bounded by ``limit`` and the extracted entry
        by ``max_uncompressed``.

        Raises:
            UpstreamError, DeclaredSizeExceededError, ActualSizeExceededError:
                As for :meth:`fetch_bytes`.
            InvalidArchiveError: The body is not a readable archive.
            EmptyArchiveError: The archive has no entries.
            UncompressedSizeExceededError: The entry is too large.
        """
        raw = await self.fetch_bytes(request, limit)
        text = await extract_text(raw, max_uncompressed)
        logger.info(
            "Extracted %d characters from archive at %s", len(text), request.display_url
        )
        return text
