# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Clients for the remote services the notifier watches.

- ScreenshotClient: Renders the trading board through browserless and
  returns the JPEG bytes (raw-bytes mode).
- DataDumpClient: Lists the published data dumps and downloads the newest
  one as text (archive-text mode).
"""

from __future__ import annotations

from pydantic import BaseModel, ValidationError
from yarl import URL

from .config import BrowserlessConfig, FetchConfig
from .errors import ConfigInvalidError, UpstreamError
from .fetch import BoundedFetcher, FetchRequest
from .logger import get_logger

logger = get_logger("remote")

# Listings are small JSON documents
LISTING_MAX_BYTES = 256 * 1024


class DataDumpList(BaseModel):
    """Listing of the available data dump archives."""

    files: list[str] = []
    success: bool = False


class ScreenshotClient:
    """Capture the trading board page as a JPEG."""

    def __init__(self, fetcher: BoundedFetcher, browserless: BrowserlessConfig, max_bytes: int):
        self.fetcher = fetcher
        self.browserless = browserless
        self.max_bytes = max_bytes

    def build_request(self) -> FetchRequest:
        if not self.browserless.token:
            raise ConfigInvalidError("browserless token is required to capture screenshots")
        payload = {
            "waitForSelector": {"hidden": True, "selector": ".ant-spin"},
            "url": self.browserless.target_url,
            "options": {"type": "jpeg", "fullPage": True, "encoding": "binary"},
        }
        return FetchRequest(
            self.browserless.endpoint,
            method="POST",
            json=payload,
            params={"token": self.browserless.token},
        )

    async def capture(self) -> bytes:
        """Return the screenshot bytes, bounded by ``max_bytes``."""
        return await self.fetcher.fetch_bytes(self.build_request(), self.max_bytes)


class DataDumpClient:
    """Download published data dumps."""

    def __init__(self, fetcher: BoundedFetcher, fetch_config: FetchConfig):
        if not fetch_config.data_dump_list_url:
            raise ConfigInvalidError("[fetch] data_dump_list_url is not configured")
        self.fetcher = fetcher
        self.list_url = fetch_config.data_dump_list_url
        self.max_bytes = fetch_config.archive_max_bytes
        self.max_uncompressed = fetch_config.archive_max_uncompressed_bytes

    async def list_files(self) -> DataDumpList:
        """Fetch and validate the dump listing.

        Raises:
            UpstreamError: The listing is malformed or reports failure.
        """
        body = await self.fetcher.fetch_bytes(FetchRequest(self.list_url), LISTING_MAX_BYTES)
        try:
            listing = DataDumpList.model_validate_json(body)
        except ValidationError as e:
            raise UpstreamError(200, self.list_url, f"malformed listing: {e.error_count()} errors") from e
        if not listing.success:
            raise UpstreamError(200, self.list_url, "listing reported failure")
        logger.debug("Data dump listing has %d files", len(listing.files))
        return listing

    def resolve(self, name: str) -> str:
        """Resolve a listed file name against the listing URL."""
        return str(URL(self.list_url).join(URL(name)))

    async def fetch_latest(self) -> tuple[str, str] | None:
        """Return ``(file name, text)`` of the newest dump, or None if none is listed."""
        listing = await self.list_files()
        if not listing.files:
            logger.info("No data dump published yet")
            return None
        name = listing.files[-1]
        text = await self.fetcher.fetch_archive_text(
            FetchRequest(self.resolve(name)), self.max_bytes, self.max_uncompressed
        )
        return name, text
