# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Bounded network ingestion.

- read_limited: Enforce declared and observed size limits on a byte stream
- extract_single_entry / extract_text: Bounded single-entry ZIP extraction
- BoundedFetcher: HTTP fetch in raw-bytes or archive-text mode
"""

from .archive import extract_single_entry, extract_text
from .fetcher import BoundedFetcher, FetchRequest, create_http_session
from .limits import SizeBudget, read_limited

__all__ = [
    "BoundedFetcher",
    "FetchRequest",
    "SizeBudget",
    "create_http_session",
    "extract_single_entry",
    "extract_text",
    "read_limited",
]
