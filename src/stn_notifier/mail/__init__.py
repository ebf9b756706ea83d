# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Notification email construction."""

from .message import (
    SCREENSHOT_CID,
    InlineImage,
    build_message,
    build_screenshot_notification,
    parse_address,
    parse_recipients,
)

__all__ = [
    "SCREENSHOT_CID",
    "InlineImage",
    "build_message",
    "build_screenshot_notification",
    "parse_address",
    "parse_recipients",
]
