# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Notification email construction.

Recipients are always placed in ``Bcc`` so subscribers do not see each
other. An address that fails to parse is logged and skipped; it never blocks
delivery to the remaining recipients.

HTML notifications are laid out as::

    multipart/alternative
    ├── text/plain        (fallback for clients without HTML)
    └── multipart/related
        ├── text/html     (references images as cid:<name>)
        └── image/*       (inline)
"""

from __future__ import annotations

from dataclasses import dataclass
from email.headerregistry import Address
from email.message import EmailMessage
from email.utils import make_msgid, parseaddr
from typing import Iterable

from ..errors import NoRecipientsError
from ..logger import get_logger

logger = get_logger("mail")

SCREENSHOT_CID = "screenshot"

TEST_SUBJECT = "STN email notification test"
FALLBACK_TEXT = (
    "Your mail client cannot display HTML messages. "
    "Please check its security settings or switch to a more modern client."
)
SCREENSHOT_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
</head>
<body>
    <div style="display: flex; flex-direction: column; align-items: center;">
        <h1 style="font-family: Arial, Helvetica, sans-serif;">{heading}</h1>
        <p>Current Steam trading snapshot:</p>
        <img src="cid:{cid}" alt="Screenshot of the Steam trading board; if it does not show, check your mail client's image settings">
    </div>
</body>
</html>"""


@dataclass(frozen=True)
class InlineImage:
    """Image embedded in the HTML body and referenced by ``cid:<cid>``."""

    cid: str
    data: bytes
    maintype: str = "image"
    subtype: str = "jpeg"


def parse_address(raw: str) -> Address:
    """Parse ``"Name <user@host>"`` or ``"user@host"`` into an Address.

    Raises:
        ValueError: If ``raw`` is not a single valid address.
    """
    name, addr = parseaddr(raw)
    username, _, domain = addr.rpartition("@")
    if not username or not domain or any(c.isspace() for c in addr):
        raise ValueError(f"Invalid email address: {raw!r}")
    return Address(display_name=name, username=username, domain=domain)


def parse_recipients(addresses: Iterable[str]) -> list[Address]:
    """Parse every recipient, skipping (and logging) the invalid ones."""
    recipients: list[Address] = []
    for raw in addresses:
        try:
            recipients.append(parse_address(raw))
        except ValueError as e:
            logger.error("Cannot parse recipient %r: %s", raw, e)
    return recipients


def build_message(
    sender: str,
    recipients: Iterable[str],
    subject: str,
    text: str,
    html: str | None = None,
    inline_images: Iterable[InlineImage] = (),
) -> EmailMessage:
    """Build a notification message.

    Args:
        sender: From address; must parse.
        recipients: Raw recipient addresses; invalid ones are skipped.
        subject: Subject line.
        text: Plain text body, or the fallback when ``html`` is given.
        html: Optional HTML body.
        inline_images: Images related to the HTML body.

    Raises:
        ValueError: The sender address is invalid.
        NoRecipientsError: No recipient address could be parsed.
    """
    from_address = parse_address(sender)
    bcc = parse_recipients(recipients)
    if not bcc:
        raise NoRecipientsError()

    msg = EmailMessage()
    msg["From"] = from_address
    msg["Bcc"] = bcc
    msg["Subject"] = subject
    msg["Message-ID"] = make_msgid(domain=from_address.domain)
    msg.set_content(text)

    if html is not None:
        msg.add_alternative(html, subtype="html")
        html_part = msg.get_payload()[1]
        for image in inline_images:
            html_part.add_related(
                image.data,
                maintype=image.maintype,
                subtype=image.subtype,
                cid=f"<{image.cid}>",
            )

    logger.info("Message addressed to: %s", ", ".join(str(addr) for addr in bcc))
    return msg


def build_screenshot_notification(
    sender: str,
    recipients: Iterable[str],
    jpeg: bytes,
    subject: str = TEST_SUBJECT,
    heading: str = "This message checks that you can receive STN notifications",
) -> EmailMessage:
    """Build the HTML notification carrying the trading board screenshot."""
    html = SCREENSHOT_HTML.format(title=subject, heading=heading, cid=SCREENSHOT_CID)
    return build_message(
        sender,
        recipients,
        subject,
        FALLBACK_TEXT,
        html=html,
        inline_images=[InlineImage(SCREENSHOT_CID, jpeg)],
    )
