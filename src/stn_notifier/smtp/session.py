# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Shared authenticated SMTP session.

A :class:`SmtpSession` is only produced by a successful transport
negotiation. It is shared by every sender in the process; sends are
serialised by an internal lock because a single SMTP connection carries one
transaction at a time. If the server drops the idle connection, the next
send reconnects with the same variant and credentials.
"""

from __future__ import annotations

import asyncio
from email.message import EmailMessage

import aiosmtplib

from ..errors import SessionClosedError
from ..logger import get_logger
from .transport import TransportVariant

logger = get_logger("smtp.session")


class SmtpSession:
    """Verified SMTP connection handle.

    Attributes:
        host: Server hostname.
        port: Server port the session was established on.
        variant: Transport variant that succeeded.
    """

    def __init__(self, client: aiosmtplib.SMTP, host: str, port: int, variant: TransportVariant):
        self._client = client
        self.host = host
        self.port = port
        self.variant = variant
        self._lock = asyncio.Lock()
        self._closed = False

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<SmtpSession {self.host}:{self.port} {self.variant.label} {state}>"

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, message: EmailMessage) -> str:
        """Send ``message``; envelope recipients come from To/Cc/Bcc.

        Returns:
            The server's reply text to the DATA command.

        Raises:
            SessionClosedError: The session has been closed.
            aiosmtplib.SMTPException: The server rejected the message.
        """
        if self._closed:
            raise SessionClosedError()
        async with self._lock:
            if self._closed:
                raise SessionClosedError()
            if not self._client.is_connected:
                logger.info("Reconnecting to SMTP server %s:%d (%s)", self.host, self.port, self.variant.label)
                await self._client.connect()
            rejected, response = await self._client.send_message(message)

        for address, (code, text) in rejected.items():
            logger.error("Recipient %s rejected: %d %s", address, code, text)
        logger.info("Mail server replied: %s", response)
        return response

    async def close(self) -> None:
        """Close the session. Using it afterwards raises :class:`SessionClosedError`."""
        if self._closed:
            raise SessionClosedError("SMTP session already closed")
        async with self._lock:
            self._closed = True
            if not self._client.is_connected:
                return
            try:
                await self._client.quit()
            except aiosmtplib.SMTPException as e:
                logger.warning("SMTP QUIT failed, dropping connection: %s", e)
                self._client.close()
        logger.info("SMTP session with %s:%d closed", self.host, self.port)

