# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Process lifecycle of the notifier.

:class:`NotifierApp` owns the two process-wide clients (the SMTP session
and the HTTP session), the startup sequence and graceful shutdown:

1. Negotiate the SMTP transport; a failed negotiation is retried exactly
   once before startup is aborted.
2. Open the shared HTTP session.
3. Send a test notification so subscribers know alerts reach them.
4. Run the cron-scheduled notification job until SIGINT/SIGTERM.
5. Stop the scheduler and close both clients exactly once.

Example:
    Running the notifier::

        app = NotifierApp(load_settings())
        await app.run_forever()
"""

from __future__ import annotations

import asyncio
import signal
from email.message import EmailMessage
from pathlib import PurePosixPath
from typing import Awaitable, Callable

import aiohttp
import aiosmtplib
from yarl import URL

from .config import AppConfig
from .errors import (
    AllTransportsFailedError,
    NotifierError,
    ResourceAlreadyInitializedError,
    SessionClosedError,
)
from .fetch import BoundedFetcher, create_http_session
from .lifecycle import SharedResource
from .logger import get_logger
from .mail.message import build_screenshot_notification
from .remote import DataDumpClient, ScreenshotClient
from .scheduler import create_scheduler
from .smtp import SmtpSession, TransportNegotiator

logger = get_logger("app")

MessageBuilder = Callable[[str, list[str]], Awaitable[EmailMessage]]

NOTIFICATION_SUBJECT = "STN trading snapshot"


async def _close_http(session: aiohttp.ClientSession) -> None:
    await session.close()


async def _close_smtp(session: SmtpSession) -> None:
    await session.close()


class NotifierApp:
    """Wire configuration, clients and jobs together.

    Attributes:
        config: Immutable application configuration.
        negotiator: SMTP transport negotiator.
    """

    def __init__(
        self,
        config: AppConfig,
        negotiator: TransportNegotiator | None = None,
        http_session_factory: Callable[[float], aiohttp.ClientSession] = create_http_session,
    ):
        self.config = config
        self.negotiator = negotiator or TransportNegotiator()
        self._http_session_factory = http_session_factory
        self._smtp: SharedResource[SmtpSession] = SharedResource("SMTP session", closer=_close_smtp)
        self._http: SharedResource[aiohttp.ClientSession] = SharedResource("HTTP client", closer=_close_http)
        self._scheduler = None
        self._stop_event = asyncio.Event()

    # -------------------------------------------------------------------------
    # Shared clients
    # -------------------------------------------------------------------------

    @property
    def smtp_session(self) -> SmtpSession:
        if self._smtp.closed:
            raise SessionClosedError()
        return self._smtp.get()

    @property
    def fetcher(self) -> BoundedFetcher:
        return BoundedFetcher(self._http.get())

    async def connect_smtp(self) -> SmtpSession:
        """Negotiate the SMTP transport, retrying the full sequence once.

        Raises:
            ConfigInvalidError: SMTP settings are incomplete (not retried).
            AllTransportsFailedError: Both attempts failed.
            ResourceAlreadyInitializedError: Called more than once; nothing is
                negotiated.
        """
        if self._smtp.initialized or self._smtp.closed:
            raise ResourceAlreadyInitializedError(f"{self._smtp.name} is already initialized")
        transport = self.config.mail.transport_config()
        try:
            session = await self.negotiator.negotiate(transport)
        except AllTransportsFailedError as e:
            logger.warning("SMTP client initialisation failed (%s); retrying once", e)
            session = await self.negotiator.negotiate(transport)
        try:
            return self._smtp.set(session)
        except ResourceAlreadyInitializedError:
            await session.close()
            raise

    async def open_http(self) -> aiohttp.ClientSession:
        """Create the shared HTTP session. Raises if already open."""
        return self._http.set(self._http_session_factory(self.config.fetch.http_timeout))

    # -------------------------------------------------------------------------
    # Notifications
    # -------------------------------------------------------------------------

    async def deliver(self, build: MessageBuilder) -> bool:
        """Build and send one notification.

        Failures are logged and reported as ``False`` so one failed
        notification never stops the process.
        """
        mail = self.config.mail
        try:
            message = await build(mail.smtp_username, mail.smtp_send_to)
        except (NotifierError, ValueError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Cannot build email: %s", e)
            return False

        try:
            await self.smtp_session.send(message)
        except (NotifierError, aiosmtplib.SMTPException, OSError) as e:
            logger.error("Email delivery failed: %s", e)
            return False
        return True

    async def send_test_notification(self) -> bool:
        """Send the startup test email with the current screenshot."""

        async def build(sender: str, recipients: list[str]) -> EmailMessage:
            jpeg = await self.screenshot_client().capture()
            return build_screenshot_notification(sender, recipients, jpeg)

        return await self.deliver(build)

    async def send_notification(self) -> bool:
        """Scheduled job: screenshot plus, when configured, the latest data dump."""

        async def build(sender: str, recipients: list[str]) -> EmailMessage:
            jpeg = await self.screenshot_client().capture()
            message = build_screenshot_notification(
                sender,
                recipients,
                jpeg,
                subject=NOTIFICATION_SUBJECT,
                heading="Steam trading snapshot",
            )
            if self.config.fetch.data_dump_list_url:
                await self._attach_latest_dump(message)
            return message

        return await self.deliver(build)

    async def _attach_latest_dump(self, message: EmailMessage) -> None:
        """Attach the newest data dump; a failed dump never drops the screenshot mail."""
        try:
            latest = await DataDumpClient(self.fetcher, self.config.fetch).fetch_latest()
        except (NotifierError, aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error("Data dump unavailable, sending without attachment: %s", e)
            return
        if latest is not None:
            name, text = latest
            message.add_attachment(text, filename=_text_filename(name))

    def screenshot_client(self) -> ScreenshotClient:
        return ScreenshotClient(
            self.fetcher, self.config.browserless, self.config.fetch.screenshot_max_bytes
        )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self) -> None:
        """Run the startup sequence and start the scheduler."""
        await self.connect_smtp()
        await self.open_http()
        await self.send_test_notification()

        self._scheduler = create_scheduler(self.config.scheduler, self.send_notification)
        if self._scheduler is not None:
            self._scheduler.start()

    def request_stop(self) -> None:
        """Ask :meth:`run_forever` to shut down."""
        logger.info("Shutdown requested")
        self._stop_event.set()

    async def run_forever(self) -> None:
        """Start, wait for SIGINT/SIGTERM, then shut down gracefully."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop)
            except NotImplementedError:
                logger.debug("Signal handlers unavailable on this platform")
        try:
            await self.start()
            await self._stop_event.wait()
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        """Stop the scheduler and close both clients exactly once."""
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        await self._http.close()
        await self._smtp.close()
        logger.info("Notifier stopped")


def _text_filename(name: str) -> str:
    """Attachment name for an extracted dump, e.g. ``dump-0412.zip`` -> ``dump-0412.txt``."""
    stem = PurePosixPath(URL(name).path).stem or "data"
    return f"{stem}.txt"
