"""Tests for the notifier process lifecycle."""

import asyncio
import io
import re
import zipfile
from unittest.mock import AsyncMock, MagicMock

import aiosmtplib
import pytest
from aioresponses import aioresponses

from stn_notifier.app import NotifierApp, _text_filename
from stn_notifier.config import AppConfig, BrowserlessConfig, FetchConfig, MailConfig
from stn_notifier.errors import (
    AllTransportsFailedError,
    ConfigInvalidError,
    ResourceAlreadyInitializedError,
    ResourceNotInitializedError,
    SessionClosedError,
    UpstreamError,
)

JPEG = b"\xff\xd8\xff\xe0snapshot"
SCREENSHOT_ENDPOINT = "https://chrome.example.com/screenshot"
SCREENSHOT_PATTERN = re.compile(r"^https://chrome\.example\.com/screenshot.*$")
LIST_URL = "https://data.example.com/dumps/list"


def make_config(**fetch_overrides) -> AppConfig:
    return AppConfig(
        mail=MailConfig(
            smtp_host="smtp.example.com",
            smtp_username="bot@example.com",
            smtp_password="secret",
            smtp_send_to=["alice@example.com", "bob@example.com"],
        ),
        browserless=BrowserlessConfig(token="t0k", endpoint=SCREENSHOT_ENDPOINT),
        fetch=FetchConfig(**fetch_overrides),
    )


def make_session():
    session = MagicMock()
    session.send = AsyncMock(return_value="250 OK")
    session.close = AsyncMock()
    return session


def make_negotiator(*outcomes):
    negotiator = MagicMock()
    negotiator.negotiate = AsyncMock(side_effect=list(outcomes))
    return negotiator


def failure():
    return AllTransportsFailedError("smtp.example.com", ["TLS@465", "STARTTLS@587"])


def make_zip(name: str, data: bytes) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(name, data)
    return buffer.getvalue()


class TestConnectSmtp:
    """SMTP initialisation is retried exactly once."""

    @pytest.mark.asyncio
    async def test_success_first_try(self):
        session = make_session()
        negotiator = make_negotiator(session)
        app = NotifierApp(make_config(), negotiator=negotiator)

        assert await app.connect_smtp() is session
        assert app.smtp_session is session
        assert negotiator.negotiate.await_count == 1

    @pytest.mark.asyncio
    async def test_retry_once_then_succeed(self):
        session = make_session()
        negotiator = make_negotiator(failure(), session)
        app = NotifierApp(make_config(), negotiator=negotiator)

        assert await app.connect_smtp() is session
        assert negotiator.negotiate.await_count == 2

    @pytest.mark.asyncio
    async def test_second_failure_is_fatal(self):
        negotiator = make_negotiator(failure(), failure(), make_session())
        app = NotifierApp(make_config(), negotiator=negotiator)

        with pytest.raises(AllTransportsFailedError):
            await app.connect_smtp()

        assert negotiator.negotiate.await_count == 2
        with pytest.raises(ResourceNotInitializedError):
            app.smtp_session

    @pytest.mark.asyncio
    async def test_config_errors_are_not_retried(self):
        negotiator = make_negotiator(ConfigInvalidError("password missing"))
        app = NotifierApp(make_config(), negotiator=negotiator)

        with pytest.raises(ConfigInvalidError):
            await app.connect_smtp()

        assert negotiator.negotiate.await_count == 1

    @pytest.mark.asyncio
    async def test_double_initialisation_fails(self):
        """A second call fails before opening another SMTP connection."""
        spare = make_session()
        negotiator = make_negotiator(make_session(), spare)
        app = NotifierApp(make_config(), negotiator=negotiator)
        await app.connect_smtp()

        with pytest.raises(ResourceAlreadyInitializedError):
            await app.connect_smtp()

        assert negotiator.negotiate.await_count == 1
        spare.close.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_reconnect_after_shutdown_fails(self):
        negotiator = make_negotiator(make_session(), make_session())
        app = NotifierApp(make_config(), negotiator=negotiator)
        await app.connect_smtp()
        await app.shutdown()

        with pytest.raises(ResourceAlreadyInitializedError):
            await app.connect_smtp()

        assert negotiator.negotiate.await_count == 1

    @pytest.mark.asyncio
    async def test_session_stored_concurrently_is_closed(self):
        """If another caller stored a session during negotiation, ours is closed."""
        ours = make_session()
        app = NotifierApp(make_config())

        async def negotiate(_transport):
            app._smtp.set(make_session())
            return ours

        app.negotiator = MagicMock()
        app.negotiator.negotiate = AsyncMock(side_effect=negotiate)

        with pytest.raises(ResourceAlreadyInitializedError):
            await app.connect_smtp()

        ours.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_send_after_shutdown_reports_closed_session(self):
        app = NotifierApp(make_config(), negotiator=make_negotiator(make_session()))
        await app.connect_smtp()
        await app.shutdown()

        with pytest.raises(SessionClosedError):
            await app.smtp_session.send(MagicMock())

    def test_session_before_connect_is_not_initialized(self):
        app = NotifierApp(make_config())

        with pytest.raises(ResourceNotInitializedError):
            app.smtp_session


class TestDeliver:
    """A failed notification is logged, never raised."""

    @pytest.mark.asyncio
    async def test_build_failure(self):
        session = make_session()
        app = NotifierApp(make_config(), negotiator=make_negotiator(session))
        await app.connect_smtp()

        build = AsyncMock(side_effect=UpstreamError(502, SCREENSHOT_ENDPOINT))

        assert await app.deliver(build) is False
        session.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_failure(self):
        session = make_session()
        session.send.side_effect = aiosmtplib.SMTPRecipientsRefused([])
        app = NotifierApp(make_config(), negotiator=make_negotiator(session))
        await app.connect_smtp()

        assert await app.deliver(AsyncMock(return_value=MagicMock())) is False

    @pytest.mark.asyncio
    async def test_success(self):
        session = make_session()
        app = NotifierApp(make_config(), negotiator=make_negotiator(session))
        await app.connect_smtp()
        build = AsyncMock(return_value=MagicMock())

        assert await app.deliver(build) is True
        build.assert_awaited_once_with("bot@example.com", ["alice@example.com", "bob@example.com"])


class TestNotifications:
    """End-to-end message assembly with mocked HTTP."""

    @pytest.mark.asyncio
    async def test_test_notification_embeds_screenshot(self):
        session = make_session()
        app = NotifierApp(make_config(), negotiator=make_negotiator(session))
        await app.connect_smtp()
        await app.open_http()

        try:
            with aioresponses() as m:
                m.post(SCREENSHOT_PATTERN, status=200, body=JPEG)
                assert await app.send_test_notification() is True
        finally:
            await app.shutdown()

        message = session.send.await_args.args[0]
        image = message.get_payload()[1].get_payload()[1]
        assert image.get_content() == JPEG

    @pytest.mark.asyncio
    async def test_oversized_screenshot_is_not_sent(self):
        session = make_session()
        app = NotifierApp(make_config(screenshot_max_bytes=4), negotiator=make_negotiator(session))
        await app.connect_smtp()
        await app.open_http()

        try:
            with aioresponses() as m:
                m.post(SCREENSHOT_PATTERN, status=200, body=JPEG)
                assert await app.send_test_notification() is False
        finally:
            await app.shutdown()

        session.send.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_scheduled_notification_attaches_latest_dump(self):
        session = make_session()
        app = NotifierApp(make_config(data_dump_list_url=LIST_URL), negotiator=make_negotiator(session))
        await app.connect_smtp()
        await app.open_http()

        try:
            with aioresponses() as m:
                m.post(SCREENSHOT_PATTERN, status=200, body=JPEG)
                m.get(LIST_URL, status=200, payload={"success": True, "files": ["dump-0411.zip", "dump-0412.zip"]})
                m.get(
                    "https://data.example.com/dumps/dump-0412.zip",
                    status=200,
                    body=make_zip("dump.txt", b"awp,1520.00\n"),
                )
                assert await app.send_notification() is True
        finally:
            await app.shutdown()

        message = session.send.await_args.args[0]
        attachments = list(message.iter_attachments())
        assert len(attachments) == 1
        assert attachments[0].get_filename() == "dump-0412.txt"
        assert attachments[0].get_content() == "awp,1520.00\n"

    @pytest.mark.asyncio
    async def test_unavailable_dump_still_sends_screenshot(self):
        """A failing data dump listing drops only the attachment."""
        session = make_session()
        app = NotifierApp(make_config(data_dump_list_url=LIST_URL), negotiator=make_negotiator(session))
        await app.connect_smtp()
        await app.open_http()

        try:
            with aioresponses() as m:
                m.post(SCREENSHOT_PATTERN, status=200, body=JPEG)
                m.get(LIST_URL, status=503)
                assert await app.send_notification() is True
        finally:
            await app.shutdown()

        session.send.assert_awaited_once()
        message = session.send.await_args.args[0]
        assert list(message.iter_attachments()) == []
        image = message.get_payload()[1].get_payload()[1]
        assert image.get_content() == JPEG

    @pytest.mark.asyncio
    async def test_invalid_dump_archive_still_sends_screenshot(self):
        session = make_session()
        app = NotifierApp(make_config(data_dump_list_url=LIST_URL), negotiator=make_negotiator(session))
        await app.connect_smtp()
        await app.open_http()

        try:
            with aioresponses() as m:
                m.post(SCREENSHOT_PATTERN, status=200, body=JPEG)
                m.get(LIST_URL, status=200, payload={"success": True, "files": ["dump-0412.zip"]})
                m.get("https://data.example.com/dumps/dump-0412.zip", status=200, body=b"not a zip")
                assert await app.send_notification() is True
        finally:
            await app.shutdown()

        session.send.assert_awaited_once()


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_shutdown_closes_each_client_once(self):
        session = make_session()
        http = MagicMock()
        http.close = AsyncMock()
        app = NotifierApp(make_config(), negotiator=make_negotiator(session), http_session_factory=lambda _: http)
        await app.connect_smtp()
        await app.open_http()

        await app.shutdown()
        await app.shutdown()

        session.close.assert_awaited_once()
        http.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_http_factory_receives_timeout(self):
        factory = MagicMock()
        app = NotifierApp(make_config(http_timeout=12), http_session_factory=factory)

        await app.open_http()

        factory.assert_called_once_with(12)

    @pytest.mark.asyncio
    async def test_run_forever_stops_on_request(self):
        app = NotifierApp(make_config())
        app.start = AsyncMock()
        app.shutdown = AsyncMock()

        asyncio.get_running_loop().call_later(0.05, app.request_stop)
        await asyncio.wait_for(app.run_forever(), timeout=5)

        app.start.assert_awaited_once()
        app.shutdown.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_forever_shuts_down_when_start_fails(self):
        app = NotifierApp(make_config())
        app.start = AsyncMock(side_effect=failure())
        app.shutdown = AsyncMock()

        with pytest.raises(AllTransportsFailedError):
            await app.run_forever()

        app.shutdown.assert_awaited_once()


@pytest.mark.parametrize(
    "name,expected",
    [
        ("dump-0412.zip", "dump-0412.txt"),
        ("archive/2024/dump.zip", "dump.txt"),
        ("", "data.txt"),
    ],
)
def test_text_filename(name, expected):
    assert _text_filename(name) == expected
