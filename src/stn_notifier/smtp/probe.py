# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Single-variant SMTP connectivity probe.

A probe connects with one transport variant, authenticates, and confirms
the session with a NOOP. It never sends mail. An open socket alone is not
success: the server has to accept the login and answer the NOOP.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum

import aiosmtplib

from ..logger import get_logger
from .session import SmtpSession
from .transport import TransportConfig, TransportVariant

logger = get_logger("smtp.probe")


class ProbeOutcome(Enum):
    ESTABLISHED = "established"
    NOT_CONFIRMED = "not_confirmed"
    TRANSPORT_ERROR = "transport_error"


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of probing one transport variant.

    Attributes:
        variant: The variant that was tried.
        port: The port that was used.
        outcome: Whether the session was established, and if not, why.
        session: The established session, only set on success.
        detail: Error description for transport errors.
    """

    variant: TransportVariant
    port: int
    outcome: ProbeOutcome
    session: SmtpSession | None = None
    detail: str | None = None

    @property
    def established(self) -> bool:
        return self.outcome is ProbeOutcome.ESTABLISHED and self.session is not None


def build_client(config: TransportConfig, variant: TransportVariant) -> aiosmtplib.SMTP:
    """Create an unconnected client for ``variant`` with credentials attached."""
    kwargs: dict = {}
    if config.timeout > 0:
        kwargs["timeout"] = float(config.timeout)
    return aiosmtplib.SMTP(
        hostname=config.host,
        port=config.port_for(variant),
        username=config.username,
        password=config.password,
        use_tls=variant is TransportVariant.ENCRYPTED_DIRECT,
        start_tls=variant is TransportVariant.ENCRYPTED_UPGRADE,
        **kwargs,
    )


async def probe_transport(config: TransportConfig, variant: TransportVariant) -> ProbeResult:
    """Try to establish an authenticated session with ``variant``.

    Connection, TLS and authentication errors are reported as
    ``TRANSPORT_ERROR``; a server that does not acknowledge the NOOP is
    reported as ``NOT_CONFIRMED``. Neither raises.
    """
    port = config.port_for(variant)
    client = build_client(config, variant)
    logger.debug("Probing %s:%d with %s (timeout=%s)", config.host, port, variant.label, config.timeout or "default")
    try:
        # connect() also performs TLS/STARTTLS and login
        await client.connect()
    except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
        _discard(client)
        return ProbeResult(variant, port, ProbeOutcome.TRANSPORT_ERROR, detail=_describe(e))

    try:
        await client.noop()
    except aiosmtplib.SMTPResponseException as e:
        _discard(client)
        return ProbeResult(variant, port, ProbeOutcome.NOT_CONFIRMED, detail=_describe(e))
    except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
        _discard(client)
        return ProbeResult(variant, port, ProbeOutcome.TRANSPORT_ERROR, detail=_describe(e))

    if not client.is_connected:
        return ProbeResult(variant, port, ProbeOutcome.NOT_CONFIRMED)
    return ProbeResult(
        variant,
        port,
        ProbeOutcome.ESTABLISHED,
        session=SmtpSession(client, config.host, port, variant),
    )


def _describe(error: BaseException) -> str:
    return str(error) or type(error).__name__


def _discard(client: aiosmtplib.SMTP) -> None:
    if client.is_connected:
        client.close()
