# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SMTP transport subsystem.

- TransportVariant / TransportConfig: How and where to connect
- probe_transport: Establish one variant and verify it with NOOP
- TransportNegotiator: Try variants in order, first success wins
- SmtpSession: Shared, lock-protected handle used for every send

Usage:
    from stn_notifier.smtp import TransportConfig, negotiate_transport

    session = await negotiate_transport(TransportConfig("smtp.example.com", "me@example.com", "secret"))
    await session.send(message)
    await session.close()
"""

from .negotiator import TransportNegotiator, negotiate_transport
from .probe import ProbeOutcome, ProbeResult, probe_transport
from .session import SmtpSession
from .transport import TRANSPORT_PRIORITY, TransportConfig, TransportVariant

__all__ = [
    "ProbeOutcome",
    "ProbeResult",
    "SmtpSession",
    "TRANSPORT_PRIORITY",
    "TransportConfig",
    "TransportNegotiator",
    "TransportVariant",
    "negotiate_transport",
    "probe_transport",
]
