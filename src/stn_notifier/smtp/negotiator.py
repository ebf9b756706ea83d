# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Ordered negotiation of the SMTP transport.

Variants are tried in :data:`TRANSPORT_PRIORITY` order, implicit TLS first
and STARTTLS second. The first variant whose probe establishes a session
wins and no further variant is tried. The negotiator keeps no state between
calls; retrying a failed negotiation is the caller's decision.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Iterable

from ..errors import AllTransportsFailedError
from ..logger import get_logger
from .probe import ProbeOutcome, ProbeResult, probe_transport
from .session import SmtpSession
from .transport import TRANSPORT_PRIORITY, TransportConfig, TransportVariant

logger = get_logger("smtp.negotiator")

ProbeCallable = Callable[[TransportConfig, TransportVariant], Awaitable[ProbeResult]]


class TransportNegotiator:
    """Drive transport probes across the fixed variant order.

    Attributes:
        probe: Coroutine function probing one variant; replaceable in tests.
        variants: Variants in the order they are tried.
    """

    def __init__(
        self,
        probe: ProbeCallable = probe_transport,
        variants: Iterable[TransportVariant] = TRANSPORT_PRIORITY,
    ):
        self.probe = probe
        self.variants = tuple(variants)

    async def negotiate(self, config: TransportConfig) -> SmtpSession:
        """Return the first session a variant establishes.

        Raises:
            ConfigInvalidError: Host, username or password is missing; no
                connection is attempted.
            AllTransportsFailedError: No variant established a session.
        """
        config.validate()

        attempts: list[str] = []
        for variant in self.variants:
            port = config.port_for(variant)
            logger.info("Trying %s connection to SMTP server %s:%d", variant.label, config.host, port)

            result = await self.probe(config, variant)
            attempts.append(f"{variant.label}@{port}")

            if result.established:
                logger.info("Established %s connection to SMTP server %s:%d", variant.label, config.host, port)
                return result.session  # type: ignore[return-value]

            if result.outcome is ProbeOutcome.NOT_CONFIRMED:
                logger.warning(
                    "SMTP server %s:%d did not confirm the %s connection: %s",
                    config.host,
                    port,
                    variant.label,
                    result.detail or "no further information",
                )
            else:
                logger.warning(
                    "Could not establish %s connection to SMTP server %s:%d: %s",
                    variant.label,
                    config.host,
                    port,
                    result.detail,
                )

        raise AllTransportsFailedError(config.host, attempts)


async def negotiate_transport(config: TransportConfig) -> SmtpSession:
    """Negotiate with the default probe and variant order."""
    return await TransportNegotiator().negotiate(config)
