# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SMTP transport variants and connection settings."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from ..errors import ConfigInvalidError

SUBMISSIONS_PORT = 465
SUBMISSION_PORT = 587


class TransportVariant(Enum):
    """Ways of securing an SMTP connection.

    ENCRYPTED_DIRECT connects with TLS from the first byte (implicit TLS);
    ENCRYPTED_UPGRADE connects in plaintext and upgrades with STARTTLS
    before authenticating.
    """

    ENCRYPTED_DIRECT = "tls"
    ENCRYPTED_UPGRADE = "starttls"

    @property
    def default_port(self) -> int:
        if self is TransportVariant.ENCRYPTED_DIRECT:
            return SUBMISSIONS_PORT
        return SUBMISSION_PORT

    @property
    def label(self) -> str:
        return "TLS" if self is TransportVariant.ENCRYPTED_DIRECT else "STARTTLS"


TRANSPORT_PRIORITY: tuple[TransportVariant, ...] = (
    TransportVariant.ENCRYPTED_DIRECT,
    TransportVariant.ENCRYPTED_UPGRADE,
)


@dataclass(frozen=True)
class TransportConfig:
    """Connection settings for the outgoing mail server.

    Attributes:
        host: SMTP server hostname.
        username: Login name, also used as the sender address.
        password: Login secret; only its length is ever logged.
        port: Explicit port, 0 to use the variant's default.
        timeout: Connect/command timeout in seconds, 0 for the library default.
    """

    host: str
    username: str
    password: str = field(repr=False)
    port: int = 0
    timeout: int = 0

    def validate(self) -> None:
        """Ensure host, username and password are all present.

        Raises:
            ConfigInvalidError: When any of them is empty.
        """
        if not self.host or not self.username or not self.password:
            raise ConfigInvalidError(
                "SMTP host, username and password are all required "
                f"(host={self.host!r}, username={self.username!r}, password.len={len(self.password)})"
            )
        if not 0 <= self.port <= 65535:
            raise ConfigInvalidError(f"Invalid SMTP port: {self.port}")
        if self.timeout < 0:
            raise ConfigInvalidError(f"Invalid SMTP timeout: {self.timeout}")

    def port_for(self, variant: TransportVariant) -> int:
        """Return the explicit port, or the variant default when unset."""
        return self.port or variant.default_port
