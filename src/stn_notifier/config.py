# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Configuration for the notifier.

Settings are read once at startup from an INI file (default
``stn_config.ini``, overridable with ``STN_CONFIG_FILE``), with environment
variables as fallbacks. The file value wins when both are present.

Environment variables follow ``STN_CONFIG__<SECTION>__<OPTION>``, e.g.
``STN_CONFIG__MAIL__SMTP_HOST``. A ``.env`` file in the working directory is
loaded first when present, which is convenient during development.

Config file sections/keys:
  [mail] smtp_host, smtp_port, smtp_username, smtp_password, smtp_timeout,
         smtp_send_to (comma separated)
  [scheduler] cron, timezone
  [log] max_level, dir
  [browserless] token, endpoint, target_url
  [fetch] screenshot_max_bytes, archive_max_bytes,
          archive_max_uncompressed_bytes, data_dump_list_url, http_timeout

Example:
    Minimal configuration file::

        [mail]
        smtp_host = smtp.example.com
        smtp_username = notifier@example.com
        smtp_password = secret
        smtp_send_to = alice@example.com, bob@example.com

        [scheduler]
        cron = 0 */2 * * *
        timezone = Asia/Shanghai
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

from .errors import ConfigInvalidError
from .logger import get_logger, parse_level
from .smtp.transport import TransportConfig

CONFIG_FILE_NAME = "stn_config.ini"
CONFIG_FILE_ENV = "STN_CONFIG_FILE"
CONFIG_ENV_PREFIX = "STN_CONFIG"

DEFAULT_SCREENSHOT_ENDPOINT = "https://production-sfo.browserless.io/chrome/screenshot"
DEFAULT_TARGET_URL = (
    "https://www.iflow.work/?page_num=1&platforms=uuyp-buff-igxe-eco-c5&games=csgo-dota2"
    "&sort_by=safe_buy&min_price=1&max_price=5000&min_volume=10000&max_latency=600&price_mode=buy"
)

logger = get_logger("config")


@dataclass
class MailConfig:
    """Outgoing mail settings."""

    smtp_host: str = ""
    smtp_port: int = 0
    """0 selects the default port of each transport variant."""

    smtp_username: str = ""
    smtp_password: str = field(default="", repr=False)
    smtp_timeout: int = 0
    """Seconds; 0 keeps the SMTP library default."""

    smtp_send_to: list[str] = field(default_factory=list)
    """Notification recipients; unparseable entries are skipped at send time."""

    def transport_config(self) -> TransportConfig:
        return TransportConfig(
            host=self.smtp_host,
            port=self.smtp_port,
            username=self.smtp_username,
            password=self.smtp_password,
            timeout=self.smtp_timeout,
        )


@dataclass
class SchedulerConfig:
    """Cron trigger for the periodic notification job."""

    cron: str = ""
    """Five-field crontab expression; empty disables scheduling."""

    timezone: str = "UTC"


@dataclass
class LogConfig:
    """Logging settings."""

    max_level: str = "INFO"
    dir: str | None = "logs"
    """Directory for the hourly log file; empty disables file logging."""


@dataclass
class BrowserlessConfig:
    """Screenshot service settings."""

    token: str = field(default="", repr=False)
    endpoint: str = DEFAULT_SCREENSHOT_ENDPOINT
    target_url: str = DEFAULT_TARGET_URL


@dataclass
class FetchConfig:
    """Size ceilings and endpoints for remote payloads."""

    screenshot_max_bytes: int = 1024 * 1024
    archive_max_bytes: int = 10 * 1024 * 1024
    archive_max_uncompressed_bytes: int = 30 * 1024 * 1024
    data_dump_list_url: str | None = None
    http_timeout: int = 30


@dataclass
class AppConfig:
    """Top-level configuration container."""

    mail: MailConfig = field(default_factory=MailConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    log: LogConfig = field(default_factory=LogConfig)
    browserless: BrowserlessConfig = field(default_factory=BrowserlessConfig)
    fetch: FetchConfig = field(default_factory=FetchConfig)


def env_name(section: str, option: str) -> str:
    """Return the environment variable backing ``[section] option``."""
    return f"{CONFIG_ENV_PREFIX}__{section.upper()}__{option.upper()}"


def split_list(value: str | None) -> list[str]:
    """Split a comma separated value into trimmed, non-empty items."""
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


def load_settings(
    config_path: str | Path | None = None,
    env_file: str | Path | None = ".env",
) -> AppConfig:
    """Load configuration from the INI file with environment fallbacks.

    Args:
        config_path: INI file path. Defaults to ``$STN_CONFIG_FILE`` or
            ``stn_config.ini``. A missing default file is not an error;
            an explicitly given path must exist.
        env_file: ``.env`` file to load into the environment first; ``None``
            skips it. Variables already set are not overridden.

    Raises:
        ConfigInvalidError: The explicit config file is missing, or a numeric
            option or the log level is malformed.
    """
    if env_file is not None and Path(env_file).is_file():
        load_dotenv(env_file, override=False)

    path = Path(config_path or os.getenv(CONFIG_FILE_ENV, CONFIG_FILE_NAME))
    parser = configparser.ConfigParser(interpolation=None)
    if path.is_file():
        parser.read(path, encoding="utf-8")
        logger.debug("Read configuration file %s", path)
    elif config_path is not None:
        raise ConfigInvalidError(f"Config file not found: {path}")

    def get(section: str, option: str, default: str | None = None) -> str | None:
        if parser.has_option(section, option):
            return parser.get(section, option).strip()
        value = os.getenv(env_name(section, option))
        if value is not None:
            return value.strip()
        return default

    def get_int(section: str, option: str, default: int) -> int:
        value = get(section, option)
        if value is None or value == "":
            return default
        try:
            return int(value)
        except ValueError:
            raise ConfigInvalidError(f"[{section}] {option} must be an integer, got {value!r}") from None

    mail = MailConfig(
        smtp_host=get("mail", "smtp_host", "") or "",
        smtp_port=get_int("mail", "smtp_port", 0),
        smtp_username=get("mail", "smtp_username", "") or "",
        smtp_password=get("mail", "smtp_password", "") or "",
        smtp_timeout=get_int("mail", "smtp_timeout", 0),
        smtp_send_to=split_list(get("mail", "smtp_send_to")),
    )

    log_dir = get("log", "dir", "logs")
    log = LogConfig(
        max_level=get("log", "max_level", "INFO") or "INFO",
        dir=log_dir or None,
    )
    try:
        parse_level(log.max_level)
    except ValueError as e:
        raise ConfigInvalidError(str(e)) from None

    defaults = FetchConfig()
    settings = AppConfig(
        mail=mail,
        scheduler=SchedulerConfig(
            cron=get("scheduler", "cron", "") or "",
            timezone=get("scheduler", "timezone", "UTC") or "UTC",
        ),
        log=log,
        browserless=BrowserlessConfig(
            token=get("browserless", "token", "") or "",
            endpoint=get("browserless", "endpoint", DEFAULT_SCREENSHOT_ENDPOINT) or DEFAULT_SCREENSHOT_ENDPOINT,
            target_url=get("browserless", "target_url", DEFAULT_TARGET_URL) or DEFAULT_TARGET_URL,
        ),
        fetch=FetchConfig(
            screenshot_max_bytes=get_int("fetch", "screenshot_max_bytes", defaults.screenshot_max_bytes),
            archive_max_bytes=get_int("fetch", "archive_max_bytes", defaults.archive_max_bytes),
            archive_max_uncompressed_bytes=get_int(
                "fetch", "archive_max_uncompressed_bytes", defaults.archive_max_uncompressed_bytes
            ),
            data_dump_list_url=get("fetch", "data_dump_list_url") or None,
            http_timeout=get_int("fetch", "http_timeout", defaults.http_timeout),
        ),
    )

    for name in ("screenshot_max_bytes", "archive_max_bytes", "archive_max_uncompressed_bytes", "http_timeout"):
        if getattr(settings.fetch, name) <= 0:
            raise ConfigInvalidError(f"[fetch] {name} must be positive")

    return settings
