# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Cron-based triggering of the notification job."""

from __future__ import annotations

from typing import Any, Awaitable, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from .config import SchedulerConfig
from .errors import ConfigInvalidError
from .logger import get_logger

logger = get_logger("scheduler")

JOB_ID = "stn-notify"


def build_trigger(config: SchedulerConfig) -> CronTrigger | None:
    """Return the cron trigger, or None when no cron is configured.

    Raises:
        ConfigInvalidError: The cron expression or timezone is invalid.
    """
    if not config.cron:
        return None
    try:
        timezone = ZoneInfo(config.timezone)
    except (ZoneInfoNotFoundError, ValueError):
        raise ConfigInvalidError(f"Unknown timezone: {config.timezone!r}") from None
    try:
        return CronTrigger.from_crontab(config.cron, timezone=timezone)
    except ValueError as e:
        raise ConfigInvalidError(f"Invalid cron expression {config.cron!r}: {e}") from None


def create_scheduler(
    config: SchedulerConfig, job: Callable[[], Awaitable[Any]]
) -> AsyncIOScheduler | None:
    """Create an (unstarted) scheduler running ``job`` on the cron trigger.

    Overlapping runs are not allowed; missed runs are coalesced into one.
    """
    trigger = build_trigger(config)
    if trigger is None:
        logger.info("No cron configured, periodic notifications disabled")
        return None
    scheduler = AsyncIOScheduler(timezone=trigger.timezone)
    scheduler.add_job(job, trigger, id=JOB_ID, max_instances=1, coalesce=True, replace_existing=True)
    logger.info("Scheduled notifications with cron '%s' (%s)", config.cron, config.timezone)
    return scheduler
