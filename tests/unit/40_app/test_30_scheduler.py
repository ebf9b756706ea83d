"""Tests for cron scheduling of the notification job."""

from unittest.mock import AsyncMock

import pytest

from stn_notifier.config import SchedulerConfig
from stn_notifier.errors import ConfigInvalidError
from stn_notifier.scheduler import JOB_ID, build_trigger, create_scheduler


class TestBuildTrigger:
    def test_no_cron(self):
        assert build_trigger(SchedulerConfig()) is None

    def test_cron_with_timezone(self):
        trigger = build_trigger(SchedulerConfig(cron="0 */2 * * *", timezone="Asia/Shanghai"))

        assert str(trigger.timezone) == "Asia/Shanghai"

    def test_invalid_cron(self):
        with pytest.raises(ConfigInvalidError, match="cron"):
            build_trigger(SchedulerConfig(cron="every two hours"))

    def test_invalid_timezone(self):
        with pytest.raises(ConfigInvalidError, match="timezone"):
            build_trigger(SchedulerConfig(cron="0 * * * *", timezone="Mars/Olympus"))


class TestCreateScheduler:
    def test_disabled_without_cron(self):
        assert create_scheduler(SchedulerConfig(), AsyncMock()) is None

    def test_job_registered(self):
        job = AsyncMock()
        scheduler = create_scheduler(SchedulerConfig(cron="*/5 * * * *"), job)

        registered = scheduler.get_job(JOB_ID)
        assert registered is not None
        assert registered.func is job
        assert registered.max_instances == 1
        assert registered.coalesce is True
        assert not scheduler.running
