import asyncio
from datetime import datetime, time

import pytest

from feedgate.updates import DailyScheduler
from feedgate.updates.scheduler import next_run, parse_daily_time


class TestDailyTime:

    def test_parse(self):
        assert parse_daily_time("03:00") == time(3, 0)
        assert parse_daily_time(" 23:59 ") == time(23, 59)

    @pytest.mark.parametrize("value", ["3", "24:00", "ab:cd", "12:60", ""])
    def test_invalid(self, value):
        with pytest.raises(ValueError):
            parse_daily_time(value)

    def test_later_today(self):
        assert next_run(datetime(2025, 10, 19, 1, 30), time(3, 0)) == datetime(2025, 10, 19, 3, 0)

    def test_already_passed(self):
        assert next_run(datetime(2025, 10, 19, 4, 0), time(3, 0)) == datetime(2025, 10, 20, 3, 0)

    def test_exactly_now_moves_to_tomorrow(self):
        assert next_run(datetime(2025, 10, 19, 3, 0), time(3, 0)) == datetime(2025, 10, 20, 3, 0)

    def test_month_rollover(self):
        assert next_run(datetime(2025, 10, 31, 23, 0), time(3, 0)) == datetime(2025, 11, 1, 3, 0)


class RecordingManager:

    def __init__(self):
        self.triggers = []

    async def run_cycle(self, trigger="scheduled"):
        self.triggers.append(trigger)
        return []


@pytest.mark.asyncio
class TestDailyScheduler:

    async def test_start_and_stop(self):
        manager = RecordingManager()
        scheduler = DailyScheduler(manager, at="03:00")

        await scheduler.start()
        await asyncio.sleep(0)
        assert scheduler.next_run_at is not None
        assert scheduler.next_run_at > datetime.now()

        await scheduler.stop()
        assert scheduler._task.done()
        assert manager.triggers == []

    async def test_runs_cycle_when_due(self, monkeypatch):
        manager = RecordingManager()
        scheduler = DailyScheduler(manager, at="03:00")
        real_sleep = asyncio.sleep

        async def instant_sleep(delay):
            await real_sleep(0)

        monkeypatch.setattr("feedgate.updates.scheduler.asyncio.sleep", instant_sleep)

        await scheduler.start()
        for _ in range(5):
            await real_sleep(0)
        await scheduler.stop()

        assert manager.triggers
        assert set(manager.triggers) == {"scheduled"}
