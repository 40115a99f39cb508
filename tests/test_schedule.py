from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from recurpay.errors import ConfigurationError, ReadError
from recurpay.schedule import CronSchedule, run_on_schedule

UTC = timezone.utc


def at(*args) -> datetime:
    return datetime(*args, tzinfo=UTC)


def test_every_thirty_seconds() -> None:
    s = CronSchedule("*/30 * * * * *")
    assert s.seconds == frozenset({0, 30})
    assert s.next_after(at(2025, 1, 1, 12, 0, 0)) == at(2025, 1, 1, 12, 0, 30)
    assert s.next_after(at(2025, 1, 1, 12, 0, 30)) == at(2025, 1, 1, 12, 1, 0)
    assert s.next_after(at(2025, 1, 1, 12, 0, 29, 999)) == at(2025, 1, 1, 12, 0, 30)


def test_five_fields_fire_on_second_zero() -> None:
    s = CronSchedule("15 3 * * *")
    assert s.next_after(at(2025, 1, 1, 12, 0, 0)) == at(2025, 1, 2, 3, 15, 0)


def test_ranges_lists_and_steps() -> None:
    s = CronSchedule("0 0,30 9-17/4 * * *")
    assert s.minutes == frozenset({0, 30})
    assert s.hours == frozenset({9, 13, 17})
    assert s.next_after(at(2025, 1, 1, 17, 30, 0)) == at(2025, 1, 2, 9, 0, 0)


def test_month_and_year_rollover() -> None:
    s = CronSchedule("0 0 0 1 1 *")
    assert s.next_after(at(2025, 3, 4, 5, 6, 7)) == at(2026, 1, 1, 0, 0, 0)


def test_weekday_sunday_as_zero_or_seven() -> None:
    # 2025-01-01 is a Wednesday; next Sunday is the 5th
    for expr in ("0 0 12 * * 0", "0 0 12 * * 7"):
        assert CronSchedule(expr).next_after(at(2025, 1, 1)) == at(2025, 1, 5, 12, 0, 0)


def test_day_of_month_or_weekday_when_both_restricted() -> None:
    # 10th of the month OR any Friday; Friday 2025-01-03 comes first
    s = CronSchedule("0 0 0 10 * 5")
    assert s.next_after(at(2025, 1, 1)) == at(2025, 1, 3)
    assert s.next_after(at(2025, 1, 9)) == at(2025, 1, 10)


def test_matches() -> None:
    s = CronSchedule("*/30 * * * * *")
    assert s.matches(at(2025, 6, 1, 8, 15, 30))
    assert not s.matches(at(2025, 6, 1, 8, 15, 31))


def test_naive_datetime_is_utc() -> None:
    s = CronSchedule("*/30 * * * * *")
    assert s.next_after(datetime(2025, 1, 1, 0, 0, 10)) == at(2025, 1, 1, 0, 0, 30)


@pytest.mark.parametrize(
    "expr",
    ["", "* * * *", "60 * * * * *", "* * 24 * * *", "*/0 * * * * *", "a * * * * *", "5-1 * * * * *", "* * * 0 * *"],
)
def test_invalid_expressions(expr) -> None:
    with pytest.raises(ConfigurationError):
        CronSchedule(expr)


def test_expression_that_never_fires() -> None:
    with pytest.raises(ConfigurationError, match="never fires"):
        CronSchedule("0 0 0 31 2 *").next_after(at(2025, 1, 1))


class FakeClock:
    def __init__(self, start: datetime):
        self.now = start
        self.sleeps = []

    def __call__(self) -> datetime:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += timedelta(seconds=seconds)


def test_run_on_schedule_ticks_at_cron_times() -> None:
    clock = FakeClock(at(2025, 1, 1, 0, 0, 10))
    ticks = []
    n = run_on_schedule(
        lambda: ticks.append(clock.now), CronSchedule("*/30 * * * * *"),
        max_ticks=3, now=clock, sleep=clock.sleep, log=lambda m: None,
    )
    assert n == 3
    assert ticks == [at(2025, 1, 1, 0, 0, 30), at(2025, 1, 1, 0, 1, 0), at(2025, 1, 1, 0, 1, 30)]


def test_run_on_schedule_enforces_minimum_interval() -> None:
    clock = FakeClock(at(2025, 1, 1, 0, 0, 0, 500))
    ticks = []
    run_on_schedule(
        lambda: ticks.append(clock.now), CronSchedule("*/5 * * * * *"),
        max_ticks=3, now=clock, sleep=clock.sleep, log=lambda m: None,
    )
    assert ticks == [at(2025, 1, 1, 0, 0, 5), at(2025, 1, 1, 0, 0, 35), at(2025, 1, 1, 0, 1, 5)]


def test_overrunning_tick_waits_for_next_slot() -> None:
    clock = FakeClock(at(2025, 1, 1, 0, 0, 0))
    starts = []

    def slow_tick():
        starts.append(clock.now)
        clock.now += timedelta(seconds=45)

    run_on_schedule(
        slow_tick, CronSchedule("*/30 * * * * *"),
        max_ticks=2, now=clock, sleep=clock.sleep, log=lambda m: None,
    )
    assert starts == [at(2025, 1, 1, 0, 0, 30), at(2025, 1, 1, 0, 1, 30)]


def test_sweep_errors_do_not_stop_the_loop() -> None:
    clock = FakeClock(at(2025, 1, 1))
    calls = []
    lines = []

    def tick():
        calls.append(clock.now)
        if len(calls) == 1:
            raise ReadError("rpc down")

    n = run_on_schedule(
        tick, CronSchedule("*/30 * * * * *"),
        max_ticks=2, now=clock, sleep=clock.sleep, log=lines.append,
    )
    assert n == 2
    assert len(calls) == 2
    assert any("rpc down" in line for line in lines)


def test_other_errors_propagate() -> None:
    clock = FakeClock(at(2025, 1, 1))

    def tick():
        raise KeyError("bug")

    with pytest.raises(KeyError):
        run_on_schedule(
            tick, CronSchedule("*/30 * * * * *"),
            max_ticks=2, now=clock, sleep=clock.sleep, log=lambda m: None,
        )
