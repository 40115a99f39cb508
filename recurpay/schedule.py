"""
Cron trigger for the sweep.

Expressions have six fields, seconds first:

    sec  min  hour  day-of-month  month  day-of-week
    */30 *    *     *             *      *            -> every 30 seconds

Five-field expressions are accepted and fire at second 0. Each field takes
"*", "n", "a-b", "*/s", "a-b/s" or a comma list of those. Day-of-week is
0-6 with 0 = Sunday (7 is also Sunday). When both day fields are restricted a
day matches if either does.

run_on_schedule() is the host loop: it runs one tick at a time, never two at
once, and keeps tick starts at least MIN_INTERVAL_SECONDS apart.
"""

import time
from datetime import datetime, timedelta, timezone
from typing import Callable, FrozenSet, List, Optional, Tuple

from recurpay.errors import ConfigurationError, SweepError

MIN_INTERVAL_SECONDS = 30
# Give up looking for a match after this many years (e.g. "0 0 0 31 2 *").
MAX_SEARCH_YEARS = 5

# (name, low, high)
FIELDS: List[Tuple[str, int, int]] = [
    ("second", 0, 59),
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 6),
]


def _parse_field(text: str, name: str, low: int, high: int) -> FrozenSet[int]:
    values = set()
    for part in text.split(","):
        part = part.strip()
        if not part:
            raise ConfigurationError(f"Empty {name} entry in cron field {text!r}")
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                raise ConfigurationError(f"Bad step in cron {name} field: {text!r}")
            step = int(step_text)
        if part == "*":
            start, end = low, high
        elif "-" in part:
            a, b = part.split("-", 1)
            if not (a.isdigit() and b.isdigit()):
                raise ConfigurationError(f"Bad range in cron {name} field: {text!r}")
            start, end = int(a), int(b)
        elif part.isdigit():
            start = int(part)
            # "5/10" means from 5 to the end of the range in steps of 10
            end = high if step > 1 else start
        else:
            raise ConfigurationError(f"Bad value in cron {name} field: {text!r}")
        if name == "weekday" and end == 7:
            # 7 is Sunday too
            if start == 7:
                start = end = 0
            else:
                values.add(0)
                end = 6
        if start < low or end > high or start > end:
            raise ConfigurationError(f"Cron {name} field out of range {low}-{high}: {text!r}")
        values.update(range(start, end + 1, step))
    return frozenset(values)


class CronSchedule:
    """Parsed cron expression. next_after() finds the next firing time (UTC)."""

    def __init__(self, expression: str):
        self.expression = (expression or "").strip()
        parts = self.expression.split()
        if len(parts) == 5:
            parts = ["0"] + parts
        if len(parts) != 6:
            raise ConfigurationError(
                f"Cron expression must have 6 fields (sec min hour dom mon dow): {expression!r}"
            )
        parsed = [_parse_field(p, name, low, high) for p, (name, low, high) in zip(parts, FIELDS)]
        self.seconds, self.minutes, self.hours, self.days, self.months, self.weekdays = parsed
        self._day_restricted = not parts[3].startswith("*")
        self._weekday_restricted = not parts[5].startswith("*")

    def __repr__(self) -> str:
        return f"CronSchedule({self.expression!r})"

    def _day_matches(self, dt: datetime) -> bool:
        cron_weekday = (dt.weekday() + 1) % 7  # Monday=0 in Python, Sunday=0 in cron
        day_ok = dt.day in self.days
        weekday_ok = cron_weekday in self.weekdays
        if self._day_restricted and self._weekday_restricted:
            return day_ok or weekday_ok
        return day_ok and weekday_ok

    def matches(self, dt: datetime) -> bool:
        return (
            dt.month in self.months
            and self._day_matches(dt)
            and dt.hour in self.hours
            and dt.minute in self.minutes
            and dt.second in self.seconds
        )

    def next_after(self, after: datetime) -> datetime:
        """First matching time strictly after `after` (naive datetimes are taken as UTC)."""
        if after.tzinfo is None:
            after = after.replace(tzinfo=timezone.utc)
        dt = after.replace(microsecond=0) + timedelta(seconds=1)
        limit = after + timedelta(days=366 * MAX_SEARCH_YEARS)
        while dt <= limit:
            if dt.month not in self.months:
                # first second of next month
                year, month = (dt.year + 1, 1) if dt.month == 12 else (dt.year, dt.month + 1)
                dt = dt.replace(year=year, month=month, day=1, hour=0, minute=0, second=0)
                continue
            if not self._day_matches(dt):
                dt = dt.replace(hour=0, minute=0, second=0) + timedelta(days=1)
                continue
            if dt.hour not in self.hours:
                dt = dt.replace(minute=0, second=0) + timedelta(hours=1)
                continue
            if dt.minute not in self.minutes:
                dt = dt.replace(second=0) + timedelta(minutes=1)
                continue
            if dt.second not in self.seconds:
                dt = dt + timedelta(seconds=1)
                continue
            return dt
        raise ConfigurationError(f"Cron expression never fires: {self.expression!r}")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _print_log(message: str) -> None:
    print(f"[SCHEDULE] {message}", flush=True)


def run_on_schedule(
    tick: Callable[[], object],
    schedule: CronSchedule,
    max_ticks: Optional[int] = None,
    min_interval_seconds: int = MIN_INTERVAL_SECONDS,
    now: Callable[[], datetime] = _utcnow,
    sleep: Callable[[float], None] = time.sleep,
    log: Callable[[str], None] = _print_log,
) -> int:
    """
    Run tick() at every cron firing time, forever (or max_ticks times).

    A tick that raises SweepError is logged and the loop waits for the next
    firing time; anything else propagates. Returns the number of ticks run.
    """
    ticks = 0
    last_start: Optional[datetime] = None
    log(f"Schedule {schedule.expression!r} (min interval {min_interval_seconds}s)")
    while max_ticks is None or ticks < max_ticks:
        current = now()
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        after = current
        if last_start is not None:
            earliest = last_start + timedelta(seconds=min_interval_seconds) - timedelta(seconds=1)
            after = max(current, earliest)
        fire_at = schedule.next_after(after)
        delay = (fire_at - current).total_seconds()
        if delay > 0:
            sleep(delay)
        last_start = fire_at
        ticks += 1
        try:
            tick()
        except SweepError as e:
            log(f"Tick at {fire_at.isoformat()} failed: {e}")
    return ticks
