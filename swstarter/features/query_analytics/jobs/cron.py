"""
Five-field cron expressions for recurring lane jobs.

Supports ``*``, single values, ranges (``a-b``), lists (``a,b``) and steps
(``*/n``, ``a-b/n``, ``a/n``). Day-of-week accepts 0-7 with both 0 and 7
meaning Sunday. When both day-of-month and day-of-week are restricted a
time matches if either does, as in classic cron.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from swstarter.errors import ConfigurationError

# (low, high) per field: minute, hour, day of month, month, day of week
FIELD_BOUNDS = ((0, 59), (0, 23), (1, 31), (1, 12), (0, 7))
FIELD_NAMES = ("minute", "hour", "day of month", "month", "day of week")

# Enough to cross any leap-year gap
MAX_SEARCH_DAYS = 366 * 5


def _parse_field(token: str, low: int, high: int, name: str) -> frozenset[int]:
    values: set[int] = set()
    for part in token.split(","):
        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                raise ConfigurationError(f"Invalid step '{step_text}' in cron {name} field")
            step = int(step_text)

        if part == "*":
            start, end = low, high
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            if not (start_text.isdigit() and end_text.isdigit()):
                raise ConfigurationError(f"Invalid range '{part}' in cron {name} field")
            start, end = int(start_text), int(end_text)
        elif part.isdigit():
            start = int(part)
            end = high if step > 1 else start
        else:
            raise ConfigurationError(f"Invalid value '{part}' in cron {name} field")

        if start < low or end > high or start > end:
            raise ConfigurationError(
                f"Cron {name} field '{token}' is outside the range {low}-{high}"
            )
        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True)
class CronSchedule:
    expression: str
    minutes: frozenset[int]
    hours: frozenset[int]
    days: frozenset[int]
    months: frozenset[int]
    weekdays: frozenset[int]
    day_restricted: bool
    weekday_restricted: bool

    @classmethod
    def parse(cls, expression: str) -> CronSchedule:
        fields = expression.split()
        if len(fields) != 5:
            raise ConfigurationError(
                f"Cron expression '{expression}' must have 5 fields, got {len(fields)}"
            )

        parsed = [
            _parse_field(token, low, high, name)
            for token, (low, high), name in zip(fields, FIELD_BOUNDS, FIELD_NAMES)
        ]
        weekdays = frozenset(day % 7 for day in parsed[4])

        return cls(
            expression=expression,
            minutes=parsed[0],
            hours=parsed[1],
            days=parsed[2],
            months=parsed[3],
            weekdays=weekdays,
            day_restricted=fields[2] != "*",
            weekday_restricted=fields[4] != "*",
        )

    def _day_matches(self, moment: datetime) -> bool:
        cron_weekday = (moment.weekday() + 1) % 7  # cron counts from Sunday
        day_ok = moment.day in self.days
        weekday_ok = cron_weekday in self.weekdays
        if self.day_restricted and self.weekday_restricted:
            return day_ok or weekday_ok
        return day_ok and weekday_ok

    def matches(self, moment: datetime) -> bool:
        return (
            moment.minute in self.minutes
            and moment.hour in self.hours
            and moment.month in self.months
            and self._day_matches(moment)
        )

    def next_after(self, moment: datetime) -> datetime:
        """First matching minute strictly after ``moment``."""
        candidate = moment.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit = candidate + timedelta(days=MAX_SEARCH_DAYS)

        while candidate <= limit:
            if candidate.month not in self.months or not self._day_matches(candidate):
                candidate = candidate.replace(hour=0, minute=0) + timedelta(days=1)
                continue
            if candidate.hour not in self.hours:
                candidate = candidate.replace(minute=0) + timedelta(hours=1)
                continue
            if candidate.minute not in self.minutes:
                candidate += timedelta(minutes=1)
                continue
            return candidate

        raise ConfigurationError(f"Cron expression '{self.expression}' never fires")
