"""
Cron expressions for recurring jobs.

Five fields: minute hour day-of-month month day-of-week (0 = Sunday).
Each field accepts *, single values, ranges (1-5), lists (1,15,30) and
steps (*/5, 10-40/10, 5/15). The usual @aliases are accepted too.

All fields must match for a time to match, day-of-month and day-of-week
included.

Usage:
    from jobqueue.cron import CronExpression

    expr = CronExpression.parse("*/15 9-17 * * 1-5")
    expr.matches(datetime(2024, 3, 4, 9, 30))   # True (a Monday)
    expr.next_run(datetime(2024, 3, 4, 17, 50)) # 2024-03-05 09:00

    CronExpression.is_valid("@hourly")          # True
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import FrozenSet, List, Optional, Tuple

from jobqueue.exceptions import InvalidCronExpressionError
from jobqueue.job_types import utc_now

ALIASES = {
    "@yearly": "0 0 1 1 *",
    "@annually": "0 0 1 1 *",
    "@monthly": "0 0 1 * *",
    "@weekly": "0 0 * * 0",
    "@daily": "0 0 * * *",
    "@midnight": "0 0 * * *",
    "@hourly": "0 * * * *",
    "@minutely": "* * * * *",
}

# (name, min, max) per position
FIELDS: List[Tuple[str, int, int]] = [
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day", 1, 31),
    ("month", 1, 12),
    ("weekday", 0, 6),
]

# next_run gives up after this many years without a match (e.g. "0 0 30 2 *")
_SEARCH_YEARS = 5


def _parse_int(text: str, field: str, lo: int, hi: int) -> int:
    if not text.isdigit():
        raise InvalidCronExpressionError(f"Invalid {field} value: {text!r}")
    value = int(text)
    if value < lo or value > hi:
        raise InvalidCronExpressionError(f"{field} value {value} out of range {lo}-{hi}")
    return value


def _parse_field(text: str, field: str, lo: int, hi: int) -> FrozenSet[int]:
    """Expand one cron field into the set of values it allows."""
    values = set()
    for part in text.split(","):
        if not part:
            raise InvalidCronExpressionError(f"Empty entry in {field} field: {text!r}")

        step = 1
        if "/" in part:
            part, step_text = part.split("/", 1)
            if not step_text.isdigit() or int(step_text) == 0:
                raise InvalidCronExpressionError(f"Invalid step in {field} field: {text!r}")
            step = int(step_text)

        if part == "*":
            start, end = lo, hi
        elif "-" in part:
            start_text, end_text = part.split("-", 1)
            start = _parse_int(start_text, field, lo, hi)
            end = _parse_int(end_text, field, lo, hi)
            if start > end:
                raise InvalidCronExpressionError(f"Backwards range in {field} field: {part!r}")
        else:
            start = _parse_int(part, field, lo, hi)
            # "5/15" means every 15 starting at 5
            end = hi if step > 1 else start

        values.update(range(start, end + 1, step))
    return frozenset(values)


@dataclass(frozen=True)
class CronExpression:
    """A parsed cron expression."""
    expression: str
    minutes: FrozenSet[int]
    hours: FrozenSet[int]
    days: FrozenSet[int]
    months: FrozenSet[int]
    weekdays: FrozenSet[int]

    @classmethod
    def parse(cls, expression: str) -> "CronExpression":
        """
        Parse a cron expression or alias.

        Raises:
            InvalidCronExpressionError: wrong field count or bad field
        """
        if not isinstance(expression, str):
            raise InvalidCronExpressionError(f"Cron expression must be a string, got {expression!r}")

        text = expression.strip()
        text = ALIASES.get(text.lower(), text)
        parts = text.split()
        if len(parts) != len(FIELDS):
            raise InvalidCronExpressionError(
                f"Cron expression needs {len(FIELDS)} fields, got {len(parts)}: {expression!r}"
            )

        sets = [_parse_field(p, name, lo, hi) for p, (name, lo, hi) in zip(parts, FIELDS)]
        return cls(expression.strip(), *sets)

    @staticmethod
    def is_valid(expression: str) -> bool:
        try:
            CronExpression.parse(expression)
        except InvalidCronExpressionError:
            return False
        return True

    def matches(self, when: datetime) -> bool:
        """Whether the minute containing `when` is a scheduled minute."""
        # datetime.weekday(): Monday = 0; cron: Sunday = 0
        weekday = (when.weekday() + 1) % 7
        return (
            when.minute in self.minutes
            and when.hour in self.hours
            and when.day in self.days
            and when.month in self.months
            and weekday in self.weekdays
        )

    def next_run(self, after: datetime) -> datetime:
        """
        First scheduled minute strictly after `after`.

        Raises:
            InvalidCronExpressionError: the expression never matches
                (e.g. February 30th)
        """
        current = after.replace(second=0, microsecond=0) + timedelta(minutes=1)
        limit_year = current.year + _SEARCH_YEARS

        while current.year <= limit_year:
            if current.month not in self.months:
                # Jump to the 1st of next month
                year = current.year + (current.month // 12)
                month = current.month % 12 + 1
                current = current.replace(year=year, month=month, day=1, hour=0, minute=0)
                continue
            if not self._day_matches(current):
                current = (current + timedelta(days=1)).replace(hour=0, minute=0)
                continue
            if current.hour not in self.hours:
                current = (current + timedelta(hours=1)).replace(minute=0)
                continue
            if current.minute not in self.minutes:
                current += timedelta(minutes=1)
                continue
            return current

        raise InvalidCronExpressionError(f"Cron expression never matches: {self.expression!r}")

    def is_due(self, last_run: datetime, now: Optional[datetime] = None) -> bool:
        """Whether a scheduled minute has passed since last_run."""
        now = now or utc_now()
        try:
            return self.next_run(last_run) <= now
        except InvalidCronExpressionError:
            return False

    def _day_matches(self, when: datetime) -> bool:
        return when.day in self.days and (when.weekday() + 1) % 7 in self.weekdays

    def __str__(self) -> str:
        return self.expression
