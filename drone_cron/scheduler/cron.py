"""Translate cron expressions into APScheduler triggers.

Accepted forms:

- 6 fields: ``second minute hour day month day_of_week``
- 5 fields: ``second minute hour day month`` (any day of the week)
- descriptors: ``@yearly @annually @monthly @weekly @daily @midnight @hourly``
- ``@every <duration>`` with Go-style durations such as ``90s`` or ``1h30m``

Day of week counts from Sunday (0-6, or SUN-SAT). APScheduler counts from
Monday, so the field is rewritten as explicit weekday names.

When both day fields are restricted a day matching either one fires, as in
classic cron. APScheduler requires both to match, so such schedules become
an OrTrigger of a day-of-month trigger and a day-of-week trigger.
"""

import re
from typing import Dict, List, Union

from apscheduler.triggers.combining import OrTrigger
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from drone_cron.cli.error_handler import SchedulerError

ScheduleTrigger = Union[CronTrigger, IntervalTrigger, OrTrigger]

DESCRIPTORS: Dict[str, str] = {
    "@yearly": "0 0 0 1 1 *",
    "@annually": "0 0 0 1 1 *",
    "@monthly": "0 0 0 1 * *",
    "@weekly": "0 0 0 * * 0",
    "@daily": "0 0 0 * * *",
    "@midnight": "0 0 0 * * *",
    "@hourly": "0 0 * * * *",
}

_WEEKDAYS = ["sun", "mon", "tue", "wed", "thu", "fri", "sat"]

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")


class ScheduleError(SchedulerError, ValueError):
    """Raised for a schedule expression the scheduler cannot use."""

    def __init__(self, schedule: str, reason: str) -> None:
        super().__init__(f"Invalid cron schedule '{schedule}': {reason}", details={"schedule": schedule})
        self.schedule = schedule
        self.reason = reason


def parse_schedule(schedule: str, timezone: str = "UTC") -> ScheduleTrigger:
    """Parse a schedule expression into a trigger.

    Args:
        schedule: Cron expression, descriptor or ``@every`` interval
        timezone: Timezone the cron fields are evaluated in

    Returns:
        CronTrigger, OrTrigger or IntervalTrigger

    Raises:
        ScheduleError: If the expression is malformed
    """
    expression = schedule.strip()
    if not expression:
        raise ScheduleError(schedule, "empty expression")

    if expression.startswith("@every"):
        seconds = parse_duration(expression[len("@every"):].strip(), schedule)
        return IntervalTrigger(seconds=seconds, timezone=timezone)

    if expression.startswith("@"):
        try:
            expression = DESCRIPTORS[expression.lower()]
        except KeyError:
            raise ScheduleError(schedule, f"unrecognized descriptor {expression}") from None

    parts = expression.split()
    if len(parts) == 5:
        parts = parts + ["*"]
    elif len(parts) != 6:
        raise ScheduleError(
            schedule,
            "expected 5 or 6 parts (second minute hour day month "
            "or second minute hour day month weekday)",
        )

    second, minute, hour, day, month, weekday = parts
    if day == "?":
        day = "*"
    try:
        fields = {
            "second": second,
            "minute": minute,
            "hour": hour,
            "month": month,
            "timezone": timezone,
        }
        day_of_week = translate_day_of_week(weekday)
        if _restricts_days(day) and _restricts_days(weekday):
            return OrTrigger([
                CronTrigger(day=day, day_of_week="*", **fields),
                CronTrigger(day="*", day_of_week=day_of_week, **fields),
            ])
        return CronTrigger(day=day, day_of_week=day_of_week, **fields)
    except ScheduleError as e:
        raise ScheduleError(schedule, e.reason) from e
    except ValueError as e:
        raise ScheduleError(schedule, str(e)) from e


def parse_duration(value: str, schedule: str = "") -> int:
    """Parse a Go-style duration into whole seconds (at least one)."""
    text = value.strip()
    if not text:
        raise ScheduleError(schedule or value, "@every needs a duration")

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(text):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(text):
        raise ScheduleError(schedule or value, f"invalid duration {value!r}")
    if total <= 0:
        raise ScheduleError(schedule or value, f"duration must be positive, got {value!r}")

    return max(int(total), 1)


def translate_day_of_week(field: str) -> str:
    """Rewrite a Sunday-based day-of-week field as APScheduler weekday names."""
    if field in ("*", "?"):
        return "*"

    days: List[int] = []
    for token in field.split(","):
        days.extend(_expand_weekday_token(token, field))

    ordered = sorted(set(days), key=lambda d: (d + 6) % 7)
    return ",".join(_WEEKDAYS[d] for d in ordered)


def _expand_weekday_token(token: str, field: str) -> List[int]:
    step = 1
    if "/" in token:
        token, _, step_text = token.partition("/")
        if not step_text.isdigit() or int(step_text) == 0:
            raise ScheduleError(field, f"invalid day-of-week step {step_text!r}")
        step = int(step_text)
        if "-" not in token and token not in ("*", "?"):
            # "n/step" runs from n to the end of the week
            token = f"{token}-6"

    if token in ("*", "?"):
        first, last = 0, 6
    elif "-" in token:
        start_text, _, end_text = token.partition("-")
        first, last = _weekday_number(start_text, field), _weekday_number(end_text, field)
    else:
        first = last = _weekday_number(token, field)

    if first > last:
        raise ScheduleError(field, f"day-of-week range {token!r} runs backwards")
    # 7 is an alias for Sunday
    return [day % 7 for day in range(first, last + 1, step)]


def _weekday_number(text: str, field: str) -> int:
    value = text.strip().lower()
    if value in _WEEKDAYS:
        return _WEEKDAYS.index(value)
    if value.isdigit() and 0 <= int(value) <= 7:
        return int(value)
    raise ScheduleError(field, f"invalid day-of-week value {text!r}")


def _restricts_days(field: str) -> bool:
    """Whether a day field excludes some days (``*``, ``?`` and ``*/1`` do not)."""
    for part in field.split(","):
        base, _, step = part.partition("/")
        if base in ("*", "?") and step in ("", "1"):
            return False
    return True
