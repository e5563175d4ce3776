"""Recurrence evaluation utilities for routine scheduling."""

import calendar
import unicodedata
from datetime import date, time, timedelta

from croniter import croniter

from src.core.config import ShortMonthPolicy, constants
from src.core.errors import ValidationError
from src.domain.recurrence import (
    DailyRecurrence,
    MonthlyRecurrence,
    OneOffRecurrence,
    Recurrence,
    RecurrenceType,
    WeeklyRecurrence,
)
from src.domain.routine import RoutineKind


# Periodicity words accepted from forms and legacy rows
_PERIODICITY_ALIASES: dict[str, RecurrenceType] = {
    "diaria": RecurrenceType.DAILY,
    "daily": RecurrenceType.DAILY,
    "semanal": RecurrenceType.WEEKLY,
    "weekly": RecurrenceType.WEEKLY,
    "mensal": RecurrenceType.MONTHLY,
    "monthly": RecurrenceType.MONTHLY,
    "avulsa": RecurrenceType.ONE_OFF,
    "one-off": RecurrenceType.ONE_OFF,
    "once": RecurrenceType.ONE_OFF,
}

# Name prefixes mapped to Python weekday numbers (0=Monday)
_WEEKDAY_PREFIXES: list[tuple[str, int]] = [
    ("segunda", 0),
    ("terca", 1),
    ("quarta", 2),
    ("quinta", 3),
    ("sexta", 4),
    ("sabado", 5),
    ("domingo", 6),
    ("mon", 0),
    ("tue", 1),
    ("wed", 2),
    ("thu", 3),
    ("fri", 4),
    ("sat", 5),
    ("sun", 6),
]

_WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def _fold(text: str) -> str:
    """Lowercase and strip accents ("Terça-feira" -> "terca-feira")."""
    decomposed = unicodedata.normalize("NFD", text.strip().lower())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def normalize_weekday(value: str | int | None) -> int | None:
    """Convert a stored or submitted weekday into a Python weekday number.

    Numbers follow the creation forms' numbering, 1=Sunday, 2=Monday ... 7=Saturday.
    Names may be Portuguese or English, with or without accents and "-feira".

    Returns:
        0 (Monday) to 6 (Sunday), or None when the value is not recognised
    """
    if value is None or isinstance(value, bool):
        return None

    text = _fold(str(value))
    if text.isdigit():
        number = int(text)
        if 1 <= number <= 7:  # noqa: PLR2004
            return (number - 2) % 7
        return None

    for prefix, weekday in _WEEKDAY_PREFIXES:
        if text.startswith(prefix):
            return weekday
    return None


def normalize_periodicity(value: str | None) -> RecurrenceType | None:
    """Map a periodicity word (any case or accents) to its recurrence type, or None."""
    if not value:
        return None
    return _PERIODICITY_ALIASES.get(_fold(value))


def build_recurrence(
    recurrence_type: RecurrenceType,
    *,
    start_date: date,
    weekday: int | None = None,
) -> Recurrence:
    """Assemble a descriptor from already-normalized values.

    Raises:
        ValidationError: If a weekly routine has no weekday
    """
    if recurrence_type == RecurrenceType.DAILY:
        return DailyRecurrence()
    if recurrence_type == RecurrenceType.WEEKLY:
        if weekday is None:
            msg = "Weekly routines need a weekday"
            raise ValidationError(msg)
        return WeeklyRecurrence(weekday=weekday)
    if recurrence_type == RecurrenceType.MONTHLY:
        return MonthlyRecurrence(day_of_month=start_date.day)
    return OneOffRecurrence(due_date=start_date)


def parse_recurrence(
    *,
    kind: RoutineKind,
    periodicity: str,
    start_date: date,
    weekday: str | int | None = None,
) -> Recurrence:
    """Parse creation-form values into a recurrence descriptor.

    Ad-hoc routines are always one-off on their start date, whatever periodicity
    the form carried.

    Args:
        kind: normal or avulsa
        periodicity: diaria/semanal/mensal/avulsa (or daily/weekly/monthly/once)
        start_date: Routine start date
        weekday: Weekday for weekly routines (number or name)

    Returns:
        The matching descriptor

    Raises:
        ValidationError: If the periodicity is unknown or a weekly weekday is missing
    """
    if kind == RoutineKind.AD_HOC:
        return OneOffRecurrence(due_date=start_date)

    recurrence_type = normalize_periodicity(periodicity)
    if recurrence_type is None:
        msg = f"Invalid periodicity: {periodicity}. Use diaria, semanal, mensal or avulsa"
        raise ValidationError(msg)

    normalized_weekday = normalize_weekday(weekday)
    if recurrence_type == RecurrenceType.WEEKLY and normalized_weekday is None:
        msg = f"Weekly routines need a valid weekday, got {weekday!r}"
        raise ValidationError(msg)

    return build_recurrence(recurrence_type, start_date=start_date, weekday=normalized_weekday)


def _monthly_due(reference_date: date, anchor_day: int, policy: ShortMonthPolicy) -> bool:
    """Check the day-of-month rule, applying the short-month policy."""
    last_day = calendar.monthrange(reference_date.year, reference_date.month)[1]
    if anchor_day <= last_day:
        return reference_date.day == anchor_day
    if policy == ShortMonthPolicy.CLAMP:
        return reference_date.day == last_day
    return False


def is_due(
    recurrence: Recurrence | None,
    reference_date: date,
    routine_start_date: date,
    *,
    short_month_policy: ShortMonthPolicy = ShortMonthPolicy.CLAMP,
) -> bool:
    """Decide whether a routine is due on a calendar date.

    - Daily: every date on or after the start date.
    - Weekly: the descriptor's weekday, on or after the start date.
    - Monthly: the start date's day of month, on or after the start date. When the
      month has no such day the short-month policy decides (clamp to the last day,
      or skip the month).
    - One-off: only its own date.

    Never raises; a missing or malformed descriptor is simply not due.
    """
    if isinstance(recurrence, OneOffRecurrence):
        return reference_date == recurrence.due_date

    if reference_date < routine_start_date:
        return False

    if isinstance(recurrence, DailyRecurrence):
        return True
    if isinstance(recurrence, WeeklyRecurrence):
        return reference_date.weekday() == recurrence.weekday
    if isinstance(recurrence, MonthlyRecurrence):
        return _monthly_due(reference_date, routine_start_date.day, short_month_policy)

    return False


def count_occurrences(
    recurrence: Recurrence | None,
    routine_start_date: date,
    window_start: date,
    window_end: date,
    *,
    short_month_policy: ShortMonthPolicy = ShortMonthPolicy.CLAMP,
) -> int:
    """Count the due dates inside an inclusive window (planned occurrences)."""
    if window_end < window_start:
        return 0

    count = 0
    day = window_start
    while day <= window_end:
        if is_due(recurrence, day, routine_start_date, short_month_policy=short_month_policy):
            count += 1
        day += timedelta(days=1)
    return count


def next_due_date(
    recurrence: Recurrence | None,
    routine_start_date: date,
    after: date,
    *,
    short_month_policy: ShortMonthPolicy = ShortMonthPolicy.CLAMP,
) -> date | None:
    """Return the first due date on or after ``after``, or None if there is none."""
    if isinstance(recurrence, OneOffRecurrence):
        return recurrence.due_date if recurrence.due_date >= after else None

    day = max(after, routine_start_date)
    for _ in range(constants.MAX_RECURRENCE_LOOKAHEAD_DAYS):
        if is_due(recurrence, day, routine_start_date, short_month_policy=short_month_policy):
            return day
        day += timedelta(days=1)
    return None


def to_cron(recurrence: Recurrence, *, start_date: date, start_time: time | None = None) -> str | None:
    """Express a repeating descriptor as a CRON expression.

    One-off routines have no CRON form and return None. The cron day-of-week
    field counts from Sunday, so Python weekdays are shifted by one.
    """
    at = start_time or time(0, 0)
    prefix = f"{at.minute} {at.hour}"

    if isinstance(recurrence, DailyRecurrence):
        expr = f"{prefix} * * *"
    elif isinstance(recurrence, WeeklyRecurrence):
        expr = f"{prefix} * * {(recurrence.weekday + 1) % 7}"
    elif isinstance(recurrence, MonthlyRecurrence):
        expr = f"{prefix} {start_date.day} * *"
    else:
        return None

    if not croniter.is_valid(expr):
        msg = f"Invalid recurrence pattern: {expr}"
        raise ValidationError(msg)
    return expr


def _time_phrase(hour: int, minute: int) -> str:
    """Render " at 8:30 AM" style suffixes."""
    if hour == 0 and minute == 0:
        return " at midnight"
    if hour == 12 and minute == 0:  # noqa: PLR2004
        return " at noon"
    period = "AM" if hour < 12 else "PM"  # noqa: PLR2004
    display_hour = hour if hour <= 12 else hour - 12  # noqa: PLR2004
    if display_hour == 0:
        display_hour = 12
    return f" at {display_hour}:{minute:02d} {period}"


def cron_to_human(cron_expr: str) -> str:
    """Convert a CRON expression to human-readable text.

    Args:
        cron_expr: CRON expression (e.g., "0 12 * * 1")

    Returns:
        Human-readable description (e.g., "every Monday at noon")
    """
    parts = cron_expr.split()
    if len(parts) != 5:  # noqa: PLR2004
        return cron_expr

    minute, hour, day_of_month, month, day_of_week = parts
    time_str = _time_phrase(int(hour), int(minute)) if hour.isdigit() and minute.isdigit() else ""

    if day_of_week == "*" and day_of_month == "*" and month == "*":
        return f"daily{time_str}"

    if day_of_month == "*" and month == "*" and day_of_week.isdigit():
        # cron counts from Sunday, the names list from Monday
        return f"every {_WEEKDAY_NAMES[(int(day_of_week) - 1) % 7]}{time_str}"

    if day_of_week == "*" and month == "*" and day_of_month.isdigit():
        dom = int(day_of_month)
        suffix = "th"
        if dom in (1, 21, 31):
            suffix = "st"
        elif dom in (2, 22):
            suffix = "nd"
        elif dom in (3, 23):
            suffix = "rd"
        return f"monthly on the {dom}{suffix}{time_str}"

    return f"scheduled ({cron_expr})"


def describe_recurrence(recurrence: Recurrence, *, start_date: date, start_time: time | None = None) -> str:
    """Human-readable schedule line for a routine."""
    if isinstance(recurrence, OneOffRecurrence):
        suffix = _time_phrase(start_time.hour, start_time.minute) if start_time else ""
        return f"once on {recurrence.due_date.isoformat()}{suffix}"

    cron_expr = to_cron(recurrence, start_date=start_date, start_time=start_time)
    description = cron_to_human(cron_expr) if cron_expr else "unscheduled"
    if start_time is None:
        # The cron form needs a time; drop the synthetic midnight
        description = description.replace(" at midnight", "")
    return description
