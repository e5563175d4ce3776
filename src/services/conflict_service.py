"""Conflict detection for daily routines sharing a responsible person."""

import logging
from dataclasses import dataclass
from datetime import time

from src.core.config import constants
from src.core.logging import span
from src.domain.recurrence import DailyRecurrence
from src.domain.routine import RoutineDefinition, RoutineKind
from src.services import routine_repository


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TimeInterval:
    """Half-open interval on the 24-hour clock, in minutes since midnight."""

    start_minute: int
    duration_minutes: int

    @classmethod
    def from_time(cls, start: time, duration_minutes: int) -> "TimeInterval":
        return cls(start_minute=start.hour * 60 + start.minute, duration_minutes=duration_minutes)

    def segments(self) -> list[tuple[int, int]]:
        """Split the interval at midnight into non-wrapping [start, end) pieces."""
        if self.duration_minutes <= 0:
            return []
        if self.duration_minutes >= constants.MINUTES_PER_DAY:
            return [(0, constants.MINUTES_PER_DAY)]

        start = self.start_minute % constants.MINUTES_PER_DAY
        end = start + self.duration_minutes
        if end <= constants.MINUTES_PER_DAY:
            return [(start, end)]
        return [(start, constants.MINUTES_PER_DAY), (0, end - constants.MINUTES_PER_DAY)]


def intervals_overlap(a: TimeInterval, b: TimeInterval) -> bool:
    """Check whether two daily intervals overlap.

    Touching intervals (one ends exactly when the other starts) do not overlap,
    and zero-length intervals never overlap anything.
    """
    return any(
        a_start < b_end and b_start < a_end
        for a_start, a_end in a.segments()
        for b_start, b_end in b.segments()
    )


def _is_checked(routine: RoutineDefinition) -> bool:
    return (
        routine.kind == RoutineKind.NORMAL
        and isinstance(routine.recurrence, DailyRecurrence)
        and routine.start_time is not None
    )


def find_conflicts(
    candidate: TimeInterval,
    existing: list[RoutineDefinition],
) -> list[RoutineDefinition]:
    """Return the existing timed daily routines whose interval overlaps the candidate."""
    return [
        routine
        for routine in existing
        if _is_checked(routine)
        and intervals_overlap(candidate, TimeInterval.from_time(routine.start_time, routine.duration_minutes))
    ]


async def has_conflict(
    *,
    responsible_id: str,
    candidate_start: time,
    candidate_duration_minutes: int,
) -> bool:
    """Check a new daily routine against the responsible person's daily schedule.

    Args:
        responsible_id: Person the candidate routine would be assigned to
        candidate_start: Candidate start time of day
        candidate_duration_minutes: Candidate duration in minutes

    Returns:
        True if any existing daily routine of the same person overlaps

    Raises:
        RepositoryError: If the existing routines cannot be read
    """
    with span("conflict_service.has_conflict"):
        existing = await routine_repository.list_daily_routines_for_responsible(responsible_id=responsible_id)
        candidate = TimeInterval.from_time(candidate_start, candidate_duration_minutes)
        conflicts = find_conflicts(candidate, existing)

        if conflicts:
            logger.info(
                "Daily schedule conflict for %s at %s (%d min): overlaps %s",
                responsible_id,
                candidate_start.strftime("%H:%M"),
                candidate_duration_minutes,
                [routine.id for routine in conflicts],
            )
        return bool(conflicts)
