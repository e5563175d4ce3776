"""Routine service: creation with conflict checks, checklist templates and the daily agenda."""

import logging
from datetime import UTC, date, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from src.core.config import ShortMonthPolicy, settings
from src.core.errors import ConflictError, RepositoryError, ScheduleConflictError, ValidationError
from src.core.logging import span
from src.core.recurrence import describe_recurrence, is_due, normalize_periodicity, parse_recurrence
from src.domain.execution import ExecutionRecord
from src.domain.recurrence import RecurrenceType, WeeklyRecurrence
from src.domain.routine import ChecklistTemplateItem, RoutineCreate, RoutineDefinition, RoutineKind
from src.services import conflict_service, routine_repository


logger = logging.getLogger(__name__)


class RoutineCreationStatus(StrEnum):
    """Outcome of a routine creation."""

    CREATED = "CREATED"
    CREATED_WITHOUT_CHECKLIST = "CREATED_WITHOUT_CHECKLIST"  # Routine saved, checklist insert failed


class RoutineCreationResult(BaseModel):
    """Created routine plus the state of its checklist template."""

    status: RoutineCreationStatus
    routine: RoutineDefinition
    checklist_items: list[ChecklistTemplateItem] = Field(default_factory=list)
    checklist_error: str | None = None


class AgendaEntry(BaseModel):
    """A routine due on the agenda date, with its latest execution that day."""

    routine: RoutineDefinition
    schedule: str
    latest_execution: ExecutionRecord | None = None


class Agenda(BaseModel):
    """Routines due on one date; timed ones sorted by start time."""

    agenda_date: date
    timed: list[AgendaEntry] = Field(default_factory=list)
    untimed: list[AgendaEntry] = Field(default_factory=list)


def build_checklist_template(texts: list[str]) -> list[str]:
    """Normalize checklist step texts in their submitted order.

    Positions are assigned 1..n when the rows are inserted, so the order of the
    returned list is the template order.

    Raises:
        ValidationError: If a step text is blank
    """
    template = []
    for index, text in enumerate(texts, start=1):
        stripped = text.strip()
        if not stripped:
            msg = f"Checklist item {index} is blank"
            raise ValidationError(msg)
        template.append(stripped)
    return template


def _validate(payload: RoutineCreate) -> None:
    if not payload.title.strip():
        msg = "Title is required"
        raise ValidationError(msg)
    if payload.duration_minutes <= 0:
        msg = f"Duration must be positive, got {payload.duration_minutes} minutes"
        raise ValidationError(msg)
    is_one_off = (
        payload.kind == RoutineKind.AD_HOC or normalize_periodicity(payload.periodicity) == RecurrenceType.ONE_OFF
    )
    if is_one_off and payload.start_date is None:
        msg = "One-off and ad-hoc routines need a date"
        raise ValidationError(msg)


def _routine_row(payload: RoutineCreate, start_date: date) -> dict[str, Any]:
    recurrence = parse_recurrence(
        kind=payload.kind,
        periodicity=payload.periodicity,
        start_date=start_date,
        weekday=payload.weekday,
    )
    return {
        "title": payload.title.strip(),
        "description": payload.description.strip() if payload.description and payload.description.strip() else None,
        "kind": payload.kind,
        "recurrence": recurrence.type,
        "weekday": recurrence.weekday if isinstance(recurrence, WeeklyRecurrence) else None,
        "start_date": start_date.isoformat(),
        "start_time": payload.start_time.isoformat() if payload.start_time else None,
        "duration_minutes": payload.duration_minutes,
        "priority": payload.priority,
        "checklist_enabled": payload.checklist_enabled,
        "attachment_required": payload.attachment_required,
        "creator_id": payload.creator_id,
        "responsible_id": payload.responsible_id,
        "department_id": payload.department_id,
        "sector_id": payload.sector_id,
        "region_id": payload.region_id,
    }


async def create_routine(payload: RoutineCreate, *, today: date | None = None) -> RoutineCreationResult:
    """Validate, conflict-check and persist a new routine with its checklist template.

    Steps:
    1. Validate the payload (title, duration, dates, weekday, checklist texts)
    2. For normal daily routines with a start time, check the responsible
       person's daily schedule for overlaps
    3. Insert the routine
    4. Insert the checklist template when enabled

    The checklist insert is not rolled back together with the routine: if it
    fails the routine stays created and the result reports the checklist error.

    Args:
        payload: Creation form values
        today: Start date used when a recurring routine has none (defaults to today)

    Returns:
        Creation result with status, routine and template items

    Raises:
        ValidationError: If the payload is invalid
        ScheduleConflictError: If the routine overlaps an existing daily routine
        RepositoryError: If the routine row cannot be written
    """
    with span("routine_service.create_routine"):
        _validate(payload)
        start_date = payload.start_date or today or datetime.now(UTC).date()
        row = _routine_row(payload, start_date)
        checklist_texts = build_checklist_template(payload.checklist_items) if payload.checklist_enabled else []

        if row["kind"] == RoutineKind.NORMAL and row["recurrence"] == RecurrenceType.DAILY and payload.start_time:
            conflict = await conflict_service.has_conflict(
                responsible_id=payload.responsible_id,
                candidate_start=payload.start_time,
                candidate_duration_minutes=payload.duration_minutes,
            )
            if conflict:
                msg = (
                    f"Schedule conflict: {payload.responsible_id} already has a daily routine "
                    f"overlapping {payload.start_time.strftime('%H:%M')} for {payload.duration_minutes} minutes"
                )
                raise ScheduleConflictError(msg)

        routine = await routine_repository.create_routine(data=row)
        logger.info("Created routine %s (%s) for %s", routine.id, routine.title, routine.responsible_id)

        if not checklist_texts:
            return RoutineCreationResult(status=RoutineCreationStatus.CREATED, routine=routine)

        try:
            items = await routine_repository.create_checklist_items(routine_id=routine.id, texts=checklist_texts)
        except (RepositoryError, ConflictError) as e:
            logger.warning(
                "Routine created, checklist failed",
                extra={"routine_id": routine.id, "error": e.message},
            )
            return RoutineCreationResult(
                status=RoutineCreationStatus.CREATED_WITHOUT_CHECKLIST,
                routine=routine,
                checklist_error=e.message,
            )

        return RoutineCreationResult(status=RoutineCreationStatus.CREATED, routine=routine, checklist_items=items)


async def import_legacy_routines(rows: list[dict[str, Any]]) -> list[RoutineDefinition]:
    """Insert routine rows exported with the legacy column names.

    Imported rows describe an existing schedule, so they are not conflict-checked.
    """
    with span("routine_service.import_legacy_routines"):
        imported = []
        for row in rows:
            routine = await routine_repository.create_routine(
                data=routine_repository.normalize_legacy_routine_row(row),
            )
            imported.append(routine)
        logger.info("Imported %d legacy routines", len(imported))
        return imported


def describe_routine(routine: RoutineDefinition) -> str:
    """Human-readable schedule line, e.g. "every Monday at 8:00 AM (60 min)"."""
    schedule = describe_recurrence(routine.recurrence, start_date=routine.start_date, start_time=routine.start_time)
    return f"{schedule} ({routine.duration_minutes} min)"


async def _latest_execution_on(routine_id: str, reference_date: date) -> ExecutionRecord | None:
    executions = await routine_repository.list_executions_for_routine(routine_id=routine_id)
    for execution in executions:
        if execution.started_at.astimezone(UTC).date() == reference_date:
            return execution
    return None


async def get_agenda(
    reference_date: date,
    *,
    responsible_id: str | None = None,
    sector_id: str | None = None,
    department_id: str | None = None,
    region_id: str | None = None,
    short_month_policy: ShortMonthPolicy | None = None,
) -> Agenda:
    """Build the agenda of routines due on a date.

    Each entry carries the most recent execution started that day (UTC), if any.

    Args:
        reference_date: Agenda date
        responsible_id: Only routines of this person
        sector_id: Only routines of this sector
        department_id: Only routines of this department
        region_id: Only routines of this region
        short_month_policy: Overrides the configured monthly policy

    Returns:
        Agenda with timed entries sorted by start time and untimed entries apart
    """
    with span("routine_service.get_agenda"):
        policy = short_month_policy or settings.monthly_short_month_policy
        routines = await routine_repository.list_routines(
            responsible_id=responsible_id,
            sector_id=sector_id,
            department_id=department_id,
            region_id=region_id,
        )

        agenda = Agenda(agenda_date=reference_date)
        for routine in routines:
            if not is_due(routine.recurrence, reference_date, routine.start_date, short_month_policy=policy):
                continue
            entry = AgendaEntry(
                routine=routine,
                schedule=describe_routine(routine),
                latest_execution=await _latest_execution_on(routine.id, reference_date),
            )
            if routine.start_time is None:
                agenda.untimed.append(entry)
            else:
                agenda.timed.append(entry)

        agenda.timed.sort(key=lambda entry: entry.routine.start_time)
        agenda.untimed.sort(key=lambda entry: entry.routine.title.lower())

        logger.info(
            "Agenda for %s: %d timed, %d untimed",
            reference_date.isoformat(),
            len(agenda.timed),
            len(agenda.untimed),
        )
        return agenda
