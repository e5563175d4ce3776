"""Execution lifecycle: resolve-or-create, pause, resume and finish."""

import logging
from datetime import UTC, datetime

from src.core.config import constants
from src.core.errors import ConflictError, InvalidTransitionError
from src.core.logging import log_with_execution_context, span
from src.domain.execution import ExecutionRecord, ExecutionState
from src.services import routine_repository


logger = logging.getLogger(__name__)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(UTC)


def format_duration(seconds: int | float | None) -> str:
    """Format a number of seconds as HH:MM:SS (hours are not capped at 24)."""
    total = max(int(seconds or 0), 0)
    hours, remainder = divmod(total, constants.SECONDS_PER_HOUR)
    minutes, secs = divmod(remainder, constants.SECONDS_PER_MINUTE)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def elapsed_seconds(execution: ExecutionRecord, now: datetime | None = None) -> int:
    """Seconds to show on the elapsed clock.

    Running executions count up to now, paused ones freeze at the pause instant,
    finished ones show their recorded total.
    """
    state = execution.state
    if state == ExecutionState.FINISHED:
        return execution.total_duration_seconds or 0
    end = execution.paused_at if state == ExecutionState.PAUSED else _now(now)
    return max(int((end - execution.started_at).total_seconds()), 0)


async def get_execution(*, execution_id: str) -> ExecutionRecord:
    """Fetch an execution.

    Raises:
        NotFoundError: If the execution does not exist
    """
    return await routine_repository.get_execution(execution_id=execution_id)


async def list_history(*, routine_id: str, executor_id: str | None = None) -> list[ExecutionRecord]:
    """List a routine's executions, most recently started first."""
    with span("execution_service.list_history"):
        return await routine_repository.list_executions_for_routine(routine_id=routine_id, executor_id=executor_id)


async def resolve_or_create(
    *,
    routine_id: str,
    executor_id: str,
    now: datetime | None = None,
) -> ExecutionRecord:
    """Return the executor's open execution of a routine, creating one if needed.

    A new execution starts RUNNING at ``now``. If another caller creates the open
    execution first, the repository rejects the second insert and the record that
    won is returned instead.

    Args:
        routine_id: Routine being executed
        executor_id: Person executing it
        now: Start instant for a new execution (defaults to current UTC time)

    Returns:
        The open (RUNNING or PAUSED) execution

    Raises:
        NotFoundError: If the routine does not exist
        RepositoryError: If the backend fails
    """
    with span("execution_service.resolve_or_create"):
        await routine_repository.get_routine(routine_id=routine_id)

        existing = await routine_repository.find_open_execution(routine_id=routine_id, executor_id=executor_id)
        if existing:
            return existing

        try:
            execution = await routine_repository.create_execution(
                routine_id=routine_id,
                executor_id=executor_id,
                started_at=_now(now),
            )
        except ConflictError:
            # Lost the race against a concurrent opener
            winner = await routine_repository.find_open_execution(routine_id=routine_id, executor_id=executor_id)
            if winner is None:
                raise
            log_with_execution_context(
                logger, "info", "Reusing execution created concurrently", execution_id=winner.id
            )
            return winner

        log_with_execution_context(
            logger,
            "info",
            "Execution started",
            execution_id=execution.id,
            routine_id=routine_id,
            executor_id=executor_id,
        )
        return execution


def _reject(execution: ExecutionRecord, action: str) -> None:
    msg = f"Cannot {action}: execution {execution.id} is {execution.state}"
    raise InvalidTransitionError(msg)


async def pause(*, execution_id: str, now: datetime | None = None) -> ExecutionRecord:
    """Pause a running execution.

    Pausing an already paused execution returns it unchanged.

    Raises:
        InvalidTransitionError: If the execution is finished
        NotFoundError: If the execution does not exist
    """
    with span("execution_service.pause"):
        execution = await routine_repository.get_execution(execution_id=execution_id)
        if execution.state == ExecutionState.PAUSED:
            return execution
        if execution.state != ExecutionState.RUNNING:
            _reject(execution, "pause")

        updated = await routine_repository.update_execution(execution_id=execution_id, data={"paused_at": _now(now)})
        log_with_execution_context(logger, "info", "Execution paused", execution_id=execution_id)
        return updated


async def resume(*, execution_id: str) -> ExecutionRecord:
    """Resume a paused execution.

    Raises:
        InvalidTransitionError: If the execution is running or finished
        NotFoundError: If the execution does not exist
    """
    with span("execution_service.resume"):
        execution = await routine_repository.get_execution(execution_id=execution_id)
        if execution.state != ExecutionState.PAUSED:
            _reject(execution, "resume")

        updated = await routine_repository.update_execution(execution_id=execution_id, data={"paused_at": None})
        log_with_execution_context(logger, "info", "Execution resumed", execution_id=execution_id)
        return updated


async def finish(*, execution_id: str, notes: str | None = None, now: datetime | None = None) -> ExecutionRecord:
    """Finish a running or paused execution.

    The total duration is the wall-clock time between start and finish; paused
    intervals are included.

    Raises:
        InvalidTransitionError: If the execution is already finished
        NotFoundError: If the execution does not exist
    """
    with span("execution_service.finish"):
        execution = await routine_repository.get_execution(execution_id=execution_id)
        if execution.state == ExecutionState.FINISHED:
            _reject(execution, "finish")

        finished_at = _now(now)
        total = max(int((finished_at - execution.started_at).total_seconds()), 0)
        cleaned_notes = notes.strip() if notes and notes.strip() else None

        updated = await routine_repository.update_execution(
            execution_id=execution_id,
            data={
                "finished_at": finished_at,
                "total_duration_seconds": total,
                "notes": cleaned_notes,
            },
        )
        log_with_execution_context(
            logger,
            "info",
            "Execution finished",
            execution_id=execution_id,
            total_duration=format_duration(total),
        )
        return updated
