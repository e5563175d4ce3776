"""Routine repository: persistence contract for routines, executions and their rows.

Every function goes through db_client and returns validated domain models, so no
loosely-typed rows leak past this module. Low-level failures are translated into
the engine's error taxonomy; nothing is retried here.
"""

import asyncio
import logging
from collections.abc import Awaitable
from datetime import UTC, date, datetime
from typing import Any, TypeVar

import pydantic
from dateutil import parser as dateutil_parser
from pydantic import BaseModel

from src.core import db_client
from src.core.config import constants, settings
from src.core.errors import ConflictError, EngineError, NotFoundError, RepositoryError, ValidationError
from src.core.recurrence import build_recurrence, normalize_periodicity, normalize_weekday
from src.domain.execution import Attachment, ChecklistCompletion, ExecutionRecord
from src.domain.recurrence import RecurrenceType
from src.domain.routine import ChecklistTemplateItem, Priority, RoutineDefinition, RoutineKind


logger = logging.getLogger(__name__)

T = TypeVar("T")
M = TypeVar("M", bound=BaseModel)


# Legacy column vocabulary -> current column names
LEGACY_ROUTINE_COLUMNS: dict[str, str] = {
    "titulo": "title",
    "descricao": "description",
    "tipo": "kind",
    "periodicidade": "recurrence",
    "data_inicio": "start_date",
    "dia_semana": "weekday",
    "horario_inicio": "start_time",
    "duracao_minutos": "duration_minutes",
    "urgencia": "priority",
    "tem_checklist": "checklist_enabled",
    "tem_anexo": "attachment_required",
    "criador_id": "creator_id",
    "responsavel_id": "responsible_id",
    "departamento_id": "department_id",
    "setor_id": "sector_id",
    "regional_id": "region_id",
}


def to_iso(value: datetime) -> str:
    """Serialize a timestamp as UTC ISO text with fixed precision so it sorts as text."""
    return value.astimezone(UTC).isoformat(timespec="microseconds")


async def _call(operation: str, awaitable: Awaitable[T]) -> T:
    """Run a db_client call under the repository timeout and translate its errors."""
    try:
        return await asyncio.wait_for(awaitable, timeout=settings.repository_timeout_seconds)
    except db_client.RecordNotFoundError as e:
        raise NotFoundError(str(e)) from e
    except db_client.UniqueConstraintError as e:
        raise ConflictError(f"{operation} violated a uniqueness constraint: {e}") from e
    except TimeoutError as e:
        logger.error("repository_timeout", extra={"operation": operation})
        msg = f"{operation} timed out after {settings.repository_timeout_seconds}s"
        raise RepositoryError(msg) from e
    except db_client.DatabaseError as e:
        logger.error("repository_failure", extra={"operation": operation, "error": str(e)})
        raise RepositoryError(f"{operation} failed: {e}") from e


async def _list_all(
    operation: str,
    *,
    collection: str,
    filter_query: str = "",
    sort: str = "+id",
) -> list[dict[str, Any]]:
    """Read every matching row, page by page, until a short page comes back."""
    records: list[dict[str, Any]] = []
    page = 1
    while True:
        batch = await _call(
            operation,
            db_client.list_records(
                collection=collection,
                filter_query=filter_query,
                sort=sort,
                per_page=constants.DEFAULT_PER_PAGE_LIMIT,
                page=page,
            ),
        )
        records.extend(batch)
        if len(batch) < constants.DEFAULT_PER_PAGE_LIMIT:
            return records
        page += 1


def _validate(model: type[M], row: dict[str, Any]) -> M:
    """Validate a raw row into a domain model."""
    try:
        return model.model_validate(row)
    except pydantic.ValidationError as e:
        msg = f"Malformed {model.__name__} row {row.get('id')}: {e}"
        raise RepositoryError(msg) from e


def _routine_from_row(row: dict[str, Any]) -> RoutineDefinition:
    """Rebuild the tagged recurrence from its columns and validate the routine."""
    try:
        start_date = date.fromisoformat(str(row["start_date"])[:10])
        recurrence = build_recurrence(
            RecurrenceType(row["recurrence"]),
            start_date=start_date,
            weekday=row.get("weekday"),
        )
    except (KeyError, ValueError, EngineError) as e:
        msg = f"Malformed routine row {row.get('id')}: {e}"
        raise RepositoryError(msg) from e

    payload = {key: value for key, value in row.items() if key not in ("recurrence", "weekday")}
    payload["recurrence"] = recurrence.model_dump()
    return _validate(RoutineDefinition, payload)


def normalize_legacy_routine_row(row: dict[str, Any]) -> dict[str, Any]:
    """Map a row using the legacy column names onto the current routine columns.

    Weekday values are normalized to Python numbering, legacy timestamps are cut
    down to their date, and ad-hoc routines are forced onto the one-off
    recurrence. Unknown keys are dropped.
    """
    normalized: dict[str, Any] = {}
    for key, value in row.items():
        target = LEGACY_ROUTINE_COLUMNS.get(key, key)
        if target in LEGACY_ROUTINE_COLUMNS.values():
            normalized[target] = value

    normalized["kind"] = normalized.get("kind") or RoutineKind.NORMAL
    normalized["priority"] = normalized.get("priority") or Priority.LOW
    if normalized["kind"] == RoutineKind.AD_HOC:
        normalized["recurrence"] = RecurrenceType.ONE_OFF
    else:
        recurrence = normalize_periodicity(normalized.get("recurrence"))
        if recurrence is None:
            msg = f"Unknown legacy periodicity: {normalized.get('recurrence')!r}"
            raise ValidationError(msg)
        normalized["recurrence"] = recurrence

    start_date = normalized.get("start_date")
    if isinstance(start_date, str):
        try:
            normalized["start_date"] = dateutil_parser.isoparse(start_date).date().isoformat()
        except ValueError as e:
            msg = f"Legacy routine {row.get('titulo')!r} has an invalid start date: {start_date!r}"
            raise ValidationError(msg) from e

    normalized["weekday"] = normalize_weekday(normalized.get("weekday"))
    if normalized["recurrence"] == RecurrenceType.WEEKLY and normalized["weekday"] is None:
        msg = f"Legacy weekly routine {row.get('titulo')!r} has no valid weekday"
        raise ValidationError(msg)
    for flag in ("checklist_enabled", "attachment_required"):
        normalized[flag] = bool(normalized.get(flag))
    return normalized


# ---------------------------------------------------------------------------
# Routines
# ---------------------------------------------------------------------------


async def create_routine(*, data: dict[str, Any]) -> RoutineDefinition:
    """Insert a routine row (current column vocabulary) and return the model."""
    record = await _call("create_routine", db_client.create_record(collection="routines", data=data))
    return _routine_from_row(record)


async def get_routine(*, routine_id: str) -> RoutineDefinition:
    """Fetch a routine by ID.

    Raises:
        NotFoundError: If the routine does not exist
    """
    record = await _call("get_routine", db_client.get_record(collection="routines", record_id=routine_id))
    return _routine_from_row(record)


async def list_routines(
    *,
    responsible_id: str | None = None,
    sector_id: str | None = None,
    department_id: str | None = None,
    region_id: str | None = None,
    recurrence: RecurrenceType | None = None,
) -> list[RoutineDefinition]:
    """List routines filtered by responsible person and/or org scope."""
    filters = []
    if responsible_id:
        filters.append(f'responsible_id = "{db_client.sanitize_param(responsible_id)}"')
    if sector_id:
        filters.append(f'sector_id = "{db_client.sanitize_param(sector_id)}"')
    if department_id:
        filters.append(f'department_id = "{db_client.sanitize_param(department_id)}"')
    if region_id:
        filters.append(f'region_id = "{db_client.sanitize_param(region_id)}"')
    if recurrence:
        filters.append(f'recurrence = "{recurrence}"')

    records = await _list_all(
        "list_routines",
        collection="routines",
        filter_query=" && ".join(filters),
        sort="+id",
    )
    return [_routine_from_row(record) for record in records]


async def list_daily_routines_for_responsible(*, responsible_id: str) -> list[RoutineDefinition]:
    """List the daily routines a person is responsible for."""
    return await list_routines(responsible_id=responsible_id, recurrence=RecurrenceType.DAILY)


# ---------------------------------------------------------------------------
# Checklist templates
# ---------------------------------------------------------------------------


async def create_checklist_items(*, routine_id: str, texts: list[str]) -> list[ChecklistTemplateItem]:
    """Insert checklist template items for a routine, numbering them from 1.

    Rows are inserted one by one; a failure part-way leaves earlier rows in place.
    """
    items = []
    for position, text in enumerate(texts, start=1):
        record = await _call(
            "create_checklist_item",
            db_client.create_record(
                collection="checklist_items",
                data={"routine_id": routine_id, "position": position, "text": text},
            ),
        )
        items.append(_validate(ChecklistTemplateItem, record))
    return items


async def list_checklist_items(*, routine_id: str) -> list[ChecklistTemplateItem]:
    """List a routine's template items in order."""
    records = await _list_all(
        "list_checklist_items",
        collection="checklist_items",
        filter_query=f'routine_id = "{db_client.sanitize_param(routine_id)}"',
        sort="+position",
    )
    return [_validate(ChecklistTemplateItem, record) for record in records]


# ---------------------------------------------------------------------------
# Executions
# ---------------------------------------------------------------------------


async def create_execution(*, routine_id: str, executor_id: str, started_at: datetime) -> ExecutionRecord:
    """Insert a running execution.

    Raises:
        ConflictError: If the executor already has an open execution of the routine
    """
    record = await _call(
        "create_execution",
        db_client.create_record(
            collection="executions",
            data={"routine_id": routine_id, "executor_id": executor_id, "started_at": to_iso(started_at)},
        ),
    )
    return _validate(ExecutionRecord, record)


async def get_execution(*, execution_id: str) -> ExecutionRecord:
    """Fetch an execution by ID.

    Raises:
        NotFoundError: If the execution does not exist
    """
    record = await _call("get_execution", db_client.get_record(collection="executions", record_id=execution_id))
    return _validate(ExecutionRecord, record)


async def find_open_execution(*, routine_id: str, executor_id: str) -> ExecutionRecord | None:
    """Return the most recently started non-terminal execution, if any."""
    record = await _call(
        "find_open_execution",
        db_client.get_first_record(
            collection="executions",
            filter_query=(
                f'routine_id = "{db_client.sanitize_param(routine_id)}" && '
                f'executor_id = "{db_client.sanitize_param(executor_id)}" && '
                "finished_at = null"
            ),
            sort="-started_at,-id",
        ),
    )
    return _validate(ExecutionRecord, record) if record else None


async def update_execution(*, execution_id: str, data: dict[str, Any]) -> ExecutionRecord:
    """Write lifecycle fields of an execution and return the stored record."""
    payload = {key: to_iso(value) if isinstance(value, datetime) else value for key, value in data.items()}
    record = await _call(
        "update_execution",
        db_client.update_record(collection="executions", record_id=execution_id, data=payload),
    )
    return _validate(ExecutionRecord, record)


async def list_executions_for_routine(*, routine_id: str, executor_id: str | None = None) -> list[ExecutionRecord]:
    """List a routine's executions, most recently started first."""
    filters = [f'routine_id = "{db_client.sanitize_param(routine_id)}"']
    if executor_id:
        filters.append(f'executor_id = "{db_client.sanitize_param(executor_id)}"')

    records = await _list_all(
        "list_executions_for_routine",
        collection="executions",
        filter_query=" && ".join(filters),
        sort="-started_at,-id",
    )
    return [_validate(ExecutionRecord, record) for record in records]


# ---------------------------------------------------------------------------
# Checklist completions
# ---------------------------------------------------------------------------


async def create_completion(*, execution_id: str, item_id: str, done: bool = False) -> ChecklistCompletion:
    """Insert the done flag of one template item for one execution."""
    record = await _call(
        "create_completion",
        db_client.create_record(
            collection="checklist_completions",
            data={"execution_id": execution_id, "item_id": item_id, "done": done},
        ),
    )
    return _validate(ChecklistCompletion, record)


async def list_completions(*, execution_id: str) -> list[ChecklistCompletion]:
    """List the completion rows of an execution."""
    records = await _list_all(
        "list_completions",
        collection="checklist_completions",
        filter_query=f'execution_id = "{db_client.sanitize_param(execution_id)}"',
    )
    return [_validate(ChecklistCompletion, record) for record in records]


async def update_completion(*, completion_id: str, done: bool) -> ChecklistCompletion:
    """Set the done flag of a completion row."""
    record = await _call(
        "update_completion",
        db_client.update_record(collection="checklist_completions", record_id=completion_id, data={"done": done}),
    )
    return _validate(ChecklistCompletion, record)


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


async def create_attachment(*, execution_id: str, url: str, filename: str, created_at: datetime) -> Attachment:
    """Insert attachment metadata."""
    record = await _call(
        "create_attachment",
        db_client.create_record(
            collection="attachments",
            data={
                "execution_id": execution_id,
                "url": url,
                "filename": filename,
                "created_at": to_iso(created_at),
            },
        ),
    )
    return _validate(Attachment, record)


async def list_attachments(*, execution_id: str) -> list[Attachment]:
    """List an execution's attachments, newest first."""
    records = await _list_all(
        "list_attachments",
        collection="attachments",
        filter_query=f'execution_id = "{db_client.sanitize_param(execution_id)}"',
        sort="-created_at,-id",
    )
    return [_validate(Attachment, record) for record in records]
