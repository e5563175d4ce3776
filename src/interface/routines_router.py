"""HTTP surface for routines, executions, checklists and attachments."""

import logging
from datetime import UTC, date, datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel

from src.domain.execution import Attachment, ChecklistEntry, ExecutionRecord, ExecutionState
from src.domain.routine import RoutineCreate
from src.interface.blob_store import BlobStore, HttpBlobStore
from src.services import attachment_service, checklist_service, execution_service, routine_service


logger = logging.getLogger(__name__)

router = APIRouter(tags=["routines"])


class ExecutionView(BaseModel):
    """Execution with its derived state and elapsed clock."""

    execution: ExecutionRecord
    state: ExecutionState
    elapsed: str


class FinishRequest(BaseModel):
    notes: str | None = None


class ToggleResponse(BaseModel):
    item_id: str
    done: bool


def get_blob_store() -> BlobStore:
    """Blob store dependency (overridden in tests)."""
    return HttpBlobStore()


def _view(execution: ExecutionRecord) -> ExecutionView:
    return ExecutionView(
        execution=execution,
        state=execution.state,
        elapsed=execution_service.format_duration(execution_service.elapsed_seconds(execution)),
    )


@router.post("/routines", status_code=status.HTTP_201_CREATED)
async def create_routine(payload: RoutineCreate) -> routine_service.RoutineCreationResult:
    return await routine_service.create_routine(payload)


@router.get("/routines/agenda")
async def get_agenda(
    agenda_date: Annotated[date | None, Query(alias="date")] = None,
    responsible_id: str | None = None,
    sector_id: str | None = None,
    department_id: str | None = None,
    region_id: str | None = None,
) -> routine_service.Agenda:
    """Routines due on a date (today when omitted)."""
    return await routine_service.get_agenda(
        agenda_date or datetime.now(UTC).date(),
        responsible_id=responsible_id,
        sector_id=sector_id,
        department_id=department_id,
        region_id=region_id,
    )


@router.get("/routines/{routine_id}/executions")
async def list_history(routine_id: str, executor_id: str | None = None) -> list[ExecutionRecord]:
    return await execution_service.list_history(routine_id=routine_id, executor_id=executor_id)


@router.post("/routines/{routine_id}/executions/{executor_id}")
async def open_execution(routine_id: str, executor_id: str) -> ExecutionView:
    execution = await execution_service.resolve_or_create(routine_id=routine_id, executor_id=executor_id)
    return _view(execution)


@router.get("/executions/{execution_id}")
async def get_execution(execution_id: str) -> ExecutionView:
    return _view(await execution_service.get_execution(execution_id=execution_id))


@router.post("/executions/{execution_id}/pause")
async def pause_execution(execution_id: str) -> ExecutionView:
    return _view(await execution_service.pause(execution_id=execution_id))


@router.post("/executions/{execution_id}/resume")
async def resume_execution(execution_id: str) -> ExecutionView:
    return _view(await execution_service.resume(execution_id=execution_id))


@router.post("/executions/{execution_id}/finish")
async def finish_execution(execution_id: str, body: FinishRequest | None = None) -> ExecutionView:
    notes = body.notes if body else None
    return _view(await execution_service.finish(execution_id=execution_id, notes=notes))


@router.get("/executions/{execution_id}/checklist")
async def get_checklist(execution_id: str) -> list[ChecklistEntry]:
    return await checklist_service.list_for_execution(execution_id=execution_id)


@router.post("/executions/{execution_id}/checklist/{item_id}/toggle")
async def toggle_checklist_item(execution_id: str, item_id: str) -> ToggleResponse:
    done = await checklist_service.toggle(execution_id=execution_id, item_id=item_id)
    return ToggleResponse(item_id=item_id, done=done)


@router.get("/executions/{execution_id}/attachments")
async def list_attachments(execution_id: str) -> list[Attachment]:
    return await attachment_service.list_for_execution(execution_id=execution_id)


@router.post("/executions/{execution_id}/attachments", status_code=status.HTTP_201_CREATED)
async def upload_attachment(
    execution_id: str,
    request: Request,
    filename: Annotated[str, Query(min_length=1)],
    blob_store: Annotated[BlobStore, Depends(get_blob_store)],
) -> Attachment:
    """Upload the raw request body as an attachment named ``filename``."""
    content = await request.body()
    return await attachment_service.upload(
        execution_id=execution_id,
        filename=filename,
        content=content,
        blob_store=blob_store,
    )
