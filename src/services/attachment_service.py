"""Attachment registry for executions."""

import logging
from datetime import UTC, datetime
from pathlib import PurePosixPath

from src.core.config import constants
from src.core.logging import span
from src.domain.execution import Attachment
from src.interface.blob_store import BlobStore
from src.services import routine_repository


logger = logging.getLogger(__name__)


def build_storage_path(*, routine_id: str, execution_id: str, filename: str, now: datetime) -> str:
    """Storage key for an upload: ``{routine_id}/{execution_id}/{epoch_ms}.{ext}``."""
    suffix = PurePosixPath(filename).suffix.lstrip(".").lower()
    extension = suffix or constants.DEFAULT_ATTACHMENT_EXTENSION
    epoch_ms = int(now.timestamp() * 1000)
    return f"{routine_id}/{execution_id}/{epoch_ms}.{extension}"


async def record(
    *,
    execution_id: str,
    filename: str,
    url: str,
    now: datetime | None = None,
) -> Attachment:
    """Record metadata for a file already stored in the blob store.

    Raises:
        NotFoundError: If the execution does not exist
    """
    with span("attachment_service.record"):
        await routine_repository.get_execution(execution_id=execution_id)
        attachment = await routine_repository.create_attachment(
            execution_id=execution_id,
            url=url,
            filename=filename,
            created_at=now or datetime.now(UTC),
        )
        logger.info("Attachment recorded", extra={"execution_id": execution_id, "attachment_id": attachment.id})
        return attachment


async def list_for_execution(*, execution_id: str) -> list[Attachment]:
    """List an execution's attachments, newest first."""
    with span("attachment_service.list_for_execution"):
        return await routine_repository.list_attachments(execution_id=execution_id)


async def upload(
    *,
    execution_id: str,
    filename: str,
    content: bytes,
    blob_store: BlobStore,
    now: datetime | None = None,
) -> Attachment:
    """Store file bytes and record their metadata.

    No metadata row is written when the upload fails.

    Raises:
        NotFoundError: If the execution does not exist
        RepositoryError: If the upload or the metadata write fails
    """
    with span("attachment_service.upload"):
        uploaded_at = now or datetime.now(UTC)
        execution = await routine_repository.get_execution(execution_id=execution_id)
        path = build_storage_path(
            routine_id=execution.routine_id,
            execution_id=execution.id,
            filename=filename,
            now=uploaded_at,
        )
        url = await blob_store.upload(content, path)
        return await record(execution_id=execution.id, filename=filename, url=url, now=uploaded_at)
