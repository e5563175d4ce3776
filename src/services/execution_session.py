"""Caller-owned execution session with a cancellable elapsed-time ticker."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from src.core.config import settings
from src.core.errors import InvalidTransitionError
from src.domain.execution import Attachment, ChecklistEntry, ExecutionRecord, ExecutionState
from src.interface.blob_store import BlobStore
from src.services import attachment_service, checklist_service, execution_service


logger = logging.getLogger(__name__)


class ElapsedTicker:
    """Periodically reports the formatted elapsed time of one execution.

    The ticker only reads the execution it was started with; it never writes
    anything back to the repository.
    """

    def __init__(self, on_tick: Callable[[str], None], *, interval_seconds: float | None = None) -> None:
        self._on_tick = on_tick
        self._interval = interval_seconds if interval_seconds is not None else settings.elapsed_tick_seconds
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _run(self, execution: ExecutionRecord) -> None:
        while True:
            self._on_tick(execution_service.format_duration(execution_service.elapsed_seconds(execution)))
            await asyncio.sleep(self._interval)

    def start(self, execution: ExecutionRecord) -> None:
        """Start ticking for an execution, replacing any previous schedule."""
        self._cancel()
        self._task = asyncio.create_task(self._run(execution), name=f"elapsed-ticker-{execution.id}")

    def _cancel(self) -> asyncio.Task | None:
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
        return task

    async def stop(self) -> None:
        """Cancel the schedule and wait for the tick task to end."""
        task = self._cancel()
        if task is None:
            return
        try:
            await task
        except asyncio.CancelledError:
            # The tick task always ends cancelled; only a cancellation of the caller propagates
            current = asyncio.current_task()
            if current is not None and current.cancelling():
                raise


class ExecutionSession:
    """State for one executor working on one routine.

    Ties the ticker to the lifecycle: it runs only while the execution is
    RUNNING and is cancelled on pause, finish and close.
    """

    def __init__(
        self,
        *,
        routine_id: str,
        executor_id: str,
        blob_store: BlobStore | None = None,
        on_tick: Callable[[str], None] | None = None,
        tick_seconds: float | None = None,
    ) -> None:
        self.routine_id = routine_id
        self.executor_id = executor_id
        self.blob_store = blob_store
        self.execution: ExecutionRecord | None = None
        self.display = execution_service.format_duration(0)
        self._on_tick_callback = on_tick
        self.ticker = ElapsedTicker(self._on_tick, interval_seconds=tick_seconds)

    def _on_tick(self, formatted: str) -> None:
        self.display = formatted
        if self._on_tick_callback:
            self._on_tick_callback(formatted)

    @property
    def state(self) -> ExecutionState:
        return self.execution.state if self.execution else ExecutionState.NOT_STARTED

    def _require_execution(self) -> ExecutionRecord:
        if self.execution is None:
            msg = f"No open execution for routine {self.routine_id}; call open() first"
            raise InvalidTransitionError(msg)
        return self.execution

    async def _apply(self, execution: ExecutionRecord) -> ExecutionRecord:
        self.execution = execution
        self.display = execution_service.format_duration(execution_service.elapsed_seconds(execution))
        if execution.state == ExecutionState.RUNNING:
            self.ticker.start(execution)
        else:
            await self.ticker.stop()
        return execution

    async def open(self, *, now: datetime | None = None) -> ExecutionRecord:
        """Resolve or create the open execution and start the ticker if it is running."""
        execution = await execution_service.resolve_or_create(
            routine_id=self.routine_id,
            executor_id=self.executor_id,
            now=now,
        )
        return await self._apply(execution)

    async def pause(self, *, now: datetime | None = None) -> ExecutionRecord:
        execution = self._require_execution()
        return await self._apply(await execution_service.pause(execution_id=execution.id, now=now))

    async def resume(self) -> ExecutionRecord:
        execution = self._require_execution()
        return await self._apply(await execution_service.resume(execution_id=execution.id))

    async def finish(self, notes: str | None = None, *, now: datetime | None = None) -> ExecutionRecord:
        execution = self._require_execution()
        return await self._apply(await execution_service.finish(execution_id=execution.id, notes=notes, now=now))

    async def close(self) -> None:
        """Stop the ticker; the execution itself is left as it is."""
        await self.ticker.stop()

    async def checklist(self) -> list[ChecklistEntry]:
        execution = self._require_execution()
        return await checklist_service.list_for_execution(execution_id=execution.id)

    async def toggle_item(self, item_id: str) -> bool:
        execution = self._require_execution()
        return await checklist_service.toggle(execution_id=execution.id, item_id=item_id)

    async def attachments(self) -> list[Attachment]:
        execution = self._require_execution()
        return await attachment_service.list_for_execution(execution_id=execution.id)

    async def add_attachment(self, filename: str, content: bytes) -> Attachment:
        """Upload a file through the session's blob store and record it."""
        execution = self._require_execution()
        if self.blob_store is None:
            msg = "ExecutionSession has no blob store configured"
            raise RuntimeError(msg)
        return await attachment_service.upload(
            execution_id=execution.id,
            filename=filename,
            content=content,
            blob_store=self.blob_store,
        )
