"""Execution domain models: lifecycle state, checklist completion and attachments."""

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, Field


class ExecutionState(StrEnum):
    """Execution lifecycle state."""

    NOT_STARTED = "NOT_STARTED"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    FINISHED = "FINISHED"


class ExecutionRecord(BaseModel):
    """One executor's attempt to carry out a routine on a given occasion."""

    id: str = Field(..., description="Unique execution ID from database")
    routine_id: str = Field(..., description="Routine being executed")
    executor_id: str = Field(..., description="User ID of the executor")
    started_at: datetime = Field(..., description="When the execution was opened")
    paused_at: datetime | None = Field(default=None, description="When the execution was paused, if paused")
    finished_at: datetime | None = Field(default=None, description="When the execution was finished")
    total_duration_seconds: int | None = Field(default=None, description="Wall-clock duration, set at finish")
    notes: str | None = Field(default=None, description="Executor notes recorded at finish")

    @property
    def state(self) -> ExecutionState:
        """Derive the lifecycle state from the timestamps."""
        if self.finished_at is not None:
            return ExecutionState.FINISHED
        if self.paused_at is not None:
            return ExecutionState.PAUSED
        return ExecutionState.RUNNING

    @property
    def is_terminal(self) -> bool:
        return self.finished_at is not None


class ChecklistCompletion(BaseModel):
    """Done flag of one template item for one execution."""

    id: str = Field(..., description="Unique completion ID from database")
    execution_id: str = Field(..., description="Execution the flag belongs to")
    item_id: str = Field(..., description="Checklist template item")
    done: bool = Field(default=False, description="Whether the step is done")


class ChecklistEntry(BaseModel):
    """Checklist line as shown during an execution."""

    item_id: str
    order: int
    text: str
    done: bool


class Attachment(BaseModel):
    """Metadata for an uploaded file tied to an execution."""

    id: str = Field(..., description="Unique attachment ID from database")
    execution_id: str = Field(..., description="Execution the file belongs to")
    url: str = Field(..., description="Public URL returned by the blob store")
    filename: str = Field(..., description="Original file name")
    created_at: datetime = Field(..., description="When the metadata was recorded")
