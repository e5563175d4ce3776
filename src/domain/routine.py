"""Routine domain models and enums."""

from datetime import date, time
from enum import StrEnum

from pydantic import AliasChoices, BaseModel, Field

from src.domain.recurrence import Recurrence


class RoutineKind(StrEnum):
    """Whether a routine is a regular scheduled task or a one-day ad-hoc task."""

    NORMAL = "normal"
    AD_HOC = "avulsa"


class Priority(StrEnum):
    """Routine urgency."""

    HIGH = "alta"
    MEDIUM = "media"
    LOW = "baixa"


class RoutineDefinition(BaseModel):
    """Routine data transfer object."""

    id: str = Field(..., description="Unique routine ID from database")
    title: str = Field(..., description="Routine title")
    description: str | None = Field(default=None, description="Context for whoever executes the routine")
    kind: RoutineKind = Field(default=RoutineKind.NORMAL, description="normal or avulsa (ad-hoc)")
    recurrence: Recurrence = Field(..., description="When the routine is due")
    start_date: date = Field(..., description="First date the routine can be due")
    start_time: time | None = Field(default=None, description="Scheduled start time of day")
    duration_minutes: int = Field(..., gt=0, description="Planned duration in minutes")
    priority: Priority = Field(default=Priority.LOW, description="Routine urgency")
    checklist_enabled: bool = Field(default=False, description="Whether executions track a checklist")
    attachment_required: bool = Field(default=False, description="Whether executions expect attachments")
    creator_id: str = Field(..., description="User ID of the creator")
    responsible_id: str = Field(..., description="User ID of the person responsible")
    department_id: str | None = Field(default=None, description="Department scope")
    sector_id: str | None = Field(default=None, description="Sector scope")
    region_id: str | None = Field(default=None, description="Region scope")
    created: str | None = Field(default=None, description="Creation timestamp (ISO format)")


class ChecklistTemplateItem(BaseModel):
    """One ordered step of a routine's checklist template."""

    id: str = Field(..., description="Unique item ID from database")
    routine_id: str = Field(..., description="Routine the item belongs to")
    order: int = Field(..., ge=1, validation_alias=AliasChoices("order", "position"), description="1-based order")
    text: str = Field(..., description="Step description")


class RoutineCreate(BaseModel):
    """Routine creation payload as submitted by the creation forms.

    Types are enforced here; business validation (title, duration, dates) happens
    in routine_service so it can be reported as an engine ValidationError.
    """

    title: str = Field(default="", description="Routine title")
    description: str | None = Field(default=None, description="Routine description")
    kind: RoutineKind = Field(default=RoutineKind.NORMAL, description="normal or avulsa")
    periodicity: str = Field(default="diaria", description="diaria, semanal, mensal or avulsa")
    weekday: str | int | None = Field(default=None, description="Weekday for weekly routines (number or name)")
    start_date: date | None = Field(default=None, description="Start date (the only date for ad-hoc routines)")
    start_time: time | None = Field(default=None, description="Start time of day")
    duration_minutes: int = Field(default=60, description="Planned duration in minutes")
    priority: Priority = Field(default=Priority.LOW, description="Routine urgency")
    checklist_enabled: bool = Field(default=False, description="Track a checklist during execution")
    attachment_required: bool = Field(default=False, description="Expect attachments during execution")
    checklist_items: list[str] = Field(default_factory=list, description="Checklist step texts, in order")
    creator_id: str = Field(..., description="User ID of the creator")
    responsible_id: str = Field(..., description="User ID of the person responsible")
    department_id: str | None = Field(default=None, description="Department scope")
    sector_id: str | None = Field(default=None, description="Sector scope")
    region_id: str | None = Field(default=None, description="Region scope")
