"""Recurrence descriptor models (closed tagged variants)."""

from datetime import date
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, Field


class RecurrenceType(StrEnum):
    """Recurrence variant tag, stored with the legacy periodicity vocabulary."""

    DAILY = "diaria"
    WEEKLY = "semanal"
    MONTHLY = "mensal"
    ONE_OFF = "avulsa"


class DailyRecurrence(BaseModel):
    """Due every day from the start date on."""

    type: Literal[RecurrenceType.DAILY] = RecurrenceType.DAILY


class WeeklyRecurrence(BaseModel):
    """Due on one weekday every week (0=Monday ... 6=Sunday)."""

    type: Literal[RecurrenceType.WEEKLY] = RecurrenceType.WEEKLY
    weekday: int = Field(..., ge=0, le=6, description="Python weekday number, 0=Monday")


class MonthlyRecurrence(BaseModel):
    """Due once a month on the start date's day of month."""

    type: Literal[RecurrenceType.MONTHLY] = RecurrenceType.MONTHLY
    day_of_month: int | None = Field(
        default=None,
        ge=1,
        le=31,
        description="Copy of the start date's day; evaluation always anchors on the start date",
    )


class OneOffRecurrence(BaseModel):
    """Due on exactly one date."""

    type: Literal[RecurrenceType.ONE_OFF] = RecurrenceType.ONE_OFF
    due_date: date = Field(..., description="The single date the routine is due")


Recurrence = Annotated[
    DailyRecurrence | WeeklyRecurrence | MonthlyRecurrence | OneOffRecurrence,
    Field(discriminator="type"),
]
