"""Domain models and DTOs."""

from src.domain.execution import (
    Attachment,
    ChecklistCompletion,
    ChecklistEntry,
    ExecutionRecord,
    ExecutionState,
)
from src.domain.recurrence import (
    DailyRecurrence,
    MonthlyRecurrence,
    OneOffRecurrence,
    Recurrence,
    RecurrenceType,
    WeeklyRecurrence,
)
from src.domain.routine import ChecklistTemplateItem, Priority, RoutineCreate, RoutineDefinition, RoutineKind


__all__ = [
    "Attachment",
    "ChecklistCompletion",
    "ChecklistEntry",
    "ChecklistTemplateItem",
    "DailyRecurrence",
    "ExecutionRecord",
    "ExecutionState",
    "MonthlyRecurrence",
    "OneOffRecurrence",
    "Priority",
    "Recurrence",
    "RecurrenceType",
    "RoutineCreate",
    "RoutineDefinition",
    "RoutineKind",
    "WeeklyRecurrence",
]
