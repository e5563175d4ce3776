from src.services import (
    attachment_service,
    checklist_service,
    conflict_service,
    execution_service,
    routine_repository,
    routine_service,
)


__all__ = [
    "attachment_service",
    "checklist_service",
    "conflict_service",
    "execution_service",
    "routine_repository",
    "routine_service",
]
