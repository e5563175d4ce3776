"""Checklist tracking for executions."""

import logging

from src.core.errors import UnknownItemError
from src.core.logging import span
from src.domain.execution import ChecklistCompletion, ChecklistEntry
from src.services import routine_repository


logger = logging.getLogger(__name__)


async def _completions_by_item(execution_id: str) -> dict[str, ChecklistCompletion]:
    completions = await routine_repository.list_completions(execution_id=execution_id)
    return {completion.item_id: completion for completion in completions}


async def list_for_execution(*, execution_id: str) -> list[ChecklistEntry]:
    """List the execution's checklist in template order.

    Template items without a completion row get one (not done) on first listing.

    Raises:
        NotFoundError: If the execution does not exist
    """
    with span("checklist_service.list_for_execution"):
        execution = await routine_repository.get_execution(execution_id=execution_id)
        items = await routine_repository.list_checklist_items(routine_id=execution.routine_id)
        completions = await _completions_by_item(execution_id)

        entries = []
        for item in items:
            completion = completions.get(item.id)
            if completion is None:
                completion = await routine_repository.create_completion(execution_id=execution_id, item_id=item.id)
            entries.append(ChecklistEntry(item_id=item.id, order=item.order, text=item.text, done=completion.done))
        return entries


async def toggle(*, execution_id: str, item_id: str) -> bool:
    """Flip an item's done flag for the execution and return the new value.

    Raises:
        UnknownItemError: If the item is not part of the routine's checklist
        NotFoundError: If the execution does not exist
    """
    with span("checklist_service.toggle"):
        execution = await routine_repository.get_execution(execution_id=execution_id)
        items = await routine_repository.list_checklist_items(routine_id=execution.routine_id)
        if item_id not in {item.id for item in items}:
            msg = f"Checklist item {item_id} is not part of routine {execution.routine_id}"
            raise UnknownItemError(msg)

        completion = (await _completions_by_item(execution_id)).get(item_id)
        if completion is None:
            completion = await routine_repository.create_completion(execution_id=execution_id, item_id=item_id, done=True)
        else:
            completion = await routine_repository.update_completion(completion_id=completion.id, done=not completion.done)

        logger.info(
            "Checklist item toggled",
            extra={"execution_id": execution_id, "item_id": item_id, "done": completion.done},
        )
        return completion.done
