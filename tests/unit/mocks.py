"""Pure Python in-memory database and blob store for unit testing."""

import asyncio
import copy
from datetime import UTC, datetime
from typing import Any

from src.core.db_client import DatabaseError, RecordNotFoundError, UniqueConstraintError
from src.core.errors import RepositoryError


# Uniqueness rules mirrored from the SQLite schema: (fields, applies-to-record predicate)
UNIQUE_CONSTRAINTS: dict[str, tuple[tuple[str, ...], Any]] = {
    "executions": (("routine_id", "executor_id"), lambda record: record.get("finished_at") is None),
    "checklist_items": (("routine_id", "position"), lambda _record: True),
    "checklist_completions": (("execution_id", "item_id"), lambda _record: True),
}


def _sql_equal(actual: Any, value: str) -> bool:
    """Compare a stored value with a quoted filter value the way SQLite does.

    Numeric stored values convert the text operand (column affinity); text is
    compared exactly, so "007" never equals "7".
    """
    if isinstance(actual, bool):
        actual = int(actual)
    if isinstance(actual, int | float):
        try:
            return actual == float(value)
        except ValueError:
            return False
    return actual == value


class InMemoryDBClient:
    """Pure Python in-memory database for unit testing.

    Mirrors the db_client module interface: CRUD, simple filtering (=, !=, ~,
    comparison operators, ``field = null``), multi-key sorting and the schema's
    uniqueness constraints, without touching SQLite.
    """

    def __init__(self):
        """Initialize empty in-memory database."""
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}
        self._id_counter = 1000
        # Collections whose writes fail, to exercise backend-failure paths
        self.failing_collections: set[str] = set()

    def _check_failure(self, collection: str) -> None:
        if collection in self.failing_collections:
            raise DatabaseError(f"Simulated failure writing to {collection}")

    def _check_unique(self, collection: str, record: dict[str, Any]) -> None:
        if collection not in UNIQUE_CONSTRAINTS:
            return
        fields, applies = UNIQUE_CONSTRAINTS[collection]
        if not applies(record):
            return
        key = tuple(str(record.get(field)) for field in fields)
        for other in self._collections.get(collection, {}).values():
            if other["id"] == record["id"] or not applies(other):
                continue
            if tuple(str(other.get(field)) for field in fields) == key:
                raise UniqueConstraintError(f"Unique constraint violated in {collection}: {fields}")

    async def create_record(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        """Create a new record in the specified collection.

        Raises:
            UniqueConstraintError: If the record violates a uniqueness rule
            DatabaseError: If collection access fails
        """
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")
        self._check_failure(collection)

        records = self._collections.setdefault(collection, {})
        record_id = str(self._id_counter)
        now = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        record = {"id": record_id, "created": now, "updated": now, **data}

        self._check_unique(collection, record)
        self._id_counter += 1
        records[record_id] = record
        return copy.deepcopy(record)

    async def get_record(self, collection: str, record_id: str) -> dict[str, Any]:
        """Get a record by ID from the specified collection.

        Raises:
            RecordNotFoundError: If record not found
        """
        if not isinstance(record_id, str):
            raise DatabaseError(f"Record ID must be a string, got {type(record_id)}")

        if record_id not in self._collections.get(collection, {}):
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        return copy.deepcopy(self._collections[collection][record_id])

    async def update_record(self, collection: str, record_id: str, data: dict[str, Any]) -> dict[str, Any]:
        """Update an existing record.

        Raises:
            RecordNotFoundError: If record not found
            UniqueConstraintError: If the update violates a uniqueness rule
        """
        if not isinstance(data, dict):
            raise DatabaseError(f"Data must be a dictionary, got {type(data)}")
        if record_id not in self._collections.get(collection, {}):
            raise RecordNotFoundError(f"Record not found in {collection}: {record_id}")
        self._check_failure(collection)

        # Ensure updated timestamp differs from created
        await asyncio.sleep(0.001)
        record = self._collections[collection][record_id]
        candidate = {**record, **data}
        self._check_unique(collection, candidate)
        record.update(data)
        record["updated"] = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return copy.deepcopy(record)

    async def list_records(
        self,
        collection: str,
        page: int = 1,
        per_page: int = 50,
        filter_query: str = "",
        sort: str = "",
    ) -> list[dict[str, Any]]:
        """List records with optional filtering, sorting and pagination."""
        records = list(self._collections.get(collection, {}).values())

        if filter_query:
            records = [r for r in records if self._parse_filter(filter_query, r)]
        if sort:
            records = self._apply_sort(records, sort)

        start_idx = (page - 1) * per_page
        return [copy.deepcopy(r) for r in records[start_idx : start_idx + per_page]]

    async def get_first_record(self, collection: str, filter_query: str, sort: str = "") -> dict[str, Any] | None:
        """Get the first matching record (in sort order) or None."""
        records = await self.list_records(collection, filter_query=filter_query, sort=sort)
        return records[0] if records else None

    def _parse_filter(self, filter_str: str, record: dict[str, Any]) -> bool:
        """Evaluate a filter expression against a record.

        Supports ``=``, ``!=``, ``~`` (case-insensitive contains), ``>=``, ``<=``,
        ``>``, ``<``, unquoted ``null`` and ``&&``.

        Raises:
            DatabaseError: For invalid filter syntax
        """
        if not filter_str:
            return True

        if "&&" in filter_str:
            return all(self._parse_filter(cond.strip(), record) for cond in filter_str.split("&&"))

        for op in ("!=", ">=", "<=", "~", "=", ">", "<"):
            if op not in filter_str:
                continue
            field, raw_value = (part.strip() for part in filter_str.split(op, 1))
            actual = record.get(field)

            if raw_value == "null":
                return (actual is None) if op == "=" else (actual is not None)

            value = raw_value.strip("'\"")
            if op == "=":
                return _sql_equal(actual, value)
            if op == "!=":
                return actual is not None and not _sql_equal(actual, value)
            if op == "~":
                return value.lower() in str(actual or "").lower()
            if actual is None:
                return False
            comparisons = {
                ">=": str(actual) >= value,
                "<=": str(actual) <= value,
                ">": str(actual) > value,
                "<": str(actual) < value,
            }
            return comparisons[op]

        raise DatabaseError(f"Invalid filter syntax (no operator found): {filter_str}")

    def _apply_sort(self, records: list[dict], sort: str) -> list[dict]:
        """Sort records by one or more ``-field``/``+field`` keys."""
        sorted_records = list(records)
        # Stable sorts applied from the least significant key
        for raw_token in reversed(sort.split(",")):
            token = raw_token.strip()
            if not token:
                continue
            reverse = token.startswith("-")
            field = token.lstrip("+-")
            sorted_records.sort(
                key=lambda r, f=field: (r.get(f) is not None, r.get(f) if r.get(f) is not None else ""),
                reverse=reverse,
            )
        return sorted_records


class FakeBlobStore:
    """Blob store that keeps uploads in memory."""

    def __init__(self, *, base_url: str = "https://blobs.test/public", fail: bool = False):
        self.base_url = base_url
        self.fail = fail
        self.objects: dict[str, bytes] = {}

    async def upload(self, content: bytes, path: str) -> str:
        if self.fail:
            raise RepositoryError(f"Upload of {path} failed: storage unavailable")
        self.objects[path] = content
        return f"{self.base_url}/{path}"
