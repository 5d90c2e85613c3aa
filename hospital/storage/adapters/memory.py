import json
from typing import Any

from hospital.domain.exceptions import DataCorruptionError, StorageError
from hospital.storage.ports import Collection, collection_name


class InMemoryDocumentStore:
    """In-memory test double for the DocumentStore protocol.

    Documents are round-tripped through JSON on save and load, so callers
    see the same shapes the file store would give them.  Set ``save_error``,
    ``load_error``, etc. to make the corresponding method raise on every
    call; use ``corrupt`` to plant an unparseable document.

    ``writes`` records every ``(collection, id)`` passed to ``save``.
    """

    def __init__(self) -> None:
        self.documents: dict[str, dict[str, str]] = {}
        self.writes: list[tuple[str, str]] = []
        self.initialized: bool = False

        self.save_error: Exception | None = None
        self.load_error: Exception | None = None
        self.delete_error: Exception | None = None

    async def initialize(self) -> None:
        for collection in Collection:
            self.documents.setdefault(collection.value, {})
        self.initialized = True

    async def save(self, collection: Collection | str, id: str, value: dict[str, Any]) -> None:
        name = collection_name(collection)
        if self.save_error:
            raise self.save_error
        try:
            text = json.dumps(value)
        except (TypeError, ValueError) as exc:
            raise StorageError("save", f"{name}/{id}", str(exc)) from exc
        self.documents.setdefault(name, {})[id] = text
        self.writes.append((name, id))

    async def load(self, collection: Collection | str, id: str) -> dict[str, Any] | None:
        name = collection_name(collection)
        if self.load_error:
            raise self.load_error
        text = self.documents.get(name, {}).get(id)
        if text is None:
            return None
        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DataCorruptionError(f"{name}/{id}", str(exc)) from exc
        if not isinstance(value, dict):
            raise DataCorruptionError(f"{name}/{id}", "document is not a JSON object")
        return value

    async def load_all(self, collection: Collection | str) -> list[dict[str, Any]]:
        if self.load_error:
            raise self.load_error
        documents: list[dict[str, Any]] = []
        for _, text in sorted(self.documents.get(collection_name(collection), {}).items()):
            try:
                value = json.loads(text)
            except json.JSONDecodeError:
                continue
            if isinstance(value, dict):
                documents.append(value)
        return documents

    async def delete(self, collection: Collection | str, id: str) -> None:
        if self.delete_error:
            raise self.delete_error
        self.documents.get(collection_name(collection), {}).pop(id, None)

    async def exists(self, collection: Collection | str, id: str) -> bool:
        return id in self.documents.get(collection_name(collection), {})

    def corrupt(self, collection: Collection | str, id: str) -> None:
        """Store text under ``id`` that is not valid JSON."""
        self.documents.setdefault(collection_name(collection), {})[id] = "{ not json"

    def count(self, collection: Collection | str) -> int:
        return len(self.documents.get(collection_name(collection), {}))
