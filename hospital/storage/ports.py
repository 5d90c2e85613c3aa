from enum import Enum
from typing import Any, Protocol


class Collection(str, Enum):
    """The fixed collections, each a directory of ``{id}.json`` documents."""

    PATIENTS = "patients"
    DOCTORS = "doctors"
    APPOINTMENTS = "appointments"
    MEDICAL_RECORDS = "medical-records"


class DocumentStore(Protocol):
    """Key-value storage of JSON documents, addressed by (collection, id).

    Collections are usually a ``Collection`` member; plain strings are
    accepted so other layers can keep their own documents alongside.
    """

    async def initialize(self) -> None:
        """Create the backing structure for every known collection.

        Raises:
            InitializationError: If the structure cannot be created.
        """
        ...

    async def save(self, collection: Collection | str, id: str, value: dict[str, Any]) -> None:
        """Write ``value`` under ``id``, replacing any existing document.

        Raises:
            StorageError: If the write fails for any reason.
        """
        ...

    async def load(self, collection: Collection | str, id: str) -> dict[str, Any] | None:
        """Return the document, or None when no document is stored under ``id``.

        Raises:
            DataCorruptionError: If the stored document is not valid JSON.
            StorageError: If the read fails for another reason.
        """
        ...

    async def load_all(self, collection: Collection | str) -> list[dict[str, Any]]:
        """Return every readable document in the collection.

        Unreadable documents are logged and skipped. A collection that does
        not exist yet yields an empty list.
        """
        ...

    async def delete(self, collection: Collection | str, id: str) -> None:
        """Remove the document. Deleting an absent document succeeds.

        Raises:
            StorageError: If removal fails for another reason.
        """
        ...

    async def exists(self, collection: Collection | str, id: str) -> bool:
        """Check whether a document is stored under ``id`` without reading it.

        Raises:
            StorageError: If the backing store cannot be probed.
        """
        ...


def collection_name(collection: Collection | str) -> str:
    return collection.value if isinstance(collection, Collection) else collection
