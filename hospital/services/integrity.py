from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from loguru import logger

from hospital.domain.exceptions import ReferentialIntegrityError
from hospital.storage.ports import Collection, DocumentStore

if TYPE_CHECKING:
    from loguru import Logger


class ReferentialIntegrityChecker:
    """Confirms that the patient and doctor an entity points at are stored.

    Runs before any write, so a rejected entity leaves nothing behind.
    """

    def __init__(self, store: DocumentStore, *, log: "Logger | None" = None) -> None:
        self._store = store
        self._log = (log or logger).bind(component="integrity")

    async def ensure_references(self, entity_type: str, patient_id: str, doctor_id: str) -> None:
        """Raise ``ReferentialIntegrityError`` for the first id that does not resolve."""
        references = (
            (Collection.PATIENTS, "Patient", patient_id),
            (Collection.DOCTORS, "Doctor", doctor_id),
        )
        for collection, referenced_type, referenced_id in references:
            if not await self._store.exists(collection, referenced_id):
                self._log.warning(
                    "Referential integrity violation: {} references non-existent {} {}",
                    entity_type,
                    referenced_type,
                    referenced_id,
                )
                raise ReferentialIntegrityError(
                    entity_type, referenced_type, referenced_id, collection.value
                )
        self._log.debug("References resolved for {}: {}, {}", entity_type, patient_id, doctor_id)


_REFERENCE_KEYS = ("patientId", "patient_id", "doctorId", "doctor_id")


def changes_references(changes: Mapping[str, Any]) -> bool:
    """True when an update payload carries a patient or doctor id."""
    return any(key in changes for key in _REFERENCE_KEYS)
