from collections.abc import Mapping
from typing import Any

from hospital.domain.models import Patient, PatientRegistration
from hospital.domain.validation import sanitize_string
from hospital.services.base import EntityService, returns_result
from hospital.storage.ids import EntityKind
from hospital.storage.ports import Collection


class PatientService(EntityService[Patient]):
    """Registration, lookup, search, update and removal of patients."""

    collection = Collection.PATIENTS
    kind = EntityKind.PATIENT
    entity_name = "Patient"
    model = Patient

    @returns_result("patient-register")
    async def register_patient(
        self, data: PatientRegistration | Mapping[str, Any]
    ) -> Patient:
        """Validate ``data`` and store it as a new patient with a fresh ``PAT-`` id."""
        registration = PatientRegistration.parse(data)
        self._log.info("Registering patient")
        return await self._create(registration.to_fields())

    @returns_result("patient-get")
    async def get_patient(self, id: str) -> Patient:
        return await self._get(id)

    @returns_result("patient-list")
    async def list_patients(self) -> list[Patient]:
        return await self._all()

    @returns_result("patient-search-by-name")
    async def search_patients_by_name(self, name: str) -> list[Patient]:
        """Case-insensitive substring match on the patient's name.

        A blank search term matches nothing.
        """
        term = sanitize_string(name).lower()
        if not term:
            self._log.debug("Empty search term provided")
            return []

        patients = await self._all()
        matches = [p for p in patients if term in p.name.lower()]
        self._log.info("Patient search matched {} of {}", len(matches), len(patients))
        return matches

    @returns_result("patient-update")
    async def update_patient(self, id: str, changes: Mapping[str, Any]) -> Patient:
        """Apply ``changes`` to a stored patient; ``id`` and ``createdAt`` never change."""
        document, _ = await self._merge(id, changes, PatientRegistration)
        return await self._replace(document)

    @returns_result("patient-delete")
    async def delete_patient(self, id: str) -> None:
        """Remove the patient. Appointments and records pointing at it are left as they are."""
        await self._delete(id)
