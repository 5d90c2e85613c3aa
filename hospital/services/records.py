from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from hospital.domain.models import MedicalRecord, MedicalRecordInput
from hospital.services.base import EntityService, returns_result
from hospital.services.integrity import ReferentialIntegrityChecker, changes_references
from hospital.storage.ids import EntityKind
from hospital.storage.ports import Collection, DocumentStore

if TYPE_CHECKING:
    from loguru import Logger


class MedicalRecordService(EntityService[MedicalRecord]):
    """Medical records, each tied to an existing patient and doctor."""

    collection = Collection.MEDICAL_RECORDS
    kind = EntityKind.MEDICAL_RECORD
    entity_name = "MedicalRecord"
    model = MedicalRecord

    def __init__(
        self,
        store: DocumentStore,
        integrity: ReferentialIntegrityChecker | None = None,
        *,
        log: "Logger | None" = None,
    ) -> None:
        super().__init__(store, log=log)
        self._integrity = integrity or ReferentialIntegrityChecker(store, log=log)

    @returns_result("record-create")
    async def create_record(self, data: MedicalRecordInput | Mapping[str, Any]) -> MedicalRecord:
        """Store a new record once its patient and doctor are known to exist."""
        record = MedicalRecordInput.parse(data)
        await self._integrity.ensure_references(
            self.entity_name, record.patient_id, record.doctor_id
        )
        return await self._create(record.to_fields())

    @returns_result("record-get")
    async def get_record(self, id: str) -> MedicalRecord:
        return await self._get(id)

    @returns_result("record-list")
    async def list_records(self) -> list[MedicalRecord]:
        return await self._all()

    @returns_result("record-list-by-patient")
    async def get_patient_records(self, patient_id: str) -> list[MedicalRecord]:
        return [r for r in await self._all() if r.patient_id == patient_id]

    @returns_result("record-list-by-doctor")
    async def get_doctor_records(self, doctor_id: str) -> list[MedicalRecord]:
        return [r for r in await self._all() if r.doctor_id == doctor_id]

    @returns_result("record-update")
    async def update_record(self, id: str, changes: Mapping[str, Any]) -> MedicalRecord:
        """Apply ``changes``; a changed patientId/doctorId must still resolve."""
        document, parsed = await self._merge(id, changes, MedicalRecordInput)
        if changes_references(changes):
            await self._integrity.ensure_references(
                self.entity_name, parsed.patient_id, parsed.doctor_id
            )
        return await self._replace(document)

    @returns_result("record-delete")
    async def delete_record(self, id: str) -> None:
        await self._delete(id)
