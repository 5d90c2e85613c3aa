from collections.abc import Mapping
from typing import Any

from hospital.domain.models import Doctor, DoctorRegistration
from hospital.domain.validation import sanitize_string
from hospital.services.base import EntityService, returns_result
from hospital.storage.ids import EntityKind
from hospital.storage.ports import Collection


class DoctorService(EntityService[Doctor]):
    collection = Collection.DOCTORS
    kind = EntityKind.DOCTOR
    entity_name = "Doctor"
    model = Doctor

    @returns_result("doctor-register")
    async def register_doctor(self, data: DoctorRegistration | Mapping[str, Any]) -> Doctor:
        registration = DoctorRegistration.parse(data)
        self._log.info("Registering doctor: specialization={}", registration.specialization)
        return await self._create(registration.to_fields())

    @returns_result("doctor-get")
    async def get_doctor(self, id: str) -> Doctor:
        return await self._get(id)

    @returns_result("doctor-list")
    async def list_doctors(self) -> list[Doctor]:
        return await self._all()

    @returns_result("doctor-search")
    async def search_doctors(self, term: str) -> list[Doctor]:
        """Case-insensitive substring match on name or specialization."""
        needle = sanitize_string(term).lower()
        if not needle:
            return []
        return [
            d
            for d in await self._all()
            if needle in d.name.lower() or needle in d.specialization.lower()
        ]

    @returns_result("doctor-update")
    async def update_doctor(self, id: str, changes: Mapping[str, Any]) -> Doctor:
        document, _ = await self._merge(id, changes, DoctorRegistration)
        return await self._replace(document)

    @returns_result("doctor-delete")
    async def delete_doctor(self, id: str) -> None:
        await self._delete(id)
