import datetime as dt
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from hospital.domain.exceptions import InvalidFormatError, InvalidStateTransitionError
from hospital.domain.models import (
    Appointment,
    AppointmentRequest,
    AppointmentStatus,
    Postponement,
    PostponementRequest,
)
from hospital.domain.result import Err, Ok
from hospital.services.base import EntityService, returns_result, utc_now
from hospital.services.integrity import ReferentialIntegrityChecker, changes_references
from hospital.storage.ids import EntityKind
from hospital.storage.ports import Collection, DocumentStore

if TYPE_CHECKING:
    from loguru import Logger

_POSTPONABLE = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})


def _parse_status(status: AppointmentStatus | str) -> AppointmentStatus:
    try:
        return AppointmentStatus(status)
    except ValueError as exc:
        allowed = ", ".join(s.value for s in AppointmentStatus)
        raise InvalidFormatError(
            f"Invalid status: {status}. Status must be one of: {allowed}",
            {"status": status},
        ) from exc


def _settle(document: dict[str, Any], status: AppointmentStatus) -> dict[str, Any]:
    """Set ``status``; a postponement only survives while one is pending."""
    updated = {**document, "status": status.value}
    if status is not AppointmentStatus.POSTPONE_REQUESTED:
        updated.pop("postponement", None)
    return updated


class AppointmentService(EntityService[Appointment]):
    """Appointments between an existing patient and doctor.

    Besides plain CRUD, appointments carry a status. Most status changes are
    unconditional overwrites (``update_appointment_status``,
    ``cancel_appointment``). Postponement is a small negotiation instead:

    * ``request_postponement`` (doctor), from ``scheduled`` or ``confirmed``,
      moves to ``postpone_requested`` and records the proposed time;
    * ``accept_postponement`` (patient) moves to ``confirmed`` at the
      proposed time;
    * ``reject_postponement`` (patient) moves to ``confirmed`` at the
      original time.
    """

    collection = Collection.APPOINTMENTS
    kind = EntityKind.APPOINTMENT
    entity_name = "Appointment"
    model = Appointment

    def __init__(
        self,
        store: DocumentStore,
        integrity: ReferentialIntegrityChecker | None = None,
        *,
        log: "Logger | None" = None,
    ) -> None:
        super().__init__(store, log=log)
        self._integrity = integrity or ReferentialIntegrityChecker(store, log=log)

    @returns_result("appointment-schedule")
    async def schedule_appointment(
        self, data: AppointmentRequest | Mapping[str, Any]
    ) -> Appointment:
        """Validate ``data``, confirm its patient and doctor exist, then store it.

        Status defaults to ``scheduled``.
        """
        request = AppointmentRequest.parse(data)
        await self._integrity.ensure_references(
            self.entity_name, request.patient_id, request.doctor_id
        )
        self._log.info("Scheduling appointment at {}", request.date_time)
        return await self._create(request.to_fields())

    @returns_result("appointment-get")
    async def get_appointment(self, id: str) -> Appointment:
        return await self._get(id)

    @returns_result("appointment-list")
    async def list_appointments(self) -> list[Appointment]:
        return await self._all()

    @returns_result("appointment-list-by-patient")
    async def get_appointments_by_patient(self, patient_id: str) -> list[Appointment]:
        return [a for a in await self._all() if a.patient_id == patient_id]

    @returns_result("appointment-list-by-doctor")
    async def get_appointments_by_doctor(self, doctor_id: str) -> list[Appointment]:
        return [a for a in await self._all() if a.doctor_id == doctor_id]

    @returns_result("appointment-update")
    async def update_appointment(self, id: str, changes: Mapping[str, Any]) -> Appointment:
        """Apply ``changes``; a changed patientId/doctorId must still resolve.

        The postponement record cannot be edited here; it is dropped if the
        resulting status is anything but ``postpone_requested``.
        """
        document, request = await self._merge(id, changes, AppointmentRequest)
        if changes_references(changes):
            await self._integrity.ensure_references(
                self.entity_name, request.patient_id, request.doctor_id
            )
        return await self._replace(_settle(document, request.status))

    @returns_result("appointment-update-status")
    async def update_appointment_status(
        self, id: str, status: AppointmentStatus | str
    ) -> Appointment:
        """Overwrite the status with any valid value, whatever the current one is."""
        new_status = _parse_status(status)
        document = await self._load_document(id)
        self._to_entity(document)
        return await self._replace(_settle(document, new_status))

    async def cancel_appointment(self, id: str) -> Ok[Appointment] | Err:
        """Shorthand for setting the status to ``cancelled``."""
        return await self.update_appointment_status(id, AppointmentStatus.CANCELLED)

    @returns_result("appointment-request-postponement")
    async def request_postponement(
        self, id: str, new_date_time: dt.datetime | str, reason: str
    ) -> Appointment:
        """Doctor proposes ``new_date_time``; the patient must accept or reject it."""
        request = PostponementRequest.parse({"newDateTime": new_date_time, "reason": reason})
        document = await self._load_document(id)
        appointment = self._to_entity(document)
        if appointment.status not in _POSTPONABLE:
            raise InvalidStateTransitionError(
                appointment.id, appointment.status.value, "request postponement for"
            )

        postponement = Postponement(
            new_date_time=request.new_date_time,
            reason=request.reason,
            requested_by="doctor",
            requested_at=utc_now(),
        )
        updated = {
            **_settle(document, AppointmentStatus.POSTPONE_REQUESTED),
            "postponement": postponement.to_document(),
        }
        return await self._replace(updated)

    @returns_result("appointment-accept-postponement")
    async def accept_postponement(self, id: str) -> Appointment:
        """Patient agrees: move to the proposed time and note the reason."""
        document = await self._load_document(id)
        appointment, postponement = self._pending(document, "accept postponement for")

        note = f"Postponed: {postponement.reason}"
        updated = _settle(document, AppointmentStatus.CONFIRMED)
        updated["dateTime"] = document["postponement"]["newDateTime"]
        updated["notes"] = f"{appointment.notes}\n\n{note}" if appointment.notes else note
        return await self._replace(updated)

    @returns_result("appointment-reject-postponement")
    async def reject_postponement(self, id: str) -> Appointment:
        """Patient declines: keep the original time and confirm it."""
        document = await self._load_document(id)
        self._pending(document, "reject postponement for")
        return await self._replace(_settle(document, AppointmentStatus.CONFIRMED))

    @returns_result("appointment-delete")
    async def delete_appointment(self, id: str) -> None:
        await self._delete(id)

    def _pending(
        self, document: dict[str, Any], transition: str
    ) -> tuple[Appointment, Postponement]:
        appointment = self._to_entity(document)
        if (
            appointment.status is not AppointmentStatus.POSTPONE_REQUESTED
            or appointment.postponement is None
        ):
            raise InvalidStateTransitionError(
                appointment.id, appointment.status.value, transition
            )
        return appointment, appointment.postponement
