import datetime as dt
import json
from typing import Any

import pytest
import pytest_asyncio

from hospital.domain.exceptions import ErrorCode, StorageError
from hospital.domain.models import Appointment, AppointmentStatus, Doctor, Patient
from hospital.domain.result import Err, Ok
from hospital.services.appointments import AppointmentService
from hospital.services.doctors import DoctorService
from hospital.services.patients import PatientService
from hospital.storage.adapters.memory import InMemoryDocumentStore

# Fixtures (store, appointments, patients, doctors, patient, doctor) provided by tests/conftest.py


def _request(patient: Patient, doctor: Doctor, **overrides: Any) -> dict[str, Any]:
    return {
        "patientId": patient.id,
        "doctorId": doctor.id,
        "dateTime": "2026-03-15T14:30:00",
        **overrides,
    }


@pytest_asyncio.fixture
async def appointment(
    appointments: AppointmentService, patient: Patient, doctor: Doctor
) -> Appointment:
    result = await appointments.schedule_appointment(_request(patient, doctor))
    assert isinstance(result, Ok)
    return result.value


async def _set_status(
    appointments: AppointmentService, appointment: Appointment, status: AppointmentStatus
) -> None:
    result = await appointments.update_appointment_status(appointment.id, status)
    assert isinstance(result, Ok)


class TestScheduleAppointment:
    @pytest.mark.asyncio
    async def test_defaults_to_scheduled(
        self, appointments: AppointmentService, patient: Patient, doctor: Doctor
    ) -> None:
        result = await appointments.schedule_appointment(_request(patient, doctor))

        assert isinstance(result, Ok)
        appointment = result.value
        assert appointment.id.startswith("APT-")
        assert appointment.status is AppointmentStatus.SCHEDULED
        assert appointment.date_time == dt.datetime(2026, 3, 15, 14, 30)
        assert appointment.postponement is None

    @pytest.mark.asyncio
    async def test_missing_doctor_writes_nothing(
        self,
        appointments: AppointmentService,
        store: InMemoryDocumentStore,
        patient: Patient,
    ) -> None:
        result = await appointments.schedule_appointment(
            {"patientId": patient.id, "doctorId": "DOC-404", "dateTime": "2026-03-15T14:30:00"}
        )

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.REFERENTIAL_INTEGRITY_ERROR
        assert result.details["referencedType"] == "Doctor"
        assert result.details["referencedId"] == "DOC-404"
        assert store.count("appointments") == 0

    @pytest.mark.asyncio
    async def test_missing_patient_writes_nothing(
        self, appointments: AppointmentService, store: InMemoryDocumentStore, doctor: Doctor
    ) -> None:
        result = await appointments.schedule_appointment(
            {"patientId": "PAT-404", "doctorId": doctor.id, "dateTime": "2026-03-15T14:30:00"}
        )

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.REFERENTIAL_INTEGRITY_ERROR
        assert result.details["referencedType"] == "Patient"
        assert store.count("appointments") == 0

    @pytest.mark.asyncio
    async def test_missing_fields_checked_before_references(
        self, appointments: AppointmentService
    ) -> None:
        result = await appointments.schedule_appointment({"notes": "Check-up"})

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.MISSING_REQUIRED_FIELDS
        assert result.details["missingFields"] == ["patientId", "doctorId", "dateTime"]

    @pytest.mark.asyncio
    async def test_invalid_date_time(
        self, appointments: AppointmentService, patient: Patient, doctor: Doctor
    ) -> None:
        result = await appointments.schedule_appointment(
            _request(patient, doctor, dateTime="next tuesday")
        )

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.INVALID_FORMAT

    @pytest.mark.asyncio
    async def test_storage_failure_writes_nothing(
        self,
        appointments: AppointmentService,
        store: InMemoryDocumentStore,
        patient: Patient,
        doctor: Doctor,
    ) -> None:
        store.save_error = StorageError("save", "appointments/x", "read-only file system")

        result = await appointments.schedule_appointment(_request(patient, doctor))

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.STORAGE_ERROR
        assert store.count("appointments") == 0


class TestFilters:
    @pytest.mark.asyncio
    async def test_by_patient_and_doctor_are_complete_and_exact(
        self,
        appointments: AppointmentService,
        patients: PatientService,
        doctors: DoctorService,
        patient: Patient,
        doctor: Doctor,
        patient_data: dict[str, Any],
        doctor_data: dict[str, Any],
    ) -> None:
        other_patient = (await patients.register_patient({**patient_data, "name": "Ann"})).value
        other_doctor = (await doctors.register_doctor({**doctor_data, "name": "Dr. B"})).value

        pairs = [
            (patient, doctor),
            (patient, other_doctor),
            (patient, doctor),
            (other_patient, doctor),
            (other_patient, other_doctor),
        ]
        created = []
        for p, d in pairs:
            result = await appointments.schedule_appointment(_request(p, d))
            assert isinstance(result, Ok)
            created.append(result.value)

        by_patient = await appointments.get_appointments_by_patient(patient.id)
        by_doctor = await appointments.get_appointments_by_doctor(other_doctor.id)

        assert isinstance(by_patient, Ok)
        assert isinstance(by_doctor, Ok)
        assert {a.id for a in by_patient.value} == {
            a.id for a in created if a.patient_id == patient.id
        }
        assert {a.id for a in by_doctor.value} == {
            a.id for a in created if a.doctor_id == other_doctor.id
        }

    @pytest.mark.asyncio
    async def test_unknown_patient_yields_empty_list(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        result = await appointments.get_appointments_by_patient("PAT-404")

        assert isinstance(result, Ok)
        assert result.value == []


class TestUpdateAppointment:
    @pytest.mark.asyncio
    async def test_notes_only_update_skips_reference_check(
        self,
        appointments: AppointmentService,
        patients: PatientService,
        appointment: Appointment,
    ) -> None:
        await patients.delete_patient(appointment.patient_id)

        result = await appointments.update_appointment(appointment.id, {"notes": "Bring X-rays"})

        assert isinstance(result, Ok)
        assert result.value.notes == "Bring X-rays"
        assert result.value.patient_id == appointment.patient_id

    @pytest.mark.asyncio
    async def test_new_doctor_must_exist(
        self,
        appointments: AppointmentService,
        store: InMemoryDocumentStore,
        appointment: Appointment,
    ) -> None:
        before = store.documents["appointments"][appointment.id]

        result = await appointments.update_appointment(appointment.id, {"doctorId": "DOC-404"})

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.REFERENTIAL_INTEGRITY_ERROR
        assert store.documents["appointments"][appointment.id] == before

    @pytest.mark.asyncio
    async def test_reschedule(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        result = await appointments.update_appointment(
            appointment.id, {"date_time": "2026-04-01T10:00:00"}
        )

        assert isinstance(result, Ok)
        assert result.value.date_time == dt.datetime(2026, 4, 1, 10, 0)
        assert result.value.created_at == appointment.created_at


class TestUpdateStatus:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", list(AppointmentStatus))
    async def test_any_valid_status_is_accepted(
        self, appointments: AppointmentService, appointment: Appointment, status: AppointmentStatus
    ) -> None:
        result = await appointments.update_appointment_status(appointment.id, status.value)

        assert isinstance(result, Ok)
        assert result.value.status is status

    @pytest.mark.asyncio
    async def test_invalid_status_lists_allowed_values(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        result = await appointments.update_appointment_status(appointment.id, "archived")

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.INVALID_FORMAT
        assert result.message.startswith("Invalid status: archived. Status must be one of:")
        assert "postpone_requested" in result.message

    @pytest.mark.asyncio
    async def test_cancelled_can_be_rescheduled(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        await appointments.cancel_appointment(appointment.id)

        result = await appointments.update_appointment_status(
            appointment.id, AppointmentStatus.SCHEDULED
        )

        assert isinstance(result, Ok)
        assert result.value.status is AppointmentStatus.SCHEDULED

    @pytest.mark.asyncio
    async def test_cancel(self, appointments: AppointmentService, appointment: Appointment) -> None:
        result = await appointments.cancel_appointment(appointment.id)

        assert isinstance(result, Ok)
        assert result.value.status is AppointmentStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel_unknown(self, appointments: AppointmentService) -> None:
        result = await appointments.cancel_appointment("APT-404")

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.ENTITY_NOT_FOUND

    @pytest.mark.asyncio
    async def test_leaving_postpone_requested_drops_the_proposal(
        self,
        appointments: AppointmentService,
        store: InMemoryDocumentStore,
        appointment: Appointment,
    ) -> None:
        await appointments.request_postponement(appointment.id, "2026-03-20T09:00:00", "Travel")

        result = await appointments.update_appointment_status(
            appointment.id, AppointmentStatus.COMPLETED
        )

        assert isinstance(result, Ok)
        assert result.value.postponement is None
        assert "postponement" not in json.loads(store.documents["appointments"][appointment.id])


class TestPostponement:
    @pytest.mark.asyncio
    async def test_request_records_the_proposal(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        result = await appointments.request_postponement(
            appointment.id, "2026-03-20T09:00:00", "Conference"
        )

        assert isinstance(result, Ok)
        updated = result.value
        assert updated.status is AppointmentStatus.POSTPONE_REQUESTED
        assert updated.date_time == appointment.date_time
        assert updated.postponement is not None
        assert updated.postponement.new_date_time == dt.datetime(2026, 3, 20, 9, 0)
        assert updated.postponement.reason == "Conference"
        assert updated.postponement.requested_by == "doctor"

    @pytest.mark.asyncio
    async def test_request_from_confirmed(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        await _set_status(appointments, appointment, AppointmentStatus.CONFIRMED)

        result = await appointments.request_postponement(
            appointment.id, dt.datetime(2026, 3, 21, 11, 0), "Surgery overran"
        )

        assert isinstance(result, Ok)
        assert result.value.status is AppointmentStatus.POSTPONE_REQUESTED

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status",
        [
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.POSTPONED,
            AppointmentStatus.POSTPONE_REQUESTED,
        ],
    )
    async def test_request_rejected_from_other_statuses(
        self,
        appointments: AppointmentService,
        store: InMemoryDocumentStore,
        appointment: Appointment,
        status: AppointmentStatus,
    ) -> None:
        await _set_status(appointments, appointment, status)
        before = store.documents["appointments"][appointment.id]

        result = await appointments.request_postponement(
            appointment.id, "2026-03-20T09:00:00", "Conference"
        )

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.INVALID_STATE_TRANSITION
        assert result.details["currentStatus"] == status.value
        assert store.documents["appointments"][appointment.id] == before

    @pytest.mark.asyncio
    async def test_request_needs_a_reason(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        result = await appointments.request_postponement(appointment.id, "2026-03-20T09:00:00", "")

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.MISSING_REQUIRED_FIELDS
        assert result.details["missingFields"] == ["reason"]

    @pytest.mark.asyncio
    async def test_accept_moves_to_the_proposed_time(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        await appointments.request_postponement(appointment.id, "2026-03-20T09:00:00", "Conference")

        result = await appointments.accept_postponement(appointment.id)

        assert isinstance(result, Ok)
        accepted = result.value
        assert accepted.status is AppointmentStatus.CONFIRMED
        assert accepted.date_time == dt.datetime(2026, 3, 20, 9, 0)
        assert accepted.notes == "Postponed: Conference"
        assert accepted.postponement is None

    @pytest.mark.asyncio
    async def test_accept_appends_to_existing_notes(
        self,
        appointments: AppointmentService,
        patient: Patient,
        doctor: Doctor,
    ) -> None:
        scheduled = await appointments.schedule_appointment(
            _request(patient, doctor, notes="Fasting required")
        )
        assert isinstance(scheduled, Ok)
        await appointments.request_postponement(
            scheduled.value.id, "2026-03-20T09:00:00", "Conference"
        )

        result = await appointments.accept_postponement(scheduled.value.id)

        assert isinstance(result, Ok)
        assert result.value.notes == "Fasting required\n\nPostponed: Conference"

    @pytest.mark.asyncio
    async def test_reject_keeps_the_original_time(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        await appointments.request_postponement(appointment.id, "2026-03-20T09:00:00", "Conference")

        result = await appointments.reject_postponement(appointment.id)

        assert isinstance(result, Ok)
        rejected = result.value
        assert rejected.status is AppointmentStatus.CONFIRMED
        assert rejected.date_time == appointment.date_time
        assert rejected.postponement is None
        assert rejected.notes is None

    @pytest.mark.asyncio
    async def test_can_request_again_after_reject(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        await appointments.request_postponement(appointment.id, "2026-03-20T09:00:00", "First")
        await appointments.reject_postponement(appointment.id)

        result = await appointments.request_postponement(
            appointment.id, "2026-03-22T09:00:00", "Second"
        )

        assert isinstance(result, Ok)
        assert result.value.postponement is not None
        assert result.value.postponement.reason == "Second"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("answer", ["accept_postponement", "reject_postponement"])
    async def test_answer_requires_a_pending_request(
        self, appointments: AppointmentService, appointment: Appointment, answer: str
    ) -> None:
        result = await getattr(appointments, answer)(appointment.id)

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.INVALID_STATE_TRANSITION
        assert result.details["currentStatus"] == "scheduled"

    @pytest.mark.asyncio
    async def test_unknown_appointment(self, appointments: AppointmentService) -> None:
        result = await appointments.accept_postponement("APT-404")

        assert isinstance(result, Err)
        assert result.kind == ErrorCode.ENTITY_NOT_FOUND


class TestDeleteAppointment:
    @pytest.mark.asyncio
    async def test_removes_appointment(
        self, appointments: AppointmentService, appointment: Appointment
    ) -> None:
        await appointments.delete_appointment(appointment.id)

        result = await appointments.list_appointments()

        assert isinstance(result, Ok)
        assert result.value == []
