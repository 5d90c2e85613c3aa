from typing import Any

import pytest
import pytest_asyncio

from hospital.domain.models import Doctor, Patient
from hospital.domain.result import Ok
from hospital.services.appointments import AppointmentService
from hospital.services.doctors import DoctorService
from hospital.services.integrity import ReferentialIntegrityChecker
from hospital.services.patients import PatientService
from hospital.services.records import MedicalRecordService
from hospital.storage.adapters.filesystem import JsonFileStore
from hospital.storage.adapters.memory import InMemoryDocumentStore


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore()


@pytest.fixture
def file_store(tmp_path) -> JsonFileStore:
    return JsonFileStore(tmp_path / "data")


@pytest.fixture
def integrity(store: InMemoryDocumentStore) -> ReferentialIntegrityChecker:
    return ReferentialIntegrityChecker(store)


@pytest.fixture
def patients(store: InMemoryDocumentStore) -> PatientService:
    return PatientService(store)


@pytest.fixture
def doctors(store: InMemoryDocumentStore) -> DoctorService:
    return DoctorService(store)


@pytest.fixture
def appointments(
    store: InMemoryDocumentStore, integrity: ReferentialIntegrityChecker
) -> AppointmentService:
    return AppointmentService(store, integrity)


@pytest.fixture
def records(
    store: InMemoryDocumentStore, integrity: ReferentialIntegrityChecker
) -> MedicalRecordService:
    return MedicalRecordService(store, integrity)


@pytest.fixture
def patient_data() -> dict[str, Any]:
    return {
        "name": "John Doe",
        "dateOfBirth": "1990-01-15",
        "contactNumber": "555-1234",
        "address": "1 Main St",
    }


@pytest.fixture
def doctor_data() -> dict[str, Any]:
    return {
        "name": "Dr. Jane Smith",
        "specialization": "Cardiology",
        "contactNumber": "555-0000",
        "email": "jane.smith@hospital.org",
    }


@pytest_asyncio.fixture
async def patient(patients: PatientService, patient_data: dict[str, Any]) -> Patient:
    result = await patients.register_patient(patient_data)
    assert isinstance(result, Ok)
    return result.value


@pytest_asyncio.fixture
async def doctor(doctors: DoctorService, doctor_data: dict[str, Any]) -> Doctor:
    result = await doctors.register_doctor(doctor_data)
    assert isinstance(result, Ok)
    return result.value
