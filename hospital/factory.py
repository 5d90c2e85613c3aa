import sys
from dataclasses import dataclass

from loguru import logger

from hospital.config import AppConfig
from hospital.domain.exceptions import InitializationError
from hospital.services.appointments import AppointmentService
from hospital.services.doctors import DoctorService
from hospital.services.integrity import ReferentialIntegrityChecker
from hospital.services.patients import PatientService
from hospital.services.records import MedicalRecordService
from hospital.storage.adapters.filesystem import JsonFileStore
from hospital.storage.ports import Collection


@dataclass(frozen=True)
class HospitalSystem:
    """Everything a CLI or HTTP layer needs, wired to one data directory."""

    store: JsonFileStore
    patients: PatientService
    doctors: DoctorService
    appointments: AppointmentService
    records: MedicalRecordService
    log_handler_id: int | None = None


def configure_logging(level: str) -> int:
    """Add a stderr sink at ``level`` and above; return its loguru handler id.

    Sinks the host process already installed are left alone. Pass the id to
    ``logger.remove`` to take this sink down again.
    """
    return logger.add(sys.stderr, level=level.upper())


async def build_system(
    config: AppConfig | None = None, *, configure_logs: bool = False
) -> HospitalSystem:
    """Create the data directory if needed and build every service on top of it.

    With ``configure_logs`` a stderr sink at ``config.log_level`` is added and
    its id kept on the returned system; otherwise logging is left to the host.

    Raises:
        InitializationError: If the data directory cannot be created.
        StorageError: If an existing collection cannot be listed.
    """
    config = config or AppConfig()
    handler_id = configure_logging(config.log_level) if configure_logs else None
    log = logger.bind(app="hospital")
    log.info("Starting system with data directory: {}", config.data_dir)

    store = JsonFileStore(config.data_dir, log=log)
    try:
        await store.initialize()
    except InitializationError:
        if handler_id is not None:
            logger.remove(handler_id)
        raise

    integrity = ReferentialIntegrityChecker(store, log=log)
    system = HospitalSystem(
        store=store,
        patients=PatientService(store, log=log),
        doctors=DoctorService(store, log=log),
        appointments=AppointmentService(store, integrity, log=log),
        records=MedicalRecordService(store, integrity, log=log),
        log_handler_id=handler_id,
    )

    counts = {c.value: len(await store.load_all(c)) for c in Collection}
    log.info(
        "System ready: {} patient(s), {} doctor(s), {} appointment(s), {} medical record(s)",
        counts[Collection.PATIENTS.value],
        counts[Collection.DOCTORS.value],
        counts[Collection.APPOINTMENTS.value],
        counts[Collection.MEDICAL_RECORDS.value],
    )
    return system
