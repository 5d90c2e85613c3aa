import datetime as dt
from collections.abc import Mapping
from enum import Enum
from typing import Annotated, Any, ClassVar, Literal, Self

from pydantic import BaseModel, BeforeValidator, ConfigDict
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from hospital.domain.exceptions import InvalidFormatError
from hospital.domain.validation import (
    is_valid_date,
    is_valid_date_time,
    is_valid_email,
    is_valid_phone_number,
    require_fields,
    sanitize_string,
)


class AppointmentStatus(str, Enum):
    """Possible states of an appointment."""

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"
    POSTPONE_REQUESTED = "postpone_requested"


class Document(BaseModel):
    """A stored entity, serialized with camelCase keys and absent optionals omitted."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class Entity(Document):
    """A top-level document stored under its own id."""

    id: str


class Patient(Entity):
    """An individual receiving care."""

    name: str
    date_of_birth: dt.date
    contact_number: str
    address: str
    email: str | None = None
    created_at: dt.datetime


class Doctor(Entity):
    """A medical professional providing care."""

    name: str
    specialization: str
    contact_number: str
    email: str | None = None
    created_at: dt.datetime


class Postponement(Document):
    """A proposed new time for an appointment, awaiting the patient's answer."""

    new_date_time: dt.datetime
    reason: str
    requested_by: Literal["doctor", "patient"] = "doctor"
    requested_at: dt.datetime


class Appointment(Entity):
    """A scheduled meeting between a patient and a doctor."""

    patient_id: str
    doctor_id: str
    date_time: dt.datetime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: str | None = None
    created_at: dt.datetime
    postponement: Postponement | None = None


class MedicalRecord(Entity):
    """A diagnosis and treatment written by a doctor for a patient."""

    patient_id: str
    doctor_id: str
    diagnosis: str
    treatment: str
    notes: str
    created_at: dt.datetime


# Input models


def _text(value: Any) -> str:
    cleaned = sanitize_string(value)
    if not cleaned:
        raise ValueError("must be a non-empty string")
    return cleaned


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    return sanitize_string(value) or None


def _optional_email(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("must be in valid email format")
    cleaned = sanitize_string(value)
    if not cleaned:
        return None
    if not is_valid_email(cleaned):
        raise ValueError("must be in valid email format")
    return cleaned


def _phone(value: Any) -> str:
    cleaned = sanitize_string(value)
    if not is_valid_phone_number(cleaned):
        raise ValueError("must be a valid phone number")
    return cleaned


def _date(value: Any) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    if not is_valid_date(value):
        raise ValueError("must be in valid date format (YYYY-MM-DD)")
    return dt.date.fromisoformat(value.strip()[:10])


def _date_time(value: Any) -> dt.datetime:
    if isinstance(value, dt.datetime):
        return value
    if not is_valid_date_time(value):
        raise ValueError("must be a valid ISO 8601 date-time")
    return dt.datetime.fromisoformat(value.strip())


RequiredText = Annotated[str, BeforeValidator(_text)]
OptionalText = Annotated[str | None, BeforeValidator(_optional_text)]
OptionalEmail = Annotated[str | None, BeforeValidator(_optional_email)]
PhoneNumber = Annotated[str, BeforeValidator(_phone)]
CalendarDate = Annotated[dt.date, BeforeValidator(_date)]
DateTime = Annotated[dt.datetime, BeforeValidator(_date_time)]


def _format_error(entity_name: str, exc: PydanticValidationError) -> InvalidFormatError:
    fields: list[str] = []
    problems: list[str] = []
    for error in exc.errors():
        loc = ".".join(str(part) for part in error["loc"])
        msg = error["msg"].removeprefix("Value error, ")
        fields.append(loc)
        problems.append(f"{loc} {msg}")
    return InvalidFormatError(
        f"Invalid {entity_name} data: {'; '.join(problems)}",
        {"entityType": entity_name, "invalidFields": fields},
    )


class InputModel(BaseModel):
    """Base for per-operation payloads parsed from untrusted input.

    ``parse`` accepts camelCase (wire) or snake_case keys, reports every
    missing required field at once, then checks formats and sanitizes.
    """

    model_config = ConfigDict(
        frozen=True, alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )

    entity_name: ClassVar[str]
    required_fields: ClassVar[tuple[str, ...]]

    @classmethod
    def parse(cls, data: "Mapping[str, Any] | Self") -> Self:
        if isinstance(data, cls):
            return data

        payload: dict[str, Any] = {}
        for name, field in cls.model_fields.items():
            alias = field.alias or name
            if alias in data:
                payload[alias] = data[alias]
            elif name in data:
                payload[alias] = data[name]

        require_fields(cls.entity_name, payload, cls.required_fields)
        try:
            return cls.model_validate(payload)
        except PydanticValidationError as exc:
            raise _format_error(cls.entity_name, exc) from exc

    @classmethod
    def wire_keys(cls, data: Mapping[str, Any]) -> dict[str, Any]:
        """Rename snake_case field names in ``data`` to their camelCase wire names."""
        aliases = {name: field.alias or name for name, field in cls.model_fields.items()}
        return {aliases.get(key, key): value for key, value in data.items()}

    def to_fields(self) -> dict[str, Any]:
        """Wire-keyed fields, with ``None`` for optionals the caller cleared."""
        return self.model_dump(mode="json", by_alias=True)


class PatientRegistration(InputModel):
    entity_name = "Patient"
    required_fields = ("name", "dateOfBirth", "contactNumber", "address")

    name: RequiredText
    date_of_birth: CalendarDate
    contact_number: PhoneNumber
    address: RequiredText
    email: OptionalEmail = None


class DoctorRegistration(InputModel):
    entity_name = "Doctor"
    required_fields = ("name", "specialization", "contactNumber")

    name: RequiredText
    specialization: RequiredText
    contact_number: PhoneNumber
    email: OptionalEmail = None


class AppointmentRequest(InputModel):
    entity_name = "Appointment"
    required_fields = ("patientId", "doctorId", "dateTime")

    patient_id: RequiredText
    doctor_id: RequiredText
    date_time: DateTime
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    notes: OptionalText = None


class MedicalRecordInput(InputModel):
    entity_name = "MedicalRecord"
    required_fields = ("patientId", "doctorId", "diagnosis", "treatment", "notes")

    patient_id: RequiredText
    doctor_id: RequiredText
    diagnosis: RequiredText
    treatment: RequiredText
    notes: RequiredText


class PostponementRequest(InputModel):
    entity_name = "Postponement"
    required_fields = ("newDateTime", "reason")

    new_date_time: DateTime
    reason: RequiredText
