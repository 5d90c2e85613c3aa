from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Machine-readable kind carried by every failure."""

    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    INVALID_FORMAT = "INVALID_FORMAT"
    ENTITY_NOT_FOUND = "ENTITY_NOT_FOUND"
    ENTITY_ALREADY_EXISTS = "ENTITY_ALREADY_EXISTS"
    REFERENTIAL_INTEGRITY_ERROR = "REFERENTIAL_INTEGRITY_ERROR"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    STORAGE_ERROR = "STORAGE_ERROR"
    DATA_CORRUPTION = "DATA_CORRUPTION"
    INITIALIZATION_ERROR = "INITIALIZATION_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


class HospitalError(Exception):
    """Base exception for all record-management errors."""

    code: ErrorCode = ErrorCode.UNKNOWN_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)


class ValidationError(HospitalError):
    """Raised when required fields are missing, listing all of them at once."""

    code = ErrorCode.MISSING_REQUIRED_FIELDS

    def __init__(self, entity_type: str, missing_fields: list[str]) -> None:
        self.entity_type = entity_type
        self.missing_fields = missing_fields
        super().__init__(
            f"Missing required fields for {entity_type}: {', '.join(missing_fields)}",
            {"entityType": entity_type, "missingFields": missing_fields},
        )


class InvalidFormatError(HospitalError):
    """Raised when a field is present but malformed."""

    code = ErrorCode.INVALID_FORMAT


class EntityNotFoundError(HospitalError):
    code = ErrorCode.ENTITY_NOT_FOUND

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} with ID '{entity_id}' not found",
            {"entityType": entity_type, "id": entity_id},
        )


class EntityAlreadyExistsError(HospitalError):
    code = ErrorCode.ENTITY_ALREADY_EXISTS

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(
            f"{entity_type} with ID '{entity_id}' already exists",
            {"entityType": entity_type, "id": entity_id},
        )


class ReferentialIntegrityError(HospitalError):
    """Raised when a patientId/doctorId does not name a stored entity."""

    code = ErrorCode.REFERENTIAL_INTEGRITY_ERROR

    def __init__(
        self, entity_type: str, referenced_type: str, referenced_id: str, collection: str
    ) -> None:
        self.entity_type = entity_type
        self.referenced_type = referenced_type
        self.referenced_id = referenced_id
        self.collection = collection
        super().__init__(
            f"Cannot save {entity_type}: referenced {referenced_type} "
            f"with ID '{referenced_id}' does not exist",
            {
                "entityType": entity_type,
                "referencedType": referenced_type,
                "referencedId": referenced_id,
                "collection": collection,
            },
        )


class InvalidStateTransitionError(HospitalError):
    """Raised when an appointment transition is illegal from its current status."""

    code = ErrorCode.INVALID_STATE_TRANSITION

    def __init__(self, appointment_id: str, current_status: str, transition: str) -> None:
        self.appointment_id = appointment_id
        self.current_status = current_status
        self.transition = transition
        super().__init__(
            f"Cannot {transition} appointment '{appointment_id}' with status: {current_status}",
            {
                "id": appointment_id,
                "currentStatus": current_status,
                "transition": transition,
            },
        )


class StorageError(HospitalError):
    """Raised when a read, write, list or delete on the backing store fails."""

    code = ErrorCode.STORAGE_ERROR

    def __init__(self, operation: str, path: str, reason: str) -> None:
        self.operation = operation
        self.path = path
        self.reason = reason
        super().__init__(
            f"Storage operation '{operation}' failed for '{path}': {reason}",
            {"operation": operation, "path": path, "reason": reason},
        )


class DataCorruptionError(HospitalError):
    """Raised when a targeted load finds a document that cannot be parsed."""

    code = ErrorCode.DATA_CORRUPTION

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Corrupted data file: {path}", {"path": path, "reason": reason})


class InitializationError(HospitalError):
    code = ErrorCode.INITIALIZATION_ERROR


_USER_MESSAGES: dict[ErrorCode, str] = {
    ErrorCode.MISSING_REQUIRED_FIELDS: "Please provide all required information.",
    ErrorCode.INVALID_FORMAT: "The provided information is not in the correct format.",
    ErrorCode.ENTITY_NOT_FOUND: "The requested item could not be found.",
    ErrorCode.ENTITY_ALREADY_EXISTS: "This item already exists.",
    ErrorCode.REFERENTIAL_INTEGRITY_ERROR: "Invalid reference detected.",
    ErrorCode.INVALID_STATE_TRANSITION: "This action is not allowed in the item's current state.",
    ErrorCode.STORAGE_ERROR: (
        "A system error occurred while saving or retrieving data. Please try again."
    ),
    ErrorCode.DATA_CORRUPTION: "Data corruption detected. Please contact system administrator.",
    ErrorCode.INITIALIZATION_ERROR: (
        "System initialization failed. Please check system configuration."
    ),
}


def user_message(code: ErrorCode, message: str = "") -> str:
    """Translate an error kind into a sentence fit for end users.

    Kinds caused by the caller's input append ``message`` so the user knows
    what to fix; system-side kinds never expose internal details.
    """
    friendly = _USER_MESSAGES.get(
        code, "An unexpected error occurred. Please try again or contact support."
    )
    if message and code in {
        ErrorCode.MISSING_REQUIRED_FIELDS,
        ErrorCode.INVALID_FORMAT,
        ErrorCode.ENTITY_NOT_FOUND,
        ErrorCode.ENTITY_ALREADY_EXISTS,
        ErrorCode.REFERENTIAL_INTEGRITY_ERROR,
        ErrorCode.INVALID_STATE_TRANSITION,
    }:
        return f"{friendly} {message}"
    return friendly
