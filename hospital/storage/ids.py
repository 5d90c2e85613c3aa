import random
import re
import string
import time
from enum import Enum


class EntityKind(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"
    APPOINTMENT = "appointment"
    MEDICAL_RECORD = "medical-record"


_PREFIXES: dict[EntityKind, str] = {
    EntityKind.PATIENT: "PAT",
    EntityKind.DOCTOR: "DOC",
    EntityKind.APPOINTMENT: "APT",
    EntityKind.MEDICAL_RECORD: "MED",
}

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits
_SUFFIX_LENGTH = 6

ID_PATTERN = re.compile(r"^(PAT|DOC|APT|MED)-\d{13}-[a-z0-9]{6}$")


def generate_id(kind: EntityKind) -> str:
    """Return ``{PREFIX}-{epoch millis}-{random suffix}``, e.g. ``PAT-1718000000000-k3j9x0``.

    Ids are unique enough for a single process. Nothing coordinates
    generation across processes, so two writers could in principle collide.
    """
    millis = time.time_ns() // 1_000_000
    suffix = "".join(random.choices(_SUFFIX_ALPHABET, k=_SUFFIX_LENGTH))
    return f"{_PREFIXES[kind]}-{millis}-{suffix}"
