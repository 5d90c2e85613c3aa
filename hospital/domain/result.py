from typing import Any, Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from hospital.domain.exceptions import ErrorCode, HospitalError, user_message

T = TypeVar("T")


class Ok(BaseModel, Generic[T]):
    """Successful outcome of a service call."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    ok: Literal[True] = True
    value: T


class Err(BaseModel):
    """Failed outcome of a service call.

    ``kind`` is the machine-readable discriminant callers branch on;
    ``message`` is for logs and developers; ``user_message`` is safe to show.
    """

    model_config = ConfigDict(frozen=True)

    ok: Literal[False] = False
    kind: ErrorCode
    message: str
    details: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_exception(cls, exc: HospitalError) -> "Err":
        return cls(kind=exc.code, message=exc.message, details=exc.details)

    @property
    def user_message(self) -> str:
        return user_message(self.kind, self.message)
