import datetime as dt
import functools
from collections.abc import Awaitable, Callable, Mapping
from typing import TYPE_CHECKING, Any, ClassVar, Concatenate, Generic, ParamSpec, TypeVar

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from hospital.domain.exceptions import (
    DataCorruptionError,
    EntityAlreadyExistsError,
    EntityNotFoundError,
    ErrorCode,
    HospitalError,
)
from hospital.domain.models import Entity, InputModel
from hospital.domain.result import Err, Ok
from hospital.domain.validation import require_id
from hospital.storage.ids import EntityKind, generate_id
from hospital.storage.ports import Collection, DocumentStore

if TYPE_CHECKING:
    from loguru import Logger

ModelT = TypeVar("ModelT", bound=Entity)
ServiceT = TypeVar("ServiceT", bound="EntityService[Any]")
P = ParamSpec("P")
R = TypeVar("R")
InputT = TypeVar("InputT", bound=InputModel)

_IMMUTABLE_KEYS = frozenset({"id", "createdAt", "created_at"})


def returns_result(
    operation: str,
) -> Callable[
    [Callable[Concatenate[ServiceT, P], Awaitable[R]]],
    Callable[Concatenate[ServiceT, P], Awaitable[Ok[R] | Err]],
]:
    """Turn a raising service coroutine into one returning ``Ok`` or ``Err``.

    Known failures keep their kind; anything else is logged with its
    traceback and reported as ``UNKNOWN_ERROR``.
    """

    def decorator(
        func: Callable[Concatenate[ServiceT, P], Awaitable[R]],
    ) -> Callable[Concatenate[ServiceT, P], Awaitable[Ok[R] | Err]]:
        @functools.wraps(func)
        async def wrapper(self: ServiceT, *args: P.args, **kwargs: P.kwargs) -> Ok[R] | Err:
            try:
                value = await func(self, *args, **kwargs)
            except HospitalError as exc:
                self._log.warning("{} failed [{}]: {}", operation, exc.code.value, exc.message)
                return Err.from_exception(exc)
            except Exception as exc:
                self._log.exception("Unexpected error in {}", operation)
                return Err(
                    kind=ErrorCode.UNKNOWN_ERROR,
                    message=str(exc) or type(exc).__name__,
                    details={"operation": operation},
                )
            return Ok(value=value)

        return wrapper

    return decorator


def utc_now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class EntityService(Generic[ModelT]):
    """Shared persistence plumbing for one collection of entities.

    Subclasses expose the public operations; helpers here raise
    ``HospitalError`` subclasses and never touch the store before the
    candidate document has been validated.
    """

    collection: ClassVar[Collection]
    kind: ClassVar[EntityKind]
    entity_name: ClassVar[str]
    model: type[ModelT]

    def __init__(self, store: DocumentStore, *, log: "Logger | None" = None) -> None:
        self._store = store
        self._log = (log or logger).bind(component=self.collection.value)

    def _to_entity(self, document: Mapping[str, Any]) -> ModelT:
        try:
            return self.model.model_validate(document)
        except PydanticValidationError as exc:
            raise DataCorruptionError(
                f"{self.collection.value}/{document.get('id')}",
                f"document does not match the {self.entity_name} shape: {exc}",
            ) from exc

    async def _load_document(self, id: Any) -> dict[str, Any]:
        entity_id = require_id(id, self.entity_name)
        document = await self._store.load(self.collection, entity_id)
        if document is None:
            raise EntityNotFoundError(self.entity_name, entity_id)
        return document

    async def _get(self, id: Any) -> ModelT:
        return self._to_entity(await self._load_document(id))

    async def _all(self) -> list[ModelT]:
        entities: list[ModelT] = []
        for document in await self._store.load_all(self.collection):
            try:
                entities.append(self.model.model_validate(document))
            except PydanticValidationError as exc:
                self._log.warning(
                    "Skipping malformed {} document {}: {} error(s)",
                    self.entity_name,
                    document.get("id"),
                    exc.error_count(),
                )
        return entities

    async def _create(self, fields: Mapping[str, Any]) -> ModelT:
        entity_id = generate_id(self.kind)
        if await self._store.exists(self.collection, entity_id):
            raise EntityAlreadyExistsError(self.entity_name, entity_id)

        document = {"id": entity_id, **fields, "createdAt": utc_now()}
        entity = self._to_entity({k: v for k, v in document.items() if v is not None})
        await self._store.save(self.collection, entity_id, entity.to_document())
        self._log.info("{} created: id={}", self.entity_name, entity_id)
        return entity

    async def _merge(
        self, id: Any, changes: Mapping[str, Any], input_model: type[InputT]
    ) -> tuple[dict[str, Any], InputT]:
        """Overlay ``changes`` on the stored document and re-validate the whole.

        Returns the merged document (unknown stored keys kept, cleared
        optionals removed, id/createdAt untouched) and the parsed input.
        """
        stored = await self._load_document(id)
        patch = {
            key: value
            for key, value in input_model.wire_keys(changes).items()
            if key not in _IMMUTABLE_KEYS
        }
        parsed = input_model.parse({**stored, **patch})
        merged = {**stored, **parsed.to_fields()}
        merged["id"] = stored.get("id")
        merged["createdAt"] = stored.get("createdAt")
        return {k: v for k, v in merged.items() if v is not None}, parsed

    async def _replace(self, document: dict[str, Any]) -> ModelT:
        entity = self._to_entity(document)
        await self._store.save(self.collection, entity.id, document)
        self._log.info("{} updated: id={}", self.entity_name, entity.id)
        return entity

    async def _delete(self, id: Any) -> None:
        entity_id = require_id(id, self.entity_name)
        await self._load_document(entity_id)
        await self._store.delete(self.collection, entity_id)
        self._log.info("{} deleted: id={}", self.entity_name, entity_id)
