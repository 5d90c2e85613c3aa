import asyncio
import contextlib
import errno
import json
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any

from loguru import logger

from hospital.domain.exceptions import (
    DataCorruptionError,
    InitializationError,
    InvalidFormatError,
    StorageError,
)
from hospital.storage.ports import Collection, collection_name

if TYPE_CHECKING:
    from loguru import Logger

_SUFFIX = ".json"


def _safe_segment(value: str, what: str) -> str:
    """Reject names that would escape the data directory."""
    if (
        not value
        or value in {".", ".."}
        or any(sep in value for sep in ("/", "\\", "\x00"))
    ):
        raise InvalidFormatError(f"Invalid document {what}: {value!r}", {what: value})
    return value


def _name_too_long(exc: OSError) -> bool:
    """A name the file system cannot hold cannot name a stored document either."""
    return exc.errno == errno.ENAMETOOLONG


def _write_atomically(path: Path, value: dict[str, Any]) -> None:
    text = json.dumps(value, indent=2, ensure_ascii=False)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(text)
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise


class JsonFileStore:
    """Document store keeping one pretty-printed JSON file per document.

    Layout is ``{root}/{collection}/{id}.json``. Writes go to a temporary
    sibling first and are renamed over the target, so readers never see a
    half-written file. Blocking file system calls run in worker threads.
    """

    def __init__(self, root: Path | str = Path("./data"), *, log: "Logger | None" = None) -> None:
        self._root = Path(root)
        self._log = (log or logger).bind(component="storage")

    @property
    def root(self) -> Path:
        return self._root

    async def initialize(self) -> None:
        self._log.info("Initializing data directory: {}", self._root)
        try:
            await asyncio.to_thread(self._make_directories)
        except OSError as exc:
            raise InitializationError(
                f"Could not create data directory '{self._root}': {exc}",
                {"path": str(self._root)},
            ) from exc
        self._log.info("Data directory ready: {}", self._root)

    def _make_directories(self) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        for collection in Collection:
            directory = self._root / collection.value
            directory.mkdir(parents=True, exist_ok=True)
            self._log.debug("Ensured collection directory: {}", directory)

    async def save(self, collection: Collection | str, id: str, value: dict[str, Any]) -> None:
        path = self._path(collection, id)
        try:
            await asyncio.to_thread(_write_atomically, path, value)
        except (OSError, TypeError, ValueError) as exc:
            self._log.error("Failed to write {}: {}", path, exc)
            raise StorageError("save", str(path), str(exc)) from exc
        self._log.debug("Saved {}", path)

    async def load(self, collection: Collection | str, id: str) -> dict[str, Any] | None:
        path = self._path(collection, id)
        try:
            text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            self._log.debug("Document not found: {}", path)
            return None
        except UnicodeDecodeError as exc:
            self._log.error("Corrupted data file {}: {}", path, exc)
            raise DataCorruptionError(str(path), str(exc)) from exc
        except OSError as exc:
            if _name_too_long(exc):
                self._log.debug("Document not found (name too long): {}", path)
                return None
            self._log.error("Failed to read {}: {}", path, exc)
            raise StorageError("load", str(path), str(exc)) from exc

        try:
            value = json.loads(text)
        except json.JSONDecodeError as exc:
            self._log.error("Corrupted data file {}: {}", path, exc)
            raise DataCorruptionError(str(path), str(exc)) from exc

        if not isinstance(value, dict):
            self._log.error("Corrupted data file {}: not a JSON object", path)
            raise DataCorruptionError(str(path), "document is not a JSON object")

        self._log.debug("Loaded {}", path)
        return value

    async def load_all(self, collection: Collection | str) -> list[dict[str, Any]]:
        directory = self._collection_dir(collection)
        try:
            names = await asyncio.to_thread(os.listdir, directory)
        except FileNotFoundError:
            self._log.debug("Collection directory not found: {}", directory)
            return []
        except OSError as exc:
            self._log.error("Failed to list {}: {}", directory, exc)
            raise StorageError("load_all", str(directory), str(exc)) from exc

        documents: list[dict[str, Any]] = []
        skipped = 0
        for name in sorted(n for n in names if n.endswith(_SUFFIX)):
            path = directory / name
            try:
                text = await asyncio.to_thread(path.read_text, encoding="utf-8")
                value = json.loads(text)
            except (OSError, ValueError) as exc:
                # Covers files removed mid-scan, undecodable bytes and invalid JSON.
                self._log.warning("Skipping unreadable file {}: {}", path, exc)
                skipped += 1
                continue
            if not isinstance(value, dict):
                self._log.warning("Skipping {}: not a JSON object", path)
                skipped += 1
                continue
            documents.append(value)

        self._log.info(
            "Loaded {} document(s) from '{}', skipped {} unreadable",
            len(documents),
            collection_name(collection),
            skipped,
        )
        return documents

    async def delete(self, collection: Collection | str, id: str) -> None:
        path = self._path(collection, id)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError:
            self._log.debug("Document already absent: {}", path)
            return
        except OSError as exc:
            if _name_too_long(exc):
                self._log.debug("Document already absent (name too long): {}", path)
                return
            self._log.error("Failed to delete {}: {}", path, exc)
            raise StorageError("delete", str(path), str(exc)) from exc
        self._log.debug("Deleted {}", path)

    async def exists(self, collection: Collection | str, id: str) -> bool:
        path = self._path(collection, id)
        try:
            found = await asyncio.to_thread(path.is_file)
        except OSError as exc:
            if not _name_too_long(exc):
                self._log.error("Failed to probe {}: {}", path, exc)
                raise StorageError("exists", str(path), str(exc)) from exc
            found = False
        self._log.debug("Probed {}: {}", path, "present" if found else "absent")
        return found

    def _collection_dir(self, collection: Collection | str) -> Path:
        return self._root / _safe_segment(collection_name(collection), "collection")

    def _path(self, collection: Collection | str, id: str) -> Path:
        return self._collection_dir(collection) / f"{_safe_segment(id, 'id')}{_SUFFIX}"
