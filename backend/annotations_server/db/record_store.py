"""RecordStore - durable storage for the annotation collection.

The whole collection lives in one JSON file. Writes go to a temporary file in
the same directory and are moved over the canonical file with a single
``os.replace``, so readers only ever see a complete collection. Unreadable
files read as empty. Only the write queue repairs the file: unreadable bytes
are quarantined next to the canonical file and replaced with an empty
collection.
"""

import asyncio
import json
import logging
import os
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from pydantic import TypeAdapter

from annotations_server.errors import StorageCorruptionError, StorageWriteError
from annotations_server.models import Annotation

logger = logging.getLogger(__name__)

_collection_adapter = TypeAdapter(list[Annotation])


def serialize_records(records: list[Annotation]) -> bytes:
    """Serialize a collection in its persisted layout (ordered, indented)."""
    payload = [r.model_dump(mode="json") for r in records]
    return (json.dumps(payload, indent=2, ensure_ascii=False) + "\n").encode("utf-8")


def canonical_json(records: list[Annotation]) -> str:
    """Order-insensitive canonical form used to detect identical collections."""
    payload = sorted(
        (r.model_dump(mode="json") for r in records),
        key=lambda r: r["id"],
    )
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def parse_records(raw: bytes) -> list[Annotation]:
    """Parse persisted bytes into a collection.

    Raises:
        StorageCorruptionError: If the bytes are not a valid collection.
    """
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise StorageCorruptionError(f"Invalid JSON: {e}") from e

    if not isinstance(data, list):
        raise StorageCorruptionError(
            f"Expected a list of records, got {type(data).__name__}"
        )

    try:
        records = _collection_adapter.validate_python(data)
    except ValueError as e:
        raise StorageCorruptionError(f"Invalid record: {e}") from e

    seen: set[str] = set()
    for record in records:
        if record.id in seen:
            raise StorageCorruptionError(
                f"Duplicate annotation id {record.id}", annotation_id=record.id
            )
        seen.add(record.id)

    return records


class RecordStore:
    """Atomic load/persist of the full annotation collection."""

    def __init__(self, path: Path | str):
        """Initialize the store.

        Args:
            path: Location of the canonical JSON file.
        """
        self.path = Path(path).expanduser()
        self.write_count = 0

    async def load(self) -> list[Annotation]:
        """Load the current collection without touching the file.

        A missing, blank, or unparseable file reads as an empty collection.
        Repairs are left to ``load_for_update``, which only the write queue
        calls.

        Returns:
            Freshly parsed records. Callers own them.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._read_sync)

    async def load_for_update(self) -> list[Annotation]:
        """Load the collection, reinitializing a missing or unreadable file.

        Unparseable files are quarantined first. Must only be called by the
        single writer (the WriteQueue worker).

        Returns:
            Freshly parsed records. Callers own them.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._load_and_repair_sync)

    async def persist(self, records: list[Annotation]) -> None:
        """Replace the stored collection.

        Raises:
            StorageWriteError: If the atomic write and the fallback both fail.
        """
        data = serialize_records(records)
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._write_sync, data)
        logger.info(f"Saved {len(records)} annotation(s) to {self.path}")

    def _read_sync(self) -> list[Annotation]:
        try:
            raw = self.path.read_bytes()
        except FileNotFoundError:
            return []
        if not raw.strip():
            return []
        try:
            return parse_records(raw)
        except StorageCorruptionError as e:
            logger.error(f"Corrupted annotation file {self.path}: {e}")
            return []

    def _load_and_repair_sync(self) -> list[Annotation]:
        if not self.path.exists():
            logger.info(f"Creating new annotation file: {self.path}")
            self._reset_sync()
            return []

        raw = self.path.read_bytes()
        if not raw.strip():
            logger.warning(f"Empty annotation file {self.path}, initializing")
            self._reset_sync()
            return []

        try:
            return parse_records(raw)
        except StorageCorruptionError as e:
            logger.error(f"Corrupted annotation file {self.path}: {e}")
            if self._quarantine(raw):
                self._reset_sync()
            return []

    def _reset_sync(self) -> None:
        """Write an empty collection. A failure is logged, not raised."""
        try:
            self._write_sync(serialize_records([]))
        except StorageWriteError as e:
            logger.error(f"Could not reinitialize {self.path}: {e}")

    def _quarantine(self, raw: bytes) -> bool:
        """Copy unreadable bytes aside under a timestamped name."""
        stamp = datetime.now(UTC).strftime("%Y%m%dT%H%M%S%f")
        backup = self.path.with_name(f"{self.path.name}.corrupted.{stamp}")
        try:
            backup.write_bytes(raw)
        except OSError:
            # Leave the bad file in place rather than lose it
            logger.exception(f"Could not quarantine {self.path}")
            return False
        logger.warning(f"Corrupted file backed up to: {backup}")
        return True

    def _write_sync(self, data: bytes) -> None:
        try:
            self._atomic_write(data)
        except OSError as e:
            logger.error(f"Atomic write to {self.path} failed: {e}")
            logger.warning(f"Attempting direct (non-atomic) write to {self.path}")
            try:
                self.path.write_bytes(data)
            except OSError as fallback_error:
                logger.error(f"Fallback write also failed: {fallback_error}")
                raise StorageWriteError(
                    f"Failed to write {self.path}: {e}"
                ) from fallback_error
            logger.warning(f"Fallback write succeeded: {self.path}")
        self.write_count += 1

    def _atomic_write(self, data: bytes) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path: Path | None = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="wb",
                delete=False,
                dir=str(self.path.parent),
                prefix=self.path.name + ".tmp.",
            ) as f:
                tmp_path = Path(f.name)
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
            tmp_path = None
        finally:
            if tmp_path is not None and tmp_path.exists():
                try:
                    tmp_path.unlink()
                except OSError as e:
                    logger.warning(f"Failed to clean up temp file {tmp_path}: {e}")
