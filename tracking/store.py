"""
Record store shared by all FocusGuard repositories.

Keeps records in an id-keyed dict guarded by a lock, and optionally mirrors
them to a JSON file. Records handed out are copies, so callers can never
mutate stored state behind the store's back.

File-backed stores are shared between processes (each CLI command is one,
and ``sweep --watch`` is a long-running one). Every operation therefore
takes an exclusive OS lock on a sidecar ``.lock`` file and re-reads the
JSON file before touching it. transaction() holds that lock across several
operations so a read-check-write sequence is atomic for all processes.
"""

import copy
import json
import logging
import os
import sys
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RecordStore(Generic[T]):
    """
    Id-keyed repository for one record type.

    Args:
        record_cls: Dataclass with an ``id`` field and to_dict()/from_dict().
        data_file: JSON file to persist to. None keeps records in memory only.
    """

    def __init__(self, record_cls: Type[T], data_file: Optional[Path] = None) -> None:
        self.record_cls = record_cls
        self.data_file = Path(data_file) if data_file is not None else None
        self.lock_file = (
            self.data_file.with_name(self.data_file.name + ".lock") if self.data_file else None
        )
        # Reentrant so CRUD calls can nest inside transaction()
        self._lock = threading.RLock()
        self._depth = 0
        self._lock_handle = None
        self._records: Dict[int, T] = {}
        self._next_id = 1
        self._field_names = {f.name for f in fields(record_cls)}
        # Initial load; every later operation reloads under the file lock
        with self.transaction():
            pass

    # ------------------------------------------------------------------
    # Cross-process locking
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """
        Hold the store exclusively, for this process and every other one.

        The outermost entry locks the file and reloads it, so everything
        inside sees the latest records and nobody else can write until it
        exits.
        """
        with self._lock:
            if self._depth == 0 and self.data_file is not None:
                self._acquire_file_lock()
                try:
                    self._load_data()
                except BaseException:
                    self._release_file_lock()
                    raise
            self._depth += 1
            try:
                yield
            finally:
                self._depth -= 1
                if self._depth == 0 and self.data_file is not None:
                    self._release_file_lock()

    def _acquire_file_lock(self) -> None:
        """Block until the sidecar lock file is exclusively ours."""
        self.lock_file.parent.mkdir(parents=True, exist_ok=True)
        if sys.platform == 'win32':
            import msvcrt

            # Locking needs bytes to lock, so seed the file once
            self._lock_handle = open(self.lock_file, 'a+b')
            try:
                if os.path.getsize(self.lock_file) == 0:
                    self._lock_handle.write(b'0')
                    self._lock_handle.flush()
                self._lock_handle.seek(0)
                # LK_LOCK retries for about 10 seconds before raising
                msvcrt.locking(self._lock_handle.fileno(), msvcrt.LK_LOCK, 1)
            except (IOError, OSError):
                self._lock_handle.close()
                self._lock_handle = None
                raise
        else:
            import fcntl

            self._lock_handle = open(self.lock_file, 'a+')
            try:
                fcntl.flock(self._lock_handle.fileno(), fcntl.LOCK_EX)
            except (IOError, OSError):
                self._lock_handle.close()
                self._lock_handle = None
                raise

    def _release_file_lock(self) -> None:
        if self._lock_handle is None:
            return
        try:
            if sys.platform == 'win32':
                import msvcrt

                self._lock_handle.seek(0)
                msvcrt.locking(self._lock_handle.fileno(), msvcrt.LK_UNLCK, 1)
            else:
                import fcntl

                fcntl.flock(self._lock_handle.fileno(), fcntl.LOCK_UN)
        except (IOError, OSError) as e:
            logger.warning(f"Failed to unlock {self.lock_file}: {e}")
        finally:
            # Closing the handle drops the lock even if unlocking failed
            self._lock_handle.close()
            self._lock_handle = None

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def _load_data(self) -> None:
        """
        Replace in-memory records with the file's, starting empty if unreadable.

        Note: assumes the caller holds the file lock.
        """
        if self.data_file is None or not self.data_file.exists():
            return
        try:
            with open(self.data_file, 'r') as f:
                data = json.load(f)
            records = {}
            for item in data.get("records", []):
                record = self.record_cls.from_dict(item)
                records[record.id] = record
            self._records = records
            self._next_id = max(data.get("next_id", 1), max(records, default=0) + 1)
            logger.debug(f"Loaded {len(records)} records from {self.data_file}")
        except (json.JSONDecodeError, KeyError, TypeError, ValueError, IOError, OSError) as e:
            logger.warning(f"Failed to load {self.data_file}, starting empty: {e}")
            self._records = {}
            self._next_id = 1

    def _save_data(self) -> None:
        """
        Save records to the JSON file atomically.

        Writes a temp file in the same directory, then renames it over the
        target. Note: assumes the caller is inside transaction().
        """
        if self.data_file is None:
            return
        try:
            self.data_file.parent.mkdir(parents=True, exist_ok=True)
            payload = {
                "next_id": self._next_id,
                "records": [r.to_dict() for r in self._records.values()],
            }
            temp_fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                prefix=f"{self.data_file.stem}_",
                dir=self.data_file.parent
            )
            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(payload, f, indent=2)
                os.replace(temp_path, self.data_file)
            except Exception:
                # Clean up temp file on error
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        except (IOError, OSError, PermissionError) as e:
            logger.error(f"Failed to save {self.data_file}: {e}")

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    def create(self, record: T) -> T:
        """Store a new record, assigning the next id. Returns a copy."""
        with self.transaction():
            stored = replace(record, id=self._next_id)
            self._next_id += 1
            self._records[stored.id] = stored
            self._save_data()
            return copy.deepcopy(stored)

    def get(self, record_id: int) -> Optional[T]:
        with self.transaction():
            record = self._records.get(record_id)
            return copy.deepcopy(record) if record is not None else None

    def update(self, record_id: int, **changes: Any) -> Optional[T]:
        """
        Apply a partial update.

        Returns:
            The updated record, or None if no record has this id.

        Raises:
            ValueError: If a change names a field the record does not have.
        """
        unknown = set(changes) - self._field_names
        if unknown or "id" in changes:
            raise ValueError(f"Cannot update fields: {sorted(unknown | ({'id'} & set(changes)))}")
        with self.transaction():
            record = self._records.get(record_id)
            if record is None:
                return None
            updated = replace(record, **changes)
            self._records[record_id] = updated
            self._save_data()
            return copy.deepcopy(updated)

    def delete(self, record_id: int) -> bool:
        with self.transaction():
            if self._records.pop(record_id, None) is None:
                return False
            self._save_data()
            return True

    def find(self, predicate: Callable[[T], bool]) -> List[T]:
        """All records matching predicate, in id (creation) order."""
        with self.transaction():
            return [
                copy.deepcopy(record)
                for _, record in sorted(self._records.items())
                if predicate(record)
            ]

    def all(self) -> List[T]:
        return self.find(lambda record: True)

    def __len__(self) -> int:
        with self.transaction():
            return len(self._records)
