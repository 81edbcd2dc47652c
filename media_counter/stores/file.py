import os
import json
from contextlib import contextmanager
from pathlib import Path

try:
    import fcntl
except ImportError:
    fcntl = None

from ..logs import logger, log_json
from .base import StoreError, record_from


class FileStore:
    """Counters kept as a JSON object in a single file.

    Writes go to a temp file that replaces the target, so readers never see a
    half-written record. If a write fails (read-only disk and the like) the
    updated record is kept in memory and served from there until a later
    write succeeds.
    """

    name = "file"

    def __init__(self, path, locks):
        self.path = Path(path)
        self.locks = locks
        self.lock_key = os.path.abspath(self.path)
        self._memory = None

    def read(self):
        return record_from(self._load())

    def apply(self, name, delta):
        return self.locks.with_lock(self.lock_key, lambda: self._apply(name, delta))

    def close(self):
        pass

    def _apply(self, name, delta):
        with self._file_lock():
            # other fields in the file are written back untouched
            data = self._load()
            data[name] = int(data.get(name) or 0) + delta
            try:
                self._write_file(data)
            except OSError as e:
                log_json(logger.warning, {"event": "persist_failed", "path": str(self.path), "error": str(e)})
                self._memory = data
                return record_from(data), False
            self._memory = None
            return record_from(data), True

    def _load(self):
        if self._memory is not None:
            return dict(self._memory)
        if not self.path.exists():
            return {}
        with self.path.open("r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise StoreError(f"{self.path} does not hold a JSON object")
        return data

    def _write_file(self, data):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        tmp_path.replace(self.path)

    @contextmanager
    def _file_lock(self):
        # cross-process guard; in-process ordering comes from self.locks
        lock_f = None
        if fcntl:
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                lock_f = self.path.with_name(self.path.name + ".lock").open("a")
            except OSError:
                lock_f = None

        if lock_f is None:
            yield
            return

        try:
            fcntl.flock(lock_f, fcntl.LOCK_EX)
            yield
        finally:
            try:
                fcntl.flock(lock_f, fcntl.LOCK_UN)
            finally:
                lock_f.close()
