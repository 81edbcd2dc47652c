from ..logs import logger, log_json
from .base import COUNTERS, StoreError, empty_record, record_from
from .file import FileStore
from .memory import MemoryStore


def _build(settings, locks):
    backend = settings.storage
    if backend == "mem":
        return MemoryStore(locks)
    if backend == "file":
        return FileStore(settings.counter_file, locks)
    if backend == "mongo":
        from .mongo import MongoStore
        return MongoStore.from_settings(settings, locks)
    if backend == "pg":
        from .pg import PgStore
        return PgStore.from_settings(settings, locks)
    if backend == "hazelcast":
        from .hazelcast_map import HazelcastStore
        return HazelcastStore.from_settings(settings, locks)
    raise StoreError(f"unknown storage backend: {backend}")


def make_store(settings, locks):
    """Build the configured store, or a memory store if that fails."""
    try:
        return _build(settings, locks)
    except Exception as e:  # pylint: disable=broad-exception-caught
        log_json(logger.warning, {
            "event": "storage_fallback",
            "storage": settings.storage,
            "error": f"{type(e).__name__}: {e}",
        })
        return MemoryStore(locks)


__all__ = [
    "COUNTERS",
    "FileStore",
    "MemoryStore",
    "StoreError",
    "empty_record",
    "make_store",
    "record_from",
]
