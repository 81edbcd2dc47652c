from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    """Process configuration, read once from the environment at startup."""

    storage: str = "file"
    counter_file: str = "data/counter.json"

    mongodb_uri: str | None = None
    mongodb_db: str | None = None
    mongodb_collection: str = "counters"

    pg_dsn: str | None = None

    hz_cluster_name: str = "dev"
    hz_members: tuple[str, ...] = ("127.0.0.1:5701",)

    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8080
    threads: int = 20

    @staticmethod
    def from_env() -> Settings:
        members = os.getenv("HZ_MEMBERS", "127.0.0.1:5701")
        return Settings(
            storage=os.getenv("STORAGE", "file").lower(),
            counter_file=os.getenv("COUNTER_FILE", "data/counter.json"),
            mongodb_uri=os.getenv("MONGODB_URI"),
            mongodb_db=os.getenv("MONGODB_DB"),
            mongodb_collection=os.getenv("MONGODB_COLLECTION", "counters"),
            pg_dsn=os.getenv("PG_DSN"),
            hz_cluster_name=os.getenv("HZ_CLUSTER_NAME", "dev"),
            hz_members=tuple(m.strip() for m in members.split(",") if m.strip()),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            host=os.getenv("HOST", "127.0.0.1"),
            port=int(os.getenv("PORT", "8080")),
            threads=int(os.getenv("THREADS", "20")),
        )
