from psycopg import sql
from psycopg_pool import ConnectionPool

from .base import COUNTERS, StoreError, record_from

ROW_ID = 1

SCHEMA = """
CREATE TABLE IF NOT EXISTS media_counter (
    id integer PRIMARY KEY,
    video bigint NOT NULL DEFAULT 0,
    photo bigint NOT NULL DEFAULT 0
)
"""


class PgStore:
    name = "pg"
    lock_key = "pg:media_counter"

    def __init__(self, pool, locks):
        self.pool = pool
        self.locks = locks

    @classmethod
    def from_settings(cls, settings, locks):
        if not settings.pg_dsn:
            raise StoreError("PG_DSN is not set")

        pool = ConnectionPool(conninfo=settings.pg_dsn, min_size=1, max_size=settings.threads, open=True)
        store = cls(pool, locks)
        store.ensure_schema()
        return store

    def ensure_schema(self):
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute(SCHEMA)
                cur.execute("INSERT INTO media_counter (id) VALUES (%s) ON CONFLICT (id) DO NOTHING", (ROW_ID,))
                conn.commit()

    def read(self):
        with self.pool.connection() as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT video, photo FROM media_counter WHERE id = %s", (ROW_ID,))
                row = cur.fetchone()
                conn.commit()
        return record_from(dict(zip(COUNTERS, row)) if row else None)

    def apply(self, name, delta):
        if name not in COUNTERS:
            raise ValueError(f"unknown counter: {name}")

        query = sql.SQL(
            "UPDATE media_counter SET {col} = {col} + %s WHERE id = %s RETURNING video, photo"
        ).format(col=sql.Identifier(name))

        def op():
            with self.pool.connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(query, (delta, ROW_ID))
                    row = cur.fetchone()
                    conn.commit()
            return record_from(dict(zip(COUNTERS, row))), True

        return self.locks.with_lock(self.lock_key, op)

    def close(self):
        self.pool.close()
