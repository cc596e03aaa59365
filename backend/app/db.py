import os
import psycopg
from psycopg.types.json import Jsonb
from contextlib import contextmanager
from typing import Any, Iterator


def get_database_url() -> str:
    # The hosted backend exposes its Postgres connection string under either name
    url = os.getenv("DATABASE_URL") or os.getenv("SUPABASE_DB_URL")
    if not url:
        raise RuntimeError("DATABASE_URL must be set")
    return url


@contextmanager
def get_conn() -> Iterator[psycopg.Connection]:
    conn = psycopg.connect(get_database_url(), autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


def fetchone_dict(cur) -> dict | None:
    row = cur.fetchone()
    if row is None:
        return None
    columns = [desc.name for desc in cur.description]
    return dict(zip(columns, row))


def fetchall_dicts(cur) -> list[dict]:
    rows = cur.fetchall()
    if not rows:
        return []
    columns = [desc.name for desc in cur.description]
    return [dict(zip(columns, r)) for r in rows]


def as_json(value: Any) -> Jsonb:
    """Wrap a python value for a JSONB parameter."""
    return Jsonb(value)
