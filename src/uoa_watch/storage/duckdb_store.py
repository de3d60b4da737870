from __future__ import annotations

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

import duckdb

from uoa_watch.storage.state import PersistedState

LOGGER = logging.getLogger(__name__)
STATE_ROW = "posted-state"

_SCHEMA_SQL = (
    "CREATE TABLE IF NOT EXISTS state_documents ("
    "name VARCHAR NOT NULL, payload VARCHAR NOT NULL, updated_at TIMESTAMP NOT NULL)"
)


@contextmanager
def get_connection(path: Path, read_only: bool = True) -> Iterator[duckdb.DuckDBPyConnection]:
    con = duckdb.connect(str(path), read_only=read_only)
    try:
        yield con
    finally:
        con.close()


class DuckDBStateStore:
    """Keep ``PersistedState`` as one JSON document row inside DuckDB."""

    def __init__(self, path: str | Path, *, name: str = STATE_ROW) -> None:
        self._path = Path(path)
        self._name = name

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> PersistedState:
        if not self._path.exists():
            LOGGER.info("No state database at %s; starting empty", self._path)
            return PersistedState()
        try:
            with get_connection(self._path, read_only=True) as con:
                row = con.execute(
                    "SELECT payload FROM state_documents WHERE name = ?", [self._name]
                ).fetchone()
        except duckdb.Error as exc:
            LOGGER.warning("State database %s unreadable (%s); starting empty", self._path, exc)
            return PersistedState()
        if row is None:
            return PersistedState()
        try:
            return PersistedState.from_json(row[0])
        except ValueError as exc:
            LOGGER.warning("State row %s is corrupt (%s); starting empty", self._name, exc)
            return PersistedState()

    def save(self, state: PersistedState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = state.to_json()
        with get_connection(self._path, read_only=False) as con:
            con.execute(_SCHEMA_SQL)
            con.execute("BEGIN TRANSACTION")
            try:
                con.execute("DELETE FROM state_documents WHERE name = ?", [self._name])
                con.execute(
                    "INSERT INTO state_documents (name, payload, updated_at) VALUES (?, ?, ?)",
                    [self._name, payload, datetime.now(timezone.utc).replace(tzinfo=None)],
                )
            except duckdb.Error:
                con.execute("ROLLBACK")
                raise
            con.execute("COMMIT")


__all__ = ["DuckDBStateStore", "get_connection"]
