from __future__ import annotations

from pathlib import Path
from typing import Protocol

from uoa_watch.storage.duckdb_store import DuckDBStateStore
from uoa_watch.storage.json_store import JsonStateStore
from uoa_watch.storage.state import PersistedState


class StateStore(Protocol):
    def load(self) -> PersistedState: ...

    def save(self, state: PersistedState) -> None: ...


def open_state_store(backend: str, path: str | Path) -> StateStore:
    if backend == "json":
        return JsonStateStore(path)
    if backend == "duckdb":
        return DuckDBStateStore(path)
    raise ValueError(f"unknown state backend: {backend}")


__all__ = ["StateStore", "open_state_store"]
