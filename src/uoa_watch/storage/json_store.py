from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from uoa_watch.storage.state import PersistedState

LOGGER = logging.getLogger(__name__)


class JsonStateStore:
    """Keep ``PersistedState`` in a single JSON file, replaced atomically on save."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> PersistedState:
        try:
            text = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            LOGGER.info("No state file at %s; starting empty", self._path)
            return PersistedState()
        except OSError as exc:
            LOGGER.warning("State file %s unreadable (%s); starting empty", self._path, exc)
            return PersistedState()
        try:
            return PersistedState.from_json(text)
        except ValueError as exc:
            LOGGER.warning("State file %s is corrupt (%s); starting empty", self._path, exc)
            return PersistedState()

    def save(self, state: PersistedState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = state.to_json()
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(payload)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_name, self._path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


__all__ = ["JsonStateStore"]
