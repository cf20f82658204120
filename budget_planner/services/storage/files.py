"""
File-Backed Key-Value Mirror

Each key is one file in a data directory. Writes go to a temporary file
that is then renamed over the target, so readers never see a partial
value. Changes made by other processes are picked up by polling:
poll_changes() compares every file against the last value this handle
read or wrote and reports the keys that differ.
"""

import asyncio
import os
import re
import tempfile
from pathlib import Path
from typing import Callable, Optional

from budget_planner.audit import get_logger
from budget_planner.services.storage.interface import (
    ChangeListener,
    KeyValueStore,
    PersistenceError,
)


logger = get_logger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


class FileKeyValueStore(KeyValueStore):
    """Key-value mirror stored as <data_dir>/<key>.json files."""

    def __init__(self, data_dir: Path):
        self._dir = Path(data_dir)
        self._listeners: list[ChangeListener] = []
        self._known: dict[str, Optional[str]] = {}
        self._watch_task: Optional[asyncio.Task] = None
        try:
            self._dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create data directory {self._dir}: {e}")
        for path in self._dir.glob("*.json"):
            self._known[path.stem] = self._read(path.stem)

    @property
    def data_dir(self) -> Path:
        return self._dir

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise PersistenceError(f"Invalid mirror key: {key!r}")
        return self._dir / f"{key}.json"

    def _read(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise PersistenceError(f"Failed to read {path}: {e}")

    def get(self, key: str) -> Optional[str]:
        value = self._read(key)
        self._known[key] = value
        return value

    def set(self, key: str, value: str) -> None:
        path = self._path(key)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self._dir, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(value)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except OSError as e:
            raise PersistenceError(f"Failed to write {path}: {e}")
        self._known[key] = value

    def remove(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise PersistenceError(f"Failed to remove {path}: {e}")
        self._known[key] = None

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def poll_changes(self) -> list[str]:
        """
        Detect values changed by another process since this handle last saw them.

        Returns:
            The keys whose listeners were notified
        """
        keys = set(self._known)
        keys.update(path.stem for path in self._dir.glob("*.json"))

        changed = []
        for key in sorted(keys):
            try:
                current = self._read(key)
            except PersistenceError as e:
                logger.warning("mirror_poll_failed", key=key, error=str(e))
                continue
            if current != self._known.get(key):
                self._known[key] = current
                changed.append(key)
                for listener in list(self._listeners):
                    listener(key, current)
        return changed

    def start_watching(self, interval: float) -> asyncio.Task:
        """Poll for external changes every interval seconds until stop_watching()."""
        if self._watch_task is not None and not self._watch_task.done():
            return self._watch_task

        async def watch() -> None:
            while True:
                await asyncio.sleep(interval)
                self.poll_changes()

        self._watch_task = asyncio.get_running_loop().create_task(watch())
        return self._watch_task

    def stop_watching(self) -> None:
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None
