"""
State File - Local JSON store of tracked resources.

Tracked resources are kept in insertion order so that destroy can tear
them down in reverse.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Optional, Tuple

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class StateFileError(Exception):
    """Raised when the state file cannot be read."""

    pass


class StateStore:
    """Tracked resources keyed by ``<kind>.<name>``."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._resources: Dict[str, Dict[str, Any]] = {}

    @classmethod
    def load(cls, path: Path) -> "StateStore":
        """Load a state file; a missing file yields an empty store."""
        store = cls(path)
        if not store.path.exists():
            return store

        try:
            with open(store.path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StateFileError(f"Cannot read state file {store.path}: {e}") from e

        version = data.get("version")
        if version != STATE_VERSION:
            raise StateFileError(
                f"Unsupported state file version {version!r} in {store.path}"
            )

        store._resources = dict(data.get("resources") or {})
        return store

    def save(self) -> None:
        """Write the state file atomically."""
        data = {"version": STATE_VERSION, "resources": self._resources}
        directory = self.path.parent
        directory.mkdir(parents=True, exist_ok=True)

        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".state-")
        try:
            with os.fdopen(fd, "w") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            os.unlink(tmp_path)
            raise
        logger.debug(f"Saved {len(self._resources)} resources to {self.path}")

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        entry = self._resources.get(key)
        return entry["state"] if entry else None

    def put(self, key: str, kind: str, state: Dict[str, Any]) -> None:
        self._resources[key] = {"kind": kind, "state": state}

    def remove(self, key: str) -> None:
        self._resources.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._resources

    def __len__(self) -> int:
        return len(self._resources)

    def items(self) -> Iterator[Tuple[str, str, Dict[str, Any]]]:
        """Yield ``(key, kind, state)`` in insertion order."""
        for key, entry in list(self._resources.items()):
            yield key, entry["kind"], entry["state"]
