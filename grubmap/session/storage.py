import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)


class SnapshotStorage(Protocol):
    def load(self) -> Optional[dict]: ...

    def save(self, snapshot: dict) -> None: ...

    def clear(self) -> None: ...


class MemoryStorage:
    def __init__(self, snapshot: Optional[dict] = None):
        self.snapshot = snapshot
        self.writes = 0

    def load(self) -> Optional[dict]:
        return self.snapshot

    def save(self, snapshot: dict) -> None:
        self.snapshot = snapshot
        self.writes += 1

    def clear(self) -> None:
        self.snapshot = None


class JsonFileStorage:
    """Single-slot JSON file holding the persisted session snapshot."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def load(self) -> Optional[dict]:
        try:
            raw = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            logger.warning("Could not read session snapshot %s: %s", self.path, exc)
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed session snapshot at %s", self.path)
            return None
        return data if isinstance(data, dict) else None

    def save(self, snapshot: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".snapshot-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot, f, separators=(",", ":"), sort_keys=True)
            os.replace(tmp, self.path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
