"""JSON file persistence for the player snapshot."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path
from typing import Union

from .profile import Snapshot

logger = logging.getLogger(__name__)


class SnapshotStore:
    """Loads and saves a single :class:`Snapshot` as a JSON document."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> Snapshot:
        with self._lock:
            if not self.path.exists():
                return Snapshot()
            try:
                data = json.loads(self.path.read_text(encoding="utf-8"))
                return Snapshot.model_validate(data)
            except (OSError, ValueError) as exc:
                # Unreadable or malformed file: start over from defaults
                logger.warning("Ignoring snapshot at %s: %s", self.path, exc)
                return Snapshot()

    def save(self, snapshot: Snapshot) -> None:
        payload = json.dumps(snapshot.to_payload(), indent=2)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp = self.path.with_name(self.path.name + ".tmp")
            tmp.write_text(payload, encoding="utf-8")
            os.replace(tmp, self.path)
        logger.debug("Saved snapshot to %s", self.path)
