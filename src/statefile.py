"""
Local state file for the command-line harness.

Keeps raw persisted state records, keyed by resource address
("<kind>.<name>"), in a single JSON document. Records are stored exactly
as the engine returned them; upgrading old records is the engine's job.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

STATE_FILE_VERSION = 1


class StateFileError(RuntimeError):
    """Raised when the state file cannot be read or parsed."""


def resource_address(kind_name: str, name: str) -> str:
    return f"{kind_name}.{name}"


class StateFile:
    """JSON file holding one persisted record per managed resource."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._resources: Dict[str, Dict[str, Any]] = {}

    def load(self) -> "StateFile":
        """Load records from disk; a missing file is an empty state."""
        if not self.path.exists():
            self._resources = {}
            return self

        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise StateFileError(f"Failed to parse state file {self.path}: {e}") from e
        if not isinstance(payload, dict):
            raise StateFileError(f"State file {self.path} is not a JSON object")

        version = payload.get("version", STATE_FILE_VERSION)
        if version != STATE_FILE_VERSION:
            raise StateFileError(f"Unsupported state file version: {version}")

        resources = payload.get("resources", {})
        if not isinstance(resources, dict):
            raise StateFileError(f"State file {self.path} has no resources mapping")

        self._resources = resources
        return self

    def save(self) -> None:
        """Write records to disk atomically."""
        data = json.dumps(
            {"version": STATE_FILE_VERSION, "resources": self._resources},
            indent=2,
            sort_keys=True,
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(data + "\n")
            os.replace(tmp_name, self.path)
        except OSError:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
        logger.debug(f"Saved {len(self._resources)} record(s) to {self.path}")

    def get(self, address: str) -> Optional[Dict[str, Any]]:
        return self._resources.get(address)

    def put(self, address: str, record: Dict[str, Any]) -> None:
        self._resources[address] = record

    def remove(self, address: str) -> bool:
        """Drop a record; returns True if one was present."""
        return self._resources.pop(address, None) is not None

    def addresses(self) -> list[str]:
        return sorted(self._resources.keys())
