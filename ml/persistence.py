"""
ml/persistence.py
=================
On-disk store for controller Q-tables.

One JSON record per controller id, written to
``<directory>/qlearning_<id>.json``::

    {"controller_id": "MAIN", "num_states": 1, "num_actions": 4,
     "values": [0.0, -3.2, ...]}

Writes go through a temporary file and an atomic rename so a failed write
leaves the previously persisted record untouched.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

from sim.errors import PersistenceError

log = logging.getLogger("persistence")

_REQUIRED_KEYS = ("num_states", "num_actions", "values")


class QTableStore:
    """Directory-backed key-value store of Q-table records.

    Parameters
    ----------
    directory : str
        Folder holding the JSON files; created on first save.
    """

    def __init__(self, directory: str) -> None:
        self.directory = directory

    def path_for(self, controller_id: str) -> str:
        name = f"qlearning_{controller_id}.json" if controller_id else "qlearning_default.json"
        return os.path.join(self.directory, name)

    def exists(self, controller_id: str) -> bool:
        return os.path.isfile(self.path_for(controller_id))

    def read(self, controller_id: str) -> Optional[Dict[str, Any]]:
        """Return the stored record, or ``None`` when absent.

        Raises
        ------
        PersistenceError
            When the file exists but is unreadable or not a valid record.
        """
        path = self.path_for(controller_id)
        if not os.path.isfile(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as fh:
                record = json.load(fh)
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"cannot read Q-table record {path}: {exc}") from exc
        if not isinstance(record, dict) or any(k not in record for k in _REQUIRED_KEYS):
            raise PersistenceError(f"Q-table record {path} is missing required fields")
        return record

    def write(self, record: Dict[str, Any]) -> str:
        """Persist *record* under its ``controller_id``; returns the path.

        Raises
        ------
        PersistenceError
            When the directory or file cannot be written.
        """
        path = self.path_for(record.get("controller_id", ""))
        try:
            os.makedirs(self.directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                prefix=".qlearning_", suffix=".tmp", dir=self.directory,
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(record, fh, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"cannot write Q-table record {path}: {exc}") from exc
        log.info("Q-table for '%s' saved to %s", record.get("controller_id"), path)
        return path

    def load(self, controller_id: str) -> Optional[Dict[str, Any]]:
        """Like :meth:`read` but reports failures and returns ``None``."""
        try:
            return self.read(controller_id)
        except PersistenceError as exc:
            log.error("%s", exc)
            return None

    def save(self, record: Dict[str, Any]) -> bool:
        """Like :meth:`write` but reports failures and returns False."""
        try:
            self.write(record)
        except PersistenceError as exc:
            log.error("%s", exc)
            return False
        return True
