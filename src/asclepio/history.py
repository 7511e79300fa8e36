"""Session history persistence."""

from __future__ import annotations

import json
import logging
import os
from typing import Any, List, Optional

from .errors import PersistenceFailed
from .models import SessionRecord, record_from_dict, record_to_dict
from .storage import HISTORY_KEY, ensure_dir

logger = logging.getLogger(__name__)


class FileBlobStore:
    """Key-value store keeping one JSON document per key under a directory."""

    def __init__(self, root: str) -> None:
        self.root = root

    def _path(self, key: str) -> str:
        return os.path.join(self.root, f"{key}.json")

    def get(self, key: str) -> Optional[str]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        with open(path, "r", encoding="utf-8") as handle:
            return handle.read()

    def set(self, key: str, value: str) -> None:
        ensure_dir(self.root)
        path = self._path(key)
        tmp_path = f"{path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            handle.write(value)
        os.replace(tmp_path, path)


class HistoryStore:
    """Most-recent-first list of session records, saved on every mutation."""

    def __init__(self, blobs: Any, key: str = HISTORY_KEY) -> None:
        self._blobs = blobs
        self._key = key
        self._records: List[SessionRecord] = []

    @property
    def records(self) -> List[SessionRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def load(self) -> List[SessionRecord]:
        try:
            self._records = self._read()
        except PersistenceFailed as exc:
            logger.error("Failed to load session history: %s", exc)
            self._records = []
        return self.records

    def save(self) -> bool:
        try:
            self._write()
        except PersistenceFailed as exc:
            logger.error("Failed to save session history: %s", exc)
            return False
        return True

    def add(self, record: SessionRecord) -> None:
        self._records.insert(0, record)
        self.save()

    def remove(self, record_id: str) -> Optional[SessionRecord]:
        for index, record in enumerate(self._records):
            if record.id == record_id:
                removed = self._records.pop(index)
                self.save()
                return removed
        return None

    def get(self, record_id: str) -> Optional[SessionRecord]:
        """Find a record by full id or by a prefix matching exactly one record."""
        record_id = (record_id or "").strip()
        if not record_id:
            return None
        for record in self._records:
            if record.id == record_id:
                return record
        matches = [r for r in self._records if r.id.startswith(record_id)]
        if len(matches) > 1:
            logger.warning(
                "Session id prefix '%s' matches %d sessions", record_id, len(matches)
            )
            return None
        return matches[0] if matches else None

    def _read(self) -> List[SessionRecord]:
        try:
            raw = self._blobs.get(self._key)
            if not raw:
                return []
            payload = json.loads(raw)
            if not isinstance(payload, list):
                raise ValueError("history payload is not a list")
            return [record_from_dict(item) for item in payload]
        except (OSError, ValueError, KeyError, TypeError) as exc:
            raise PersistenceFailed(str(exc)) from exc

    def _write(self) -> None:
        payload = [record_to_dict(record) for record in self._records]
        try:
            self._blobs.set(
                self._key, json.dumps(payload, indent=2, ensure_ascii=False)
            )
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceFailed(str(exc)) from exc
