"""Key-value result stores keyed by property id.

Records are whole-record replaced on upsert; there is no field patch
primitive. Callers merge before writing (see utils.record_merge).
"""

import copy
import json
import logging
import re
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def new_record(record_id: str, url: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Build a store record: {id, url, timestamp (ms), data}."""
    return {
        "id": record_id,
        "url": url,
        "timestamp": int(time.time() * 1000),
        "data": data or {},
    }


class InMemoryResultStore:
    """Dict-backed store, used in tests and for one-shot CLI runs."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    def upsert(self, record_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        self._records[record_id] = copy.deepcopy(record)
        return copy.deepcopy(record)

    def delete(self, record_id: str) -> Optional[Dict[str, Any]]:
        return self._records.pop(record_id, None)

    def list(self) -> List[Dict[str, Any]]:
        records = [copy.deepcopy(r) for r in self._records.values()]
        return sorted(records, key=lambda r: r.get("timestamp", 0), reverse=True)


class JsonFileResultStore:
    """One JSON file per record id inside ``folder``."""

    def __init__(self, folder: Path):
        self.folder = Path(folder)
        self.folder.mkdir(parents=True, exist_ok=True)

    def _path(self, record_id: str) -> Path:
        safe_id = re.sub(r"[^A-Za-z0-9_-]", "_", record_id)
        return self.folder / f"{safe_id}.json"

    def get(self, record_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(record_id)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def upsert(self, record_id: str, record: Dict[str, Any]) -> Dict[str, Any]:
        path = self._path(record_id)

        # Write atomically (temp file + rename)
        temp_path = path.with_suffix(".tmp")
        with open(temp_path, "w", encoding="utf-8") as f:
            json.dump(record, f, indent=2, ensure_ascii=False, default=str)
        temp_path.replace(path)

        logger.debug(f"Stored record {record_id} at {path}")
        return record

    def delete(self, record_id: str) -> Optional[Dict[str, Any]]:
        record = self.get(record_id)
        if record is not None:
            self._path(record_id).unlink()
        return record

    def list(self) -> List[Dict[str, Any]]:
        records = []
        for path in self.folder.glob("*.json"):
            try:
                with open(path, "r", encoding="utf-8") as f:
                    records.append(json.load(f))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable record {path.name}: {e}")
        return sorted(records, key=lambda r: r.get("timestamp", 0), reverse=True)
