"""
Record stores.

The project state store talks to its backend through this small
field-level interface: inserts, reads and partial updates keyed by id.
"""

import copy
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from previz.core.exceptions import PersistenceError


class RecordStore(ABC):
    """A table of JSON records keyed by ``id``."""

    @abstractmethod
    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a record and return it as stored (with ``id``)."""

    @abstractmethod
    async def fetch(self, record_id: str) -> Optional[Dict[str, Any]]:
        """Return one record or None."""

    @abstractmethod
    async def fetch_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        """Return an owner's records, most recently updated first."""

    @abstractmethod
    async def update(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """Write only ``fields`` and return the full stored record."""

    @abstractmethod
    async def delete(self, record_id: str) -> bool:
        """Delete a record; True if it existed."""


class InMemoryRecordStore(RecordStore):
    """Process-local record store. Records are copied in and out."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        stored = copy.deepcopy(record)
        stored["id"] = stored.get("id") or str(uuid.uuid4())
        if stored["id"] in self._records:
            raise PersistenceError(f"Duplicate record id: {stored['id']}")
        now = datetime.now(timezone.utc).isoformat()
        stored["created_at"] = stored.get("created_at") or now
        stored["updated_at"] = stored.get("updated_at") or now
        self._records[stored["id"]] = stored
        return copy.deepcopy(stored)

    async def fetch(self, record_id: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(record_id)
        return copy.deepcopy(record) if record is not None else None

    async def fetch_by_owner(self, owner_id: str) -> List[Dict[str, Any]]:
        records = [r for r in self._records.values() if r.get("user_id") == owner_id]
        records.sort(key=lambda r: r.get("updated_at") or "", reverse=True)
        return copy.deepcopy(records)

    async def update(self, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        if record_id not in self._records:
            raise PersistenceError(f"Record not found: {record_id}")
        self._records[record_id].update(copy.deepcopy(fields))
        return copy.deepcopy(self._records[record_id])

    async def delete(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def __len__(self) -> int:
        return len(self._records)
