# g2a_integration/persistence/resource_store.py
"""
Boundary to the host application's data layer.

The client never defines a schema; it only reads a record by id and
upserts a record by id. Records are plain dicts.
"""

import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

Record = Dict[str, Any]


class ResourceStore(ABC):
    """Read/write contract the sync and webhook layers depend on"""

    @abstractmethod
    async def get(self, resource_type: str, resource_id: str) -> Optional[Record]:
        """Return the stored record, or None when it does not exist"""
        pass

    @abstractmethod
    async def upsert(self, resource_type: str, resource_id: str, record: Record) -> Record:
        """Create or replace the record and return what was stored"""
        pass


class InMemoryResourceStore(ResourceStore):
    def __init__(self):
        self._records: Dict[Tuple[str, str], Record] = {}
        self._lock = asyncio.Lock()

    async def get(self, resource_type: str, resource_id: str) -> Optional[Record]:
        async with self._lock:
            record = self._records.get((resource_type, str(resource_id)))
            return copy.deepcopy(record) if record is not None else None

    async def upsert(self, resource_type: str, resource_id: str, record: Record) -> Record:
        async with self._lock:
            self._records[(resource_type, str(resource_id))] = copy.deepcopy(record)
            return copy.deepcopy(record)

    def all(self, resource_type: str) -> List[Record]:
        return [
            copy.deepcopy(record)
            for (kind, _), record in self._records.items()
            if kind == resource_type
        ]

    def count(self, resource_type: Optional[str] = None) -> int:
        if resource_type is None:
            return len(self._records)
        return sum(1 for kind, _ in self._records if kind == resource_type)
