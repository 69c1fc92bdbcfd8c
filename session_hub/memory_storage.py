"""In-process session strategy for development and tests.

Keeps a dict of records in memory; nothing survives a restart and nothing is
shared between processes. Not intended for production scale.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .cookies import CookieLike
from .storage import SessionStorageFactory, StrategySessionStorage, create_session_storage

logger = logging.getLogger(__name__)


@dataclass
class _Record:
    data: Dict[str, Any]
    expires: Optional[datetime] = None

    def expired(self, now: datetime) -> bool:
        return self.expires is not None and self.expires <= now


class MemorySessionStrategy:
    """CRUD strategy storing session records in a dict keyed by random ids."""

    def __init__(self, id_bytes: int = 8) -> None:
        self.records: Dict[str, _Record] = {}
        self.id_bytes = id_bytes

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def _new_id(self) -> str:
        while True:
            id = secrets.token_hex(self.id_bytes)
            if id not in self.records:
                return id

    def _sweep(self) -> None:
        now = self._now()
        expired = [id for id, record in self.records.items() if record.expired(now)]
        for id in expired:
            del self.records[id]
        if expired:
            logger.debug("Swept %d expired session records", len(expired))

    async def create_data(self, data: Dict[str, Any], expires: Optional[datetime] = None) -> str:
        self._sweep()
        id = self._new_id()
        self.records[id] = _Record(dict(data), expires)
        return id

    async def read_data(self, id: str) -> Optional[Dict[str, Any]]:
        record = self.records.get(id)
        if record is None:
            return None
        if record.expired(self._now()):
            logger.debug("Dropping expired session record %s", id)
            del self.records[id]
            return None
        return dict(record.data)

    async def update_data(self, id: str, data: Dict[str, Any], expires: Optional[datetime] = None) -> None:
        self.records[id] = _Record(dict(data), expires)

    async def delete_data(self, id: str) -> None:
        self.records.pop(id, None)


def create_memory_session_storage(
    cookie: CookieLike = None,
    *,
    factory: Optional[SessionStorageFactory] = None,
) -> StrategySessionStorage:
    """Create a session storage backed by a fresh `MemorySessionStrategy`."""
    return create_session_storage(MemorySessionStrategy(), cookie, factory=factory)
