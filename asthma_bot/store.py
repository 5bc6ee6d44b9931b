"""
asthma_bot/store.py — in-memory session store with idle expiry

set() merges the given fields into the stored record and stamps
last_activity; get() drops and hides a record idle past the TTL, so the next
turn starts from INIT exactly like a first-ever conversation. Creating a new
session sweeps every idle one out of the map.
"""

import copy
import logging
import time
from typing import Callable, Dict, Optional

from asthma_bot.config import SESSION_TTL_SECONDS
from asthma_bot.models import SessionRecord

logger = logging.getLogger(__name__)


class InMemorySessionStore:

    def __init__(
        self,
        ttl_seconds: float = SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.ttl_seconds = ttl_seconds
        self.clock       = clock
        # { user_key: SessionRecord }
        self._sessions: Dict[str, SessionRecord] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, key: str) -> Optional[SessionRecord]:
        record = self._sessions.get(key)
        if record is None:
            return None
        if self.clock() - record.last_activity > self.ttl_seconds:
            logger.info(f"Session expired for user {key}, deleting.")
            del self._sessions[key]
            return None
        return record.model_copy(deep=True)

    def set(self, key: str, **fields) -> SessionRecord:
        """Merge `fields` into the record for `key` (created if absent)."""
        if key not in self._sessions:
            self.evict_expired()
        current = self._sessions.get(key)
        if current is not None and self.clock() - current.last_activity > self.ttl_seconds:
            current = None
        data = current.model_dump() if current is not None else {}
        data.update(copy.deepcopy(fields))
        data["last_activity"] = self.clock()
        record = SessionRecord(**data)
        self._sessions[key] = record
        logger.info(f"Session saved for user {key}, state={record.state.value}, "
                    f"history={len(record.history)} turns")
        return record.model_copy(deep=True)

    def delete(self, key: str) -> bool:
        existed = self._sessions.pop(key, None) is not None
        logger.info(f"Session deleted for user {key} (existed={existed})")
        return existed

    def reset(self, key: str) -> bool:
        """Delete and confirm nothing remains under `key`."""
        self.delete(key)
        return key not in self._sessions

    def evict_expired(self) -> int:
        now = self.clock()
        expired = [
            k for k, r in self._sessions.items()
            if now - r.last_activity > self.ttl_seconds
        ]
        for k in expired:
            del self._sessions[k]
        if expired:
            logger.info(f"Evicted {len(expired)} idle sessions.")
        return len(expired)

    def clear(self):
        self._sessions.clear()
