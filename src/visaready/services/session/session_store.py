"""
In-memory session store.
Holds validation session records keyed by session id with last-write-wins updates.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from ...core.interfaces import SessionStore
from ...core.models import (
    PaymentStatus,
    ValidationReport,
    ValidationSessionRecord,
    utcnow,
)


logger = logging.getLogger(__name__)


class InMemorySessionStore(SessionStore):
    """
    Process-local session store with optional expiry.
    """

    def __init__(
        self,
        ttl_seconds: int = 0,
        clock: Optional[Callable[[], datetime]] = None
    ):
        """
        Initialize the session store.

        Args:
            ttl_seconds: Session lifetime measured from creation; 0 disables expiry
            clock: Time source, overridable in tests
        """
        self.ttl = timedelta(seconds=ttl_seconds) if ttl_seconds > 0 else None
        self.clock = clock or utcnow
        self._sessions: Dict[str, ValidationSessionRecord] = {}

        logger.info(f"Initialized in-memory session store (ttl: {ttl_seconds or 'none'})")

    async def create_session(self, record: ValidationSessionRecord) -> ValidationSessionRecord:
        self._sessions[record.session_id] = record
        logger.info(f"Stored validation session {record.session_id}")
        return record

    async def get_session(self, session_id: str) -> Optional[ValidationSessionRecord]:
        record = self._sessions.get(session_id)
        if record is None:
            return None

        if self._is_expired(record):
            logger.info(f"Validation session {session_id} expired")
            del self._sessions[session_id]
            return None

        return record

    async def update_validation_results(
        self,
        session_id: str,
        report: ValidationReport
    ) -> Optional[ValidationSessionRecord]:
        return await self._update(session_id, validation_results=report)

    async def update_payment_status(
        self,
        session_id: str,
        status: PaymentStatus
    ) -> Optional[ValidationSessionRecord]:
        return await self._update(session_id, payment_status=status)

    async def delete_session(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None

    async def session_count(self) -> int:
        self._purge_expired()
        return len(self._sessions)

    async def _update(self, session_id: str, **changes) -> Optional[ValidationSessionRecord]:
        record = await self.get_session(session_id)
        if record is None:
            return None

        updated = record.model_copy(update={**changes, "updated_at": self.clock()})
        self._sessions[session_id] = updated
        return updated

    def _is_expired(self, record: ValidationSessionRecord) -> bool:
        return self.ttl is not None and self.clock() - record.created_at > self.ttl

    def _purge_expired(self):
        expired = [sid for sid, record in self._sessions.items() if self._is_expired(record)]
        for session_id in expired:
            del self._sessions[session_id]
