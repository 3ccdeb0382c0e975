"""
Validation session service.
Creates sessions, runs scoring for them and serves stored reports.
"""

import logging
import secrets
from typing import Dict, List, Optional, Set

from ...core.exceptions import (
    InvalidSessionInputError,
    PaymentRequiredError,
    ResultsNotReadyError,
    SessionNotFoundError,
    ValidationInProgressError,
)
from ...core.interfaces import SessionStore
from ...core.models import (
    PaymentStatus,
    PersonalInfo,
    UploadedFileDescriptor,
    ValidationReport,
    ValidationSessionRecord,
    dedupe_files,
)
from ...core.monitoring import monitor_operation
from ..catalog import RequirementCatalog
from ..scoring import ScoringEngine


logger = logging.getLogger(__name__)

SERVICE_NAME = "session-service"


class ValidationSessionService:
    """
    Server-side coordination of validation sessions.
    """

    def __init__(
        self,
        catalog: RequirementCatalog,
        store: SessionStore,
        engine: Optional[ScoringEngine] = None
    ):
        """
        Initialize the session service.

        Args:
            catalog: Requirement catalog used for every validation
            store: Session persistence backend
            engine: Scoring engine (a default one is created if omitted)
        """
        self.catalog = catalog
        self.store = store
        self.engine = engine or ScoringEngine()
        self._in_flight: Set[str] = set()

        logger.info("Initialized validation session service")

    @monitor_operation(SERVICE_NAME, "create_session")
    async def create_validation_session(
        self,
        country: str,
        visa_type: str,
        personal_info: PersonalInfo,
        uploaded_files: Optional[List[UploadedFileDescriptor]] = None,
        checked_documents: Optional[Dict[str, bool]] = None
    ) -> str:
        """
        Create and store a new validation session.

        Returns:
            The new session id

        Raises:
            InvalidSessionInputError: If destination or personal info is incomplete
        """
        missing = []
        if not country.strip():
            missing.append("country")
        if not visa_type.strip():
            missing.append("visa_type")
        missing.extend(personal_info.missing_fields())
        if missing:
            raise InvalidSessionInputError(missing)

        session_id = secrets.token_urlsafe(16)
        record = ValidationSessionRecord(
            session_id=session_id,
            country=country,
            visa_type=visa_type,
            personal_info=personal_info,
            uploaded_files=dedupe_files(uploaded_files or []),
            checked_documents=dict(checked_documents or {}),
            payment_status=PaymentStatus.PENDING
        )
        await self.store.create_session(record)

        logger.info(f"Created validation session {session_id} for {country}/{visa_type}")
        return session_id

    @monitor_operation(SERVICE_NAME, "validate_documents")
    async def validate_documents(self, session_id: str) -> ValidationReport:
        """
        Score the session's uploaded files and store the report.

        Raises:
            SessionNotFoundError: If the session is unknown or expired
            PaymentRequiredError: If the session's payment has not completed
            ValidationInProgressError: If a validation for this session is still running
        """
        if session_id in self._in_flight:
            raise ValidationInProgressError(session_id)

        self._in_flight.add(session_id)
        try:
            record = await self._require_session(session_id)
            if record.payment_status != PaymentStatus.PAID:
                logger.warning(
                    f"Refusing validation for session {session_id}: "
                    f"payment status is {record.payment_status.value}"
                )
                raise PaymentRequiredError(session_id)

            report = self.engine.score_for(
                self.catalog,
                record.country,
                record.visa_type,
                record.uploaded_files
            )

            if await self.store.update_validation_results(session_id, report) is None:
                raise SessionNotFoundError(session_id)

            logger.info(f"Validated session {session_id}: score {report.score}")
            return report
        finally:
            self._in_flight.discard(session_id)

    async def get_results(self, session_id: str) -> ValidationReport:
        """
        Get the stored report for a session.

        Raises:
            SessionNotFoundError: If the session is unknown or expired
            ResultsNotReadyError: If validation has not run yet
        """
        record = await self._require_session(session_id)
        if record.validation_results is None:
            raise ResultsNotReadyError(session_id)
        return record.validation_results

    async def update_payment_status(self, session_id: str, status: PaymentStatus) -> ValidationSessionRecord:
        record = await self.store.update_payment_status(session_id, status)
        if record is None:
            raise SessionNotFoundError(session_id)

        logger.info(f"Payment status for session {session_id} set to {status.value}")
        return record

    def is_validating(self, session_id: str) -> bool:
        return session_id in self._in_flight

    async def _require_session(self, session_id: str) -> ValidationSessionRecord:
        record = await self.store.get_session(session_id)
        if record is None:
            raise SessionNotFoundError(session_id)
        return record
