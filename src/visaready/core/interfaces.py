"""
Abstract base classes and interfaces for VisaReady services.
These define the contracts that the session store, the remote validation
API and the client state storage must follow.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .models import (
    PaymentStatus,
    PersonalInfo,
    UploadedFileDescriptor,
    ValidationReport,
    ValidationSessionRecord,
)


class SessionStore(ABC):
    """Abstract interface for server-side session persistence."""

    @abstractmethod
    async def create_session(self, record: ValidationSessionRecord) -> ValidationSessionRecord:
        """
        Persist a new session record.

        Args:
            record: Session record to store

        Returns:
            The stored record
        """
        pass

    @abstractmethod
    async def get_session(self, session_id: str) -> Optional[ValidationSessionRecord]:
        """
        Retrieve a session record.

        Args:
            session_id: Session identifier

        Returns:
            The record, or None if unknown or expired
        """
        pass

    @abstractmethod
    async def update_validation_results(
        self,
        session_id: str,
        report: ValidationReport
    ) -> Optional[ValidationSessionRecord]:
        """
        Overwrite the stored report for a session.

        Returns:
            The updated record, or None if the session does not exist
        """
        pass

    @abstractmethod
    async def update_payment_status(
        self,
        session_id: str,
        status: PaymentStatus
    ) -> Optional[ValidationSessionRecord]:
        """
        Update the payment status for a session.

        Returns:
            The updated record, or None if the session does not exist
        """
        pass

    @abstractmethod
    async def delete_session(self, session_id: str) -> bool:
        """Remove a session. Returns True if it existed."""
        pass

    @abstractmethod
    async def session_count(self) -> int:
        """Number of live sessions."""
        pass


class ValidationApi(ABC):
    """Abstract interface for the remote validation API used by the workflow."""

    @abstractmethod
    async def create_validation_session(
        self,
        country: str,
        visa_type: str,
        personal_info: PersonalInfo,
        uploaded_files: List[UploadedFileDescriptor],
        checked_documents: Dict[str, bool]
    ) -> str:
        """
        Create a validation session remotely.

        Returns:
            The new session identifier

        Raises:
            SessionCreationError: If the call fails or the response is malformed
        """
        pass

    @abstractmethod
    async def validate_documents(self, session_id: str) -> ValidationReport:
        """
        Run validation for a session.

        Raises:
            PaymentRequiredError: If the session's payment has not completed
            ValidationRequestError: If the session is unknown or the computation fails
        """
        pass

    @abstractmethod
    async def update_payment_status(self, session_id: str, status: PaymentStatus) -> PaymentStatus:
        """
        Record a payment status for a session remotely.

        Returns:
            The status the server recorded

        Raises:
            NotFoundError: If the session is unknown
            PaymentStatusError: If the call fails or the response is malformed
        """
        pass

    @abstractmethod
    async def fetch_results_by_session(self, session_id: str) -> ValidationReport:
        """
        Fetch the last report computed for a session.

        Raises:
            NotFoundError: If no report exists yet for the session
        """
        pass


class StateStorage(ABC):
    """Abstract interface for durable client-side key/value storage."""

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value for key, or None."""
        pass

    @abstractmethod
    def set_many(self, values: Mapping[str, Any]) -> None:
        """Write several keys in one flush."""
        pass

    @abstractmethod
    def remove(self, keys: Iterable[str]) -> None:
        """Remove keys; missing keys are ignored."""
        pass

    @abstractmethod
    def keys(self) -> List[str]:
        """All stored keys."""
        pass
