"""
Exception hierarchy for VisaReady.

Matching and scoring never raise for well-formed input: an unknown
country/visa pair is an empty requirement list and a missing document is an
issue in the report. Only the session/remote boundary raises.
"""

from typing import List, Optional


class VisaReadyError(Exception):
    """Base class for all VisaReady errors."""
    pass


# Client-side remote boundary

class SessionCreationError(VisaReadyError):
    """Raised when a validation session could not be created remotely."""
    pass


class ValidationRequestError(VisaReadyError):
    """Raised when the remote validation call fails."""
    pass


class PaymentRequiredError(ValidationRequestError):
    """Raised when validation is requested for a session that is not paid."""

    def __init__(self, session_id: str, message: Optional[str] = None):
        super().__init__(message or f"Payment required for validation session {session_id}")
        self.session_id = session_id


class PaymentStatusError(VisaReadyError):
    """Raised when a payment status could not be recorded remotely."""
    pass


class NotFoundError(VisaReadyError):
    """Raised when a session or its report does not exist (yet)."""
    pass


class ValidationInProgressError(VisaReadyError):
    """Raised when validation is requested while one is already running for the session."""

    def __init__(self, session_id: str):
        super().__init__(f"Validation already in progress for session {session_id}")
        self.session_id = session_id


# Server-side session service

class SessionNotFoundError(NotFoundError):
    """Raised when a session id is unknown or expired."""

    def __init__(self, session_id: str):
        super().__init__(f"Validation session {session_id} not found")
        self.session_id = session_id


class ResultsNotReadyError(NotFoundError):
    """Raised when a session exists but has no report yet."""

    def __init__(self, session_id: str):
        super().__init__(f"Validation results not available for session {session_id}")
        self.session_id = session_id


class InvalidSessionInputError(VisaReadyError):
    """Raised when session input fails validation."""

    def __init__(self, missing_fields: List[str], message: Optional[str] = None):
        super().__init__(message or f"Missing or invalid fields: {', '.join(missing_fields)}")
        self.missing_fields = missing_fields
