"""
Client-side validation workflow.

A seven-step state machine (destination -> requirements -> upload -> personal
info -> review -> payment -> results) whose state survives restarts through a
StateStorage. All mutations go through one transition boundary that commits
a working copy and flushes it to storage; a failing step leaves both the
in-memory and the persisted state as they were.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Union

from pydantic import BaseModel

from ..core.config import Settings
from ..core.exceptions import ValidationInProgressError
from ..core.interfaces import StateStorage, ValidationApi
from ..core.models import (
    PaymentStatus,
    UploadedFileDescriptor,
    ValidationData,
    ValidationReport,
    ValidationSessionState,
    WorkflowStep,
    clamp_step,
    dedupe_files,
    partition_by_allowed_types,
)


logger = logging.getLogger(__name__)

STEP_KEY = "validation_current_step"
DATA_KEY = "validation_data"
RESULTS_KEY = "validation_results"
SESSION_KEY = "validation_session_id"
PAYMENT_KEY_PREFIX = "validation_payment_status_"


def payment_key(session_id: str) -> str:
    return f"{PAYMENT_KEY_PREFIX}{session_id}"


class ValidationWorkflow:
    """
    Persisted, step-based validation workflow.
    """

    def __init__(self, api: ValidationApi, storage: StateStorage):
        """
        Initialize the workflow, resuming from whatever the storage holds.

        Args:
            api: Remote validation API
            storage: Durable client-side storage
        """
        self.api = api
        self.storage = storage
        self._state = self._load_state()
        # Bumped by reset(); remote replies from an older generation are dropped
        self._generation = 0

        logger.info(
            f"Validation workflow resumed at step {self._state.current_step}"
            + (f" for session {self._state.session_id}" if self._state.session_id else "")
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "ValidationWorkflow":
        """Build a workflow talking to the configured API with file-backed state."""
        from .api_client import HttpValidationApi
        from .storage import JsonFileStateStorage

        return cls(
            HttpValidationApi(settings.api_base_url, timeout=settings.api_timeout_seconds),
            JsonFileStateStorage(settings.state_file)
        )

    # State access

    @property
    def state(self) -> ValidationSessionState:
        return self._state.model_copy(deep=True)

    @property
    def current_step(self) -> int:
        return self._state.current_step

    @property
    def validation_data(self) -> ValidationData:
        return self._state.validation_data.model_copy(deep=True)

    @property
    def validation_results(self) -> Optional[ValidationReport]:
        return self._state.validation_results

    @property
    def session_id(self) -> str:
        return self._state.session_id

    @property
    def payment_status(self) -> PaymentStatus:
        return self._state.payment_status

    @property
    def is_validating(self) -> bool:
        return self._state.is_validating

    # Navigation

    def next(self) -> int:
        with self._transition() as draft:
            draft.current_step = clamp_step(draft.current_step + 1)
        return self._state.current_step

    def previous(self) -> int:
        with self._transition() as draft:
            draft.current_step = clamp_step(draft.current_step - 1)
        return self._state.current_step

    def go_to(self, step: Union[int, WorkflowStep]) -> int:
        with self._transition() as draft:
            draft.current_step = clamp_step(int(step))
        return self._state.current_step

    # Input

    def update_field(self, **updates: Any) -> ValidationData:
        return self.update_validation_data(updates)

    def update_validation_data(self, updates: Mapping[str, Any]) -> ValidationData:
        """
        Merge updates into the validation data.

        `personal_info` may be given as a partial dict of field names, which is
        merged into the current personal info. Uploaded files are deduplicated.

        Raises:
            ValueError: For unknown fields or values that fail validation
        """
        unknown = set(updates) - set(ValidationData.model_fields)
        if unknown:
            raise ValueError(f"Unknown validation data field(s): {', '.join(sorted(unknown))}")

        with self._transition() as draft:
            merged = draft.validation_data.model_dump()
            for key, value in updates.items():
                if isinstance(value, BaseModel):
                    value = value.model_dump()
                if key == "personal_info" and isinstance(value, Mapping):
                    value = {**merged["personal_info"], **value}
                merged[key] = value

            data = ValidationData.model_validate(merged)
            data.uploaded_files = dedupe_files(data.uploaded_files)
            draft.validation_data = data

        return self.validation_data

    def update_uploaded_files(self, files: Iterable[UploadedFileDescriptor]) -> ValidationData:
        """Replace the uploaded file list."""
        return self.update_validation_data({"uploaded_files": list(files)})

    def add_uploaded_files(self, files: Iterable[UploadedFileDescriptor]) -> ValidationData:
        """
        Append newly uploaded files.

        Files with an unsupported content type are dropped with a warning, and
        files already present by name and size are skipped.
        """
        accepted, rejected = partition_by_allowed_types(files)
        for file in rejected:
            logger.warning(f"Rejected upload {file.original_name!r}: unsupported type {file.mime_type!r}")

        existing = self._state.validation_data.uploaded_files
        return self.update_validation_data({"uploaded_files": [*existing, *accepted]})

    def update_checked_documents(self, checked: Mapping[str, bool]) -> Dict[str, bool]:
        """Merge user assertions of which documents they have."""
        with self._transition() as draft:
            draft.validation_data.checked_documents.update(
                {str(key): bool(value) for key, value in checked.items()}
            )
        return dict(self._state.validation_data.checked_documents)

    def set_document_checked(self, requirement_id: str, checked: bool = True) -> Dict[str, bool]:
        return self.update_checked_documents({requirement_id: checked})

    # Remote operations

    async def update_payment_status(self, status: Union[PaymentStatus, str]) -> PaymentStatus:
        """
        Record the payment status, on the server first when a session is bound.

        Raises:
            ValueError: If status is not a known payment status
            NotFoundError: If the server does not know the session; state is unchanged
            PaymentStatusError: If the remote call fails; state is unchanged
        """
        status = PaymentStatus(status)
        session_id = self._state.session_id

        if session_id:
            generation = self._generation
            try:
                status = await self.api.update_payment_status(session_id, status)
            except Exception as e:
                logger.error(f"Failed to record payment status for session {session_id}: {str(e)}")
                raise

            if self._is_stale(generation, session_id):
                return status

        with self._transition() as draft:
            draft.payment_status = status
        return status

    async def create_session(self) -> str:
        """
        Create the remote validation session for the current input.

        Raises:
            SessionCreationError: If the remote call fails; state is unchanged
        """
        data = self._state.validation_data
        generation = self._generation
        previous_session_id = self._state.session_id

        try:
            session_id = await self.api.create_validation_session(
                country=data.country,
                visa_type=data.visa_type,
                personal_info=data.personal_info,
                uploaded_files=list(data.uploaded_files),
                checked_documents=dict(data.checked_documents)
            )
        except Exception as e:
            logger.error(f"Failed to create validation session: {str(e)}")
            raise

        if self._is_stale(generation, previous_session_id):
            return session_id

        with self._transition() as draft:
            draft.session_id = session_id
            draft.payment_status = self._stored_payment_status(session_id)

        logger.info(f"Workflow bound to validation session {session_id}")
        return session_id

    async def run_validation(self, session_id: Optional[str] = None) -> ValidationReport:
        """
        Run remote validation and store the report.

        A reply that arrives after reset() or a switch to another session is
        returned but not stored.

        Args:
            session_id: Session to validate; defaults to the workflow's session

        Raises:
            ValueError: If no session has been created
            ValidationInProgressError: If a validation is already pending
            PaymentRequiredError: If the session is not paid; state is unchanged
            ValidationRequestError: If the remote call fails; state is unchanged
        """
        bound_session_id = self._state.session_id
        session_id = session_id or bound_session_id
        if not session_id:
            raise ValueError("create_session must be called before run_validation")

        if self._state.is_validating:
            raise ValidationInProgressError(session_id)

        generation = self._generation
        self._state.is_validating = True
        try:
            report = await self.api.validate_documents(session_id)
        except Exception as e:
            logger.error(f"Validation failed for session {session_id}: {str(e)}")
            raise
        finally:
            # A reset already replaced the state this run flagged
            if generation == self._generation:
                self._state.is_validating = False

        if self._is_stale(generation, bound_session_id):
            return report

        with self._transition() as draft:
            draft.validation_results = report

        logger.info(f"Stored validation report for session {session_id}: score {report.score}")
        return report

    async def load_results(self) -> ValidationReport:
        """
        Fetch the stored report for the current session.

        Raises:
            ValueError: If no session has been created
            NotFoundError: If the report is not available yet
        """
        session_id = self._state.session_id
        if not session_id:
            raise ValueError("No validation session to load results for")

        generation = self._generation
        report = await self.api.fetch_results_by_session(session_id)
        if self._is_stale(generation, session_id):
            return report

        with self._transition() as draft:
            draft.validation_results = report
        return report

    def reset(self):
        """Clear all persisted workflow keys and return to the first step."""
        keys = [
            key for key in self.storage.keys()
            if key in (STEP_KEY, DATA_KEY, RESULTS_KEY, SESSION_KEY)
            or key.startswith(PAYMENT_KEY_PREFIX)
        ]
        self.storage.remove(keys)
        self._state = ValidationSessionState()
        self._generation += 1

        logger.info("Validation workflow reset")

    def _is_stale(self, generation: int, session_id: str) -> bool:
        """True if the workflow was reset or rebound since a remote call started."""
        if generation == self._generation and session_id == self._state.session_id:
            return False

        logger.warning(f"Discarding reply for session {session_id or '<new>'}: workflow was reset or rebound")
        return True

    # Persistence boundary

    @contextmanager
    def _transition(self) -> Iterator[ValidationSessionState]:
        draft = self._state.model_copy(deep=True)
        try:
            yield draft
            self._state = draft
        finally:
            self._flush()

    def _flush(self):
        state = self._state
        values: Dict[str, Any] = {
            STEP_KEY: state.current_step,
            DATA_KEY: state.validation_data.model_dump(mode="json", by_alias=True),
            RESULTS_KEY: (
                state.validation_results.model_dump(mode="json", by_alias=True)
                if state.validation_results is not None else None
            ),
            SESSION_KEY: state.session_id,
        }
        if state.session_id:
            values[payment_key(state.session_id)] = state.payment_status.value

        self.storage.set_many(values)

    def _load_state(self) -> ValidationSessionState:
        state = ValidationSessionState()

        step = self.storage.get(STEP_KEY)
        if step is not None:
            try:
                state.current_step = clamp_step(int(step))
            except (TypeError, ValueError):
                logger.warning(f"Ignoring stored step {step!r}")

        data = self.storage.get(DATA_KEY)
        if data is not None:
            try:
                state.validation_data = ValidationData.model_validate(data)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring stored validation data: {str(e)}")

        results = self.storage.get(RESULTS_KEY)
        if results is not None:
            try:
                state.validation_results = ValidationReport.model_validate(results)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring stored validation results: {str(e)}")

        session_id = self.storage.get(SESSION_KEY)
        if isinstance(session_id, str) and session_id:
            state.session_id = session_id
            state.payment_status = self._stored_payment_status(session_id)

        return state

    def _stored_payment_status(self, session_id: str) -> PaymentStatus:
        saved = self.storage.get(payment_key(session_id))
        if saved is None:
            return PaymentStatus.PENDING
        try:
            return PaymentStatus(saved)
        except ValueError:
            logger.warning(f"Ignoring stored payment status {saved!r}")
            return PaymentStatus.PENDING
