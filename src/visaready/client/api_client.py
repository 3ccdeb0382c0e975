"""
HTTP client for the VisaReady validation API.
"""

import logging
from typing import Any, Callable, Dict, List, Optional, Type

import httpx
from pydantic import ValidationError

from ..core.exceptions import (
    NotFoundError,
    PaymentRequiredError,
    PaymentStatusError,
    SessionCreationError,
    ValidationRequestError,
    VisaReadyError,
)
from ..core.interfaces import ValidationApi
from ..core.models import PaymentStatus, PersonalInfo, UploadedFileDescriptor, ValidationReport


logger = logging.getLogger(__name__)

SESSIONS_PATH = "/api/v1/validation-sessions"


class HttpValidationApi(ValidationApi):
    """
    ValidationApi implementation over httpx.

    Calls are never retried. Any transport error, non-success status or
    malformed body is converted into the error type of the operation.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. http://localhost:8000
            timeout: Per-request timeout in seconds
            client: Preconfigured AsyncClient (e.g. with an ASGI transport in tests)
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)

    async def aclose(self):
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def create_validation_session(
        self,
        country: str,
        visa_type: str,
        personal_info: PersonalInfo,
        uploaded_files: List[UploadedFileDescriptor],
        checked_documents: Dict[str, bool]
    ) -> str:
        payload = {
            "country": country,
            "visaType": visa_type,
            "personalInfo": personal_info.model_dump(mode="json", by_alias=True),
            "uploadedFiles": [f.model_dump(mode="json", by_alias=True) for f in uploaded_files],
            "checkedDocuments": dict(checked_documents),
        }

        body = await self._request("POST", SESSIONS_PATH, SessionCreationError, json=payload)

        session_id = body.get("sessionId")
        if not isinstance(session_id, str) or not session_id:
            raise SessionCreationError("Malformed session response: missing sessionId")

        logger.info(f"Created remote validation session {session_id}")
        return session_id

    async def validate_documents(self, session_id: str) -> ValidationReport:
        body = await self._request(
            "POST", f"{SESSIONS_PATH}/{session_id}/validate", ValidationRequestError,
            status_errors={402: lambda message: PaymentRequiredError(session_id, message)}
        )
        return self._parse_report(body, "validationResults", ValidationRequestError)

    async def fetch_results_by_session(self, session_id: str) -> ValidationReport:
        body = await self._request(
            "GET", f"{SESSIONS_PATH}/{session_id}/results", ValidationRequestError,
            status_errors={404: NotFoundError}
        )
        return self._parse_report(body, "results", ValidationRequestError)

    async def update_payment_status(self, session_id: str, status: PaymentStatus) -> PaymentStatus:
        status = PaymentStatus(status)
        body = await self._request(
            "PUT", f"{SESSIONS_PATH}/{session_id}/payment-status", PaymentStatusError,
            status_errors={404: NotFoundError},
            json={"status": status.value}
        )

        try:
            recorded = PaymentStatus(body["paymentStatus"])
        except (KeyError, ValueError) as e:
            raise PaymentStatusError(f"Malformed payment status response: {str(e)}") from e

        logger.info(f"Remote payment status for session {session_id} is {recorded.value}")
        return recorded

    async def _request(
        self,
        method: str,
        path: str,
        error_cls: Type[VisaReadyError],
        status_errors: Optional[Dict[int, Callable[[str], VisaReadyError]]] = None,
        **kwargs
    ) -> Dict[str, Any]:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {str(e)}")
            raise error_cls(f"Request to {path} failed: {str(e)}") from e

        if status_errors and response.status_code in status_errors:
            message = self._error_message(response)
            logger.warning(f"{method} {path} returned {response.status_code}: {message}")
            raise status_errors[response.status_code](message)

        if response.is_error:
            message = self._error_message(response)
            logger.error(f"{method} {path} returned {response.status_code}: {message}")
            raise error_cls(f"{response.status_code}: {message}")

        try:
            body = response.json()
        except ValueError as e:
            raise error_cls(f"Malformed response from {path}") from e

        if not isinstance(body, dict):
            raise error_cls(f"Malformed response from {path}")

        return body

    @staticmethod
    def _parse_report(
        body: Dict[str, Any],
        key: str,
        error_cls: Type[VisaReadyError]
    ) -> ValidationReport:
        try:
            return ValidationReport.model_validate(body[key])
        except (KeyError, ValidationError) as e:
            raise error_cls(f"Malformed validation report: {str(e)}") from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            return response.json()["error"]["message"]
        except (ValueError, KeyError, TypeError):
            return response.text or response.reason_phrase
