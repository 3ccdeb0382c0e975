"""
Main FastAPI application for VisaReady.
Serves the requirement catalog and the validation session endpoints.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional
import logging
import time
import uuid
from datetime import datetime

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.config import get_settings
from ..core.exceptions import (
    InvalidSessionInputError,
    NotFoundError,
    PaymentRequiredError,
    SessionNotFoundError,
    ValidationInProgressError,
)
from ..core.health import HealthChecker, setup_default_health_checks
from ..core.models import (
    PaymentStatus,
    PersonalInfo,
    RequirementRule,
    UploadedFileDescriptor,
)
from ..core.monitoring import get_monitoring_status, setup_logging
from ..services.catalog import RequirementCatalog, build_default_catalog
from ..services.session import InMemorySessionStore, ValidationSessionService


# Request/Response Models
class CreateSessionRequest(BaseModel):
    """Request model for creating a validation session."""
    model_config = ConfigDict(populate_by_name=True)

    country: str = Field(..., description="Destination country")
    visa_type: str = Field(..., alias="visaType", description="Visa type within the destination")
    personal_info: PersonalInfo = Field(..., alias="personalInfo")
    uploaded_files: List[UploadedFileDescriptor] = Field(default_factory=list, alias="uploadedFiles")
    checked_documents: Dict[str, bool] = Field(default_factory=dict, alias="checkedDocuments")


class PaymentStatusRequest(BaseModel):
    """Request model for payment status updates."""
    status: PaymentStatus


class HealthCheckResponse(BaseModel):
    """Response model for health checks."""
    status: str
    service: str
    version: str
    timestamp: float
    checks: Optional[Dict[str, Any]] = None


settings = get_settings()
logger = logging.getLogger(__name__)

# Global service instances
catalog: Optional[RequirementCatalog] = None
session_service: Optional[ValidationSessionService] = None
health_checker: Optional[HealthChecker] = None


def rule_to_dict(rule: RequirementRule) -> Dict[str, Any]:
    return {
        "id": rule.id,
        "name": rule.name,
        "description": rule.description,
        "required": rule.required,
        "formats": sorted(rule.accepted_formats),
    }


async def initialize_services(requirement_catalog: Optional[RequirementCatalog] = None):
    """Initialize all services."""
    global catalog, session_service, health_checker

    try:
        logger.info("Initializing services...")

        catalog = requirement_catalog if requirement_catalog is not None else build_default_catalog()
        store = InMemorySessionStore(ttl_seconds=settings.session_ttl_seconds)
        session_service = ValidationSessionService(catalog=catalog, store=store)

        health_checker = setup_default_health_checks(HealthChecker(), catalog, store)

        logger.info("All services initialized successfully")

    except Exception as e:
        logger.error(f"Failed to initialize services: {str(e)}")
        raise


async def cleanup_services():
    """Cleanup services on shutdown."""
    global catalog, session_service, health_checker

    logger.info("Cleaning up services...")

    catalog = None
    session_service = None
    health_checker = None

    logger.info("Services cleaned up")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    setup_logging(settings.log_level, structured=settings.structured_logging)
    logger.info(f"Starting {settings.app_name} API")

    await initialize_services()

    yield

    logger.info(f"Shutting down {settings.app_name} API")

    await cleanup_services()


app = FastAPI(
    title=settings.app_name,
    version=settings.version,
    description="Visa document completeness checks",
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts
)


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    """Add a request ID header and log request timing."""
    request_id = str(uuid.uuid4())
    request.state.request_id = request_id

    start_time = time.time()
    response = await call_next(request)
    execution_time = (time.time() - start_time) * 1000

    response.headers["X-Request-ID"] = request_id

    logger.info(
        f"Request {request_id}: {request.method} {request.url.path} "
        f"completed in {execution_time:.2f}ms with status {response.status_code}"
    )

    return response


def require_session_service() -> ValidationSessionService:
    if session_service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Session service not available"
        )
    return session_service


def require_catalog() -> RequirementCatalog:
    if catalog is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Requirement catalog not available"
        )
    return catalog


# Health check endpoints
@app.get("/health", response_model=HealthCheckResponse)
async def health_check():
    """Basic health check endpoint."""
    return HealthCheckResponse(
        status="healthy",
        service="visaready-api",
        version=settings.version,
        timestamp=time.time()
    )


@app.get("/health/detailed", response_model=HealthCheckResponse)
async def detailed_health_check():
    """Detailed health check including catalog and session store."""
    if health_checker is None:
        return HealthCheckResponse(
            status="unhealthy",
            service="visaready-api",
            version=settings.version,
            timestamp=time.time()
        )

    overall = await health_checker.get_overall_health()

    return HealthCheckResponse(
        status=overall["status"],
        service="visaready-api",
        version=settings.version,
        timestamp=time.time(),
        checks=overall["checks"]
    )


@app.get("/metrics")
async def metrics():
    """In-process operation metrics."""
    return get_monitoring_status()


@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": f"Welcome to {settings.app_name}",
        "version": settings.version,
        "health": "/health",
        "endpoints": {
            "countries": "/api/v1/countries",
            "requirements": "/api/v1/requirements/{country}/{visa_type}",
            "create_session": "/api/v1/validation-sessions",
            "validate": "/api/v1/validation-sessions/{session_id}/validate",
            "results": "/api/v1/validation-sessions/{session_id}/results",
            "payment_status": "/api/v1/validation-sessions/{session_id}/payment-status"
        }
    }


# Catalog endpoints
@app.get("/api/v1/countries")
async def get_supported_countries():
    """List destinations that have a requirement checklist."""
    return {"countries": require_catalog().countries()}


@app.get("/api/v1/countries/{country}/visa-types")
async def get_supported_visa_types(country: str):
    """List visa types with a checklist for a destination."""
    return {"country": country, "visa_types": require_catalog().visa_types(country)}


@app.get("/api/v1/requirements/{country}/{visa_type}")
async def get_requirements(country: str, visa_type: str):
    """
    Get the document checklist for a destination and visa type.

    Unknown combinations return an empty list.
    """
    rules = require_catalog().lookup(country, visa_type)
    return {
        "country": country,
        "visa_type": visa_type,
        "requirements": [rule_to_dict(rule) for rule in rules]
    }


# Validation session endpoints
@app.post("/api/v1/validation-sessions", status_code=status.HTTP_201_CREATED)
async def create_validation_session(request: CreateSessionRequest):
    """Create a validation session from the applicant's input."""
    service = require_session_service()

    try:
        session_id = await service.create_validation_session(
            country=request.country,
            visa_type=request.visa_type,
            personal_info=request.personal_info,
            uploaded_files=request.uploaded_files,
            checked_documents=request.checked_documents
        )
    except InvalidSessionInputError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Error creating validation session: {str(e)}"
        )

    return {"sessionId": session_id}


@app.post("/api/v1/validation-sessions/{session_id}/validate")
async def validate_documents(session_id: str):
    """Score the session's uploaded documents and store the report."""
    service = require_session_service()

    try:
        report = await service.validate_documents(session_id)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Validation session not found"
        )
    except PaymentRequiredError:
        raise HTTPException(
            status_code=status.HTTP_402_PAYMENT_REQUIRED,
            detail="Payment required"
        )
    except ValidationInProgressError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Validation already in progress for this session"
        )

    return {"validationResults": report.model_dump(mode="json", by_alias=True)}


@app.get("/api/v1/validation-sessions/{session_id}/results")
async def get_validation_results(session_id: str):
    """Get the last report computed for a session."""
    service = require_session_service()

    try:
        report = await service.get_results(session_id)
    except NotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e)
        )

    return {"results": report.model_dump(mode="json", by_alias=True)}


@app.put("/api/v1/validation-sessions/{session_id}/payment-status")
async def update_payment_status(session_id: str, request: PaymentStatusRequest):
    """Record the payment status reported for a session."""
    service = require_session_service()

    try:
        record = await service.update_payment_status(session_id, request.status)
    except SessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Validation session not found"
        )

    return {"sessionId": record.session_id, "paymentStatus": record.payment_status.value}


# Error handlers
def error_response(request: Request, code: int, message: Any) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content={
            "error": {
                "code": code,
                "message": message,
                "timestamp": datetime.now().isoformat(),
                "request_id": getattr(request.state, "request_id", None)
            }
        }
    )


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(f"HTTP {exc.status_code}: {exc.detail} - {request.method} {request.url.path}")
    return error_response(request, exc.status_code, exc.detail)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Last-resort handler; details go to the log, not the client."""
    logger.error(f"Unhandled exception: {str(exc)} - {request.method} {request.url.path}", exc_info=True)
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal server error")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "visaready.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
        log_level="info"
    )
