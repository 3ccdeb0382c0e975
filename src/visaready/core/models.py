"""
Core data models for the VisaReady document checker.
All models use Pydantic for validation and serialization.
"""

from datetime import datetime, timezone
from enum import Enum, IntEnum
from typing import Any, Dict, FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class WorkflowStep(IntEnum):
    """Ordered steps of the client validation workflow."""
    DESTINATION = 1
    REQUIREMENTS = 2
    UPLOAD = 3
    PERSONAL_INFO = 4
    REVIEW = 5
    PAYMENT = 6
    RESULTS = 7


FIRST_STEP = WorkflowStep.DESTINATION
LAST_STEP = WorkflowStep.RESULTS


class PaymentStatus(str, Enum):
    """Payment state of a validation session."""
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"


# Requirement catalog models

class RequirementRule(BaseModel):
    """One checklist item for a country/visa type."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str
    description: str = ""
    required: bool = True
    accepted_formats: FrozenSet[str] = Field(default_factory=frozenset, alias="formats")

    @field_validator("accepted_formats", mode="before")
    @classmethod
    def normalize_formats(cls, v):
        if v is None:
            return frozenset()
        if isinstance(v, str):
            v = [v]
        return frozenset(token.strip().lstrip(".").lower() for token in v if token and token.strip())


class UploadedFileDescriptor(BaseModel):
    """Metadata for a file accepted by the upload handler."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    original_name: str = Field(..., alias="originalName")
    mime_type: str = Field("", alias="mimetype")
    size: int = Field(0, ge=0)
    uploaded_at: datetime = Field(default_factory=utcnow, alias="uploadedAt")

    @property
    def dedupe_key(self):
        return (self.original_name, self.size)


# Report models

class VerifiedRequirement(BaseModel):
    """A requirement satisfied by at least one uploaded file."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    requirement_id: str = Field(..., alias="requirementId")
    message: str


class ValidationIssue(BaseModel):
    """A required document that no uploaded file satisfies."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    requirement_id: str = Field(..., alias="requirementId")
    title: str
    description: str
    recommendation: str


class ValidationReport(BaseModel):
    """Result of scoring an uploaded file set against a requirement list."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    verified: List[VerifiedRequirement] = Field(default_factory=list)
    issues: List[ValidationIssue] = Field(default_factory=list)
    score: int = Field(..., ge=0, le=100)
    completed_at: datetime = Field(default_factory=utcnow, alias="completedAt")

    def outcome(self) -> Dict[str, Any]:
        """Report contents without the computation timestamp."""
        return self.model_dump(exclude={"completed_at"})


# Applicant / session models

class PersonalInfo(BaseModel):
    """Applicant identity fields used for the report and payment record."""
    model_config = ConfigDict(populate_by_name=True)

    applicant_name: str = Field("", alias="applicantName")
    passport_number: str = Field("", alias="passportNumber")
    date_of_birth: str = Field("", alias="dateOfBirth")
    nationality: str = ""
    travel_date: str = Field("", alias="travelDate")
    stay_duration: int = Field(0, ge=0, alias="stayDuration")
    data_processing_consent: bool = Field(False, alias="dataProcessingConsent")

    def missing_fields(self) -> List[str]:
        """Names of fields that are not filled in well enough to submit."""
        missing = []
        if not self.applicant_name.strip():
            missing.append("applicant_name")
        if len(self.passport_number.strip()) < 6:
            missing.append("passport_number")
        for name in ("date_of_birth", "nationality", "travel_date"):
            if not getattr(self, name).strip():
                missing.append(name)
        if self.stay_duration < 1:
            missing.append("stay_duration")
        return missing


class ValidationData(BaseModel):
    """User input accumulated by the workflow."""
    model_config = ConfigDict(populate_by_name=True)

    country: str = ""
    visa_category: str = Field("", alias="visaCategory")
    visa_type: str = Field("", alias="visaType")
    personal_info: PersonalInfo = Field(default_factory=PersonalInfo, alias="personalInfo")
    uploaded_files: List[UploadedFileDescriptor] = Field(default_factory=list, alias="uploadedFiles")
    checked_documents: Dict[str, bool] = Field(default_factory=dict, alias="checkedDocuments")


class ValidationSessionState(BaseModel):
    """Client-held workflow state."""
    model_config = ConfigDict(populate_by_name=True)

    current_step: int = Field(int(FIRST_STEP), alias="currentStep")
    validation_data: ValidationData = Field(default_factory=ValidationData, alias="validationData")
    validation_results: Optional[ValidationReport] = Field(None, alias="validationResults")
    session_id: str = Field("", alias="sessionId")
    payment_status: PaymentStatus = Field(PaymentStatus.PENDING, alias="paymentStatus")
    is_validating: bool = Field(False, exclude=True)

    @field_validator("current_step", mode="before")
    @classmethod
    def clamp_current_step(cls, v):
        return clamp_step(int(v))


class ValidationSessionRecord(BaseModel):
    """Server-side record of one validation session."""
    session_id: str
    country: str
    visa_type: str
    personal_info: PersonalInfo
    uploaded_files: List[UploadedFileDescriptor] = Field(default_factory=list)
    checked_documents: Dict[str, bool] = Field(default_factory=dict)
    validation_results: Optional[ValidationReport] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


def clamp_step(step: int) -> int:
    """Clamp a step number into the workflow's range."""
    return max(int(FIRST_STEP), min(int(step), int(LAST_STEP)))


def dedupe_files(files) -> List[UploadedFileDescriptor]:
    """Drop files whose (name, size) was already seen, keeping first occurrence."""
    seen = set()
    result = []
    for file in files:
        if file.dedupe_key in seen:
            continue
        seen.add(file.dedupe_key)
        result.append(file)
    return result


ALLOWED_UPLOAD_TYPES: FrozenSet[str] = frozenset({
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/msword",
    "text/plain",
})


def partition_by_allowed_types(files) -> Tuple[List[UploadedFileDescriptor], List[UploadedFileDescriptor]]:
    """Split files into (accepted, rejected) by content type, ignoring case."""
    accepted, rejected = [], []
    for file in files:
        if file.mime_type.strip().lower() in ALLOWED_UPLOAD_TYPES:
            accepted.append(file)
        else:
            rejected.append(file)
    return accepted, rejected
