"""
Pytest configuration and shared fixtures for VisaReady tests.
"""

from datetime import datetime, timezone
from typing import List

import pytest
from hypothesis import settings, Verbosity

from visaready.core.models import PersonalInfo, RequirementRule, UploadedFileDescriptor
from visaready.services.catalog import RequirementCatalog, build_default_catalog

# Configure Hypothesis for property-based testing
settings.register_profile("default", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("dev", max_examples=10, verbosity=Verbosity.verbose)

# Load the appropriate profile
settings.load_profile("default")

FIXED_TIME = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


def make_file(name: str, mime_type: str = "application/octet-stream", size: int = 1024) -> UploadedFileDescriptor:
    """Build an uploaded file descriptor."""
    return UploadedFileDescriptor(
        original_name=name,
        mime_type=mime_type,
        size=size,
        uploaded_at=FIXED_TIME
    )


@pytest.fixture
def passport_rule() -> RequirementRule:
    """Required passport rule accepting pdf/jpg/png."""
    return RequirementRule(
        id="passport",
        name="Valid Passport",
        description="Passport must be valid for at least 6 months beyond intended stay",
        required=True,
        accepted_formats=["pdf", "jpg", "png"]
    )


@pytest.fixture
def tourist_rules(passport_rule) -> List[RequirementRule]:
    """Two required rules and one optional rule."""
    return [
        passport_rule,
        RequirementRule(
            id="ds160",
            name="DS-160 Confirmation",
            description="Completed DS-160 online application confirmation page",
            required=True,
            accepted_formats=["pdf"]
        ),
        RequirementRule(
            id="itinerary",
            name="Travel Itinerary",
            description="Flight bookings, hotel reservations, or detailed travel plans",
            required=False,
            accepted_formats=["docx"]
        ),
    ]


@pytest.fixture
def default_catalog() -> RequirementCatalog:
    return build_default_catalog()


@pytest.fixture
def complete_personal_info() -> PersonalInfo:
    """Personal info that passes submission checks."""
    return PersonalInfo(
        applicant_name="Jane Traveler",
        passport_number="X1234567",
        date_of_birth="1990-02-14",
        nationality="Canadian",
        travel_date="2024-09-01",
        stay_duration=14,
        data_processing_consent=True
    )
