"""
Completeness scoring of an uploaded file set against a requirement list.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Callable, List, Optional, Sequence

from ...core.models import (
    RequirementRule,
    UploadedFileDescriptor,
    ValidationIssue,
    ValidationReport,
    VerifiedRequirement,
    utcnow,
)
from ..catalog import RequirementCatalog
from .matcher import DocumentMatcher


logger = logging.getLogger(__name__)


def percentage(part: int, whole: int) -> int:
    """Integer percentage of part/whole rounded half up (12.5 -> 13)."""
    value = Decimal(100 * part) / Decimal(whole)
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def recommendation_for(rule: RequirementRule) -> str:
    formats = ", ".join(sorted(rule.accepted_formats)) or "any format"
    return (
        f"Please upload your {rule.name.lower()} in one of the supported formats: {formats}."
    )


class ScoringEngine:
    """
    Builds a ValidationReport from requirement rules and uploaded files.

    Scoring is a single ordered pass over the rules. Each rule with a matching
    file is verified; each required rule without one becomes an issue; optional
    rules without a match are skipped. The score is the share of required
    rules that were verified, and is 100 when nothing is required.
    """

    def __init__(
        self,
        matcher: Optional[DocumentMatcher] = None,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.matcher = matcher or DocumentMatcher()
        self.clock = clock or utcnow

    def score(
        self,
        files: Sequence[UploadedFileDescriptor],
        rules: Sequence[RequirementRule]
    ) -> ValidationReport:
        """
        Score files against rules.

        Args:
            files: Uploaded file descriptors
            rules: Requirement rules in display order

        Returns:
            The validation report
        """
        verified: List[VerifiedRequirement] = []
        issues: List[ValidationIssue] = []
        total_required = 0
        verified_required = 0

        for rule in rules:
            if rule.required:
                total_required += 1

            if self.matcher.any_match(files, rule):
                verified.append(VerifiedRequirement(
                    requirement_id=rule.id,
                    message=f"{rule.name} detected and validated"
                ))
                if rule.required:
                    verified_required += 1
            elif rule.required:
                issues.append(ValidationIssue(
                    requirement_id=rule.id,
                    title=f"Missing {rule.name}",
                    description=rule.description,
                    recommendation=recommendation_for(rule)
                ))

        score = 100 if total_required == 0 else percentage(verified_required, total_required)

        logger.debug(
            f"Scored {len(files)} file(s) against {len(rules)} rule(s): "
            f"{verified_required}/{total_required} required verified, score {score}"
        )

        return ValidationReport(
            verified=verified,
            issues=issues,
            score=score,
            completed_at=self.clock()
        )

    def score_for(
        self,
        catalog: RequirementCatalog,
        country: str,
        visa_type: str,
        files: Sequence[UploadedFileDescriptor]
    ) -> ValidationReport:
        """Look up the rules for a destination/visa type and score files against them."""
        return self.score(files, catalog.lookup(country, visa_type))
