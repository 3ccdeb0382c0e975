"""
Unit tests for document matching and completeness scoring.
"""

import pytest

from visaready.core.models import RequirementRule
from visaready.services.catalog import RequirementCatalog
from visaready.services.scoring import (
    DocumentMatcher,
    ScoringEngine,
    extension_of,
    mime_subtype_of,
    percentage,
)

from conftest import FIXED_TIME, make_file


@pytest.fixture
def matcher():
    return DocumentMatcher()


@pytest.fixture
def engine():
    return ScoringEngine(clock=lambda: FIXED_TIME)


class TestDocumentMatcher:
    """Test format matching between files and rules."""

    def test_extension_helpers(self):
        assert extension_of("Passport.PDF") == "pdf"
        assert extension_of("archive.tar.GZ") == "gz"
        assert extension_of("README") == ""
        assert mime_subtype_of("Application/PDF") == "pdf"
        assert mime_subtype_of("garbage") == ""

    @pytest.mark.parametrize("name", ["pdf", "PDF"])
    def test_dotless_name_is_not_an_extension(self, matcher, passport_rule, name):
        """A name equal to a format token without a '.' only matches via its content type."""
        assert not matcher.matches(make_file(name, "application/octet-stream"), passport_rule)
        assert matcher.matches(make_file(name, "application/pdf"), passport_rule)

    def test_dotless_name_scores_as_missing(self, engine):
        rule = RequirementRule(id="ds160", name="DS-160 Confirmation", accepted_formats=["pdf"])

        report = engine.score([make_file("PDF", "application/octet-stream")], [rule])

        assert report.score == 0
        assert [i.requirement_id for i in report.issues] == ["ds160"]

    def test_case_insensitive_extension(self, matcher, passport_rule):
        assert matcher.matches(make_file("Passport.PDF"), passport_rule)

    def test_mime_subtype_match_without_extension(self, matcher, passport_rule):
        """A file without an extension can still match through its content type."""
        assert matcher.matches(make_file("scan", "image/PNG"), passport_rule)

    def test_no_extension_no_mime_match(self, matcher, passport_rule):
        assert not matcher.matches(make_file("scan", "application/octet-stream"), passport_rule)

    def test_membership_not_substring(self, matcher):
        rule = RequirementRule(id="doc", name="Document", accepted_formats=["docx"])

        assert not matcher.matches(make_file("letter.doc", "application/msword"), rule)

    def test_empty_formats_accept_anything(self, matcher):
        rule = RequirementRule(id="any", name="Anything")

        assert matcher.matches(make_file("whatever.xyz", ""), rule)

    def test_any_match(self, matcher, passport_rule):
        files = [make_file("notes.txt", "text/plain"), make_file("scan.jpg", "image/jpeg")]

        assert matcher.any_match(files, passport_rule)
        assert not matcher.any_match([], passport_rule)


class TestScoringEngine:
    """Test report generation."""

    def test_scenario_single_rule_satisfied(self, engine, passport_rule):
        report = engine.score([make_file("scan.pdf", "application/pdf")], [passport_rule])

        assert [(v.requirement_id, v.message) for v in report.verified] == [
            ("passport", "Valid Passport detected and validated")
        ]
        assert report.issues == []
        assert report.score == 100
        assert report.completed_at == FIXED_TIME

    def test_scenario_no_files(self, engine, passport_rule):
        report = engine.score([], [passport_rule])

        assert report.verified == []
        assert len(report.issues) == 1
        issue = report.issues[0]
        assert issue.requirement_id == "passport"
        assert issue.title == "Missing Valid Passport"
        assert issue.description == passport_rule.description
        assert issue.recommendation == (
            "Please upload your valid passport in one of the supported formats: jpg, pdf, png."
        )
        assert report.score == 0

    def test_scenario_optional_rule_ignored(self, engine, tourist_rules):
        report = engine.score([make_file("passport.jpg", "image/jpeg")], tourist_rules)

        assert report.score == 50
        assert [v.requirement_id for v in report.verified] == ["passport"]
        assert [i.requirement_id for i in report.issues] == ["ds160"]
        ids = {v.requirement_id for v in report.verified} | {i.requirement_id for i in report.issues}
        assert "itinerary" not in ids

    def test_scenario_unknown_destination(self, engine, default_catalog):
        rules = default_catalog.lookup("atlantis", "tourist")

        assert rules == []
        assert engine.score([make_file("scan.pdf", "application/pdf")], rules).score == 100
        assert engine.score_for(default_catalog, "atlantis", "tourist", []).score == 100

    def test_satisfied_optional_rule_is_verified(self, engine, tourist_rules):
        files = [make_file("trip.docx")]

        report = engine.score(files, tourist_rules)

        assert [v.requirement_id for v in report.verified] == ["itinerary"]
        assert report.score == 0

    def test_order_follows_rules(self, engine, tourist_rules):
        report = engine.score([], list(reversed(tourist_rules)))

        assert [i.requirement_id for i in report.issues] == ["ds160", "passport"]

    def test_recommendation_for_format_agnostic_rule(self, engine):
        rule = RequirementRule(id="letter", name="Cover Letter", required=True)

        report = engine.score([], [rule])

        # An empty format set accepts any file, so only an empty upload misses it
        assert report.issues[0].recommendation.endswith("supported formats: any format.")

    def test_score_for_uses_catalog(self, engine, passport_rule):
        catalog = RequirementCatalog({("usa", "tourist"): [passport_rule]})

        report = engine.score_for(catalog, "USA", "Tourist", [make_file("scan.png", "image/png")])

        assert report.score == 100


class TestRounding:
    """Scores round half up."""

    @pytest.mark.parametrize("part,whole,expected", [
        (1, 2, 50),
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),   # 12.5
        (3, 8, 38),   # 37.5
        (5, 8, 63),   # 62.5
        (0, 5, 0),
        (5, 5, 100),
    ])
    def test_percentage(self, part, whole, expected):
        assert percentage(part, whole) == expected

    def test_half_boundary_in_report(self, engine):
        rules = [
            RequirementRule(id=f"doc{i}", name=f"Document {i}", accepted_formats=[f"ext{i}"])
            for i in range(8)
        ]

        report = engine.score([make_file("a.ext0")], rules)

        assert report.score == 13
