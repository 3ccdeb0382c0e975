"""
Property-based tests for completeness scoring.

For any uploaded file set and requirement list, the report partitions the
required rules into verified and issue entries, and its score is the rounded
share of required rules that are verified.
"""

from datetime import datetime, timezone

from hypothesis import given, strategies as st

from visaready.core.models import RequirementRule, UploadedFileDescriptor
from visaready.services.scoring import DocumentMatcher, ScoringEngine


FORMATS = ["pdf", "jpg", "png", "docx", "txt", "heic"]
FIXED_TIME = datetime(2024, 5, 1, tzinfo=timezone.utc)

engine = ScoringEngine(clock=lambda: FIXED_TIME)
matcher = DocumentMatcher()


@st.composite
def rules_strategy(draw, min_size=0, max_size=8):
    """Generate requirement lists with unique ids."""
    count = draw(st.integers(min_value=min_size, max_value=max_size))
    return [
        RequirementRule(
            id=f"doc{i}",
            name=f"Document {i}",
            required=draw(st.booleans()),
            accepted_formats=draw(st.frozensets(st.sampled_from(FORMATS), max_size=3))
        )
        for i in range(count)
    ]


@st.composite
def file_strategy(draw):
    """Generate file descriptors with a random extension and content type."""
    stem = draw(st.text(alphabet="abcdefghij", min_size=1, max_size=8))
    extension = draw(st.sampled_from(FORMATS + ["bin"]))
    mime = draw(st.sampled_from(["application/octet-stream", "application/pdf", "image/png", "text/plain"]))
    return UploadedFileDescriptor(
        original_name=f"{stem}.{extension}",
        mime_type=mime,
        size=draw(st.integers(min_value=0, max_value=10_000)),
        uploaded_at=FIXED_TIME
    )


files_strategy = st.lists(file_strategy(), max_size=6)


@given(files=files_strategy, rules=rules_strategy())
def test_required_rules_are_partitioned(files, rules):
    """Every required rule is exactly one of verified or issue; optional rules never become issues."""
    report = engine.score(files, rules)

    verified = [v.requirement_id for v in report.verified]
    issues = [i.requirement_id for i in report.issues]
    required = [rule.id for rule in rules if rule.required]

    assert not set(verified) & set(issues)
    assert set(required) <= set(verified) | set(issues)
    assert set(issues) <= set(required)
    assert len(verified) == len(set(verified))


@given(files=files_strategy, rules=rules_strategy())
def test_score_matches_verified_share(files, rules):
    report = engine.score(files, rules)

    required = [rule for rule in rules if rule.required]
    assert 0 <= report.score <= 100

    if not required:
        assert report.score == 100
    else:
        satisfied = sum(1 for rule in required if matcher.any_match(files, rule))
        assert abs(report.score - 100 * satisfied / len(required)) <= 0.5


@given(files=files_strategy, rules=rules_strategy())
def test_scoring_is_idempotent(files, rules):
    assert engine.score(files, rules) == engine.score(list(files), list(rules))


@given(files=files_strategy, extra=file_strategy(), rules=rules_strategy(min_size=1))
def test_adding_a_file_never_lowers_the_score(files, extra, rules):
    before = engine.score(files, rules)
    after = engine.score(files + [extra], rules)

    assert after.score >= before.score
    assert {v.requirement_id for v in before.verified} <= {v.requirement_id for v in after.verified}
    assert {i.requirement_id for i in after.issues} <= {i.requirement_id for i in before.issues}


@given(file=file_strategy(), rules=rules_strategy(min_size=1))
def test_matching_ignores_case(file, rules):
    shouted = file.model_copy(update={
        "original_name": file.original_name.upper(),
        "mime_type": file.mime_type.upper()
    })

    for rule in rules:
        assert matcher.matches(file, rule) == matcher.matches(shouted, rule)
