"""
Tests for severity resolution.

Tests cover:
- Grade-aware base severity table
- Each escalation factor in isolation
- Clamping at level 4
- Reported severity as a floor
"""
import pytest

from sessionorder.engine import (
    BASE_SEVERITY_TABLE,
    EscalationFactor,
    SeverityResolver,
    base_severity,
    detect_factors,
    escalate,
)
from sessionorder.models import CategoryId

from tests.conftest import make_incident


# =============================================================================
# Base Severity
# =============================================================================

class TestBaseSeverity:
    """Tests for the grade-aware base table."""

    @pytest.mark.parametrize("category,grade,expected", [
        (CategoryId.DISRESPECT_TONE, 2, 1),
        (CategoryId.DISRESPECT_TONE, 4, 2),
        (CategoryId.DISRESPECT_TONE, 9, 3),
        (CategoryId.SAFETY_BOUNDARY, 1, 3),
        (CategoryId.SAFETY_BOUNDARY, 11, 4),
        (CategoryId.NON_COMPLIANCE, 7, 2),
        (CategoryId.NON_COMPLIANCE, 12, 3),
        (CategoryId.OTHER, 10, 1),
        (CategoryId.OTHER, 13, 2),
    ])
    def test_table_values(self, category, grade, expected):
        assert base_severity(category, grade) == expected

    def test_never_lower_at_higher_grade(self):
        """Identical behavior never scores lower for an older student."""
        for category in CategoryId:
            values = [base_severity(category, grade) for grade in range(1, 14)]
            assert values == sorted(values)

    def test_every_category_has_a_row(self):
        assert set(BASE_SEVERITY_TABLE) == set(CategoryId)

    def test_unknown_category_uses_other_row(self):
        assert base_severity("MYSTERY", 13) == base_severity(CategoryId.OTHER, 13)

    def test_accepts_raw_category_id(self):
        assert base_severity("SAFETY_BOUNDARY", 9) == 4


# =============================================================================
# Escalation
# =============================================================================

class TestEscalate:
    """Tests for applying escalation factors."""

    def test_no_factors(self):
        assert escalate(2, []) == 2

    def test_each_factor_adds_one(self):
        assert escalate(1, [EscalationFactor.LATE_SESSION]) == 2
        assert escalate(1, [EscalationFactor.LATE_SESSION, EscalationFactor.PRIOR_MAJOR]) == 3

    def test_clamped_to_four(self):
        assert escalate(3, list(EscalationFactor)) == 4
        assert escalate(4, [EscalationFactor.REPEAT_CATEGORY]) == 4

    def test_order_and_repetition_irrelevant(self):
        forward = [EscalationFactor.REPEAT_CATEGORY, EscalationFactor.RAPID_SUCCESSION]
        assert escalate(1, forward) == escalate(1, list(reversed(forward)))
        assert escalate(1, forward + forward) == 3


class TestDetectFactors:
    """Tests for each escalation factor in isolation."""

    def test_none_for_first_incident(self):
        assert detect_factors(CategoryId.INTERRUPTING, [], 60) == []

    def test_repeat_category_needs_two_prior(self):
        one = [make_incident(CategoryId.INTERRUPTING, time_into_session=0)]
        two = one + [make_incident(CategoryId.INTERRUPTING, time_into_session=1000)]
        assert EscalationFactor.REPEAT_CATEGORY not in detect_factors(
            CategoryId.INTERRUPTING, one, 2000
        )
        assert EscalationFactor.REPEAT_CATEGORY in detect_factors(
            CategoryId.INTERRUPTING, two, 2000
        )

    def test_rapid_succession_counts_current_incident(self):
        """Two prior incidents in the last ten minutes plus this one is three."""
        prior = [
            make_incident(CategoryId.FOCUS_OFF_TASK, time_into_session=100),
            make_incident(CategoryId.TECH_MISUSE, time_into_session=200),
        ]
        assert EscalationFactor.RAPID_SUCCESSION in detect_factors(
            CategoryId.OTHER, prior, 300
        )

    def test_rapid_succession_window(self):
        prior = [
            make_incident(CategoryId.FOCUS_OFF_TASK, time_into_session=100),
            make_incident(CategoryId.TECH_MISUSE, time_into_session=300),
        ]
        # 100 is outside the ten minutes before 801
        assert EscalationFactor.RAPID_SUCCESSION not in detect_factors(
            CategoryId.OTHER, prior, 801
        )

    def test_late_session_strictly_after_45_minutes(self):
        assert EscalationFactor.LATE_SESSION not in detect_factors(CategoryId.OTHER, [], 2700)
        assert EscalationFactor.LATE_SESSION in detect_factors(CategoryId.OTHER, [], 2701)

    def test_prior_major(self):
        prior = [make_incident(CategoryId.DISRESPECT_TONE, severity=3, time_into_session=10)]
        assert detect_factors(CategoryId.OTHER, prior, 2000) == [EscalationFactor.PRIOR_MAJOR]


# =============================================================================
# Resolver
# =============================================================================

class TestSeverityResolver:
    """Tests for the full resolution."""

    def test_base_only(self):
        resolution = SeverityResolver().resolve(CategoryId.INTERRUPTING, grade=4)
        assert resolution.base == 1
        assert resolution.severity == 1
        assert not resolution.escalated

    def test_reported_severity_raises_floor(self):
        resolution = SeverityResolver().resolve(
            CategoryId.INTERRUPTING, grade=4, reported_severity=3
        )
        assert resolution.base == 1
        assert resolution.severity == 3
        assert resolution.reported == 3

    def test_reported_severity_never_lowers(self):
        resolution = SeverityResolver().resolve(
            CategoryId.SAFETY_BOUNDARY, grade=12, reported_severity=1
        )
        assert resolution.severity == 4

    def test_escalated_by_history(self):
        prior = [
            make_incident(CategoryId.DISRESPECT_TONE, severity=3, time_into_session=1200),
            make_incident(CategoryId.DISRESPECT_TONE, severity=3, time_into_session=1300),
        ]
        resolution = SeverityResolver().resolve(
            CategoryId.DISRESPECT_TONE,
            grade=9,
            prior_incidents=prior,
            elapsed_seconds=1500,
        )
        assert resolution.base == 3
        assert resolution.severity == 4
        assert EscalationFactor.REPEAT_CATEGORY in resolution.factors
        assert EscalationFactor.RAPID_SUCCESSION in resolution.factors

    def test_never_computes_level_five(self):
        prior = [
            make_incident(CategoryId.SAFETY_BOUNDARY, severity=4, time_into_session=t)
            for t in (3000, 3100, 3200)
        ]
        resolution = SeverityResolver().resolve(
            CategoryId.SAFETY_BOUNDARY,
            grade=13,
            prior_incidents=prior,
            elapsed_seconds=3300,
            reported_severity=4,
        )
        assert resolution.severity == 4
        assert len(resolution.factors) == 4

    def test_to_dict(self):
        data = SeverityResolver().resolve(CategoryId.OTHER, grade=1).to_dict()
        assert data == {
            "category": "OTHER",
            "grade": 1,
            "base": 1,
            "severity": 1,
            "factors": [],
            "reported": None,
        }
