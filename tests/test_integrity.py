"""Unit tests for billing tier integrity checks."""

import logging
from decimal import Decimal
from uuid import uuid4

from hypothesis import given, settings, strategies as st

from project_billing.calculators.integrity import (
    report_integrity_violation,
    validate_adjustment_integrity,
)
from project_billing.calculators.types import IntegrityResult

hours = st.decimals(
    min_value=Decimal("0"),
    max_value=Decimal("500"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
deltas = st.decimals(
    min_value=Decimal("-100"),
    max_value=Decimal("100"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)


class TestValidateAdjustmentIntegrity:
    """Test the base and final derivation checks."""

    def test_consistent_chain_is_valid(self):
        """40 worked, -5 manager, 35 base, +3 management, 38 final."""
        result = validate_adjustment_integrity(
            Decimal("40"), Decimal("-5"), Decimal("35"), Decimal("3"), Decimal("38")
        )

        assert result.valid
        assert result.errors == ()

    def test_base_mismatch_is_reported(self):
        """Base that does not equal worked + manager adjustment is flagged."""
        result = validate_adjustment_integrity(
            Decimal("40"), Decimal("-5"), Decimal("30"), Decimal("0"), Decimal("30")
        )

        assert not result.valid
        assert len(result.errors) == 1
        assert "Base billable hours (30)" in result.errors[0]
        assert "Expected: 35" in result.errors[0]

    def test_final_mismatch_is_reported(self):
        """Final that does not equal base + management adjustment is flagged."""
        result = validate_adjustment_integrity(
            Decimal("40"), Decimal("0"), Decimal("40"), Decimal("2"), Decimal("40")
        )

        assert not result.valid
        assert len(result.errors) == 1
        assert result.errors[0].startswith("Final billable hours (40)")

    def test_both_mismatches_are_reported(self):
        result = validate_adjustment_integrity(
            Decimal("10"), Decimal("0"), Decimal("12"), Decimal("1"), Decimal("20")
        )

        assert len(result.errors) == 2

    def test_difference_within_tolerance_passes(self):
        """A 0.01 hour drift is within tolerance."""
        result = validate_adjustment_integrity(
            Decimal("40"), Decimal("0"), Decimal("40.01"), Decimal("0"), Decimal("40.01")
        )

        assert result.valid

    def test_difference_beyond_tolerance_fails(self):
        """A 0.02 hour drift exceeds the default tolerance."""
        result = validate_adjustment_integrity(
            Decimal("40"), Decimal("0"), Decimal("40.02"), Decimal("0"), Decimal("40.02")
        )

        assert not result.valid

    def test_custom_tolerance(self):
        result = validate_adjustment_integrity(
            Decimal("40"),
            Decimal("0"),
            Decimal("40.5"),
            Decimal("0"),
            Decimal("40.5"),
            tolerance=Decimal("1"),
        )

        assert result.valid

    @given(worked=hours, manager=deltas, management=deltas)
    @settings(max_examples=200)
    def test_derived_chain_always_valid(self, worked, manager, management):
        """Values built from the chain itself never fail validation."""
        base = worked + manager
        final = base + management

        result = validate_adjustment_integrity(worked, manager, base, management, final)

        assert result.valid


class TestReportIntegrityViolation:
    """Test logging of failed checks."""

    def test_violation_logged_at_error(self, caplog):
        result = IntegrityResult(valid=False, errors=("first problem", "second problem"))
        user_id = uuid4()

        with caplog.at_level(logging.ERROR, logger="project_billing"):
            report_integrity_violation(
                result,
                user_id=user_id,
                user_name="Alice Example",
                project_id=uuid4(),
                project_name="Website Redesign",
            )

        assert len(caplog.records) == 1
        record = caplog.records[0]
        assert record.levelno == logging.ERROR
        assert "Alice Example" in record.getMessage()
        assert str(user_id) in record.getMessage()
        assert "first problem; second problem" in record.getMessage()

    def test_valid_result_logs_nothing(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="project_billing"):
            report_integrity_violation(
                IntegrityResult(valid=True),
                user_id=uuid4(),
                user_name="Alice Example",
                project_id=uuid4(),
                project_name="Website Redesign",
            )

        assert caplog.records == []
