"""
Tests for the pure journal line rules (``ledger_kernel.domain.entry_rules``).

Covers the one-sided line rule, minimum line count, exact balance, and the
debit/credit swap used by reversals.  Property tests generate balanced and
unbalanced line sets with Hypothesis.
"""

from decimal import Decimal

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from ledger_kernel.domain.entry_rules import (
    LineSpec,
    is_balanced,
    swap_sides,
    totals,
    validate_line,
    validate_lines,
)
from ledger_kernel.exceptions import InvalidLineError, ValidationError

amounts = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("999999999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)
codes = st.sampled_from(["1010", "1020", "2100", "3000", "4000", "5000"])


@st.composite
def balanced_lines(draw):
    """Pairs of equal debit/credit lines, shuffled."""
    pairs = draw(st.lists(st.tuples(amounts, codes, codes), min_size=1, max_size=10))
    lines = []
    for amount, debit_code, credit_code in pairs:
        lines.append(LineSpec.debit_line(debit_code, amount))
        lines.append(LineSpec.credit_line(credit_code, amount))
    return draw(st.permutations(lines))


class TestValidateLine:

    def test_debit_only_line_is_valid(self):
        validate_line(1, LineSpec.debit_line("1010", Decimal("10")))

    def test_both_sides_rejected(self):
        with pytest.raises(InvalidLineError, match="both"):
            validate_line(1, LineSpec(debit=Decimal("1"), credit=Decimal("1"), account_code="1010"))

    def test_neither_side_rejected(self):
        with pytest.raises(InvalidLineError, match="either"):
            validate_line(2, LineSpec(account_code="1010"))

    def test_negative_amount_rejected(self):
        with pytest.raises(InvalidLineError, match="non-negative"):
            validate_line(1, LineSpec(debit=Decimal("-5"), account_code="1010"))

    def test_missing_account_rejected(self):
        with pytest.raises(InvalidLineError, match="account"):
            validate_line(1, LineSpec(debit=Decimal("5")))

    def test_invalid_line_is_a_validation_error(self):
        with pytest.raises(ValidationError):
            validate_line(3, LineSpec(account_code="1010"))


class TestValidateLines:

    def test_single_line_rejected(self):
        with pytest.raises(ValidationError, match="at least 2"):
            validate_lines([LineSpec.debit_line("1010", Decimal("1"))])

    def test_unbalanced_lines_pass_shape_validation(self):
        validate_lines([
            LineSpec.debit_line("1010", Decimal("100")),
            LineSpec.credit_line("4000", Decimal("99")),
        ])

    def test_reports_offending_line_number(self):
        lines = [
            LineSpec.debit_line("1010", Decimal("100")),
            LineSpec(account_code="4000"),
        ]
        with pytest.raises(InvalidLineError) as exc_info:
            validate_lines(lines)
        assert exc_info.value.line_number == 2


class TestBalance:

    def test_exact_equality_required(self):
        lines = [
            LineSpec.debit_line("1010", Decimal("100.00")),
            LineSpec.credit_line("4000", Decimal("99.999999999")),
        ]
        assert not is_balanced(lines)

    def test_trailing_zeros_do_not_matter(self):
        lines = [
            LineSpec.debit_line("1010", Decimal("100")),
            LineSpec.credit_line("4000", Decimal("100.000")),
        ]
        assert is_balanced(lines)

    def test_totals(self):
        lines = [
            LineSpec.debit_line("1010", Decimal("60")),
            LineSpec.debit_line("1020", Decimal("40")),
            LineSpec.credit_line("4000", Decimal("100")),
        ]
        assert totals(lines) == (Decimal("100"), Decimal("100"))


class TestProperties:

    @given(balanced_lines())
    @settings(max_examples=200)
    def test_generated_pairs_balance(self, lines):
        validate_lines(lines)
        assert is_balanced(lines)

    @given(balanced_lines())
    def test_swap_preserves_balance_and_flips_totals(self, lines):
        debits, credits = totals(lines)
        swapped = swap_sides(lines)
        assert totals(swapped) == (credits, debits)
        assert is_balanced(swapped)

    @given(balanced_lines())
    def test_double_swap_is_identity(self, lines):
        assert swap_sides(swap_sides(lines)) == tuple(lines)

    @given(balanced_lines(), amounts)
    def test_any_extra_amount_unbalances(self, lines, extra):
        skewed = list(lines) + [LineSpec.debit_line("1010", extra)]
        assert not is_balanced(skewed)

    @given(st.lists(amounts, min_size=1, max_size=5), st.lists(amounts, min_size=1, max_size=5))
    def test_balanced_iff_sums_equal(self, debit_amounts, credit_amounts):
        lines = [LineSpec.debit_line("1010", a) for a in debit_amounts] + [
            LineSpec.credit_line("4000", a) for a in credit_amounts
        ]
        assert is_balanced(lines) == (sum(debit_amounts) == sum(credit_amounts))
