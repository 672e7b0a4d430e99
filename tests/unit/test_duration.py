"""
Unit Tests for duration math

✅ Exact year fractions
✅ Antisymmetry and clamping
✅ Zero-length terms rejected and logged
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from keble.domain.errors import DivisionByZero
from keble.domain.services.duration import add_months, duration_difference, proration_ratio


START = datetime(2025, 1, 1)
END = START + timedelta(days=365)


def test_duration_difference_one_year_is_exactly_one():
    assert duration_difference(START, END) == Decimal('1')


def test_duration_difference_half_year():
    mid = START + timedelta(days=182, hours=12)
    assert duration_difference(START, mid) == Decimal('0.5')


def test_duration_difference_is_antisymmetric():
    a = datetime(2025, 3, 14, 9, 26, 53, 589793)
    b = datetime(2026, 7, 1, 12, 0, 0)
    assert duration_difference(a, b) == -duration_difference(b, a)
    assert duration_difference(b, a) < 0


def test_duration_difference_same_instant_is_zero():
    assert duration_difference(START, START) == Decimal('0')


def test_proration_ratio_halfway():
    now = START + timedelta(days=182, hours=12)
    assert proration_ratio(START, now, START, END) == Decimal('0.5')


def test_proration_ratio_clamped_to_zero_before_checkpoint():
    before = START - timedelta(days=10)
    assert proration_ratio(START, before, START, END) == Decimal('0')


def test_proration_ratio_clamped_to_one_after_term():
    after = END + timedelta(days=400)
    assert proration_ratio(START, after, START, END) == Decimal('1')


def test_proration_ratio_from_later_checkpoint():
    # 12-month term, checkpoint at 3 months, now at 6 months
    term_end = datetime(2026, 1, 1)
    checkpoint = datetime(2025, 4, 1)
    now = datetime(2025, 7, 1)

    ratio = proration_ratio(checkpoint, now, START, term_end)

    expected = Decimal((now - checkpoint).days) / Decimal((term_end - START).days)
    assert ratio == expected


@pytest.mark.parametrize("term_end", [START, START - timedelta(seconds=1)])
def test_proration_ratio_rejects_empty_term(term_end, caplog):
    with caplog.at_level("ERROR", logger="keble.domain.services.duration"):
        with pytest.raises(DivisionByZero):
            proration_ratio(START, START, START, term_end)

    assert "non-positive term" in caplog.text


def test_add_months_simple():
    assert add_months(datetime(2025, 1, 15, 10, 30), 1) == datetime(2025, 2, 15, 10, 30)


def test_add_months_clamps_day_to_month_end():
    assert add_months(datetime(2025, 1, 31), 1) == datetime(2025, 2, 28)
    assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)


def test_add_months_crosses_year():
    assert add_months(datetime(2025, 11, 30), 3) == datetime(2026, 2, 28)
    assert add_months(datetime(2025, 6, 1), 12) == datetime(2026, 6, 1)
