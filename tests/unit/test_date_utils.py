"""Unit tests for calendar primitives"""

import pytest
from datetime import date
from treasury_engine.domain.exceptions import InvalidArgumentError
from treasury_engine.utils.date_utils import (
    YearMonth,
    clamp_to_month,
    generate_monthly_sequence,
    month_range,
    resolve_statement_month,
    step_months,
)


def test_resolve_statement_month_after_closing_day():
    """Purchase after the closing day lands on next month's statement"""
    assert resolve_statement_month(date(2024, 3, 15), 10) == YearMonth(2024, 4)


def test_resolve_statement_month_before_closing_day():
    assert resolve_statement_month(date(2024, 3, 5), 10) == YearMonth(2024, 3)


def test_resolve_statement_month_boundary():
    """Closing day itself stays in the month; the day after rolls over"""
    assert resolve_statement_month(date(2024, 6, 10), 10) == YearMonth(2024, 6)
    assert resolve_statement_month(date(2024, 6, 11), 10) == YearMonth(2024, 7)


def test_resolve_statement_month_december_rollover():
    assert resolve_statement_month(date(2024, 12, 11), 10) == YearMonth(2025, 1)


def test_step_months_negative_from_january():
    assert step_months(YearMonth(2024, 1), -1) == YearMonth(2023, 12)


def test_step_months_across_years():
    assert step_months(YearMonth(2024, 11), 14) == YearMonth(2026, 1)
    assert step_months(YearMonth(2024, 3), -27) == YearMonth(2021, 12)


@pytest.mark.parametrize("k", [-37, -12, -1, 0, 1, 11, 12, 25, 120])
def test_step_months_is_cyclic(k):
    """Stepping forward then back returns the original month"""
    for month in range(1, 13):
        start = YearMonth(2024, month)
        assert step_months(step_months(start, k), -k) == start


def test_generate_monthly_sequence_inclusive():
    months = generate_monthly_sequence(date(2024, 11, 20), date(2025, 2, 3))
    assert months == [
        YearMonth(2024, 11),
        YearMonth(2024, 12),
        YearMonth(2025, 1),
        YearMonth(2025, 2),
    ]


def test_generate_monthly_sequence_empty_when_end_before_start():
    assert generate_monthly_sequence(date(2024, 5, 1), date(2024, 4, 30)) == []


def test_generate_monthly_sequence_same_month():
    assert generate_monthly_sequence(date(2024, 5, 1), date(2024, 5, 31)) == [YearMonth(2024, 5)]


def test_month_range_matches_sequence():
    assert month_range(YearMonth(2024, 1), YearMonth(2024, 3)) == generate_monthly_sequence(
        date(2024, 1, 1), date(2024, 3, 1)
    )


def test_clamp_to_month_short_months():
    assert clamp_to_month(YearMonth(2024, 2), 31) == date(2024, 2, 29)
    assert clamp_to_month(YearMonth(2023, 2), 31) == date(2023, 2, 28)
    assert clamp_to_month(YearMonth(2024, 4), 31) == date(2024, 4, 30)


def test_year_month_parse_and_format():
    assert YearMonth.parse("2024-03") == YearMonth(2024, 3)
    assert YearMonth.parse("2024-03-01") == YearMonth(2024, 3)
    assert str(YearMonth(2024, 3)) == "2024-03"


def test_year_month_parse_rejects_garbage():
    with pytest.raises(InvalidArgumentError) as exc_info:
        YearMonth.parse("03/2024", field="from_month")
    assert exc_info.value.field == "from_month"


def test_year_month_rejects_month_13():
    with pytest.raises(InvalidArgumentError):
        YearMonth.parse("2024-13")


def test_year_month_bounds():
    ym = YearMonth(2024, 2)
    assert ym.first_day() == date(2024, 2, 1)
    assert ym.last_day() == date(2024, 2, 29)
    assert ym.contains(date(2024, 2, 15))
    assert not ym.contains(date(2024, 3, 1))
