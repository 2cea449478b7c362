"""Unit tests for card installment generation"""

import pytest
from datetime import date
from treasury_engine.domain.exceptions import InvalidArgumentError
from treasury_engine.domain.installments import generate_card_installments
from treasury_engine.utils.date_utils import YearMonth


def test_card_installments_split_and_cycle():
    """Bought after closing: first installment on next month's statement"""
    installments = generate_card_installments(
        100000, 3, purchase_date=date(2024, 3, 15), closing_day=10, due_day=20
    )

    assert [i.installment_number for i in installments] == [1, 2, 3]
    assert [i.amount_cents for i in installments] == [33334, 33333, 33333]
    assert [i.competence_month for i in installments] == [
        YearMonth(2024, 4),
        YearMonth(2024, 5),
        YearMonth(2024, 6),
    ]
    assert [i.due_date for i in installments] == [
        date(2024, 4, 20),
        date(2024, 5, 20),
        date(2024, 6, 20),
    ]


def test_card_installments_before_closing_stay_in_month():
    installments = generate_card_installments(
        5000, 1, purchase_date=date(2024, 3, 5), closing_day=10, due_day=17
    )
    assert installments[0].competence_month == YearMonth(2024, 3)
    assert installments[0].due_date == date(2024, 3, 17)


def test_card_installments_cross_year():
    installments = generate_card_installments(
        40000, 4, purchase_date=date(2024, 11, 28), closing_day=25, due_day=5
    )
    assert [str(i.competence_month) for i in installments] == [
        "2024-12",
        "2025-01",
        "2025-02",
        "2025-03",
    ]


def test_card_installments_due_day_clamped():
    """Due day 31 falls back to the last day of short months"""
    installments = generate_card_installments(
        30000, 3, purchase_date=date(2024, 1, 2), closing_day=5, due_day=31
    )
    assert [i.due_date for i in installments] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
    ]


def test_card_installments_explicit_first_month():
    installments = generate_card_installments(
        20000, 2, purchase_date=date(2024, 3, 15), closing_day=10, due_day=10,
        first_month=YearMonth(2024, 6),
    )
    assert [i.competence_month for i in installments] == [YearMonth(2024, 6), YearMonth(2024, 7)]


def test_card_installments_preserve_total():
    installments = generate_card_installments(
        99999, 7, purchase_date=date(2024, 1, 1), closing_day=1, due_day=10
    )
    assert sum(i.amount_cents for i in installments) == 99999


@pytest.mark.parametrize("closing_day,due_day", [(0, 10), (32, 10), (10, 0)])
def test_card_installments_reject_bad_cycle_days(closing_day, due_day):
    with pytest.raises(InvalidArgumentError):
        generate_card_installments(
            1000, 1, purchase_date=date(2024, 1, 1), closing_day=closing_day, due_day=due_day
        )


def test_card_installments_reject_zero_count():
    with pytest.raises(InvalidArgumentError):
        generate_card_installments(1000, 0, purchase_date=date(2024, 1, 1), closing_day=10, due_day=20)
