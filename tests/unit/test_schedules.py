"""Unit tests for schedule generation"""

import pytest
from datetime import date, timedelta
from treasury_engine.domain.exceptions import AmountMismatchError, InvalidArgumentError
from treasury_engine.domain.models import Recurrence
from treasury_engine.domain.schedules import (
    CustomPlan,
    InstallmentPlan,
    RecurringPlan,
    SinglePlan,
    SplitPlan,
    generate_schedule,
    recurrence_dates,
)


def test_single_plan():
    schedule = generate_schedule(SinglePlan(amount_cents=50000, start_date=date(2024, 5, 3)))

    assert schedule.total_amount_cents == 50000
    assert [(e.due_date, e.amount_cents) for e in schedule.entries] == [(date(2024, 5, 3), 50000)]
    assert schedule.recurrence is Recurrence.NONE


def test_recurring_monthly_each_period_carries_amount():
    """Recurring amounts are repeated, not split"""
    schedule = generate_schedule(
        RecurringPlan(amount_cents=15000, start_date=date(2024, 1, 5), end_date=date(2024, 6, 5))
    )

    assert [e.due_date for e in schedule.entries] == [date(2024, m, 5) for m in range(1, 7)]
    assert all(e.amount_cents == 15000 for e in schedule.entries)
    assert schedule.total_amount_cents == 15000 * 6


def test_recurring_monthly_open_ended_capped_at_twelve():
    schedule = generate_schedule(RecurringPlan(amount_cents=1000, start_date=date(2024, 3, 1)))

    assert len(schedule.entries) == 12
    assert schedule.entries[0].due_date == date(2024, 3, 1)
    assert schedule.entries[-1].due_date == date(2025, 2, 1)
    assert schedule.end_date == date(2025, 2, 1)


def test_recurring_cap_is_configurable():
    plan = RecurringPlan(amount_cents=1000, start_date=date(2024, 3, 1))
    assert len(generate_schedule(plan, default_recurrence_months=6).entries) == 6

    plan = RecurringPlan(amount_cents=1000, start_date=date(2024, 3, 1), max_instances=3)
    assert len(generate_schedule(plan).entries) == 3


def test_recurring_month_end_anchor_does_not_drift():
    """31 Jan → 29 Feb → 31 Mar → 30 Apr"""
    schedule = generate_schedule(
        RecurringPlan(amount_cents=1000, start_date=date(2024, 1, 31), end_date=date(2024, 4, 30))
    )
    assert [e.due_date for e in schedule.entries] == [
        date(2024, 1, 31),
        date(2024, 2, 29),
        date(2024, 3, 31),
        date(2024, 4, 30),
    ]


def test_last_instance_never_falls_after_end_date():
    """Anchor day 31 with an end on the 15th: March lands on the end date"""
    dates = recurrence_dates(date(2024, 1, 31), date(2024, 3, 15), Recurrence.MONTHLY)

    assert dates == [date(2024, 1, 31), date(2024, 2, 29), date(2024, 3, 15)]


def test_recurring_quarterly_and_yearly():
    quarterly = recurrence_dates(date(2024, 1, 15), date(2024, 12, 31), Recurrence.QUARTERLY)
    assert quarterly == [date(2024, 1, 15), date(2024, 4, 15), date(2024, 7, 15), date(2024, 10, 15)]

    yearly = recurrence_dates(date(2024, 2, 29), None, Recurrence.YEARLY, max_instances=3)
    assert yearly == [date(2024, 2, 29), date(2025, 2, 28), date(2026, 2, 28)]


def test_recurring_rejects_non_periodic_recurrence():
    with pytest.raises(InvalidArgumentError) as exc_info:
        generate_schedule(
            RecurringPlan(amount_cents=1000, start_date=date(2024, 1, 1), recurrence=Recurrence.NONE)
        )
    assert exc_info.value.field == "recurrence"


def test_recurring_rejects_end_before_start():
    with pytest.raises(InvalidArgumentError) as exc_info:
        generate_schedule(
            RecurringPlan(amount_cents=1000, start_date=date(2024, 5, 1), end_date=date(2024, 4, 1))
        )
    assert exc_info.value.field == "end_date"


def test_split_plan_divides_total_exactly():
    schedule = generate_schedule(
        SplitPlan(
            total_amount_cents=100000,
            start_date=date(2024, 1, 10),
            end_date=date(2024, 3, 10),
            recurrence=Recurrence.MONTHLY,
        )
    )

    assert [e.amount_cents for e in schedule.entries] == [33334, 33333, 33333]
    assert sum(e.amount_cents for e in schedule.entries) == schedule.total_amount_cents == 100000


def test_split_plan_without_recurrence_is_single_entry():
    schedule = generate_schedule(SplitPlan(total_amount_cents=5000, start_date=date(2024, 1, 10)))
    assert [(e.due_date, e.amount_cents) for e in schedule.entries] == [(date(2024, 1, 10), 5000)]


def test_installment_with_entry():
    base = date(2024, 1, 1)
    schedule = generate_schedule(
        InstallmentPlan(
            total_amount_cents=100000,
            entry_amount_cents=10000,
            installment_count=3,
            interval_days=30,
            base_date=base,
        )
    )

    assert [(e.due_date, e.amount_cents) for e in schedule.entries] == [
        (base, 10000),
        (base + timedelta(days=30), 30000),
        (base + timedelta(days=60), 30000),
        (base + timedelta(days=90), 30000),
    ]
    assert sum(e.amount_cents for e in schedule.entries) == 100000


def test_installment_remainder_front_loaded():
    schedule = generate_schedule(
        InstallmentPlan(
            total_amount_cents=100001,
            entry_amount_cents=1,
            installment_count=3,
            interval_days=15,
            base_date=date(2024, 1, 1),
        )
    )
    assert [e.amount_cents for e in schedule.entries] == [1, 33334, 33333, 33333]


def test_installment_entry_exceeding_total_rejected():
    with pytest.raises(InvalidArgumentError) as exc_info:
        generate_schedule(
            InstallmentPlan(
                total_amount_cents=1000,
                entry_amount_cents=1001,
                installment_count=2,
                interval_days=30,
                base_date=date(2024, 1, 1),
            )
        )
    assert exc_info.value.field == "entry_amount_cents"


def test_custom_plan_sorted_and_validated():
    schedule = generate_schedule(
        CustomPlan(
            total_amount_cents=30000,
            entries=[(date(2024, 3, 1), 10000), (date(2024, 1, 15), 20000)],
        )
    )

    assert [e.due_date for e in schedule.entries] == [date(2024, 1, 15), date(2024, 3, 1)]
    assert schedule.start_date == date(2024, 1, 15)
    assert schedule.end_date == date(2024, 3, 1)


def test_custom_plan_sum_mismatch():
    """Zero tolerance: a single cent off is rejected"""
    with pytest.raises(AmountMismatchError):
        generate_schedule(
            CustomPlan(
                total_amount_cents=30000,
                entries=[(date(2024, 1, 15), 20000), (date(2024, 3, 1), 9999)],
            )
        )


def test_custom_plan_requires_entries():
    with pytest.raises(InvalidArgumentError):
        generate_schedule(CustomPlan(total_amount_cents=100, entries=[]))


def test_non_positive_amount_rejected():
    with pytest.raises(InvalidArgumentError) as exc_info:
        generate_schedule(SinglePlan(amount_cents=0, start_date=date(2024, 1, 1)))
    assert exc_info.value.field == "amount_cents"
