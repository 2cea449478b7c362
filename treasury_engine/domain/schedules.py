"""Schedule generation: turn a declared plan into dated, exact-cent instances"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import ClassVar, List, Optional, Tuple, Union

from treasury_engine.domain.exceptions import AmountMismatchError, InvalidArgumentError
from treasury_engine.domain.models import GeneratedSchedule, Recurrence, ScheduleEntry
from treasury_engine.domain.money import split_exact, sum_cents
from treasury_engine.utils.date_utils import (
    YearMonth,
    clamp_to_month,
    generate_monthly_sequence,
    step_months,
)

DEFAULT_RECURRENCE_MONTHS = 12


@dataclass
class SinglePlan:
    """One instance for the full amount on the start date"""

    kind: ClassVar[str] = "single"

    amount_cents: int
    start_date: date


@dataclass
class RecurringPlan:
    """Every period independently carries the stated recurring amount"""

    kind: ClassVar[str] = "recurring"

    amount_cents: int
    start_date: date
    end_date: Optional[date] = None
    recurrence: Recurrence = Recurrence.MONTHLY
    max_instances: Optional[int] = None


@dataclass
class SplitPlan:
    """A declared total divided across the recurrence dates"""

    kind: ClassVar[str] = "split"

    total_amount_cents: int
    start_date: date
    end_date: Optional[date] = None
    recurrence: Recurrence = Recurrence.NONE


@dataclass
class InstallmentPlan:
    """Entry on the base date, remainder split every ``interval_days``"""

    kind: ClassVar[str] = "installment"

    total_amount_cents: int
    entry_amount_cents: int
    installment_count: int
    interval_days: int
    base_date: date


@dataclass
class CustomPlan:
    """Caller-supplied (date, amount) pairs that must sum to the total"""

    kind: ClassVar[str] = "custom"

    total_amount_cents: int
    entries: List[Tuple[date, int]] = field(default_factory=list)


SchedulePlan = Union[SinglePlan, RecurringPlan, SplitPlan, InstallmentPlan, CustomPlan]


def _require_positive(value: int, field_name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidArgumentError(f"{field_name} must be a positive integer", field=field_name)


def recurrence_dates(
    start_date: date,
    end_date: Optional[date],
    recurrence: Recurrence,
    max_instances: int = DEFAULT_RECURRENCE_MONTHS,
) -> List[date]:
    """
    Due dates for a recurrence, one per period.

    Periods are month-granular: every month (quarter, year) of
    ``generate_monthly_sequence(start, end)`` yields one date on the start
    date's day, clamped to the month length and never past the end date.
    Without an end date the sequence is capped at ``max_instances`` periods.
    """
    if recurrence in (Recurrence.NONE, Recurrence.CUSTOM):
        return [start_date]

    step = recurrence.step
    if end_date is None:
        _require_positive(max_instances, "max_instances")
        last = step_months(YearMonth.from_date(start_date), (max_instances - 1) * step)
        end_date = clamp_to_month(last, start_date.day)
    elif end_date < start_date:
        raise InvalidArgumentError("end_date must be on or after start_date", field="end_date")

    months = generate_monthly_sequence(start_date, end_date)[::step]
    return [min(clamp_to_month(month, start_date.day), end_date) for month in months]


def _generate_single(plan: SinglePlan) -> GeneratedSchedule:
    _require_positive(plan.amount_cents, "amount_cents")
    return GeneratedSchedule(
        total_amount_cents=plan.amount_cents,
        entries=[ScheduleEntry(due_date=plan.start_date, amount_cents=plan.amount_cents)],
        start_date=plan.start_date,
        end_date=None,
        recurrence=Recurrence.NONE,
    )


def _generate_recurring(plan: RecurringPlan, default_months: int) -> GeneratedSchedule:
    _require_positive(plan.amount_cents, "amount_cents")
    if plan.recurrence.step == 0:
        raise InvalidArgumentError(
            f"Recurring plans need a periodic recurrence, got {plan.recurrence.value!r}",
            field="recurrence",
        )

    dates = recurrence_dates(
        plan.start_date,
        plan.end_date,
        plan.recurrence,
        plan.max_instances or default_months,
    )
    entries = [ScheduleEntry(due_date=d, amount_cents=plan.amount_cents) for d in dates]

    return GeneratedSchedule(
        total_amount_cents=plan.amount_cents * len(entries),
        entries=entries,
        start_date=plan.start_date,
        end_date=plan.end_date or dates[-1],
        recurrence=plan.recurrence,
    )


def _generate_split(plan: SplitPlan, default_months: int) -> GeneratedSchedule:
    _require_positive(plan.total_amount_cents, "total_amount_cents")
    dates = recurrence_dates(plan.start_date, plan.end_date, plan.recurrence, default_months)
    amounts = split_exact(plan.total_amount_cents, len(dates))

    return GeneratedSchedule(
        total_amount_cents=plan.total_amount_cents,
        entries=[ScheduleEntry(due_date=d, amount_cents=a) for d, a in zip(dates, amounts)],
        start_date=plan.start_date,
        end_date=plan.end_date,
        recurrence=plan.recurrence,
    )


def _generate_installments(plan: InstallmentPlan) -> GeneratedSchedule:
    _require_positive(plan.total_amount_cents, "total_amount_cents")
    _require_positive(plan.entry_amount_cents, "entry_amount_cents")
    _require_positive(plan.installment_count, "installment_count")
    _require_positive(plan.interval_days, "interval_days")

    if plan.entry_amount_cents > plan.total_amount_cents:
        raise InvalidArgumentError(
            "Entry amount cannot exceed the total amount", field="entry_amount_cents"
        )
    remaining = plan.total_amount_cents - plan.entry_amount_cents
    if remaining == 0:
        raise InvalidArgumentError(
            "Entry amount leaves nothing to distribute across installments",
            field="entry_amount_cents",
        )

    entries = [ScheduleEntry(due_date=plan.base_date, amount_cents=plan.entry_amount_cents)]
    for k, amount in enumerate(split_exact(remaining, plan.installment_count), start=1):
        due_date = plan.base_date + timedelta(days=k * plan.interval_days)
        entries.append(ScheduleEntry(due_date=due_date, amount_cents=amount))

    return GeneratedSchedule(
        total_amount_cents=plan.total_amount_cents,
        entries=entries,
        start_date=plan.base_date,
        end_date=entries[-1].due_date,
        recurrence=Recurrence.CUSTOM,
    )


def _generate_custom(plan: CustomPlan) -> GeneratedSchedule:
    _require_positive(plan.total_amount_cents, "total_amount_cents")
    if not plan.entries:
        raise InvalidArgumentError("Custom plans need at least one (date, amount) pair", field="entries")

    for _, amount in plan.entries:
        _require_positive(amount, "entries.amount_cents")

    total = sum_cents(amount for _, amount in plan.entries)
    if total != plan.total_amount_cents:
        raise AmountMismatchError(
            f"Custom amounts sum to {total}, declared total is {plan.total_amount_cents}",
            field="entries",
        )

    entries = sorted(
        (ScheduleEntry(due_date=d, amount_cents=a) for d, a in plan.entries),
        key=lambda e: e.due_date,
    )
    return GeneratedSchedule(
        total_amount_cents=total,
        entries=entries,
        start_date=entries[0].due_date,
        end_date=entries[-1].due_date,
        recurrence=Recurrence.CUSTOM,
    )


def generate_schedule(
    plan: SchedulePlan,
    default_recurrence_months: int = DEFAULT_RECURRENCE_MONTHS,
) -> GeneratedSchedule:
    """
    Main entry point: expand a plan into its schedule entries.

    Pure; the caller persists the parent and every entry in a single
    transaction.

    Raises:
        InvalidArgumentError: non-positive amounts, bad counts or date ranges
        AmountMismatchError: custom amounts do not sum to the declared total
    """
    if isinstance(plan, SinglePlan):
        return _generate_single(plan)
    if isinstance(plan, RecurringPlan):
        return _generate_recurring(plan, default_recurrence_months)
    if isinstance(plan, SplitPlan):
        return _generate_split(plan, default_recurrence_months)
    if isinstance(plan, InstallmentPlan):
        return _generate_installments(plan)
    if isinstance(plan, CustomPlan):
        return _generate_custom(plan)
    raise InvalidArgumentError(f"Unsupported plan type: {type(plan).__name__}", field="plan")
