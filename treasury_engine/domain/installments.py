"""Installment generation for card purchases"""

from datetime import date
from typing import List, Optional

from treasury_engine.domain.exceptions import InvalidArgumentError
from treasury_engine.domain.models import CardInstallment
from treasury_engine.domain.money import split_exact
from treasury_engine.utils.date_utils import (
    YearMonth,
    clamp_to_month,
    resolve_statement_month,
    step_months,
)


def _validate_cycle_day(value: int, field: str) -> None:
    if not 1 <= value <= 31:
        raise InvalidArgumentError(f"{field} must be between 1 and 31", field=field)


def generate_card_installments(
    total_cents: int,
    installment_count: int,
    purchase_date: date,
    closing_day: int,
    due_day: int,
    first_month: Optional[YearMonth] = None,
) -> List[CardInstallment]:
    """
    Split a card purchase into monthly installments on the card's cycle.

    Requirements:
    - Amounts come from split_exact, so the first installments absorb the
      remainder cents and the total is preserved exactly
    - Installment k (0-based) lands in competence month
      resolve_statement_month(purchase_date, closing_day) + k
    - Due date is the card's due_day, clamped to the month length

    Args:
        total_cents: Purchase total in minor units
        installment_count: Number of monthly installments
        purchase_date: Date the purchase was made
        closing_day: Statement closing day of the card
        due_day: Statement due day of the card
        first_month: Explicit first competence month (overrides the cycle)

    Example:
        100000 cents in 3x, bought 2024-03-15, closing day 10
        → 2024-04: 33334, 2024-05: 33333, 2024-06: 33333
    """
    _validate_cycle_day(closing_day, "closing_day")
    _validate_cycle_day(due_day, "due_day")

    amounts = split_exact(total_cents, installment_count)
    initial_month = first_month or resolve_statement_month(purchase_date, closing_day)

    installments = []
    for index, amount in enumerate(amounts):
        competence_month = step_months(initial_month, index)
        installments.append(
            CardInstallment(
                installment_number=index + 1,
                competence_month=competence_month,
                due_date=clamp_to_month(competence_month, due_day),
                amount_cents=amount,
            )
        )

    return installments
