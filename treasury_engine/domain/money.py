"""Exact minor-unit money arithmetic"""

from typing import Iterable, List

from treasury_engine.domain.exceptions import InvalidArgumentError


def _require_int(value, field: str) -> None:
    # bool is an int subclass and floats are never money
    if isinstance(value, bool) or not isinstance(value, int):
        raise InvalidArgumentError(f"{field} must be an integer amount of minor units", field=field)


def split_exact(total_cents: int, parts: int) -> List[int]:
    """
    Split a total into ``parts`` amounts that sum back to the total exactly.

    The remainder is front-loaded: the first ``total % parts`` entries carry
    one extra cent, so installment 1 is the largest when the split is uneven.

    Example:
        100000 cents / 3 → [33334, 33333, 33333]
    """
    _require_int(total_cents, "total_cents")
    _require_int(parts, "parts")
    if parts < 1:
        raise InvalidArgumentError("Number of parts must be >= 1", field="parts")
    if total_cents <= 0:
        raise InvalidArgumentError("Total amount must be > 0", field="total_cents")

    base = total_cents // parts
    remainder = total_cents - base * parts

    return [base + 1 if i < remainder else base for i in range(parts)]


def amounts_match(a_cents: int, b_cents: int, tolerance_cents: int = 1) -> bool:
    """True when two amounts differ by at most ``tolerance_cents``"""
    return abs(a_cents - b_cents) <= tolerance_cents


def sum_cents(amounts: Iterable[int]) -> int:
    total = 0
    for amount in amounts:
        _require_int(amount, "amount_cents")
        total += amount
    return total
