"""Cash-flow aggregation - planned vs realised matrix with running balances"""

from datetime import date, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from treasury_engine.domain.exceptions import InvalidArgumentError
from treasury_engine.domain.models import (
    Account,
    AlertSeverity,
    CashAlert,
    CashflowDrilldown,
    CashflowMatrix,
    CashflowMetadata,
    CashflowPeriodEntry,
    CashflowPeriodSummary,
    CashflowSummary,
    DrilldownItem,
    Flow,
    LedgerMovement,
    ScheduleInstance,
    ScheduleOrigin,
    ScheduleParent,
    ScheduleStatus,
)
from treasury_engine.utils.date_utils import YearMonth, month_range, step_months

PLANNED = "planned"
REALISED = "realised"

ELIGIBLE_ACCOUNT_KINDS = frozenset({"checking", "investment"})

CASH_NEGATIVE = "cash_negative"
WORST_POINT_SOON = "worst_point_soon"
CRITICAL_BALANCE_CENTS = -500000
WORST_POINT_HORIZON_DAYS = 30

Parents = Mapping[ScheduleOrigin, ScheduleParent]


def classify(instance: ScheduleInstance) -> Optional[str]:
    """
    planned: still open and unlinked
    realised: settled, or linked to a ledger movement
    None: cancelled, never counted
    """
    if instance.status is ScheduleStatus.CANCELLED:
        return None
    if instance.status.is_settled or instance.linked_movement_id:
        return REALISED
    return PLANNED


def _eligible(
    instances: Iterable[ScheduleInstance],
    parents: Parents,
    entity_id: Optional[str],
    account_id: Optional[str],
) -> Tuple[List[Tuple[ScheduleInstance, ScheduleParent]], int]:
    """Join instances to their parents, applying filters; orphans are counted and skipped"""
    rows = []
    orphans = 0
    for instance in instances:
        parent = parents.get(instance.origin)
        if parent is None:
            orphans += 1
            continue
        if entity_id is not None and parent.entity_id != entity_id:
            continue
        if account_id is not None and parent.account_id != account_id:
            continue
        rows.append((instance, parent))
    return rows, orphans


def _accumulate(entry, kind: str, flow: Flow, amount_cents: int) -> None:
    side = "income" if flow is Flow.INCOME else "expense"
    attr = f"{kind}_{side}"
    setattr(entry, attr, getattr(entry, attr) + abs(amount_cents))


def _finalise_nets(entry) -> None:
    entry.planned_net = entry.planned_income - entry.planned_expense
    entry.realised_net = entry.realised_income - entry.realised_expense


def compute_opening_balance(
    accounts: Iterable[Account],
    movements: Iterable[LedgerMovement],
    as_of: date,
) -> int:
    """
    Consolidated balance of checking/investment accounts at the end of ``as_of``.

    Declared opening balance of each account plus every signed movement on
    that account dated on or before ``as_of``.
    """
    eligible = {a.id: a for a in accounts if a.kind in ELIGIBLE_ACCOUNT_KINDS}
    balance = sum(a.opening_balance_cents for a in eligible.values())
    for movement in movements:
        if movement.account_id in eligible and movement.date <= as_of:
            balance += movement.amount_cents
    return balance


def opening_date_for(from_month: YearMonth) -> date:
    """Day immediately preceding the first day of the window"""
    return from_month.first_day() - timedelta(days=1)


def build_monthly_matrix(
    from_month: YearMonth,
    to_month: YearMonth,
    instances: Iterable[ScheduleInstance],
    parents: Parents,
    opening_balance: int = 0,
    entity_id: Optional[str] = None,
    account_id: Optional[str] = None,
) -> CashflowMatrix:
    """
    Fold schedule instances into one row per month of ``[from_month, to_month]``.

    Cumulative series start from zero before the first month; the *_adj
    series add the opening balance. The worst point is the minimum of
    realised_cum_adj, earliest month on ties.
    """
    if to_month < from_month:
        raise InvalidArgumentError("to_month must not precede from_month", field="to_month")

    months = month_range(from_month, to_month)
    buckets: Dict[YearMonth, CashflowPeriodEntry] = {m: CashflowPeriodEntry(month=m) for m in months}

    rows, skipped = _eligible(instances, parents, entity_id, account_id)
    for instance, parent in rows:
        bucket = buckets.get(YearMonth.from_date(instance.due_date))
        kind = classify(instance)
        if bucket is None or kind is None:
            continue
        _accumulate(bucket, kind, parent.flow, instance.amount_cents)

    planned_cum = 0
    realised_cum = 0
    worst: Optional[CashflowPeriodEntry] = None
    for month in months:
        entry = buckets[month]
        _finalise_nets(entry)
        planned_cum += entry.planned_net
        realised_cum += entry.realised_net
        entry.planned_cum = planned_cum
        entry.realised_cum = realised_cum
        entry.planned_cum_adj = opening_balance + planned_cum
        entry.realised_cum_adj = opening_balance + realised_cum
        if worst is None or entry.realised_cum_adj < worst.realised_cum_adj:
            worst = entry

    metadata = CashflowMetadata(
        opening_balance=opening_balance,
        opening_date=opening_date_for(from_month),
        min_cum_balance=worst.realised_cum if worst else None,
        min_cum_month=worst.month if worst else None,
        min_cum_balance_adj=worst.realised_cum_adj if worst else None,
        skipped_records=skipped,
    )
    return CashflowMatrix(months=[buckets[m] for m in months], metadata=metadata)


def build_cashflow_summary(
    instances: Iterable[ScheduleInstance],
    parents: Parents,
    from_date: date,
    to_date: date,
    granularity: str = "month",
) -> CashflowSummary:
    """Period-keyed (day or month) planned/realised totals; empty periods are omitted"""
    if granularity not in ("day", "month"):
        raise InvalidArgumentError("granularity must be 'day' or 'month'", field="granularity")
    if to_date < from_date:
        raise InvalidArgumentError("to_date must not precede from_date", field="to_date")

    periods: Dict[str, CashflowPeriodSummary] = {}
    rows, _ = _eligible(instances, parents, None, None)
    for instance, parent in rows:
        if not from_date <= instance.due_date <= to_date:
            continue
        kind = classify(instance)
        if kind is None:
            continue
        key = (
            str(YearMonth.from_date(instance.due_date))
            if granularity == "month"
            else instance.due_date.isoformat()
        )
        entry = periods.setdefault(key, CashflowPeriodSummary(period=key))
        _accumulate(entry, kind, parent.flow, instance.amount_cents)

    summary = CashflowSummary()
    for key in sorted(periods):
        entry = periods[key]
        _finalise_nets(entry)
        summary.entries.append(entry)
        summary.total_planned_income += entry.planned_income
        summary.total_planned_expense += entry.planned_expense
        summary.total_realised_income += entry.realised_income
        summary.total_realised_expense += entry.realised_expense

    summary.total_planned_net = summary.total_planned_income - summary.total_planned_expense
    summary.total_realised_net = summary.total_realised_income - summary.total_realised_expense
    return summary


def build_drilldown(
    month: YearMonth,
    kind: str,
    instances: Iterable[ScheduleInstance],
    parents: Parents,
    flow: Optional[Flow] = None,
    entity_id: Optional[str] = None,
) -> CashflowDrilldown:
    """Instances behind one (month, planned|realised) cell, ordered by due date"""
    if kind not in (PLANNED, REALISED):
        raise InvalidArgumentError("kind must be 'planned' or 'realised'", field="kind")

    items = []
    rows, _ = _eligible(instances, parents, entity_id, None)
    for instance, parent in rows:
        if not month.contains(instance.due_date) or classify(instance) != kind:
            continue
        if flow is not None and parent.flow is not flow:
            continue
        items.append(
            DrilldownItem(
                instance_id=instance.id,
                origin=instance.origin,
                entity_id=parent.entity_id,
                description=parent.description,
                due_date=instance.due_date,
                amount_cents=instance.amount_cents,
                flow=parent.flow,
            )
        )

    items.sort(key=lambda item: (item.due_date, item.instance_id))
    return CashflowDrilldown(items=items, total_cents=sum(item.amount_cents for item in items))


def alert_window(today: date, horizon_months: int = 6) -> Tuple[YearMonth, YearMonth]:
    """Current month through ``horizon_months`` ahead"""
    first = YearMonth.from_date(today)
    return first, step_months(first, horizon_months)


def evaluate_cash_alerts(
    matrix: CashflowMatrix,
    today: date,
    entity_id: Optional[str] = None,
    account_id: Optional[str] = None,
    critical_balance_cents: int = CRITICAL_BALANCE_CENTS,
    horizon_days: int = WORST_POINT_HORIZON_DAYS,
) -> List[CashAlert]:
    """
    Propose alerts from the matrix worst point.

    cash_negative: the lowest adjusted balance drops below zero; critical
    at or below ``critical_balance_cents``, warning otherwise.
    worst_point_soon: the worst month starts within ``horizon_days`` of
    ``today``.

    Fingerprints are ``type:entity:account:month`` with ``all`` standing in
    for an unset filter, so re-evaluating the same window proposes the same
    alerts.
    """
    meta = matrix.metadata
    scope = f"{entity_id or 'all'}:{account_id or 'all'}"
    alerts = []

    if meta.min_cum_balance_adj is not None and meta.min_cum_balance_adj < 0:
        month = str(meta.min_cum_month) if meta.min_cum_month else "unknown"
        severity = (
            AlertSeverity.CRITICAL
            if meta.min_cum_balance_adj <= critical_balance_cents
            else AlertSeverity.WARNING
        )
        alerts.append(
            CashAlert(
                type=CASH_NEGATIVE,
                severity=severity,
                message=f"Projected cash turns negative in {month}, lowest balance {meta.min_cum_balance_adj} cents",
                fingerprint=f"{CASH_NEGATIVE}:{scope}:{month}",
                entity_id=entity_id,
                account_id=account_id,
                context={"min_balance": meta.min_cum_balance_adj, "min_month": month},
            )
        )

    if meta.min_cum_month is not None:
        days_until = (meta.min_cum_month.first_day() - today).days
        if 0 <= days_until <= horizon_days:
            balance = meta.min_cum_balance_adj if meta.min_cum_balance_adj is not None else 0
            alerts.append(
                CashAlert(
                    type=WORST_POINT_SOON,
                    severity=AlertSeverity.WARNING,
                    message=f"Worst cash point falls in {meta.min_cum_month} ({days_until} days), balance {balance} cents",
                    fingerprint=f"{WORST_POINT_SOON}:{scope}:{meta.min_cum_month}",
                    entity_id=entity_id,
                    account_id=account_id,
                    context={
                        "min_balance": balance,
                        "min_month": str(meta.min_cum_month),
                        "days_until": days_until,
                    },
                )
            )

    return alerts
