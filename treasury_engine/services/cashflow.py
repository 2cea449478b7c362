"""Cash-flow service - load schedules and balances, then fold them in the domain layer"""

import logging
from datetime import date
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from treasury_engine.config import settings
from treasury_engine.domain.cashflow import (
    ELIGIBLE_ACCOUNT_KINDS,
    alert_window,
    build_cashflow_summary,
    build_drilldown,
    build_monthly_matrix,
    compute_opening_balance,
    evaluate_cash_alerts,
    opening_date_for,
)
from treasury_engine.domain.models import (
    CashAlert,
    CashflowDrilldown,
    CashflowMatrix,
    CashflowSummary,
    Flow,
    ScheduleInstance,
    ScheduleOrigin,
    ScheduleParent,
)
from treasury_engine.infrastructure.database.repositories import (
    AccountRepository,
    CommitmentRepository,
    ContractRepository,
    LedgerRepository,
    to_domain_account,
    to_domain_movement,
)
from treasury_engine.infrastructure.observability.metrics import record_cash_alert
from treasury_engine.utils.date_utils import YearMonth

logger = logging.getLogger(__name__)


def _load_schedules(
    db: Session,
    workspace_id: str,
    from_date: date,
    to_date: date,
) -> Tuple[List[ScheduleInstance], Dict[ScheduleOrigin, ScheduleParent]]:
    """Commitment and contract instances in range, with whichever parents still exist"""
    instances: List[ScheduleInstance] = []
    parents: Dict[ScheduleOrigin, ScheduleParent] = {}
    for repo in (CommitmentRepository(db), ContractRepository(db)):
        rows = repo.list_instances(workspace_id, from_date, to_date)
        instances.extend(rows)
        parents.update(repo.list_parents(workspace_id, (row.origin.parent_id for row in rows)))
    return instances, parents


def opening_balance(
    db: Session,
    workspace_id: str,
    as_of: date,
    entity_id: Optional[str] = None,
    account_id: Optional[str] = None,
) -> int:
    """Consolidated checking/investment balance at the end of ``as_of``"""
    accounts = [
        to_domain_account(row)
        for row in AccountRepository(db).list_accounts(workspace_id, entity_id, account_id)
        if row.kind in ELIGIBLE_ACCOUNT_KINDS
    ]
    movements = LedgerRepository(db).list_for_accounts_until(
        workspace_id, (account.id for account in accounts), as_of
    )
    return compute_opening_balance(accounts, [to_domain_movement(m) for m in movements], as_of)


def compute_monthly_matrix(
    db: Session,
    workspace_id: str,
    from_month: YearMonth,
    to_month: YearMonth,
    entity_id: Optional[str] = None,
    account_id: Optional[str] = None,
) -> CashflowMatrix:
    """
    Planned vs realised matrix for ``[from_month, to_month]``.

    Instances whose parent no longer exists are skipped; the count is
    reported in the metadata and logged.
    """
    instances, parents = _load_schedules(db, workspace_id, from_month.first_day(), to_month.last_day())
    balance = opening_balance(db, workspace_id, opening_date_for(from_month), entity_id, account_id)

    matrix = build_monthly_matrix(
        from_month,
        to_month,
        instances,
        parents,
        opening_balance=balance,
        entity_id=entity_id,
        account_id=account_id,
    )

    if matrix.metadata.skipped_records:
        logger.warning(
            "Skipped orphaned schedule instances",
            extra={
                "workspace_id": workspace_id,
                "step": "cashflow_matrix",
                "skipped_records": matrix.metadata.skipped_records,
                "from_month": str(from_month),
                "to_month": str(to_month),
            },
        )
    return matrix


def compute_cashflow(
    db: Session,
    workspace_id: str,
    from_date: date,
    to_date: date,
    granularity: str = "month",
) -> CashflowSummary:
    instances, parents = _load_schedules(db, workspace_id, from_date, to_date)
    return build_cashflow_summary(instances, parents, from_date, to_date, granularity)


def drilldown(
    db: Session,
    workspace_id: str,
    month: YearMonth,
    kind: str,
    direction: Optional[Flow] = None,
    entity_id: Optional[str] = None,
) -> CashflowDrilldown:
    instances, parents = _load_schedules(db, workspace_id, month.first_day(), month.last_day())
    return build_drilldown(month, kind, instances, parents, flow=direction, entity_id=entity_id)


def evaluate_alerts(
    db: Session,
    workspace_id: str,
    today: Optional[date] = None,
    entity_id: Optional[str] = None,
    account_id: Optional[str] = None,
) -> List[CashAlert]:
    """Cash alerts over the current month and the configured horizon"""
    today = today or date.today()
    from_month, to_month = alert_window(today, settings.alert_horizon_months)
    matrix = compute_monthly_matrix(db, workspace_id, from_month, to_month, entity_id, account_id)
    alerts = evaluate_cash_alerts(
        matrix,
        today,
        entity_id=entity_id,
        account_id=account_id,
        critical_balance_cents=settings.cash_alert_critical_cents,
    )

    for alert in alerts:
        record_cash_alert(alert.type, alert.severity.value)
    logger.info(
        "Cash alerts evaluated",
        extra={
            "workspace_id": workspace_id,
            "step": "cash_alerts",
            "alerts": [alert.fingerprint for alert in alerts],
        },
    )
    return alerts
