"""GET /v1/cashflow/... - planned vs realised cash-flow views"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from treasury_engine.api.dependencies import get_workspace_id
from treasury_engine.api.v1.schemas import (
    CashAlertSchema,
    CashAlertsResponse,
    CashflowMatrixResponse,
    CashflowPeriodSchema,
    CashflowSummaryResponse,
    DrilldownItemSchema,
    DrilldownResponse,
)
from treasury_engine.api.v1.serializers import matrix_response
from treasury_engine.domain.models import Flow
from treasury_engine.infrastructure.database.session import get_db
from treasury_engine.services import cashflow
from treasury_engine.utils.date_utils import YearMonth

router = APIRouter()


@router.get("/cashflow/monthly", response_model=CashflowMatrixResponse)
def get_monthly_matrix(
    from_month: str = Query(..., description="First month, YYYY-MM"),
    to_month: str = Query(..., description="Last month, YYYY-MM"),
    entity_id: Optional[str] = Query(None),
    account_id: Optional[str] = Query(None),
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """
    Monthly planned/realised matrix with running balances.

    Returns:
        One row per month of the window plus opening balance and worst point
    """
    matrix = cashflow.compute_monthly_matrix(
        db,
        workspace_id,
        YearMonth.parse(from_month, field="from_month"),
        YearMonth.parse(to_month, field="to_month"),
        entity_id=entity_id,
        account_id=account_id,
    )
    return matrix_response(matrix)


@router.get("/cashflow", response_model=CashflowSummaryResponse)
def get_cashflow(
    from_date: date = Query(...),
    to_date: date = Query(...),
    granularity: str = Query("month", description="day | month"),
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    summary = cashflow.compute_cashflow(db, workspace_id, from_date, to_date, granularity)
    return CashflowSummaryResponse(
        granularity=granularity,
        entries=[
            CashflowPeriodSchema(
                period=entry.period,
                planned_income=entry.planned_income,
                planned_expense=entry.planned_expense,
                planned_net=entry.planned_net,
                realised_income=entry.realised_income,
                realised_expense=entry.realised_expense,
                realised_net=entry.realised_net,
            )
            for entry in summary.entries
        ],
        total_planned_income=summary.total_planned_income,
        total_planned_expense=summary.total_planned_expense,
        total_planned_net=summary.total_planned_net,
        total_realised_income=summary.total_realised_income,
        total_realised_expense=summary.total_realised_expense,
        total_realised_net=summary.total_realised_net,
    )


@router.get("/cashflow/drilldown", response_model=DrilldownResponse)
def get_drilldown(
    month: str = Query(..., description="YYYY-MM"),
    kind: str = Query(..., description="planned | realised"),
    direction: Optional[Flow] = Query(None),
    entity_id: Optional[str] = Query(None),
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """Schedule instances behind one cell of the monthly matrix"""
    year_month = YearMonth.parse(month, field="month")
    result = cashflow.drilldown(db, workspace_id, year_month, kind, direction=direction, entity_id=entity_id)
    return DrilldownResponse(
        month=str(year_month),
        kind=kind,
        items=[
            DrilldownItemSchema(
                instance_id=item.instance_id,
                origin=item.origin.kind.value,
                parent_id=item.origin.parent_id,
                entity_id=item.entity_id,
                description=item.description,
                due_date=item.due_date,
                amount_cents=item.amount_cents,
                direction=item.flow.value,
            )
            for item in result.items
        ],
        total_cents=result.total_cents,
    )


@router.get("/cashflow/alerts", response_model=CashAlertsResponse)
def get_cash_alerts(
    as_of: Optional[date] = Query(None, description="Evaluation date, defaults to today"),
    entity_id: Optional[str] = Query(None),
    account_id: Optional[str] = Query(None),
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """Cash alerts proposed from the worst point of the forward monthly matrix"""
    as_of = as_of or date.today()
    alerts = cashflow.evaluate_alerts(db, workspace_id, today=as_of, entity_id=entity_id, account_id=account_id)
    return CashAlertsResponse(
        as_of=as_of,
        alerts=[
            CashAlertSchema(
                type=alert.type,
                severity=alert.severity.value,
                message=alert.message,
                fingerprint=alert.fingerprint,
                entity_id=alert.entity_id,
                account_id=alert.account_id,
                context=alert.context,
            )
            for alert in alerts
        ],
    )
