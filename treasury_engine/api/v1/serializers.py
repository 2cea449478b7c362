"""Map ORM rows and domain results onto response schemas"""

from treasury_engine.api.v1.schemas import (
    CardInstallmentSchema,
    CardPurchaseResponse,
    CashflowMatrixResponse,
    CashflowMetadataSchema,
    CashflowMonthSchema,
    MovementSchema,
    ParentResponse,
    ScheduleInstanceSchema,
)
from treasury_engine.domain.models import CashflowMatrix, LedgerMovement as Movement
from treasury_engine.infrastructure.database.models import CardPurchase


def parent_response(parent) -> ParentResponse:
    return ParentResponse(
        id=parent.id,
        entity_id=parent.entity_id,
        type=parent.type,
        counterparty=getattr(parent, "counterparty", None),
        description=parent.description,
        category=parent.category,
        status=parent.status,
        total_amount_cents=parent.total_amount_cents,
        currency=parent.currency,
        start_date=parent.start_date,
        end_date=parent.end_date,
        recurrence=parent.recurrence,
        instances=[
            ScheduleInstanceSchema(
                id=row.id,
                due_date=row.due_date,
                amount_cents=row.amount_cents,
                status=row.status,
                linked_movement_id=row.linked_movement_id,
            )
            for row in parent.schedules
        ],
    )


def purchase_response(purchase: CardPurchase) -> CardPurchaseResponse:
    return CardPurchaseResponse(
        id=purchase.id,
        card_id=purchase.card_id,
        entity_id=purchase.entity_id,
        purchase_date=purchase.purchase_date,
        total_amount_cents=purchase.total_amount_cents,
        installment_count=purchase.installment_count,
        installments=[
            CardInstallmentSchema(
                id=inst.id,
                installment_number=inst.installment_number,
                competence_month=inst.competence_month.strftime("%Y-%m"),
                due_date=inst.due_date,
                amount_cents=inst.amount_cents,
                status=inst.status,
            )
            for inst in purchase.installments
        ],
    )


def movement_schema(movement) -> MovementSchema:
    """Accepts either a persisted row or a domain movement"""
    source_type = movement.source_type
    if isinstance(movement, Movement) and source_type is not None:
        source_type = source_type.value
    return MovementSchema(
        id=movement.id,
        entity_id=movement.entity_id,
        amount_cents=movement.amount_cents,
        date=movement.date,
        description=movement.description or "",
        account_id=movement.account_id,
        source_type=source_type,
        source_id=movement.source_id,
    )


def matrix_response(matrix: CashflowMatrix) -> CashflowMatrixResponse:
    meta = matrix.metadata
    return CashflowMatrixResponse(
        months=[
            CashflowMonthSchema(
                month=str(entry.month),
                planned_income=entry.planned_income,
                planned_expense=entry.planned_expense,
                planned_net=entry.planned_net,
                realised_income=entry.realised_income,
                realised_expense=entry.realised_expense,
                realised_net=entry.realised_net,
                planned_cum=entry.planned_cum,
                realised_cum=entry.realised_cum,
                planned_cum_adj=entry.planned_cum_adj,
                realised_cum_adj=entry.realised_cum_adj,
            )
            for entry in matrix.months
        ],
        metadata=CashflowMetadataSchema(
            opening_balance=meta.opening_balance,
            opening_date=meta.opening_date,
            min_cum_balance=meta.min_cum_balance,
            min_cum_month=str(meta.min_cum_month) if meta.min_cum_month else None,
            min_cum_balance_adj=meta.min_cum_balance_adj,
            skipped_records=meta.skipped_records,
        ),
    )
