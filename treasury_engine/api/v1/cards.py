"""Accounts, cards and card purchases"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from treasury_engine.api.dependencies import enforce_rate_limit, get_workspace_id
from treasury_engine.api.v1.schemas import (
    AccountRequest,
    AccountResponse,
    CardPurchaseRequest,
    CardPurchaseResponse,
    CardRequest,
    CardResponse,
)
from treasury_engine.api.v1.serializers import purchase_response
from treasury_engine.infrastructure.database.session import get_db
from treasury_engine.services import planning
from treasury_engine.utils.date_utils import YearMonth

router = APIRouter(dependencies=[Depends(enforce_rate_limit)])


@router.post("/accounts", response_model=AccountResponse, status_code=201)
def create_account(
    request_body: AccountRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    account = planning.create_account(
        db,
        workspace_id,
        entity_id=request_body.entity_id,
        name=request_body.name,
        kind=request_body.kind,
        opening_balance_cents=request_body.opening_balance_cents,
    )
    return AccountResponse(
        id=account.id,
        entity_id=account.entity_id,
        name=account.name,
        kind=account.kind,
        opening_balance_cents=account.opening_balance_cents,
    )


@router.post("/cards", response_model=CardResponse, status_code=201)
def create_card(
    request_body: CardRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    card = planning.create_card(
        db,
        workspace_id,
        entity_id=request_body.entity_id,
        name=request_body.name,
        closing_day=request_body.closing_day,
        due_day=request_body.due_day,
    )
    return CardResponse(
        id=card.id,
        entity_id=card.entity_id,
        name=card.name,
        closing_day=card.closing_day,
        due_day=card.due_day,
    )


@router.post("/card-purchases", response_model=CardPurchaseResponse, status_code=201)
def create_card_purchase(
    request_body: CardPurchaseRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """
    Record a card purchase and split it into monthly installments.

    Installment k lands in the purchase's statement month plus k, unless
    ``first_month`` pins the first one.
    """
    first_month = (
        YearMonth.parse(request_body.first_month, field="first_month")
        if request_body.first_month
        else None
    )
    purchase = planning.create_card_purchase(
        db,
        workspace_id,
        card_id=request_body.card_id,
        purchase_date=request_body.purchase_date,
        total_cents=request_body.total_cents,
        installment_count=request_body.installment_count,
        description=request_body.description,
        merchant=request_body.merchant,
        first_month=first_month,
    )
    return purchase_response(purchase)
