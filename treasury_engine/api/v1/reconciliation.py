"""Bank record ingestion and reconciliation links"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from treasury_engine.api.dependencies import enforce_rate_limit, get_workspace_id
from treasury_engine.api.v1.schemas import (
    ExternalTransactionRequest,
    ExternalTransactionResponse,
    LinkRequest,
    LinkResponse,
    SuggestionSchema,
    SuggestionsResponse,
    UnlinkResponse,
)
from treasury_engine.api.v1.serializers import movement_schema
from treasury_engine.infrastructure.database.session import get_db
from treasury_engine.services import reconciliation

router = APIRouter()


@router.post(
    "/external-transactions",
    response_model=ExternalTransactionResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
def ingest_external_transaction(
    request_body: ExternalTransactionRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """Upsert keyed by (external_account_id, external_tx_id); safe to replay"""
    row = reconciliation.ingest_external_transaction(
        db,
        workspace_id,
        entity_id=request_body.entity_id,
        external_account_id=request_body.external_account_id,
        external_tx_id=request_body.external_tx_id,
        posted_date=request_body.posted_date,
        amount_cents=request_body.amount_cents,
        direction=request_body.direction,
        description_raw=request_body.description_raw,
        balance_cents=request_body.balance_cents,
    )
    return ExternalTransactionResponse(
        id=row.id,
        entity_id=row.entity_id,
        external_tx_id=row.external_tx_id,
        posted_date=row.posted_date,
        amount_cents=row.amount_cents,
        direction=row.direction,
        description_raw=row.description_raw,
        description_norm=row.description_norm,
    )


@router.get("/reconciliation/{external_transaction_id}/suggestions", response_model=SuggestionsResponse)
def get_suggestions(
    external_transaction_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """
    Ranked ledger candidates for a bank record.

    Returns:
        Suggestions by descending confidence; empty once reconciled
    """
    suggestions = reconciliation.suggest_matches(db, workspace_id, external_transaction_id)
    return SuggestionsResponse(
        external_transaction_id=external_transaction_id,
        suggestions=[
            SuggestionSchema(
                movement=movement_schema(s.movement),
                confidence=s.confidence,
                date_distance_days=s.date_distance_days,
                evidence=s.evidence,
            )
            for s in suggestions
        ],
    )


@router.post(
    "/reconciliation/{external_transaction_id}/link",
    response_model=LinkResponse,
    status_code=201,
    dependencies=[Depends(enforce_rate_limit)],
)
def confirm_link(
    external_transaction_id: str,
    request_body: LinkRequest,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    link = reconciliation.confirm_link(
        db,
        workspace_id,
        external_transaction_id,
        request_body.movement_id,
        request_body.match_type,
    )
    return LinkResponse(
        id=link.id,
        external_transaction_id=link.external_transaction_id,
        movement_id=link.movement_id,
        match_type=link.match_type,
        confidence=link.confidence,
        evidence=link.evidence,
    )


@router.delete(
    "/reconciliation/{external_transaction_id}/link",
    response_model=UnlinkResponse,
    dependencies=[Depends(enforce_rate_limit)],
)
def remove_link(
    external_transaction_id: str,
    workspace_id: str = Depends(get_workspace_id),
    db: Session = Depends(get_db),
):
    """Idempotent; removing a missing link succeeds with removed=false"""
    removed = reconciliation.unlink(db, workspace_id, external_transaction_id)
    return UnlinkResponse(external_transaction_id=external_transaction_id, removed=removed)
