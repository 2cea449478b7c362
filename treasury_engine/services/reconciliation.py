"""Reconciliation service - suggest, confirm and remove bank-to-ledger links"""

import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from treasury_engine.config import settings
from treasury_engine.domain.exceptions import (
    AlreadyReconciledError,
    CrossEntityViolationError,
    NotFoundError,
)
from treasury_engine.domain.matching import rank_candidates, score_candidate, window_bounds
from treasury_engine.domain.models import ExternalDirection, MatchSuggestion, MatchType
from treasury_engine.infrastructure.database.models import ExternalTransaction, ReconciliationLink
from treasury_engine.infrastructure.database.repositories import (
    ExternalTransactionRepository,
    LedgerRepository,
    ReconciliationRepository,
    to_domain_external,
    to_domain_movement,
)
from treasury_engine.infrastructure.observability.logging import log_reconciliation_event
from treasury_engine.infrastructure.observability.metrics import (
    reconciliation_link_counter,
    reconciliation_suggestions_histogram,
)
from treasury_engine.services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)


def _get_external(db: Session, workspace_id: str, external_transaction_id: str) -> ExternalTransaction:
    row = ExternalTransactionRepository(db).get(workspace_id, external_transaction_id)
    if row is None:
        raise NotFoundError(
            f"External transaction {external_transaction_id} not found",
            field="external_transaction_id",
        )
    return row


def ingest_external_transaction(
    db: Session,
    workspace_id: str,
    entity_id: str,
    external_account_id: str,
    external_tx_id: str,
    posted_date: date,
    amount_cents: int,
    direction: ExternalDirection,
    description_raw: str,
    balance_cents: Optional[int] = None,
) -> ExternalTransaction:
    """Idempotent upsert of a bank record arriving from the sync process"""
    with unit_of_work(db):
        row = ExternalTransactionRepository(db).upsert(
            workspace_id,
            entity_id,
            external_account_id,
            external_tx_id,
            posted_date,
            abs(amount_cents),
            direction,
            description_raw,
            balance_cents,
        )
    return row


def suggest_matches(
    db: Session,
    workspace_id: str,
    external_transaction_id: str,
    window_days: Optional[int] = None,
    tolerance_cents: Optional[int] = None,
) -> List[MatchSuggestion]:
    """
    Ranked ledger candidates for an external transaction.

    Already reconciled transactions return an empty list.
    """
    window_days = settings.reconciliation_window_days if window_days is None else window_days
    tolerance_cents = settings.amount_tolerance_cents if tolerance_cents is None else tolerance_cents

    external = to_domain_external(_get_external(db, workspace_id, external_transaction_id))
    if ReconciliationRepository(db).get_link(workspace_id, external.id) is not None:
        return []

    start, end = window_bounds(external.posted_date, window_days)
    movements = LedgerRepository(db).list_for_entity_between(workspace_id, external.entity_id, start, end)
    suggestions = rank_candidates(
        external,
        [to_domain_movement(m) for m in movements],
        window_days=window_days,
        tolerance_cents=tolerance_cents,
    )

    reconciliation_suggestions_histogram.observe(len(suggestions))
    return suggestions


def confirm_link(
    db: Session,
    workspace_id: str,
    external_transaction_id: str,
    movement_id: str,
    match_type: MatchType = MatchType.MANUAL,
) -> ReconciliationLink:
    """
    Create the single link for an external transaction.

    The evidence is scored now and stored with the link, never recomputed.
    The unique constraint on external_transaction_id is the atomic guard
    against a concurrent confirmation.
    """
    links = ReconciliationRepository(db)

    with unit_of_work(db):
        external_row = _get_external(db, workspace_id, external_transaction_id)
        movement_row = LedgerRepository(db).get_movement(workspace_id, movement_id)
        if movement_row is None:
            raise NotFoundError(f"Ledger movement {movement_id} not found", field="movement_id")
        if movement_row.entity_id != external_row.entity_id:
            raise CrossEntityViolationError(
                "Movement and external transaction belong to different entities",
                field="movement_id",
            )
        if links.get_link(workspace_id, external_transaction_id) is not None:
            raise AlreadyReconciledError(
                f"External transaction {external_transaction_id} is already reconciled",
                field="external_transaction_id",
            )

        suggestion = score_candidate(
            to_domain_external(external_row),
            to_domain_movement(movement_row),
            tolerance_cents=settings.amount_tolerance_cents,
        )
        try:
            link = links.create_link(
                workspace_id,
                external_transaction_id,
                movement_id,
                match_type,
                suggestion.confidence,
                suggestion.evidence,
            )
        except IntegrityError as exc:
            raise AlreadyReconciledError(
                f"External transaction {external_transaction_id} is already reconciled",
                field="external_transaction_id",
            ) from exc

    reconciliation_link_counter.labels(match_type=match_type.value).inc()
    log_reconciliation_event(
        logger,
        "link_confirmed",
        workspace_id,
        external_transaction_id,
        {"movement_id": movement_id, "match_type": match_type.value, "confidence": suggestion.confidence},
    )
    return link


def unlink(db: Session, workspace_id: str, external_transaction_id: str) -> bool:
    """Remove the link if present; returns whether one was removed"""
    links = ReconciliationRepository(db)
    movement_id = None
    with unit_of_work(db):
        link = links.get_link(workspace_id, external_transaction_id)
        if link is not None:
            movement_id = link.movement_id
            links.delete_link(link)

    if link is None:
        return False

    log_reconciliation_event(
        logger,
        "link_removed",
        workspace_id,
        external_transaction_id,
        {"movement_id": movement_id},
    )
    return True
