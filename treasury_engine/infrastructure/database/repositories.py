"""Data access layer for plans, schedules, ledger and reconciliation records"""

from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from treasury_engine.domain import models as domain
from treasury_engine.domain.matching import normalize_description
from treasury_engine.infrastructure.database.models import (
    Account,
    Card,
    CardInstallment,
    CardPurchase,
    Commitment,
    CommitmentSchedule,
    Contract,
    ContractSchedule,
    ExternalTransaction,
    LedgerMovement,
    ReconciliationLink,
)

_OPEN_STATUSES = [status.value for status in domain.ScheduleStatus if status.is_open]


def to_domain_account(row: Account) -> domain.Account:
    return domain.Account(
        id=row.id,
        entity_id=row.entity_id,
        kind=row.kind,
        opening_balance_cents=row.opening_balance_cents,
    )


def to_domain_movement(row: LedgerMovement) -> domain.LedgerMovement:
    return domain.LedgerMovement(
        id=row.id,
        entity_id=row.entity_id,
        amount_cents=row.amount_cents,
        date=row.date,
        description=row.description or "",
        account_id=row.account_id,
        source_type=domain.SourceType(row.source_type) if row.source_type else None,
        source_id=row.source_id,
    )


def to_domain_external(row: ExternalTransaction) -> domain.ExternalTransaction:
    return domain.ExternalTransaction(
        id=row.id,
        entity_id=row.entity_id,
        external_id=row.external_tx_id,
        posted_date=row.posted_date,
        amount_cents=row.amount_cents,
        direction=domain.ExternalDirection(row.direction),
        description_raw=row.description_raw or "",
        description_norm=row.description_norm or "",
        balance_cents=row.balance_cents,
    )


class AccountRepository:
    """Repository for accounts"""

    def __init__(self, db: Session):
        self.db = db

    def create_account(
        self,
        workspace_id: str,
        entity_id: str,
        name: str,
        kind: str = "checking",
        opening_balance_cents: int = 0,
    ) -> Account:
        db_account = Account(
            workspace_id=workspace_id,
            entity_id=entity_id,
            name=name,
            kind=kind,
            opening_balance_cents=opening_balance_cents,
        )
        self.db.add(db_account)
        self.db.flush()
        return db_account

    def get_account(self, workspace_id: str, account_id: str) -> Optional[Account]:
        return (
            self.db.query(Account)
            .filter(Account.workspace_id == workspace_id, Account.id == account_id)
            .first()
        )

    def list_accounts(
        self,
        workspace_id: str,
        entity_id: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> List[Account]:
        query = self.db.query(Account).filter(Account.workspace_id == workspace_id)
        if entity_id is not None:
            query = query.filter(Account.entity_id == entity_id)
        if account_id is not None:
            query = query.filter(Account.id == account_id)
        return query.order_by(Account.id).all()


class ParentRepository:
    """
    Shared persistence for schedule parents (commitments and contracts).

    Subclasses bind the parent table, its schedule table and the origin tag
    stamped on the domain instances.
    """

    parent_model: Any = None
    schedule_model: Any = None
    parent_key: str = ""
    origin_kind: domain.OriginKind = domain.OriginKind.COMMITMENT

    def __init__(self, db: Session):
        self.db = db

    def flow_of(self, parent) -> domain.Flow:
        raise NotImplementedError

    def create_parent(self, workspace_id: str, generated: domain.GeneratedSchedule, **fields):
        """Persist parent and every schedule entry in the caller's transaction"""
        db_parent = self.parent_model(
            workspace_id=workspace_id,
            total_amount_cents=generated.total_amount_cents,
            start_date=generated.start_date,
            end_date=generated.end_date,
            recurrence=generated.recurrence.value,
            **fields,
        )
        for entry in generated.entries:
            db_parent.schedules.append(
                self.schedule_model(
                    workspace_id=workspace_id,
                    due_date=entry.due_date,
                    amount_cents=entry.amount_cents,
                    status=domain.ScheduleStatus.PLANNED.value,
                )
            )
        self.db.add(db_parent)
        self.db.flush()  # Get IDs without committing
        return db_parent

    def get_parent(self, workspace_id: str, parent_id: str):
        return (
            self.db.query(self.parent_model)
            .filter(self.parent_model.workspace_id == workspace_id, self.parent_model.id == parent_id)
            .first()
        )

    def delete_parent(self, db_parent) -> None:
        self.db.delete(db_parent)
        self.db.flush()

    def origin_of(self, parent_id: str) -> domain.ScheduleOrigin:
        return domain.ScheduleOrigin(self.origin_kind, parent_id)

    def to_domain_parent(self, db_parent) -> domain.ScheduleParent:
        return domain.ScheduleParent(
            origin=self.origin_of(db_parent.id),
            entity_id=db_parent.entity_id,
            flow=self.flow_of(db_parent),
            description=db_parent.description,
            status=domain.ParentStatus(db_parent.status),
            account_id=db_parent.account_id,
        )

    def to_domain_instance(self, row) -> domain.ScheduleInstance:
        return domain.ScheduleInstance(
            id=row.id,
            origin=self.origin_of(getattr(row, self.parent_key)),
            due_date=row.due_date,
            amount_cents=row.amount_cents,
            status=domain.ScheduleStatus(row.status),
            linked_movement_id=row.linked_movement_id,
        )

    def list_instances(
        self,
        workspace_id: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> List[domain.ScheduleInstance]:
        """Schedule rows by due date, parents not joined so orphans stay visible"""
        model = self.schedule_model
        query = self.db.query(model).filter(model.workspace_id == workspace_id)
        if from_date is not None:
            query = query.filter(model.due_date >= from_date)
        if to_date is not None:
            query = query.filter(model.due_date <= to_date)
        rows = query.order_by(model.due_date, model.id).all()
        return [self.to_domain_instance(row) for row in rows]

    def list_parents(
        self,
        workspace_id: str,
        parent_ids: Iterable[str],
    ) -> Dict[domain.ScheduleOrigin, domain.ScheduleParent]:
        ids = sorted(set(parent_ids))
        if not ids:
            return {}
        rows = (
            self.db.query(self.parent_model)
            .filter(self.parent_model.workspace_id == workspace_id, self.parent_model.id.in_(ids))
            .all()
        )
        parents = (self.to_domain_parent(row) for row in rows)
        return {parent.origin: parent for parent in parents}


class CommitmentRepository(ParentRepository):
    """Repository for commitments and commitment schedules"""

    parent_model = Commitment
    schedule_model = CommitmentSchedule
    parent_key = "commitment_id"
    origin_kind = domain.OriginKind.COMMITMENT

    def flow_of(self, parent: Commitment) -> domain.Flow:
        return domain.CommitmentType(parent.type).flow


class ContractRepository(ParentRepository):
    """Repository for contracts and contract schedules"""

    parent_model = Contract
    schedule_model = ContractSchedule
    parent_key = "contract_id"
    origin_kind = domain.OriginKind.CONTRACT

    def flow_of(self, parent: Contract) -> domain.Flow:
        return domain.ContractType(parent.type).flow


def parent_repository(db: Session, kind: domain.OriginKind) -> ParentRepository:
    if kind is domain.OriginKind.CONTRACT:
        return ContractRepository(db)
    if kind is domain.OriginKind.COMMITMENT:
        return CommitmentRepository(db)
    raise ValueError(f"No parent repository for {kind.value!r}")


class CardRepository:
    """Repository for cards, card purchases and their installments"""

    def __init__(self, db: Session):
        self.db = db

    def create_card(
        self,
        workspace_id: str,
        entity_id: str,
        name: str,
        closing_day: int,
        due_day: int,
    ) -> Card:
        db_card = Card(
            workspace_id=workspace_id,
            entity_id=entity_id,
            name=name,
            closing_day=closing_day,
            due_day=due_day,
        )
        self.db.add(db_card)
        self.db.flush()
        return db_card

    def get_card(self, workspace_id: str, card_id: str) -> Optional[Card]:
        return (
            self.db.query(Card)
            .filter(Card.workspace_id == workspace_id, Card.id == card_id)
            .first()
        )

    def create_purchase(
        self,
        workspace_id: str,
        card: Card,
        purchase_date: date,
        total_cents: int,
        installments: List[domain.CardInstallment],
        description: Optional[str] = None,
        merchant: Optional[str] = None,
    ) -> CardPurchase:
        """Create purchase with its installments"""
        db_purchase = CardPurchase(
            workspace_id=workspace_id,
            entity_id=card.entity_id,
            card_id=card.id,
            purchase_date=purchase_date,
            merchant=merchant,
            description=description,
            total_amount_cents=total_cents,
            installment_count=len(installments),
            first_installment_month=installments[0].competence_month.first_day(),
        )
        for inst in installments:
            db_purchase.installments.append(
                CardInstallment(
                    workspace_id=workspace_id,
                    entity_id=card.entity_id,
                    card_id=card.id,
                    installment_number=inst.installment_number,
                    competence_month=inst.competence_month.first_day(),
                    due_date=inst.due_date,
                    amount_cents=inst.amount_cents,
                    status=domain.ScheduleStatus.SCHEDULED.value,
                )
            )
        self.db.add(db_purchase)
        self.db.flush()
        return db_purchase

    def get_purchase(self, workspace_id: str, purchase_id: str) -> Optional[CardPurchase]:
        return (
            self.db.query(CardPurchase)
            .filter(CardPurchase.workspace_id == workspace_id, CardPurchase.id == purchase_id)
            .first()
        )


_SCHEDULE_MODELS = {
    domain.SourceType.COMMITMENT_SCHEDULE: CommitmentSchedule,
    domain.SourceType.CONTRACT_SCHEDULE: ContractSchedule,
    domain.SourceType.CARD_INSTALLMENT: CardInstallment,
}


class ScheduleRepository:
    """Instance-level access across the three schedule families"""

    def __init__(self, db: Session):
        self.db = db

    def get_instance(self, workspace_id: str, source_type: domain.SourceType, instance_id: str):
        model = _SCHEDULE_MODELS[source_type]
        return (
            self.db.query(model)
            .filter(model.workspace_id == workspace_id, model.id == instance_id)
            .first()
        )

    def owner_of(self, source_type: domain.SourceType, row) -> Optional[domain.ScheduleParent]:
        """Parent facts of an instance row; None when the parent is gone"""
        if source_type is domain.SourceType.CARD_INSTALLMENT:
            purchase = row.purchase
            if purchase is None:
                return None
            return domain.ScheduleParent(
                origin=domain.ScheduleOrigin.card_purchase(purchase.id),
                entity_id=purchase.entity_id,
                flow=domain.Flow.EXPENSE,
                description=purchase.description or purchase.merchant or "",
            )

        if source_type is domain.SourceType.CONTRACT_SCHEDULE:
            repo: ParentRepository = ContractRepository(self.db)
            parent = row.contract
        else:
            repo = CommitmentRepository(self.db)
            parent = row.commitment
        return repo.to_domain_parent(parent) if parent is not None else None

    def mark_settled(
        self,
        source_type: domain.SourceType,
        instance_id: str,
        status: domain.ScheduleStatus,
        movement_id: str,
    ) -> bool:
        """Conditional write: only an instance that is still open moves"""
        model = _SCHEDULE_MODELS[source_type]
        updated = (
            self.db.query(model)
            .filter(model.id == instance_id, model.status.in_(_OPEN_STATUSES))
            .update(
                {"status": status.value, "linked_movement_id": movement_id},
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def mark_cancelled(self, source_type: domain.SourceType, instance_ids: List[str]) -> int:
        if not instance_ids:
            return 0
        model = _SCHEDULE_MODELS[source_type]
        return (
            self.db.query(model)
            .filter(model.id.in_(instance_ids), model.status.in_(_OPEN_STATUSES))
            .update(
                {"status": domain.ScheduleStatus.CANCELLED.value},
                synchronize_session="fetch",
            )
        )


class LedgerRepository:
    """Repository for ledger movements"""

    def __init__(self, db: Session):
        self.db = db

    def create_movement(
        self,
        workspace_id: str,
        entity_id: str,
        amount_cents: int,
        movement_date: date,
        description: str = "",
        account_id: Optional[str] = None,
        source_type: Optional[domain.SourceType] = None,
        source_id: Optional[str] = None,
    ) -> LedgerMovement:
        """Insert a movement; the flush surfaces the (source_type, source_id) unique constraint"""
        db_movement = LedgerMovement(
            workspace_id=workspace_id,
            entity_id=entity_id,
            amount_cents=amount_cents,
            date=movement_date,
            description=description,
            account_id=account_id,
            source_type=source_type.value if source_type else None,
            source_id=source_id,
        )
        self.db.add(db_movement)
        self.db.flush()
        return db_movement

    def get_movement(self, workspace_id: str, movement_id: str) -> Optional[LedgerMovement]:
        return (
            self.db.query(LedgerMovement)
            .filter(LedgerMovement.workspace_id == workspace_id, LedgerMovement.id == movement_id)
            .first()
        )

    def claim_movement(
        self,
        workspace_id: str,
        movement_id: str,
        source_type: domain.SourceType,
        source_id: str,
    ) -> bool:
        """Conditional write: only a movement that settles nothing yet is attached"""
        updated = (
            self.db.query(LedgerMovement)
            .filter(
                LedgerMovement.workspace_id == workspace_id,
                LedgerMovement.id == movement_id,
                LedgerMovement.source_id.is_(None),
            )
            .update(
                {"source_type": source_type.value, "source_id": source_id},
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def find_by_source(self, source_type: domain.SourceType, source_id: str) -> Optional[LedgerMovement]:
        return (
            self.db.query(LedgerMovement)
            .filter(
                LedgerMovement.source_type == source_type.value,
                LedgerMovement.source_id == source_id,
            )
            .first()
        )

    def list_for_entity_between(
        self,
        workspace_id: str,
        entity_id: str,
        start: date,
        end: date,
    ) -> List[LedgerMovement]:
        return (
            self.db.query(LedgerMovement)
            .filter(
                LedgerMovement.workspace_id == workspace_id,
                LedgerMovement.entity_id == entity_id,
                LedgerMovement.date >= start,
                LedgerMovement.date <= end,
            )
            .order_by(LedgerMovement.date, LedgerMovement.id)
            .all()
        )

    def list_for_accounts_until(
        self,
        workspace_id: str,
        account_ids: Iterable[str],
        as_of: date,
    ) -> List[LedgerMovement]:
        ids = list(account_ids)
        if not ids:
            return []
        return (
            self.db.query(LedgerMovement)
            .filter(
                LedgerMovement.workspace_id == workspace_id,
                LedgerMovement.account_id.in_(ids),
                LedgerMovement.date <= as_of,
            )
            .all()
        )


class ExternalTransactionRepository:
    """Repository for ingested bank records"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, workspace_id: str, external_transaction_id: str) -> Optional[ExternalTransaction]:
        return (
            self.db.query(ExternalTransaction)
            .filter(
                ExternalTransaction.workspace_id == workspace_id,
                ExternalTransaction.id == external_transaction_id,
            )
            .first()
        )

    def upsert(
        self,
        workspace_id: str,
        entity_id: str,
        external_account_id: str,
        external_tx_id: str,
        posted_date: date,
        amount_cents: int,
        direction: domain.ExternalDirection,
        description_raw: str,
        balance_cents: Optional[int] = None,
    ) -> ExternalTransaction:
        """
        Idempotent ingestion keyed by (workspace, external account, external id).

        A reconciled record only gets its normalized description refreshed.
        """
        existing = (
            self.db.query(ExternalTransaction)
            .filter(
                ExternalTransaction.workspace_id == workspace_id,
                ExternalTransaction.external_account_id == external_account_id,
                ExternalTransaction.external_tx_id == external_tx_id,
            )
            .first()
        )

        if existing is None:
            existing = ExternalTransaction(
                workspace_id=workspace_id,
                entity_id=entity_id,
                external_account_id=external_account_id,
                external_tx_id=external_tx_id,
            )
            self.db.add(existing)
            reconciled = False
        else:
            reconciled = ReconciliationRepository(self.db).get_link(workspace_id, existing.id) is not None

        if not reconciled:
            existing.posted_date = posted_date
            existing.amount_cents = amount_cents
            existing.direction = direction.value
            existing.description_raw = description_raw
            existing.balance_cents = balance_cents
        existing.description_norm = normalize_description(existing.description_raw)

        self.db.flush()
        return existing


class ReconciliationRepository:
    """Repository for reconciliation links"""

    def __init__(self, db: Session):
        self.db = db

    def get_link(self, workspace_id: str, external_transaction_id: str) -> Optional[ReconciliationLink]:
        return (
            self.db.query(ReconciliationLink)
            .filter(
                ReconciliationLink.workspace_id == workspace_id,
                ReconciliationLink.external_transaction_id == external_transaction_id,
            )
            .first()
        )

    def create_link(
        self,
        workspace_id: str,
        external_transaction_id: str,
        movement_id: str,
        match_type: domain.MatchType,
        confidence: Optional[float],
        evidence: Dict[str, Any],
    ) -> ReconciliationLink:
        """Insert a link; the flush surfaces the one-link-per-transaction constraint"""
        db_link = ReconciliationLink(
            workspace_id=workspace_id,
            external_transaction_id=external_transaction_id,
            movement_id=movement_id,
            match_type=match_type.value,
            confidence=confidence,
            evidence=evidence,
        )
        self.db.add(db_link)
        self.db.flush()
        return db_link

    def delete_link(self, db_link: ReconciliationLink) -> None:
        self.db.delete(db_link)
        self.db.flush()
