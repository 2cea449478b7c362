"""SQLAlchemy ORM models for plans, schedules, ledger and reconciliation"""

import uuid
from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _uuid() -> str:
    return str(uuid.uuid4())


class Account(Base):
    """Bank or investment account owned by an entity"""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    entity_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    kind = Column(Text, nullable=False, default="checking")
    opening_balance_cents = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class Commitment(Base):
    """Declared recurring or one-off obligation"""

    __tablename__ = "commitments"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    entity_id = Column(Text, nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)
    type = Column(Text, nullable=False)  # expense | revenue
    category = Column(Text, nullable=True)
    description = Column(Text, nullable=False)
    total_amount_cents = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="BRL")
    status = Column(Text, nullable=False, default="planned")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    recurrence = Column(Text, nullable=False, default="none")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    schedules = relationship(
        "CommitmentSchedule",
        back_populates="commitment",
        cascade="all, delete-orphan",
        order_by="CommitmentSchedule.due_date",
    )


class CommitmentSchedule(Base):
    """Schedule instance generated from a commitment"""

    __tablename__ = "commitment_schedules"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    commitment_id = Column(String(36), ForeignKey("commitments.id", ondelete="CASCADE"), nullable=False, index=True)
    due_date = Column(Date, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="planned")
    linked_movement_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    commitment = relationship("Commitment", back_populates="schedules")


class Contract(Base):
    """Obligation with a named counterparty"""

    __tablename__ = "contracts"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    entity_id = Column(Text, nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True)
    counterparty = Column(Text, nullable=False)
    type = Column(Text, nullable=False)  # payable | receivable
    category = Column(Text, nullable=True)
    description = Column(Text, nullable=False)
    total_amount_cents = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False, default="BRL")
    status = Column(Text, nullable=False, default="planned")
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    recurrence = Column(Text, nullable=False, default="none")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=True, onupdate=func.now())

    schedules = relationship(
        "ContractSchedule",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="ContractSchedule.due_date",
    )


class ContractSchedule(Base):
    """Schedule instance generated from a contract"""

    __tablename__ = "contract_schedules"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    contract_id = Column(String(36), ForeignKey("contracts.id", ondelete="CASCADE"), nullable=False, index=True)
    due_date = Column(Date, nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="planned")
    linked_movement_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    contract = relationship("Contract", back_populates="schedules")


class Card(Base):
    """Credit card with its statement cycle"""

    __tablename__ = "cards"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    entity_id = Column(Text, nullable=False, index=True)
    name = Column(Text, nullable=False)
    closing_day = Column(Integer, nullable=False)
    due_day = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class CardPurchase(Base):
    """Purchase split into monthly card installments"""

    __tablename__ = "card_purchases"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    entity_id = Column(Text, nullable=False, index=True)
    card_id = Column(String(36), ForeignKey("cards.id"), nullable=False)
    purchase_date = Column(Date, nullable=False)
    merchant = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    total_amount_cents = Column(BigInteger, nullable=False)
    installment_count = Column(Integer, nullable=False)
    first_installment_month = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    installments = relationship(
        "CardInstallment",
        back_populates="purchase",
        cascade="all, delete-orphan",
        order_by="CardInstallment.installment_number",
    )


class CardInstallment(Base):
    """Installment of a card purchase, keyed by competence month"""

    __tablename__ = "card_installments"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    entity_id = Column(Text, nullable=False, index=True)
    card_id = Column(String(36), ForeignKey("cards.id"), nullable=False)
    purchase_id = Column(String(36), ForeignKey("card_purchases.id", ondelete="CASCADE"), nullable=False)
    installment_number = Column(Integer, nullable=False)
    competence_month = Column(Date, nullable=False)  # first day of month
    due_date = Column(Date, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="scheduled")
    linked_movement_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    purchase = relationship("CardPurchase", back_populates="installments")


class LedgerMovement(Base):
    """Realized money movement; income positive, expense negative"""

    __tablename__ = "ledger_movements"
    # One movement per schedule instance; NULL pairs (ad-hoc movements) are exempt
    __table_args__ = (UniqueConstraint("source_type", "source_id", name="uq_ledger_movement_source"),)

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    entity_id = Column(Text, nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id"), nullable=True, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False, default="")
    source_type = Column(Text, nullable=True)
    source_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ExternalTransaction(Base):
    """Bank record ingested from an external feed"""

    __tablename__ = "external_transactions"
    __table_args__ = (
        UniqueConstraint("workspace_id", "external_account_id", "external_tx_id", name="uq_external_tx"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    entity_id = Column(Text, nullable=False, index=True)
    external_account_id = Column(Text, nullable=False)
    external_tx_id = Column(Text, nullable=False)
    posted_date = Column(Date, nullable=False)
    amount_cents = Column(BigInteger, nullable=False)
    direction = Column(String(3), nullable=False)  # in | out
    description_raw = Column(Text, nullable=False, default="")
    description_norm = Column(Text, nullable=False, default="")
    balance_cents = Column(BigInteger, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())


class ReconciliationLink(Base):
    """Confirmed match between an external transaction and a ledger movement"""

    __tablename__ = "reconciliation_links"

    id = Column(String(36), primary_key=True, default=_uuid)
    workspace_id = Column(Text, nullable=False, index=True)
    external_transaction_id = Column(
        String(36),
        ForeignKey("external_transactions.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    movement_id = Column(String(36), ForeignKey("ledger_movements.id"), nullable=False)
    match_type = Column(Text, nullable=False)  # exact | heuristic | manual
    confidence = Column(Float, nullable=True)
    evidence = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
