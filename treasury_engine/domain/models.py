"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Dict, List, Optional

from treasury_engine.utils.date_utils import YearMonth


class Flow(str, Enum):
    """Cash direction as seen by the owning entity"""

    INCOME = "income"
    EXPENSE = "expense"


class CommitmentType(str, Enum):
    EXPENSE = "expense"
    REVENUE = "revenue"

    @property
    def flow(self) -> Flow:
        return Flow.INCOME if self is CommitmentType.REVENUE else Flow.EXPENSE


class ContractType(str, Enum):
    PAYABLE = "payable"
    RECEIVABLE = "receivable"

    @property
    def flow(self) -> Flow:
        return Flow.INCOME if self is ContractType.RECEIVABLE else Flow.EXPENSE


class Recurrence(str, Enum):
    NONE = "none"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"
    CUSTOM = "custom"

    @property
    def step(self) -> int:
        """Months between consecutive instances"""
        return {"monthly": 1, "quarterly": 3, "yearly": 12}.get(self.value, 0)


class ParentStatus(str, Enum):
    """Lifecycle of a Commitment or Contract"""

    PLANNED = "planned"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ScheduleStatus(str, Enum):
    """Lifecycle of a schedule instance or card installment"""

    PLANNED = "planned"
    SCHEDULED = "scheduled"  # card installments
    REALIZED = "realized"
    RECEIVED = "received"
    PAID = "paid"
    POSTED = "posted"  # card installments
    CANCELLED = "cancelled"

    @property
    def is_open(self) -> bool:
        return self in (ScheduleStatus.PLANNED, ScheduleStatus.SCHEDULED)

    @property
    def is_settled(self) -> bool:
        return self in (
            ScheduleStatus.REALIZED,
            ScheduleStatus.RECEIVED,
            ScheduleStatus.PAID,
            ScheduleStatus.POSTED,
        )


class OriginKind(str, Enum):
    COMMITMENT = "commitment"
    CONTRACT = "contract"
    CARD_PURCHASE = "card_purchase"


class SourceType(str, Enum):
    """Value of ``LedgerMovement.source_type`` for each schedule family"""

    COMMITMENT_SCHEDULE = "commitment_schedule"
    CONTRACT_SCHEDULE = "contract_schedule"
    CARD_INSTALLMENT = "card_installment"


_SOURCE_BY_ORIGIN = {
    OriginKind.COMMITMENT: SourceType.COMMITMENT_SCHEDULE,
    OriginKind.CONTRACT: SourceType.CONTRACT_SCHEDULE,
    OriginKind.CARD_PURCHASE: SourceType.CARD_INSTALLMENT,
}


@dataclass(frozen=True)
class ScheduleOrigin:
    """Tagged reference to the parent that generated a schedule instance"""

    kind: OriginKind
    parent_id: str

    @classmethod
    def commitment(cls, parent_id: str) -> "ScheduleOrigin":
        return cls(OriginKind.COMMITMENT, parent_id)

    @classmethod
    def contract(cls, parent_id: str) -> "ScheduleOrigin":
        return cls(OriginKind.CONTRACT, parent_id)

    @classmethod
    def card_purchase(cls, parent_id: str) -> "ScheduleOrigin":
        return cls(OriginKind.CARD_PURCHASE, parent_id)

    @property
    def source_type(self) -> SourceType:
        return _SOURCE_BY_ORIGIN[self.kind]


@dataclass
class ScheduleEntry:
    """Single due date / amount produced by the schedule generator"""

    due_date: date
    amount_cents: int


@dataclass
class GeneratedSchedule:
    """Output of the schedule generator"""

    total_amount_cents: int
    entries: List[ScheduleEntry]
    start_date: date
    end_date: Optional[date]
    recurrence: Recurrence


@dataclass
class CardInstallment:
    """Single installment of a card purchase"""

    installment_number: int
    competence_month: YearMonth
    due_date: date
    amount_cents: int


@dataclass
class ScheduleParent:
    """Parent facts the aggregator needs to classify an instance"""

    origin: ScheduleOrigin
    entity_id: str
    flow: Flow
    description: str
    status: ParentStatus = ParentStatus.ACTIVE
    account_id: Optional[str] = None


@dataclass
class ScheduleInstance:
    """A single future cash event generated from a commitment or contract"""

    id: str
    origin: ScheduleOrigin
    due_date: date
    amount_cents: int
    status: ScheduleStatus
    linked_movement_id: Optional[str] = None


@dataclass
class LedgerMovement:
    """Realized money movement; income positive, expense negative"""

    id: str
    entity_id: str
    amount_cents: int
    date: date
    description: str
    account_id: Optional[str] = None
    source_type: Optional[SourceType] = None
    source_id: Optional[str] = None


@dataclass
class Account:
    id: str
    entity_id: str
    kind: str  # "checking" | "investment" | ...
    opening_balance_cents: int = 0


class ExternalDirection(str, Enum):
    IN = "in"
    OUT = "out"


@dataclass
class ExternalTransaction:
    """Bank record ingested from an external feed"""

    id: str
    entity_id: str
    external_id: str
    posted_date: date
    amount_cents: int  # always non-negative
    direction: ExternalDirection
    description_raw: str
    description_norm: str = ""
    balance_cents: Optional[int] = None


class MatchType(str, Enum):
    EXACT = "exact"
    HEURISTIC = "heuristic"
    MANUAL = "manual"


@dataclass
class MatchSuggestion:
    """Ranked reconciliation candidate"""

    movement: LedgerMovement
    confidence: float
    evidence: Dict[str, Any]
    date_distance_days: int


@dataclass
class CashflowPeriodEntry:
    """One row of the monthly matrix; all amounts in minor units"""

    month: YearMonth
    planned_income: int = 0
    planned_expense: int = 0
    planned_net: int = 0
    realised_income: int = 0
    realised_expense: int = 0
    realised_net: int = 0
    planned_cum: int = 0
    realised_cum: int = 0
    planned_cum_adj: int = 0
    realised_cum_adj: int = 0


@dataclass
class CashflowMetadata:
    opening_balance: int
    opening_date: date
    min_cum_balance: Optional[int]
    min_cum_month: Optional[YearMonth]
    min_cum_balance_adj: Optional[int]
    skipped_records: int = 0


@dataclass
class CashflowMatrix:
    months: List[CashflowPeriodEntry]
    metadata: CashflowMetadata


@dataclass
class CashflowPeriodSummary:
    """Row of the day/month cash-flow summary"""

    period: str
    planned_income: int = 0
    planned_expense: int = 0
    planned_net: int = 0
    realised_income: int = 0
    realised_expense: int = 0
    realised_net: int = 0


@dataclass
class CashflowSummary:
    entries: List[CashflowPeriodSummary] = field(default_factory=list)
    total_planned_income: int = 0
    total_planned_expense: int = 0
    total_planned_net: int = 0
    total_realised_income: int = 0
    total_realised_expense: int = 0
    total_realised_net: int = 0


@dataclass
class DrilldownItem:
    """Schedule instance behind one cell of the monthly matrix"""

    instance_id: str
    origin: ScheduleOrigin
    entity_id: str
    description: str
    due_date: date
    amount_cents: int
    flow: Flow


@dataclass
class CashflowDrilldown:
    items: List[DrilldownItem]
    total_cents: int


class AlertSeverity(str, Enum):
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class CashAlert:
    """Proposed alert derived from the monthly matrix; the fingerprint deduplicates repeats"""

    type: str
    severity: AlertSeverity
    message: str
    fingerprint: str
    entity_id: Optional[str] = None
    account_id: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
