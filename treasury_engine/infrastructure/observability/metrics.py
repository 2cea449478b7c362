"""Prometheus metrics for schedule generation, settlement and reconciliation"""

from prometheus_client import Counter, Histogram

# Planning metrics
schedules_generated_counter = Counter(
    "treasury_schedules_generated_total",
    "Schedule instances generated",
    ["plan_kind"],  # single | recurring | split | installment | custom | card
)

# Settlement metrics
settlement_counter = Counter(
    "treasury_settlements_total",
    "Settlement attempts by outcome",
    ["outcome"],  # settled | already_settled | rejected
)

# Reconciliation metrics
reconciliation_link_counter = Counter(
    "treasury_reconciliation_links_total",
    "Reconciliation links confirmed",
    ["match_type"],
)

reconciliation_suggestions_histogram = Histogram(
    "treasury_reconciliation_suggestions",
    "Suggestions returned per external transaction",
    buckets=[0, 1, 2, 3, 5, 10],
)

# Alerting metrics
cash_alerts_counter = Counter(
    "treasury_cash_alerts_total",
    "Cash alerts proposed",
    ["type", "severity"],
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_schedule_generation(plan_kind: str, count: int) -> None:
    schedules_generated_counter.labels(plan_kind=plan_kind).inc(count)


def record_settlement(outcome: str) -> None:
    settlement_counter.labels(outcome=outcome).inc()


def record_cash_alert(alert_type: str, severity: str) -> None:
    cash_alerts_counter.labels(type=alert_type, severity=severity).inc()
