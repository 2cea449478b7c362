"""
Reconciliation matching - score internal ledger movements against a bank record.

Candidate window:
- same owning entity
- posted within ±2 days
- absolute amount within 1 cent, sign consistent with direction (in → +, out → -)

Confidence policy (kept fixed for behavioural compatibility):
- date and amount match: 0.7, 0.8 when similarity > 0.3, 0.9 when similarity > 0.5
- amount only (date differs inside the window): 0.5
- anything below 0.5 is discarded
"""

import re
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Set, Tuple

from treasury_engine.domain.models import (
    ExternalDirection,
    ExternalTransaction,
    LedgerMovement,
    MatchSuggestion,
)
from treasury_engine.domain.money import amounts_match

DEFAULT_WINDOW_DAYS = 2
DEFAULT_TOLERANCE_CENTS = 1

CONFIDENCE_EXACT = 0.7
CONFIDENCE_EXACT_GOOD_DESCRIPTION = 0.8
CONFIDENCE_EXACT_STRONG_DESCRIPTION = 0.9
CONFIDENCE_AMOUNT_ONLY = 0.5
GOOD_SIMILARITY = 0.3
STRONG_SIMILARITY = 0.5
MIN_CONFIDENCE = 0.5

MIN_TOKEN_LENGTH = 3

# Banking noise removed before tokenizing
_NOISE_PATTERNS = [
    re.compile(r"^COMPRA\s+CARTAO\s+"),
    re.compile(r"^DEB\s+AUT\s+"),
    re.compile(r"^DEBITO\s+AUTOMATICO\s+"),
    re.compile(r"^PAG\s+RECORRENTE\s+"),
    re.compile(r"^TED\s+"),
    re.compile(r"^DOC\s+"),
    re.compile(r"^PIX\s+"),
    re.compile(r"\s+DEBITO\s*$"),
    re.compile(r"\s+CREDITO\s*$"),
    re.compile(r"\s+PAGAMENTO\s*$"),
    re.compile(r"\s+RECEBIMENTO\s*$"),
]
_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]+")


def normalize_description(raw: str) -> str:
    """Upper-case, strip banking noise and punctuation, collapse whitespace"""
    if not raw:
        return ""

    normalized = _WHITESPACE.sub(" ", raw.strip().upper())
    for pattern in _NOISE_PATTERNS:
        normalized = pattern.sub(" ", normalized).strip()

    normalized = _PUNCTUATION.sub(" ", normalized)
    return _WHITESPACE.sub(" ", normalized).strip()


def extract_tokens(description: str) -> Set[str]:
    return {token for token in normalize_description(description).split(" ") if len(token) >= MIN_TOKEN_LENGTH}


def description_similarity(a: str, b: str) -> float:
    """Jaccard similarity of significant tokens, in [0, 1]"""
    tokens_a = extract_tokens(a)
    tokens_b = extract_tokens(b)

    if not tokens_a and not tokens_b:
        return 1.0
    if not tokens_a or not tokens_b:
        return 0.0

    return len(tokens_a & tokens_b) / len(tokens_a | tokens_b)


def score_confidence(date_match: bool, amount_match: bool, similarity: float) -> float:
    if date_match and amount_match:
        if similarity > STRONG_SIMILARITY:
            return CONFIDENCE_EXACT_STRONG_DESCRIPTION
        if similarity > GOOD_SIMILARITY:
            return CONFIDENCE_EXACT_GOOD_DESCRIPTION
        return CONFIDENCE_EXACT
    if amount_match:
        return CONFIDENCE_AMOUNT_ONLY
    return 0.0


def sign_matches(direction: ExternalDirection, amount_cents: int) -> bool:
    if direction is ExternalDirection.IN:
        return amount_cents > 0
    return amount_cents < 0


def is_candidate(
    external: ExternalTransaction,
    movement: LedgerMovement,
    window_days: int = DEFAULT_WINDOW_DAYS,
    tolerance_cents: int = DEFAULT_TOLERANCE_CENTS,
) -> bool:
    """Entity, date window, amount tolerance and direction filters"""
    return (
        movement.entity_id == external.entity_id
        and abs((movement.date - external.posted_date).days) <= window_days
        and amounts_match(abs(movement.amount_cents), external.amount_cents, tolerance_cents)
        and sign_matches(external.direction, movement.amount_cents)
    )


def build_evidence(
    external: ExternalTransaction,
    movement: LedgerMovement,
    date_match: bool,
    amount_match: bool,
    similarity: float,
) -> Dict[str, Any]:
    return {
        "date_match": date_match,
        "amount_match": amount_match,
        "similarity": round(similarity, 4),
        "date_distance_days": abs((movement.date - external.posted_date).days),
        "candidate_date": movement.date.isoformat(),
        "candidate_amount_cents": movement.amount_cents,
        "candidate_description": movement.description,
        "external_date": external.posted_date.isoformat(),
        "external_amount_cents": external.amount_cents,
        "external_description": external.description_raw,
    }


def score_candidate(
    external: ExternalTransaction,
    movement: LedgerMovement,
    tolerance_cents: int = DEFAULT_TOLERANCE_CENTS,
) -> MatchSuggestion:
    date_match = movement.date == external.posted_date
    amount_match = amounts_match(abs(movement.amount_cents), external.amount_cents, tolerance_cents)
    external_description = external.description_norm or external.description_raw
    # a blank description on either side carries no evidence
    similarity = 0.0
    if external_description and movement.description:
        similarity = description_similarity(external_description, movement.description)
    return MatchSuggestion(
        movement=movement,
        confidence=score_confidence(date_match, amount_match, similarity),
        evidence=build_evidence(external, movement, date_match, amount_match, similarity),
        date_distance_days=abs((movement.date - external.posted_date).days),
    )


def rank_candidates(
    external: ExternalTransaction,
    movements: Iterable[LedgerMovement],
    window_days: int = DEFAULT_WINDOW_DAYS,
    tolerance_cents: int = DEFAULT_TOLERANCE_CENTS,
) -> List[MatchSuggestion]:
    """
    Main entry point: filter, score and order candidates.

    Ordering is descending confidence, then smallest date distance, then
    movement id, so equal inputs always produce the same list.
    """
    suggestions = [
        score_candidate(external, movement, tolerance_cents)
        for movement in movements
        if is_candidate(external, movement, window_days, tolerance_cents)
    ]
    suggestions = [s for s in suggestions if s.confidence >= MIN_CONFIDENCE]
    suggestions.sort(key=lambda s: (-s.confidence, s.date_distance_days, s.movement.id))
    return suggestions


def window_bounds(posted_date: date, window_days: int = DEFAULT_WINDOW_DAYS) -> Tuple[date, date]:
    """Inclusive date range searched for candidates"""
    return posted_date - timedelta(days=window_days), posted_date + timedelta(days=window_days)
