# -*- coding: utf-8 -*-
"""
Smart Search Matcher

Resolves a free-text customer query to the best catalog model.

Each candidate is scored by four independent criteria:
- Token similarity between the query and the model name
- Segment keyword (exact +100, related +40, incompatible -80)
- Model year (requested year, or recency against the reference year)
- Stock level and test drive availability

Inactive models are forced to -999 so they can never be selected but still
show up in diagnostics. The best score must reach 30 to be accepted.

The whole module is pure: the catalog snapshot and the reference year are
passed in, nothing is read from storage or the system clock.
"""

from typing import List, NamedTuple, Optional, Sequence, Tuple

from match_types import Candidate, Confidence, FailureKind, MatchResult, ScoredCandidate
from normalizers import (
    RELATED_SEGMENTS, extract_segment_keyword, extract_year, normalize_segment, tokenize
)


# =============================================================================
# SCORING POINTS
# =============================================================================

POINTS = {
    'token_exact': 40,
    'token_partial': 20,
    'ratio_full': 50,          # every query token matched
    'ratio_most': 30,          # ratio >= 0.75
    'ratio_half': 15,          # ratio >= 0.5
    'segment_exact': 100,
    'segment_related': 40,
    'segment_incompatible': -80,
    'year_requested': 50,
    'year_requested_off1': 15,
    'year_requested_off2': 5,
    'year_current': 15,
    'year_last': 10,
    'year_two_back': 5,
    'stock_available': 15,     # stock > 3
    'stock_limited': 10,       # 0 < stock <= 3
    'test_drive': 5,
}

INACTIVE_SCORE = -999
ACCEPTANCE_THRESHOLD = 30
ALTERNATIVE_THRESHOLD = 50      # strictly greater than
DIAGNOSTICS_SIZE = 3

CONFIDENCE_HIGH = 100
CONFIDENCE_MEDIUM = 60
CONFIDENCE_LOW = 30


class QuerySignals(NamedTuple):
    tokens: List[str]
    year: Optional[int]
    segment_keyword: Optional[str]


def parse_query(query: str) -> QuerySignals:
    """Extract tokens, requested year and segment keyword from a query."""
    return QuerySignals(
        tokens=tokenize(query),
        year=extract_year(query),
        segment_keyword=extract_segment_keyword(query),
    )


# =============================================================================
# SCORING FUNCTIONS
# =============================================================================

def score_tokens(query_tokens: Sequence[str], model_tokens: Sequence[str]) -> Tuple[int, Optional[str]]:
    """
    Score token similarity between query and model name.

    Every query token (duplicates included) earns +40 for a verbatim match or
    +20 when it contains, or is contained in, a model token. A bonus based on
    the share of matched tokens is added on top.

    Returns:
        Tuple of (points, reason or None)
    """
    if not query_tokens:
        return 0, None

    model_set = set(model_tokens)
    points = 0
    matched = 0

    for token in query_tokens:
        if token in model_set:
            points += POINTS['token_exact']
            matched += 1
        elif any(token in m or m in token for m in model_tokens):
            points += POINTS['token_partial']
            matched += 1

    ratio = matched / len(query_tokens)
    if ratio == 1.0:
        points += POINTS['ratio_full']
    elif ratio >= 0.75:
        points += POINTS['ratio_most']
    elif ratio >= 0.5:
        points += POINTS['ratio_half']

    if not matched:
        return points, None
    return points, f'Keyword match {matched}/{len(query_tokens)} tokens (+{points} pts)'


def _compatible(a: str, b: str) -> bool:
    return a in b or b in a


def score_segment(segment: Optional[str], keyword: Optional[str]) -> Tuple[int, Optional[str]]:
    """
    Score the candidate segment against the segment keyword of the query.

    Exact (containment either way) +100, related family +40, anything else
    -80. Nothing is scored when either side is missing.
    """
    segment_norm = normalize_segment(segment)
    if not segment_norm:
        return 0, None

    if not keyword:
        return 0, 'No segment keyword in query'

    keyword = keyword.upper()
    if _compatible(segment_norm, keyword):
        points = POINTS['segment_exact']
        return points, f'Exact segment match: {segment_norm} (+{points} pts)'

    for family, related in RELATED_SEGMENTS.items():
        if not _compatible(family, keyword):
            continue
        if any(label in segment_norm for label in related):
            points = POINTS['segment_related']
            return points, f'Related segment: {segment_norm} ~ {keyword} (+{points} pts)'

    points = POINTS['segment_incompatible']
    return points, f'Incompatible segment: {segment_norm} vs {keyword} ({points} pts)'


def score_year(
    model_year: Optional[int],
    query_year: Optional[int],
    reference_year: int
) -> Tuple[int, Optional[str]]:
    """Score model year: requested year when given, recency otherwise."""
    if model_year is None:
        return 0, None

    if query_year is not None:
        distance = abs(model_year - query_year)
        if distance == 0:
            points = POINTS['year_requested']
            return points, f'Requested year: {model_year} (+{points} pts)'
        elif distance == 1:
            points = POINTS['year_requested_off1']
            return points, f'Close to requested year: {model_year} (+{points} pts)'
        elif distance == 2:
            points = POINTS['year_requested_off2']
            return points, f'Near requested year: {model_year} (+{points} pts)'
        return 0, None

    age = reference_year - model_year
    if age == 0:
        points = POINTS['year_current']
        return points, f'Current year model: {model_year} (+{points} pts)'
    elif age == 1:
        points = POINTS['year_last']
        return points, f'Last year model: {model_year} (+{points} pts)'
    elif age == 2:
        points = POINTS['year_two_back']
        return points, f'Two years old model: {model_year} (+{points} pts)'
    return 0, None


def score_stock(stock: int) -> Tuple[int, Optional[str]]:
    """Reward stock on hand; an empty stock is never penalized."""
    if stock > 3:
        points = POINTS['stock_available']
        return points, f'Stock available: {stock} units (+{points} pts)'
    if stock > 0:
        points = POINTS['stock_limited']
        return points, f'Limited stock: {stock} units (+{points} pts)'
    return 0, 'Out of stock (+0 pts)'


def score_test_drive(available: bool) -> Tuple[int, Optional[str]]:
    if available:
        points = POINTS['test_drive']
        return points, f'Test drive available (+{points} pts)'
    return 0, None


# =============================================================================
# MAIN SCORING FUNCTION
# =============================================================================

def score_candidate(
    signals: QuerySignals,
    candidate: Candidate,
    reference_year: int
) -> ScoredCandidate:
    """
    Score a single candidate against the parsed query.

    Args:
        signals: Parsed query (tokens, year, segment keyword)
        candidate: Catalog model
        reference_year: Year used as "now" for recency scoring

    Returns:
        ScoredCandidate with total score and ordered reasons
    """
    parts = [
        score_tokens(signals.tokens, tokenize(candidate.name)),
        score_segment(candidate.segment, signals.segment_keyword),
        score_year(candidate.year, signals.year, reference_year),
        score_stock(candidate.stock),
        score_test_drive(candidate.test_drive_available),
    ]

    total = sum(points for points, _ in parts)
    reasons = [reason for _, reason in parts if reason]

    if not candidate.active:
        reasons.append('Inactive model (discarded)')
        return ScoredCandidate(candidate=candidate, score=INACTIVE_SCORE, reasons=reasons, eligible=False)

    return ScoredCandidate(candidate=candidate, score=total, reasons=reasons)


def rank_candidates(
    signals: QuerySignals,
    candidates: Sequence[Candidate],
    reference_year: int
) -> List[ScoredCandidate]:
    """
    Score and rank all candidates (highest first).

    The sort is stable: equal scores keep the catalog snapshot order.
    """
    scored = [score_candidate(signals, cand, reference_year) for cand in candidates]
    scored.sort(key=lambda s: -s.score)
    return scored


def get_confidence(score: int) -> str:
    """Map a final score to a confidence tier."""
    if score >= CONFIDENCE_HIGH:
        return Confidence.HIGH
    elif score >= CONFIDENCE_MEDIUM:
        return Confidence.MEDIUM
    elif score >= CONFIDENCE_LOW:
        return Confidence.LOW
    return Confidence.VERY_LOW


def count_alternatives(ranked: Sequence[ScoredCandidate]) -> int:
    """Count ranked entries after the best one scoring above 50."""
    return sum(1 for sc in ranked[1:] if sc.score > ALTERNATIVE_THRESHOLD)


def classify(query: str, ranked: Sequence[ScoredCandidate]) -> MatchResult:
    """
    Apply the acceptance threshold to an already ranked list.

    Args:
        query: Original query text
        ranked: Non-empty list sorted by score, best first

    Returns:
        Accepted MatchResult for the best candidate, or a NO_CONFIDENT_MATCH
        rejection carrying the top three for diagnostics
    """
    best = ranked[0]

    if best.score < ACCEPTANCE_THRESHOLD or not best.eligible:
        return MatchResult(
            success=False,
            query=query,
            failure=FailureKind.NO_CONFIDENT_MATCH,
            message=f'No model matched "{query}" with enough confidence (best score {best.score})',
            diagnostics=list(ranked[:DIAGNOSTICS_SIZE]),
        )

    return MatchResult(
        success=True,
        query=query,
        match=best,
        confidence=get_confidence(best.score),
        alternative_count=count_alternatives(ranked),
    )


# =============================================================================
# ENTRY POINT
# =============================================================================

def smart_search(query: str, reference_year: int, candidates: Sequence[Candidate]) -> MatchResult:
    """
    Find the catalog model that best matches a free-text query.

    Args:
        query: Customer query (must not be blank)
        reference_year: Current year, injected for deterministic recency scoring
        candidates: Catalog snapshot, already filtered to published models

    Returns:
        MatchResult (success flag plus either match fields or a failure)
    """
    if not query or not query.strip():
        return MatchResult(
            success=False,
            query=query or '',
            failure=FailureKind.EMPTY_QUERY,
            message='Empty query',
        )

    if not candidates:
        return MatchResult(
            success=False,
            query=query,
            failure=FailureKind.EMPTY_CATALOG,
            message='No models available in the catalog',
        )

    signals = parse_query(query)
    ranked = rank_candidates(signals, candidates, reference_year)
    return classify(query, ranked)
