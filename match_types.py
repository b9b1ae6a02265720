# -*- coding: utf-8 -*-
"""
Match Types

Value objects passed in and out of the smart search engine. All of them are
frozen: the engine never mutates the catalog snapshot it is given.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# =============================================================================
# CONSTANTS
# =============================================================================

class Confidence:
    HIGH = 'high'
    MEDIUM = 'medium'
    LOW = 'low'
    VERY_LOW = 'very_low'


class FailureKind:
    EMPTY_QUERY = 'EMPTY_QUERY'
    EMPTY_CATALOG = 'EMPTY_CATALOG'
    NO_CONFIDENT_MATCH = 'NO_CONFIDENT_MATCH'


# =============================================================================
# MODELS
# =============================================================================

class Candidate(BaseModel):
    """One catalog model considered for matching."""

    model_config = ConfigDict(frozen=True)

    name: str
    segment: str = ''
    year: Optional[int] = None
    stock: int = Field(default=0, ge=0)
    test_drive_available: bool = False
    active: bool = True
    # Presentation-only fields, never read by the scorers
    id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


class ScoredCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    candidate: Candidate
    score: int
    reasons: List[str] = Field(default_factory=list)
    eligible: bool = True


class MatchResult(BaseModel):
    """
    Outcome of a smart search.

    Accepted results have success=True and carry match, confidence and
    alternative_count. Rejected results have success=False, a failure kind,
    a message and up to three diagnostics (empty when nothing was scored).
    """

    model_config = ConfigDict(frozen=True)

    success: bool
    query: str
    match: Optional[ScoredCandidate] = None
    confidence: Optional[str] = None
    alternative_count: int = 0
    failure: Optional[str] = None
    message: Optional[str] = None
    diagnostics: List[ScoredCandidate] = Field(default_factory=list)
