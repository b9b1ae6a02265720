# -*- coding: utf-8 -*-
"""
Normalizers

Text normalization for smart search: query/model tokenization, year
extraction and segment keyword detection. Lookup tables live here as plain
data so the keyword order and segment relationships can be audited.
"""

import re
from typing import Dict, List, Optional, Tuple


# =============================================================================
# SEGMENT VOCABULARY
# =============================================================================

# Order matters: the first keyword found in the text wins
# ("DUAL SPORT" must be seen before "SPORT", "CAFE RACER" before "RACER").
SEGMENT_KEYWORDS: Tuple[str, ...] = (
    'SCOOTER',
    'DEPORTIVA',
    'NAKED',
    'TOURING',
    'ADVENTURE',
    'DOBLE PROPOSITO',
    'DUAL SPORT',
    'CRUISER',
    'TRAIL',
    'ENDURO',
    'RETRO',
    'CAFE RACER',
    'SPORT',
    'URBAN',
)


# Keyword family -> segment labels considered close enough for partial credit
RELATED_SEGMENTS: Dict[str, Tuple[str, ...]] = {
    'DEPORTIVA': ('SPORT', 'SUPERSPORT'),
    'DOBLE PROPOSITO': ('DUAL SPORT', 'ADVENTURE', 'TRAIL', 'ENDURO'),
    'ADVENTURE': ('DOBLE PROPOSITO', 'DUAL SPORT', 'TRAIL', 'TOURING'),
    'NAKED': ('SPORT', 'URBAN', 'RETRO'),
    'CRUISER': ('TOURING', 'RETRO'),
    'SCOOTER': ('URBAN',),
}


# =============================================================================
# TOKENIZATION
# =============================================================================

_NON_TOKEN_RE = re.compile(r'[^A-Z0-9]')
_YEAR_RE = re.compile(r'(?<!\d)(20\d{2})(?!\d)')


def tokenize(text: Optional[str]) -> List[str]:
    """
    Split free text into comparable tokens.

    Uppercases the text, turns every character outside A-Z/0-9 into a space
    and splits on whitespace. Order is preserved for reason reporting.

    Args:
        text: Raw query or model name

    Returns:
        List of tokens (possibly empty)
    """
    if not text:
        return []

    return _NON_TOKEN_RE.sub(' ', text.upper()).split()


def extract_year(text: Optional[str]) -> Optional[int]:
    """Return the first 20xx year not glued to other digits, or None."""
    if not text:
        return None

    match = _YEAR_RE.search(text)
    if match:
        return int(match.group(1))
    return None


def extract_segment_keyword(text: Optional[str]) -> Optional[str]:
    """
    Detect a segment keyword in the text.

    Scans SEGMENT_KEYWORDS in order using substring containment against the
    uppercased text, so list order is the tie-break when several keywords
    appear.

    Args:
        text: Raw query text

    Returns:
        The first vocabulary entry present, or None
    """
    if not text:
        return None

    text_upper = text.upper()
    for keyword in SEGMENT_KEYWORDS:
        if keyword in text_upper:
            return keyword
    return None


def normalize_segment(segment: Optional[str]) -> str:
    """Uppercase and trim a catalog segment label ('' when missing)."""
    if not segment:
        return ''
    return segment.upper().strip()
