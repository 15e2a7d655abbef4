"""
Central masking and redaction utilities for MedGuard.

Every sample that leaves the scanner goes through :func:`mask_value`, so a
reviewer sees the shape of a detected value but never the value itself.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import List, Tuple, Iterable, TYPE_CHECKING

if TYPE_CHECKING:
    from medguard.core.findings import PhiCategory
    from medguard.detectors import DetectorPattern

MASK_CHAR = "*"


def mask_value(value: str) -> str:
    """
    Mask a matched value showing first 2 + last 2 characters.

    For values <= 4 characters, shows only ****.
    For longer values, shows first2, one mask character per hidden
    character, then last2.

    Args:
        value: The matched value to mask

    Returns:
        Masked string of the same length (or "****")
    """
    if len(value) <= 4:
        return "****"
    return value[:2] + MASK_CHAR * (len(value) - 4) + value[-2:]


@dataclass(frozen=True)
class RedactionResult:
    """Outcome of pattern-based redaction over one text."""

    redacted_text: str
    redaction_count: int
    categories: Tuple["PhiCategory", ...]


def redact_text(text: str, patterns: Iterable["DetectorPattern"]) -> RedactionResult:
    """
    Replace every PHI match in *text* with its masked form.

    Patterns are applied in registry order and the first pattern to claim a
    span wins; later matches overlapping a claimed span are left alone.

    Args:
        text: Raw text that may contain PHI
        patterns: Detector patterns, usually ``registry.patterns()``

    Returns:
        RedactionResult with the redacted text and what was replaced
    """
    claimed: List[Tuple[int, int]] = []
    categories = []

    for pattern in patterns:
        for m in pattern.matcher.finditer(text):
            start, end = m.span()
            if start == end:
                continue
            if any(start < c_end and c_start < end for c_start, c_end in claimed):
                continue
            claimed.append((start, end))
            if pattern.category not in categories:
                categories.append(pattern.category)

    if not claimed:
        return RedactionResult(redacted_text=text, redaction_count=0, categories=())

    pieces = []
    cursor = 0
    for start, end in sorted(claimed):
        pieces.append(text[cursor:start])
        pieces.append(mask_value(text[start:end]))
        cursor = end
    pieces.append(text[cursor:])

    return RedactionResult(
        redacted_text="".join(pieces),
        redaction_count=len(claimed),
        categories=tuple(categories),
    )
