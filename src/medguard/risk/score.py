# SPDX-License-Identifier: MIT
"""
Risk scoring for PHI findings.

Provides deterministic risk scoring based on:
- Severity of each detected PHI category
- How often each category occurs (saturating at 10 occurrences)
- Total PHI volume in the file (bonus capped at 20 points)
"""
from __future__ import annotations

import math
from typing import Dict, Any, Iterable, List, Sequence, Tuple, Union

from medguard.core.findings import Finding, RiskLevel, Severity

SEVERITY_SCORES = {
    "CRITICAL": 100,
    "HIGH": 75,
    "MEDIUM": 50,
    "LOW": 25,
}

# Occurrence count at which a finding's count weight saturates
COUNT_SATURATION = 10
COUNT_BONUS_PER_PHI = 2
MAX_COUNT_BONUS = 20


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def severity_score(level: Union[Severity, RiskLevel]) -> int:
    """Numeric weight of a severity or risk level."""
    return SEVERITY_SCORES.get(level.value, 0)


def total_phi_count(findings: Iterable[Finding]) -> int:
    return sum(f.occurrences for f in findings)


def calculate_risk_score(findings: Sequence[Finding]) -> int:
    """
    Calculate risk score for one file's findings.

    Args:
        findings: Findings produced by the content scanner

    Returns:
        Risk score between 0-100 (0 only when there are no findings)
    """
    if not findings:
        return 0

    weighted_sum = 0.0
    total_weight = 0
    for finding in findings:
        severity_weight = severity_score(finding.severity) / 100
        count_weight = min(finding.occurrences / COUNT_SATURATION, 1)
        weighted_sum += severity_weight * (1 + count_weight)
        total_weight += 1  # one unit per finding, not per occurrence

    base_score = (weighted_sum / total_weight) * 100
    count_bonus = _get_count_bonus(total_phi_count(findings))

    return min(round_half_up(base_score + count_bonus), 100)


def _get_count_bonus(phi_count: int) -> int:
    """Extra points for PHI-heavy files."""
    return min(phi_count * COUNT_BONUS_PER_PHI, MAX_COUNT_BONUS)


def get_risk_level(score: int) -> RiskLevel:
    """Convert numeric risk score to risk level."""
    if score >= 80:
        return RiskLevel.CRITICAL
    elif score >= 60:
        return RiskLevel.HIGH
    elif score >= 30:
        return RiskLevel.MEDIUM
    else:
        return RiskLevel.LOW


def score_findings(findings: Sequence[Finding]) -> Tuple[int, RiskLevel]:
    """Return ``(risk_score, risk_level)`` for one file's findings."""
    score = calculate_risk_score(findings)
    return score, get_risk_level(score)


def max_risk_level(levels: Iterable[RiskLevel]) -> RiskLevel:
    """Highest level observed, LOW when there is none."""
    return max(levels, key=lambda level: level.rank, default=RiskLevel.LOW)


def mean_risk_score(scores: Iterable[int]) -> int:
    """Half-up rounded mean, 0 for no scores."""
    scores = list(scores)
    if not scores:
        return 0
    return round_half_up(sum(scores) / len(scores))


def risk_summary(findings: Sequence[Finding]) -> Dict[str, Any]:
    """
    Generate a complete risk summary for one file's findings.

    Returns:
        Dictionary with score, level, and contributing factors
    """
    score, level = score_findings(findings)
    per_finding: List[Dict[str, Any]] = [
        {
            "phi_type": f.category.value,
            "severity_weight": severity_score(f.severity) / 100,
            "count_weight": min(f.occurrences / COUNT_SATURATION, 1),
        }
        for f in findings
    ]

    return {
        "score": score,
        "level": level.value,
        "factors": {
            "total_phi_count": total_phi_count(findings),
            "count_bonus": _get_count_bonus(total_phi_count(findings)),
            "findings": per_finding,
        },
    }
