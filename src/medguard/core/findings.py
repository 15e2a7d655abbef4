"""Finding data structures and PHI vocabulary for MedGuard."""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any

DEFAULT_CONFIDENCE = 0.85

_RANKS = {"LOW": 0, "MEDIUM": 1, "HIGH": 2, "CRITICAL": 3}


class PhiCategory(Enum):
    """Detectable PHI categories. Declaration order is the canonical order."""

    SSN = "SSN"
    MRN = "MRN"
    DOB = "DOB"
    PHONE = "PHONE"
    EMAIL = "EMAIL"
    ADDRESS = "ADDRESS"
    NAME = "NAME"
    DIAGNOSIS = "DIAGNOSIS"
    MEDICATION = "MEDICATION"
    INSURANCE_ID = "INSURANCE_ID"
    CREDIT_CARD = "CREDIT_CARD"
    DRIVER_LICENSE = "DRIVER_LICENSE"
    PASSPORT = "PASSPORT"
    IP_ADDRESS = "IP_ADDRESS"
    BIOMETRIC = "BIOMETRIC"
    OTHER = "OTHER"


class Severity(Enum):
    """Severity of a single detector pattern."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RANKS[self.value]


class RiskLevel(Enum):
    """Discrete risk bucket for files, folders and scans."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return _RANKS[self.value]

    @property
    def is_high_risk(self) -> bool:
        return self in (RiskLevel.HIGH, RiskLevel.CRITICAL)


# Canonical position of each category, used wherever an ordering is needed.
CATEGORY_ORDER = {category: index for index, category in enumerate(PhiCategory)}


@dataclass(frozen=True)
class Finding:
    """One detector's result for one file."""

    category: PhiCategory
    severity: Severity
    occurrences: int
    masked_sample: str  # never the raw value
    line_number: Optional[int] = None  # 1-based line of the first match
    confidence: float = DEFAULT_CONFIDENCE

    def __post_init__(self):
        if self.occurrences < 1:
            raise ValueError(f"occurrences must be >= 1, got {self.occurrences}")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {self.confidence}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert Finding to dictionary format."""
        return {
            "phi_type": self.category.value,
            "severity": self.severity.value,
            "occurrences": self.occurrences,
            "sample_snippet": self.masked_sample,
            "line_number": self.line_number,
            "confidence_score": self.confidence,
        }
