"""PHI pattern registry for MedGuard.

The registry is plain data: an ordered, immutable tuple of
:class:`DetectorPattern` built once and injected into the scanner. Order is
evaluation order; tenant-specific patterns are appended, never interleaved.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Pattern

from medguard.core.exceptions import MedGuardConfigError
from medguard.core.findings import PhiCategory, Severity

logger = logging.getLogger(__name__)

_FLAGS = re.ASCII
_IFLAGS = re.ASCII | re.IGNORECASE


@dataclass(frozen=True)
class DetectorPattern:
    """A detectable PHI category with its matcher and default severity."""

    category: PhiCategory
    matcher: Pattern[str]
    severity: Severity
    description: str

    @classmethod
    def compile(
        cls,
        category: PhiCategory,
        pattern: str,
        severity: Severity,
        description: str,
        ignore_case: bool = False,
    ) -> "DetectorPattern":
        return cls(
            category=category,
            matcher=re.compile(pattern, _IFLAGS if ignore_case else _FLAGS),
            severity=severity,
            description=description,
        )


DEFAULT_PATTERNS = (
    DetectorPattern.compile(
        PhiCategory.SSN,
        r"\b\d{3}[-\s]?\d{2}[-\s]?\d{4}\b",
        Severity.CRITICAL,
        "Social Security Number",
    ),
    DetectorPattern.compile(
        PhiCategory.MRN,
        r"\b(?:MRN|Medical Record)[\s:#]*\d{6,10}\b",
        Severity.HIGH,
        "Medical Record Number",
        ignore_case=True,
    ),
    DetectorPattern.compile(
        PhiCategory.DOB,
        r"\b(?:DOB|Date of Birth|Born)[\s:]*\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}\b",
        Severity.HIGH,
        "Date of Birth",
        ignore_case=True,
    ),
    DetectorPattern.compile(
        PhiCategory.PHONE,
        r"\b(?:\+1[\s-]?)?(?:\(?\d{3}\)?[\s.-]?)?\d{3}[\s.-]?\d{4}\b",
        Severity.MEDIUM,
        "Phone Number",
    ),
    DetectorPattern.compile(
        PhiCategory.EMAIL,
        r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b",
        Severity.MEDIUM,
        "Email Address",
    ),
    DetectorPattern.compile(
        PhiCategory.DIAGNOSIS,
        r"\b(?:diagnosis|diagnosed with|ICD-?10?)[\s:]+[A-Z]\d{2}(?:\.\d{1,2})?\b",
        Severity.CRITICAL,
        "Medical Diagnosis Code",
        ignore_case=True,
    ),
    DetectorPattern.compile(
        PhiCategory.MEDICATION,
        r"\b(?:prescribed|medication|taking|rx)[\s:]+\w+\s+\d+\s*(?:mg|ml|mcg)\b",
        Severity.HIGH,
        "Medication Information",
        ignore_case=True,
    ),
    DetectorPattern.compile(
        PhiCategory.INSURANCE_ID,
        r"\b(?:member|insurance|policy)(?:\s+(?:ID|number|no\.?))?[\s#:]*[A-Z]{2,3}\d{8,12}\b",
        Severity.HIGH,
        "Insurance ID",
        ignore_case=True,
    ),
    DetectorPattern.compile(
        PhiCategory.CREDIT_CARD,
        r"\b(?:4[0-9]{12}(?:[0-9]{3})?|5[1-5][0-9]{14}|3[47][0-9]{13})\b",
        Severity.CRITICAL,
        "Credit Card Number",
    ),
    DetectorPattern.compile(
        PhiCategory.ADDRESS,
        r"\b\d{1,5}\s+\w+\s+(?:Street|St|Avenue|Ave|Road|Rd|Boulevard|Blvd|Drive|Dr|Lane|Ln|Court|Ct)\b",
        Severity.MEDIUM,
        "Street Address",
        ignore_case=True,
    ),
    DetectorPattern.compile(
        PhiCategory.NAME,
        r"\b(?:patient|name|mr\.|mrs\.|ms\.|dr\.)[\s:]+[A-Z][a-z]+\s+[A-Z][a-z]+\b",
        Severity.HIGH,
        "Person Name",
        ignore_case=True,
    ),
    # Later additions go after NAME; earlier positions are fixed.
    DetectorPattern.compile(
        PhiCategory.IP_ADDRESS,
        r"\b(?:(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\.){3}(?:25[0-5]|2[0-4]\d|1\d\d|[1-9]?\d)\b",
        Severity.MEDIUM,
        "IP Address",
    ),
    DetectorPattern.compile(
        PhiCategory.DRIVER_LICENSE,
        r"\b(?:driver'?s?\s+licen[cs]e|DL)(?:\s+(?:no\.?|number|#))?[\s:#]*[A-Z]{0,2}\d{5,12}\b",
        Severity.HIGH,
        "Driver License Number",
        ignore_case=True,
    ),
    DetectorPattern.compile(
        PhiCategory.PASSPORT,
        r"\bpassport(?:\s+(?:no\.?|number|#))?[\s:#]*[A-Z]{0,2}\d{6,9}\b",
        Severity.HIGH,
        "Passport Number",
        ignore_case=True,
    ),
)


class PatternRegistry:
    """Immutable, ordered collection of detector patterns."""

    def __init__(self, patterns: Iterable[DetectorPattern]) -> None:
        ordered: List[DetectorPattern] = []
        seen = set()
        for pattern in patterns:
            key = (pattern.category, pattern.matcher.pattern)
            # Fail fast so a misconfigured tenant file does not double count.
            if key in seen:
                raise ValueError(
                    f"Duplicate detector pattern for {pattern.category.value}: "
                    f"{pattern.matcher.pattern}"
                )
            seen.add(key)
            ordered.append(pattern)
        if not ordered:
            raise MedGuardConfigError("Pattern registry must contain at least one pattern")
        self._patterns = tuple(ordered)

    def patterns(self) -> List[DetectorPattern]:
        """Return the patterns in evaluation order."""
        return list(self._patterns)

    def categories(self) -> List[PhiCategory]:
        result = []
        for pattern in self._patterns:
            if pattern.category not in result:
                result.append(pattern.category)
        return result

    def extend(self, extra: Iterable[DetectorPattern]) -> "PatternRegistry":
        """Return a new registry with *extra* appended."""
        return PatternRegistry(self._patterns + tuple(extra))

    def without(self, categories: Iterable[PhiCategory]) -> "PatternRegistry":
        """Return a new registry with every pattern of *categories* removed."""
        dropped = set(categories)
        return PatternRegistry(p for p in self._patterns if p.category not in dropped)

    def __iter__(self) -> Iterator[DetectorPattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)


def default_registry() -> PatternRegistry:
    return PatternRegistry(DEFAULT_PATTERNS)


def _parse_category(value: Any, section: str) -> PhiCategory:
    try:
        return PhiCategory(str(value).upper())
    except ValueError:
        raise MedGuardConfigError(f"Unknown PHI category: {value!r}", section=section)


def _parse_custom_pattern(rule: Dict[str, Any]) -> DetectorPattern:
    """Compile one ``custom_patterns`` entry from configuration."""
    if not isinstance(rule, dict) or not rule.get("pattern"):
        raise MedGuardConfigError(
            "Custom pattern entries need at least 'category' and 'pattern'",
            section="custom_patterns",
        )
    category = _parse_category(rule.get("category", "OTHER"), "custom_patterns")
    try:
        severity = Severity(str(rule.get("severity", "MEDIUM")).upper())
    except ValueError:
        raise MedGuardConfigError(
            f"Unknown severity: {rule.get('severity')!r}", section="custom_patterns"
        )
    try:
        return DetectorPattern.compile(
            category,
            rule["pattern"],
            severity,
            rule.get("description") or category.value.replace("_", " ").title(),
            ignore_case=bool(rule.get("ignore_case", True)),
        )
    except re.error as e:
        raise MedGuardConfigError(
            f"Invalid pattern for {category.value}: {e}", section="custom_patterns"
        )


def build_registry(config: Optional[Dict[str, Any]] = None) -> PatternRegistry:
    """
    Create a :class:`PatternRegistry` from scanner configuration.

    ``config`` can be ``None`` in which case the built-in catalogue is used.
    Otherwise ``custom_patterns`` are appended to the defaults and
    ``disabled_categories`` are removed.

    Raises:
        MedGuardConfigError: On unknown categories, bad regexes, or if every
            pattern ends up disabled.
    """
    config = config or {}
    registry = default_registry()

    custom = config.get("custom_patterns") or []
    if custom:
        registry = registry.extend(_parse_custom_pattern(rule) for rule in custom)
        logger.info("Loaded %d custom PHI patterns", len(custom))

    disabled = config.get("disabled_categories") or []
    if disabled:
        registry = registry.without(
            _parse_category(value, "disabled_categories") for value in disabled
        )

    return registry
