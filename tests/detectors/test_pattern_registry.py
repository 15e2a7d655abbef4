# SPDX-License-Identifier: MIT
"""Tests for the PHI pattern registry."""
import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..', 'src'))

import pytest

from medguard.core.exceptions import MedGuardConfigError
from medguard.core.findings import PhiCategory, Severity
from medguard.detectors import (
    DEFAULT_PATTERNS,
    DetectorPattern,
    PatternRegistry,
    build_registry,
    default_registry,
)


def _pattern(category):
    return next(p for p in DEFAULT_PATTERNS if p.category == category)


class TestDefaultCatalogue:
    def test_evaluation_order(self):
        categories = default_registry().categories()
        assert categories[:11] == [
            PhiCategory.SSN,
            PhiCategory.MRN,
            PhiCategory.DOB,
            PhiCategory.PHONE,
            PhiCategory.EMAIL,
            PhiCategory.DIAGNOSIS,
            PhiCategory.MEDICATION,
            PhiCategory.INSURANCE_ID,
            PhiCategory.CREDIT_CARD,
            PhiCategory.ADDRESS,
            PhiCategory.NAME,
        ]

    def test_severities(self):
        assert _pattern(PhiCategory.SSN).severity == Severity.CRITICAL
        assert _pattern(PhiCategory.CREDIT_CARD).severity == Severity.CRITICAL
        assert _pattern(PhiCategory.DIAGNOSIS).severity == Severity.CRITICAL
        assert _pattern(PhiCategory.MRN).severity == Severity.HIGH
        assert _pattern(PhiCategory.PHONE).severity == Severity.MEDIUM
        assert _pattern(PhiCategory.ADDRESS).severity == Severity.MEDIUM

    @pytest.mark.parametrize(
        "category,text",
        [
            (PhiCategory.SSN, "SSN: 123-45-6789"),
            (PhiCategory.MRN, "mrn #00482913"),
            (PhiCategory.DOB, "Date of Birth: 7/4/1979"),
            (PhiCategory.PHONE, "call 555-987-6543"),
            (PhiCategory.EMAIL, "jane.doe@example.org"),
            (PhiCategory.DIAGNOSIS, "diagnosed with E11.9"),
            (PhiCategory.MEDICATION, "taking Metformin 500 mg"),
            (PhiCategory.INSURANCE_ID, "Insurance ID: ABC12345678"),
            (PhiCategory.INSURANCE_ID, "Member ID: XYZ987654321"),
            (PhiCategory.CREDIT_CARD, "4111111111111111"),
            (PhiCategory.ADDRESS, "456 Oak Avenue"),
            (PhiCategory.NAME, "Patient: John Smith"),
            (PhiCategory.IP_ADDRESS, "from 10.0.12.7"),
            (PhiCategory.DRIVER_LICENSE, "Driver license: D1234567"),
            (PhiCategory.PASSPORT, "Passport number: X1234567"),
        ],
    )
    def test_pattern_matches(self, category, text):
        assert _pattern(category).matcher.search(text)

    def test_patterns_are_ascii_only(self):
        # Non-ASCII digits are not digits for PHI purposes.
        assert not _pattern(PhiCategory.SSN).matcher.search("١٢٣-45-6789")

    def test_plain_text_has_no_phi(self):
        text = "Document: notes.txt\nCreated for scanning demo."
        assert not any(p.matcher.search(text) for p in default_registry())


class TestPatternRegistry:
    def test_is_sized_and_iterable(self):
        registry = default_registry()
        assert len(registry) == len(DEFAULT_PATTERNS)
        assert list(registry) == list(DEFAULT_PATTERNS)
        assert registry.patterns() == list(DEFAULT_PATTERNS)

    def test_duplicate_pattern_rejected(self):
        ssn = _pattern(PhiCategory.SSN)
        with pytest.raises(ValueError):
            PatternRegistry([ssn, ssn])

    def test_empty_registry_rejected(self):
        with pytest.raises(MedGuardConfigError):
            PatternRegistry([])

    def test_extend_appends(self):
        extra = DetectorPattern.compile(PhiCategory.OTHER, r"\bEMP-\d{6}\b", Severity.LOW, "Employee")
        registry = default_registry().extend([extra])
        assert registry.patterns()[-1] is extra
        assert len(default_registry()) == len(DEFAULT_PATTERNS)

    def test_without_removes_category(self):
        registry = default_registry().without([PhiCategory.PHONE])
        assert PhiCategory.PHONE not in registry.categories()
        assert len(registry) == len(DEFAULT_PATTERNS) - 1


class TestBuildRegistry:
    def test_none_gives_defaults(self):
        assert build_registry(None).patterns() == list(DEFAULT_PATTERNS)

    def test_custom_patterns_appended(self):
        registry = build_registry({
            "custom_patterns": [
                {"category": "other", "pattern": r"\bEMP-\d{6}\b", "severity": "low"}
            ]
        })
        custom = registry.patterns()[-1]
        assert custom.category == PhiCategory.OTHER
        assert custom.severity == Severity.LOW
        assert custom.matcher.search("emp-123456")  # ignore_case defaults to on

    def test_disabled_categories(self):
        registry = build_registry({"disabled_categories": ["PHONE", "email"]})
        assert PhiCategory.PHONE not in registry.categories()
        assert PhiCategory.EMAIL not in registry.categories()

    def test_unknown_category(self):
        with pytest.raises(MedGuardConfigError) as exc_info:
            build_registry({"disabled_categories": ["SHOE_SIZE"]})
        assert exc_info.value.section == "disabled_categories"

    def test_bad_regex(self):
        with pytest.raises(MedGuardConfigError):
            build_registry({"custom_patterns": [{"category": "OTHER", "pattern": "(unclosed"}]})

    def test_bad_severity(self):
        with pytest.raises(MedGuardConfigError):
            build_registry({"custom_patterns": [{"pattern": "x", "severity": "SEVERE"}]})

    def test_missing_pattern(self):
        with pytest.raises(MedGuardConfigError):
            build_registry({"custom_patterns": [{"category": "OTHER"}]})

    def test_disabling_everything(self):
        every = [c.value for c in PhiCategory]
        with pytest.raises(MedGuardConfigError):
            build_registry({"disabled_categories": every})
