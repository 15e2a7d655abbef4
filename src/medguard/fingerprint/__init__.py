"""PHI fingerprinting and duplicate detection.

A fingerprint captures the *shape* of a file's PHI: which categories it holds
and in what relative proportions. Raw values never enter the hash, so two
exports of the same kind of record collapse onto one fingerprint even though
the patients differ. The same fingerprint recurring across many files is
itself a proliferation signal.

Hash: SHA-256 over ``"SHAPE|" + ";".join(f"{category}={bucket}")`` with
categories in canonical order and each share quantized to ``buckets`` steps.
Files without findings but with supplied content get an exact-content
fingerprint instead (SHA-256 over whitespace-normalised, lower-cased text).

Similarity: ``1 - 0.5 * L1`` distance between the file's category shares and
the fingerprint's representative shares (total variation distance), so 1.0
means the same proportions and 0.0 means no category in common.
"""

from __future__ import annotations

import hashlib
import threading
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Set

from medguard.core.findings import CATEGORY_ORDER, Finding, PhiCategory
from medguard.core.results import FileFingerprintLink, Fingerprint, utc_now

DEFAULT_BUCKETS = 10


def category_profile(findings: Sequence[Finding]) -> Dict[PhiCategory, float]:
    """Share of total occurrences held by each category."""
    totals: Dict[PhiCategory, int] = defaultdict(int)
    for finding in findings:
        totals[finding.category] += finding.occurrences
    grand_total = sum(totals.values())
    if not grand_total:
        return {}
    return {category: count / grand_total for category, count in totals.items()}


def similarity(profile: Dict[PhiCategory, float], fingerprint: Fingerprint) -> float:
    """How closely *profile* matches the fingerprint's representative profile."""
    reference = fingerprint.profile_dict()
    if not profile and not reference:
        return 1.0
    categories = set(profile) | set(reference)
    distance = sum(abs(profile.get(c, 0.0) - reference.get(c, 0.0)) for c in categories)
    return round(max(0.0, 1.0 - distance / 2), 4)


class FingerprintEngine:
    """Derives fingerprints from findings. Stateless and safe to share."""

    def __init__(self, buckets: int = DEFAULT_BUCKETS) -> None:
        if buckets < 1:
            raise ValueError("buckets must be >= 1")
        self.buckets = buckets

    def shape_key(self, profile: Dict[PhiCategory, float]) -> str:
        parts = [
            f"{category.value}={int(profile[category] * self.buckets + 0.5)}"
            for category in sorted(profile, key=CATEGORY_ORDER.__getitem__)
        ]
        return "SHAPE|" + ";".join(parts)

    def fingerprint(
        self, findings: Sequence[Finding], content: Optional[str] = None
    ) -> Optional[Fingerprint]:
        """
        Compute the fingerprint for one file.

        Args:
            findings: The file's findings
            content: The content the caller supplied, if any

        Returns:
            A Fingerprint, or None when there is neither PHI nor content
        """
        if findings:
            profile = category_profile(findings)
            digest = hashlib.sha256(self.shape_key(profile).encode("utf-8")).hexdigest()
            lead = max(findings, key=lambda f: (f.severity.rank, f.occurrences))
            return Fingerprint(
                hash=digest,
                categories=frozenset(profile),
                representative_sample=lead.masked_sample,
                profile=tuple(
                    sorted(profile.items(), key=lambda item: CATEGORY_ORDER[item[0]])
                ),
            )

        if content and content.strip():
            normalised = " ".join(content.lower().split())
            digest = hashlib.sha256(("CONTENT|" + normalised).encode("utf-8")).hexdigest()
            return Fingerprint(hash=digest, categories=frozenset(), representative_sample=None)

        return None


@dataclass
class FingerprintRecord:
    """Organisation-wide bookkeeping for one fingerprint."""

    fingerprint: Fingerprint
    occurrence_count: int = 0
    first_seen_at: datetime = field(default_factory=utc_now)
    last_seen_at: datetime = field(default_factory=utc_now)

    @property
    def hash(self) -> str:
        return self.fingerprint.hash


class FingerprintIndex:
    """In-memory registry of fingerprints and the files linked to them."""

    def __init__(self) -> None:
        self._records: Dict[str, FingerprintRecord] = {}
        self._files_by_hash: Dict[str, Set[str]] = defaultdict(set)
        self._links_by_file: Dict[str, List[FileFingerprintLink]] = defaultdict(list)
        self._lock = threading.Lock()

    def link(
        self,
        file_id: str,
        fingerprint: Fingerprint,
        findings: Sequence[Finding] = (),
    ) -> FileFingerprintLink:
        """
        Relate *file_id* to *fingerprint*, creating the shared record if new.

        Linking the same file to the same fingerprint twice returns the
        existing link and does not bump the occurrence count.
        """
        with self._lock:
            record = self._records.get(fingerprint.hash)
            if record is None:
                record = FingerprintRecord(fingerprint=fingerprint)
                self._records[fingerprint.hash] = record

            for existing in self._links_by_file[file_id]:
                if existing.fingerprint_hash == fingerprint.hash:
                    return existing

            if findings:
                score = similarity(category_profile(findings), record.fingerprint)
            else:
                score = 1.0
            link = FileFingerprintLink(
                file_id=file_id,
                fingerprint_hash=fingerprint.hash,
                similarity=score,
            )
            record.occurrence_count += 1
            record.last_seen_at = utc_now()
            self._files_by_hash[fingerprint.hash].add(file_id)
            self._links_by_file[file_id].append(link)
            return link

    def record(self, fingerprint_hash: str) -> Optional[FingerprintRecord]:
        return self._records.get(fingerprint_hash)

    def links_for(self, file_id: str) -> List[FileFingerprintLink]:
        return list(self._links_by_file.get(file_id, ()))

    def duplicates_of(self, file_id: str) -> List[str]:
        """Every other file sharing at least one fingerprint with *file_id*."""
        with self._lock:
            matches: Set[str] = set()
            for link in self._links_by_file.get(file_id, ()):
                matches |= self._files_by_hash[link.fingerprint_hash]
        matches.discard(file_id)
        return sorted(matches)

    def __len__(self) -> int:
        return len(self._records)
