"""
mlcheck - Findings and Reports

A Finding is one immutable fact about a dataset (missing values, an outlier,
class imbalance, drift, duplicate rows). A Report is the ordered sequence of
Findings from one validation run together with the statistics it was derived
from.

Report order: column position first (dataset-level findings use position -1
and come first), then finding kind in FindingKind declaration order, then the
order each detector emitted them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from mlcheck.validation.statistics import DatasetStats

DATASET_COLUMN = "__all__"
DATASET_POSITION = -1


class Severity(StrEnum):
    """Finding severity level."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_SEVERITY_RANK = {Severity.INFO: 0, Severity.WARNING: 1, Severity.CRITICAL: 2}


class FindingKind(StrEnum):
    """Type of finding. Declaration order is report order within a column."""

    DUPLICATE_ROWS = "duplicate_rows"
    MISSING_VALUES = "missing_values"
    OUTLIER = "outlier"
    CLASS_IMBALANCE = "class_imbalance"
    DRIFT = "drift"


_KIND_ORDER = {kind: index for index, kind in enumerate(FindingKind)}


class SkipReason(StrEnum):
    """Why a detector or comparison declined to run. Never an error."""

    INSUFFICIENT_DATA = "insufficient_data"
    NOT_APPLICABLE = "not_applicable"
    SCHEMA_MISMATCH = "schema_mismatch"
    MISSING_IN_TRAIN = "missing_in_train"
    MISSING_IN_TEST = "missing_in_test"


@dataclass(frozen=True)
class Finding:
    """Individual validation finding."""

    kind: FindingKind
    column: str
    position: int
    severity: Severity
    score: float
    message: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "payload", MappingProxyType(dict(self.payload)))

    def to_dict(self) -> dict[str, Any]:
        """Convert finding to dictionary."""
        return {
            "kind": str(self.kind),
            "column": self.column,
            "position": self.position,
            "severity": str(self.severity),
            "score": self.score,
            "message": self.message,
            "payload": dict(self.payload),
        }


@dataclass(frozen=True)
class SkippedCheck:
    """A check that declined to produce findings for a column."""

    column: str
    check: str
    reason: SkipReason
    detail: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "column": self.column,
            "check": self.check,
            "reason": str(self.reason),
            "detail": self.detail,
        }


def order_findings(findings: Iterable[Finding]) -> tuple[Finding, ...]:
    """Sort findings into report order; emission order breaks ties."""
    return tuple(sorted(findings, key=lambda f: (f.position, _KIND_ORDER[f.kind])))


@dataclass(frozen=True)
class Report:
    """Result of one validation run."""

    findings: tuple[Finding, ...]
    train_stats: DatasetStats
    test_stats: DatasetStats | None = None
    skipped: tuple[SkippedCheck, ...] = ()

    @property
    def has_findings(self) -> bool:
        """Check if any findings were produced."""
        return len(self.findings) > 0

    @property
    def has_critical(self) -> bool:
        """Check if any critical findings were produced."""
        return any(f.severity == Severity.CRITICAL for f in self.findings)

    @property
    def critical_findings(self) -> list[Finding]:
        """Get list of critical findings."""
        return [f for f in self.findings if f.severity == Severity.CRITICAL]

    @property
    def warning_findings(self) -> list[Finding]:
        """Get list of warning findings."""
        return [f for f in self.findings if f.severity == Severity.WARNING]

    @property
    def max_severity(self) -> Severity | None:
        """Highest severity in the report, or None when it is empty."""
        if not self.findings:
            return None
        return max((f.severity for f in self.findings), key=lambda s: s.rank)

    @property
    def findings_by_kind(self) -> dict[FindingKind, list[Finding]]:
        """Group findings by kind."""
        result: dict[FindingKind, list[Finding]] = {}
        for finding in self.findings:
            result.setdefault(finding.kind, []).append(finding)
        return result

    def findings_for(self, column: str) -> list[Finding]:
        """Findings for a single column, in report order."""
        return [f for f in self.findings if f.column == column]

    def to_dict(self) -> dict[str, Any]:
        """Convert report to dictionary for JSON serialization."""
        return {
            "findings": [f.to_dict() for f in self.findings],
            "skipped": [s.to_dict() for s in self.skipped],
            "train_stats": self.train_stats.to_dict(),
            "test_stats": self.test_stats.to_dict() if self.test_stats is not None else None,
        }
