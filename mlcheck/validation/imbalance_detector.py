"""
mlcheck - Class Imbalance Detector

Flag skewed label distributions in caller-designated label columns by the
ratio of the most frequent category's count to the least frequent one.

Only exactly counted categories take part. Overflow past the cardinality cap
lives in ``other_count``, apart from ``category_counts``, so it never enters the
ratio; a real category that happens to be named "__other__" is an ordinary
class.

Usage:
    detector = ImbalanceDetector(config)
    findings = detector.detect(dataset_stats.get("label"))
"""

from __future__ import annotations

from mlcheck.shared.config import Settings, get_config
from mlcheck.validation.findings import Finding, FindingKind, Severity, SkipReason
from mlcheck.validation.statistics import ColumnKind, ColumnStats


class ImbalanceDetector:
    """Detect class imbalance in categorical label columns."""

    def __init__(self, config: Settings | None = None):
        """
        Initialize imbalance detector.

        Args:
            config: Configuration object (uses default if not provided)
        """
        self.config = config or get_config()
        self.warning_ratio = self.config.validation.imbalance_warning_ratio
        self.critical_ratio = self.config.validation.imbalance_critical_ratio

    def _class_counts(self, stats: ColumnStats) -> dict[str, int]:
        return {category: count for category, count in stats.category_counts.items() if count > 0}

    def skip_reason(self, stats: ColumnStats) -> SkipReason | None:
        """Return why detection cannot run on this column, or None."""
        if stats.kind != ColumnKind.CATEGORICAL:
            return SkipReason.NOT_APPLICABLE
        if len(self._class_counts(stats)) < 2:
            return SkipReason.NOT_APPLICABLE
        return None

    def detect(self, stats: ColumnStats) -> list[Finding]:
        """
        Detect class imbalance in one label column.

        A max/min ratio above imbalance_warning_ratio is a warning, above
        imbalance_critical_ratio it is critical.
        """
        if self.skip_reason(stats) is not None:
            return []

        counts = self._class_counts(stats)
        majority = min(counts, key=lambda c: (-counts[c], c))
        minority = min(counts, key=lambda c: (counts[c], c))
        ratio = counts[majority] / counts[minority]

        if ratio > self.critical_ratio:
            severity = Severity.CRITICAL
        elif ratio > self.warning_ratio:
            severity = Severity.WARNING
        else:
            return []

        return [
            Finding(
                kind=FindingKind.CLASS_IMBALANCE,
                column=stats.name,
                position=stats.position,
                severity=severity,
                score=ratio,
                message=f"Label '{stats.name}' is imbalanced: '{majority}' outnumbers "
                f"'{minority}' {ratio:.1f}:1",
                payload={
                    "ratio": ratio,
                    "majority_class": majority,
                    "majority_count": counts[majority],
                    "minority_class": minority,
                    "minority_count": counts[minority],
                    "num_classes": len(counts),
                    "cardinality_capped": stats.cardinality_capped,
                },
            )
        ]
