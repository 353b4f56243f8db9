"""
Tests for Imbalance Detector

Tests majority/minority ratio thresholds on label columns.
"""

import pytest

from mlcheck.validation.findings import FindingKind, Severity, SkipReason
from mlcheck.validation.imbalance_detector import ImbalanceDetector
from mlcheck.validation.statistics import (
    ColumnAccumulator,
    ColumnKind,
    ColumnSpec,
    ColumnStats,
)


def label_stats(counts: dict[str, int], cap: int = 1000) -> ColumnStats:
    accumulator = ColumnAccumulator(
        ColumnSpec("label", ColumnKind.CATEGORICAL, 0), category_cardinality_cap=cap
    )
    for category, count in counts.items():
        for _ in range(count):
            accumulator.observe(category)
    return accumulator.finalize()


def test_detector_initialization(test_config):
    detector = ImbalanceDetector(test_config)

    assert detector.warning_ratio == test_config.validation.imbalance_warning_ratio
    assert detector.critical_ratio == test_config.validation.imbalance_critical_ratio


def test_ratio_below_threshold_no_finding(test_config):
    """900:100 (ratio 9) is under the default 10:1 threshold."""
    assert ImbalanceDetector(test_config).detect(label_stats({"A": 900, "B": 100})) == []


def test_ratio_warning(test_config):
    """950:50 (ratio 19) is a warning."""
    findings = ImbalanceDetector(test_config).detect(label_stats({"A": 950, "B": 50}))

    assert len(findings) == 1
    finding = findings[0]
    assert finding.kind == FindingKind.CLASS_IMBALANCE
    assert finding.severity == Severity.WARNING
    assert finding.score == pytest.approx(19.0)
    assert finding.payload["majority_class"] == "A"
    assert finding.payload["minority_class"] == "B"


def test_ratio_critical(test_config):
    """999:1 (ratio 999) is critical."""
    findings = ImbalanceDetector(test_config).detect(label_stats({"A": 999, "B": 1}))

    assert findings[0].severity == Severity.CRITICAL
    assert findings[0].score == pytest.approx(999.0)


def test_ratio_exactly_at_threshold_no_finding(test_config):
    assert ImbalanceDetector(test_config).detect(label_stats({"A": 100, "B": 10})) == []


def test_minority_is_least_frequent_of_many(test_config):
    findings = ImbalanceDetector(test_config).detect(
        label_stats({"A": 500, "B": 300, "C": 20, "D": 400})
    )

    assert findings[0].payload["minority_class"] == "C"
    assert findings[0].payload["num_classes"] == 4
    assert findings[0].score == pytest.approx(25.0)


def test_single_category_not_applicable(test_config):
    detector = ImbalanceDetector(test_config)
    stats = label_stats({"A": 1000})

    assert detector.skip_reason(stats) == SkipReason.NOT_APPLICABLE
    assert detector.detect(stats) == []


def test_numeric_column_not_applicable(test_config):
    accumulator = ColumnAccumulator(ColumnSpec("label", ColumnKind.NUMERIC, 0))
    for v in [0, 1, 1, 1]:
        accumulator.observe(v)

    assert ImbalanceDetector(test_config).skip_reason(accumulator.finalize()) == (
        SkipReason.NOT_APPLICABLE
    )


def test_overflow_bucket_is_excluded(test_config):
    """The overflow bucket never counts as the minority or majority class."""
    stats = label_stats({"A": 50, "B": 40, "C": 1, "D": 1}, cap=2)

    assert stats.other_count == 2
    assert ImbalanceDetector(test_config).detect(stats) == []


def test_literal_other_category_is_a_class(test_config):
    """A real "__other__" label counts when nothing overflowed."""
    stats = label_stats({"__other__": 999, "B": 1})

    assert stats.other_count == 0
    findings = ImbalanceDetector(test_config).detect(stats)

    assert findings[0].severity == Severity.CRITICAL
    assert findings[0].payload["majority_class"] == "__other__"


def test_custom_thresholds(make_config):
    config = make_config(
        validation={"imbalance_warning_ratio": 2.0, "imbalance_critical_ratio": 5.0}
    )
    detector = ImbalanceDetector(config)

    assert detector.detect(label_stats({"A": 30, "B": 10}))[0].severity == Severity.WARNING
    assert detector.detect(label_stats({"A": 60, "B": 10}))[0].severity == Severity.CRITICAL
