"""
Tests for Drift Comparator

Tests PSI calculation and train/test comparison of numeric and categorical columns.
"""

import numpy as np
import pytest

from mlcheck.shared.config import PSIConfig
from mlcheck.validation.drift_detector import (
    DriftComparator,
    calculate_psi,
    check_drift,
)
from mlcheck.validation.errors import SchemaMismatch
from mlcheck.validation.findings import FindingKind, Severity, SkipReason
from mlcheck.validation.statistics import (
    ColumnAccumulator,
    ColumnKind,
    ColumnSpec,
    DatasetStats,
)


def column_stats(values, kind=ColumnKind.NUMERIC, name="feature", position=0):
    accumulator = ColumnAccumulator(ColumnSpec(name, kind, position))
    for v in values:
        accumulator.observe(v)
    return accumulator.finalize()


def dataset(name, *columns):
    row_count = max((c.rows for c in columns), default=0)
    return DatasetStats(dataset=name, row_count=row_count, columns={c.name: c for c in columns})


@pytest.fixture
def comparator(test_config):
    return DriftComparator(test_config)


def test_comparator_initialization(test_config):
    comparator = DriftComparator(test_config)

    assert comparator.psi_warning_threshold == 0.1
    assert comparator.psi_critical_threshold == 0.25
    assert comparator.bin_count == 10
    assert comparator.epsilon == pytest.approx(1e-4)


def test_calculate_psi_identical_distributions():
    assert calculate_psi([0.25, 0.25, 0.5], [0.25, 0.25, 0.5]) == 0.0


def test_calculate_psi_known_value():
    """PSI of (0.5, 0.5) vs (0.25, 0.75) matches the closed form."""
    expected = (0.25 - 0.5) * np.log(0.25 / 0.5) + (0.75 - 0.5) * np.log(0.75 / 0.5)

    assert calculate_psi([0.5, 0.5], [0.25, 0.75]) == pytest.approx(expected)


def test_calculate_psi_floors_zero_proportions():
    psi = calculate_psi([1.0, 0.0], [0.0, 1.0], epsilon=1e-4)

    assert np.isfinite(psi)
    assert psi == pytest.approx(2 * (1 - 1e-4) * np.log(1e4))


def test_identical_numeric_samples_no_drift(comparator, rng):
    values = rng.normal(50, 10, 2000).tolist()
    train = column_stats(values)
    test = column_stats(values)

    assert comparator.compare(train, test) is None


def test_disjoint_constant_columns_are_critical(comparator):
    """Train all 0 and test all 100 fall in different bins."""
    train = column_stats([0.0] * 200)
    test = column_stats([100.0] * 200)

    finding = comparator.compare(train, test)

    assert finding is not None
    assert finding.kind == FindingKind.DRIFT
    assert finding.severity == Severity.CRITICAL
    assert finding.score > 0.25
    assert finding.payload["bin_edges"] == [0.0]


def test_shifted_distribution_is_detected(comparator, rng):
    train = column_stats(rng.normal(0, 1, 5000).tolist())
    test = column_stats(rng.normal(1, 1, 5000).tolist())

    finding = comparator.compare(train, test)

    assert finding is not None
    assert finding.severity == Severity.CRITICAL
    assert finding.payload["psi"] == finding.score
    assert finding.payload["ks_pvalue"] < 0.01
    assert len(finding.payload["train_pct"]) == len(finding.payload["bin_edges"]) + 1
    assert sum(finding.payload["train_pct"]) == pytest.approx(1.0)
    assert finding.payload["top_contributors"]


def test_psi_positive_for_either_shift_direction(comparator, rng):
    """PSI is never negative regardless of the shift direction."""
    train = column_stats(rng.normal(0, 1, 3000).tolist())
    lower = column_stats(rng.normal(-0.5, 1, 3000).tolist())
    higher = column_stats(rng.normal(0.5, 1, 3000).tolist())

    for test in (lower, higher):
        finding = comparator.compare(train, test)
        assert finding is not None
        assert finding.score > 0


def test_categorical_unseen_category_drift(comparator):
    train = column_stats(["A"] * 50 + ["B"] * 50, kind=ColumnKind.CATEGORICAL)
    test = column_stats(["A"] * 50 + ["B"] * 50 + ["C"] * 50, kind=ColumnKind.CATEGORICAL)

    finding = comparator.compare(train, test)

    assert finding is not None
    assert finding.severity == Severity.CRITICAL
    assert finding.payload["unseen_in_train"] == ["C"]
    assert finding.payload["categories"] == ["A", "B", "C"]
    assert finding.payload["top_contributors"][0]["bin"] == "C"
    assert "chi2_pvalue" in finding.payload


def test_categorical_same_distribution_no_drift(comparator):
    train = column_stats(["A"] * 60 + ["B"] * 40, kind=ColumnKind.CATEGORICAL)
    test = column_stats(["A"] * 30 + ["B"] * 20, kind=ColumnKind.CATEGORICAL)

    assert comparator.compare(train, test) is None


def test_kind_mismatch_raises(comparator):
    train = column_stats([1, 2, 3])
    test = column_stats(["a", "b"], kind=ColumnKind.CATEGORICAL)

    with pytest.raises(SchemaMismatch) as exc_info:
        comparator.compare(train, test)
    assert exc_info.value.column == "feature"


def test_name_mismatch_raises(comparator):
    train = column_stats([1, 2, 3], name="a")
    test = column_stats([1, 2, 3], name="b")

    with pytest.raises(SchemaMismatch):
        comparator.compare(train, test)


def test_no_valid_rows_skips_comparison(comparator):
    train = column_stats([1.0, 2.0, 3.0])
    test = column_stats([None, None])

    assert comparator.skip_reason(train, test) == SkipReason.INSUFFICIENT_DATA
    assert comparator.compare(train, test) is None


def test_compare_column_missing_on_one_side(comparator):
    train = dataset("train", column_stats([1, 2], name="only_train"))
    test = dataset("test", column_stats([1, 2], name="only_test"))

    _, skipped = comparator.compare_column(train, test, "only_train")
    assert skipped.reason == SkipReason.MISSING_IN_TEST

    _, skipped = comparator.compare_column(train, test, "only_test")
    assert skipped.reason == SkipReason.MISSING_IN_TRAIN


def test_compare_column_absorbs_schema_mismatch(comparator):
    train = dataset("train", column_stats([1, 2, 3], name="x"))
    test = dataset("test", column_stats(["a", "b"], kind=ColumnKind.CATEGORICAL, name="x"))

    finding, skipped = comparator.compare_column(train, test, "x")

    assert finding is None
    assert skipped.reason == SkipReason.SCHEMA_MISMATCH
    assert skipped.check == "drift"
    assert skipped.detail


def test_custom_thresholds(make_config, rng):
    config = make_config(drift={"psi": PSIConfig(warning=0.001, critical=10.0)})
    comparator = DriftComparator(config)

    train = column_stats(rng.normal(0, 1, 3000).tolist())
    test = column_stats(rng.normal(0.3, 1, 3000).tolist())

    finding = comparator.compare(train, test)
    assert finding is not None
    assert finding.severity == Severity.WARNING


def test_check_drift_convenience_function(test_config, rng):
    train = dataset(
        "train",
        column_stats(rng.normal(0, 1, 1000).tolist(), name="a", position=0),
        column_stats([1.0] * 1000, name="b", position=1),
    )
    test = dataset(
        "test",
        column_stats(rng.normal(3, 1, 1000).tolist(), name="a", position=0),
        column_stats([1.0] * 1000, name="b", position=1),
    )

    findings = check_drift(train, test, test_config)

    assert [f.column for f in findings] == ["a"]
