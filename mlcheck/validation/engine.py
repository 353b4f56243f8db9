"""
mlcheck - Validation Engine

Orchestrates one validation run:
1. Bind column specs to the incoming rows (one accumulator per column)
2. Stream every row into every column's accumulator, then finalize
3. Run missing value, outlier and (label columns) imbalance detectors
4. If a test dataset is supplied, compare every shared column for drift
5. Assemble the findings into a Report ordered by column position, then kind

A row whose field count disagrees with the column specs aborts the run with
SchemaViolation; no partial report is produced. The engine keeps no state
between runs, so one instance can validate independent dataset pairs.

Usage:
    engine = ValidationEngine(config, label_columns={"churned"})

    report = engine.validate(train_specs, train_rows, test_specs, test_rows)
    if report.has_critical:
        for finding in report.critical_findings:
            print(f"CRITICAL: {finding.message}")
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Collection, Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any, TypeVar

import pandas as pd

from mlcheck.shared.config import Settings, get_config
from mlcheck.validation.anomaly_detector import (
    DuplicateRowDetector,
    MissingValueDetector,
    OutlierDetector,
)
from mlcheck.validation.drift_detector import DriftComparator
from mlcheck.validation.errors import RunCancelled, SchemaViolation
from mlcheck.validation.findings import Finding, Report, SkippedCheck, order_findings
from mlcheck.validation.imbalance_detector import ImbalanceDetector
from mlcheck.validation.statistics import (
    ColumnAccumulator,
    ColumnKind,
    ColumnSpec,
    ColumnStats,
    DatasetStats,
)

logger = logging.getLogger(__name__)

Row = Sequence[Any]

T = TypeVar("T")
R = TypeVar("R")


def bind_specs(
    specs: Iterable[ColumnSpec],
    kind_overrides: Mapping[str, ColumnKind] | None = None,
) -> list[ColumnSpec]:
    """
    Validate a column spec set and apply kind overrides.

    Args:
        specs: Column specs in any order
        kind_overrides: Column name -> kind replacing the declared kind

    Returns:
        Specs ordered by position

    Raises:
        ValueError: If names repeat or positions are not 0..n-1
    """
    ordered = sorted(specs, key=lambda s: s.position)

    names = [s.name for s in ordered]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ValueError(f"Duplicate column names in specs: {duplicates}")

    positions = [s.position for s in ordered]
    if positions != list(range(len(ordered))):
        raise ValueError(f"Column positions must be 0..{len(ordered) - 1}, got {positions}")

    overrides = kind_overrides or {}
    return [
        ColumnSpec(s.name, ColumnKind(overrides.get(s.name, s.kind)), s.position) for s in ordered
    ]


class ValidationEngine:
    """
    Run statistics collection, detectors and drift comparison for one
    dataset or a train/test pair.
    """

    def __init__(
        self,
        config: Settings | None = None,
        label_columns: Collection[str] | None = None,
        kind_overrides: Mapping[str, ColumnKind] | None = None,
    ):
        """
        Initialize validation engine.

        Args:
            config: Configuration object (uses default if not provided)
            label_columns: Columns eligible for imbalance detection (defaults to
                config.validation.label_columns). Label columns are accumulated
                as categorical unless kind_overrides says otherwise.
            kind_overrides: Column name -> kind replacing the declared kind
        """
        self.config = config or get_config()

        if label_columns is None:
            label_columns = self.config.validation.label_columns
        self.label_columns = frozenset(label_columns)

        overrides = {name: ColumnKind(kind) for name, kind in (kind_overrides or {}).items()}
        for name in self.label_columns:
            overrides.setdefault(name, ColumnKind.CATEGORICAL)
        self.kind_overrides = overrides

        self.max_workers = self.config.engine.max_workers
        self.missing_detector = MissingValueDetector(self.config)
        self.outlier_detector = OutlierDetector(self.config)
        self.imbalance_detector = ImbalanceDetector(self.config)
        self.drift_comparator = DriftComparator(self.config)

    def collect(
        self,
        specs: Iterable[ColumnSpec],
        rows: Iterable[Row],
        dataset: str = "train",
        cancel: threading.Event | None = None,
    ) -> DatasetStats:
        """
        Stream rows into per-column accumulators and finalize them.

        Args:
            specs: Column specs for the rows
            rows: Row source; each row is a sequence with one value per column
            dataset: Label used in logs and in the resulting DatasetStats
            cancel: Checked at every row boundary

        Returns:
            Finalized DatasetStats

        Raises:
            SchemaViolation: If a row's field count differs from the spec width
            RunCancelled: If cancel is set before the pass completes
        """
        return self._collect(specs, rows, dataset, cancel, duplicates=None)

    def validate(
        self,
        train_specs: Iterable[ColumnSpec],
        train_rows: Iterable[Row],
        test_specs: Iterable[ColumnSpec] | None = None,
        test_rows: Iterable[Row] | None = None,
        cancel: threading.Event | None = None,
    ) -> Report:
        """
        Validate a training dataset and, optionally, its drift against a test set.

        Args:
            train_specs: Column specs of the training rows
            train_rows: Training row source
            test_specs: Column specs of the test rows (with test_rows)
            test_rows: Test row source (with test_specs)
            cancel: Checked at every row boundary of both passes

        Returns:
            Report with ordered findings and the collected statistics

        Raises:
            SchemaViolation: If any row has the wrong field count
            RunCancelled: If cancel is set during collection
        """
        if (test_specs is None) != (test_rows is None):
            raise ValueError("test_specs and test_rows must be supplied together")

        duplicates = (
            DuplicateRowDetector(self.config) if self.config.validation.detect_duplicates else None
        )
        train_stats = self._collect(train_specs, train_rows, "train", cancel, duplicates)
        test_stats = None
        if test_specs is not None:
            test_stats = self._collect(test_specs, test_rows, "test", cancel, duplicates=None)

        for name in sorted(self.label_columns - set(train_stats.columns)):
            logger.warning(
                f"Label column '{name}' not found in train dataset",
                extra={"column": name},
            )

        findings: list[Finding] = []
        skipped: list[SkippedCheck] = []

        if duplicates is not None:
            findings.extend(duplicates.detect())

        for column_findings, column_skipped in self._map(self._check_column, train_stats.ordered()):
            findings.extend(column_findings)
            skipped.extend(column_skipped)

        if test_stats is not None:
            columns = [c.name for c in train_stats.ordered()]
            columns += [c.name for c in test_stats.ordered() if c.name not in train_stats.columns]

            def compare(column: str) -> tuple[Finding | None, SkippedCheck | None]:
                return self.drift_comparator.compare_column(train_stats, test_stats, column)

            for finding, skip in self._map(compare, columns):
                if finding is not None:
                    findings.append(finding)
                if skip is not None:
                    skipped.append(skip)

        report = Report(
            findings=order_findings(findings),
            train_stats=train_stats,
            test_stats=test_stats,
            skipped=tuple(skipped),
        )

        logger.info(
            f"Validation complete: {len(report.findings)} findings "
            f"({len(report.critical_findings)} critical, {len(report.warning_findings)} warnings)",
            extra={
                "total_findings": len(report.findings),
                "critical_count": len(report.critical_findings),
                "warning_count": len(report.warning_findings),
                "skipped_checks": len(report.skipped),
            },
        )

        return report

    def validate_frames(
        self,
        train_df: pd.DataFrame,
        test_df: pd.DataFrame | None = None,
        cancel: threading.Event | None = None,
    ) -> Report:
        """Validate pandas DataFrames, inferring column specs from their dtypes."""
        from mlcheck.sources import infer_column_specs, iter_rows

        test_specs = test_rows = None
        if test_df is not None:
            test_specs = infer_column_specs(test_df)
            test_rows = iter_rows(test_df)

        return self.validate(
            infer_column_specs(train_df),
            iter_rows(train_df),
            test_specs,
            test_rows,
            cancel=cancel,
        )

    # =========================================================================
    # Private Methods
    # =========================================================================

    def _collect(
        self,
        specs: Iterable[ColumnSpec],
        rows: Iterable[Row],
        dataset: str,
        cancel: threading.Event | None,
        duplicates: DuplicateRowDetector | None,
    ) -> DatasetStats:
        bound = bind_specs(specs, self.kind_overrides)
        accumulators = [ColumnAccumulator.from_config(spec, self.config) for spec in bound]
        width = len(accumulators)

        logger.info(
            f"Collecting statistics for {dataset}",
            extra={"dataset": dataset, "columns": width},
        )

        row_count = 0
        for row_index, row in enumerate(rows):
            if cancel is not None and cancel.is_set():
                raise RunCancelled(row_index, dataset)
            if len(row) != width:
                raise SchemaViolation(row_index, width, len(row), dataset)
            for accumulator, value in zip(accumulators, row):
                accumulator.observe(value)
            if duplicates is not None:
                duplicates.observe(row)
            row_count += 1

        if cancel is not None and cancel.is_set():
            raise RunCancelled(row_count, dataset)

        stats = DatasetStats(
            dataset=dataset,
            row_count=row_count,
            columns={acc.spec.name: acc.finalize() for acc in accumulators},
        )

        logger.info(
            f"Collected statistics for {dataset}: {row_count} rows, {width} columns",
            extra={"dataset": dataset, "rows": row_count, "columns": width},
        )

        return stats

    def _check_column(self, stats: ColumnStats) -> tuple[list[Finding], list[SkippedCheck]]:
        """Run the single-dataset detectors on one column."""
        is_label = stats.name in self.label_columns
        findings = self.missing_detector.detect(stats, is_label=is_label)
        skipped = []

        if stats.is_numeric:
            reason = self.outlier_detector.skip_reason(stats)
            if reason is None:
                findings.extend(self.outlier_detector.detect(stats))
            else:
                skipped.append(SkippedCheck(stats.name, "outlier", reason))

        if is_label:
            reason = self.imbalance_detector.skip_reason(stats)
            if reason is None:
                findings.extend(self.imbalance_detector.detect(stats))
            else:
                skipped.append(SkippedCheck(stats.name, "class_imbalance", reason))

        for skip in skipped:
            logger.debug(f"Skipped {skip.check} for column {skip.column}: {skip.reason}")

        return findings, skipped

    def _map(self, func: Callable[[T], R], items: Iterable[T]) -> list[R]:
        """Apply func to every item, on a worker pool when max_workers > 1."""
        items = list(items)
        workers = min(self.max_workers, len(items))
        if workers <= 1:
            return [func(item) for item in items]
        # Workers only read finalized, immutable statistics
        with ThreadPoolExecutor(max_workers=workers) as executor:
            return list(executor.map(func, items))


# =============================================================================
# Convenience Functions
# =============================================================================


def validate_dataset(
    specs: Iterable[ColumnSpec],
    rows: Iterable[Row],
    test_specs: Iterable[ColumnSpec] | None = None,
    test_rows: Iterable[Row] | None = None,
    config: Settings | None = None,
    label_columns: Collection[str] | None = None,
) -> Report:
    """
    Convenience function to validate rows in one call.

    Args:
        specs: Column specs of the training rows
        rows: Training row source
        test_specs: Column specs of the test rows
        test_rows: Test row source
        config: Configuration object
        label_columns: Columns eligible for imbalance detection

    Returns:
        Report
    """
    engine = ValidationEngine(config, label_columns=label_columns)
    return engine.validate(specs, rows, test_specs, test_rows)


def validate_dataframes(
    train_df: pd.DataFrame,
    test_df: pd.DataFrame | None = None,
    config: Settings | None = None,
    label_columns: Collection[str] | None = None,
    kind_overrides: Mapping[str, ColumnKind] | None = None,
) -> Report:
    """
    Convenience function to validate pandas DataFrames.

    Args:
        train_df: Training data
        test_df: Optional held-out/test data for drift comparison
        config: Configuration object
        label_columns: Columns eligible for imbalance detection
        kind_overrides: Column name -> kind replacing the inferred kind

    Returns:
        Report
    """
    engine = ValidationEngine(config, label_columns=label_columns, kind_overrides=kind_overrides)
    return engine.validate_frames(train_df, test_df)
