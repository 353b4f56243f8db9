"""
mlcheck - Validation System

Statistical validation components for tabular datasets:
- Streaming column statistics
- Missing value, outlier and duplicate row detection
- Class imbalance detection for label columns
- Train/test drift comparison (PSI)

Components:
    - ColumnAccumulator: Welford mean/variance, reservoir sample, capped category counts
    - MissingValueDetector / OutlierDetector / DuplicateRowDetector: single-dataset checks
    - ImbalanceDetector: majority/minority ratio of label columns
    - DriftComparator: PSI between train and test column statistics
    - ValidationEngine: runs everything and assembles the Report
"""

from mlcheck.validation.anomaly_detector import (
    DuplicateRowDetector,
    MissingValueDetector,
    OutlierDetector,
    detect_anomalies,
)
from mlcheck.validation.drift_detector import DriftComparator, calculate_psi, check_drift
from mlcheck.validation.engine import (
    ValidationEngine,
    bind_specs,
    validate_dataframes,
    validate_dataset,
)
from mlcheck.validation.errors import (
    AccumulatorClosed,
    MLCheckError,
    RunCancelled,
    SchemaMismatch,
    SchemaViolation,
)
from mlcheck.validation.findings import (
    Finding,
    FindingKind,
    Report,
    Severity,
    SkippedCheck,
    SkipReason,
)
from mlcheck.validation.imbalance_detector import ImbalanceDetector
from mlcheck.validation.statistics import (
    OTHER_BUCKET,
    ColumnAccumulator,
    ColumnKind,
    ColumnSpec,
    ColumnStats,
    DatasetStats,
)

__all__ = [
    # Statistics
    "ColumnAccumulator",
    "ColumnKind",
    "ColumnSpec",
    "ColumnStats",
    "DatasetStats",
    "OTHER_BUCKET",
    # Findings
    "Finding",
    "FindingKind",
    "Report",
    "Severity",
    "SkippedCheck",
    "SkipReason",
    # Errors
    "MLCheckError",
    "SchemaViolation",
    "SchemaMismatch",
    "AccumulatorClosed",
    "RunCancelled",
    # Anomaly Detection
    "MissingValueDetector",
    "OutlierDetector",
    "DuplicateRowDetector",
    "detect_anomalies",
    # Class Imbalance
    "ImbalanceDetector",
    # Drift Detection
    "DriftComparator",
    "calculate_psi",
    "check_drift",
    # Engine
    "ValidationEngine",
    "bind_specs",
    "validate_dataset",
    "validate_dataframes",
]
