"""
mlcheck - Validation Errors

Fatal conditions raised by the validation engine. Detectors and the drift
comparator never raise for thin or inapplicable data; they decline with a
SkipReason instead (see mlcheck.validation.findings).
"""

from __future__ import annotations


class MLCheckError(Exception):
    """Base class for all fatal mlcheck errors."""


class SchemaViolation(MLCheckError):
    """Raised when a row's field count disagrees with the bound column specs."""

    def __init__(self, row_index: int, expected: int, actual: int, dataset: str | None = None):
        self.row_index = row_index
        self.expected = expected
        self.actual = actual
        self.dataset = dataset
        where = f" in {dataset}" if dataset else ""
        super().__init__(
            f"Row {row_index}{where} has {actual} fields, expected {expected}"
        )


class SchemaMismatch(MLCheckError):
    """Raised when drift is requested across columns of different names or kinds."""

    def __init__(
        self,
        column: str,
        train_kind: str,
        test_kind: str,
        test_column: str | None = None,
    ):
        self.column = column
        self.train_kind = train_kind
        self.test_kind = test_kind
        self.test_column = test_column or column
        if self.test_column != column:
            message = f"Cannot compare column '{column}' with column '{self.test_column}'"
        else:
            message = (
                f"Column '{column}' is {train_kind} in train but {test_kind} in test"
            )
        super().__init__(message)


class AccumulatorClosed(MLCheckError):
    """Raised when a value is observed after the accumulator was finalized."""

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"Accumulator for column '{column}' is already finalized")


class RunCancelled(MLCheckError):
    """Raised when a validation run is cancelled between rows."""

    def __init__(self, row_index: int, dataset: str | None = None):
        self.row_index = row_index
        self.dataset = dataset
        where = f" {dataset}" if dataset else ""
        super().__init__(f"Validation run over{where} cancelled at row {row_index}")
