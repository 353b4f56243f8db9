"""
mlcheck - Command Line

Fast ML dataset validation - catch data issues before training.

Usage:
    mlcheck inspect data/train.csv
    mlcheck validate data/train.csv --target label
    mlcheck validate data/train.csv --test data/test.csv --fail-on critical

Exit codes:
    0  validation ran (findings, if any, are below --fail-on)
    1  fatal error: unreadable input or configuration, schema violation,
       cancelled run
    2  findings at or above the --fail-on severity
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

import pandas as pd
from pydantic import ValidationError

from mlcheck.shared.config import Settings, get_config
from mlcheck.sources import read_csv
from mlcheck.validation.engine import ValidationEngine
from mlcheck.validation.errors import MLCheckError
from mlcheck.validation.findings import Report, Severity

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_FINDINGS = 2


def configure_logging(config: Settings) -> None:
    """Set up root logging from the logging configuration section."""
    logging.basicConfig(level=config.logging.level, format=config.logging.format)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mlcheck",
        description="Fast ML dataset validation - catch data issues before training",
    )
    parser.add_argument(
        "--env",
        choices=["dev", "prod"],
        default=None,
        help="Configuration environment (default: MLCHECK_ENVIRONMENT or dev)",
    )
    subcommands = parser.add_subparsers(dest="command", required=True)

    inspect = subcommands.add_parser("inspect", help="Show dataset shape and column types")
    inspect.add_argument("file", help="CSV file with a header row")

    validate = subcommands.add_parser("validate", help="Run the validation checks")
    validate.add_argument("file", help="Training CSV file with a header row")
    validate.add_argument(
        "-t",
        "--target",
        action="append",
        default=None,
        help="Label column to check for class imbalance (repeatable)",
    )
    validate.add_argument("--test", default=None, help="Held-out CSV file to compare for drift")
    validate.add_argument(
        "--fail-on",
        choices=["never", "warning", "critical"],
        default="never",
        help="Exit with status 2 when findings reach this severity",
    )
    return parser


def _size_mb(df: pd.DataFrame) -> float:
    return df.memory_usage(deep=True).sum() / 1_000_000


def inspect_dataset(path: str) -> int:
    """Print rows, columns, memory and per-column dtype."""
    df = read_csv(path)

    print(f"Inspecting: {path}\n")
    print("Dataset Overview")
    print(f"├─ Rows: {len(df)}")
    print(f"├─ Columns: {len(df.columns)}")
    print(f"└─ Memory: {_size_mb(df):.2f} MB")

    print("\nColumns:")
    for name, dtype in df.dtypes.items():
        print(f"├─ {name} ({dtype})")

    return EXIT_OK


def _print_report(report: Report) -> None:
    print("\nFindings:")
    if not report.findings:
        print("└─ No issues found")
    for index, finding in enumerate(report.findings):
        branch = "└─" if index == len(report.findings) - 1 else "├─"
        print(f"{branch} [{finding.severity.upper()}] {finding.message}")

    if report.skipped:
        print("\nSkipped checks:")
        for index, skip in enumerate(report.skipped):
            branch = "└─" if index == len(report.skipped) - 1 else "├─"
            detail = f" ({skip.detail})" if skip.detail else ""
            print(f"{branch} {skip.column}: {skip.check} - {skip.reason}{detail}")

    print(
        f"\nSummary: {len(report.findings)} findings "
        f"({len(report.critical_findings)} critical, {len(report.warning_findings)} warnings)"
    )


def _print_target_summary(report: Report, target: str) -> None:
    """Print type, distinct values and missing count of one label column."""
    print(f"\nTarget Column: {target}")
    stats = report.train_stats.get(target)
    if stats is None:
        print(f"└─ Target column '{target}' not found!")
        return

    capped = "+" if stats.cardinality_capped else ""
    print(f"├─ Type: {stats.kind}")
    print(f"├─ Unique values: {stats.distinct_count}{capped}")
    if stats.missing_count > 0:
        print(f"└─ Missing in target: {stats.missing_count} ({stats.missing_ratio:.1%})")
    else:
        print("└─ No missing values in target")


def validate_files(
    path: str,
    config: Settings,
    targets: Sequence[str] | None = None,
    test_path: str | None = None,
    fail_on: str = "never",
) -> int:
    """
    Validate a CSV file (and optionally drift against a test CSV).

    A target missing from the file is reported under its Target Column
    section; the remaining checks still run and it does not change the
    exit code.
    """
    train_df = read_csv(path)
    test_df = read_csv(test_path) if test_path else None

    print(f"Validating: {path}\n")
    print("Dataset Overview")
    print(f"├─ Shape: {len(train_df)} rows × {len(train_df.columns)} columns")
    print(f"└─ Size: {_size_mb(train_df):.2f} MB")

    engine = ValidationEngine(config, label_columns=targets)
    report = engine.validate_frames(train_df, test_df)
    for target in targets or []:
        _print_target_summary(report, target)
    _print_report(report)

    if fail_on != "never" and report.max_severity is not None:
        if report.max_severity.rank >= Severity(fail_on).rank:
            return EXIT_FINDINGS
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the mlcheck console script."""
    args = build_parser().parse_args(argv)

    try:
        config = get_config(args.env)
        configure_logging(config)
        if args.command == "inspect":
            return inspect_dataset(args.file)
        return validate_files(
            args.file,
            config,
            targets=args.target,
            test_path=args.test,
            fail_on=args.fail_on,
        )
    except (
        MLCheckError,
        FileNotFoundError,
        ValidationError,
        pd.errors.ParserError,
        pd.errors.EmptyDataError,
    ) as e:
        logger.error(f"mlcheck {args.command} failed: {e}", extra={"command": args.command})
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
