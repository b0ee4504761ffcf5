"""
Publish gate for a course data set.

Runs the same catalog integrity checks the server runs at startup, plus the
non-fatal data-quality checks that would otherwise only show up as warnings in
student summaries. Importable for tests and runnable as a standalone CLI.

Usage:
    python scripts/validate_catalog.py
    python scripts/validate_catalog.py --path path/to/data
    python scripts/validate_catalog.py --path path/to/workbook.xlsx --strict
"""

import argparse
import math
import os
import sys

import pandas as pd

BACKEND_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "backend")
sys.path.insert(0, BACKEND_DIR)

from catalog import CatalogIntegrityError, unknown_prereqs  # noqa: E402
from data_loader import load_data, to_records  # noqa: E402
from enrollment import find_duplicate_active_enrollments, find_invalid_statuses  # noqa: E402


# ── Validation result ─────────────────────────────────────────────────────────

class ValidationResult:
    """Collects errors and warnings for a single data set validation run."""

    def __init__(self, label: str):
        self.label = label
        self.errors: list[str] = []
        self.warnings: list[str] = []

    def error(self, msg: str) -> None:
        self.errors.append(msg)

    def warn(self, msg: str) -> None:
        self.warnings.append(msg)

    @property
    def passed(self) -> bool:
        return len(self.errors) == 0

    def summary(self) -> str:
        status = "PASS" if self.passed else "FAIL"
        lines = [f"[{status}] Data set '{self.label}'"]
        for e in self.errors:
            lines.append(f"  [ERROR] {e}")
        for w in self.warnings:
            lines.append(f"  [WARN]  {w}")
        if self.passed and not self.warnings:
            lines.append("  All checks passed.")
        return "\n".join(lines)


# ── Individual checks ─────────────────────────────────────────────────────────

def check_unknown_prereqs(data: dict, result: ValidationResult) -> None:
    """Prereqs outside the catalog keep their course locked forever."""
    for code, missing in sorted(unknown_prereqs(data["prereq_map"], data["catalog_codes"]).items()):
        result.warn(f"{code} requires {missing}, which are not in the catalog.")


def check_enrollments(data: dict, result: ValidationResult) -> None:
    records = to_records(data["enrollments_df"])
    for warning in find_duplicate_active_enrollments(records) + find_invalid_statuses(records):
        result.warn(warning.message)
    orphaned = sorted(set(data["enrollments_df"]["course_code"]) - data["catalog_codes"])
    if orphaned:
        result.warn(f"Enrollments reference courses not in the catalog: {orphaned}")


def check_assessment_totals(assessments_df: pd.DataFrame, result: ValidationResult) -> None:
    bad = assessments_df.loc[~(assessments_df["total_marks"] > 0), "assessment_id"].tolist()
    if bad:
        result.warn(f"Assessments with non-positive total marks (excluded from averages): {sorted(bad)}")


def check_weight_totals(assessments_df: pd.DataFrame, result: ValidationResult) -> None:
    """In a weighted course the declared weights should add up to 1."""
    weighted = assessments_df[assessments_df["weight"].notna()]
    for course_code, group in weighted.groupby("course_code", sort=True):
        total = math.fsum(group["weight"].tolist())
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            result.warn(f"{course_code} weights sum to {total:g}, not 1.")


def check_grade_scores(data: dict, result: ValidationResult) -> None:
    merged = data["grades_df"].merge(
        data["assessments_df"][["assessment_id", "total_marks"]],
        on="assessment_id",
        how="inner",
    )
    out_of_range = merged[
        merged["score"].notna()
        & ((merged["score"] < 0) | (merged["score"] > merged["total_marks"]))
    ]
    for _, row in out_of_range.iterrows():
        result.warn(
            f"Student {row['student_id']} scored {row['score']:g} on {row['assessment_id']} "
            f"(total {row['total_marks']:g})."
        )


def validate_data(data: dict, label: str = "data") -> ValidationResult:
    result = ValidationResult(label)
    check_unknown_prereqs(data, result)
    check_enrollments(data, result)
    check_assessment_totals(data["assessments_df"], result)
    check_weight_totals(data["assessments_df"], result)
    check_grade_scores(data, result)
    return result


def validate_path(path: str) -> ValidationResult:
    try:
        data = load_data(path)
    except (CatalogIntegrityError, FileNotFoundError) as exc:
        result = ValidationResult(path)
        result.error(str(exc))
        return result
    return validate_data(data, label=path)


# ── CLI entry point ───────────────────────────────────────────────────────────

def main(args=None):
    parser = argparse.ArgumentParser(
        description="Validate a course data set before serving it.",
    )
    parser.add_argument(
        "--path", type=str,
        default=os.path.join(os.path.dirname(__file__), "..", "data"),
        help="Data directory of CSV files or an .xlsx workbook.",
    )
    parser.add_argument(
        "--strict", action="store_true",
        help="Treat warnings as failures.",
    )
    opts = parser.parse_args(args)

    result = validate_path(opts.path)
    print(result.summary())
    if not result.passed:
        return 1
    if opts.strict and result.warnings:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
