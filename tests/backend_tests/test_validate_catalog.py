"""
Tests for the publish gate validator (scripts/validate_catalog.py).
"""

import os

import pytest
import pandas as pd

from validate_catalog import (
    ValidationResult,
    check_weight_totals,
    main,
    validate_path,
)
from export_workbook_to_csv import export


REPO_DATA = os.path.join(os.path.dirname(__file__), "..", "..", "data")


def _write_courses(directory, rows):
    header = "course_code,title,subject_area,difficulty,credits,prerequisites\n"
    with open(os.path.join(directory, "courses.csv"), "w", encoding="utf-8") as fh:
        fh.write(header + "\n".join(rows) + "\n")


class TestValidationResult:
    def test_passes_without_errors(self):
        result = ValidationResult("x")
        result.warn("something odd")
        assert result.passed
        assert "[PASS]" in result.summary()
        assert "[WARN]  something odd" in result.summary()

    def test_fails_with_errors(self):
        result = ValidationResult("x")
        result.error("broken")
        assert not result.passed
        assert "[FAIL]" in result.summary()


class TestBundledData:
    def test_bundled_data_passes_with_known_warnings(self):
        result = validate_path(REPO_DATA)
        assert result.passed
        joined = "\n".join(result.warnings)
        assert "STAT 300" in joined
        assert "A401" in joined

    def test_cli_strict_fails_on_warnings(self):
        assert main(["--path", REPO_DATA]) == 0
        assert main(["--path", REPO_DATA, "--strict"]) == 1


class TestCatalogErrors:
    def test_cycle_is_an_error(self, tmp_path):
        _write_courses(tmp_path, [
            "A 100,Alpha,X,Introductory,3,B 100",
            "B 100,Beta,X,Introductory,3,A 100",
        ])
        result = validate_path(str(tmp_path))
        assert not result.passed
        assert "cycle" in result.errors[0]

    def test_missing_catalog_is_an_error(self, tmp_path):
        result = validate_path(str(tmp_path))
        assert not result.passed


class TestWeightTotals:
    def test_weights_not_summing_to_one_warned(self):
        df = pd.DataFrame([
            {"assessment_id": "A1", "course_code": "X 100", "weight": 0.5},
            {"assessment_id": "A2", "course_code": "X 100", "weight": 0.3},
            {"assessment_id": "B1", "course_code": "Y 100", "weight": None},
        ])
        result = ValidationResult("w")
        check_weight_totals(df, result)
        assert result.warnings == ["X 100 weights sum to 0.8, not 1."]


class TestExportWorkbook:
    def test_round_trip_to_csv_directory(self, tmp_path):
        src = tmp_path / "catalog.xlsx"
        with pd.ExcelWriter(src, engine="openpyxl") as writer:
            pd.read_csv(os.path.join(REPO_DATA, "courses.csv"), dtype=str).to_excel(
                writer, sheet_name="courses", index=False
            )
        out = tmp_path / "out"
        assert export(str(src), str(out)) == 0
        assert os.path.exists(out / "courses.csv")
        assert not os.path.exists(out / "grades.csv")
        assert validate_path(str(out)).passed

    def test_missing_source(self, tmp_path):
        assert export(str(tmp_path / "nope.xlsx"), str(tmp_path / "out")) == 1
