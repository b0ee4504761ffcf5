"""
Export a course workbook (.xlsx) → data/ directory of CSV files.

Only the sheets the backend reads are exported: courses, enrollments,
assessments, grades.

Usage:
    python scripts/export_workbook_to_csv.py --src PATH [--out DIR]
"""

import argparse
import os
import sys

import pandas as pd

TABLES = ("courses", "enrollments", "assessments", "grades")


def export(src: str, out_dir: str) -> int:
    if not os.path.isfile(src):
        print(f"[FATAL] Source file not found: {src}", file=sys.stderr)
        return 1

    xl = pd.ExcelFile(src, engine="openpyxl")
    if "courses" not in xl.sheet_names:
        print(f"[FATAL] Workbook has no 'courses' sheet: {src}", file=sys.stderr)
        return 1

    os.makedirs(out_dir, exist_ok=True)
    written = 0
    for sheet in TABLES:
        if sheet not in xl.sheet_names:
            print(f"[INFO] Sheet '{sheet}' not present; skipped")
            continue
        df = xl.parse(sheet, dtype=str)
        dest = os.path.join(out_dir, f"{sheet}.csv")
        df.to_csv(dest, index=False)
        written += 1
        print(f"[OK]   {sheet} → {dest}  ({len(df)} rows)")

    print(f"[INFO] Export complete. {written} CSVs written to '{out_dir}'")
    return 0


def main(args=None) -> int:
    repo_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    parser = argparse.ArgumentParser(description="Export course workbook to a CSV directory.")
    parser.add_argument("--src", required=True, help="Source xlsx file")
    parser.add_argument(
        "--out",
        default=os.path.join(repo_root, "data"),
        help="Output directory for CSV files",
    )
    opts = parser.parse_args(args)
    return export(opts.src, opts.out)


if __name__ == "__main__":
    sys.exit(main())
