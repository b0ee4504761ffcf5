import os
import sys
import pandas as pd

from catalog import (
    CatalogIntegrityError,
    normalize_difficulty,
    unknown_prereqs,
    validate_catalog,
)
from enrollment import (
    active_enrollments,
    find_duplicate_active_enrollments,
    find_invalid_statuses,
)
from normalizer import normalize_code
from prereq_parser import parse_prereqs


TABLES = ("courses", "enrollments", "assessments", "grades")

COURSE_COLUMNS = [
    "course_code", "title", "subject_area", "difficulty", "credits",
    "course_type", "description", "prerequisites",
]
ENROLLMENT_COLUMNS = ["student_id", "course_code", "semester", "status"]
ASSESSMENT_COLUMNS = [
    "assessment_id", "course_code", "assessment_name", "assessment_type",
    "total_marks", "weight",
]
GRADE_COLUMNS = ["student_id", "assessment_id", "score", "feedback", "graded_at"]


def _warn(message: str) -> None:
    print(f"[WARN] {message}", file=sys.stderr)


def _read_tables(data_path: str) -> dict[str, pd.DataFrame]:
    """Reads a directory of <table>.csv files or an .xlsx workbook with one sheet per table."""
    tables: dict[str, pd.DataFrame] = {}
    if os.path.isdir(data_path):
        for name in TABLES:
            path = os.path.join(data_path, f"{name}.csv")
            if os.path.exists(path):
                tables[name] = pd.read_csv(path, dtype=str, keep_default_na=True)
        if "courses" not in tables:
            raise FileNotFoundError(os.path.join(data_path, "courses.csv"))
        return tables

    xl = pd.ExcelFile(data_path)
    for name in TABLES:
        if name in xl.sheet_names:
            tables[name] = xl.parse(name, dtype=str)
    if "courses" not in tables:
        raise CatalogIntegrityError(f"Workbook {data_path} has no 'courses' sheet.")
    return tables


def _ensure_columns(df: pd.DataFrame, columns: list[str]) -> pd.DataFrame:
    df = df.copy()
    df.columns = [str(c).strip() for c in df.columns]
    for col in columns:
        if col not in df.columns:
            df[col] = None
    return df


def _clean_str(series: pd.Series) -> pd.Series:
    return series.fillna("").astype(str).str.strip()


def _canonical_codes(series: pd.Series) -> pd.Series:
    return _clean_str(series).apply(lambda c: normalize_code(c) or c)


def _normalize_courses_df(courses_df: pd.DataFrame) -> pd.DataFrame:
    courses_df = _ensure_columns(courses_df, COURSE_COLUMNS)
    courses_df["course_code"] = _canonical_codes(courses_df["course_code"])
    courses_df = courses_df[courses_df["course_code"] != ""].reset_index(drop=True)

    for col in ("title", "subject_area", "course_type", "description"):
        courses_df[col] = _clean_str(courses_df[col])
    courses_df["difficulty"] = courses_df["difficulty"].apply(normalize_difficulty)
    courses_df["credits"] = pd.to_numeric(courses_df["credits"], errors="coerce")
    courses_df["prerequisites"] = courses_df["prerequisites"].apply(parse_prereqs)
    return courses_df[COURSE_COLUMNS]


def _normalize_enrollments_df(enrollments_df: pd.DataFrame) -> pd.DataFrame:
    enrollments_df = _ensure_columns(enrollments_df, ENROLLMENT_COLUMNS)
    enrollments_df["student_id"] = _clean_str(enrollments_df["student_id"])
    enrollments_df["course_code"] = _canonical_codes(enrollments_df["course_code"])
    enrollments_df["semester"] = _clean_str(enrollments_df["semester"])
    enrollments_df["status"] = _clean_str(enrollments_df["status"]).str.lower()
    return enrollments_df[ENROLLMENT_COLUMNS]


def _normalize_assessments_df(assessments_df: pd.DataFrame) -> pd.DataFrame:
    assessments_df = _ensure_columns(assessments_df, ASSESSMENT_COLUMNS)
    assessments_df["assessment_id"] = _clean_str(assessments_df["assessment_id"])
    assessments_df["course_code"] = _canonical_codes(assessments_df["course_code"])
    assessments_df["assessment_name"] = _clean_str(assessments_df["assessment_name"])
    assessments_df["assessment_type"] = _clean_str(assessments_df["assessment_type"]).str.lower()
    assessments_df["total_marks"] = pd.to_numeric(assessments_df["total_marks"], errors="coerce")
    assessments_df["weight"] = pd.to_numeric(assessments_df["weight"], errors="coerce")
    return assessments_df[ASSESSMENT_COLUMNS]


def _normalize_grades_df(grades_df: pd.DataFrame) -> pd.DataFrame:
    grades_df = _ensure_columns(grades_df, GRADE_COLUMNS)
    grades_df["student_id"] = _clean_str(grades_df["student_id"])
    grades_df["assessment_id"] = _clean_str(grades_df["assessment_id"])
    grades_df["score"] = pd.to_numeric(grades_df["score"], errors="coerce")
    # graded_at is only meaningful for rows that carry a score.
    grades_df.loc[grades_df["score"].isna(), "graded_at"] = None
    return grades_df[GRADE_COLUMNS]


def to_records(df: pd.DataFrame) -> list[dict]:
    """DataFrame → list of dicts with NaN replaced by None."""
    return df.astype(object).where(pd.notna(df), None).to_dict(orient="records")


def load_data(data_path: str) -> dict:
    """
    Load and validate the catalog, enrollment, assessment and grade tables.

    Raises FileNotFoundError when the catalog is missing and CatalogIntegrityError
    when the catalog must not be served. Problems in the other tables are printed
    as warnings and left for the aggregation step to exclude.
    """
    tables = _read_tables(data_path)

    courses_df = _normalize_courses_df(tables["courses"])
    enrollments_df = _normalize_enrollments_df(tables.get("enrollments", pd.DataFrame()))
    assessments_df = _normalize_assessments_df(tables.get("assessments", pd.DataFrame()))
    grades_df = _normalize_grades_df(tables.get("grades", pd.DataFrame()))

    catalog_codes = set(courses_df["course_code"].tolist())
    prereq_map = dict(zip(courses_df["course_code"], courses_df["prerequisites"]))

    validate_catalog(courses_df, prereq_map)
    courses_df["credits"] = courses_df["credits"].astype(int)
    credits_by_course = {code: int(c) for code, c in zip(courses_df["course_code"], courses_df["credits"])}

    # ── Startup data integrity checks ──────────────────────────────────────
    dangling = unknown_prereqs(prereq_map, catalog_codes)
    if dangling:
        _warn(f"{len(dangling)} course(s) list prerequisites not in the catalog (they stay locked): {dangling}")

    enrollment_records = to_records(enrollments_df)
    for warning in find_duplicate_active_enrollments(enrollment_records) + find_invalid_statuses(enrollment_records):
        _warn(warning.message)

    orphaned = sorted(set(enrollments_df["course_code"]) - catalog_codes)
    if orphaned:
        _warn(f"{len(orphaned)} enrolled course(s) not found in the catalog: {orphaned}")

    bad_totals = assessments_df.loc[
        ~(assessments_df["total_marks"] > 0), "assessment_id"
    ].tolist()
    if bad_totals:
        _warn(f"{len(bad_totals)} assessment(s) have non-positive total marks and will be excluded: {sorted(bad_totals)}")

    unknown_assessments = sorted(set(grades_df["assessment_id"]) - set(assessments_df["assessment_id"]))
    if unknown_assessments:
        _warn(f"{len(unknown_assessments)} grade row(s) reference unknown assessments: {unknown_assessments}")

    return {
        "courses_df": courses_df,
        "enrollments_df": enrollments_df,
        "assessments_df": assessments_df,
        "grades_df": grades_df,
        "catalog_codes": catalog_codes,
        "prereq_map": prereq_map,
        "credits_by_course": credits_by_course,
    }


def enrollment_records(data: dict, student_id) -> list[dict]:
    df = data["enrollments_df"]
    return to_records(df[df["student_id"] == str(student_id)])


def student_grade_records(data: dict, student_id) -> list[dict]:
    """
    Grade records for one student, one row per assessment of each course the
    student is actively enrolled in, plus any graded course with no enrollment
    record at all. Courses the student only ever dropped are left out even when
    grades exist for them. Ungraded assessments carry score None. A re-graded
    assessment keeps the last row.

    Row order: course first-seen order, then assessment order within the course.
    """
    student_id = str(student_id)
    enrollments = enrollment_records(data, student_id)
    course_order = [r["course_code"] for r in active_enrollments(enrollments, student_id)]
    dropped_only = {r["course_code"] for r in enrollments} - set(course_order)

    grades_df = data["grades_df"]
    student_grades = grades_df[grades_df["student_id"] == student_id]
    student_grades = student_grades.drop_duplicates(subset="assessment_id", keep="last")

    assessments_df = data["assessments_df"]
    graded_courses = assessments_df.loc[
        assessments_df["assessment_id"].isin(student_grades["assessment_id"]), "course_code"
    ].tolist()
    graded_courses = [code for code in graded_courses if code not in dropped_only]
    course_order = list(dict.fromkeys(course_order + graded_courses))

    merged = assessments_df[assessments_df["course_code"].isin(course_order)].merge(
        student_grades.drop(columns=["student_id"]),
        on="assessment_id",
        how="left",
    )
    merged["_course_rank"] = merged["course_code"].map({c: i for i, c in enumerate(course_order)})
    merged = merged.sort_values("_course_rank", kind="stable").drop(columns=["_course_rank"])
    return to_records(merged)
