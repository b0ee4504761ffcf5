"""
Grade aggregation: per-course running averages and the credit-weighted summary.

Input rows are grade records as produced by data_loader.student_grade_records():
  {
    "assessment_id": "A1", "course_code": "MATH 101", "assessment_name": "Quiz 1",
    "assessment_type": "quiz", "score": 18.0 | None, "total_marks": 20.0,
    "weight": 0.25 | None, "feedback": str | None, "graded_at": str | None,
  }

A None score means "not graded yet". It is never treated as zero: ungraded
assessments are left out of both numerator and denominator. Malformed rows are
left out too and reported as DataIntegrityWarning items next to the result.
"""

import math
from decimal import Decimal, ROUND_HALF_UP

import pandas as pd

from integrity import DataIntegrityWarning


NOT_AVAILABLE = "not available"

# Transcript scale: one letter band per ten points, F below 60.
LETTER_GRADE_THRESHOLDS = (
    (90.0, "A", 4.0),
    (80.0, "B", 3.0),
    (70.0, "C", 2.0),
    (60.0, "D", 1.0),
)
FAILING_GRADE = ("F", 0.0)


def round_half_away(value: float, places: int = 1) -> float:
    """Round half away from zero: 2.25 → 2.3, -2.25 → -2.3 (places=1)."""
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def _missing(value) -> bool:
    return value is None or (isinstance(value, float) and pd.isna(value))


def assessment_percentage(score, total_marks) -> float | None:
    """(score / total_marks) * 100 rounded to one decimal; None when ungraded."""
    if _missing(score) or _missing(total_marks) or float(total_marks) <= 0:
        return None
    return round_half_away(float(score) / float(total_marks) * 100.0, 1)


def format_percentage(score, total_marks) -> str:
    """'85.0%' for a graded assessment, 'not available' otherwise."""
    pct = assessment_percentage(score, total_marks)
    if pct is None:
        return NOT_AVAILABLE
    return f"{pct:.1f}%"


def _grade_band(percentage: float) -> tuple[str, float]:
    for threshold, letter, points in LETTER_GRADE_THRESHOLDS:
        if percentage >= threshold:
            return letter, points
    return FAILING_GRADE


def letter_grade(percentage: float | None) -> str | None:
    """'A'..'F' for a course percentage; None when nothing is graded."""
    if percentage is None:
        return None
    return _grade_band(percentage)[0]


def grade_points(percentage: float | None) -> float | None:
    if percentage is None:
        return None
    return _grade_band(percentage)[1]


def record_warning(record: dict) -> DataIntegrityWarning | None:
    """Returns a warning when the row must be excluded from aggregation."""
    assessment_id = record.get("assessment_id")
    course_id = record.get("course_code")
    total = record.get("total_marks")
    score = record.get("score")
    weight = record.get("weight")

    if _missing(total) or float(total) <= 0:
        return DataIntegrityWarning(
            "invalid_total_marks",
            f"Assessment {assessment_id} has non-positive total marks ({total}); excluded.",
            record_id=assessment_id,
            course_id=course_id,
        )
    if not _missing(score) and (float(score) < 0 or float(score) > float(total)):
        return DataIntegrityWarning(
            "score_out_of_range",
            f"Score {score} for assessment {assessment_id} is outside 0..{total}; excluded.",
            record_id=assessment_id,
            course_id=course_id,
        )
    if not _missing(weight) and float(weight) < 0:
        return DataIntegrityWarning(
            "negative_weight",
            f"Assessment {assessment_id} has negative weight ({weight}); excluded.",
            record_id=assessment_id,
            course_id=course_id,
        )
    return None


def partition_records(records) -> tuple[list[dict], list[DataIntegrityWarning]]:
    """Splits rows into (usable rows, warnings for excluded rows)."""
    usable: list[dict] = []
    warnings: list[DataIntegrityWarning] = []
    for record in records:
        warning = record_warning(record)
        if warning is None:
            usable.append(record)
        else:
            warnings.append(warning)
    return usable, warnings


def running_average(records) -> float | None:
    """
    Running average for one course as a percentage (0-100), or None when no
    assessment has been graded.

    Weighted when any usable assessment in the course carries a weight: weights
    of graded assessments are renormalized to sum to 1, and an unweighted graded
    assessment counts with weight 0. If the graded weights sum to zero the
    unweighted mean is used instead.
    """
    usable, _ = partition_records(records)
    weighted = any(not _missing(r.get("weight")) for r in usable)
    graded = [r for r in usable if not _missing(r.get("score"))]
    if not graded:
        return None

    ratios = [float(r["score"]) / float(r["total_marks"]) for r in graded]

    if weighted:
        weights = [0.0 if _missing(r.get("weight")) else float(r["weight"]) for r in graded]
        total_weight = math.fsum(weights)
        if total_weight > 0:
            return math.fsum(ratio * w for ratio, w in zip(ratios, weights)) / total_weight * 100.0

    return math.fsum(ratios) / len(ratios) * 100.0


def _assignment_row(record: dict, excluded: bool) -> dict:
    score = None if _missing(record.get("score")) else float(record["score"])
    total = None if _missing(record.get("total_marks")) else float(record["total_marks"])
    weight = None if _missing(record.get("weight")) else float(record["weight"])
    pct = None if excluded else assessment_percentage(score, total)
    return {
        "assessment_id": record.get("assessment_id"),
        "name": record.get("assessment_name"),
        "assessment_type": record.get("assessment_type"),
        "score": score,
        "max_score": total,
        "weight": weight,
        "percentage": pct,
        "percentage_display": NOT_AVAILABLE if pct is None else f"{pct:.1f}%",
        "feedback": None if _missing(record.get("feedback")) else record.get("feedback"),
        "excluded": excluded,
    }


def course_summary(course_code: str, records) -> dict:
    """
    Summary for one course.

    Returns:
      {
        "course_id": "MATH 101",
        "running_average": 68.0 | None,       # one decimal; None = nothing graded
        "running_average_display": "68.0%" | "not available",
        "letter_grade": "D" | None,
        "course_gpa": 1.0 | None,             # 4.0 scale
        "graded_count": 2,
        "assignments": [{name, score, max_score, weight, ...}, ...],   # input order
        "warnings": [DataIntegrityWarning, ...],
      }
    """
    records = list(records)
    usable, warnings = partition_records(records)
    excluded_ids = {id(r) for r in records} - {id(r) for r in usable}

    average = running_average(usable)
    rounded = None if average is None else round_half_away(average, 1)
    return {
        "course_id": course_code,
        "running_average": rounded,
        "running_average_display": NOT_AVAILABLE if rounded is None else f"{rounded:.1f}%",
        "letter_grade": letter_grade(rounded),
        "course_gpa": grade_points(rounded),
        "graded_count": sum(1 for r in usable if not _missing(r.get("score"))),
        "assignments": [_assignment_row(r, id(r) in excluded_ids) for r in records],
        "warnings": warnings,
    }


def group_by_course(records) -> dict[str, list[dict]]:
    """{course_code: [rows]} keeping first-seen course order and row order."""
    grouped: dict[str, list[dict]] = {}
    for record in records:
        grouped.setdefault(record.get("course_code"), []).append(record)
    return grouped


def academic_summary(
    grade_records,
    credits_by_course: dict[str, int],
    completed_credits: int = 0,
    course_codes: list[str] | None = None,
) -> dict:
    """
    Credit-weighted overall summary.

      gpa = Σ(running_average_c × credits_c) / Σ credits_c

    over courses with a defined running average. Ungraded courses are listed but
    neither help nor hurt the gpa. `course_codes` fixes the listing order and adds
    courses (e.g. current enrollments) that have no assessments yet; courses
    that only appear in grade_records follow them.

    Returns:
      {
        "gpa": 68.57 | None,            # percentage, two decimals
        "grade_points": 1.86 | None,    # credit-weighted 4.0 scale
        "completed_credits": 7,
        "courses": [course_summary(...), ...],
        "warnings": [DataIntegrityWarning, ...],
      }
    """
    grouped = {code: [] for code in course_codes or []}
    for code, rows in group_by_course(grade_records).items():
        grouped.setdefault(code, []).extend(rows)

    courses: list[dict] = []
    warnings: list[DataIntegrityWarning] = []
    weighted_terms: list[float] = []
    point_terms: list[float] = []
    credit_terms: list[float] = []

    for code, rows in grouped.items():
        summary = course_summary(code, rows)
        courses.append(summary)
        warnings.extend(summary["warnings"])

        average = running_average(rows)
        if average is None:
            continue
        if code not in credits_by_course:
            warnings.append(DataIntegrityWarning(
                "unknown_course",
                f"Graded course {code} is not in the catalog; left out of the gpa.",
                course_id=code,
            ))
            continue
        credits = float(credits_by_course[code])
        weighted_terms.append(average * credits)
        point_terms.append(grade_points(round_half_away(average, 1)) * credits)
        credit_terms.append(credits)

    total_credits = math.fsum(credit_terms)
    if total_credits > 0:
        gpa = round_half_away(math.fsum(weighted_terms) / total_credits, 2)
        points = round_half_away(math.fsum(point_terms) / total_credits, 2)
    else:
        gpa = None
        points = None

    return {
        "gpa": gpa,
        "grade_points": points,
        "completed_credits": int(completed_credits),
        "courses": courses,
        "warnings": warnings,
    }


def summary_to_json(summary: dict) -> dict:
    """Replaces warning objects with plain dicts so the summary can be jsonified."""
    payload = dict(summary)
    payload["warnings"] = [w.to_dict() for w in summary["warnings"]]
    payload["courses"] = [
        {**c, "warnings": [w.to_dict() for w in c["warnings"]]}
        for c in summary["courses"]
    ]
    return payload
