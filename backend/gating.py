"""
Prerequisite gating: decides whether a student may access a course.

Gating is conjunctive and direct-only: a course is unlocked iff every prereq it
lists is in the student's completed set. Prereqs of prereqs are not consulted.
A listed prereq that is no longer in the catalog can never be satisfied.
"""

import pandas as pd

from catalog import ALL
from prereq_parser import build_prereq_check_string


def _course_prereqs(course) -> list[str]:
    prereqs = course.get("prerequisites")
    if prereqs is None or (isinstance(prereqs, float) and pd.isna(prereqs)):
        return []
    return list(prereqs)


def missing_prereqs(course, completed, catalog_codes: set | None = None) -> list[str]:
    """
    Direct prereqs of `course` the student has not satisfied, in listed order.

    `course` is any mapping with a "prerequisites" list (dict or DataFrame row).
    When catalog_codes is given, prereqs outside the catalog count as missing
    even if they appear in `completed`.
    """
    completed_set = set(completed)
    missing = []
    for code in _course_prereqs(course):
        known = catalog_codes is None or code in catalog_codes
        if not known or code not in completed_set:
            missing.append(code)
    return missing


def is_locked(course, completed, catalog_codes: set | None = None) -> bool:
    """True unless every direct prerequisite is in `completed`."""
    return len(missing_prereqs(course, completed, catalog_codes)) > 0


def gate_catalog(courses_df: pd.DataFrame, completed, catalog_codes: set | None = None) -> list[dict]:
    """
    Annotates every course with its lock state, preserving catalog order.

    Returns: [{"course_id": "MATH 102", "locked": True, "missing_prereqs": ["MATH 101"]}, ...]
    """
    completed_set = set(completed)
    gated = []
    for _, row in courses_df.iterrows():
        missing = missing_prereqs(row, completed_set, catalog_codes)
        gated.append({
            "course_id": row["course_code"],
            "locked": len(missing) > 0,
            "missing_prereqs": missing,
        })
    return gated


def filter_subjects(courses) -> list[str]:
    """
    Subject labels for the catalog selector: 'All', then each distinct subject
    in first-seen order. Not sorted.
    """
    if isinstance(courses, pd.DataFrame):
        subjects = courses["subject_area"].tolist()
    else:
        subjects = [c.get("subject_area") for c in courses]
    ordered = [ALL]
    for subject in subjects:
        if subject is None or (isinstance(subject, float) and pd.isna(subject)):
            continue
        if subject not in ordered:
            ordered.append(subject)
    return ordered


def check_can_take(
    requested_code: str,
    courses_df: pd.DataFrame,
    completed: list[str],
    catalog_codes: set | None = None,
) -> dict:
    """
    Returns a can-take assessment for a specific requested course.

    Returns:
    {
      "can_take": True | False,
      "why_not": str | None,
      "missing_prereqs": [str],
      "prereq_check": str,          # e.g. "MATH 101 ✓; CS 101 ✗"
    }
    """
    completed_set = set(completed)
    course_rows = courses_df[courses_df["course_code"] == requested_code]
    if len(course_rows) == 0:
        return {
            "can_take": False,
            "why_not": f"{requested_code} is not in the course catalog.",
            "missing_prereqs": [],
            "prereq_check": "",
        }

    row = course_rows.iloc[0]
    prereqs = _course_prereqs(row)
    check = build_prereq_check_string(prereqs, completed_set)

    if requested_code in completed_set:
        return {
            "can_take": False,
            "why_not": f"You have already completed {requested_code}.",
            "missing_prereqs": [],
            "prereq_check": check,
        }

    missing = missing_prereqs(row, completed_set, catalog_codes)
    if missing:
        return {
            "can_take": False,
            "why_not": f"Missing prerequisites: {', '.join(missing)}.",
            "missing_prereqs": missing,
            "prereq_check": check,
        }

    return {
        "can_take": True,
        "why_not": None,
        "missing_prereqs": [],
        "prereq_check": check,
    }


def find_inconsistent_completions(
    completed: list[str],
    prereq_map: dict[str, list[str]],
) -> list[dict]:
    """
    Completed courses whose direct prereqs are not themselves completed.

    Each item:
      {"course_code": str, "prereqs_not_completed": List[str]}
    """
    completed_set = set(completed)
    issues: list[dict] = []
    for course_code in dict.fromkeys(completed):
        unmet = [p for p in prereq_map.get(course_code, []) if p not in completed_set]
        if unmet:
            issues.append({
                "course_code": course_code,
                "prereqs_not_completed": unmet,
            })
    return issues
