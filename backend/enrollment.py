from integrity import DataIntegrityWarning


ENROLLED = "enrolled"
COMPLETED = "completed"
DROPPED = "dropped"
ENROLLMENT_STATUSES = (ENROLLED, COMPLETED, DROPPED)


def _student_records(records, student_id) -> list[dict]:
    return [r for r in records if str(r.get("student_id")) == str(student_id)]


def completed_set(records, student_id) -> set[str]:
    """Course codes with at least one 'completed' record for the student."""
    return {
        r["course_code"]
        for r in _student_records(records, student_id)
        if r.get("status") == COMPLETED
    }


def active_enrollments(records, student_id) -> list[dict]:
    """The student's non-dropped records, in source order."""
    return [r for r in _student_records(records, student_id) if r.get("status") != DROPPED]


def enrolled_course_codes(records, student_id) -> list[str]:
    """Distinct course codes of the student's non-dropped records, first-seen order."""
    return list(dict.fromkeys(r["course_code"] for r in active_enrollments(records, student_id)))


def find_duplicate_active_enrollments(records) -> list[DataIntegrityWarning]:
    """At most one non-dropped record may exist per (student, course)."""
    counts: dict[tuple, int] = {}
    for r in records:
        if r.get("status") == DROPPED:
            continue
        key = (str(r.get("student_id")), r.get("course_code"))
        counts[key] = counts.get(key, 0) + 1

    return [
        DataIntegrityWarning(
            "duplicate_enrollment",
            f"Student {student} has {count} active enrollments in {course}.",
            record_id=student,
            course_id=course,
        )
        for (student, course), count in counts.items()
        if count > 1
    ]


def find_invalid_statuses(records) -> list[DataIntegrityWarning]:
    return [
        DataIntegrityWarning(
            "invalid_status",
            f"Enrollment status {r.get('status')!r} is not one of {list(ENROLLMENT_STATUSES)}.",
            record_id=r.get("student_id"),
            course_id=r.get("course_code"),
        )
        for r in records
        if r.get("status") not in ENROLLMENT_STATUSES
    ]


def completed_credits(records, student_id, credits_by_course: dict[str, int]) -> int:
    """
    Sum of credits over distinct completed courses, regardless of grading.
    Completed courses missing from the catalog contribute nothing.
    """
    return sum(
        int(credits_by_course[code])
        for code in completed_set(records, student_id)
        if code in credits_by_course
    )


MIN_REGISTRATION_CREDITS = 12
NOT_REGISTERED = "Not Registered"
PARTIALLY_REGISTERED = "Partially Registered"
FULLY_REGISTERED = "Fully Registered"


def registration_status(registered_credits: int) -> str:
    if registered_credits <= 0:
        return NOT_REGISTERED
    if registered_credits >= MIN_REGISTRATION_CREDITS:
        return FULLY_REGISTERED
    return PARTIALLY_REGISTERED


def current_registration(records, student_id, credits_by_course: dict[str, int], semester=None) -> dict:
    """
    Courses the student currently holds with status 'enrolled', limited to
    `semester` when one is given, and the registration status their credits
    reach against MIN_REGISTRATION_CREDITS.
    """
    codes = list(dict.fromkeys(
        r["course_code"]
        for r in _student_records(records, student_id)
        if r.get("status") == ENROLLED and (semester is None or r.get("semester") == semester)
    ))
    enrolled = [{"course_id": code, "credits": int(credits_by_course.get(code, 0))} for code in codes]
    registered = sum(c["credits"] for c in enrolled)
    return {
        "semester": semester,
        "registered_credits": registered,
        "registration_status": registration_status(registered),
        "enrolled_courses": enrolled,
    }


def semester_history(records, student_id, credits_by_course: dict[str, int], course_summaries=None) -> list[dict]:
    """
    The student's enrollment records grouped by semester, first-seen order.

    Every record is listed, dropped ones included, and counts toward the
    semester's total_credits. Percentage and letter grade are reported for
    completed courses only, taken from course_summaries ({course_code: summary}).

    Returns:
      [{"semester": "Fall 2025", "total_credits": 10,
        "courses": [{course_id, credits, status, percentage, letter_grade}, ...]}, ...]
    """
    course_summaries = course_summaries or {}
    grouped: dict = {}
    for r in _student_records(records, student_id):
        code = r["course_code"]
        summary = course_summaries.get(code) if r.get("status") == COMPLETED else None
        grouped.setdefault(r.get("semester"), []).append({
            "course_id": code,
            "credits": int(credits_by_course.get(code, 0)),
            "status": r.get("status"),
            "percentage": summary["running_average"] if summary else None,
            "letter_grade": summary["letter_grade"] if summary else None,
        })

    return [
        {
            "semester": semester,
            "total_credits": sum(c["credits"] for c in courses),
            "courses": courses,
        }
        for semester, courses in grouped.items()
    ]
