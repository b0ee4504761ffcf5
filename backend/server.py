import os
import sys
import time
import threading

# Ensure backend/ is on sys.path so sibling imports work
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from flask import Flask, g, jsonify, request
from werkzeug.exceptions import HTTPException
from dotenv import load_dotenv

from normalizer import normalize_code, normalize_input
from catalog import (
    ALL,
    DIFFICULTY_TIERS,
    credit_options,
    filter_catalog,
    normalize_difficulty,
    transitive_prerequisites_of,
)
from gating import check_can_take, filter_subjects, find_inconsistent_completions, gate_catalog
from enrollment import (
    completed_credits,
    completed_set,
    current_registration,
    enrolled_course_codes,
    semester_history,
)
from grades import academic_summary, summary_to_json
from data_loader import enrollment_records, load_data, student_grade_records, to_records

load_dotenv()

app = Flask(__name__)

# ── Paths ─────────────────────────────────────────────────────────────────────
BACKEND_DIR = os.path.dirname(os.path.abspath(__file__))
PROJECT_ROOT = os.path.dirname(BACKEND_DIR)
_DEFAULT_DATA_PATH = os.path.join(PROJECT_ROOT, "data")
_env_data_path = os.environ.get("DATA_PATH")
if not _env_data_path:
    DATA_PATH = _DEFAULT_DATA_PATH
elif not os.path.isabs(_env_data_path):
    DATA_PATH = os.path.join(PROJECT_ROOT, _env_data_path)
else:
    DATA_PATH = _env_data_path
_data_lock = threading.Lock()
_data_mtime = None


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.environ.get(name, "")
    try:
        return max(minimum, float(raw))
    except (TypeError, ValueError):
        return default


_SLOW_REQUEST_LOG_MS = _env_float("SLOW_REQUEST_LOG_MS", 750.0, minimum=0.0)
# Term used for registration status; unset means every active enrollment counts.
CURRENT_SEMESTER = os.environ.get("CURRENT_SEMESTER", "").strip() or None


def _data_file_mtime(path: str):
    try:
        if os.path.isdir(path):
            mtimes = [
                os.path.getmtime(os.path.join(path, f))
                for f in os.listdir(path)
                if f.endswith(".csv")
            ]
            return max(mtimes) if mtimes else None
        return os.path.getmtime(path)
    except OSError:
        return None


# ── Startup data load ──────────────────────────────────────────────────────────
try:
    _data = load_data(DATA_PATH)
    _data_mtime = _data_file_mtime(DATA_PATH)
    print(f"[OK] Loaded {len(_data['catalog_codes'])} courses from {DATA_PATH}")
except FileNotFoundError:
    # A stale DATA_PATH falls back to the bundled data directory.
    if DATA_PATH != _DEFAULT_DATA_PATH and os.path.exists(_DEFAULT_DATA_PATH):
        print(
            f"[WARN] DATA_PATH not found ({DATA_PATH}); "
            f"falling back to default data directory ({_DEFAULT_DATA_PATH}).",
            file=sys.stderr,
        )
        DATA_PATH = _DEFAULT_DATA_PATH
        _data = load_data(DATA_PATH)
        _data_mtime = _data_file_mtime(DATA_PATH)
        print(f"[OK] Loaded {len(_data['catalog_codes'])} courses from {DATA_PATH}")
    else:
        print(f"[FATAL] Data file not found: {DATA_PATH}", file=sys.stderr)
        sys.exit(1)
except Exception as exc:
    print(f"[FATAL] Failed to load data: {exc}", file=sys.stderr)
    sys.exit(1)


def _reload_data_if_changed(force: bool = False) -> bool:
    """
    Hot-reload the data set when DATA_PATH changes on disk.

    A catalog that fails validation is never swapped in; the previous data set
    keeps serving. Returns True when a reload occurred, else False.
    """
    global _data, _data_mtime

    candidate_mtime = _data_file_mtime(DATA_PATH)
    if not force:
        if candidate_mtime is None:
            return False
        if _data_mtime is not None and candidate_mtime <= _data_mtime:
            return False

    with _data_lock:
        latest_mtime = _data_file_mtime(DATA_PATH)
        if not force:
            if latest_mtime is None:
                return False
            if _data_mtime is not None and latest_mtime <= _data_mtime:
                return False

        try:
            new_data = load_data(DATA_PATH)
        except Exception as exc:
            print(f"[WARN] Data reload failed; keeping previous dataset: {exc}", file=sys.stderr)
            return False

        _data = new_data
        _data_mtime = latest_mtime if latest_mtime is not None else candidate_mtime
        print(f"[OK] Reloaded {len(new_data['catalog_codes'])} courses from {DATA_PATH}")
        return True


def _refresh_data_if_needed() -> None:
    try:
        _reload_data_if_changed()
    except Exception as exc:
        print(f"[WARN] Data reload check failed: {exc}", file=sys.stderr)


# -- Security headers ------------------------------------------------------
@app.before_request
def _start_request_timer():
    g._request_start_time = time.perf_counter()


@app.after_request
def _add_security_headers(response):
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["Referrer-Policy"] = "same-origin"

    started = getattr(g, "_request_start_time", None)
    if started is not None:
        duration_ms = (time.perf_counter() - started) * 1000.0
        if duration_ms >= _SLOW_REQUEST_LOG_MS:
            endpoint = request.endpoint or "unknown"
            print(
                f"[SLOW] {request.method} {request.path} "
                f"endpoint={endpoint} status={response.status_code} duration_ms={duration_ms:.1f}"
            )
    return response


# -- Health endpoint --------------------------------------------------------
@app.route("/health", methods=["GET"])
def health_endpoint():
    return jsonify({
        "status": "ok",
        "version": "1.0.0",
        "courses_loaded": len(_data["catalog_codes"]) if _data else 0,
    })


# -- Input validation ------------------------------------------------------
def _validate_catalog_filters(args):
    """Returns (error_message, None) on invalid input, (None, filters) on success."""
    difficulty = args.get("difficulty", ALL)
    if difficulty not in ("", ALL) and normalize_difficulty(difficulty) is None:
        return f"difficulty must be one of {[ALL, *DIFFICULTY_TIERS]}.", None

    credits = args.get("credits", ALL)
    if credits not in ("", ALL):
        try:
            if int(credits) <= 0:
                raise ValueError
        except (TypeError, ValueError):
            return "credits must be a positive integer or 'All'.", None

    has_prereqs = args.get("has_prerequisites", ALL)
    if has_prereqs not in ("", ALL) and has_prereqs.strip().lower() not in ("true", "false"):
        return "has_prerequisites must be 'true', 'false', or 'All'.", None

    return None, {
        "subject": args.get("subject", ALL),
        "difficulty": difficulty,
        "credits": credits,
        "course_type": args.get("type", ALL),
        "has_prereqs": has_prereqs,
        "search": args.get("q", ""),
    }


def _student_completed(student_id) -> set[str]:
    return completed_set(enrollment_records(_data, student_id), student_id)


# ── 500 handler ────────────────────────────────────────────────────────────────
@app.errorhandler(Exception)
def handle_unexpected_error(e):
    if isinstance(e, HTTPException):
        return e
    print(f"[ERROR] {request.method} {request.path}: {e!r}", file=sys.stderr)
    return jsonify({
        "mode": "error",
        "error": {
            "error_code": "SERVER_ERROR",
            "message": "An unexpected server error occurred.",
        },
    }), 500


# ── Routes ─────────────────────────────────────────────────────────────────────
@app.route("/api/courses", methods=["GET"])
def get_courses():
    """Catalog listing with the catalog page filters; optional student lock state."""
    _refresh_data_if_needed()
    if not _data:
        return jsonify({"error": "Data not loaded"}), 500

    error, filters = _validate_catalog_filters(request.args)
    if error:
        return jsonify({"error": error}), 400

    courses_df = _data["courses_df"]
    filtered = filter_catalog(courses_df, **filters)
    courses = to_records(filtered)

    student_id = request.args.get("student_id")
    if student_id:
        gated = {
            row["course_id"]: row
            for row in gate_catalog(filtered, _student_completed(student_id), _data["catalog_codes"])
        }
        for course in courses:
            course["locked"] = gated[course["course_code"]]["locked"]
            course["missing_prereqs"] = gated[course["course_code"]]["missing_prereqs"]

    return jsonify({
        "courses": courses,
        "count": len(courses),
        "subjects": filter_subjects(courses_df),
        "credit_options": credit_options(courses_df),
        "difficulty_tiers": [ALL, *DIFFICULTY_TIERS],
    })


@app.route("/api/courses/<path:course_code>/prerequisites", methods=["GET"])
def get_course_prerequisites(course_code):
    _refresh_data_if_needed()
    code = normalize_code(course_code) or course_code.strip()
    if code not in _data["catalog_codes"]:
        return jsonify({"error": f"{code} is not in the course catalog."}), 404

    prereq_map = _data["prereq_map"]
    direct = prereq_map.get(code, [])
    return jsonify({
        "course_code": code,
        "prerequisites": direct,
        "transitive": sorted(transitive_prerequisites_of(code, prereq_map)),
        "not_in_catalog": [p for p in direct if p not in _data["catalog_codes"]],
    })


@app.route("/api/students/<student_id>/gating", methods=["GET"])
def student_gating(student_id):
    """Lock state of every catalog course for one student."""
    _refresh_data_if_needed()
    completed = _student_completed(student_id)
    return jsonify({
        "student_id": student_id,
        "completed": sorted(completed),
        "courses": gate_catalog(_data["courses_df"], completed, _data["catalog_codes"]),
    })


@app.route("/api/can-take", methods=["POST"])
def can_take_endpoint():
    """Eligibility check for a single course."""
    _refresh_data_if_needed()
    if not _data:
        return jsonify({"mode": "can_take", "error": "Data not loaded."}), 500

    body = request.get_json(force=True, silent=True)
    if not body or not isinstance(body, dict):
        return jsonify({"mode": "can_take", "error": "Invalid JSON body."}), 400

    requested_course_raw = str(body.get("requested_course") or "").strip()
    if not requested_course_raw:
        return jsonify({"mode": "can_take", "error": "requested_course is required."}), 400
    requested_course = normalize_code(requested_course_raw) or requested_course_raw

    catalog_codes = _data["catalog_codes"]
    completed = set(normalize_input(body.get("completed_courses"), catalog_codes)["valid"])
    student_id = body.get("student_id")
    if student_id:
        completed |= _student_completed(student_id)

    result = check_can_take(requested_course, _data["courses_df"], sorted(completed), catalog_codes)
    return jsonify({
        "mode": "can_take",
        "requested_course": requested_course,
        **result,
    })


@app.route("/api/students/<student_id>/summary", methods=["GET"])
def student_summary(student_id):
    """Per-course running averages plus the credit-weighted overall summary."""
    _refresh_data_if_needed()
    enrollments = enrollment_records(_data, student_id)
    grade_records = student_grade_records(_data, student_id)
    if not enrollments and not grade_records:
        return jsonify({"error": f"No enrollment or grade records for student {student_id}."}), 404

    summary = academic_summary(
        grade_records,
        _data["credits_by_course"],
        completed_credits=completed_credits(enrollments, student_id, _data["credits_by_course"]),
        course_codes=enrolled_course_codes(enrollments, student_id),
    )
    for warning in summary["warnings"]:
        print(f"[WARN] student={student_id} {warning.message}", file=sys.stderr)

    credits_by_course = _data["credits_by_course"]
    by_course = {c["course_id"]: c for c in summary["courses"]}
    return jsonify({
        "student_id": student_id,
        **summary_to_json(summary),
        "registration": current_registration(
            enrollments, student_id, credits_by_course, semester=CURRENT_SEMESTER
        ),
        "semester_history": semester_history(
            enrollments, student_id, credits_by_course, course_summaries=by_course
        ),
    })


@app.route("/api/validate-prereqs", methods=["POST"])
def validate_prereqs_endpoint():
    """Completed courses whose direct prerequisites are not completed."""
    _refresh_data_if_needed()
    body = request.get_json(force=True, silent=True) or {}
    if not isinstance(body, dict):
        return jsonify({"error": "Invalid JSON body."}), 400
    comp_result = normalize_input(body.get("completed_courses"), _data["catalog_codes"])
    return jsonify({
        "inconsistencies": find_inconsistent_completions(comp_result["valid"], _data["prereq_map"]),
        "invalid": comp_result["invalid"],
        "not_in_catalog": comp_result["not_in_catalog"],
    })


app.add_url_rule("/api/health", endpoint="api_health", view_func=health_endpoint, methods=["GET"])


# -- API catch-all (404 for unknown /api/* routes) -------------------
@app.route("/api/<path:rest>", methods=["GET", "POST", "PUT", "DELETE", "PATCH"])
def api_catch_all(rest):
    return jsonify({"error": f"/api/{rest} not found"}), 404


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 5000))
    debug = os.environ.get("FLASK_DEBUG", "1") == "1"
    app.run(host="0.0.0.0", port=port, debug=debug)
