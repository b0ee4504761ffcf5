"""
Catalog graph: course filters and prerequisite lookups over the loaded catalog.

The catalog is a courses DataFrame (one row per course, catalog order) plus a
prereq map {course_code: [direct prerequisite codes]}. Nothing here mutates
either; every filter returns a new frame.
"""

import pandas as pd


ALL = "All"

# Ordered: Introductory < Intermediate < Advanced
DIFFICULTY_TIERS = ("Introductory", "Intermediate", "Advanced")
_DIFFICULTY_CODES = {"1": "Introductory", "2": "Intermediate", "3": "Advanced"}

COURSE_TYPES = ("Core", "Elective")


class CatalogIntegrityError(ValueError):
    """Raised when a catalog cannot be served (cycles, duplicates, bad fields)."""


def normalize_difficulty(raw) -> str | None:
    """'intermediate' / 2 / '2' / 2.0 → 'Intermediate'. None when unknown."""
    if raw is None or (isinstance(raw, float) and pd.isna(raw)):
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    s = str(raw).strip()
    if s in _DIFFICULTY_CODES:
        return _DIFFICULTY_CODES[s]
    for tier in DIFFICULTY_TIERS:
        if s.lower() == tier.lower():
            return tier
    return None


def difficulty_rank(tier: str) -> int:
    return DIFFICULTY_TIERS.index(tier)


def find_prereq_cycle(prereq_map: dict[str, list[str]]) -> list[str] | None:
    """
    Returns one prerequisite cycle as a path (first node repeated at the end),
    or None when the graph is acyclic.

    Iterative DFS with path marking; chain depth is not limited by the
    recursion limit. Edges to codes outside the map have no outgoing edges and
    cannot close a cycle.
    """
    done: set[str] = set()

    for root in prereq_map:
        if root in done:
            continue
        path: list[str] = [root]
        on_path: set[str] = {root}
        pending = [iter(prereq_map.get(root, []))]
        while pending:
            prereq = next(pending[-1], None)
            if prereq is None:
                pending.pop()
                finished = path.pop()
                on_path.discard(finished)
                done.add(finished)
                continue
            if prereq in on_path:
                return path[path.index(prereq):] + [prereq]
            if prereq in done:
                continue
            path.append(prereq)
            on_path.add(prereq)
            pending.append(iter(prereq_map.get(prereq, [])))
    return None


def validate_catalog(courses_df: pd.DataFrame, prereq_map: dict[str, list[str]]) -> None:
    """Raises CatalogIntegrityError if the catalog must not be served."""
    codes = courses_df["course_code"]
    duplicated = sorted(set(codes[codes.duplicated()]))
    if duplicated:
        raise CatalogIntegrityError(f"Duplicate course codes: {duplicated}")

    bad_credits = [
        code for code, credits in zip(codes, courses_df["credits"])
        if not _is_positive_int(credits)
    ]
    if bad_credits:
        raise CatalogIntegrityError(
            f"Credits must be a positive integer for: {sorted(bad_credits)}"
        )

    bad_tiers = [
        code for code, tier in zip(codes, courses_df["difficulty"])
        if tier not in DIFFICULTY_TIERS
    ]
    if bad_tiers:
        raise CatalogIntegrityError(f"Unknown difficulty tier for: {sorted(bad_tiers)}")

    cycle = find_prereq_cycle(prereq_map)
    if cycle:
        raise CatalogIntegrityError(f"Prerequisite cycle: {' -> '.join(cycle)}")


def _is_positive_int(value) -> bool:
    if isinstance(value, bool):
        return False
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    return number > 0 and number.is_integer()


def unknown_prereqs(prereq_map: dict[str, list[str]], catalog_codes: set) -> dict[str, list[str]]:
    """{course_code: [prereq codes missing from the catalog]} for courses that have any."""
    unknown = {}
    for code, prereqs in prereq_map.items():
        missing = [p for p in prereqs if p not in catalog_codes]
        if missing:
            unknown[code] = missing
    return unknown


# ── Lookups ────────────────────────────────────────────────────────────────────
def prerequisites_of(course_code: str, prereq_map: dict[str, list[str]]) -> set[str]:
    """Direct prerequisites only. Empty set for unknown or prereq-free courses."""
    return set(prereq_map.get(course_code, []))


def transitive_prerequisites_of(course_code: str, prereq_map: dict[str, list[str]]) -> set[str]:
    """All prerequisites reachable from course_code, excluding course_code itself."""
    found: set[str] = set()
    pending = list(prereq_map.get(course_code, []))
    while pending:
        prereq = pending.pop()
        if prereq in found:
            continue
        found.add(prereq)
        pending.extend(prereq_map.get(prereq, []))
    found.discard(course_code)
    return found


# ── Filters ────────────────────────────────────────────────────────────────────
def _is_all(value) -> bool:
    return value is None or value == "" or value == ALL


def courses_by_subject(courses_df: pd.DataFrame, subject=None) -> pd.DataFrame:
    if _is_all(subject):
        return courses_df
    return courses_df[courses_df["subject_area"] == subject]


def courses_by_difficulty(courses_df: pd.DataFrame, tier=None) -> pd.DataFrame:
    if _is_all(tier):
        return courses_df
    return courses_df[courses_df["difficulty"] == normalize_difficulty(tier)]


def courses_by_credits(courses_df: pd.DataFrame, credits=None) -> pd.DataFrame:
    if _is_all(credits):
        return courses_df
    return courses_df[courses_df["credits"] == int(credits)]


def courses_by_type(courses_df: pd.DataFrame, course_type=None) -> pd.DataFrame:
    if _is_all(course_type):
        return courses_df
    return courses_df[courses_df["course_type"].str.lower() == str(course_type).strip().lower()]


def courses_with_prerequisites(courses_df: pd.DataFrame, has_prereqs=None) -> pd.DataFrame:
    """has_prereqs: True / False / 'true' / 'false'; 'All' or None keeps every course."""
    if _is_all(has_prereqs):
        return courses_df
    wanted = has_prereqs if isinstance(has_prereqs, bool) else str(has_prereqs).strip().lower() == "true"
    mask = courses_df["prerequisites"].apply(lambda p: len(p) > 0)
    return courses_df[mask == wanted]


def search_courses(courses_df: pd.DataFrame, term: str | None = None) -> pd.DataFrame:
    """Case-insensitive substring match over title, code and description."""
    if not term or not term.strip():
        return courses_df
    needle = term.strip().lower()
    mask = pd.Series(False, index=courses_df.index)
    for col in ("title", "course_code", "description"):
        if col in courses_df.columns:
            mask |= courses_df[col].fillna("").astype(str).str.lower().str.contains(needle, regex=False)
    return courses_df[mask]


def filter_catalog(
    courses_df: pd.DataFrame,
    subject=None,
    difficulty=None,
    credits=None,
    course_type=None,
    has_prereqs=None,
    search: str | None = None,
) -> pd.DataFrame:
    """All catalog filters combined; each one left at 'All'/None is skipped."""
    result = courses_by_subject(courses_df, subject)
    result = courses_by_difficulty(result, difficulty)
    result = courses_by_credits(result, credits)
    result = courses_by_type(result, course_type)
    result = courses_with_prerequisites(result, has_prereqs)
    return search_courses(result, search)


def credit_options(courses_df: pd.DataFrame) -> list:
    """'All' followed by the distinct credit values, ascending."""
    values = sorted({int(c) for c in courses_df["credits"]})
    return [ALL] + values
