import re
import pandas as pd
from normalizer import normalize_code

# Prerequisite lists are conjunctive: every listed course is required.
PREREQ_SPLIT = re.compile(r'\s*[;,]\s*|\s+and\s+', re.IGNORECASE)

# Strips parenthetical notes, e.g. "MATH 101 (recommended)"
ANNOTATION_RE = re.compile(r'\s*\([^)]*\)')

NONE_VALUES = {"none", "none listed", "n/a", "nan", ""}


def parse_prereqs(prereq_value) -> list[str]:
    """
    Parses a course's prerequisites field into an ordered list of course codes.

    Accepted shapes:
      None / NaN / "none"          → []
      "MATH 101"                   → ["MATH 101"]
      "MATH 101; CS 101"           → ["MATH 101", "CS 101"]
      "math101, cs-101"            → ["MATH 101", "CS 101"]
      ["MATH 101", "CS 101"]       → ["MATH 101", "CS 101"]

    Tokens that do not look like course codes are kept verbatim. They can never
    match a catalog code, so a course listing one stays locked.
    """
    if prereq_value is None:
        return []
    if isinstance(prereq_value, float) and pd.isna(prereq_value):
        return []

    if isinstance(prereq_value, (list, tuple, set)):
        raw_tokens = [str(t) for t in prereq_value]
    else:
        s = ANNOTATION_RE.sub("", str(prereq_value)).strip()
        if s.lower() in NONE_VALUES:
            return []
        raw_tokens = PREREQ_SPLIT.split(s)

    codes: list[str] = []
    for token in raw_tokens:
        token = token.strip()
        if token.lower() in NONE_VALUES:
            continue
        code = normalize_code(token) or token
        if code not in codes:
            codes.append(code)
    return codes


def build_prereq_check_string(prereqs: list[str], completed: set) -> str:
    """
    Returns a human-readable string showing which prereqs are met.
    Examples:
      "No prerequisites"
      "MATH 101 ✓"
      "MATH 101 ✓; CS 101 ✗"
    """
    if not prereqs:
        return "No prerequisites"
    return "; ".join(
        f"{code} ✓" if code in completed else f"{code} ✗"
        for code in prereqs
    )
