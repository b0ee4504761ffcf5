import re

# Matches: DEPT NNN, DEPT-NNN, DEPTNNN, MATH 101, CS 2100A, etc.
CANONICAL = re.compile(r'^([A-Za-z]{2,6})\s*-?\s*(\d{3,4}[A-Za-z]?)$')
SEPARATORS = re.compile(r'[,\n;]+')


def normalize_code(raw) -> str | None:
    """
    Normalizes a course code to canonical 'DEPT NNN' format.
    Handles: 'math101', 'MATH-101', 'MATH 101', 'cs 2100a'
    Returns None if the value cannot be parsed as a course code.
    """
    if raw is None:
        return None
    text = str(raw).strip()
    m = CANONICAL.match(text)
    if not m:
        return None
    return f"{m.group(1).upper()} {m.group(2).upper()}"


def split_codes(raw_value) -> list[str]:
    """Accepts a JSON list or a comma/semicolon/newline separated string."""
    if raw_value is None:
        return []
    if isinstance(raw_value, (list, tuple)):
        tokens = []
        for item in raw_value:
            tokens.extend(split_codes(item))
        return tokens
    return [t.strip() for t in SEPARATORS.split(str(raw_value)) if t.strip()]


def normalize_input(raw_value, catalog_codes: set) -> dict:
    """
    Normalizes user-supplied course codes against the catalog.

    Returns:
      {
        "valid":          ["MATH 101", "CS 101"],  # normalized + in catalog
        "invalid":        ["asdfasdf"],            # not a course code
        "not_in_catalog": ["MATH 999"],            # well-formed but unknown
      }
    Each list keeps first-seen order; repeats are dropped.
    """
    result = {"valid": [], "invalid": [], "not_in_catalog": []}
    seen: set[str] = set()

    for token in split_codes(raw_value):
        normalized = normalize_code(token)
        key = normalized or token
        if key in seen:
            continue
        seen.add(key)
        if normalized is None:
            result["invalid"].append(token)
        elif normalized in catalog_codes:
            result["valid"].append(normalized)
        else:
            result["not_in_catalog"].append(normalized)

    return result
