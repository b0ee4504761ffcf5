import pytest
import pandas as pd

from catalog import (
    ALL,
    CatalogIntegrityError,
    courses_by_credits,
    courses_by_difficulty,
    courses_by_subject,
    courses_by_type,
    courses_with_prerequisites,
    credit_options,
    difficulty_rank,
    filter_catalog,
    find_prereq_cycle,
    normalize_difficulty,
    prerequisites_of,
    search_courses,
    transitive_prerequisites_of,
    unknown_prereqs,
    validate_catalog,
)


def _catalog(*rows):
    """Each row: (code, subject, difficulty, credits, type, prereqs)."""
    return pd.DataFrame(
        [
            {
                "course_code": r[0],
                "title": f"{r[0]} title",
                "subject_area": r[1],
                "difficulty": r[2],
                "credits": r[3],
                "course_type": r[4],
                "description": "",
                "prerequisites": list(r[5]),
            }
            for r in rows
        ]
    )


@pytest.fixture
def courses_df():
    return _catalog(
        ("MATH 101", "Mathematics", "Introductory", 4, "Core", []),
        ("CS 101", "Computer Science", "Introductory", 3, "Core", []),
        ("MATH 102", "Mathematics", "Intermediate", 4, "Core", ["MATH 101"]),
        ("CS 201", "Computer Science", "Intermediate", 4, "Core", ["CS 101"]),
        ("CS 301", "Computer Science", "Advanced", 4, "Core", ["CS 201", "MATH 102"]),
        ("ENG 101", "English", "Introductory", 3, "Elective", []),
    )


@pytest.fixture
def prereq_map(courses_df):
    return dict(zip(courses_df["course_code"], courses_df["prerequisites"]))


class TestDifficulty:
    @pytest.mark.parametrize("raw,expected", [
        ("Introductory", "Introductory"),
        ("advanced", "Advanced"),
        (2, "Intermediate"),
        ("3", "Advanced"),
        (1.0, "Introductory"),
        ("Expert", None),
        (None, None),
    ])
    def test_normalize(self, raw, expected):
        assert normalize_difficulty(raw) == expected

    def test_tiers_are_ordered(self):
        assert difficulty_rank("Introductory") < difficulty_rank("Intermediate") < difficulty_rank("Advanced")


class TestFilters:
    def test_subject_exact_match(self, courses_df):
        result = courses_by_subject(courses_df, "Mathematics")
        assert result["course_code"].tolist() == ["MATH 101", "MATH 102"]

    @pytest.mark.parametrize("subject", [ALL, None, ""])
    def test_subject_all_returns_everything(self, courses_df, subject):
        assert courses_by_subject(courses_df, subject)["course_code"].tolist() == courses_df["course_code"].tolist()

    def test_subject_is_case_sensitive_exact(self, courses_df):
        assert len(courses_by_subject(courses_df, "mathematics")) == 0

    def test_difficulty(self, courses_df):
        result = courses_by_difficulty(courses_df, "Advanced")
        assert result["course_code"].tolist() == ["CS 301"]

    def test_difficulty_numeric_code(self, courses_df):
        result = courses_by_difficulty(courses_df, 2)
        assert result["course_code"].tolist() == ["MATH 102", "CS 201"]

    def test_difficulty_all(self, courses_df):
        assert len(courses_by_difficulty(courses_df, ALL)) == len(courses_df)

    def test_credits(self, courses_df):
        assert courses_by_credits(courses_df, "3")["course_code"].tolist() == ["CS 101", "ENG 101"]

    def test_type(self, courses_df):
        assert courses_by_type(courses_df, "elective")["course_code"].tolist() == ["ENG 101"]

    def test_has_prerequisites(self, courses_df):
        with_prereqs = courses_with_prerequisites(courses_df, "true")["course_code"].tolist()
        without = courses_with_prerequisites(courses_df, False)["course_code"].tolist()
        assert with_prereqs == ["MATH 102", "CS 201", "CS 301"]
        assert without == ["MATH 101", "CS 101", "ENG 101"]

    def test_search_is_case_insensitive(self, courses_df):
        assert search_courses(courses_df, "cs 2")["course_code"].tolist() == ["CS 201"]

    def test_combined_filters(self, courses_df):
        result = filter_catalog(
            courses_df,
            subject="Computer Science",
            difficulty="Intermediate",
            has_prereqs="true",
        )
        assert result["course_code"].tolist() == ["CS 201"]

    def test_combined_all_is_noop(self, courses_df):
        assert len(filter_catalog(courses_df, subject=ALL, difficulty=ALL, credits=ALL)) == len(courses_df)

    def test_credit_options_sorted_with_all_first(self, courses_df):
        assert credit_options(courses_df) == [ALL, 3, 4]


class TestPrerequisiteLookups:
    def test_direct_prereqs(self, prereq_map):
        assert prerequisites_of("CS 301", prereq_map) == {"CS 201", "MATH 102"}

    def test_no_prereqs_is_empty_set(self, prereq_map):
        assert prerequisites_of("MATH 101", prereq_map) == set()

    def test_unknown_course_is_empty_set(self, prereq_map):
        assert prerequisites_of("BIO 100", prereq_map) == set()

    def test_direct_lookup_is_not_transitive(self, prereq_map):
        assert "CS 101" not in prerequisites_of("CS 301", prereq_map)

    def test_transitive(self, prereq_map):
        assert transitive_prerequisites_of("CS 301", prereq_map) == {
            "CS 201", "CS 101", "MATH 102", "MATH 101",
        }

    def test_transitive_on_deep_chain(self):
        chain = {f"C {i}": [f"C {i + 1}"] for i in range(5000)}
        assert len(transitive_prerequisites_of("C 0", chain)) == 5000

    def test_unknown_prereqs(self, prereq_map):
        prereq_map = {**prereq_map, "CS 360": ["CS 301", "STAT 300"]}
        catalog_codes = set(prereq_map)
        assert unknown_prereqs(prereq_map, catalog_codes) == {"CS 360": ["STAT 300"]}


class TestCycleDetection:
    def test_acyclic(self, prereq_map):
        assert find_prereq_cycle(prereq_map) is None

    def test_two_node_cycle(self):
        cycle = find_prereq_cycle({"A 100": ["B 100"], "B 100": ["A 100"]})
        assert cycle is not None
        assert cycle[0] == cycle[-1]
        assert set(cycle) == {"A 100", "B 100"}

    def test_self_reference(self):
        assert find_prereq_cycle({"A 100": ["A 100"]}) == ["A 100", "A 100"]

    def test_long_cycle(self):
        cycle = find_prereq_cycle({
            "A 100": ["B 100"],
            "B 100": ["C 100"],
            "C 100": ["A 100"],
            "D 100": ["A 100"],
        })
        assert set(cycle) == {"A 100", "B 100", "C 100"}

    def test_edge_to_unknown_course_is_not_a_cycle(self):
        assert find_prereq_cycle({"A 100": ["Z 999"]}) is None

    def test_diamond_is_not_a_cycle(self):
        assert find_prereq_cycle({
            "D 100": ["B 100", "C 100"],
            "B 100": ["A 100"],
            "C 100": ["A 100"],
            "A 100": [],
        }) is None

    def test_deep_chain_beyond_recursion_limit(self):
        depth = 5000
        chain = {f"C {i}": [f"C {i + 1}"] for i in range(depth)}
        chain[f"C {depth}"] = []
        assert find_prereq_cycle(chain) is None

        chain[f"C {depth}"] = ["C 0"]
        cycle = find_prereq_cycle(chain)
        assert cycle[0] == cycle[-1] == "C 0"
        assert len(cycle) == depth + 2


class TestValidateCatalog:
    def test_valid_catalog(self, courses_df, prereq_map):
        validate_catalog(courses_df, prereq_map)

    def test_cycle_raises(self):
        df = _catalog(
            ("A 100", "X", "Introductory", 3, "Core", ["B 100"]),
            ("B 100", "X", "Introductory", 3, "Core", ["A 100"]),
        )
        prereq_map = dict(zip(df["course_code"], df["prerequisites"]))
        with pytest.raises(CatalogIntegrityError, match="cycle"):
            validate_catalog(df, prereq_map)

    def test_duplicate_codes_raise(self):
        df = _catalog(
            ("A 100", "X", "Introductory", 3, "Core", []),
            ("A 100", "X", "Introductory", 3, "Core", []),
        )
        with pytest.raises(CatalogIntegrityError, match="Duplicate"):
            validate_catalog(df, {"A 100": []})

    @pytest.mark.parametrize("credits", [0, -3, 2.5, float("nan")])
    def test_bad_credits_raise(self, credits):
        df = _catalog(("A 100", "X", "Introductory", credits, "Core", []))
        with pytest.raises(CatalogIntegrityError, match="Credits"):
            validate_catalog(df, {"A 100": []})

    def test_unknown_tier_raises(self):
        df = _catalog(("A 100", "X", None, 3, "Core", []))
        with pytest.raises(CatalogIntegrityError, match="difficulty"):
            validate_catalog(df, {"A 100": []})

    def test_integrity_error_is_value_error(self):
        assert issubclass(CatalogIntegrityError, ValueError)