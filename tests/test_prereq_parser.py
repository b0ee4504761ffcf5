import pytest
from prereq_parser import parse_prereqs, build_prereq_check_string


class TestParsePrereqs:
    @pytest.mark.parametrize("raw", [None, float("nan"), "", "none", "None listed", "N/A"])
    def test_none_values(self, raw):
        assert parse_prereqs(raw) == []

    def test_single(self):
        assert parse_prereqs("MATH 101") == ["MATH 101"]

    def test_semicolon_list(self):
        assert parse_prereqs("CS 201; MATH 102") == ["CS 201", "MATH 102"]

    def test_comma_and_normalization(self):
        assert parse_prereqs("math101, cs-101") == ["MATH 101", "CS 101"]

    def test_and_keyword(self):
        assert parse_prereqs("CS 201 and MATH 201") == ["CS 201", "MATH 201"]

    def test_annotation_stripped(self):
        assert parse_prereqs("MATH 101 (recommended)") == ["MATH 101"]

    def test_duplicates_dropped(self):
        assert parse_prereqs("MATH 101; math-101") == ["MATH 101"]

    def test_list_input(self):
        assert parse_prereqs(["cs101", "MATH 101"]) == ["CS 101", "MATH 101"]

    def test_unparseable_token_kept_verbatim(self):
        assert parse_prereqs("MATH 101; Intro Stats") == ["MATH 101", "Intro Stats"]


class TestBuildPrereqCheckString:
    def test_no_prereqs(self):
        assert build_prereq_check_string([], set()) == "No prerequisites"

    def test_mixed(self):
        result = build_prereq_check_string(["MATH 101", "CS 101"], {"MATH 101"})
        assert result == "MATH 101 ✓; CS 101 ✗"
