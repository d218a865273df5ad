"""Tests for tav.validate module."""

import json

from tav.transcript import parse_jsonl
from tav.validate import validate


def _lines(*entries):
    return parse_jsonl("\n".join(e if isinstance(e, str) else json.dumps(e) for e in entries))


class TestValidate:
    """Tests for validate()."""

    def test_valid_session(self, builder):
        builder.turns(3)

        result = validate(builder.lines())

        assert result.valid
        assert result.errors == []

    def test_duplicate_uuid(self):
        lines = _lines(
            {"uuid": "a", "parentUuid": None},
            {"uuid": "b", "parentUuid": "a"},
            {"uuid": "a", "parentUuid": "b"},
        )

        result = validate(lines)

        assert not result.valid
        assert result.errors == ["Duplicate UUID at line 3: a"]

    def test_broken_parent_reference(self):
        lines = _lines(
            {"uuid": "a", "parentUuid": None},
            {"uuid": "b", "parentUuid": "ghost"},
        )

        result = validate(lines)

        assert result.errors == ["Broken parent reference at line 2: ghost not found"]

    def test_parent_may_appear_later_in_file(self):
        lines = _lines(
            {"uuid": "a", "parentUuid": None},
            {"uuid": "c", "parentUuid": "b"},
            {"uuid": "b", "parentUuid": "a"},
        )

        assert validate(lines).valid

    def test_first_line_exempt_from_parent_check(self):
        """A resumed session's first entry points into a previous file."""
        lines = _lines(
            {"uuid": "a", "parentUuid": "from-previous-session"},
            {"uuid": "b", "parentUuid": "a"},
        )

        assert validate(lines).valid

    def test_lines_without_uuid_and_malformed_lines_skipped(self):
        lines = _lines(
            {"uuid": "a", "parentUuid": None},
            {"type": "summary", "leafUuid": "a"},
            "not json",
            {"uuid": "b", "parentUuid": "a"},
        )

        assert validate(lines).valid

    def test_reports_every_problem(self):
        lines = _lines(
            {"uuid": "a", "parentUuid": None},
            {"uuid": "a", "parentUuid": "x"},
            {"uuid": "b", "parentUuid": "y"},
        )

        result = validate(lines)

        assert len(result.errors) == 3

    def test_empty(self):
        assert validate([]).valid
