"""Tests for scheduling.templates -- {{name}} substitution in request bodies."""

import json

from scheduling.templates import LITERAL, VAR, escape_string, format_value, render, tokenize


class TestTokenize:
    def test_literal_and_placeholders(self):
        assert tokenize('{"a": "{{x}}", "b": {{y}}}') == [
            (LITERAL, '{"a": "'),
            (VAR, "x"),
            (LITERAL, '", "b": '),
            (VAR, "y"),
            (LITERAL, "}"),
        ]

    def test_no_placeholders(self):
        assert tokenize("plain text") == [(LITERAL, "plain text")]

    def test_empty(self):
        assert tokenize("") == []


class TestRender:
    def test_string_is_json_escaped(self):
        result = render("{{x}}\n", {"x": 'a"b'})
        assert result == 'a\\"b\n'

    def test_newlines_tabs_and_returns_escaped(self):
        result = render("{{x}}", {"x": "line1\nline2\r\tend"})
        assert "\n" not in result
        assert result == "line1\\nline2\\r\\tend"

    def test_result_is_valid_json_inside_string_literal(self):
        result = render('{"text": "{{msg}}"}', {"msg": 'He said "hi"\nbye'})
        assert json.loads(result) == {"text": 'He said "hi"\nbye'}

    def test_non_string_values_are_marshaled(self):
        template = '{"n": {{n}}, "f": {{f}}, "b": {{b}}, "z": {{z}}, "l": {{l}}, "o": {{o}}}'
        result = render(template, {
            "n": 3, "f": 1.5, "b": True, "z": None, "l": [1, "a"], "o": {"k": "v"},
        })
        assert json.loads(result) == {
            "n": 3, "f": 1.5, "b": True, "z": None, "l": [1, "a"], "o": {"k": "v"},
        }

    def test_reminder_defaults_to_empty(self):
        assert render("{{REMINDER}}", {}) == ""
        assert render("[{{REMINDER}}]", None) == "[]"

    def test_reminder_from_mapping(self):
        assert render("Note: {{REMINDER}}", {"REMINDER": "call Bob"}) == "Note: call Bob"

    def test_unknown_placeholder_left_untouched(self):
        assert render("{{missing}} and {{x}}", {"x": "y"}) == "{{missing}} and y"

    def test_no_double_substitution(self):
        result = render("{{a}}-{{b}}", {"a": "{{b}}", "b": "B"})
        assert result == "{{b}}-B"

    def test_repeated_placeholder(self):
        assert render("{{x}}{{x}}", {"x": "ab"}) == "abab"

    def test_empty_template(self):
        assert render("", {"x": 1}) == ""


class TestFormatValue:
    def test_unserializable_value_falls_back_to_str(self):
        assert format_value("s", {1, 2}) in ("{1, 2}", "{2, 1}")

    def test_nan_falls_back_to_str(self):
        assert format_value("n", float("nan")) == "nan"

    def test_escape_leaves_backslash_alone(self):
        assert escape_string("a\\b") == "a\\b"
