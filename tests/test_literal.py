"""Tests for strict/permissive literal decoding."""
import json

import pytest

from outage_snapshots.errors import ParseError
from outage_snapshots.parse.literal import js_literal_to_python, parse_literal


def test_strict_json():
    """Test that valid JSON decodes in strict mode."""
    text = '{"a": 1, "b": [true, false, null], "c": "x"}'
    parsed = parse_literal(text)
    assert parsed.mode == "strict"
    assert parsed.value == json.loads(text)


def test_strict_array():
    """Test a top-level array."""
    parsed = parse_literal("[1, 2.5, \"три\"]")
    assert parsed.mode == "strict"
    assert parsed.value == [1, 2.5, "три"]


def test_unquoted_keys_are_permissive():
    """Test unquoted keys fall back to permissive mode."""
    parsed = parse_literal("{a: 1, b: {c: [1, 2]}}")
    assert parsed.mode == "permissive"
    assert parsed.value == {"a": 1, "b": {"c": [1, 2]}}


def test_single_quotes_and_trailing_commas():
    """Test single-quoted strings and trailing commas."""
    parsed = parse_literal("{'GPV1.1': ['yes', 'no',], 'n': -3,}")
    assert parsed.mode == "permissive"
    assert parsed.value == {"GPV1.1": ["yes", "no"], "n": -3}


def test_js_keywords():
    """Test JS keyword values."""
    parsed = parse_literal("{ok: true, bad: false, none: null, gone: undefined}")
    assert parsed.value == {"ok": True, "bad": False, "none": None, "gone": None}


def test_numeric_keys_become_strings():
    """Test numeric property names are turned into strings."""
    parsed = parse_literal("{1: 'yes', 24: 'no', 0x10: 'hex'}")
    assert parsed.value == {"1": "yes", "24": "no", "16": "hex"}


def test_comments_are_ignored():
    """Test line and block comments."""
    parsed = parse_literal("{\n  // today\n  a: 1, /* later */ b: 2\n}")
    assert parsed.value == {"a": 1, "b": 2}


def test_string_escapes():
    """Test JS escapes inside strings."""
    parsed = parse_literal("{s: 'it\\'s \\u0422\\x41 \\/ \\n'}")
    assert parsed.value == {"s": "it's ТA / \n"}


def test_surrogate_pair_escape():
    """Test that escaped surrogate pairs combine into one character."""
    parsed = parse_literal("{e: '\\ud83d\\ude00'}")
    assert parsed.value == {"e": "\U0001F600"}


def test_braces_inside_strings_are_preserved():
    """Test string content is copied verbatim."""
    parsed = parse_literal("{t: 'a {b} [c]: d,'}")
    assert parsed.value == {"t": "a {b} [c]: d,"}


def test_function_call_rejected():
    """Test that code is never evaluated."""
    with pytest.raises(ParseError) as exc_info:
        parse_literal("{a: alert(1)}")
    assert exc_info.value.cause is not None


def test_identifier_value_rejected():
    """Test that bare identifiers used as values are rejected."""
    with pytest.raises(ParseError):
        parse_literal("{a: window}")


def test_garbage_rejected():
    """Test that unparsable text raises ParseError with code 422."""
    with pytest.raises(ParseError) as exc_info:
        parse_literal("{a: [1, 2}")
    assert exc_info.value.code == 422


def test_set_syntax_rejected():
    """Test that Python-only shapes are not accepted."""
    with pytest.raises(ParseError):
        parse_literal("{1, 2}")


def test_js_literal_to_python_quotes_keys():
    """Test rewriting output."""
    assert js_literal_to_python("{a: true}") == "{'a': True}"


def test_oversized_integers_become_floats():
    """Test that integers beyond 64 bits decode as JS numbers."""
    parsed = parse_literal("{a: 123456789012345678901234567890, b: [18446744073709551615, -9223372036854775808]}")
    assert parsed.mode == "permissive"
    assert parsed.value["a"] == float(123456789012345678901234567890)
    assert isinstance(parsed.value["a"], float)
    assert parsed.value["b"] == [18446744073709551615, -9223372036854775808]
    assert isinstance(parsed.value["b"][0], int)


def test_oversized_integer_in_strict_json():
    """Test large integers in otherwise valid JSON."""
    parsed = parse_literal('{"a": 123456789012345678901234567890}')
    assert parsed.value == {"a": float(123456789012345678901234567890)}
