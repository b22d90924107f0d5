"""Tests for balanced literal extraction."""
import pytest

from outage_snapshots.errors import LiteralSyntaxError, NotFoundError, UnbalancedError
from outage_snapshots.parse.extractor import extract_assignment, extract_balanced, marker_for


def test_marker_for_uses_prefix():
    """Test marker construction."""
    assert marker_for("fact") == "DisconSchedule.fact ="
    assert marker_for("preset", prefix="X") == "X.preset ="


def test_extract_simple_object():
    """Test extraction of a flat object with offsets."""
    html = '<script>X.fact = {"a":1};</script>'
    literal = extract_balanced(html, "X.fact =")
    assert literal.text == '{"a":1}'
    assert html[literal.start : literal.end] == literal.text


def test_extract_nested_mixed_delimiters():
    """Test that braces and brackets are tracked independently."""
    html = 'X.fact = {"a": [1, {"b": [2, 3]}], "c": {}} ; var y = {"z": 1};'
    literal = extract_balanced(html, "X.fact =")
    assert literal.text == '{"a": [1, {"b": [2, 3]}], "c": {}}'
    assert literal.text[0] == "{" and literal.text[-1] == "}"


def test_extract_array_after_whitespace():
    """Test array literal preceded by newlines and tabs."""
    html = "X.fact =\n\t [[1], [2]]\n"
    assert extract_balanced(html, "X.fact =").text == "[[1], [2]]"


def test_depths_zero_only_at_final_index():
    """Test that the returned span closes exactly at its last character."""
    literal = extract_balanced("X.fact = {[{}][]} trailing}", "X.fact =").text
    curly = square = 0
    for i, ch in enumerate(literal):
        curly += {"{": 1, "}": -1}.get(ch, 0)
        square += {"[": 1, "]": -1}.get(ch, 0)
        if i < len(literal) - 1:
            assert (curly, square) != (0, 0)
    assert (curly, square) == (0, 0)


def test_first_occurrence_wins():
    """Test that only the first marker is used."""
    html = "X.fact = {\"n\": 1}; X.fact = {\"n\": 2};"
    assert extract_balanced(html, "X.fact =").text == '{"n": 1}'


def test_marker_missing():
    """Test NotFoundError when the marker is absent."""
    with pytest.raises(NotFoundError):
        extract_balanced("<html></html>", "X.fact =")


def test_non_literal_after_marker():
    """Test LiteralSyntaxError when no opener follows the marker."""
    with pytest.raises(LiteralSyntaxError):
        extract_balanced("X.fact = null;", "X.fact =")


def test_marker_at_end_of_input():
    """Test LiteralSyntaxError when the input ends right after the marker."""
    with pytest.raises(LiteralSyntaxError):
        extract_balanced("X.fact =   ", "X.fact =")


def test_unbalanced_literal():
    """Test UnbalancedError when the input ends inside the literal."""
    with pytest.raises(UnbalancedError):
        extract_balanced('X.fact = {"a": [1, 2}', "X.fact =")


def test_error_codes():
    """Test the status codes carried by extraction errors."""
    assert NotFoundError("x").code == 404
    assert LiteralSyntaxError("x").code == 422
    assert UnbalancedError("x").code == 422


def test_extract_assignment_default_prefix():
    """Test the DisconSchedule convention."""
    html = "<script>DisconSchedule.preset = {\"data\": {}}</script>"
    assert extract_assignment(html, "preset").text == '{"data": {}}'


def test_offsets_count_characters():
    """Test that offsets index the decoded string, not its UTF-8 bytes."""
    html = '<p>Графік відключень</p><script>X.fact = {"a":1}</script>'
    literal = extract_balanced(html, "X.fact =")
    assert literal.start == html.index("{")
    assert html[literal.start : literal.end] == '{"a":1}'
