"""Decode extracted literals: strict JSON first, permissive JS literal second.

The permissive mode never executes anything. The literal is re-tokenized into
Python literal syntax (identifier keys quoted, ``true``/``false``/``null``
mapped, comments dropped, strings re-escaped) and handed to
``ast.literal_eval``, which only builds containers, strings and numbers.
"""
import ast
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal

import orjson

from outage_snapshots.errors import ParseError

logger = logging.getLogger(__name__)

ParseMode = Literal["strict", "permissive"]

_IDENT_START = re.compile(r"[A-Za-z_$Ѐ-ӿ]")
_IDENT = re.compile(r"[A-Za-z0-9_$Ѐ-ӿ]+")
_DIGITS = "0123456789"
# orjson serializes integers in [-2**63, 2**64 - 1]
_INT_MIN = -(2**63)
_INT_MAX = 2**64 - 1
_NUMBER = re.compile(r"(?:0[xX][0-9a-fA-F]+|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

_KEYWORDS = {
    "true": "True",
    "false": "False",
    "null": "None",
    "undefined": "None",
    "Infinity": "1e999",
}

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


@dataclass(frozen=True)
class ParsedLiteral:
    value: Any
    mode: ParseMode


def _read_string(text: str, i: int) -> tuple[str, int]:
    """Decode a JS string literal starting at ``text[i]`` (the quote)."""
    quote = text[i]
    i += 1
    out = []
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == quote:
            return _join_surrogates(out), i + 1
        if quote == "`" and text.startswith("${", i):
            raise ValueError("template literal interpolation is not a literal")
        if ch == "\\":
            i += 1
            if i >= n:
                break
            esc = text[i]
            if esc in _SIMPLE_ESCAPES:
                out.append(_SIMPLE_ESCAPES[esc])
            elif esc == "u":
                if text.startswith("{", i + 1):
                    close = text.index("}", i)
                    out.append(chr(int(text[i + 2 : close], 16)))
                    i = close
                else:
                    out.append(chr(int(text[i + 1 : i + 5], 16)))
                    i += 4
            elif esc == "x":
                out.append(chr(int(text[i + 1 : i + 3], 16)))
                i += 2
            elif esc in "\r\n":
                # line continuation
                if esc == "\r" and text.startswith("\n", i + 1):
                    i += 1
            else:
                out.append(esc)
            i += 1
            continue
        if ch in "\r\n" and quote != "`":
            raise ValueError("unterminated string literal")
        out.append(ch)
        i += 1
    raise ValueError("unterminated string literal")


def _join_surrogates(chars: list[str]) -> str:
    # \ud83d\ude00 style escapes arrive as two halves
    return "".join(chars).encode("utf-16", "surrogatepass").decode("utf-16")


def _numeric_key(number: str) -> str:
    """JS property names are strings: ``1`` -> ``"1"``, ``0x10`` -> ``"16"``."""
    if number[:2].lower() == "0x":
        return str(int(number, 16))
    if number.isdigit():
        return str(int(number))
    value = float(number)
    return str(int(value)) if value.is_integer() else repr(value)


def _ensure_json_like(value: Any) -> Any:
    """Reject non-JSON shapes; integers the serializer cannot hold become floats, as in JS."""
    if isinstance(value, dict):
        out = {}
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValueError(f"non-string key {key!r}")
            out[key] = _ensure_json_like(item)
        return out
    if isinstance(value, list):
        return [_ensure_json_like(item) for item in value]
    if isinstance(value, int) and not isinstance(value, bool):
        return value if _INT_MIN <= value <= _INT_MAX else float(value)
    if value is not None and not isinstance(value, (str, float, bool)):
        raise ValueError(f"unsupported value of type {type(value).__name__}")
    return value


def _next_significant(text: str, i: int) -> str:
    n = len(text)
    while i < n and text[i].isspace():
        i += 1
    return text[i] if i < n else ""


def js_literal_to_python(text: str) -> str:
    """Rewrite a JS object/array literal as equivalent Python literal source."""
    out = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch.isspace() or ch in "{}[]:,+-":
            out.append(ch)
            i += 1
        elif text.startswith("//", i):
            end = text.find("\n", i)
            i = n if end == -1 else end
        elif text.startswith("/*", i):
            end = text.find("*/", i + 2)
            if end == -1:
                raise ValueError("unterminated comment")
            i = end + 2
        elif ch in "\"'`":
            value, i = _read_string(text, i)
            out.append(repr(value))
        elif ch in _DIGITS or (ch == "." and i + 1 < n and text[i + 1] in _DIGITS):
            match = _NUMBER.match(text, i)
            i = match.end()
            if _next_significant(text, i) == ":":
                out.append(repr(_numeric_key(match.group())))
            else:
                out.append(match.group())
        elif _IDENT_START.match(ch):
            match = _IDENT.match(text, i)
            word = match.group()
            i = match.end()
            if _next_significant(text, i) == ":":
                out.append(repr(word))
            elif word in _KEYWORDS:
                out.append(_KEYWORDS[word])
            else:
                raise ValueError(f"unsupported identifier {word!r}")
        else:
            raise ValueError(f"unexpected character {ch!r} at offset {i}")
    return "".join(out)


def parse_strict(text: str) -> Any:
    return _ensure_json_like(orjson.loads(text))


def parse_permissive(text: str) -> Any:
    return _ensure_json_like(ast.literal_eval(js_literal_to_python(text)))


def parse_literal(text: str) -> ParsedLiteral:
    """Decode ``text`` strictly, falling back to permissive literal evaluation."""
    try:
        return ParsedLiteral(parse_strict(text), "strict")
    except orjson.JSONDecodeError as e:
        logger.debug(f"Strict decode failed ({e}), trying permissive mode")

    try:
        return ParsedLiteral(parse_permissive(text), "permissive")
    except (ValueError, SyntaxError, TypeError, OverflowError, MemoryError, RecursionError) as e:
        raise ParseError(f"Failed to parse object: {e}", cause=e) from e
