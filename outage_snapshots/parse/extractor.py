"""Locate `Prefix.key = {...}` assignments in raw markup and cut out the literal."""
import logging
from dataclasses import dataclass

from outage_snapshots.config import config
from outage_snapshots.errors import LiteralSyntaxError, NotFoundError, UnbalancedError

logger = logging.getLogger(__name__)

OPENERS = ("{", "[")


@dataclass(frozen=True)
class ExtractedLiteral:
    """Verbatim literal text plus its [start, end) character offsets into the decoded source string."""

    text: str
    start: int
    end: int


def marker_for(key: str, prefix: str | None = None) -> str:
    """Build the assignment marker, e.g. ``DisconSchedule.fact =``."""
    return f"{prefix or config.MARKER_PREFIX}.{key} ="


def extract_balanced(source: str, marker: str) -> ExtractedLiteral:
    """
    Return the object/array literal that follows the first ``marker``.

    Only delimiter balance is tracked: braces and brackets are counted
    independently and the literal ends where both depths return to zero.
    Delimiters inside quoted strings are counted too.
    """
    idx = source.find(marker)
    if idx == -1:
        raise NotFoundError(f"Marker `{marker}` not found")

    i = idx + len(marker)
    n = len(source)
    while i < n and source[i].isspace():
        i += 1
    if i >= n or source[i] not in OPENERS:
        raise LiteralSyntaxError(f"Expected '{{' or '[' after `{marker}`")

    start = i
    depth_curly = 0
    depth_square = 0
    for i in range(start, n):
        ch = source[i]
        if ch == "{":
            depth_curly += 1
        elif ch == "}":
            depth_curly -= 1
        elif ch == "[":
            depth_square += 1
        elif ch == "]":
            depth_square -= 1
        if depth_curly == 0 and depth_square == 0:
            return ExtractedLiteral(text=source[start : i + 1], start=start, end=i + 1)

    raise UnbalancedError(f"Unbalanced braces while extracting literal after `{marker}`")


def extract_assignment(source: str, key: str, prefix: str | None = None) -> ExtractedLiteral:
    """Extract ``<prefix>.<key> = <literal>`` from an HTML page."""
    literal = extract_balanced(source, marker_for(key, prefix))
    logger.debug(f"Extracted {key} literal at [{literal.start}, {literal.end}) ({len(literal.text)} chars)")
    return literal
