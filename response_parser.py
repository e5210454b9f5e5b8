# response_parser.py
"""
Pulls JSON out of free-text model replies.

Language models wrap their JSON in prose or code fences, so the reply is
scanned for the first balanced [...] or {...} span that also parses as JSON.
String literals are respected while counting brackets, so a "]" inside a
quoted description does not end the span early.
"""

import json
from typing import Any, Optional, Union

from pydantic import BaseModel

# Longer replies are rejected without scanning.
MAX_REPLY_CHARS = 100_000
# Each opener tried costs a scan to the end of the reply.
MAX_CANDIDATE_SPANS = 50


class ParsedJson(BaseModel):
    """A JSON value found in a reply, plus the exact span it was parsed from."""
    value: Any
    span: str


class ParseFailure(BaseModel):
    """Why no JSON value could be recovered from a reply."""
    reason: str


ParseResult = Union[ParsedJson, ParseFailure]


def _balanced_end(text: str, start: int, opener: str, closer: str) -> Optional[int]:
    """Returns the index just past the bracket that closes text[start], or None."""
    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == opener:
            depth += 1
        elif char == closer:
            depth -= 1
            if depth == 0:
                return index + 1
    return None


def _extract_first(text: Optional[str], opener: str, closer: str, expected: type) -> ParseResult:
    if not text:
        return ParseFailure(reason="empty response")
    if len(text) > MAX_REPLY_CHARS:
        return ParseFailure(reason=f"response too long ({len(text)} characters)")

    position = text.find(opener)
    if position == -1:
        return ParseFailure(reason=f"no '{opener}' found in response")

    last_error = "no balanced span found"
    attempts = 0
    while position != -1 and attempts < MAX_CANDIDATE_SPANS:
        attempts += 1
        end = _balanced_end(text, position, opener, closer)
        if end is not None:
            candidate = text[position:end]
            try:
                value = json.loads(candidate)
            except json.JSONDecodeError as e:
                last_error = f"invalid JSON: {e.msg}"
            except RecursionError:
                return ParseFailure(reason="JSON nested too deeply")
            else:
                if isinstance(value, expected):
                    return ParsedJson(value=value, span=candidate)
        position = text.find(opener, position + 1)

    return ParseFailure(reason=last_error)


def extract_json_array(text: Optional[str]) -> ParseResult:
    """Finds and parses the first well-formed JSON array in the text."""
    return _extract_first(text, "[", "]", list)


def extract_json_object(text: Optional[str]) -> ParseResult:
    """Finds and parses the first well-formed JSON object in the text."""
    return _extract_first(text, "{", "}", dict)
