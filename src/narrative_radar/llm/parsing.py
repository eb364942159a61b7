"""Tolerant JSON extraction from model output.

Models are asked for one JSON object but return free text. Three recovery
steps run in order:

1. Strip a leading ```` ```json ```` / ```` ``` ```` fence and a trailing
   ```` ``` ````.
2. Parse the remainder directly.
3. Scan for a ``{`` and walk forward tracking brace depth and string state
   (escaped quotes included) to the matching top-level ``}``, then parse
   that slice. This recovers an object followed by trailing commentary.

If nothing parses, ``ParseError`` is raised with a bounded head/tail excerpt
of the input.

Example:
    >>> parse_llm_json('```json\\n{"a": 1}\\n```')
    {'a': 1}
    >>> parse_llm_json('{"a": 1} trailing notes')
    {'a': 1}
"""

from __future__ import annotations

import json
from typing import Any, Iterator

from narrative_radar.core.errors import ParseError

EXCERPT_CHARS = 200


def strip_code_fence(content: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    cleaned = content.strip()
    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[3:]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-3]
    return cleaned.strip()


def excerpt(content: str, limit: int = EXCERPT_CHARS) -> str:
    """Head and tail of ``content``, each at most ``limit`` characters."""
    if len(content) <= 2 * limit:
        return content
    return f"{content[:limit]} ... [{len(content) - 2 * limit} chars omitted] ... {content[-limit:]}"


def _balanced_objects(text: str) -> Iterator[str]:
    """Yield every top-level ``{...}`` slice, in order of its opening brace."""
    start = text.find("{")
    while start != -1:
        depth = 0
        in_string = False
        escaped = False
        end = -1
        for i in range(start, len(text)):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == "\\":
                    escaped = True
                elif ch == '"':
                    in_string = False
                continue
            if ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    end = i
                    break
        if end == -1:
            # Unbalanced from here on; later openings are nested in this one.
            return
        yield text[start:end + 1]
        start = text.find("{", end + 1)


def extract_json_object(text: str) -> dict[str, Any] | None:
    """First balanced slice of ``text`` that parses to a JSON object."""
    for candidate in _balanced_objects(text):
        try:
            value = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(value, dict):
            return value
    return None


def parse_llm_json(content: str) -> dict[str, Any]:
    """Parse one JSON object out of model output.

    Raises:
        ParseError: No JSON object could be recovered. ``excerpt`` holds a
            bounded head/tail of the input.
    """
    cleaned = strip_code_fence(content or "")

    try:
        value = json.loads(cleaned)
    except json.JSONDecodeError:
        value = None
    if isinstance(value, dict):
        return value

    recovered = extract_json_object(cleaned)
    if recovered is not None:
        return recovered

    snippet = excerpt(content or "")
    raise ParseError(
        f"Model output does not contain a JSON object ({len(content or '')} chars): {snippet!r}",
        excerpt=snippet,
    )
