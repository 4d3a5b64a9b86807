"""Best-effort JSON object extraction from free-form model output.

Generation providers are asked for JSON but routinely wrap it in prose,
markdown fences, or trailing commentary.  The strategy here is the simplest
one that survives those: take the greedy span from the first ``{`` to the
last ``}`` and parse only that.

:func:`extract_json_object` raises :class:`JSONExtractionFailure`;
:func:`parse_json_object` never raises and instead returns the parsed object
(or ``None``) together with a diagnostic string for the caller to log.
"""

from __future__ import annotations

import json
import re
from typing import Any, NamedTuple

from src.utils.errors import JSONExtractionFailure

# Greedy on purpose: nested objects must stay inside the captured span.
_OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")


class JSONParseResult(NamedTuple):
    """Outcome of :func:`parse_json_object`."""

    data: dict[str, Any] | None
    diagnostic: str | None


def extract_json_object(raw: str) -> dict[str, Any]:
    """Return the JSON object embedded in *raw*.

    Raises
    ------
    JSONExtractionFailure
        If *raw* contains no ``{...}`` span, the span is not valid JSON, or
        it decodes to something other than an object.
    """
    match = _OBJECT_SPAN.search(raw or "")
    if match is None:
        raise JSONExtractionFailure("No JSON object found in model output")

    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as exc:
        raise JSONExtractionFailure(f"Malformed JSON object: {exc.msg} at position {exc.pos}") from exc

    if not isinstance(data, dict):
        raise JSONExtractionFailure(f"Expected a JSON object, got {type(data).__name__}")
    return data


def parse_json_object(raw: str) -> JSONParseResult:
    """Return ``(object, None)`` on success or ``(None, diagnostic)`` on failure."""
    try:
        return JSONParseResult(extract_json_object(raw), None)
    except JSONExtractionFailure as exc:
        return JSONParseResult(None, exc.message)
