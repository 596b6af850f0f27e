from __future__ import annotations

import json
import re
from typing import Any

from contracts.errors import InvalidModelOutput

_FENCE_JSON_RE = re.compile(r"```json\s*([\s\S]*?)\s*```", re.IGNORECASE)
_FENCE_ANY_RE = re.compile(r"```\s*([\s\S]*?)\s*```")

SNIPPET_CHARS = 600


def diagnostic_snippet(text: str, limit: int = SNIPPET_CHARS) -> str:
    return re.sub(r"\s+", " ", text[:limit]).strip()


def _balanced_object_end(source: str, start: int) -> int | None:
    """Index of the `}` closing the object opened at `start`, honoring string literals."""

    depth = 0
    in_string = False
    escaped = False
    for i in range(start, len(source)):
        ch = source[i]
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
                return i
    return None


def extract_json_text(raw: str) -> str:
    """
    Locate the JSON object in free-form model output.

    Order: fenced ```json block, any fenced block, whole text; then the first
    balanced `{...}`; failing that, first `{` to last `}`.
    """

    fence = _FENCE_JSON_RE.search(raw) or _FENCE_ANY_RE.search(raw)
    source = fence.group(1) if fence else raw

    start = source.find("{")
    if start == -1:
        raise InvalidModelOutput(
            "Model output did not contain a JSON object.", snippet=diagnostic_snippet(source)
        )

    end = _balanced_object_end(source, start)
    if end is not None:
        return source[start : end + 1]

    last = source.rfind("}")
    if last > start:
        return source[start : last + 1]
    raise InvalidModelOutput(
        "Model output did not contain a complete JSON object.", snippet=diagnostic_snippet(source[start:])
    )


def extract_json(raw: str) -> dict[str, Any]:
    json_text = extract_json_text(raw)
    try:
        payload = json.loads(json_text)
    except json.JSONDecodeError as e:
        snippet = diagnostic_snippet(json_text)
        raise InvalidModelOutput(
            f"Offline analysis returned invalid JSON (parse failed). Snippet: {snippet}",
            snippet=snippet,
            detail={"error": str(e)},
        ) from e
    if not isinstance(payload, dict):
        raise InvalidModelOutput(
            "Offline analysis returned JSON that is not an object.", snippet=diagnostic_snippet(json_text)
        )
    return payload
