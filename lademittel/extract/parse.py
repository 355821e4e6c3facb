from __future__ import annotations

import json
import re
from typing import Any

from lademittel.errors import ParseFailure

_RE_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```", re.I)
_RE_JSON_BODY = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")


def parse_json_response(text: str) -> Any:
    """
    Pull the JSON value out of a model answer: strip code fences, then take
    the outermost object/array. Raises ParseFailure when nothing parses.
    """
    cleaned = (text or "").strip()
    m = _RE_FENCE.search(cleaned)
    if m:
        cleaned = m.group(1).strip()
    m = _RE_JSON_BODY.search(cleaned)
    if m:
        cleaned = m.group(1)
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ParseFailure(
            f"Failed to parse JSON from oracle response: {cleaned[:200]!r}", raw=text
        ) from e
