from __future__ import annotations

import json
import re
from typing import Any

from coditor.errors import MalformedResponse

# Only the outer fence; backticks inside JSON string values must survive.
# A language tag only counts when whitespace or a newline follows it.
_OPEN_FENCE_RE = re.compile(r"^```(?:[A-Za-z0-9_+-]*(?:[ \t]*\r?\n|[ \t]+))?")
_CLOSE_FENCE_RE = re.compile(r"\r?\n?```$")


def strip_fences(text: str) -> str:
    """Remove a leading ```lang / ``` fence and a trailing ``` from model output."""
    t = (text or "").strip()
    t = _OPEN_FENCE_RE.sub("", t, count=1)
    t = _CLOSE_FENCE_RE.sub("", t, count=1)
    return t.strip()


def parse_review_text(text: str) -> Any:
    """Strip fences and load JSON; raise MalformedResponse on failure."""
    cleaned = strip_fences(text)
    if not cleaned:
        raise MalformedResponse("Failed to parse AI response as JSON")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise MalformedResponse("Failed to parse AI response as JSON") from exc
