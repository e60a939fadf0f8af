from __future__ import annotations

import json
import logging
from typing import Any, Dict, Literal, Tuple

from pydantic import BaseModel, Field

from coditor import gemini_client
from coditor.errors import ReviewError

log = logging.getLogger(__name__)

Framework = Literal["react", "angular", "vue", "svelte"]


class ReviewRequest(BaseModel):
    code: str = Field(..., description="Frontend source code to review")
    framework: Framework = Field("react", description="Framework whose conventions the review applies")


def handle_review(req: ReviewRequest) -> Tuple[int, Dict[str, Any]]:
    """Run one review and return (status, payload) for transport.

    Success: 200 and {"content": [{"text": <json string>}]}.
    Failure: the error's status and {"error": <message>}.
    """
    if not req.code.strip():
        return 400, {"error": "No code provided"}
    try:
        review = gemini_client.analyze_code(req.code, req.framework)
    except ReviewError as exc:
        log.warning("review.failed kind=%s status=%s msg=%s", type(exc).__name__, exc.status_code, exc.message)
        return exc.status_code, {"error": exc.describe()}
    except Exception as exc:
        log.exception("review.unexpected_error")
        return 500, {"error": f"Failed to analyze code: {exc}"}
    return 200, {"content": [{"text": json.dumps(review, ensure_ascii=False)}]}
