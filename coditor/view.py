from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple, Union

from coditor.errors import MalformedResponse, SchemaMismatch
from coditor.handler import ReviewRequest
from coditor.parsing import parse_review_text
from coditor.prompts import FRAMEWORKS
from coditor.validators import ReviewResult, validate_review

log = logging.getLogger(__name__)

EMPTY_CODE_MESSAGE = "Please upload a code file or paste code to review"
NO_REVIEW_MESSAGE = "Failed to get review from AI"
GENERIC_FAILURE_MESSAGE = "Failed to analyze code. Please try again."

# transport(request) -> (http status, decoded JSON payload)
Transport = Callable[[ReviewRequest], Tuple[int, Any]]


class ViewState(str, Enum):
    IDLE = "idle"
    EDITING = "editing"
    SUBMITTING = "submitting"
    DISPLAYING = "displaying"
    FAILED = "failed"


class SubmissionInFlight(RuntimeError):
    pass


class ReviewView:
    """Form state for one review page.

    IDLE/EDITING -> SUBMITTING -> DISPLAYING | FAILED; editing after a
    result or failure goes back to EDITING. One submission at a time.
    """

    def __init__(self, code: str = "", framework: str = "react") -> None:
        self.state = ViewState.IDLE
        self.code = ""
        self.framework = "react"
        self.filename: Optional[str] = None
        self.result: Optional[ReviewResult] = None
        self.error = ""
        self.select_framework(framework)
        if code:
            self.edit(code)

    @property
    def can_submit(self) -> bool:
        return bool(self.code.strip()) and self.state is not ViewState.SUBMITTING

    def edit(self, code: str) -> None:
        self._ensure_idle()
        self.code = code or ""
        self.state = ViewState.EDITING

    def upload(self, content: Union[bytes, str], filename: Optional[str] = None) -> None:
        self._ensure_idle()
        if isinstance(content, bytes):
            content = content.decode("utf-8", errors="replace")
        self.code = content
        self.filename = filename
        self.error = ""
        self.result = None
        self.state = ViewState.EDITING

    def select_framework(self, framework: str) -> None:
        fw = (framework or "").strip().lower()
        if fw not in FRAMEWORKS:
            raise ValueError(f"unsupported framework: {framework!r}")
        self.framework = fw

    def submit(self, transport: Transport) -> ViewState:
        """Send the current code once and settle in DISPLAYING or FAILED."""
        if self.state is ViewState.SUBMITTING:
            raise SubmissionInFlight("a review is already in progress")
        if not self.code.strip():
            self.error = EMPTY_CODE_MESSAGE
            return self.state

        self.state = ViewState.SUBMITTING
        self.error = ""
        request = ReviewRequest(code=self.code, framework=self.framework)
        try:
            _status, payload = transport(request)
        except Exception:
            log.exception("view: review transport failed")
            return self._fail(GENERIC_FAILURE_MESSAGE)
        return self.receive(payload)

    def receive(self, payload: Any) -> ViewState:
        """Settle the current submission from the handler's payload."""
        if isinstance(payload, (str, bytes)):
            try:
                payload = json.loads(payload)
            except ValueError:
                return self._fail(GENERIC_FAILURE_MESSAGE)
        if not isinstance(payload, dict):
            return self._fail(GENERIC_FAILURE_MESSAGE)

        if payload.get("error"):
            return self._fail(str(payload["error"]))

        text = _first_content_text(payload)
        if text is None:
            return self._fail(NO_REVIEW_MESSAGE)

        try:
            self.result = validate_review(parse_review_text(text))
        except SchemaMismatch as exc:
            log.warning("view: review did not match schema: %s", exc.errors[:5])
            return self._fail(GENERIC_FAILURE_MESSAGE)
        except MalformedResponse:
            log.warning("view: could not parse review text")
            return self._fail(GENERIC_FAILURE_MESSAGE)
        self.state = ViewState.DISPLAYING
        return self.state

    def to_context(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "code": self.code,
            "framework": self.framework,
            "frameworks": FRAMEWORKS,
            "filename": self.filename,
            "review": self.result,
            "error": self.error,
            "can_submit": self.can_submit,
        }

    def _ensure_idle(self) -> None:
        if self.state is ViewState.SUBMITTING:
            raise SubmissionInFlight("inputs are locked while a review is in progress")

    def _fail(self, message: str) -> ViewState:
        self.result = None
        self.error = message
        self.state = ViewState.FAILED
        return self.state


def _first_content_text(payload: Dict[str, Any]) -> Optional[str]:
    content = payload.get("content")
    if not isinstance(content, list) or not content:
        return None
    first = content[0]
    if not isinstance(first, dict):
        return None
    text = first.get("text")
    return text if isinstance(text, str) else None
