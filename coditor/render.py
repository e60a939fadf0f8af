from __future__ import annotations

import os
from typing import Any, Dict, Optional

from jinja2 import Environment, FileSystemLoader, select_autoescape

from coditor.validators import score_tier
from coditor.view import ReviewView

TEMPLATES_DIR = os.getenv(
    "TEMPLATES_DIR",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "templates"),
)


def format_score(score: Optional[float]) -> str:
    if score is None:
        return "?"
    if float(score).is_integer():
        return str(int(score))
    return f"{score:g}"


_env = Environment(
    loader=FileSystemLoader(TEMPLATES_DIR),
    autoescape=select_autoescape(["html", "xml"]),
    enable_async=False,
)
_env.filters["score_tier"] = score_tier
_env.filters["format_score"] = format_score


def _render(name: str, **context: Any) -> str:
    return _env.get_template(name).render(**context)


def render_home() -> str:
    return _render("index.html")


def render_review_page(view: Optional[ReviewView] = None) -> str:
    view = view or ReviewView()
    return _render("review.html", **view.to_context())


def render_results(view: ReviewView) -> str:
    """Results fragment swapped into the page after a submission settles."""
    ctx: Dict[str, Any] = view.to_context()
    return _render("partials/results.html", **ctx)
