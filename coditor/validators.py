from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from coditor.errors import SchemaMismatch

CATEGORY_LABELS: Dict[str, str] = {
    "codeQuality": "Code Quality",
    "bestPractices": "Best Practices",
    "performance": "Performance",
    "accessibility": "Accessibility",
    "security": "Security",
}


def _none_to_empty(v: Any) -> Any:
    return [] if v is None else v


class _Category(BaseModel):
    model_config = ConfigDict(extra="ignore")

    score: float
    issues: List[str] = Field(default_factory=list)

    @field_validator("issues", mode="before")
    @classmethod
    def default_issues(cls, v: Any) -> Any:
        return _none_to_empty(v)

    @property
    def label(self) -> str:
        kind = getattr(self, "kind", "")
        return CATEGORY_LABELS.get(kind, kind)

    def extra_lists(self) -> List[Tuple[str, str, List[str]]]:
        """(key, heading, items) for the lists shown after issues."""
        return []


class StrengthsCategory(_Category):
    kind: Literal["codeQuality", "bestPractices"]
    strengths: List[str] = Field(default_factory=list)

    @field_validator("strengths", mode="before")
    @classmethod
    def default_list(cls, v: Any) -> Any:
        return _none_to_empty(v)

    def extra_lists(self) -> List[Tuple[str, str, List[str]]]:
        return [("strengths", "Strengths", self.strengths)]


class ImprovementsCategory(_Category):
    kind: Literal["performance", "accessibility"]
    improvements: List[str] = Field(default_factory=list)

    @field_validator("improvements", mode="before")
    @classmethod
    def default_list(cls, v: Any) -> Any:
        return _none_to_empty(v)

    def extra_lists(self) -> List[Tuple[str, str, List[str]]]:
        return [("improvements", "Improvements", self.improvements)]


class RecommendationsCategory(_Category):
    kind: Literal["security"]
    recommendations: List[str] = Field(default_factory=list)

    @field_validator("recommendations", mode="before")
    @classmethod
    def default_list(cls, v: Any) -> Any:
        return _none_to_empty(v)

    def extra_lists(self) -> List[Tuple[str, str, List[str]]]:
        return [("recommendations", "Recommendations", self.recommendations)]


Category = Annotated[
    Union[StrengthsCategory, ImprovementsCategory, RecommendationsCategory],
    Field(discriminator="kind"),
]


class CodeFix(BaseModel):
    model_config = ConfigDict(extra="ignore")

    issue: str
    before: str
    after: str
    explanation: str = ""

    @field_validator("explanation", mode="before")
    @classmethod
    def default_explanation(cls, v: Any) -> Any:
        return "" if v is None else v


class ReviewResult(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    summary: str = ""
    categories: List[Category] = Field(default_factory=list)
    code_fixes: List[CodeFix] = Field(default_factory=list, alias="codeFixes")

    @field_validator("summary", mode="before")
    @classmethod
    def default_summary(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("code_fixes", mode="before")
    @classmethod
    def default_fixes(cls, v: Any) -> Any:
        return _none_to_empty(v)

    def category(self, kind: str) -> Optional[_Category]:
        for cat in self.categories:
            if cat.kind == kind:
                return cat
        return None


_RESULT_ADAPTER: TypeAdapter[ReviewResult] = TypeAdapter(ReviewResult)


def _tagged_candidate(data: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Rewrite keyed category objects as a kind-tagged list, in display order."""
    kinds: List[str] = []
    tagged: List[Any] = []
    for kind in CATEGORY_LABELS:
        value = data.get(kind)
        if value is None:
            continue
        kinds.append(kind)
        tagged.append({**value, "kind": kind} if isinstance(value, dict) else value)
    candidate = {
        "summary": data.get("summary"),
        "categories": tagged,
        "codeFixes": data.get("codeFixes"),
    }
    return candidate, kinds


def _format_errors(ve: ValidationError, kinds: List[str]) -> List[Dict[str, str]]:
    errors: List[Dict[str, str]] = []
    for e in ve.errors():
        loc = list(e.get("loc", []))
        # categories.<i>.<tag>.field -> <kind>.field
        if len(loc) >= 2 and loc[0] == "categories" and isinstance(loc[1], int):
            loc = [kinds[loc[1]]] + loc[3:]
        path = ".".join(str(p) for p in loc) or "(root)"
        errors.append({"path": path, "message": e.get("msg", "invalid")})
    return errors


def collect_errors(data: Any) -> List[Dict[str, str]]:
    """Return [{"path", "message"}] for every way `data` misses the review shape."""
    if not isinstance(data, dict):
        return [{"path": "(root)", "message": "review must be a JSON object"}]
    candidate, kinds = _tagged_candidate(data)
    try:
        _RESULT_ADAPTER.validate_python(candidate)
    except ValidationError as ve:
        return _format_errors(ve, kinds)
    return []


def validate_review(data: Any) -> ReviewResult:
    """Convert an arbitrary parsed JSON value into a ReviewResult.

    Missing categories, lists, summary and explanations are tolerated;
    a present field of the wrong type (or a category without a score)
    raises SchemaMismatch.
    """
    if not isinstance(data, dict):
        raise SchemaMismatch(collect_errors(data))
    candidate, kinds = _tagged_candidate(data)
    try:
        return _RESULT_ADAPTER.validate_python(candidate)
    except ValidationError as ve:
        raise SchemaMismatch(_format_errors(ve, kinds)) from ve


def score_tier(score: Optional[float]) -> str:
    """Presentation tier: >= 8 high, >= 6 medium, otherwise low."""
    if score is None:
        return "low"
    if score >= 8:
        return "high"
    if score >= 6:
        return "medium"
    return "low"
