from __future__ import annotations

from typing import Tuple

FRAMEWORKS: Tuple[str, ...] = ("react", "angular", "vue", "svelte")

_REVIEW_SHAPE_HINT = """{
  "summary": "Brief overall assessment",
  "codeQuality": {
    "score": 1-10,
    "issues": ["issue1", "issue2"],
    "strengths": ["strength1", "strength2"]
  },
  "bestPractices": {
    "score": 1-10,
    "issues": ["issue1"],
    "strengths": ["strength1"]
  },
  "performance": {
    "score": 1-10,
    "issues": ["issue1"],
    "improvements": ["improvement1"]
  },
  "accessibility": {
    "score": 1-10,
    "issues": ["issue1"],
    "improvements": ["improvement1"]
  },
  "security": {
    "score": 1-10,
    "issues": ["issue1"],
    "recommendations": ["rec1"]
  },
  "codeFixes": [
    {
      "issue": "Brief description of the issue",
      "before": "problematic code snippet",
      "after": "corrected code snippet",
      "explanation": "Why this fix improves the code"
    }
  ]
}"""


def build_review_prompt(code: str, framework: str) -> str:
    """Return the review prompt for one submission.

    Deterministic: the same (code, framework) pair always yields the same
    text. The code is embedded verbatim.
    """
    fw = (framework or "").strip().lower()
    return (
        "You are a senior frontend engineer conducting a code review. "
        f"Analyze this {fw.upper()} code and provide a structured review with specific code fixes.\n\n"
        "Code to review:\n"
        f"```{fw}\n{code}\n```\n\n"
        "Provide your review in the following JSON format "
        "(respond with ONLY valid JSON, no preamble):\n"
        f"{_REVIEW_SHAPE_HINT}\n\n"
        "Include at least 3-5 specific code fixes with before/after examples."
    )
