from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, Optional

import requests

from coditor.errors import (
    ConfigurationError,
    MalformedResponse,
    NoCapableModel,
    ServiceUnavailable,
    UpstreamError,
)
from coditor.model_cache import ModelCache, build_model_cache
from coditor.parsing import parse_review_text
from coditor.prompts import build_review_prompt

log = logging.getLogger(__name__)

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "").strip()
GEMINI_API_BASE = (
    os.getenv("GEMINI_API_BASE", "https://generativelanguage.googleapis.com/v1").strip().rstrip("/")
)
GENERATE_METHOD = "generateContent"

# Fixed sampling parameters for every review
TEMPERATURE = 0.7
MAX_OUTPUT_TOKENS = 8000

# Unset means wait for the provider indefinitely
_timeout_raw = os.getenv("LLM_TIMEOUT_SECS", "").strip()
try:
    LLM_TIMEOUT_SECS: Optional[float] = float(_timeout_raw) if _timeout_raw else None
except ValueError:
    LLM_TIMEOUT_SECS = None

MODEL_CACHE: ModelCache = build_model_cache()


def status(cache: Optional[ModelCache] = None) -> Dict[str, Any]:
    """Report configuration without touching the provider."""
    cache = cache or MODEL_CACHE
    return {
        "provider": "gemini",
        "model": cache.get(),
        "has_token": bool(GEMINI_API_KEY),
    }


def _provider_error_message(resp: requests.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return "Unknown error"
    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict):
            msg = err.get("message")
            if isinstance(msg, str) and msg.strip():
                return msg
    return "Unknown error"


def _discover_model(api_key: str) -> str:
    log.info("gemini: fetching available models")
    try:
        resp = requests.get(
            f"{GEMINI_API_BASE}/models",
            params={"key": api_key},
            timeout=LLM_TIMEOUT_SECS,
        )
    except requests.RequestException as exc:
        log.warning("gemini: model listing request error: %r", exc)
        raise UpstreamError(f"request failed: {exc}") from exc

    if not resp.ok:
        msg = _provider_error_message(resp)
        log.warning("gemini: model listing HTTP %s: %s", resp.status_code, msg)
        raise ServiceUnavailable(msg, status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as exc:
        raise MalformedResponse("Invalid response structure from Gemini API") from exc

    models = data.get("models") if isinstance(data, dict) else None
    for model in models or []:
        if not isinstance(model, dict):
            continue
        methods = model.get("supportedGenerationMethods") or []
        log.debug("gemini: listed model=%s supports=%s", model.get("name"), ", ".join(map(str, methods)))

    for model in models or []:
        if not isinstance(model, dict):
            continue
        name = model.get("name")
        if GENERATE_METHOD in (model.get("supportedGenerationMethods") or []) and isinstance(name, str) and name:
            log.info("gemini: selected model=%s", name)
            return name

    raise NoCapableModel("No models available that support generateContent")


def resolve_model(api_key: str, cache: Optional[ModelCache] = None) -> str:
    """Return the cached generation-capable model, discovering it on first use."""
    cache = cache or MODEL_CACHE
    return cache.get_or_resolve(lambda: _discover_model(api_key))


def _extract_gemini_text(payload: Any) -> Optional[str]:
    """Return candidates[0].content.parts[0].text, or None when absent."""
    if not isinstance(payload, dict):
        return None
    candidates = payload.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return None
    first = candidates[0]
    content = first.get("content") if isinstance(first, dict) else None
    parts = content.get("parts") if isinstance(content, dict) else None
    if not isinstance(parts, list) or not parts or not isinstance(parts[0], dict):
        return None
    text = parts[0].get("text")
    if isinstance(text, str) and text:
        return text
    return None


def analyze_code(
    code: str,
    framework: str,
    api_key: Optional[str] = None,
    cache: Optional[ModelCache] = None,
) -> Any:
    """Run one review against Gemini and return the parsed JSON answer.

    The answer is returned as-is; its shape is not checked here. Raises a
    ReviewError subclass on every failure path and never retries.
    """
    key = GEMINI_API_KEY if api_key is None else api_key
    if not key:
        log.error("gemini: GEMINI_API_KEY is not set")
        raise ConfigurationError("API key not configured")

    model_name = resolve_model(key, cache)
    prompt = build_review_prompt(code, framework)
    body = {
        "contents": [{"parts": [{"text": prompt}]}],
        "generationConfig": {
            "temperature": TEMPERATURE,
            "maxOutputTokens": MAX_OUTPUT_TOKENS,
        },
    }

    log.info("gemini: requesting review model=%s framework=%s chars=%d", model_name, framework, len(code or ""))
    started = time.monotonic()
    try:
        resp = requests.post(
            f"{GEMINI_API_BASE}/{model_name}:{GENERATE_METHOD}",
            params={"key": key},
            json=body,
            timeout=LLM_TIMEOUT_SECS,
        )
    except requests.RequestException as exc:
        log.warning("gemini: generation request error: %r", exc)
        raise UpstreamError(f"request failed: {exc}") from exc
    log.info("gemini: response in %.2fs status=%s", time.monotonic() - started, resp.status_code)

    if not resp.ok:
        msg = _provider_error_message(resp)
        log.warning("gemini: generation HTTP %s: %s", resp.status_code, (resp.text or "")[:400])
        raise UpstreamError(msg, status_code=resp.status_code)

    try:
        data = resp.json()
    except ValueError as exc:
        log.warning("gemini: generation returned a non-JSON body")
        raise MalformedResponse("Invalid response structure from Gemini API") from exc

    text = _extract_gemini_text(data)
    if text is None:
        log.warning("gemini: unexpected response structure: %s", str(data)[:400])
        raise MalformedResponse("Invalid response structure from Gemini API")

    try:
        review = parse_review_text(text)
    except MalformedResponse:
        log.warning("gemini: text that failed to parse: %s", text[:400])
        raise
    log.info("gemini: review generated")
    return review
