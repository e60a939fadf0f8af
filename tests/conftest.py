import json as jsonlib

import pytest

from coditor import gemini_client


class FakeResp:
    def __init__(self, status, payload=None, text=None):
        self.status_code = status
        self._payload = payload
        if text is not None:
            self.text = text
        else:
            self.text = jsonlib.dumps(payload) if payload is not None else ""

    @property
    def ok(self):
        return 200 <= self.status_code < 400

    def json(self):
        if self._payload is None:
            return jsonlib.loads(self.text)
        return self._payload


def gemini_answer(text):
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


MODELS_PAYLOAD = {
    "models": [
        {"name": "models/embedding-001", "supportedGenerationMethods": ["embedContent"]},
        {"name": "models/gemini-pro", "supportedGenerationMethods": ["generateContent", "countTokens"]},
    ]
}


@pytest.fixture(autouse=True)
def fresh_model_cache(monkeypatch):
    gemini_client.MODEL_CACHE.clear()
    monkeypatch.setattr(gemini_client, "GEMINI_API_KEY", "test-key")
    yield
    gemini_client.MODEL_CACHE.clear()


@pytest.fixture
def fake_gemini(monkeypatch):
    """Patch requests.get/post; tests fill `responses` and read `calls`."""
    state = {
        "models": FakeResp(200, MODELS_PAYLOAD),
        "generate": FakeResp(200, gemini_answer('{"summary": "ok"}')),
        "calls": {"get": [], "post": []},
    }

    def fake_get(url, params=None, timeout=None, **kwargs):
        state["calls"]["get"].append({"url": url, "params": params})
        resp = state["models"]
        if isinstance(resp, Exception):
            raise resp
        return resp

    def fake_post(url, params=None, json=None, timeout=None, **kwargs):
        state["calls"]["post"].append({"url": url, "params": params, "json": json})
        resp = state["generate"]
        if isinstance(resp, Exception):
            raise resp
        return resp

    monkeypatch.setattr(gemini_client.requests, "get", fake_get)
    monkeypatch.setattr(gemini_client.requests, "post", fake_post)
    return state
