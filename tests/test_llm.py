import pytest
import requests

import api.llm as llm_mod
from api import config
from api.llm import (
    EMPTY_COMPLETION_RESPONSE,
    LLMError,
    LLMNotConfigured,
    build_messages,
    build_system_prompt,
    generate_guidance,
)

QUOTATION = {
    "id": "6f1c5a4e-0000-4000-8000-000000000001",
    "text": "Love Me, that I may love thee.",
    "addressee": "O Son of Being!",
    "part": "arabic",
    "number": 5,
    "section_title": None,
}


class FakeResponse:
    def __init__(self, status_code=200, data=None):
        self.status_code = status_code
        self._data = data or {}

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return self._data


def test_system_prompt_mentions_quotation():
    prompt = build_system_prompt(QUOTATION)
    assert '"Love Me, that I may love thee."' in prompt
    assert "(O Son of Being!, Arabic #5)" in prompt


def test_system_prompt_without_quotation():
    prompt = build_system_prompt(None)
    assert "relevant Hidden Words passage that relates" not in prompt
    assert "spiritual guide" in prompt


def test_build_messages_trims_history(monkeypatch):
    monkeypatch.setattr(config, "HISTORY_TURNS", 2)
    history = [
        {"role": "user", "content": "first"},
        {"role": "assistant", "content": "second"},
        {"role": "system", "content": "ignored"},
        {"role": "assistant", "content": "third"},
        {"role": "user", "content": "  "},
    ]

    messages = build_messages("now", history, None)

    assert messages[0]["role"] == "system"
    assert messages[1:] == [
        {"role": "assistant", "content": "third"},
        {"role": "user", "content": "now"},
    ]


def test_generate_guidance_requires_api_key(monkeypatch):
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "")
    with pytest.raises(LLMNotConfigured):
        generate_guidance("hello")


def test_generate_guidance_posts_payload(monkeypatch):
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "test-key")
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured.update({"url": url, "json": json, "headers": headers, "timeout": timeout})
        return FakeResponse(data={"choices": [{"message": {"content": " Be at peace. "}}]})

    monkeypatch.setattr(llm_mod.requests, "post", fake_post)

    text, meta = generate_guidance("I feel lost", [], QUOTATION)

    assert text == "Be at peace."
    assert meta["empty"] is False
    assert captured["url"] == config.OPENROUTER_URL
    assert captured["headers"]["Authorization"] == "Bearer test-key"
    assert captured["json"]["max_tokens"] == config.OPENROUTER_MAX_TOKENS
    assert captured["json"]["messages"][-1] == {"role": "user", "content": "I feel lost"}


def test_generate_guidance_empty_completion(monkeypatch):
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "test-key")
    monkeypatch.setattr(llm_mod.requests, "post", lambda *_a, **_kw: FakeResponse(data={"choices": []}))

    text, meta = generate_guidance("hello")

    assert text == EMPTY_COMPLETION_RESPONSE
    assert meta["empty"] is True


def test_generate_guidance_http_error(monkeypatch):
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "test-key")
    monkeypatch.setattr(llm_mod.requests, "post", lambda *_a, **_kw: FakeResponse(status_code=429))

    with pytest.raises(LLMError) as excinfo:
        generate_guidance("hello")
    assert excinfo.value.status_code == 429


def test_generate_guidance_transport_error(monkeypatch):
    monkeypatch.setattr(config, "OPENROUTER_API_KEY", "test-key")

    def boom(*_args, **_kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(llm_mod.requests, "post", boom)

    with pytest.raises(LLMError) as excinfo:
        generate_guidance("hello")
    assert excinfo.value.reason == "request_failed"
