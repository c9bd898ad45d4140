"""
Tests for fiction_forge/llm_client.py and model_props.py -- no network involved.
"""

import threading

import pytest

from fiction_forge import llm_client
from fiction_forge.errors import AiCallFailure, GenerationCancelled
from fiction_forge.llm_client import CompletionService, LlmClient, MaxRetryErrorsException, call_with_retries_sync
from fiction_forge.model_props import is_openai_model, parse_model_name, provider_for_model


class TestModelProps:
    def test_provider(self):
        assert provider_for_model("gemini-2.5-pro") == "gemini"
        assert provider_for_model("gpt-5.1_fast") == "openai"
        assert is_openai_model("GPT-4o")

    def test_plain_name(self):
        assert parse_model_name("gpt-5.1") == ("gpt-5.1", {})

    def test_preset(self):
        base, params = parse_model_name("gpt-5.1_deep")
        assert base == "gpt-5.1"
        assert params == {"service_tier": "default", "text": {"verbosity": "medium"}, "reasoning": {"effort": "high"}}

    def test_explicit_tokens(self):
        _, params = parse_model_name("gpt-5.1_low_minimal_flex")
        assert params["text"] == {"verbosity": "low"}
        assert params["reasoning"] == {"effort": "minimal"}
        assert params["service_tier"] == "flex"

    def test_unknown_token(self):
        with pytest.raises(ValueError):
            parse_model_name("gpt-5.1_turbo")


class TestRetries:
    def test_returns_first_success(self):
        attempts = []

        def flaky():
            attempts.append(1)
            if len(attempts) < 2:
                raise RuntimeError("transient")
            return "ok"

        assert call_with_retries_sync(flaky, retries=3) == "ok"
        assert len(attempts) == 2

    def test_gives_up_with_ai_call_failure(self):
        def broken():
            raise RuntimeError("boom")

        with pytest.raises(MaxRetryErrorsException) as exc:
            call_with_retries_sync(broken, retries=2)
        assert isinstance(exc.value, AiCallFailure)
        assert "boom" in str(exc.value)

    def test_stops_when_cancelled(self, monkeypatch):
        monkeypatch.setattr(llm_client, "_global_wait_until", 0.0)
        with pytest.raises(GenerationCancelled):
            call_with_retries_sync(lambda: "never", retries=1, should_stop=lambda: True)


class TestLlmClient:
    def test_missing_key(self):
        with pytest.raises(AiCallFailure, match="API key"):
            LlmClient("gemini-2.5-flash", api_key="  ")

    def test_missing_model(self):
        with pytest.raises(AiCallFailure, match="model name"):
            LlmClient("", api_key="k")

    def test_gemini_text_joins_parts(self):
        client = LlmClient.__new__(LlmClient)

        class Resp:
            content = [{"type": "text", "text": "{\"a\": "}, "1}", {"type": "image_url", "image_url": "x"}]

        assert client._gemini_text(Resp()) == "{\"a\": 1}"


class TestCompletionService:
    def test_bad_model_suffix_becomes_ai_call_failure(self):
        service = CompletionService(timeout=5, retries=1)
        with pytest.raises(AiCallFailure, match="could not initialize"):
            service.complete("prompt", "gpt-5.1_turbo", "key", cancel_event=threading.Event())
