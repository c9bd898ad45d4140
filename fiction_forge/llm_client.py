import asyncio
import logging
import random
import threading
import time
import traceback
from typing import Any, Callable, Dict, Optional, TypeVar

from langchain_core.messages import HumanMessage
from langchain_google_genai import ChatGoogleGenerativeAI
from openai import OpenAI

from fiction_forge.config import LLM_RETRIES, LLM_TIMEOUT_SECONDS
from fiction_forge.errors import AiCallFailure, GenerationCancelled
from fiction_forge.model_props import parse_model_name, provider_for_model

T = TypeVar("T")

logger = logging.getLogger("fiction_forge")


class MaxRetryErrorsException(AiCallFailure):
    pass


# Global backoff state (shared across all clients)
_global_backoff_lock = threading.Lock()
_global_wait_until = 0.0
_global_backoff_seconds = 30.0
_GLOBAL_BACKOFF_MAX = 600.0


def _is_timeout_error(e: Exception) -> bool:
    if isinstance(e, (asyncio.TimeoutError, TimeoutError)):
        return True
    msg = repr(e)
    return "TimeoutError" in msg or "timed out" in msg.lower()


def _is_resource_exhausted_error(e: Exception) -> bool:
    msg = str(e)
    return "429" in msg and (
        "RESOURCE_EXHAUSTED" in msg
        or "Resource has been exhausted" in msg
        or "Too Many Requests" in msg
        or "quota" in msg.lower()
    )


def call_with_retries_sync(
    fn: Callable[[], T],
    *,
    retries: int = 3,
    log: Callable[[str], None] | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> T:
    """
    Run a sync LLM call with global 429/timeout backoff + retries.

    should_stop is polled while waiting out a backoff window; once it returns True
    no further attempt is made and GenerationCancelled is raised.
    """
    last_exception: Exception | None = None

    def _respect_global_backoff() -> None:
        while True:
            if should_stop and should_stop():
                raise GenerationCancelled("cancelled while waiting for LLM backoff")
            with _global_backoff_lock:
                wait = _global_wait_until - time.monotonic()
            if wait <= 0:
                return
            time.sleep(min(wait, 1.0))

    def _register_429_and_get_delay() -> float:
        global _global_wait_until, _global_backoff_seconds

        with _global_backoff_lock:
            now = time.monotonic()
            base = _global_backoff_seconds
            delay = random.uniform(base * 0.95, base * 1.35)
            _global_backoff_seconds = min(_global_backoff_seconds * 2, _GLOBAL_BACKOFF_MAX)
            _global_wait_until = max(_global_wait_until, now + delay)
            return delay

    def _reset_backoff_on_success() -> None:
        global _global_backoff_seconds
        with _global_backoff_lock:
            _global_backoff_seconds = max(1.0, _global_backoff_seconds * 0.5)

    for attempt in range(max(1, retries)):
        _respect_global_backoff()
        start_time = time.time()
        try:
            result = fn()
            _reset_backoff_on_success()
            return result
        except Exception as e:
            elapsed = time.time() - start_time
            last_exception = e

            if _is_resource_exhausted_error(e) or _is_timeout_error(e):
                delay = _register_429_and_get_delay()
                msg = f"Attempt {attempt+1} got 429/timeout, backing off ~{delay:.1f}s."
            else:
                msg = f"Attempt {attempt+1} failed."

            if log:
                log(f"{msg} (elapsed={elapsed:.2f}s): {e}\n{traceback.format_exc()}")

    raise MaxRetryErrorsException(
        f"All {max(1, retries)} retry attempts failed. Last error: {last_exception}"
    ) from last_exception


class LlmClient:
    """
    Minimal wrapper for "completion-style" use:

        text = llm.invoke("some prompt")

    Under the hood:
    - Gemini: ChatGoogleGenerativeAI.invoke([HumanMessage(prompt)]) with the caller's API key
    - OpenAI: Responses API (client.responses.create)

    One instance per call site; nothing is cached across requests.
    """

    def __init__(
        self,
        model_name: str,
        *,
        api_key: str,
        timeout: float | None = None,
    ):
        if not (api_key or "").strip():
            raise AiCallFailure("API key is missing for the AI client")
        if not (model_name or "").strip():
            raise AiCallFailure("model name is missing for the AI client")

        self.provider = provider_for_model(model_name)
        self.model_name = model_name.strip()
        self._timeout = timeout
        self.last_usage: Optional[Dict[str, int]] = None
        self._openai_params: Dict[str, Any] = {}

        if self.provider == "gemini":
            self._gemini = ChatGoogleGenerativeAI(
                model=self.model_name,
                google_api_key=api_key,
                timeout=timeout,
                max_retries=1,
            )
            self._client = None
        else:
            self._gemini = None
            self.model_name, self._openai_params = parse_model_name(self.model_name)
            client_kwargs: Dict[str, Any] = {"api_key": api_key, "max_retries": 0}
            if timeout is not None:
                client_kwargs["timeout"] = timeout
            self._client = OpenAI(**client_kwargs)

    def _merge_usage(self, inc: Dict[str, int]) -> None:
        if self.last_usage is None:
            self.last_usage = dict(inc)
            return
        for k, v in inc.items():
            self.last_usage[k] = (self.last_usage.get(k, 0) or 0) + (v or 0)

    def _gemini_text(self, resp: Any) -> str:
        content = getattr(resp, "content", resp)
        if isinstance(content, str):
            return content
        parts = []
        for part in content or []:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and part.get("type", "text") == "text":
                parts.append(str(part.get("text", "")))
        return "".join(parts)

    def _invoke_once(self, prompt: str) -> str:
        """
        Single HTTP call without retries/backoff.
        """
        if self.provider == "gemini":
            resp = self._gemini.invoke([HumanMessage(content=prompt)])

            usage_md = getattr(resp, "usage_metadata", None) or {}
            self._merge_usage({
                "prompt_token_count": int(usage_md.get("input_tokens", 0) or 0),
                "candidates_token_count": int(usage_md.get("output_tokens", 0) or 0),
                "total_token_count": int(usage_md.get("total_tokens", 0) or 0),
            })

            text = self._gemini_text(resp)
            if not text.strip():
                meta = getattr(resp, "response_metadata", None) or {}
                raise AiCallFailure(
                    "AI returned no content "
                    f"(finish reason: {meta.get('finish_reason', 'unknown')}, "
                    f"safety ratings: {meta.get('safety_ratings', [])})"
                )
            return text

        # OpenAI: use Responses API; prompt is a plain string
        resp = self._client.responses.create(
            model=self.model_name,
            input=prompt,
            **self._openai_params,
        )
        usage = getattr(resp, "usage", None)
        if usage is not None:
            self._merge_usage({
                "prompt_token_count": getattr(usage, "input_tokens", 0) or 0,
                "candidates_token_count": getattr(usage, "output_tokens", 0) or 0,
                "total_token_count": getattr(usage, "total_tokens", 0) or 0,
            })

        text = (getattr(resp, "output_text", "") or "").strip()
        if not text:
            raise AiCallFailure(f"AI returned no content (status: {getattr(resp, 'status', 'unknown')})")
        return text

    def invoke(self, prompt: str, *, retries: int = 3, should_stop: Callable[[], bool] | None = None) -> str:
        """
        Synchronous call with global 429/timeout backoff + retries.
        """
        return call_with_retries_sync(
            lambda: self._invoke_once(prompt),
            retries=retries,
            log=lambda msg: logger.warning(f"[LLM-RETRY] {msg}"),
            should_stop=should_stop,
        )


class CompletionService:
    """
    The capability the orchestrator talks to: prompt + model + key in, text out.
    Tests swap it for a scripted fake.
    """

    def __init__(self, timeout: float | None = LLM_TIMEOUT_SECONDS, retries: int = LLM_RETRIES):
        self.timeout = timeout
        self.retries = retries

    def complete(self, prompt: str, model_name: str, api_key: str, *, cancel_event: threading.Event | None = None) -> str:
        try:
            llm = LlmClient(model_name, api_key=api_key, timeout=self.timeout)
        except AiCallFailure:
            raise
        except Exception as e:
            logger.info(f"Warning: Could not initialize LLM client for '{model_name}': {e}")
            raise AiCallFailure(f"could not initialize AI client for model '{model_name}': {e}") from e
        should_stop = cancel_event.is_set if cancel_event is not None else None
        text = llm.invoke(prompt, retries=self.retries, should_stop=should_stop)
        logger.debug(f"[LLM] {llm.provider}:{llm.model_name} usage={llm.last_usage}")
        return text
