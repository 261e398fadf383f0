"""
Completion gateway for Content Trust.

Single entry point for every text-completion call. Wraps the Gemini client
with bounded retries, exponential backoff, per-attempt logging and
telemetry.

Usage:
    gateway = CompletionGateway()
    text = gateway.invoke(system_prompt, user_prompt, call_point="classify")
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from content_trust.config import config
from content_trust.exceptions import CompletionError, ConfigurationError
from content_trust.telemetry import log_completion_attempt

logger = logging.getLogger(__name__)


@dataclass
class ModelParams:
    """Per-call model hints. Unset fields fall back to gateway defaults."""

    model: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    @classmethod
    def from_llm_config(cls, llm_config: Optional[dict]) -> "ModelParams":
        """Build from an ``llmConfig`` block of the extraction config."""
        llm_config = llm_config or {}
        return cls(
            model=llm_config.get("model"),
            temperature=llm_config.get("temperature"),
            max_tokens=llm_config.get("maxTokens"),
        )


class CompletionGateway:
    """
    Text-completion gateway backed by Gemini.

    Failures are retried up to ``max_attempts`` times; after failed attempt
    ``n`` (0-based) the gateway waits ``base_delay * 2 ** n`` seconds. An empty
    response counts as a failure. When every attempt fails the gateway
    returns an empty string, or raises CompletionError if the caller
    passed ``raise_on_exhaustion=True``.
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        max_attempts: Optional[int] = None,
        base_delay: Optional[float] = None,
        client=None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize gateway.

        Args:
            model: Gemini model to use (defaults to config.GEMINI_MODEL)
            api_key: API key (uses config if not provided)
            max_attempts: Attempts per call (defaults to config)
            base_delay: Backoff base in seconds (defaults to config)
            client: Prebuilt genai client, mainly for tests
            sleep: Sleep function, injectable so tests don't wait
        """
        self.model = model or config.GEMINI_MODEL
        self.api_key = api_key or config.GEMINI_API_KEY
        self.max_attempts = max_attempts if max_attempts is not None else config.COMPLETION_MAX_ATTEMPTS
        self.base_delay = base_delay if base_delay is not None else config.COMPLETION_BASE_DELAY
        self._client = client
        self._sleep = sleep

    @property
    def client(self):
        """Lazy load Gemini client."""
        if self._client is None:
            if not self.api_key:
                raise ConfigurationError("GEMINI_API_KEY not configured")

            try:
                from google import genai

                self._client = genai.Client(api_key=self.api_key)
            except ImportError:
                raise ImportError("google-genai package not installed")

        return self._client

    def invoke(
        self,
        system_prompt: str,
        user_prompt: str,
        call_point: str,
        model_params: Optional[ModelParams] = None,
        metadata: Optional[dict] = None,
        raise_on_exhaustion: bool = False,
    ) -> str:
        """
        Run one completion with retries.

        Args:
            system_prompt: System instruction
            user_prompt: User content
            call_point: Label for logs and telemetry (e.g. "extract.chunk")
            model_params: Optional model/temperature/max token hints
            metadata: Extra fields recorded with each attempt
            raise_on_exhaustion: Raise CompletionError instead of returning ""

        Returns:
            Raw response text, or "" when all attempts failed
        """
        params = model_params or ModelParams()
        model = params.model or self.model
        generation_config = {"system_instruction": system_prompt}
        if params.temperature is not None:
            generation_config["temperature"] = params.temperature
        if params.max_tokens is not None:
            generation_config["max_output_tokens"] = params.max_tokens

        # Resolved outside the retry loop: a missing key is not transient
        client = self.client

        last_error = None
        for attempt in range(self.max_attempts):
            start = time.perf_counter()
            text = ""
            error = None
            try:
                response = client.models.generate_content(
                    model=model,
                    contents=user_prompt,
                    config=generation_config,
                )
                text = (getattr(response, "text", None) or "").strip()
                if not text:
                    error = "empty response"
            except Exception as e:
                error = f"{type(e).__name__}: {e}"

            latency_ms = (time.perf_counter() - start) * 1000
            success = error is None
            log_completion_attempt(
                call_point=call_point,
                attempt=attempt + 1,
                latency_ms=latency_ms,
                success=success,
                model=model,
                response_chars=len(text),
                error=error,
                metadata=metadata,
            )

            if success:
                logger.debug(
                    f"[{call_point}] attempt {attempt + 1} ok: {len(text)} chars in {latency_ms:.0f}ms"
                )
                return text

            last_error = error
            logger.warning(f"[{call_point}] attempt {attempt + 1}/{self.max_attempts} failed: {error}")

            if attempt < self.max_attempts - 1:
                delay = self.base_delay * (2 ** attempt)
                logger.info(f"[{call_point}] retrying in {delay:.1f}s")
                self._sleep(delay)

        message = f"[{call_point}] completion failed after {self.max_attempts} attempts: {last_error}"
        logger.error(message)
        if raise_on_exhaustion:
            raise CompletionError(message, call_point=call_point, attempts=self.max_attempts)
        return ""
