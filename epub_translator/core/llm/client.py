"""
Chat-completion translation client.

This module provides the TranslationClient class, which sends one unit's
markup to an OpenAI-compatible endpoint (Gemini's OpenAI endpoint, OpenAI,
llama.cpp, vLLM, ...) and retries transient failures using RetryPolicy.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from .base import ChatCompletionResponse, Failed, Translated, TranslationOutcome, TranslationRequest
from .retry_policy import RetryPolicy, RetryStage, RetryState
from ..epub.exceptions import FailureKind, TranslationFailure

logger = logging.getLogger(__name__)

HTTP_OK = 200
HTTP_TOO_MANY_REQUESTS = 429

SleepFunc = Callable[[float], Awaitable[None]]


class TranslationClient:
    """Sends translation requests and owns the per-unit retry loop."""

    def __init__(self, api_endpoint: str, api_key: str, model: str,
                 retry_policy: Optional[RetryPolicy] = None,
                 timeout: float = 120.0,
                 http_client: Optional[httpx.AsyncClient] = None,
                 sleep: SleepFunc = asyncio.sleep,
                 log_callback: Optional[Callable] = None):
        """
        Args:
            api_endpoint: Full chat-completions URL
            api_key: Bearer token
            model: Model identifier
            retry_policy: Backoff configuration (defaults to RetryPolicy())
            timeout: Per-request timeout in seconds
            http_client: Pre-built client (tests inject one with a MockTransport)
            sleep: Coroutine used for backoff waits
            log_callback: Callback for logging (key, message)
        """
        self.api_endpoint = api_endpoint
        self.api_key = api_key
        self.model = model
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout = timeout
        self.sleep = sleep
        self.log_callback = log_callback
        self._client = http_client
        self._owns_client = http_client is None

    @classmethod
    def from_config(cls, config, **kwargs) -> 'TranslationClient':
        """Build a client from a TranslationConfig"""
        return cls(
            api_endpoint=config.api_endpoint,
            api_key=config.api_key,
            model=config.model,
            retry_policy=RetryPolicy(base_delay=config.retry_delay, max_retries=config.max_retries),
            timeout=config.timeout,
            **kwargs
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create a persistent HTTP client with connection pooling"""
        if self._client is None:
            self._client = httpx.AsyncClient(
                limits=httpx.Limits(max_keepalive_connections=5, max_connections=10),
                timeout=httpx.Timeout(self.timeout),
            )
        return self._client

    async def close(self):
        """Close the HTTP client if this instance created it"""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> 'TranslationClient':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    def _log(self, key: str, message: str, level: int = logging.INFO):
        if self.log_callback:
            self.log_callback(key, message)
        else:
            logger.log(level, message)

    @property
    def headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def _send(self, request: TranslationRequest) -> str:
        """
        Perform a single attempt.

        Returns:
            The first choice's content, trimmed

        Raises:
            TranslationFailure: for any retryable failure
        """
        client = await self._get_client()
        try:
            response = await client.post(
                self.api_endpoint,
                json=request.to_payload(),
                headers=self.headers,
                timeout=self.timeout,
            )
        except httpx.HTTPError as e:
            raise TranslationFailure(f"{type(e).__name__}: {e}", FailureKind.NETWORK)

        if response.status_code != HTTP_OK:
            kind = (FailureKind.RATE_LIMITED if response.status_code == HTTP_TOO_MANY_REQUESTS
                    else FailureKind.HTTP_STATUS)
            raise TranslationFailure(
                f"HTTP {response.status_code}: {response.text[:200]}", kind, response.status_code
            )

        parsed = ChatCompletionResponse.parse(response.content)
        return parsed.first_content.strip()

    async def translate(self, content: str, target_language: str) -> TranslationOutcome:
        """
        Translate one unit's inner markup.

        Never raises for service problems: after the last failed attempt the
        original markup is returned with the failure marker appended.

        Args:
            content: Inner markup of the unit
            target_language: Language to translate into

        Returns:
            Translated or Failed outcome
        """
        request = TranslationRequest(model=self.model, target_language=target_language, content=content)
        state = RetryState()
        max_attempts = self.retry_policy.max_attempts

        while True:
            state.stage = RetryStage.SENDING
            try:
                text = await self._send(request)
            except TranslationFailure as failure:
                state.last_status = failure.status_code
                state.network_error = failure.kind is FailureKind.NETWORK
                decision = self.retry_policy.decide(state, failure)
                state.stage = decision.next_stage

                if not decision.retry:
                    self._log(
                        "translation_retries_exhausted_error",
                        f"All retries failed for a block ({failure.describe()}). Keeping original text.",
                        logging.ERROR,
                    )
                    return Failed.from_original(content, attempts=state.attempts_made, last_error=str(failure))

                self._log(
                    "translation_retry_warning",
                    f"  -> Translation failed ({failure.describe()}). "
                    f"Retry {state.attempt + 1}/{max_attempts - 1} in {decision.delay:g}s...",
                    logging.WARNING,
                )
                state.delay = decision.delay
                await self.sleep(decision.delay)
                state.attempt += 1
                continue

            state.stage = RetryStage.SUCCESS
            return Translated(text=text, attempts=state.attempts_made)
