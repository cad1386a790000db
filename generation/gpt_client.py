"""
Text generation client for the question pipeline.

Talks to any OpenAI-compatible Chat Completions endpoint. The default target is
Google Gemini through its OpenAI-compatible API, so the key is GEMINI_API_KEY
(GOOGLE_API_KEY is accepted too).

Used by:
  - orchestrator.py  (question generation, injected)
  - chat.py          (tutor chat)
  - routers/health.py (key check)

Model: gemini-2.0-flash  (override with GENERATION_MODEL env var)
"""

import logging
import os
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from generation.errors import ServiceError

log = logging.getLogger(__name__)

# ── Model config ───────────────────────────────────────────────────────────────
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "gemini-2.0-flash")
GENERATION_BASE_URL = os.getenv(
    "GENERATION_BASE_URL",
    "https://generativelanguage.googleapis.com/v1beta/openai/",
)
DEFAULT_SYSTEM_PROMPT = "You are an expert programming instructor. Output only what is asked."


class GenerationClient:
    """generate(prompt) -> text; every transport/API failure surfaces as ServiceError."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = GENERATION_MODEL,
        base_url: Optional[str] = GENERATION_BASE_URL,
        temperature: float = 0.7,
        max_tokens: int = 2048,
        timeout: float = 60.0,
        client: Any = None,
    ):
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        if client is None:
            if not api_key:
                raise RuntimeError("GEMINI_API_KEY is not set. Add it to your .env file.")
            client = AsyncOpenAI(api_key=api_key, base_url=base_url, timeout=timeout)
        self._client = client

    async def generate(
        self,
        prompt: str,
        system: str = DEFAULT_SYSTEM_PROMPT,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """
        Call Chat Completions and return the assistant message text.

        Returns "" when the service answers without content; the retry policy
        treats that as a failed attempt.
        """
        try:
            response = await self._client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": prompt},
                ],
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=self.max_tokens if max_tokens is None else max_tokens,
            )
        except OpenAIError as e:
            log.warning(f"[LLM] {self.model} call failed: {e}")
            raise ServiceError(f"Generation service error: {e}") from e

        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    async def validate_api_key(self) -> bool:
        """Cheap round trip used by the health endpoint."""
        try:
            text = await self.generate(
                'Respond with "API key is valid" if you can read this message.',
                temperature=0.0,
                max_tokens=20,
            )
        except ServiceError:
            return False
        return "api key is valid" in text.lower()


# Lazy singleton for the HTTP layer only — the orchestrator receives its client by injection
_client: Optional[GenerationClient] = None


def get_generation_client() -> GenerationClient:
    global _client
    if _client is None:
        api_key = os.getenv("GEMINI_API_KEY") or os.getenv("GOOGLE_API_KEY")
        _client = GenerationClient(api_key=api_key)
    return _client
