"""Async client for an OpenAI-compatible chat completions endpoint.

WHY: Segments carry a translation so learners can check their
understanding. One short request per segment keeps failures isolated:
a bad response costs one translation, not the whole video.

HOW: TranslationClient wraps httpx.AsyncClient with Bearer auth and is
used as an async context manager. translate() sends a single user
message asking for the bare translation and returns the trimmed reply.

RULES:
- Any failure (transport, non-200, malformed body, empty reply) raises
  TranslationError; callers decide how to recover
- create_translator() returns None when no API key is configured
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from caption_clipper.config import (
    DEFAULT_SOURCE_LANGUAGE,
    DEFAULT_TARGET_LANGUAGE,
    OPENAI_BASE_URL,
    OPENAI_MODEL,
    load_openai_api_key,
)
from caption_clipper.errors import TranslationError

logger = logging.getLogger(__name__)

_MAX_TOKENS = 200
_TEMPERATURE = 0.3

LANGUAGE_NAMES = {
    "it": "Italian",
    "en": "English",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
}


def language_name(code: str) -> str:
    return LANGUAGE_NAMES.get(code, code)


def build_prompt(text: str, source_lang: str, target_lang: str) -> str:
    return (
        "Translate the following {} text to {}. "
        "Only return the translation, nothing else: {}".format(
            language_name(source_lang), language_name(target_lang), text
        )
    )


class TranslationClient:
    """Translate short texts through a chat completions API.

    Args:
        api_key: Bearer token for the endpoint.
        base_url: API root (defaults to OPENAI_BASE_URL).
        model: Model name (defaults to OPENAI_MODEL).
        transport: Optional httpx transport, used by tests.
    """

    def __init__(
        self,
        api_key: str,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = (base_url or OPENAI_BASE_URL).rstrip("/")
        self._model = model or OPENAI_MODEL
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> TranslationClient:
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            headers={"Authorization": f"Bearer {self._api_key}"},
            timeout=httpx.Timeout(60.0, connect=10.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            raise RuntimeError(
                "TranslationClient must be used as an async context manager: "
                "async with TranslationClient(key) as translator: ..."
            )
        return self._client

    async def translate(
        self,
        text: str,
        source_lang: str = DEFAULT_SOURCE_LANGUAGE,
        target_lang: str = DEFAULT_TARGET_LANGUAGE,
    ) -> str:
        """Return the translation of ``text``.

        Raises:
            TranslationError: On any failed or empty response.
        """
        client = self._ensure_client()
        payload = {
            "model": self._model,
            "messages": [
                {"role": "user", "content": build_prompt(text, source_lang, target_lang)},
            ],
            "max_tokens": _MAX_TOKENS,
            "temperature": _TEMPERATURE,
        }

        try:
            resp = await client.post("/chat/completions", json=payload)
        except httpx.HTTPError as exc:
            raise TranslationError("Translation request failed: {}".format(exc)) from exc

        if resp.status_code != 200:
            raise TranslationError(
                "Translation API error {}: {}".format(resp.status_code, resp.text[:200])
            )

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise TranslationError("Malformed translation response") from exc

        translation = (content or "").strip()
        if not translation:
            raise TranslationError("Empty translation returned")
        return translation


def create_translator() -> Optional[TranslationClient]:
    """Build a TranslationClient from the environment, or None without a key."""
    api_key = load_openai_api_key()
    if not api_key:
        logger.info("No OPENAI_API_KEY configured; translations are disabled")
        return None
    return TranslationClient(api_key)
