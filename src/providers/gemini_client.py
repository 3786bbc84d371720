# src/providers/gemini_client.py

"""Inference capability backed by Google Gemini (google-genai SDK)."""

import logging

from google import genai
from google.genai import errors as genai_errors
from google.genai import types

from src.config.settings import Settings
from src.errors import (
    MalformedResponseError,
    QuotaExceededError,
    TransientServiceError,
)

logger = logging.getLogger("trustmart.provider.gemini")


class GeminiClient:
    """Thin wrapper that turns a prompt into free text.

    Constructed once per process and injected into the components that
    need inference; tests substitute any object with ``generate``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        self.api_key = (
            api_key if api_key is not None else Settings.GEMINI_API_KEY
        )
        self.model = model or Settings.GEMINI_MODEL
        self._client: genai.Client | None = None

    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get_client(self) -> genai.Client:
        if self._client is None:
            self._client = genai.Client(api_key=self.api_key)
        return self._client

    def generate(self, prompt: str) -> str:
        """Send *prompt* and return the model's text reply (blocking)."""
        config = types.GenerateContentConfig(
            temperature=0.2,
            max_output_tokens=1024,
            response_mime_type="application/json",
        )
        try:
            resp = self._get_client().models.generate_content(
                model=self.model,
                contents=prompt,
                config=config,
            )
        except genai_errors.APIError as exc:
            if exc.code == 429:
                raise QuotaExceededError("gemini", str(exc)) from exc
            raise TransientServiceError("gemini", str(exc)) from exc
        except Exception as exc:
            logger.warning(
                "Gemini call failed: %s", exc, exc_info=True,
            )
            raise TransientServiceError("gemini", str(exc)) from exc

        text = (getattr(resp, "text", None) or "").strip()
        if not text:
            raise MalformedResponseError("gemini", "empty response")
        logger.debug(
            "Gemini (%s) returned %d characters", self.model, len(text),
        )
        return text
