"""
GeminiClient — Async insight generator backed by the Google Generative AI SDK.

Implements the InsightGenerator interface used by the analysis pipeline:

    text = await gemini_client.summarize(prompt, max_tokens=1000)

Supports two runtime modes (set via AI_MOCK_MODE env var):
  - MOCK mode (default): returns a deterministic canned summary.
    Use for tests and local dev without API keys.
  - REAL mode: makes actual Gemini API calls.
    Requires GEMINI_API_KEY to be set.

Errors are logged and re-raised; the pipeline decides how to degrade.
"""

import logging
import os
from typing import Optional

# Python 3.14 + protobuf native extension can fail when importing Gemini deps.
# Keep this as default-only so users can still override it explicitly.
os.environ.setdefault("PROTOCOL_BUFFERS_PYTHON_IMPLEMENTATION", "python")

import google.generativeai as genai

from civicwatch.core.config import settings

logger = logging.getLogger(__name__)

_DEFAULT_TEMPERATURE = 0.7

_MOCK_SUMMARY = (
    "[MOCK] EXECUTIVE SUMMARY: Incident reports are concentrated in a small number "
    "of dense clusters, with medical incidents dominating the largest hotspot.\n"
    "KEY FINDINGS:\n"
    "- Most incidents fall inside the top-ranked cluster.\n"
    "- A large share of reports is still pending review.\n"
    "- Activity peaks in the evening hours.\n"
    "RECOMMENDATIONS:\n"
    "- Pre-position an ambulance unit near the largest hotspot.\n"
    "- Clear the pending backlog for high-severity reports first.\n"
    "- Increase monitoring during the peak hour window.\n"
    "CONCLUSION: Set AI_MOCK_MODE=false and provide GEMINI_API_KEY for real insights."
)


class GeminiClient:
    """
    Single Gemini entry point for the service.

    Don't instantiate per-request; use the module-level `gemini_client`
    singleton (tests may build their own with explicit arguments).
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        mock_mode: Optional[bool] = None,
    ) -> None:
        self.api_key = settings.gemini_api_key if api_key is None else api_key
        self.model = model or settings.gemini_model
        self.mock_mode = settings.ai_mock_mode if mock_mode is None else mock_mode

        if not self.mock_mode:
            if not self.api_key:
                logger.warning(
                    "GEMINI_API_KEY not set — falling back to mock mode. "
                    "Set AI_MOCK_MODE=true to silence this warning."
                )
                self.mock_mode = True
            else:
                genai.configure(api_key=self.api_key)
                self._genai = genai

        if self.mock_mode:
            logger.info("GeminiClient initialised in MOCK mode")
        else:
            logger.info("GeminiClient initialised in REAL mode (model: %s)", self.model)

    async def summarize(self, prompt: str, max_tokens: int = 1000) -> Optional[str]:
        """
        Generate an insight summary for an analysis prompt.

        Args:
            prompt:      The full structured prompt.
            max_tokens:  Upper bound on generated tokens.

        Returns:
            Generated text, or None when the model returned no text.

        Raises:
            Exception: Propagates Gemini SDK errors in real mode.
        """
        if self.mock_mode:
            return _MOCK_SUMMARY

        try:
            gemini_model = self._genai.GenerativeModel(self.model)
            response = await gemini_model.generate_content_async(
                prompt,
                generation_config={
                    "max_output_tokens": max_tokens,
                    "temperature": _DEFAULT_TEMPERATURE,
                },
            )
            return response.text or None
        except Exception as exc:
            logger.error("Gemini API error (model=%s): %s", self.model, exc)
            raise


# Module-level singleton, used at the application edge
gemini_client = GeminiClient()
