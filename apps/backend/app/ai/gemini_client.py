"""
GeminiClient — Async wrapper around the Google Generative AI SDK for Companion Mode.

One model (gemini-1.5-flash by default, see settings.gemini_model) is called
with the fixed companion system instruction, conservative generation
parameters and the strictest safety thresholds.

Supports two runtime modes (set via AI_MOCK_MODE env var):
  - MOCK mode (default): returns a deterministic canned companion reply.
    Use for tests and local dev without API keys.
  - REAL mode: makes actual Gemini API calls.
    Requires GEMINI_API_KEY to be set.

Failure signalling:
  - GenerationBlocked is raised when the prompt or the reply was blocked by
    safety filters (or no candidate came back at all).
  - Any other SDK error propagates unchanged. Nothing is retried here;
    a retry could bill twice for the same message.
"""

import logging
import os
from typing import Any

# Python 3.14 + protobuf native extension can fail when importing Gemini deps.
# Keep this as default-only so users can still override it explicitly.
os.environ.setdefault("PROTOCOL_BUFFERS_PYTHON_IMPLEMENTATION", "python")

import google.generativeai as genai
from google.generativeai.types import HarmBlockThreshold, HarmCategory

from app.core.config import settings

logger = logging.getLogger(__name__)

# Conservative temperature for emotional safety; short replies.
GENERATION_CONFIG: dict[str, Any] = {
    "temperature": 0.6,
    "top_p": 0.85,
    "top_k": 40,
    "max_output_tokens": 300,
}

# Block anything borderline or above across all categories
# (romantic escalation, harmful advice, etc.).
SAFETY_SETTINGS: dict[HarmCategory, HarmBlockThreshold] = {
    HarmCategory.HARM_CATEGORY_HARASSMENT: HarmBlockThreshold.BLOCK_LOW_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_HATE_SPEECH: HarmBlockThreshold.BLOCK_LOW_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_SEXUALLY_EXPLICIT: HarmBlockThreshold.BLOCK_LOW_AND_ABOVE,
    HarmCategory.HARM_CATEGORY_DANGEROUS_CONTENT: HarmBlockThreshold.BLOCK_LOW_AND_ABOVE,
}

_MOCK_REPLY = (
    "[MOCK] I'm here with you. It sounds like a lot is on your mind — "
    "want to tell me a little more about it?"
)


class GenerationBlocked(Exception):
    """The provider refused to produce a reply for safety reasons."""


def _name_of(value: Any) -> str:
    # SDK enums expose .name; older proto builds hand back plain ints/strings
    return str(getattr(value, "name", value) or "")


def extract_reply_text(response: Any) -> str:
    """
    Pull the reply text out of a GenerateContentResponse.

    Raises GenerationBlocked when the prompt was blocked, when there is no
    candidate, or when the first candidate finished for SAFETY.
    Returns "" when the candidate carries no text.
    """
    feedback = getattr(response, "prompt_feedback", None)
    block_reason = getattr(feedback, "block_reason", None)
    if block_reason and _name_of(block_reason) != "BLOCK_REASON_UNSPECIFIED":
        raise GenerationBlocked(f"prompt blocked: {_name_of(block_reason)}")

    candidates = getattr(response, "candidates", None) or []
    if not candidates:
        raise GenerationBlocked("no candidates returned")

    candidate = candidates[0]
    if _name_of(getattr(candidate, "finish_reason", None)) == "SAFETY":
        raise GenerationBlocked("reply blocked by safety filters")

    content = getattr(candidate, "content", None)
    parts = getattr(content, "parts", None) or []
    return "".join(getattr(part, "text", "") or "" for part in parts)


class GeminiClient:
    """
    Central Gemini interface for the companion backend.

    Don't instantiate per-request; use the module-level `gemini_client` singleton.
    """

    def __init__(self) -> None:
        self.mock_mode = settings.ai_mock_mode
        self.model_name = settings.gemini_model

        if not self.mock_mode:
            if not settings.gemini_api_key:
                logger.warning(
                    "GEMINI_API_KEY not set — falling back to mock mode. "
                    "Set AI_MOCK_MODE=true to silence this warning."
                )
                self.mock_mode = True
            else:
                genai.configure(api_key=settings.gemini_api_key)
                self._genai = genai

        if self.mock_mode:
            logger.info("GeminiClient initialised in MOCK mode")
        else:
            logger.info("GeminiClient initialised in REAL mode (model: %s)", self.model_name)

    async def generate_companion_reply(self, system_instruction: str, parts: list[str]) -> str:
        """
        Generate a companion reply.

        Args:
            system_instruction: The fixed companion policy text.
            parts:              Prompt parts from build_prompt_parts().

        Returns:
            The raw (untrimmed) reply text; may be empty.

        Raises:
            GenerationBlocked: the provider's safety filters blocked the exchange.
            Exception:         Propagates Gemini SDK errors in real mode.
        """
        if self.mock_mode:
            return _MOCK_REPLY

        model = self._genai.GenerativeModel(
            self.model_name,
            system_instruction=system_instruction,
            generation_config=GENERATION_CONFIG,
            safety_settings=SAFETY_SETTINGS,
        )
        try:
            response = await model.generate_content_async(parts)
        except Exception as exc:
            logger.error("Gemini API error (model=%s): %s", self.model_name, exc)
            raise

        return extract_reply_text(response)


# Module-level singleton — import and use this everywhere
gemini_client = GeminiClient()
