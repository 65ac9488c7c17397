"""
companion_pipeline.py — Request admission and prompt assembly for Companion Mode.

HOW A MESSAGE IS HANDLED
─────────────────────────
1. Parse the JSON body into CompanionRequest (1..1000 chars after trimming)
   → INVALID_INPUT (400)
2. Resolve the caller from the bearer token                → UNAUTHORIZED (401)
3. AccessGate: pairing + partner inactivity                → UNAUTHORIZED / PARTNER_ACTIVE (403)
4. Per-user sliding-window limiter (20/hour)               → RATE_LIMITED (429, Retry-After)
5. Style context + prompt parts
6. Gemini call under a timeout
7. Safety block                                            → GENERATION_FAILED (422)
   Empty reply / timeout / provider error                  → GENERATION_FAILED (500)
8. Trimmed reply + fixed disclaimer                        → 200

Each step short-circuits. The gate runs before the limiter, so only
requests that could actually reach the model consume quota. The limiter
is the only state touched before admission, and a rejected request never
reaches the model. Nothing is retried.

Any exception not anticipated above is logged and reported as a generic
GENERATION_FAILED (500) so internal details never reach the caller.
"""

import asyncio
import logging
import math
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Callable, Optional, Union

from pydantic import ValidationError

from app.ai.gemini_client import GeminiClient, GenerationBlocked
from app.ai.prompt_builder import (
    COMPANION_DISCLAIMER,
    SYSTEM_INSTRUCTION,
    build_context_block,
    build_prompt_parts,
)
from app.core.config import settings
from app.core.errors import CompanionFailure
from app.core.security import decode_access_token
from app.models.companion import (
    CompanionError,
    CompanionRequest,
    CompanionResponse,
    ErrorCode,
)
from app.services.access_gate import AccessGate
from app.services.companion_store import CompanionStore
from app.services.rate_limiter import SlidingWindowRateLimiter

logger = logging.getLogger(__name__)


@dataclass
class CompanionResult:
    status_code: int
    body: Union[CompanionResponse, CompanionError]
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 200


def _parse_request(raw_body: Union[bytes, str]) -> CompanionRequest:
    try:
        return CompanionRequest.model_validate_json(raw_body)
    except ValidationError as exc:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = tuple(first.get("loc", ()))
        if first.get("type") == "json_invalid" or not loc:
            message = "Invalid JSON body."
        elif loc == ("message",) and first.get("type") == "string_too_long":
            message = f"Message exceeds {settings.message_max_chars} characters."
        elif loc == ("message",):
            message = "Message is required."
        else:
            message = f"Invalid field: {'.'.join(str(part) for part in loc)}."
        raise CompanionFailure(ErrorCode.INVALID_INPUT, message, 400) from exc


class CompanionPipeline:
    """
    Orchestrates one companion message end to end.

    Collaborators are injected so tests can swap the store, limiter,
    model client and clock; the route builds one per request around the
    module-level limiter and Gemini client.
    """

    def __init__(
        self,
        store: CompanionStore,
        rate_limiter: SlidingWindowRateLimiter,
        model_client: GeminiClient,
        resolve_identity: Callable[[Optional[str]], Optional[str]] = decode_access_token,
        access_gate: Optional[AccessGate] = None,
        model_timeout_seconds: float = settings.gemini_timeout_seconds,
    ) -> None:
        self.rate_limiter = rate_limiter
        self.model_client = model_client
        self.resolve_identity = resolve_identity
        self.access_gate = access_gate or AccessGate(
            store, timedelta(minutes=settings.partner_inactivity_minutes)
        )
        self.model_timeout_seconds = model_timeout_seconds

    async def handle(self, raw_body: Union[bytes, str], token: Optional[str]) -> CompanionResult:
        headers: dict[str, str] = {}
        try:
            reply = await self._run(raw_body, token, headers)
        except CompanionFailure as failure:
            return CompanionResult(
                status_code=failure.status_code,
                body=CompanionError(error=failure.message, code=failure.code),
                headers={**headers, **failure.headers},
            )
        except Exception:
            logger.exception("[ai-companion] unexpected pipeline error")
            return CompanionResult(
                status_code=500,
                body=CompanionError(
                    error="AI generation failed. Please try again.",
                    code=ErrorCode.GENERATION_FAILED,
                ),
                headers=headers,
            )

        return CompanionResult(
            status_code=200,
            body=CompanionResponse(reply=reply, disclaimer=COMPANION_DISCLAIMER),
            headers=headers,
        )

    async def _run(
        self, raw_body: Union[bytes, str], token: Optional[str], headers: dict[str, str]
    ) -> str:
        # ── 1. Input ───────────────────────────────────────────────────────────
        request = _parse_request(raw_body)

        # ── 2. Identity ────────────────────────────────────────────────────────
        identity = self.resolve_identity(token)
        if not identity:
            raise CompanionFailure(ErrorCode.UNAUTHORIZED, "Unauthorized. Please sign in.", 401)

        # ── 3. Pairing + partner inactivity ────────────────────────────────────
        grant = await self.access_gate.authorize(identity)

        # ── 4. Rate limit ──────────────────────────────────────────────────────
        decision = self.rate_limiter.admit(identity)
        headers["X-RateLimit-Limit"] = str(self.rate_limiter.max_requests)
        headers["X-RateLimit-Window-Ms"] = str(self.rate_limiter.window_ms)

        if not decision.allowed:
            retry_after_ms = max(decision.retry_after_ms or 0.0, 0.0)
            raise CompanionFailure(
                ErrorCode.RATE_LIMITED,
                f"Too many requests. Please wait {math.ceil(retry_after_ms / 60_000)} minutes.",
                429,
                headers={"Retry-After": str(max(math.ceil(retry_after_ms / 1000), 1))},
            )
        headers["X-RateLimit-Remaining"] = str(decision.remaining)

        # ── 5. Prompt ──────────────────────────────────────────────────────────
        context_block = build_context_block(grant.style_summary, request.mood)
        prompt_parts = build_prompt_parts(context_block, request.message)

        # ── 6 & 7. Model ───────────────────────────────────────────────────────
        try:
            raw_reply = await asyncio.wait_for(
                self.model_client.generate_companion_reply(SYSTEM_INSTRUCTION, prompt_parts),
                timeout=self.model_timeout_seconds,
            )
        except GenerationBlocked as exc:
            logger.info("[ai-companion] reply blocked for %s: %s", identity, exc)
            raise CompanionFailure(
                ErrorCode.GENERATION_FAILED,
                "Response could not be generated safely. Please try rephrasing.",
                422,
            ) from exc
        except Exception as exc:
            logger.error("[ai-companion] Gemini error: %s", exc)
            raise CompanionFailure(
                ErrorCode.GENERATION_FAILED, "AI generation failed. Please try again.", 500
            ) from exc

        reply = (raw_reply or "").strip()
        if not reply:
            logger.error("[ai-companion] empty response from model for %s", identity)
            raise CompanionFailure(
                ErrorCode.GENERATION_FAILED, "AI generation failed. Please try again.", 500
            )

        # ── 8. Done ────────────────────────────────────────────────────────────
        return reply
