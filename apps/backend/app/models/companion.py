"""
companion.py — Pydantic schemas for Companion Mode.

  StyleSummary      — partner communication style (stored on the profile)
  Pairing           — two-party relationship record (read-only)
  PartnerProfile    — partner's last activity + raw style summary (read-only)
  CompanionRequest  — what the client sends to POST /api/ai-companion
  CompanionResponse — successful reply body
  CompanionError    — error body; `code` is a closed enumeration
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.core.config import settings


class ErrorCode(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    UNAUTHORIZED = "UNAUTHORIZED"
    PARTNER_ACTIVE = "PARTNER_ACTIVE"
    RATE_LIMITED = "RATE_LIMITED"
    GENERATION_FAILED = "GENERATION_FAILED"


# ── Stored records ────────────────────────────────────────────────────────────

class StyleSummary(BaseModel):
    """Partner communication style, precomputed and stored as a profile sub-document."""
    avg_length: Literal["short", "medium", "long"]
    emoji_usage: Literal["low", "medium", "high"]
    tone: Literal["playful", "calm", "serious"]
    response_speed: Optional[Literal["fast", "slow"]] = None  # not used by the prompt


class Pairing(BaseModel):
    user1_id: str
    user2_id: Optional[str] = None

    def partner_of(self, identity: str) -> Optional[str]:
        """The other side of the pair, or None if the partner has not joined yet."""
        partner = self.user2_id if self.user1_id == identity else self.user1_id
        return partner or None


class PartnerProfile(BaseModel):
    last_active: Optional[datetime] = None
    # Validated later by the access gate; a malformed summary must not fail the lookup
    style_summary: Optional[dict[str, Any]] = None

    @field_validator("last_active")
    @classmethod
    def _assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ── API bodies ────────────────────────────────────────────────────────────────

class CompanionRequest(BaseModel):
    """Payload for POST /api/ai-companion."""
    model_config = ConfigDict(str_strip_whitespace=True)

    message: str = Field(min_length=1, max_length=settings.message_max_chars)
    # Optional self-reported mood, e.g. "anxious", "happy", "sad"
    mood: Optional[str] = None

    @field_validator("mood")
    @classmethod
    def _blank_mood_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class CompanionResponse(BaseModel):
    reply: str
    # Always shown in the UI: Companion is an AI, not the partner
    disclaimer: str


class CompanionError(BaseModel):
    error: str
    code: ErrorCode
