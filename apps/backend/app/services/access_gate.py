"""
access_gate.py — Decides whether a user may talk to the Companion right now.

Companion Mode is only available while the user's partner is verifiably
away. The gate:
  1. Looks up the user's pairing     → UNAUTHORIZED (403) if none, or the
                                        partner has not joined yet.
  2. Looks up the partner's profile  → PARTNER_ACTIVE (403) if the partner
                                        was active less than the inactivity
                                        threshold ago.
  3. Returns the partner ID and, when it validates, their style summary.

A partner with no profile or no `last_active` is treated as inactive, so
brand-new partners never block the feature. Store errors propagate.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from pydantic import ValidationError

from app.core.errors import CompanionFailure
from app.models.companion import ErrorCode, PartnerProfile, StyleSummary
from app.services.companion_store import CompanionStore

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=timezone.utc)


@dataclass(frozen=True)
class AccessGrant:
    partner_id: str
    style_summary: Optional[StyleSummary] = None


def _parse_style(partner_id: str, profile: Optional[PartnerProfile]) -> Optional[StyleSummary]:
    if profile is None or not profile.style_summary:
        return None
    try:
        return StyleSummary.model_validate(profile.style_summary)
    except ValidationError as exc:
        # Non-fatal: proceed without style guidance
        logger.warning("Ignoring malformed style_summary for %s: %s", partner_id, exc)
        return None


class AccessGate:
    def __init__(
        self,
        store: CompanionStore,
        inactivity_threshold: timedelta,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self.inactivity_threshold = inactivity_threshold
        self._clock = clock

    async def authorize(self, identity: str) -> AccessGrant:
        pairing = await self._store.get_pairing(identity)
        if pairing is None:
            raise CompanionFailure(ErrorCode.UNAUTHORIZED, "No active pair found.", 403)

        partner_id = pairing.partner_of(identity)
        if partner_id is None:
            raise CompanionFailure(ErrorCode.UNAUTHORIZED, "Partner has not joined yet.", 403)

        profile = await self._store.get_partner_profile(partner_id)
        if profile is not None and profile.last_active is not None:
            elapsed = self._clock() - profile.last_active
            if elapsed < self.inactivity_threshold:
                logger.info(
                    "Companion denied for %s: partner active %.0fs ago",
                    identity, elapsed.total_seconds(),
                )
                raise CompanionFailure(
                    ErrorCode.PARTNER_ACTIVE,
                    "Your partner is active. Companion Mode is only available "
                    "when your partner is away.",
                    403,
                )

        return AccessGrant(partner_id=partner_id, style_summary=_parse_style(partner_id, profile))
