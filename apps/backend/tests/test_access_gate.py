"""
test_access_gate.py — Pairing and partner-inactivity checks.

The gate's clock is pinned so the 10-minute boundary can be hit exactly.
"""

from datetime import datetime, timedelta, timezone

import pytest

from app.core.errors import CompanionFailure
from app.models.companion import ErrorCode, StyleSummary
from app.services.access_gate import AccessGate
from fakes import CALM_SHORT_LOW, PARTNER_ID, USER_ID, FakeCompanionStore, paired_store

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
THRESHOLD = timedelta(minutes=10)


def _gate(store) -> AccessGate:
    return AccessGate(store, THRESHOLD, clock=lambda: NOW)


class TestPairing:
    async def test_no_pairing_is_unauthorized_403(self):
        with pytest.raises(CompanionFailure) as info:
            await _gate(FakeCompanionStore()).authorize(USER_ID)
        assert info.value.code is ErrorCode.UNAUTHORIZED
        assert info.value.status_code == 403
        assert "No active pair" in info.value.message

    async def test_partner_not_joined_is_unauthorized_403(self):
        store = FakeCompanionStore().pair(USER_ID, None)
        with pytest.raises(CompanionFailure) as info:
            await _gate(store).authorize(USER_ID)
        assert info.value.code is ErrorCode.UNAUTHORIZED
        assert "not joined" in info.value.message

    async def test_pairing_is_symmetric(self):
        store = FakeCompanionStore().pair(PARTNER_ID, USER_ID)
        grant = await _gate(store).authorize(USER_ID)
        assert grant.partner_id == PARTNER_ID

    async def test_failure_stops_before_profile_lookup(self):
        store = FakeCompanionStore()
        with pytest.raises(CompanionFailure):
            await _gate(store).authorize(USER_ID)
        assert store.calls == [("pairing", USER_ID)]


class TestInactivity:
    @pytest.mark.parametrize("minutes", [0, 1, 9, 9.99])
    async def test_recent_activity_is_partner_active(self, minutes):
        store = paired_store(last_active=NOW - timedelta(minutes=minutes))
        with pytest.raises(CompanionFailure) as info:
            await _gate(store).authorize(USER_ID)
        assert info.value.code is ErrorCode.PARTNER_ACTIVE
        assert info.value.status_code == 403

    @pytest.mark.parametrize("minutes", [10, 10.01, 15, 60 * 24])
    async def test_activity_at_or_past_threshold_is_admitted(self, minutes):
        store = paired_store(last_active=NOW - timedelta(minutes=minutes))
        grant = await _gate(store).authorize(USER_ID)
        assert grant.partner_id == PARTNER_ID

    async def test_missing_last_active_is_inactive(self):
        grant = await _gate(paired_store(last_active=None)).authorize(USER_ID)
        assert grant.partner_id == PARTNER_ID

    async def test_missing_profile_is_inactive(self):
        store = FakeCompanionStore().pair(USER_ID, PARTNER_ID)
        grant = await _gate(store).authorize(USER_ID)
        assert grant.partner_id == PARTNER_ID
        assert grant.style_summary is None

    async def test_naive_timestamp_is_treated_as_utc(self):
        naive = (NOW - timedelta(minutes=5)).replace(tzinfo=None)
        with pytest.raises(CompanionFailure) as info:
            await _gate(paired_store(last_active=naive)).authorize(USER_ID)
        assert info.value.code is ErrorCode.PARTNER_ACTIVE

    async def test_future_timestamp_counts_as_active(self):
        store = paired_store(last_active=NOW + timedelta(minutes=2))
        with pytest.raises(CompanionFailure) as info:
            await _gate(store).authorize(USER_ID)
        assert info.value.code is ErrorCode.PARTNER_ACTIVE


class TestStyleSummary:
    async def test_valid_style_is_returned(self):
        store = paired_store(last_active=NOW - timedelta(minutes=30), style_summary=CALM_SHORT_LOW)
        grant = await _gate(store).authorize(USER_ID)
        assert grant.style_summary == StyleSummary(**CALM_SHORT_LOW)

    async def test_malformed_style_is_dropped(self):
        store = paired_store(style_summary={"tone": "sarcastic", "avg_length": "short"})
        grant = await _gate(store).authorize(USER_ID)
        assert grant.style_summary is None

    async def test_style_without_response_speed_is_accepted(self):
        store = paired_store(style_summary={"tone": "playful", "avg_length": "long", "emoji_usage": "high"})
        grant = await _gate(store).authorize(USER_ID)
        assert grant.style_summary.tone == "playful"
