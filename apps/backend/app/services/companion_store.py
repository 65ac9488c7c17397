"""
companion_store.py — Read-only pairing / profile lookups backed by MongoDB.

Both lookups are independent reads with no atomicity between them. Each is
bounded by settings.store_timeout_seconds; a timeout or driver error
propagates to the caller (no retry).
"""

import asyncio
import logging
from typing import Optional, Protocol

from fastapi import Depends
from motor.motor_asyncio import AsyncIOMotorDatabase

from app.core.config import settings
from app.core.database import PAIRS_COLLECTION, PROFILES_COLLECTION, get_db
from app.models.companion import Pairing, PartnerProfile

logger = logging.getLogger(__name__)


class StoreUnavailable(Exception):
    """MongoDB was not reachable when the API started."""


class CompanionStore(Protocol):
    async def get_pairing(self, identity: str) -> Optional[Pairing]: ...

    async def get_partner_profile(self, partner_id: str) -> Optional[PartnerProfile]: ...


class MongoCompanionStore:
    def __init__(self, db: Optional[AsyncIOMotorDatabase]) -> None:
        self._db = db

    def _collection(self, name: str):
        if self._db is None:
            raise StoreUnavailable("Database unavailable")
        return self._db[name]

    async def get_pairing(self, identity: str) -> Optional[Pairing]:
        doc = await asyncio.wait_for(
            self._collection(PAIRS_COLLECTION).find_one(
                {"$or": [{"user1_id": identity}, {"user2_id": identity}]}
            ),
            timeout=settings.store_timeout_seconds,
        )
        if not doc:
            return None
        return Pairing(user1_id=doc["user1_id"], user2_id=doc.get("user2_id"))

    async def get_partner_profile(self, partner_id: str) -> Optional[PartnerProfile]:
        doc = await asyncio.wait_for(
            self._collection(PROFILES_COLLECTION).find_one(
                {"user_id": partner_id},
                projection={"last_active": 1, "style_summary": 1},
            ),
            timeout=settings.store_timeout_seconds,
        )
        if not doc:
            return None
        raw_style = doc.get("style_summary")
        return PartnerProfile(
            last_active=doc.get("last_active"),
            style_summary=raw_style if isinstance(raw_style, dict) else None,
        )


def get_companion_store(db=Depends(get_db)) -> CompanionStore:
    """FastAPI dependency — tests override this with an in-memory store."""
    return MongoCompanionStore(db)
