#!/usr/bin/env python3
"""
seed_db.py — Populate MongoDB with a demo pairing for local development.

Inserts:
  - A pair (alice ↔ bob) and a pending pair (carol, partner not joined)
  - Profiles: bob inactive for 30 minutes with a calm/short/low style summary
  - Indexes used by the companion lookups

Then prints a bearer token for alice so the endpoint can be exercised:

    python scripts/seed_db.py
    curl -X POST http://localhost:8000/api/ai-companion \\
      -H "Authorization: Bearer <token>" -H 'Content-Type: application/json' \\
      -d '{"message": "Long day. Just want to talk."}'

Requires:
    pip install -e .
    MongoDB running locally (or set MONGO_URI env var)

Safe to re-run: deletes seed data first, then re-inserts.
"""

import asyncio
from datetime import datetime, timedelta, timezone

from motor.motor_asyncio import AsyncIOMotorClient

from app.core.config import settings
from app.core.database import PAIRS_COLLECTION, PROFILES_COLLECTION
from app.core.security import create_access_token

SAMPLE_PAIRS = [
    {"user1_id": "seed-alice", "user2_id": "seed-bob", "seed": True},
    {"user1_id": "seed-carol", "user2_id": None, "seed": True},
]

SAMPLE_PROFILES = [
    {
        "user_id": "seed-bob",
        "last_active": datetime.now(timezone.utc) - timedelta(minutes=30),
        "style_summary": {
            "avg_length": "short",
            "emoji_usage": "low",
            "tone": "calm",
            "response_speed": "slow",
        },
        "seed": True,
    },
    {
        "user_id": "seed-alice",
        "last_active": datetime.now(timezone.utc),
        "style_summary": None,
        "seed": True,
    },
]


async def seed() -> None:
    client = AsyncIOMotorClient(settings.mongo_uri, serverSelectionTimeoutMS=5000)
    db = client[settings.mongo_db_name]

    print(f"Connecting to MongoDB ({settings.mongo_db_name})...")
    await client.admin.command("ping")
    print("Connected.")

    await db[PAIRS_COLLECTION].create_index("user1_id")
    await db[PAIRS_COLLECTION].create_index("user2_id")
    await db[PROFILES_COLLECTION].create_index("user_id", unique=True)
    print("Indexes ensured.")

    deleted_pairs = await db[PAIRS_COLLECTION].delete_many({"seed": True})
    deleted_profiles = await db[PROFILES_COLLECTION].delete_many({"seed": True})
    print(
        f"Removed {deleted_pairs.deleted_count} pairs and "
        f"{deleted_profiles.deleted_count} profiles from a previous seed."
    )

    await db[PAIRS_COLLECTION].insert_many(SAMPLE_PAIRS)
    await db[PROFILES_COLLECTION].insert_many(SAMPLE_PROFILES)
    print(f"Inserted {len(SAMPLE_PAIRS)} pairs and {len(SAMPLE_PROFILES)} profiles.")

    print("\nBearer token for seed-alice (partner away → companion available):")
    print(create_access_token("seed-alice"))
    print("\nBearer token for seed-carol (partner not joined → 403):")
    print(create_access_token("seed-carol"))

    client.close()


if __name__ == "__main__":
    asyncio.run(seed())
