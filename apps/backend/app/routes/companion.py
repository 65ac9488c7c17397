"""
companion.py — Companion Mode chat endpoint.

Route:
  POST /api/ai-companion — one user message in, one Companion reply out.

Requires `Authorization: Bearer <JWT>` from the auth provider.
The body is read raw and validated inside CompanionPipeline so that bad
input maps to the companion error shape ({error, code}, HTTP 400) rather
than FastAPI's default 422 validation body.

Success: 200 { "reply": "...", "disclaimer": "..." }
Errors:  400 INVALID_INPUT | 401/403 UNAUTHORIZED | 403 PARTNER_ACTIVE
         429 RATE_LIMITED (Retry-After) | 422/500 GENERATION_FAILED

Admitted requests carry X-RateLimit-Limit / -Window-Ms / -Remaining headers.
Other methods on this path return 405.

  curl -X POST http://localhost:8000/api/ai-companion \\
    -H "Authorization: Bearer $TOKEN" -H 'Content-Type: application/json' \\
    -d '{"message": "Rough day at work, just need to vent", "mood": "tired"}'
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from app.ai.gemini_client import gemini_client
from app.core.config import settings
from app.core.rate_limit import limiter
from app.models.companion import CompanionError, CompanionResponse
from app.services.companion_pipeline import CompanionPipeline
from app.services.companion_store import CompanionStore, get_companion_store
from app.services.rate_limiter import companion_rate_limiter

logger = logging.getLogger(__name__)

router = APIRouter(tags=["companion"])

# Reusable bearer extractor (does NOT auto-raise on missing token)
_bearer = HTTPBearer(auto_error=False)
CredDep = Annotated[HTTPAuthorizationCredentials | None, Depends(_bearer)]
StoreDep = Annotated[CompanionStore, Depends(get_companion_store)]


@router.post(
    "/api/ai-companion",
    response_model=CompanionResponse,
    responses={
        400: {"model": CompanionError},
        401: {"model": CompanionError},
        403: {"model": CompanionError},
        422: {"model": CompanionError},
        429: {"model": CompanionError},
        500: {"model": CompanionError},
    },
)
@limiter.limit(settings.companion_ip_rate_limit)
async def ai_companion(request: Request, credentials: CredDep, store: StoreDep):
    """Send one message to the Companion and receive a reply with the AI disclaimer."""
    pipeline = CompanionPipeline(
        store=store,
        rate_limiter=companion_rate_limiter,
        model_client=gemini_client,
    )
    token = credentials.credentials if credentials else None
    result = await pipeline.handle(await request.body(), token)

    if not result.ok:
        logger.info(
            "Companion request rejected: %s (%d)", result.body.code.value, result.status_code
        )
    return JSONResponse(
        status_code=result.status_code,
        content=result.body.model_dump(mode="json"),
        headers=result.headers,
    )
