"""Feature request / feedback submission."""

import logging
from typing import List, Optional

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from api.auth import get_current_user
from api.deps import get_store
from config import MAX_FEEDBACK_DETAILS_CHARS
from services.auth_service import AuthUser
from services.chat_store import ChatStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/feature-request", tags=["feedback"])


class FeatureRequest(BaseModel):
    categories: List[str] = Field(min_length=1)
    details: str = Field(min_length=1, max_length=MAX_FEEDBACK_DETAILS_CHARS)
    pageUrl: Optional[str] = None


@router.post("", status_code=201)
async def submit_feature_request(
    request: FeatureRequest,
    http_request: Request,
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
):
    """Record a feedback entry from the signed-in user.

    The page URL falls back to the Referer header; the user agent is
    recorded as sent.
    """
    try:
        feedback = await store.create_feedback(
            user_id=user.id,
            categories=request.categories,
            details=request.details,
            page_url=request.pageUrl or http_request.headers.get("referer"),
            user_agent=http_request.headers.get("user-agent"),
        )
    except aiosqlite.Error as e:
        logger.error("[FEEDBACK] Insert failed for user %s: %s", user.id, e)
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to submit feedback.", "details": str(e)}
        )

    logger.info("[FEEDBACK] Feedback %s submitted by user %s", feedback["id"], user.id)
    return {"message": "Feedback submitted successfully!", "data": feedback}
