"""User profile, settings and account endpoints."""

import logging
from typing import Any, Dict, Literal, Optional

import aiosqlite
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from api.auth import get_current_user
from api.deps import get_auth, get_store
from services.auth_service import AuthError, AuthUser, SupabaseAuth
from services.chat_store import ChatStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["profile"])


class UpdateProfileRequest(BaseModel):
    """Profile and settings fields a user may change."""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    photo_url: Optional[str] = None
    preferred_language: Optional[Literal["ar", "en"]] = None
    preferred_theme: Optional[Literal["light", "dark", "system"]] = None
    chat_settings: Optional[Dict[str, Any]] = None
    privacy_settings: Optional[Dict[str, Any]] = None


class SignUpRequest(BaseModel):
    email: str = Field(min_length=3)
    password: str = Field(min_length=6)
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    preferred_language: Literal["ar", "en"] = "en"
    redirect_to: Optional[str] = None


@router.get("/api/profile")
async def get_profile(
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
):
    """Get the caller's profile."""
    profile = await store.get_profile(user.id)
    if profile is None or profile["is_deleted"]:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.patch("/api/profile")
async def update_profile(
    request: UpdateProfileRequest,
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
):
    """Update profile details and settings."""
    try:
        profile = await store.update_profile(user.id, **request.model_dump(exclude_none=True))
    except aiosqlite.Error as e:
        logger.error("[PROFILE] Update failed for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to update profile")
    if profile is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return profile


@router.delete("/api/profile")
async def delete_account(
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
):
    """Soft-delete the account and every conversation it owns."""
    try:
        deleted = await store.soft_delete_profile(user.id)
        conversations = await store.soft_delete_user_conversations(user.id)
    except aiosqlite.Error as e:
        logger.error("[PROFILE] Account deletion failed for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to delete account")
    if not deleted:
        raise HTTPException(status_code=404, detail="Profile not found")

    logger.info("[PROFILE] Deleted account %s (%d conversations)", user.id, conversations)
    return {"success": True}


@router.post("/api/auth/signup", status_code=201)
async def sign_up(
    request: SignUpRequest,
    auth: SupabaseAuth = Depends(get_auth),
    store: ChatStore = Depends(get_store)
):
    """Create an auth user and its profile row."""
    try:
        user = await auth.sign_up(
            email=request.email,
            password=request.password,
            first_name=request.first_name,
            last_name=request.last_name,
            redirect_to=request.redirect_to,
        )
    except AuthError as e:
        logger.info("[AUTH] Sign-up rejected for %s: %s", request.email, e)
        raise HTTPException(status_code=400, detail=str(e))

    try:
        profile = await store.create_profile(
            user_id=user.id,
            email=request.email,
            first_name=request.first_name,
            last_name=request.last_name,
            preferred_language=request.preferred_language,
        )
    except aiosqlite.Error as e:
        logger.error("[PROFILE] Profile creation failed for user %s: %s", user.id, e)
        raise HTTPException(status_code=500, detail="Failed to create profile")

    return {"user": {"id": user.id, "email": user.email}, "profile": profile}
