"""OAuth redirect handler."""

import logging
import os
from typing import Any, Dict, Optional, Tuple

import aiosqlite
from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse

from api.deps import get_auth, get_store
from config import LOGIN_PATH, SESSION_COOKIE_NAME
from services.auth_service import AuthError, AuthUser, SupabaseAuth
from services.chat_store import ChatStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _app_origin(request: Request) -> str:
    origin = os.getenv("APP_URL") or os.getenv("NEXT_PUBLIC_APP_URL") or str(request.base_url)
    return origin.rstrip("/")


def _login_redirect(origin: str, error: Optional[str] = None) -> RedirectResponse:
    url = f"{origin}{LOGIN_PATH}"
    if error:
        url += f"?error={error}"
    return RedirectResponse(url, status_code=302)


def _profile_fields(user: AuthUser) -> Tuple[Optional[str], Optional[str], Optional[str]]:
    """First name, last name and photo from provider metadata."""
    meta: Dict[str, Any] = user.user_metadata
    first_name = meta.get("first_name") or meta.get("given_name")
    last_name = meta.get("last_name") or meta.get("family_name")
    full_name = meta.get("full_name") or meta.get("name")
    if full_name and not first_name:
        first_name, _, rest = full_name.partition(" ")
        last_name = last_name or rest or None
    photo_url = meta.get("avatar_url") or meta.get("picture")
    return first_name, last_name, photo_url


@router.get("/callback")
async def auth_callback(
    request: Request,
    code: Optional[str] = None,
    auth: SupabaseAuth = Depends(get_auth),
    store: ChatStore = Depends(get_store)
):
    """Exchange the OAuth code for a session and make sure a profile exists."""
    origin = _app_origin(request)
    if not code:
        return _login_redirect(origin)

    try:
        session = await auth.exchange_code_for_session(code)
    except AuthError as e:
        logger.error("[AUTH] Error exchanging code for session: %s", e)
        return _login_redirect(origin, "auth-callback-error")

    user = session.user
    logger.info("[AUTH] OAuth sign-in for user %s via %s", user.id, user.provider or "unknown")
    try:
        profile = await store.get_profile(user.id)
    except aiosqlite.Error as e:
        logger.error("[AUTH] Profile lookup failed for user %s: %s", user.id, e)
        return _login_redirect(origin, "profile-select-failed")

    try:
        if profile is None:
            first_name, last_name, photo_url = _profile_fields(user)
            await store.create_profile(
                user_id=user.id,
                email=user.email or "",
                first_name=first_name,
                last_name=last_name,
                photo_url=photo_url,
            )
        else:
            await store.touch_last_login(user.id)
    except aiosqlite.Error as e:
        logger.error("[AUTH] Profile write failed for user %s: %s", user.id, e)
        return _login_redirect(origin, "profile-insert-failed")

    response = RedirectResponse(origin, status_code=302)
    response.set_cookie(
        SESSION_COOKIE_NAME,
        session.access_token,
        max_age=session.expires_in,
        httponly=True,
        samesite="lax",
    )
    return response
