"""Authentication and ownership policy shared by every protected route.

Routes never check user_id equality themselves: they depend on
get_current_user (401 when there is no valid session) and, for
conversation-scoped routes, get_owned_conversation (404 when the
conversation is missing or belongs to someone else).
"""

import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

from api.deps import get_auth, get_store
from config import SESSION_COOKIE_NAME
from services.auth_service import AuthUser
from services.chat_store import ChatStore

logger = logging.getLogger(__name__)


def extract_access_token(request: Request) -> Optional[str]:
    """Read the access token from the Authorization header or session cookie."""
    auth_header = request.headers.get("Authorization")
    if auth_header and auth_header.startswith("Bearer "):
        token = auth_header[len("Bearer "):].strip()
        if token:
            return token
    return request.cookies.get(SESSION_COOKIE_NAME) or None


async def get_optional_user(request: Request, auth=Depends(get_auth)) -> Optional[AuthUser]:
    token = extract_access_token(request)
    if not token:
        return None
    return await auth.get_user(token)


async def get_current_user(user: Optional[AuthUser] = Depends(get_optional_user)) -> AuthUser:
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


def route_requires_user(route: Any) -> bool:
    """True when the matched route depends on get_current_user anywhere in its tree."""
    pending = [getattr(route, "dependant", None)]
    while pending:
        dependant = pending.pop()
        if dependant is None:
            continue
        if dependant.call is get_current_user:
            return True
        pending.extend(dependant.dependencies)
    return False


async def resolve_request_user(request: Request) -> Optional[AuthUser]:
    """Resolve the caller outside dependency injection (used by error handlers)."""
    token = extract_access_token(request)
    if not token:
        return None
    return await get_auth().get_user(token)


async def authorize_conversation(store: ChatStore, conversation_id: str, user: AuthUser) -> Dict[str, Any]:
    """Return the conversation if user owns it, else raise 404."""
    conversation = await store.get_conversation(conversation_id, user_id=user.id)
    if conversation is None:
        logger.info("[AUTH] Conversation %s not found for user %s", conversation_id, user.id)
        raise HTTPException(status_code=404, detail="Conversation not found")
    return conversation


async def get_owned_conversation(
    conversation_id: str,
    user: AuthUser = Depends(get_current_user),
    store: ChatStore = Depends(get_store)
) -> Dict[str, Any]:
    return await authorize_conversation(store, conversation_id, user)
