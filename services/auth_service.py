"""Supabase Auth wrapper.

Only identity lives in Supabase; profile and chat rows are stored by
ChatStore. The supabase client is synchronous, so calls run in a worker
thread to keep the event loop free.
"""

import asyncio
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from supabase import Client, create_client

logger = logging.getLogger(__name__)


class AuthError(Exception):
    """Raised when Supabase rejects an auth operation."""


@dataclass
class AuthUser:
    """The authenticated caller."""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = field(default_factory=dict)
    app_metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def provider(self) -> Optional[str]:
        return self.app_metadata.get("provider")


@dataclass
class AuthSession:
    """Tokens issued by the auth provider for a user."""
    user: AuthUser
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None


def _to_auth_user(user: Any) -> AuthUser:
    return AuthUser(
        id=str(user.id),
        email=getattr(user, "email", None),
        user_metadata=dict(getattr(user, "user_metadata", None) or {}),
        app_metadata=dict(getattr(user, "app_metadata", None) or {}),
    )


def _to_auth_session(session: Any, user: Any) -> AuthSession:
    return AuthSession(
        user=_to_auth_user(user or session.user),
        access_token=session.access_token,
        refresh_token=getattr(session, "refresh_token", None),
        expires_in=getattr(session, "expires_in", None),
    )


class SupabaseAuth:
    """Token verification, OAuth code exchange and sign-up through Supabase."""

    def __init__(self, url: Optional[str] = None, key: Optional[str] = None):
        url = url or os.getenv("SUPABASE_URL")
        key = key or os.getenv("SUPABASE_ANON_KEY")
        if not url or not key:
            raise ValueError("SUPABASE_URL and SUPABASE_ANON_KEY environment variables are required")
        self.client: Client = create_client(url, key)

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        """Return the user for a valid access token, None otherwise."""
        try:
            response = await asyncio.to_thread(self.client.auth.get_user, access_token)
        except Exception as e:
            logger.info("[AUTH] Token rejected: %s", e)
            return None
        if response is None or response.user is None:
            return None
        return _to_auth_user(response.user)

    async def exchange_code_for_session(self, code: str) -> AuthSession:
        """Exchange an OAuth authorization code for a session."""
        try:
            response = await asyncio.to_thread(
                self.client.auth.exchange_code_for_session, {"auth_code": code}
            )
        except Exception as e:
            raise AuthError(str(e)) from e
        if response.session is None:
            raise AuthError("No session returned for authorization code")
        return _to_auth_session(response.session, response.user)

    async def sign_up(
        self,
        email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        redirect_to: Optional[str] = None
    ) -> AuthUser:
        """Create an auth user. Email confirmation is handled by Supabase."""
        options: Dict[str, Any] = {"data": {"first_name": first_name, "last_name": last_name}}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        try:
            response = await asyncio.to_thread(
                self.client.auth.sign_up,
                {"email": email, "password": password, "options": options},
            )
        except Exception as e:
            raise AuthError(str(e)) from e
        if response.user is None:
            raise AuthError("Sign-up did not return a user")
        return _to_auth_user(response.user)
