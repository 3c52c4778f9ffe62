"""Pytest configuration and fixtures."""

import asyncio
import os
import sys
import tempfile
from typing import Dict, Generator, Optional

import httpx
import pytest

# Add project root to Python path
project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if project_root not in sys.path:
    sys.path.insert(0, project_root)

from services.auth_service import AuthError, AuthSession, AuthUser  # noqa: E402

ALICE_TOKEN = "token-alice"
BOB_TOKEN = "token-bob"


class FakeAuth:
    """In-memory stand-in for SupabaseAuth."""

    def __init__(self):
        self.users: Dict[str, AuthUser] = {
            ALICE_TOKEN: AuthUser(id="user-alice", email="alice@example.com"),
            BOB_TOKEN: AuthUser(id="user-bob", email="bob@example.com"),
        }
        self.codes: Dict[str, AuthSession] = {}
        self.signups = []

    async def get_user(self, access_token: str) -> Optional[AuthUser]:
        return self.users.get(access_token)

    async def exchange_code_for_session(self, code: str) -> AuthSession:
        if code not in self.codes:
            raise AuthError("invalid code")
        return self.codes[code]

    async def sign_up(self, email, password, first_name=None, last_name=None, redirect_to=None):
        if any(u.email == email for u in self.users.values()):
            raise AuthError("User already registered")
        user = AuthUser(id=f"user-{len(self.signups) + 1}", email=email)
        self.signups.append({"email": email, "first_name": first_name, "redirect_to": redirect_to})
        return user


@pytest.fixture
def temp_data_dir() -> Generator[str, None, None]:
    """Create a temporary data directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def mock_env(monkeypatch):
    """Set up mock environment variables."""
    monkeypatch.setenv("MOCK_LLM", "1")
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    return monkeypatch


@pytest.fixture
def no_sleep(monkeypatch):
    """Record retry backoff delays instead of sleeping."""
    delays = []

    async def fake_sleep(seconds):
        delays.append(seconds)

    monkeypatch.setattr("services.retry._sleep", fake_sleep)
    return delays


@pytest.fixture
async def store(temp_data_dir):
    """Create a chat store backed by a temporary database."""
    from services.chat_store import ChatStore

    chat_store = ChatStore(db_path=os.path.join(temp_data_dir, "chat.db"))
    await chat_store.initialize()
    return chat_store


@pytest.fixture
def fake_auth():
    return FakeAuth()


@pytest.fixture
def chat_client():
    from services.mock_streams import MockChatClient

    return MockChatClient(chunks=["Hello", ", ", "world"], delay_ms=0)


@pytest.fixture
def streaming_service():
    """Create a streaming service instance."""
    from services.streaming_service import StreamingService

    return StreamingService()


@pytest.fixture
def outbox(no_sleep):
    from services.outbox import PersistenceOutbox

    return PersistenceOutbox()


@pytest.fixture
async def app_client(store, fake_auth, chat_client, outbox, streaming_service):
    """HTTP client driving the ASGI app with fake services installed."""
    from api import deps
    from app import app

    deps.override(
        store=store,
        auth=fake_auth,
        chat_client=chat_client,
        outbox=outbox,
        streaming=streaming_service,
    )
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    await outbox.drain()
    deps.reset()


@pytest.fixture
def alice_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {ALICE_TOKEN}"}


@pytest.fixture
def bob_headers() -> Dict[str, str]:
    return {"Authorization": f"Bearer {BOB_TOKEN}"}


class ManualClock:
    """Sleep replacement whose waits end only when release() is called."""

    def __init__(self):
        self.waiters = []

    async def sleep(self, seconds):
        future = asyncio.get_running_loop().create_future()
        self.waiters.append(future)
        await future

    def release(self):
        waiters, self.waiters = self.waiters, []
        for future in waiters:
            if not future.done():
                future.set_result(None)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()