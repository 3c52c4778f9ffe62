"""Tests for the SQLite chat store."""

from datetime import date, datetime, timezone

import aiosqlite
import pytest

from services.chat_store import ChatStore, to_iso


class TestTimestamps:

    def test_to_iso_accepts_z_suffix(self):
        assert to_iso("2024-05-01T10:00:00Z") == "2024-05-01T10:00:00+00:00"

    def test_to_iso_treats_naive_as_utc(self):
        assert to_iso(datetime(2024, 5, 1, 10, 0)) == "2024-05-01T10:00:00+00:00"

    def test_to_iso_defaults_to_now(self):
        value = datetime.fromisoformat(to_iso(None))
        assert value.tzinfo is not None


class TestConversations:
    """Test suite for conversation rows."""

    @pytest.mark.asyncio
    async def test_create_and_get(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")

        assert conversation["title"] == "Test"
        assert conversation["is_archived"] is False
        assert conversation["is_pinned"] is False

        loaded = await store.get_conversation(conversation["id"])
        assert loaded["id"] == conversation["id"]
        assert loaded["is_archived"] is False

    @pytest.mark.asyncio
    async def test_get_scoped_to_owner(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Mine")

        assert await store.get_conversation(conversation["id"], user_id="user-1") is not None
        assert await store.get_conversation(conversation["id"], user_id="user-2") is None

    @pytest.mark.asyncio
    async def test_list_orders_pinned_first_then_recent(self, store: ChatStore):
        first = await store.create_conversation("user-1", "First")
        second = await store.create_conversation("user-1", "Second")
        third = await store.create_conversation("user-1", "Third")
        await store.update_conversation(first["id"], "user-1", is_pinned=True)
        await store.update_conversation_summary(second["id"], "latest")

        ids = [c["id"] for c in await store.list_conversations("user-1")]

        assert ids == [first["id"], second["id"], third["id"]]

    @pytest.mark.asyncio
    async def test_list_filters(self, store: ChatStore):
        keep = await store.create_conversation("user-1", "Travel plans")
        archived = await store.create_conversation("user-1", "Old stuff")
        await store.create_conversation("user-2", "Travel elsewhere")
        await store.update_conversation(archived["id"], "user-1", is_archived=True)

        active = await store.list_conversations("user-1")
        assert [c["id"] for c in active] == [keep["id"]]

        only_archived = await store.list_conversations("user-1", archived=True)
        assert [c["id"] for c in only_archived] == [archived["id"]]

        searched = await store.list_conversations("user-1", archived=None, search="travel")
        assert [c["id"] for c in searched] == [keep["id"]]

    @pytest.mark.asyncio
    async def test_search_escapes_wildcards(self, store: ChatStore):
        await store.create_conversation("user-1", "plain title")
        literal = await store.create_conversation("user-1", "100% done")

        results = await store.list_conversations("user-1", search="%")

        assert [c["id"] for c in results] == [literal["id"]]

    @pytest.mark.asyncio
    async def test_list_by_date(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Today")
        today = datetime.now(timezone.utc).date()

        assert [c["id"] for c in await store.list_conversations("user-1", on_date=today)] == [conversation["id"]]
        assert await store.list_conversations("user-1", on_date=date(2000, 1, 1)) == []

    @pytest.mark.asyncio
    async def test_list_pagination(self, store: ChatStore):
        for i in range(5):
            await store.create_conversation("user-1", f"Conversation {i}")

        page = await store.list_conversations("user-1", limit=2, offset=2)

        assert len(page) == 2

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")

        with pytest.raises(ValueError):
            await store.update_conversation(conversation["id"], "user-1", message_count=3)

    @pytest.mark.asyncio
    async def test_soft_delete_hides_conversation(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")

        assert await store.soft_delete_conversation(conversation["id"], "user-1") is True
        assert await store.get_conversation(conversation["id"]) is None
        assert await store.list_conversations("user-1") == []
        assert await store.soft_delete_conversation(conversation["id"], "user-1") is False

    @pytest.mark.asyncio
    async def test_summary_truncates_preview(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")

        await store.update_conversation_summary(conversation["id"], "x" * 250, message_count=7)

        loaded = await store.get_conversation(conversation["id"])
        assert loaded["last_message_preview"] == "x" * 100
        assert loaded["message_count"] == 7
        assert loaded["last_message_timestamp"] is not None


class TestMessages:
    """Test suite for message rows."""

    @pytest.mark.asyncio
    async def test_insert_generates_ids_and_timestamps(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")

        rows = await store.insert_messages(conversation["id"], [{"role": "user", "content": "hi"}])

        assert rows[0]["id"]
        assert rows[0]["created_at"]
        assert rows[0]["topic"] == "default"
        assert rows[0]["extension"] == ".txt"

    @pytest.mark.asyncio
    async def test_list_orders_by_created_at(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")
        await store.insert_messages(conversation["id"], [
            {"role": "assistant", "content": "second", "timestamp": "2024-01-01T00:00:02Z"},
            {"role": "user", "content": "first", "timestamp": "2024-01-01T00:00:01Z"},
        ])

        messages = await store.list_messages(conversation["id"])

        assert [m["content"] for m in messages] == ["first", "second"]

    @pytest.mark.asyncio
    async def test_same_timestamp_keeps_insertion_order(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")
        stamp = "2024-01-01T00:00:00Z"
        await store.insert_messages(conversation["id"], [
            {"role": "user", "content": "a", "timestamp": stamp},
            {"role": "assistant", "content": "b", "timestamp": stamp},
        ])

        messages = await store.list_messages(conversation["id"])

        assert [m["content"] for m in messages] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_repeated_id_updates_instead_of_duplicating(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")
        await store.add_message(conversation["id"], "assistant", "partial", message_id="m-1")

        await store.add_message(conversation["id"], "assistant", "partial and complete", message_id="m-1")

        messages = await store.list_messages(conversation["id"])
        assert len(messages) == 1
        assert messages[0]["content"] == "partial and complete"

    @pytest.mark.asyncio
    async def test_repeated_id_from_other_conversation_is_ignored(self, store: ChatStore):
        mine = await store.create_conversation("user-1", "Mine")
        other = await store.create_conversation("user-2", "Other")
        await store.add_message(mine["id"], "user", "original", message_id="m-1")

        await store.add_message(other["id"], "user", "hijack", message_id="m-1")

        assert [m["content"] for m in await store.list_messages(mine["id"])] == ["original"]
        assert await store.list_messages(other["id"]) == []

    @pytest.mark.asyncio
    async def test_invalid_role_raises_database_error(self, store: ChatStore):
        conversation = await store.create_conversation("user-1", "Test")

        with pytest.raises(aiosqlite.Error):
            await store.insert_messages(conversation["id"], [{"role": "tool", "content": "x"}])


class TestProfiles:
    """Test suite for profile rows."""

    @pytest.mark.asyncio
    async def test_create_and_update(self, store: ChatStore):
        profile = await store.create_profile("user-1", "a@example.com", first_name="Ali")

        assert profile["preferred_language"] == "en"
        assert profile["is_active"] is True
        assert profile["is_deleted"] is False

        updated = await store.update_profile(
            "user-1",
            preferred_language="ar",
            chat_settings={"send_on_enter": True},
        )
        assert updated["preferred_language"] == "ar"
        assert updated["chat_settings"] == {"send_on_enter": True}
        assert updated["first_name"] == "Ali"

    @pytest.mark.asyncio
    async def test_soft_delete(self, store: ChatStore):
        await store.create_profile("user-1", "a@example.com")

        assert await store.soft_delete_profile("user-1") is True

        profile = await store.get_profile("user-1")
        assert profile["is_deleted"] is True
        assert profile["is_active"] is False
        assert profile["deleted_at"] is not None

    @pytest.mark.asyncio
    async def test_soft_delete_user_conversations(self, store: ChatStore):
        await store.create_conversation("user-1", "One")
        await store.create_conversation("user-1", "Two")
        await store.create_conversation("user-2", "Other")

        assert await store.soft_delete_user_conversations("user-1") == 2
        assert await store.list_conversations("user-1") == []
        assert len(await store.list_conversations("user-2")) == 1


class TestFeedbackAndChangelog:

    @pytest.mark.asyncio
    async def test_create_feedback(self, store: ChatStore):
        feedback = await store.create_feedback("user-1", ["bug"], "Broken button", page_url="/chat")

        assert feedback["status"] == "new"
        assert feedback["categories"] == ["bug"]

    @pytest.mark.asyncio
    async def test_changelog_newest_first(self, store: ChatStore):
        await store.add_changelog_entry("2024-01-01", "Old", "old", "قديم", "قديم")
        await store.add_changelog_entry("2024-06-01", "New", "new", "جديد", "جديد")

        entries = await store.list_changelog()

        assert [e["heading_en"] for e in entries] == ["New", "Old"]
