#  Map Vault - Chat History Service Tests
#
#  Depends on: mapvault/services/chat_history.py
#  Used by:    pytest

import pytest

from mapvault.exceptions import NotFoundError


@pytest.fixture
async def two_users(auth_service):
    alice = await auth_service.register("alice@example.com", "testpass123")
    bob = await auth_service.register("bob@example.com", "testpass123")
    return alice["id"], bob["id"]


class TestChatHistory:
    async def test_record_and_list_newest_first(self, chat_history, two_users):
        alice, _ = two_users
        first = await chat_history.record(alice, "Who won at Verdun?", "Neither side, decisively.")
        second = await chat_history.record(alice, "When did the war end?", "11 November 1918.")

        entries = await chat_history.list_for_user(alice)
        assert [e["id"] for e in entries] == [second["id"], first["id"]]
        assert entries[1]["question"] == "Who won at Verdun?"
        assert set(entries[0]) == {"id", "question", "answer", "created_at"}

    async def test_list_only_shows_own_entries(self, chat_history, two_users):
        alice, bob = two_users
        await chat_history.record(alice, "q1", "a1")
        await chat_history.record(bob, "q2", "a2")

        assert [e["question"] for e in await chat_history.list_for_user(alice)] == ["q1"]
        assert [e["question"] for e in await chat_history.list_for_user(bob)] == ["q2"]

    async def test_paging(self, chat_history, two_users):
        alice, _ = two_users
        for i in range(5):
            await chat_history.record(alice, f"q{i}", "a")
        page = await chat_history.list_for_user(alice, limit=2, offset=1)
        assert [e["question"] for e in page] == ["q3", "q2"]

    async def test_delete_own_entry(self, chat_history, two_users):
        alice, _ = two_users
        entry = await chat_history.record(alice, "q", "a")
        await chat_history.delete(alice, entry["id"])
        assert await chat_history.list_for_user(alice) == []

    async def test_cannot_delete_other_users_entry(self, chat_history, two_users):
        alice, bob = two_users
        entry = await chat_history.record(alice, "q", "a")

        with pytest.raises(NotFoundError):
            await chat_history.delete(bob, entry["id"])
        with pytest.raises(NotFoundError):
            await chat_history.get(bob, entry["id"])
        assert len(await chat_history.list_for_user(alice)) == 1

    async def test_delete_missing(self, chat_history, two_users):
        alice, _ = two_users
        with pytest.raises(NotFoundError):
            await chat_history.delete(alice, "missing")

    async def test_entries_go_with_their_user(self, chat_history, two_users, tmp_db):
        alice, _ = two_users
        await chat_history.record(alice, "q", "a")
        await tmp_db.execute_write("DELETE FROM users WHERE id = ?", (alice,))
        assert await chat_history.list_for_user(alice) == []
