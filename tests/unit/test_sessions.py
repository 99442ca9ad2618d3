"""Unit tests for the session repository."""

from datetime import UTC, datetime

import pytest
import pytest_check as check

from ollama_chat.errors import PreconditionError, SessionNotFoundError
from ollama_chat.models.schemas import Message, Role
from ollama_chat.storage.sessions import SessionRepository, derive_title, preview
from ollama_chat.storage.store import SESSIONS_KEY, MemoryStore


@pytest.fixture
def repo(store: MemoryStore) -> SessionRepository:
    return SessionRepository(store)


class TestDeriveTitle:
    def test_long_message_is_truncated(self) -> None:
        """65 characters become the first 50 plus an ellipsis."""
        text = "x" * 40 + "y" * 25

        assert derive_title(text) == "x" * 40 + "y" * 10 + "..."

    def test_short_message_is_unchanged(self) -> None:
        assert derive_title("Hi, there!") == "Hi, there!"

    def test_exactly_fifty_is_unchanged(self) -> None:
        assert derive_title("a" * 50) == "a" * 50


class TestLifecycle:
    def test_create_sets_defaults(self, repo: SessionRepository) -> None:
        session = repo.create("llama3")

        check.equal(session.title, "New Chat")
        check.equal(session.model, "llama3")
        check.equal(session.messages, [])
        check.equal(session.system_prompt, "")
        check.is_(repo.get(session.id), session)

    def test_ids_are_unique(self, repo: SessionRepository) -> None:
        ids = {repo.create().id for _ in range(20)}

        assert len(ids) == 20

    def test_list_orders_by_updated_desc(self, repo: SessionRepository) -> None:
        older, newer = repo.create(), repo.create()
        older.updated_at = datetime(2024, 1, 1, tzinfo=UTC)
        newer.updated_at = datetime(2024, 6, 1, tzinfo=UTC)
        check.equal([s.id for s in repo.list()], [newer.id, older.id])

        repo.rename(older.id, "Bumped")

        check.equal(repo.list()[0].id, older.id)

    def test_delete_active_reports_true(self, repo: SessionRepository) -> None:
        session = repo.create()
        repo.select(session.id)

        assert repo.delete(session.id) is True
        assert repo.active_id is None
        assert repo.get(session.id) is None

    def test_delete_inactive_reports_false(self, repo: SessionRepository) -> None:
        active, other = repo.create(), repo.create()
        repo.select(active.id)

        assert repo.delete(other.id) is False
        assert repo.active_id == active.id

    def test_operations_on_absent_id_raise(self, repo: SessionRepository) -> None:
        with pytest.raises(SessionNotFoundError):
            repo.rename("missing", "x")
        with pytest.raises(SessionNotFoundError):
            repo.delete("missing")
        with pytest.raises(SessionNotFoundError):
            repo.append_message("missing", Message(role=Role.USER, content="hi"))
        assert repo.get("missing") is None


class TestMutations:
    def test_mutation_refreshes_updated_at(self, repo: SessionRepository) -> None:
        session = repo.create()
        session.updated_at = datetime(2020, 1, 1, tzinfo=UTC)

        repo.set_system_prompt(session.id, "Be brief.")

        assert session.updated_at > datetime(2020, 1, 1, tzinfo=UTC)

    def test_append_to_message_extends_assistant_reply(self, repo: SessionRepository) -> None:
        session = repo.create()
        repo.append_message(session.id, Message(role=Role.ASSISTANT))

        repo.append_to_message(session.id, "Hel")
        message = repo.append_to_message(session.id, "lo")

        assert message.content == "Hello"

    def test_append_to_message_requires_assistant_tail(self, repo: SessionRepository) -> None:
        session = repo.create()
        repo.append_message(session.id, Message(role=Role.USER, content="hi"))

        with pytest.raises(PreconditionError):
            repo.append_to_message(session.id, "oops")

    def test_clear_messages(self, repo: SessionRepository) -> None:
        session = repo.create()
        repo.append_message(session.id, Message(role=Role.USER, content="hi"))

        repo.clear_messages(session.id)

        assert session.messages == []

    def test_preview(self, repo: SessionRepository) -> None:
        session = repo.create()
        check.equal(preview(session), "No messages yet")

        repo.append_message(session.id, Message(role=Role.USER, content="z" * 61))

        check.equal(preview(session), "z" * 60 + "...")


class TestPersistence:
    def test_every_mutation_is_written_through(self, store: MemoryStore) -> None:
        repo = SessionRepository(store)
        session = repo.create("llava")
        repo.append_message(
            session.id, Message(role=Role.USER, content="look", images=["aW1n"])
        )

        reloaded = SessionRepository(store).get(session.id)

        assert reloaded is not None
        check.equal(reloaded.model, "llava")
        check.equal(reloaded.messages[0].content, "look")
        check.equal(reloaded.messages[0].images, ["aW1n"])

    def test_records_use_camel_case(self, store: MemoryStore) -> None:
        repo = SessionRepository(store)
        session = repo.create()
        repo.append_message(
            session.id, Message(role=Role.ASSISTANT, content="err", is_error=True)
        )

        record = store.load(SESSIONS_KEY)[0]

        check.is_in("systemPrompt", record)
        check.is_in("updatedAt", record)
        check.equal(record["messages"][0]["isError"], True)
        check.is_not_in("images", record["messages"][0])

    def test_loads_legacy_pairs_and_skips_corrupt(self) -> None:
        store = MemoryStore(
            {
                SESSIONS_KEY: [
                    [
                        "1700000000000",
                        {
                            "id": "1700000000000",
                            "title": "Old chat",
                            "model": "llama3",
                            "messages": [
                                {
                                    "role": "user",
                                    "content": "hi",
                                    "timestamp": "2024-01-01T10:00:00.000Z",
                                }
                            ],
                            "systemPrompt": "",
                            "createdAt": "2024-01-01T10:00:00.000Z",
                            "updatedAt": "2024-01-01T10:00:00.000Z",
                        },
                    ],
                    {"title": "no id"},
                ]
            }
        )

        repo = SessionRepository(store)

        assert len(repo) == 1
        assert repo.get("1700000000000").title == "Old chat"
