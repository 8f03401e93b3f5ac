"""Tests for eduassist.client.persistence.PersistenceCoordinator."""

import asyncio

import pytest

from eduassist.client.accumulator import ChatMessage
from eduassist.client.persistence import PersistenceCoordinator
from eduassist.core.types import ContextUsed, Role
from eduassist.errors import PersistenceError
from eduassist.storage.conversation_repo import ConversationRepository

from .conftest import FakeStore


def _user(content="Điểm Toán của An?", id="u1"):
    return ChatMessage(id=id, role=Role.USER, content=content)


def _assistant(content="An được 8.5", id="a1"):
    return ChatMessage(
        id=id,
        role=Role.ASSISTANT,
        content=content,
        context_used=ContextUsed(students_count=1, grades_count=2),
        function_calls=1,
        prompt_strength=0.5333,
        finalized=True,
    )


class TestEnsureConversation:

    async def test_concurrent_callers_share_one_creation(self, fake_store):
        fake_store.create_gate = asyncio.Event()
        coordinator = PersistenceCoordinator(fake_store, "parent-1")

        waiters = [asyncio.create_task(coordinator.ensure_conversation()) for _ in range(5)]
        await asyncio.sleep(0)
        fake_store.create_gate.set()
        ids = await asyncio.gather(*waiters)

        assert len(set(ids)) == 1
        assert fake_store.create_attempts == 1

    async def test_id_is_reused_afterwards(self, fake_store):
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        first = await coordinator.ensure_conversation()
        assert await coordinator.ensure_conversation() == first
        assert coordinator.conversation_id == first
        assert fake_store.create_attempts == 1

    async def test_failed_creation_can_be_retried(self):
        store = FakeStore(fail_creates=1)
        coordinator = PersistenceCoordinator(store, "parent-1")
        with pytest.raises(PersistenceError):
            await coordinator.ensure_conversation()
        assert coordinator.conversation_id is None
        conversation_id = await coordinator.ensure_conversation()
        assert conversation_id in store.conversations
        assert store.create_attempts == 2

    async def test_new_conversation_creates_again(self, fake_store):
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        first = await coordinator.ensure_conversation()
        coordinator.start_new_conversation()
        assert await coordinator.ensure_conversation() != first

    async def test_switch_during_creation_is_not_overwritten(self, fake_store):
        fake_store.create_gate = asyncio.Event()
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        stale = asyncio.create_task(coordinator.ensure_conversation())
        await asyncio.sleep(0)

        coordinator.start_new_conversation()
        fake_store.create_gate.set()
        stale_id = await stale
        fresh_id = await coordinator.ensure_conversation()

        assert fresh_id != stale_id
        assert coordinator.conversation_id == fresh_id


class TestSaveMessage:

    async def test_save_returns_task_with_outcome(self, fake_store):
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        task = coordinator.save_message(_user())
        assert isinstance(task, asyncio.Task)
        outcome = await task
        assert outcome.ok
        assert outcome.record_id == "u1"
        assert fake_store.messages[0].conversation_id == outcome.conversation_id

    async def test_assistant_metadata_is_saved(self, fake_store):
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        await coordinator.save_message(_assistant())
        record = fake_store.messages[0]
        assert record.role == "assistant"
        assert record.context_used == {
            "studentsCount": 1,
            "feedbackCount": 0,
            "gradesCount": 2,
            "violationsCount": 0,
        }
        assert record.function_calls == 1
        assert record.prompt_strength == 0.5333

    async def test_failure_is_reported_not_raised(self):
        store = FakeStore(fail_saves=True)
        coordinator = PersistenceCoordinator(store, "parent-1")
        outcome = await coordinator.save_message(_user())
        assert not outcome.ok
        assert outcome.error == "disk full"

    async def test_failed_conversation_creation_fails_the_save(self):
        store = FakeStore(fail_creates=1)
        coordinator = PersistenceCoordinator(store, "parent-1")
        outcome = await coordinator.save_message(_user())
        assert not outcome.ok
        assert (await coordinator.save_message(_assistant())).ok

    async def test_saves_reach_store_in_request_order(self, fake_store):
        fake_store.save_delays["chậm"] = 0.05
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        coordinator.save_message(_user("chậm"))
        coordinator.save_message(_assistant("nhanh"))
        outcomes = await coordinator.drain()
        assert all(o.ok for o in outcomes)
        assert [m.content for m in fake_store.messages] == ["chậm", "nhanh"]

    async def test_pending_and_drain(self, fake_store):
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        coordinator.save_message(_user())
        assert len(coordinator.pending()) == 1
        await coordinator.drain()
        assert coordinator.pending() == []
        assert await coordinator.drain() == []


class TestConversationSwitching:

    async def test_open_conversation_loads_messages(self, fake_store):
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        await coordinator.save_message(_user())
        await coordinator.save_message(_assistant())
        conversation_id = coordinator.conversation_id

        other = PersistenceCoordinator(fake_store, "parent-1")
        messages = await other.open_conversation(conversation_id)
        assert [m.id for m in messages] == ["u1", "a1"]
        assert messages[1].context_used == ContextUsed(students_count=1, grades_count=2)
        assert all(m.finalized for m in messages)
        assert other.conversation_id == conversation_id

    async def test_queued_saves_stay_in_their_conversation(self, fake_store):
        fake_store.save_delays["chậm"] = 0.05
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        user = coordinator.save_message(_user("chậm"))
        answer = coordinator.save_message(_assistant())
        coordinator.start_new_conversation()

        first, second = await asyncio.gather(user, answer)
        assert first.ok and second.ok
        assert first.conversation_id == second.conversation_id
        assert fake_store.create_attempts == 1
        assert coordinator.conversation_id is None

        later = await coordinator.save_message(_user("Câu mới", id="u2"))
        assert later.conversation_id != first.conversation_id
        assert {m.conversation_id for m in fake_store.messages} == {first.conversation_id, later.conversation_id}

    async def test_queued_saves_survive_opening_another_conversation(self, fake_store):
        existing = await fake_store.create_conversation("parent-1", conversation_id="old")
        fake_store.save_delays["chậm"] = 0.05
        coordinator = PersistenceCoordinator(fake_store, "parent-1")
        pending = [coordinator.save_message(_user("chậm")), coordinator.save_message(_assistant())]

        await coordinator.open_conversation(existing.id)
        outcomes = await asyncio.gather(*pending)

        assert all(o.ok for o in outcomes)
        assert {o.conversation_id for o in outcomes} != {existing.id}
        assert len({o.conversation_id for o in outcomes}) == 1
        assert coordinator.conversation_id == existing.id


class TestFeedback:

    async def test_feedback_uses_in_memory_id_even_if_save_failed(self):
        store = FakeStore(fail_saves=True)
        coordinator = PersistenceCoordinator(store, "parent-1")
        answer = _assistant()
        await coordinator.save_message(answer)

        outcome = await coordinator.submit_feedback(answer, "Điểm Toán?", is_helpful=True, rating="good")
        assert outcome.ok
        (feedback,) = store.feedback
        assert feedback.message_id == "a1"
        assert feedback.ai_response == "An được 8.5"
        assert feedback.actor_id == "parent-1"


class TestWithSqliteRepository:

    async def test_full_conversation_is_persisted(self, db):
        repo = ConversationRepository(db)
        coordinator = PersistenceCoordinator(repo, "parent-1")
        coordinator.save_message(_user())
        coordinator.save_message(_assistant())
        await coordinator.drain()

        stored = await repo.get_messages(coordinator.conversation_id)
        assert [(m.role, m.content) for m in stored] == [("user", "Điểm Toán của An?"), ("assistant", "An được 8.5")]
        conversation = await repo.get_conversation(coordinator.conversation_id)
        assert conversation.actor_id == "parent-1"

    async def test_resaving_is_reported_as_duplicate(self, db):
        coordinator = PersistenceCoordinator(ConversationRepository(db), "parent-1")
        message = _user()
        assert (await coordinator.save_message(message)).ok
        outcome = await coordinator.save_message(message)
        assert not outcome.ok
        assert "already exists" in outcome.error
