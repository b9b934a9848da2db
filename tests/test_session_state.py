"""
Tests for Session Context Persistence
=====================================

Tests for okrforge/session_state.py
"""

import json
import tempfile
from pathlib import Path

import pytest

from okrforge.altitude import ObjectiveScope
from okrforge.checkpoints import ConversationPhase, create_checkpoint_manager
from okrforge.context import UserContext
from okrforge.db import close_db, get_session_maker, init_db
from okrforge.habits import HabitManager
from okrforge.questions import QuestionState
from okrforge.session_state import (
    DatabaseContextStore,
    SessionContext,
    SessionContextStore,
)


def _populated_context() -> SessionContext:
    context = SessionContext.create(
        "session-1",
        user_context=UserContext(industry="Technology", function="Engineering Manager"),
        initial_scope=ObjectiveScope.TEAM,
    )
    create_checkpoint_manager().complete_checkpoint(
        context.checkpoint_tracker, "discovery_context", 1.0, ["Role mentioned"]
    )
    context.question_state = QuestionState(
        pending_questions=["How will you measure it?"],
        asked_questions=["What outcome?"],
        current_question="What outcome?",
    )
    HabitManager().record_behavior(context.habit_tracker, "outcome_language")
    context.reframing_attempts["activity_focused"] = 2
    return context


# =============================================================================
# SessionContext Tests
# =============================================================================

class TestSessionContext:
    """Tests for the SessionContext dataclass."""

    def test_create(self):
        """Test a fresh context starts at discovery with every tracker ready."""
        context = SessionContext.create("abc", initial_scope=ObjectiveScope.TEAM)

        assert context.phase == ConversationPhase.DISCOVERY
        assert context.checkpoint_tracker.total_checkpoints == 5
        assert context.altitude_tracker.current_scope == ObjectiveScope.TEAM
        assert context.habit_tracker.session_id == "abc"
        assert context.reframing_attempts == {}

    def test_create_without_scope(self):
        """Test the altitude tracker is only created for a known scope."""
        context = SessionContext.create("abc")
        assert context.altitude_tracker is None

    def test_create_uses_function_as_role(self):
        """Test the user's function is kept as the altitude role."""
        context = SessionContext.create(
            "abc", user_context=UserContext(function="VP Engineering"),
            initial_scope=ObjectiveScope.DEPARTMENTAL,
        )
        assert context.altitude_tracker.role == "VP Engineering"

    def test_roundtrip(self):
        """Test to_dict/from_dict preserves the whole context."""
        context = _populated_context()
        restored = SessionContext.from_dict(json.loads(json.dumps(context.to_dict())))

        assert restored.session_id == "session-1"
        assert restored.checkpoint_tracker.completed_checkpoints == 1
        assert restored.question_state == context.question_state
        assert restored.altitude_tracker.initial_scope == ObjectiveScope.TEAM
        assert restored.habit_tracker.find_pattern("outcome_language").occurrences == 1
        assert restored.user_context == context.user_context
        assert restored.reframing_attempts == {"activity_focused": 2}

    def test_from_minimal_dict(self):
        """Test missing parts are filled with defaults."""
        restored = SessionContext.from_dict({"session_id": "bare", "phase": "refinement"})

        assert restored.phase == ConversationPhase.REFINEMENT
        assert restored.checkpoint_tracker.total_checkpoints == 4
        assert restored.altitude_tracker is None
        assert restored.habit_tracker.session_id == "bare"
        assert restored.question_state == QuestionState()


# =============================================================================
# File Store Tests
# =============================================================================

class TestSessionContextStore:
    """Tests for the JSON file store."""

    def test_save_and_load(self):
        """Test a saved context loads back."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SessionContextStore(Path(tmpdir))
            context = _populated_context()

            assert store.save(context)
            loaded = store.load("session-1")

            assert loaded is not None
            assert loaded.checkpoint_tracker.completed_checkpoints == 1
            assert loaded.question_state.pending_questions == ["How will you measure it?"]
            assert loaded.updated_at == context.updated_at

    def test_file_location(self):
        """Test snapshots live under the state directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SessionContextStore(Path(tmpdir), state_dir=".coach")
            store.save(SessionContext.create("abc"))

            assert (Path(tmpdir) / ".coach" / "sessions" / "abc.json").exists()

    def test_no_temp_files_left(self):
        """Test the atomic write leaves only the snapshot behind."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SessionContextStore(Path(tmpdir))
            store.save(SessionContext.create("abc"))
            store.save(SessionContext.create("abc"))

            files = [p.name for p in store.sessions_dir.iterdir()]
            assert files == ["abc.json"]

    def test_load_missing(self):
        """Test loading an unknown session returns None."""
        with tempfile.TemporaryDirectory() as tmpdir:
            assert SessionContextStore(Path(tmpdir)).load("nope") is None

    def test_load_corrupted(self):
        """Test a corrupted snapshot returns None instead of raising."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SessionContextStore(Path(tmpdir))
            store.path_for("broken").write_text("{not json")

            assert store.load("broken") is None

    def test_unsafe_session_id(self):
        """Test session ids are made safe for file names."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SessionContextStore(Path(tmpdir))
            store.save(SessionContext.create("../escape"))

            assert store.path_for("../escape").parent == store.sessions_dir
            assert store.load("../escape").session_id == "../escape"

    def test_clear_and_list(self):
        """Test listing and clearing stored sessions."""
        with tempfile.TemporaryDirectory() as tmpdir:
            store = SessionContextStore(Path(tmpdir))
            store.save(SessionContext.create("b"))
            store.save(SessionContext.create("a"))

            assert store.list_sessions() == ["a", "b"]
            store.clear("a")
            assert store.list_sessions() == ["b"]
            store.clear("missing")


# =============================================================================
# Database Store Tests
# =============================================================================

class TestDatabaseContextStore:
    """Tests for the async SQLAlchemy store."""

    @pytest.mark.asyncio
    async def test_session_maker_requires_init(self):
        """Test using the database before init_db fails loudly."""
        await close_db()
        with pytest.raises(RuntimeError):
            get_session_maker()

    @pytest.mark.asyncio
    async def test_save_and_load(self):
        """Test a context round-trips through the database."""
        with tempfile.TemporaryDirectory() as tmpdir:
            await init_db(Path(tmpdir))
            try:
                store = DatabaseContextStore()
                await store.save(_populated_context())

                loaded = await store.load("session-1")
                assert loaded is not None
                assert loaded.checkpoint_tracker.completed_checkpoints == 1
                assert loaded.reframing_attempts == {"activity_focused": 2}
                assert await store.load("nope") is None
            finally:
                await close_db()

    @pytest.mark.asyncio
    async def test_save_updates_existing_row(self):
        """Test saving twice updates the stored snapshot."""
        with tempfile.TemporaryDirectory() as tmpdir:
            await init_db(Path(tmpdir))
            try:
                store = DatabaseContextStore()
                context = SessionContext.create("s")
                await store.save(context)

                context.phase = ConversationPhase.REFINEMENT
                context.checkpoint_tracker = create_checkpoint_manager().transition_to_phase(
                    context.checkpoint_tracker, ConversationPhase.REFINEMENT
                )
                await store.save(context)

                loaded = await store.load("s")
                assert loaded.phase == ConversationPhase.REFINEMENT
                assert loaded.checkpoint_tracker.total_checkpoints == 4
                assert await store.list_sessions() == ["s"]
            finally:
                await close_db()

    @pytest.mark.asyncio
    async def test_delete_and_list(self):
        """Test deleting a stored context."""
        with tempfile.TemporaryDirectory() as tmpdir:
            await init_db(Path(tmpdir))
            try:
                store = DatabaseContextStore()
                await store.save(SessionContext.create("b"))
                await store.save(SessionContext.create("a"))

                assert await store.list_sessions() == ["a", "b"]
                await store.delete("a")
                assert await store.list_sessions() == ["b"]
            finally:
                await close_db()

    @pytest.mark.asyncio
    async def test_database_file_location(self):
        """Test the database lives in the state directory."""
        with tempfile.TemporaryDirectory() as tmpdir:
            await init_db(Path(tmpdir))
            await close_db()
            assert (Path(tmpdir) / ".okrforge" / "coach.db").exists()
