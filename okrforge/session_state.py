"""
Session Context Persistence
===========================

A coaching session's state is one SessionContext value: the checkpoint
tracker, altitude tracker, question state, habit tracker, user context and
neural readiness for that session. The decision core never stores it; the
caller loads a context, runs a turn against it and saves the snapshot it
gets back.

Two stores are provided:
- SessionContextStore: one JSON file per session under .okrforge/sessions/
- DatabaseContextStore: async SQLAlchemy store backed by .okrforge/coach.db

Usage:
    from okrforge.session_state import SessionContext, SessionContextStore

    store = SessionContextStore(project_dir)
    context = store.load("session-1") or SessionContext.create("session-1")
    ...
    store.save(context)
"""

import json
import os
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from okrforge.altitude import AltitudeTracker, ObjectiveScope, create_altitude_manager
from okrforge.checkpoints import (
    CheckpointProgressTracker,
    ConversationPhase,
    create_checkpoint_manager,
)
from okrforge.context import UserContext
from okrforge.db.connection import get_session_maker
from okrforge.db.models import SessionContextRecord
from okrforge.habits import HabitTracker
from okrforge.neural import NeuralReadinessState
from okrforge.output import print_info, print_warning
from okrforge.questions import QuestionState


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class SessionContext:
    """Everything the decision core needs to know about one session."""
    session_id: str
    phase: ConversationPhase
    checkpoint_tracker: CheckpointProgressTracker
    question_state: QuestionState = field(default_factory=QuestionState)
    altitude_tracker: Optional[AltitudeTracker] = None
    habit_tracker: Optional[HabitTracker] = None
    user_context: UserContext = field(default_factory=UserContext)
    neural_state: NeuralReadinessState = field(default_factory=NeuralReadinessState)
    # Reframing attempts so far, keyed by anti-pattern id
    reframing_attempts: dict[str, int] = field(default_factory=dict)
    updated_at: str = field(default_factory=_now)

    def __post_init__(self):
        if self.habit_tracker is None:
            self.habit_tracker = HabitTracker(session_id=self.session_id)

    @classmethod
    def create(
        cls,
        session_id: str,
        phase: ConversationPhase = ConversationPhase.DISCOVERY,
        user_context: Optional[UserContext] = None,
        initial_scope: Optional[ObjectiveScope] = None,
    ) -> "SessionContext":
        """
        Start a fresh session context.

        The altitude tracker is only created when an initial scope is known.
        """
        user_context = user_context or UserContext()
        altitude_tracker = None
        if initial_scope is not None:
            altitude_tracker = create_altitude_manager().initialize(initial_scope, user_context.function)
        return cls(
            session_id=session_id,
            phase=phase,
            checkpoint_tracker=create_checkpoint_manager().initialize(session_id, phase),
            altitude_tracker=altitude_tracker,
            user_context=user_context,
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "session_id": self.session_id,
            "phase": self.phase.value,
            "checkpoint_tracker": self.checkpoint_tracker.to_dict(),
            "question_state": self.question_state.to_dict(),
            "altitude_tracker": self.altitude_tracker.to_dict() if self.altitude_tracker else None,
            "habit_tracker": self.habit_tracker.to_dict(),
            "user_context": self.user_context.to_dict(),
            "neural_state": self.neural_state.to_dict(),
            "reframing_attempts": dict(self.reframing_attempts),
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SessionContext":
        """Create SessionContext from dictionary, filling defaults for missing parts."""
        session_id = data["session_id"]
        phase = ConversationPhase(data.get("phase", ConversationPhase.DISCOVERY.value))

        tracker_data = data.get("checkpoint_tracker")
        if tracker_data:
            checkpoint_tracker = CheckpointProgressTracker.from_dict(tracker_data)
        else:
            checkpoint_tracker = create_checkpoint_manager().initialize(session_id, phase)

        altitude_data = data.get("altitude_tracker")
        habit_data = data.get("habit_tracker")
        return cls(
            session_id=session_id,
            phase=phase,
            checkpoint_tracker=checkpoint_tracker,
            question_state=QuestionState.from_dict(data.get("question_state")),
            altitude_tracker=AltitudeTracker.from_dict(altitude_data) if altitude_data else None,
            habit_tracker=HabitTracker.from_dict(habit_data) if habit_data else None,
            user_context=UserContext.from_dict(data.get("user_context")),
            neural_state=NeuralReadinessState.from_dict(data.get("neural_state")),
            reframing_attempts=dict(data.get("reframing_attempts", {})),
            updated_at=data.get("updated_at") or _now(),
        )


# =============================================================================
# JSON File Store
# =============================================================================

def _safe_name(session_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", session_id)


class SessionContextStore:
    """
    Stores session contexts as JSON files in the .okrforge directory.

    Writes go to a temporary file that replaces the target, so a reader
    never sees a half-written snapshot.
    """

    def __init__(self, project_dir: Path, state_dir: str = ".okrforge"):
        """
        Initialize the session context store.

        Args:
            project_dir: Project root directory
            state_dir: Directory (relative to project_dir) holding coach state
        """
        self.project_dir = Path(project_dir)
        self.sessions_dir = self.project_dir / state_dir / "sessions"
        self.sessions_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, session_id: str) -> Path:
        return self.sessions_dir / f"{_safe_name(session_id)}.json"

    def save(self, context: SessionContext) -> bool:
        """
        Save a complete session context snapshot.

        Returns:
            True if the snapshot was written
        """
        context.updated_at = _now()
        target = self.path_for(context.session_id)
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.sessions_dir, suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(context.to_dict(), f, indent=2, default=str)
                os.replace(tmp_name, target)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.unlink(tmp_name)
                raise
        except (OSError, TypeError, ValueError) as e:
            print_warning(f"Could not save session context {context.session_id}: {e}")
            return False
        return True

    def load(self, session_id: str) -> Optional[SessionContext]:
        """
        Load a session context.

        Returns:
            SessionContext if the file exists and is valid, None otherwise
        """
        path = self.path_for(session_id)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
            return SessionContext.from_dict(data)
        except json.JSONDecodeError as e:
            print_warning(f"Corrupted session context file {path.name}: {e}")
            return None
        except (OSError, KeyError, TypeError, ValueError) as e:
            print_warning(f"Could not load session context {session_id}: {e}")
            return None

    def clear(self, session_id: str) -> None:
        """Delete a stored session context, if any."""
        path = self.path_for(session_id)
        try:
            if path.exists():
                path.unlink()
                print_info(f"Session context {session_id} cleared")
        except OSError as e:
            print_warning(f"Could not clear session context {session_id}: {e}")

    def list_sessions(self) -> list[str]:
        return sorted(p.stem for p in self.sessions_dir.glob("*.json"))


# =============================================================================
# Database Store
# =============================================================================

class DatabaseContextStore:
    """
    Async store keeping one SessionContextRecord row per session.

    Database errors propagate to the caller; a failed save must fail the
    turn rather than leave a stale snapshot behind silently.
    """

    def __init__(self, session_maker: Optional[async_sessionmaker[AsyncSession]] = None):
        self._session_maker = session_maker

    @property
    def session_maker(self) -> async_sessionmaker[AsyncSession]:
        if self._session_maker is None:
            self._session_maker = get_session_maker()
        return self._session_maker

    async def load(self, session_id: str) -> Optional[SessionContext]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(SessionContextRecord).where(SessionContextRecord.session_id == session_id)
            )
            record = result.scalar_one_or_none()
            if record is None:
                return None
            return SessionContext.from_dict(record.payload)

    async def save(self, context: SessionContext) -> None:
        context.updated_at = _now()
        payload = context.to_dict()
        async with self.session_maker() as session:
            result = await session.execute(
                select(SessionContextRecord).where(SessionContextRecord.session_id == context.session_id)
            )
            record = result.scalar_one_or_none()
            if record is None:
                session.add(SessionContextRecord(
                    session_id=context.session_id,
                    phase=context.phase.value,
                    payload=payload,
                ))
            else:
                record.phase = context.phase.value
                record.payload = payload
            await session.commit()

    async def delete(self, session_id: str) -> None:
        async with self.session_maker() as session:
            await session.execute(
                delete(SessionContextRecord).where(SessionContextRecord.session_id == session_id)
            )
            await session.commit()

    async def list_sessions(self) -> list[str]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(SessionContextRecord.session_id).order_by(SessionContextRecord.session_id)
            )
            return list(result.scalars().all())
