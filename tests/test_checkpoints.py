"""
Tests for Checkpoint Progress Tracking
======================================

Tests for okrforge/checkpoints.py
"""

import pytest

from okrforge.checkpoints import (
    BacktrackReason,
    CHECKPOINT_CATALOGUE,
    CheckpointManager,
    CheckpointProgressTracker,
    ConversationPhase,
    create_checkpoint_manager,
    get_checkpoint_definition,
    get_checkpoints_for_phase,
)
from okrforge.neural import NeuralReadinessState, ScarfLevel


CONTEXT_MESSAGE = "I'm an engineering manager with a team of 8 engineers at a fintech startup"


@pytest.fixture
def manager():
    return create_checkpoint_manager()


@pytest.fixture
def tracker(manager):
    return manager.initialize("session-1", ConversationPhase.DISCOVERY)


def _complete(manager, tracker, *checkpoint_ids):
    for checkpoint_id in checkpoint_ids:
        manager.complete_checkpoint(tracker, checkpoint_id, 1.0, ["test"])


# =============================================================================
# Catalogue Tests
# =============================================================================

class TestCatalogue:
    """Tests for the static checkpoint catalogue."""

    def test_phase_sizes(self):
        """Test each phase has its fixed number of checkpoints."""
        assert len(get_checkpoints_for_phase(ConversationPhase.DISCOVERY)) == 5
        assert len(get_checkpoints_for_phase(ConversationPhase.REFINEMENT)) == 4
        assert len(get_checkpoints_for_phase(ConversationPhase.KR_DISCOVERY)) == 5
        assert len(get_checkpoints_for_phase(ConversationPhase.VALIDATION)) == 3
        assert get_checkpoints_for_phase(ConversationPhase.COMPLETED) == []

    def test_sequence_order(self):
        """Test checkpoints come back in sequence order."""
        orders = [d.sequence_order for d in get_checkpoints_for_phase(ConversationPhase.DISCOVERY)]
        assert orders == [1, 2, 3, 4, 5]

    def test_ids_unique(self):
        """Test checkpoint ids are unique across phases."""
        ids = [d.id for d in CHECKPOINT_CATALOGUE]
        assert len(ids) == len(set(ids))

    def test_lookup(self):
        """Test definition lookup by id."""
        definition = get_checkpoint_definition("discovery_context")
        assert definition.name == "Context Gathered"
        assert definition.completion_threshold == 2
        assert get_checkpoint_definition("nope") is None


# =============================================================================
# Initialization Tests
# =============================================================================

class TestInitialize:
    """Tests for CheckpointManager.initialize."""

    @pytest.mark.parametrize("phase,total", [
        (ConversationPhase.DISCOVERY, 5),
        (ConversationPhase.REFINEMENT, 4),
        (ConversationPhase.KR_DISCOVERY, 5),
        (ConversationPhase.VALIDATION, 3),
    ])
    def test_initial_counts(self, manager, phase, total):
        """Test a fresh tracker has all checkpoints incomplete."""
        tracker = manager.initialize("s", phase)

        assert tracker.total_checkpoints == total
        assert tracker.completed_checkpoints == 0
        assert tracker.completion_percentage == 0.0
        assert all(not cp.is_complete for cp in tracker.checkpoints)


# =============================================================================
# Completion Detection Tests
# =============================================================================

class TestDetectCompletion:
    """Tests for CheckpointManager.detect_completion."""

    def test_context_checkpoint(self, manager, tracker):
        """Test role, team and organisation complete the context checkpoint."""
        completed = manager.detect_completion(CONTEXT_MESSAGE, tracker)

        assert [cp.id for cp in completed] == ["discovery_context"]
        checkpoint = completed[0]
        assert checkpoint.is_complete
        assert checkpoint.completion_confidence == pytest.approx(1.0)
        assert "Role mentioned" in checkpoint.evidence_collected
        assert tracker.completed_checkpoints == 1
        assert tracker.completion_percentage == pytest.approx(20.0)
        assert tracker.current_streak == 1

    def test_at_most_one_per_message(self, manager, tracker):
        """Test a message matching several checkpoints completes only one."""
        message = (
            f"{CONTEXT_MESSAGE}. Our biggest challenge is slow onboarding because "
            "it affects retention, currently 3 weeks."
        )
        completed = manager.detect_completion(message, tracker)

        assert len(completed) == 1
        assert completed[0].id == "discovery_context"
        assert tracker.completed_checkpoints == 1

    def test_suboptimal_state_lowers_confidence(self, manager, tracker):
        """Test confidence drops when the user is not in the optimal state."""
        completed = manager.detect_completion("The problem is important", tracker)

        assert [cp.id for cp in completed] == ["discovery_challenge"]
        # 2 of 3 criteria, outside the reward state
        assert completed[0].completion_confidence == pytest.approx(2 / 3 * 0.8)

    def test_optimal_state_keeps_confidence(self, manager, tracker):
        """Test the optimal brain state keeps the raw confidence."""
        reward = NeuralReadinessState.from_scarf({
            "status": ScarfLevel.ELEVATED,
            "certainty": ScarfLevel.ELEVATED,
            "autonomy": ScarfLevel.ELEVATED,
        })
        completed = manager.detect_completion("The problem is important", tracker, reward)

        assert completed[0].completion_confidence == pytest.approx(2 / 3)

    def test_below_threshold(self, manager, tracker):
        """Test a single matching criterion is not enough."""
        assert manager.detect_completion("we have a problem", tracker) == []
        assert tracker.completed_checkpoints == 0

    def test_empty_message(self, manager, tracker):
        """Test empty messages complete nothing."""
        assert manager.detect_completion("", tracker) == []
        assert manager.detect_completion("   ", tracker) == []

    def test_skips_completed_checkpoints(self, manager, tracker):
        """Test an already complete checkpoint is not completed twice."""
        manager.detect_completion(CONTEXT_MESSAGE, tracker)
        assert manager.detect_completion(CONTEXT_MESSAGE, tracker) == []
        assert tracker.completed_checkpoints == 1


class TestCompleteCheckpoint:
    """Tests for CheckpointManager.complete_checkpoint."""

    def test_idempotent(self, manager, tracker):
        """Test completing twice only counts once."""
        first = manager.complete_checkpoint(tracker, "discovery_outcome", 0.9, ["inferred"])
        second = manager.complete_checkpoint(tracker, "discovery_outcome", 0.9, ["inferred"])

        assert first is not None
        assert second is None
        assert tracker.completed_checkpoints == 1

    def test_unknown_checkpoint(self, manager, tracker):
        """Test an unknown id is ignored."""
        assert manager.complete_checkpoint(tracker, "refinement_draft", 1.0, []) is None
        assert tracker.completed_checkpoints == 0

    def test_streaks(self, manager, tracker):
        """Test consecutive completions build a streak."""
        _complete(manager, tracker, "discovery_context", "discovery_challenge", "discovery_outcome")

        assert tracker.current_streak == 3
        assert tracker.longest_streak == 3
        assert "🔥 3-checkpoint streak!" in manager.get_progress_summary(tracker)

    def test_phase_complete(self, manager, tracker):
        """Test the phase is complete once every checkpoint is."""
        assert not manager.is_phase_complete(tracker)
        _complete(manager, tracker, *[cp.id for cp in tracker.checkpoints])

        assert manager.is_phase_complete(tracker)
        assert manager.current_checkpoint(tracker) is None
        assert tracker.completion_percentage == pytest.approx(100.0)


# =============================================================================
# Backtracking Tests
# =============================================================================

class TestBacktracking:
    """Tests for CheckpointManager.handle_backtracking."""

    def test_backtrack_unmarks_and_resets_streak(self, manager, tracker):
        """Test backtracking reopens the checkpoint being left."""
        _complete(manager, tracker, "discovery_context", "discovery_challenge")

        message = manager.handle_backtracking(
            tracker, "discovery_challenge", "discovery_context", BacktrackReason.NEW_INSIGHT
        )

        assert message is not None
        assert message.startswith("💡 Great insight!")
        assert "Would you like to revisit this, or should we continue forward?" in message
        assert tracker.completed_checkpoints == 1
        assert not tracker.get("discovery_challenge").is_complete
        assert tracker.get("discovery_context").is_complete
        assert tracker.current_streak == 0
        assert tracker.longest_streak == 2
        assert tracker.backtracking_count == 1
        assert tracker.backtracking_history[0].reason == "new_insight"

    def test_backtrack_from_incomplete(self, manager, tracker):
        """Test backtracking from an incomplete checkpoint changes nothing."""
        _complete(manager, tracker, "discovery_context")

        result = manager.handle_backtracking(
            tracker, "discovery_challenge", "discovery_context", BacktrackReason.MISSED_DETAIL
        )

        assert result is None
        assert tracker.completed_checkpoints == 1
        assert tracker.current_streak == 1
        assert tracker.backtracking_count == 0

    def test_backtrack_unknown_ids(self, manager, tracker):
        """Test unknown checkpoint ids return None."""
        assert manager.handle_backtracking(tracker, "nope", "discovery_context", "new_insight") is None
        assert manager.handle_backtracking(tracker, "discovery_context", "nope", "new_insight") is None

    def test_backtrack_string_reason(self, manager, tracker):
        """Test free-form reasons get the default reframe."""
        _complete(manager, tracker, "discovery_context")
        message = manager.handle_backtracking(
            tracker, "discovery_context", "discovery_context", "changed my mind"
        )
        assert message.startswith("💡 This reflection will strengthen your final OKR.")

    def test_backtrack_under_threat(self, manager, tracker):
        """Test a threatened user gets extra reassurance."""
        _complete(manager, tracker, "discovery_context", "discovery_challenge")
        threat = NeuralReadinessState.from_scarf({
            "certainty": ScarfLevel.THREATENED,
            "autonomy": ScarfLevel.THREATENED,
        })

        message = manager.handle_backtracking(
            tracker, "discovery_challenge", "discovery_context", BacktrackReason.SCOPE_CHANGE, threat
        )

        assert "There's no rush here." in message


# =============================================================================
# Phase Transition and Rendering Tests
# =============================================================================

class TestTransition:
    """Tests for CheckpointManager.transition_to_phase."""

    def test_fresh_checkpoint_set(self, manager, tracker):
        """Test the new phase starts with zero completed checkpoints."""
        _complete(manager, tracker, "discovery_context", "discovery_challenge")

        refined = manager.transition_to_phase(tracker, ConversationPhase.REFINEMENT)

        assert refined.current_phase == ConversationPhase.REFINEMENT
        assert refined.session_id == "session-1"
        assert refined.total_checkpoints == 4
        assert refined.completed_checkpoints == 0
        assert refined.started_at == tracker.started_at
        assert refined.longest_streak == 2
        # Original tracker untouched
        assert tracker.completed_checkpoints == 2


class TestRendering:
    """Tests for progress visualisation and summaries."""

    def test_progress_visualization(self, manager, tracker):
        """Test the progress bar format."""
        assert manager.progress_visualization(tracker) == "Discovery: ▒▒▒▒▒ (0/5)"
        _complete(manager, tracker, "discovery_context")
        assert manager.progress_visualization(tracker) == "Discovery: ▓▒▒▒▒ (1/5)"

    def test_celebration(self, manager, tracker):
        """Test celebration text includes the message, progress and next step."""
        checkpoint = manager.complete_checkpoint(tracker, "discovery_context", 1.0, [])
        text = manager.generate_celebration(checkpoint, tracker)

        assert text.startswith("✅ Great! I understand your context.")
        assert "(1/5)" in text
        assert text.endswith("Next: Let's explore what challenge you're facing.")
        assert "streak" not in text

    def test_progress_summary(self, manager, tracker):
        """Test the summary names the phase and current checkpoint."""
        _complete(manager, tracker, "discovery_context")
        summary = manager.get_progress_summary(tracker)

        assert summary.startswith("**DISCOVERY** Progress: 20%")
        assert "📍 Current: Challenge Identified" in summary
        assert "1/5 checkpoints complete" in summary


class TestSerialization:
    """Tests for tracker serialization."""

    def test_roundtrip(self, manager, tracker):
        """Test a tracker survives to_dict/from_dict."""
        _complete(manager, tracker, "discovery_context", "discovery_challenge")
        manager.handle_backtracking(
            tracker, "discovery_challenge", "discovery_context", BacktrackReason.USER_REQUEST
        )

        restored = CheckpointProgressTracker.from_dict(tracker.to_dict())

        assert restored.completed_checkpoints == 1
        assert restored.backtracking_count == 1
        assert restored.backtracking_history[0].to_checkpoint == "discovery_context"
        assert restored.current_phase == ConversationPhase.DISCOVERY

    def test_counts_rederived_on_load(self, manager, tracker):
        """Test stored counts are re-derived from checkpoint flags."""
        _complete(manager, tracker, "discovery_context")
        data = tracker.to_dict()
        data["completed_checkpoints"] = 4
        data["completion_percentage"] = 80.0

        restored = CheckpointProgressTracker.from_dict(data)

        assert restored.completed_checkpoints == 1
        assert restored.completion_percentage == pytest.approx(20.0)
