"""
Tests for Altitude Tracking
===========================

Tests for okrforge/altitude.py
"""

import pytest

from okrforge.altitude import (
    AltitudeTracker,
    AriaPhase,
    DetectionMethod,
    InsightReadiness,
    InterventionTiming,
    ObjectiveScope,
    calculate_drift_magnitude,
    create_altitude_manager,
    detect_insight_readiness,
    is_scope_elevation,
    scope_from_role,
)
from okrforge.context import UserContext
from okrforge.neural import NeuralReadinessState, ScarfLevel


@pytest.fixture
def manager():
    return create_altitude_manager()


@pytest.fixture
def team_tracker(manager):
    return manager.initialize(ObjectiveScope.TEAM, role="Engineering Manager")


def _threat():
    return NeuralReadinessState.from_scarf({
        "certainty": ScarfLevel.THREATENED,
        "autonomy": ScarfLevel.THREATENED,
    })


# =============================================================================
# Scope Classification Tests
# =============================================================================

SCOPE_CASES = [
    ("Become the market leader in our category", ObjectiveScope.STRATEGIC),
    ("Transform our business model", ObjectiveScope.STRATEGIC),
    ("Grow company revenue by 30% through enterprise expansion", ObjectiveScope.STRATEGIC),
    ("Improve cross-functional delivery across the engineering department", ObjectiveScope.DEPARTMENTAL),
    ("Raise department performance across all product squads", ObjectiveScope.DEPARTMENTAL),
    ("Improve my team's deployment frequency", ObjectiveScope.TEAM),
    ("Increase our team velocity by 20%", ObjectiveScope.TEAM),
    ("Drive adoption of the new billing platform among stakeholders", ObjectiveScope.INITIATIVE),
    ("Ensure this initiative reaches 80% rollout", ObjectiveScope.INITIATIVE),
    ("Build authentication microservice", ObjectiveScope.PROJECT),
    ("Implement real-time sync", ObjectiveScope.PROJECT),
    ("Building authentication microservice", ObjectiveScope.PROJECT),
    ("Implementing real-time sync", ObjectiveScope.PROJECT),
    ("Improve delivery across departments", ObjectiveScope.DEPARTMENTAL),
]


class TestInferScope:
    """Tests for keyword scope classification."""

    @pytest.mark.parametrize("text,expected", SCOPE_CASES)
    def test_classification(self, manager, text, expected):
        """Test each example lands at its expected altitude."""
        scope, method = manager.infer_scope(text)
        assert scope == expected
        assert method == DetectionMethod.KEYWORD

    def test_no_scope_words(self, manager):
        """Test text without scope markers yields no scope."""
        scope, _ = manager.infer_scope("Reduce churn")
        assert scope is None

    def test_role_fallback(self, manager):
        """Test the user's function is used when the text is silent."""
        scope, method = manager.infer_scope("Reduce churn", UserContext(function="VP of Sales"))
        assert scope == ObjectiveScope.DEPARTMENTAL
        assert method == DetectionMethod.CONTEXT

    def test_scope_from_role(self):
        """Test job titles map to altitudes."""
        assert scope_from_role("CTO") == ObjectiveScope.STRATEGIC
        assert scope_from_role("Head of Design") == ObjectiveScope.DEPARTMENTAL
        assert scope_from_role("Tech Lead") == ObjectiveScope.TEAM
        assert scope_from_role("Analyst") is None
        assert scope_from_role(None) is None


class TestDriftMagnitude:
    """Tests for calculate_drift_magnitude."""

    def test_no_change(self):
        """Test the same scope has zero magnitude."""
        assert calculate_drift_magnitude(ObjectiveScope.TEAM, ObjectiveScope.TEAM) == 0.0

    def test_one_level(self):
        """Test one level of drift is minor."""
        assert calculate_drift_magnitude(ObjectiveScope.TEAM, ObjectiveScope.DEPARTMENTAL) == pytest.approx(0.2)

    def test_two_levels(self):
        """Test two levels of drift is major."""
        assert calculate_drift_magnitude(ObjectiveScope.TEAM, ObjectiveScope.STRATEGIC) == pytest.approx(0.8)

    def test_capped(self):
        """Test magnitude is capped at 1.0."""
        assert calculate_drift_magnitude(ObjectiveScope.PROJECT, ObjectiveScope.STRATEGIC) == 1.0

    def test_symmetric(self):
        """Test direction does not change magnitude."""
        assert calculate_drift_magnitude(ObjectiveScope.STRATEGIC, ObjectiveScope.TEAM) == pytest.approx(0.8)

    def test_elevation(self):
        """Test elevation means moving toward strategic."""
        assert is_scope_elevation(ObjectiveScope.TEAM, ObjectiveScope.STRATEGIC)
        assert not is_scope_elevation(ObjectiveScope.TEAM, ObjectiveScope.PROJECT)


# =============================================================================
# Drift Detection Tests
# =============================================================================

class TestDetectDrift:
    """Tests for AltitudeManager.detect_drift."""

    def test_upward_drift(self, manager, team_tracker):
        """Test a strategic objective from a team-level session is drift."""
        drift = manager.detect_drift("Become the market leader in our category", team_tracker)

        assert drift.detected
        assert drift.new_scope == ObjectiveScope.STRATEGIC
        assert drift.confidence == pytest.approx(0.9)
        assert drift.magnitude == pytest.approx(0.8)

    def test_same_scope(self, manager, team_tracker):
        """Test an objective at the current altitude is not drift."""
        drift = manager.detect_drift("Improve our team velocity", team_tracker)

        assert not drift.detected
        assert drift.new_scope == ObjectiveScope.TEAM
        assert drift.confidence > 0

    def test_no_scope_and_no_role(self, manager):
        """Test silence about altitude is not drift."""
        tracker = manager.initialize(ObjectiveScope.TEAM)
        drift = manager.detect_drift("Reduce churn", tracker)

        assert not drift.detected
        assert drift.confidence == 0.0
        assert drift.new_scope == ObjectiveScope.TEAM

    def test_detection_does_not_mutate(self, manager, team_tracker):
        """Test detection alone leaves the tracker unchanged."""
        manager.detect_drift("Become the market leader in our category", team_tracker)

        assert team_tracker.current_scope == ObjectiveScope.TEAM
        assert team_tracker.drift_history == []


class TestRecordDriftEvent:
    """Tests for AltitudeManager.record_drift_event."""

    def test_major_drift(self, manager, team_tracker):
        """Test a two-level drift triggers intervention and lowers stability."""
        event = manager.record_drift_event(team_tracker, ObjectiveScope.STRATEGIC, "Become the market leader")

        assert event.from_scope == ObjectiveScope.TEAM
        assert event.to_scope == ObjectiveScope.STRATEGIC
        assert event.triggered_intervention
        assert team_tracker.current_scope == ObjectiveScope.STRATEGIC
        assert team_tracker.last_drift is event
        assert team_tracker.stability_score == pytest.approx(0.84)

    def test_minor_drift(self, manager, team_tracker):
        """Test a one-level drift is recorded without intervention."""
        event = manager.record_drift_event(team_tracker, ObjectiveScope.DEPARTMENTAL, "Raise department output")

        assert not event.triggered_intervention
        assert team_tracker.stability_score == pytest.approx(0.96)

    def test_stability_floor(self, manager):
        """Test stability never drops below 0.3."""
        tracker = manager.initialize(ObjectiveScope.PROJECT)
        for _ in range(3):
            manager.record_drift_event(tracker, ObjectiveScope.STRATEGIC, "up")
            manager.record_drift_event(tracker, ObjectiveScope.PROJECT, "down")

        assert tracker.stability_score == pytest.approx(0.3)
        assert len(tracker.drift_history) == 6


# =============================================================================
# Insight Readiness and Timing Tests
# =============================================================================

class TestInsightReadiness:
    """Tests for detect_insight_readiness."""

    def test_reflective_message(self):
        """Test hesitation and reframing language is picked up."""
        readiness = detect_insight_readiness("Hmm, let me think. Maybe we should focus on retention instead")

        assert readiness.pausing_to_think
        assert readiness.tentative_language
        assert readiness.reframing_attempts
        assert not readiness.open_questioning
        assert readiness.signal_count == 3
        assert readiness.overall_readiness == pytest.approx(0.45)

    def test_flat_message(self):
        """Test a short acknowledgement shows no readiness."""
        readiness = detect_insight_readiness("ok")
        assert readiness.signal_count == 0
        assert readiness.overall_readiness == 0.0

    def test_long_message(self):
        """Test long messages count as pausing for thought."""
        readiness = detect_insight_readiness("word " * 40)
        assert readiness.pauses_for_thinking
        assert readiness.overall_readiness == pytest.approx(0.1)


class TestInterventionTiming:
    """Tests for AltitudeManager.determine_intervention_timing."""

    def test_threat_is_immediate(self, manager):
        """Test a threatened user is addressed at once regardless of drift."""
        timing = manager.determine_intervention_timing(0.0, InsightReadiness(), _threat())
        assert timing == InterventionTiming.IMMEDIATE

    def test_high_drift_low_readiness(self, manager):
        """Test large drift without reflection is corrected immediately."""
        assert manager.determine_intervention_timing(0.8, InsightReadiness()) == InterventionTiming.IMMEDIATE

    def test_high_drift_reflecting(self, manager):
        """Test large drift waits when the user is already reflecting."""
        readiness = InsightReadiness(tentative_language=True, reframing_attempts=True,
                                     pausing_to_think=True, overall_readiness=0.45)
        timing = manager.determine_intervention_timing(0.8, readiness)
        assert timing == InterventionTiming.AFTER_REFLECTION

    def test_moderate_drift_with_signal(self, manager):
        """Test moderate drift waits for reflection when any signal is present."""
        readiness = InsightReadiness(tentative_language=True, overall_readiness=0.15)
        timing = manager.determine_intervention_timing(0.5, readiness)
        assert timing == InterventionTiming.AFTER_REFLECTION

    def test_moderate_drift_without_signal(self, manager):
        """Test moderate drift without signals waits for the next turn."""
        assert manager.determine_intervention_timing(0.5, InsightReadiness()) == InterventionTiming.NEXT_TURN

    def test_minor_drift(self, manager):
        """Test minor drift waits for the next turn."""
        readiness = InsightReadiness(tentative_language=True, overall_readiness=0.15)
        assert manager.determine_intervention_timing(0.2, readiness) == InterventionTiming.NEXT_TURN


# =============================================================================
# Intervention Tests
# =============================================================================

class TestScarfIntervention:
    """Tests for SCARF intervention generation."""

    def test_upward_drift(self, manager, team_tracker):
        """Test an elevation gets an ambition-channelling intervention."""
        event = manager.record_drift_event(team_tracker, ObjectiveScope.STRATEGIC, "market leader")
        intervention = manager.generate_scarf_intervention(event)

        assert intervention.status.acknowledgement == "I appreciate you thinking big with this objective!"
        assert len(intervention.certainty.concrete_next_steps) == 3
        assert "team/manager" in intervention.certainty.concrete_next_steps[0]
        assert intervention.autonomy.option_a
        assert intervention.autonomy.option_b
        assert intervention.autonomy.user_led_discovery
        assert "strategic/C-level" in intervention.fairness.reasoning

    def test_downward_drift(self, manager):
        """Test a descent gets a scope-broadening intervention."""
        tracker = manager.initialize(ObjectiveScope.STRATEGIC)
        event = manager.record_drift_event(tracker, ObjectiveScope.PROJECT, "build the thing")
        intervention = manager.generate_scarf_intervention(event)

        assert "project/individual contributor" in intervention.certainty.predictable_outcome
        assert intervention.fairness.reasoning.startswith("We're adjusting the scope")

    def test_threat_softens_options(self, manager, team_tracker):
        """Test a threatened user is reassured there is no pressure."""
        event = manager.record_drift_event(team_tracker, ObjectiveScope.STRATEGIC, "market leader")
        intervention = manager.generate_scarf_intervention(event, _threat())

        assert intervention.autonomy.option_a.startswith("There's no pressure either way.")

    def test_render(self, manager, team_tracker):
        """Test the rendered text lists the next steps."""
        event = manager.record_drift_event(team_tracker, ObjectiveScope.STRATEGIC, "market leader")
        text = manager.generate_scarf_intervention(event).render()

        assert "1. Identify what your team/manager can directly control" in text
        assert "3. Ensure you can track progress independently" in text


class TestAriaQuestions:
    """Tests for ARIA question generation."""

    def test_phases(self, manager, team_tracker):
        """Test each phase names the right altitudes."""
        event = manager.record_drift_event(team_tracker, ObjectiveScope.STRATEGIC, "market leader")

        awareness = manager.generate_aria_questions(event, AriaPhase.AWARENESS)
        reflection = manager.generate_aria_questions(event, AriaPhase.REFLECTION)
        illumination = manager.generate_aria_questions(event, AriaPhase.ILLUMINATION)

        assert "strategic/C-level" in awareness.tell
        assert len(awareness.ask) == 3
        assert reflection.solution == "What would a team/manager-level version of this impact look like?"
        assert "strategic/C-level" in illumination.tell
        assert "team/manager" in illumination.tell


class TestEffectiveness:
    """Tests for intervention effectiveness tracking."""

    def _with_intervention(self, manager, tracker):
        event = manager.record_drift_event(tracker, ObjectiveScope.STRATEGIC, "market leader")
        readiness = InsightReadiness()
        manager.record_intervention(
            tracker, event, manager.generate_scarf_intervention(event),
            InterventionTiming.IMMEDIATE, readiness,
        )

    def test_no_history(self, manager, team_tracker):
        """Test there is nothing to score without an intervention."""
        assert manager.update_intervention_effectiveness(team_tracker, "positive", "anything") is None

    def test_realigned(self, manager, team_tracker):
        """Test returning to the initial altitude scores 1.0."""
        self._with_intervention(manager, team_tracker)
        score = manager.update_intervention_effectiveness(team_tracker, "neutral", "Improve our team's delivery")

        assert score == 1.0
        assert team_tracker.intervention_history[-1].user_response == "neutral"

    def test_positive_not_realigned(self, manager, team_tracker):
        """Test a positive response that stays elevated scores 0.7."""
        self._with_intervention(manager, team_tracker)
        assert manager.update_intervention_effectiveness(
            team_tracker, "positive", "Become the market leader") == pytest.approx(0.7)

    def test_resistant(self, manager, team_tracker):
        """Test any other response scores 0.3."""
        self._with_intervention(manager, team_tracker)
        assert manager.update_intervention_effectiveness(
            team_tracker, "resistant", "Become the market leader") == pytest.approx(0.3)

    def test_stability_metrics(self, manager, team_tracker):
        """Test metrics summarise drift and intervention history."""
        empty = manager.calculate_stability_metrics(manager.initialize(ObjectiveScope.TEAM))
        assert empty.drift_reduction_rate == 1.0
        assert empty.average_intervention_success == 0.0
        assert empty.scope_consistency == 1.0

        self._with_intervention(manager, team_tracker)
        manager.update_intervention_effectiveness(team_tracker, "neutral", "Improve our team's delivery")
        metrics = manager.calculate_stability_metrics(team_tracker)

        assert metrics.drift_reduction_rate == 1.0
        assert metrics.average_intervention_success == 1.0
        assert metrics.scope_consistency == pytest.approx(0.84)


class TestTrackerSerialization:
    """Tests for AltitudeTracker serialization."""

    def test_roundtrip(self, manager, team_tracker):
        """Test drift and intervention history survive to_dict/from_dict."""
        event = manager.record_drift_event(team_tracker, ObjectiveScope.STRATEGIC, "market leader")
        manager.record_intervention(
            team_tracker, event, manager.generate_scarf_intervention(event),
            InterventionTiming.IMMEDIATE, detect_insight_readiness("maybe"),
        )

        restored = AltitudeTracker.from_dict(team_tracker.to_dict())

        assert restored.current_scope == ObjectiveScope.STRATEGIC
        assert restored.role == "Engineering Manager"
        assert restored.last_drift.drift_magnitude == pytest.approx(0.8)
        assert restored.intervention_history[0].insight_readiness.tentative_language
        assert restored.intervention_history[0].intervention.certainty.concrete_next_steps == (
            team_tracker.intervention_history[0].intervention.certainty.concrete_next_steps
        )
