"""
Turn Pipeline
=============

Runs the four decision components against one coaching turn:

1. analyze(): a user message goes through anti-pattern detection, altitude
   drift detection, checkpoint completion and habit bookkeeping.
2. deliver(): the assistant text generated from that analysis goes through
   the question flow manager before it is shown.

Both steps work on a deep copy of the session context and return the fully
updated copy. The caller persists that snapshot only once the turn has
completed; an abandoned turn leaves the stored context untouched.

Usage:
    from okrforge.turn import TurnPipeline

    pipeline = TurnPipeline()
    analysis = pipeline.analyze(user_message, context)
    text = generate(analysis)              # language generation, not ours
    delivery = pipeline.deliver(text, analysis.context)
    store.save(delivery.context)
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Optional

from okrforge.altitude import (
    AltitudeManager,
    DriftDetection,
    InsightReadiness,
    InterventionTiming,
    ScarfIntervention,
    ScopeDriftEvent,
    detect_insight_readiness,
)
from okrforge.antipatterns import (
    AntiPatternDetector,
    DetectionResult,
    InterventionType,
    ReframingResult,
    calculate_text_score,
)
from okrforge.checkpoints import CheckpointManager, CheckpointState, ConversationPhase
from okrforge.config import CoachConfig
from okrforge.habits import Habit, HabitManager
from okrforge.questions import QuestionFlowManager
from okrforge.session_state import SessionContext

logger = logging.getLogger(__name__)

# Lexical quality score at which a message counts as outcome-focused
OUTCOME_LANGUAGE_SCORE = 70


@dataclass
class TurnAnalysis:
    """Structured facts about one user message, for response composition."""
    context: SessionContext
    detection: DetectionResult
    reframing: Optional[ReframingResult] = None
    insight_readiness: InsightReadiness = field(default_factory=InsightReadiness)
    drift: Optional[DriftDetection] = None
    drift_event: Optional[ScopeDriftEvent] = None
    intervention_timing: Optional[InterventionTiming] = None
    scarf_intervention: Optional[ScarfIntervention] = None
    completed_checkpoints: list[CheckpointState] = field(default_factory=list)
    celebrations: list[str] = field(default_factory=list)
    habits: list[Habit] = field(default_factory=list)
    ask_next_question: bool = False
    progress_summary: str = ""
    question_summary: str = ""


@dataclass
class TurnDelivery:
    context: SessionContext
    response: str
    has_queued: bool


class TurnPipeline:
    """Composes the decision components for one session turn."""

    def __init__(
        self,
        config: Optional[CoachConfig] = None,
        detector: Optional[AntiPatternDetector] = None,
    ):
        self.config = config or CoachConfig()
        self.detector = detector or AntiPatternDetector(catalogue_path=self.config.catalogue_path)
        self.checkpoints = CheckpointManager()
        self.altitude = AltitudeManager()
        self.questions = QuestionFlowManager(announce_queued=self.config.announce_queued_questions)
        self.habits = HabitManager()

    def analyze(self, message: str, context: SessionContext) -> TurnAnalysis:
        """Run every detector over a user message and return the updated context."""
        ctx = copy.deepcopy(context)
        ctx.question_state = self.questions.record_answer(message, ctx.question_state)

        detection = self.detector.detect_patterns(message, ctx.user_context)
        analysis = TurnAnalysis(context=ctx, detection=detection)
        if detection.detected:
            top = detection.top_pattern
            attempts = ctx.reframing_attempts.get(top.id, 0)
            analysis.reframing = self.detector.generate_reframing_response(
                detection, message, ctx.user_context, attempts
            )
            ctx.reframing_attempts[top.id] = attempts + 1

        analysis.insight_readiness = detect_insight_readiness(message)
        if ctx.altitude_tracker is not None:
            self._analyze_altitude(message, ctx, analysis)

        tracker = ctx.checkpoint_tracker
        analysis.completed_checkpoints = self.checkpoints.detect_completion(
            message, tracker, ctx.neural_state
        )
        analysis.celebrations = [
            self.checkpoints.generate_celebration(cp, tracker) for cp in analysis.completed_checkpoints
        ]

        analysis.habits = self._record_habits(message, ctx, analysis)
        analysis.ask_next_question = self.questions.should_ask_next_question(message, ctx.question_state)
        analysis.progress_summary = self.checkpoints.get_progress_summary(tracker)
        analysis.question_summary = self.questions.generate_context_summary(ctx.question_state)

        logger.debug(
            "Turn analysed for %s: patterns=%d drift=%s checkpoints=%d",
            ctx.session_id,
            len(detection.patterns),
            analysis.drift_event.to_scope.value if analysis.drift_event else None,
            len(analysis.completed_checkpoints),
        )
        return analysis

    def _analyze_altitude(self, message: str, ctx: SessionContext, analysis: TurnAnalysis) -> None:
        tracker = ctx.altitude_tracker
        drift = self.altitude.detect_drift(message, tracker, ctx.user_context)
        analysis.drift = drift
        if not drift.detected:
            return

        event = self.altitude.record_drift_event(tracker, drift.new_scope, message, drift.method)
        analysis.drift_event = event
        analysis.intervention_timing = self.altitude.determine_intervention_timing(
            event.drift_magnitude, analysis.insight_readiness, ctx.neural_state
        )
        if event.triggered_intervention:
            analysis.scarf_intervention = self.altitude.generate_scarf_intervention(event, ctx.neural_state)
            self.altitude.record_intervention(
                tracker, event, analysis.scarf_intervention,
                analysis.intervention_timing, analysis.insight_readiness,
            )

    def _record_habits(self, message: str, ctx: SessionContext, analysis: TurnAnalysis) -> list[Habit]:
        behaviours = ["checkpoint_completed" for _ in analysis.completed_checkpoints]

        activity_flagged = InterventionType.ACTIVITY_TO_OUTCOME in analysis.detection.suggested_interventions
        if not activity_flagged and calculate_text_score(message) >= OUTCOME_LANGUAGE_SCORE:
            behaviours.append("outcome_language")

        if analysis.drift is not None and analysis.drift.confidence > 0 and not analysis.drift.detected:
            behaviours.append("scope_consistency")

        reinforced = []
        for behaviour in behaviours:
            habit = self.habits.record_behavior(ctx.habit_tracker, behaviour, {"phase": ctx.phase.value})
            if habit is not None and habit not in reinforced:
                reinforced.append(habit)
        return reinforced

    def deliver(self, generated_text: str, context: SessionContext) -> TurnDelivery:
        """Apply the one-question rule to generated text."""
        ctx = copy.deepcopy(context)
        processed = self.questions.process_response(generated_text, ctx.question_state)
        ctx.question_state = processed.state
        return TurnDelivery(context=ctx, response=processed.response_to_user, has_queued=processed.has_queued)

    def take_next_question(self, context: SessionContext) -> tuple[SessionContext, Optional[str]]:
        """Dequeue the next pending question, if any."""
        ctx = copy.deepcopy(context)
        ctx.question_state, question, _ = self.questions.get_next_question(ctx.question_state)
        return ctx, question

    def advance_phase(self, context: SessionContext, new_phase: ConversationPhase) -> SessionContext:
        """Move the session to a new phase with a fresh checkpoint set."""
        ctx = copy.deepcopy(context)
        ctx.checkpoint_tracker = self.checkpoints.transition_to_phase(ctx.checkpoint_tracker, new_phase)
        ctx.phase = new_phase
        return ctx


# =============================================================================
# Convenience Functions
# =============================================================================

def create_turn_pipeline(config: Optional[CoachConfig] = None) -> TurnPipeline:
    """Create a TurnPipeline, loading configuration if none is given."""
    return TurnPipeline(config=config or CoachConfig.load())
