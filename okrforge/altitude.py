"""
Altitude Tracking
=================

Detects the organisational altitude (strategic, departmental, team,
initiative, project) an objective is written at and records drift away from
the altitude the session started at. Large drifts get a SCARF-aware
intervention; the moment it is delivered depends on how ready the user is
for insight.

Usage:
    from okrforge.altitude import AltitudeManager, ObjectiveScope

    manager = AltitudeManager()
    tracker = manager.initialize(ObjectiveScope.TEAM, role="Engineering Manager")
    drift = manager.detect_drift("Become the market leader in our category", tracker)
    if drift.detected:
        event = manager.record_drift_event(tracker, drift.new_scope, text)
        intervention = manager.generate_scarf_intervention(event, neural_state)
"""

import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from okrforge.context import UserContext
from okrforge.neural import NeuralReadinessState

logger = logging.getLogger(__name__)

# Drifts at or above this magnitude are flagged for intervention
INTERVENTION_THRESHOLD = 0.5
HIGH_DRIFT = 0.6
MODERATE_DRIFT = 0.4
LOW_READINESS = 0.3
MIN_STABILITY = 0.3


class ObjectiveScope(Enum):
    """Organisational altitude, coarsest first."""
    STRATEGIC = "strategic"
    DEPARTMENTAL = "departmental"
    TEAM = "team"
    INITIATIVE = "initiative"
    PROJECT = "project"

    @property
    def rank(self) -> int:
        return _SCOPE_ORDER.index(self)

    @property
    def display_name(self) -> str:
        return _SCOPE_NAMES[self]


_SCOPE_ORDER = list(ObjectiveScope)

_SCOPE_NAMES = {
    ObjectiveScope.STRATEGIC: "strategic/C-level",
    ObjectiveScope.DEPARTMENTAL: "departmental/VP-Director",
    ObjectiveScope.TEAM: "team/manager",
    ObjectiveScope.INITIATIVE: "initiative/project manager",
    ObjectiveScope.PROJECT: "project/individual contributor",
}


class DetectionMethod(Enum):
    KEYWORD = "keyword"
    CONTEXT = "context"
    EXPLICIT = "explicit"


class InterventionTiming(Enum):
    IMMEDIATE = "immediate"
    AFTER_REFLECTION = "after_reflection"
    NEXT_TURN = "next_turn"


class AriaPhase(Enum):
    """Awareness, Reflection, Illumination, Action."""
    AWARENESS = "awareness"
    REFLECTION = "reflection"
    ILLUMINATION = "illumination"


def _family(*phrases: str) -> re.Pattern:
    # Anchored at the start of a word only, so inflections ("building",
    # "departments") still belong to the family.
    return re.compile(r"\b(" + "|".join(phrases) + r")", re.IGNORECASE)


# Evaluated in this order; the first family that matches wins.
_SCOPE_FAMILIES = (
    (ObjectiveScope.STRATEGIC, _family(
        "market leader", "market position", "competitive advantage",
        "transform the business", "transform our business", "company-wide",
        "organizational", "enterprise", "industry leader", "redefine", "disrupt",
        "market share", "revenue growth", "company revenue", "brand value",
        "competitive moat", "strategic position",
    )),
    (ObjectiveScope.DEPARTMENTAL, _family(
        "department", "cross-functional", "division", "multi-team",
        "org-wide capability", "departmental", "function-wide", "enable teams",
        "department performance", "director",
    )),
    (ObjectiveScope.TEAM, _family(
        "our team", "my team", "team performance", "team delivery",
        "team capability", "team metrics", "team members", "improve our",
        "team excellence", "manager",
    )),
    (ObjectiveScope.INITIATIVE, _family(
        "this initiative", "this project", "the initiative", "project success",
        "initiative outcome", "stakeholders?", "adoption", "rollout",
        "implementation", "successfully", "platform", "launch(es|ed|ing)?",
    )),
    (ObjectiveScope.PROJECT, _family(
        "build", "create", "develop", "implement", "ship", "deliver",
        "complete", "my work", "my contribution",
    )),
)

_ROLE_SCOPES = (
    (ObjectiveScope.STRATEGIC, ("ceo", "cto", "cfo", "chief")),
    (ObjectiveScope.DEPARTMENTAL, ("director", "vp", "head of")),
    (ObjectiveScope.TEAM, ("manager", "lead")),
)


def calculate_drift_magnitude(from_scope: ObjectiveScope, to_scope: ObjectiveScope) -> float:
    """
    Severity of a scope change (0-1).

    Non-linear in the number of levels crossed: one level is 0.2, two
    levels 0.8, three or more 1.0.
    """
    levels = abs(to_scope.rank - from_scope.rank)
    return min(1.0, levels * levels * 0.2)


def is_scope_elevation(from_scope: ObjectiveScope, to_scope: ObjectiveScope) -> bool:
    return to_scope.rank < from_scope.rank


def scope_from_role(role: Optional[str]) -> Optional[ObjectiveScope]:
    """Altitude implied by a job title, if it implies one."""
    if not role:
        return None
    lowered = role.lower()
    for scope, markers in _ROLE_SCOPES:
        if any(marker in lowered for marker in markers):
            return scope
    return None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# =============================================================================
# Data Types
# =============================================================================

@dataclass
class ScopeDriftEvent:
    """A recorded change in the altitude of the user's objective."""
    from_scope: ObjectiveScope
    to_scope: ObjectiveScope
    drift_magnitude: float
    detection_method: DetectionMethod
    objective_text: str
    triggered_intervention: bool
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "from_scope": self.from_scope.value,
            "to_scope": self.to_scope.value,
            "drift_magnitude": self.drift_magnitude,
            "detection_method": self.detection_method.value,
            "objective_text": self.objective_text,
            "triggered_intervention": self.triggered_intervention,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ScopeDriftEvent":
        return cls(
            from_scope=ObjectiveScope(data["from_scope"]),
            to_scope=ObjectiveScope(data["to_scope"]),
            drift_magnitude=data.get("drift_magnitude", 0.0),
            detection_method=DetectionMethod(data.get("detection_method", DetectionMethod.KEYWORD.value)),
            objective_text=data.get("objective_text", ""),
            triggered_intervention=data.get("triggered_intervention", False),
            timestamp=data.get("timestamp") or _now(),
        )


@dataclass
class InsightReadiness:
    """Language markers that the user is ready to reach an insight."""
    open_questioning: bool = False
    pauses_for_thinking: bool = False
    tentative_language: bool = False
    reframing_attempts: bool = False
    pausing_to_think: bool = False
    questioning_assumptions: bool = False
    connecting_dots: bool = False
    verbalizing_understanding: bool = False
    overall_readiness: float = 0.0

    @property
    def signal_count(self) -> int:
        return sum(1 for value in asdict(self).values() if value is True)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "InsightReadiness":
        return cls(**(data or {}))


@dataclass
class StatusPreservation:
    acknowledgement: str
    reframing: str


@dataclass
class CertaintyBuilding:
    concrete_next_steps: list[str]
    predictable_outcome: str


@dataclass
class AutonomyRespecting:
    option_a: str
    option_b: str
    user_led_discovery: bool = True


@dataclass
class RelatednessBuilding:
    collaboration: str
    shared_goal: str


@dataclass
class FairnessTransparency:
    reasoning: str
    equitable_process: str


@dataclass
class ScarfIntervention:
    """Five-part altitude correction phrased to avoid triggering threat."""
    status: StatusPreservation
    certainty: CertaintyBuilding
    autonomy: AutonomyRespecting
    relatedness: RelatednessBuilding
    fairness: FairnessTransparency

    def render(self) -> str:
        """Plain-text rendering for prompt composition."""
        steps = "\n".join(f"{i}. {step}" for i, step in enumerate(self.certainty.concrete_next_steps, 1))
        return "\n\n".join([
            f"{self.status.acknowledgement} {self.status.reframing}",
            f"{steps}\n\n{self.certainty.predictable_outcome}",
            f"{self.autonomy.option_a}\n{self.autonomy.option_b}",
            f"{self.relatedness.collaboration} {self.relatedness.shared_goal}",
            f"{self.fairness.reasoning} {self.fairness.equitable_process}",
        ])

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "ScarfIntervention":
        return cls(
            status=StatusPreservation(**data["status"]),
            certainty=CertaintyBuilding(**data["certainty"]),
            autonomy=AutonomyRespecting(**data["autonomy"]),
            relatedness=RelatednessBuilding(**data["relatedness"]),
            fairness=FairnessTransparency(**data["fairness"]),
        )


@dataclass
class AltitudeIntervention:
    drift_magnitude: float
    intervention: ScarfIntervention
    timing: InterventionTiming
    insight_readiness: InsightReadiness
    user_response: Optional[str] = None  # positive, neutral, resistant
    effectiveness_score: Optional[float] = None
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return {
            "drift_magnitude": self.drift_magnitude,
            "intervention": self.intervention.to_dict(),
            "timing": self.timing.value,
            "insight_readiness": self.insight_readiness.to_dict(),
            "user_response": self.user_response,
            "effectiveness_score": self.effectiveness_score,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AltitudeIntervention":
        return cls(
            drift_magnitude=data.get("drift_magnitude", 0.0),
            intervention=ScarfIntervention.from_dict(data["intervention"]),
            timing=InterventionTiming(data.get("timing", InterventionTiming.NEXT_TURN.value)),
            insight_readiness=InsightReadiness.from_dict(data.get("insight_readiness")),
            user_response=data.get("user_response"),
            effectiveness_score=data.get("effectiveness_score"),
            timestamp=data.get("timestamp") or _now(),
        )


@dataclass
class AltitudeTracker:
    """
    Altitude state for one session.

    current_scope is always the to_scope of the latest drift event, or
    initial_scope when there is none.
    """
    initial_scope: ObjectiveScope
    current_scope: ObjectiveScope
    role: Optional[str] = None
    confidence_level: float = 1.0
    drift_history: list[ScopeDriftEvent] = field(default_factory=list)
    intervention_history: list[AltitudeIntervention] = field(default_factory=list)
    stability_score: float = 1.0
    last_checked: str = field(default_factory=_now)

    @property
    def last_drift(self) -> Optional[ScopeDriftEvent]:
        return self.drift_history[-1] if self.drift_history else None

    def to_dict(self) -> dict:
        return {
            "initial_scope": self.initial_scope.value,
            "current_scope": self.current_scope.value,
            "role": self.role,
            "confidence_level": self.confidence_level,
            "drift_history": [e.to_dict() for e in self.drift_history],
            "intervention_history": [i.to_dict() for i in self.intervention_history],
            "stability_score": self.stability_score,
            "last_checked": self.last_checked,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "AltitudeTracker":
        initial = ObjectiveScope(data.get("initial_scope", ObjectiveScope.TEAM.value))
        return cls(
            initial_scope=initial,
            current_scope=ObjectiveScope(data.get("current_scope", initial.value)),
            role=data.get("role"),
            confidence_level=data.get("confidence_level", 1.0),
            drift_history=[ScopeDriftEvent.from_dict(e) for e in data.get("drift_history", [])],
            intervention_history=[
                AltitudeIntervention.from_dict(i) for i in data.get("intervention_history", [])
            ],
            stability_score=data.get("stability_score", 1.0),
            last_checked=data.get("last_checked") or _now(),
        )


@dataclass
class DriftDetection:
    detected: bool
    new_scope: ObjectiveScope
    confidence: float
    method: DetectionMethod = DetectionMethod.KEYWORD
    magnitude: float = 0.0


@dataclass
class AriaQuestions:
    """Tell / Ask / Problem / Solution prompts for one ARIA phase."""
    phase: AriaPhase
    tell: str
    ask: list[str]
    problem: str
    solution: str


@dataclass
class StabilityMetrics:
    drift_reduction_rate: float
    average_intervention_success: float
    scope_consistency: float


# =============================================================================
# Insight Readiness
# =============================================================================

_READINESS_MARKERS = {
    "open_questioning": (r"\b(how|what if|should i|would it|could we|is it better)\b", 0.15),
    "tentative_language": (r"\b(maybe|perhaps|i think|i'm wondering|not sure|trying to)\b", 0.15),
    "reframing_attempts": (r"\b(or|instead|rather than|different|another way|alternatively)\b", 0.15),
    "pausing_to_think": (r"\b(hmm|let me think|give me a moment|pause|hold on)\b", 0.15),
    "questioning_assumptions": (r"\b(wait|is that|assumption|actually|really|correct|sure about)\b", 0.1),
    "connecting_dots": (r"\b(oh!|aha|so that means|if.*then|that means|i see|makes sense now)\b", 0.1),
    "verbalizing_understanding": (
        r"\b(so basically|what you're saying|in other words|let me see if|my understanding)\b", 0.1),
}
_LONG_MESSAGE = 150
_LONG_MESSAGE_WEIGHT = 0.1


def detect_insight_readiness(message: str) -> InsightReadiness:
    """Flag language that suggests the user is working toward an insight."""
    message = message or ""
    signals = {
        name: re.search(pattern, message, re.IGNORECASE) is not None
        for name, (pattern, _) in _READINESS_MARKERS.items()
    }
    signals["pauses_for_thinking"] = len(message) > _LONG_MESSAGE

    overall = sum(weight for name, (_, weight) in _READINESS_MARKERS.items() if signals[name])
    if signals["pauses_for_thinking"]:
        overall += _LONG_MESSAGE_WEIGHT

    return InsightReadiness(overall_readiness=round(overall, 2), **signals)


# =============================================================================
# Altitude Manager
# =============================================================================

class AltitudeManager:
    """Scope detection, drift bookkeeping and altitude interventions."""

    def initialize(
        self,
        initial_scope: ObjectiveScope,
        role: Optional[str] = None,
    ) -> AltitudeTracker:
        return AltitudeTracker(
            initial_scope=initial_scope,
            current_scope=initial_scope,
            role=role,
        )

    def infer_scope(
        self,
        text: str,
        context: Optional[UserContext] = None,
        role: Optional[str] = None,
    ) -> tuple[Optional[ObjectiveScope], DetectionMethod]:
        """
        Altitude implied by the text, falling back to the user's role.

        Returns (None, KEYWORD) when neither the text nor the role says
        anything about altitude.
        """
        for scope, family in _SCOPE_FAMILIES:
            if family.search(text or ""):
                return scope, DetectionMethod.KEYWORD

        function = context.function if context is not None and context.function else role
        from_role = scope_from_role(function)
        if from_role is not None:
            return from_role, DetectionMethod.CONTEXT
        return None, DetectionMethod.KEYWORD

    def detection_confidence(self, text: str, scope: ObjectiveScope) -> float:
        """Confidence in a keyword classification; specific words score higher."""
        lowered = (text or "").lower()
        specific = {
            ObjectiveScope.STRATEGIC: (("market", "enterprise"), 0.9, 0.7),
            ObjectiveScope.DEPARTMENTAL: (("department", "division"), 0.85, 0.7),
            ObjectiveScope.TEAM: (("team", "our"), 0.9, 0.6),
            ObjectiveScope.INITIATIVE: (("initiative", "project"), 0.85, 0.6),
            ObjectiveScope.PROJECT: (("build", "deliver"), 0.8, 0.5),
        }
        words, high, low = specific[scope]
        confidence = high if any(word in lowered for word in words) else low
        if len(text or "") > _LONG_MESSAGE:
            confidence += 0.1
        return min(1.0, confidence)

    def detect_drift(
        self,
        text: str,
        tracker: AltitudeTracker,
        context: Optional[UserContext] = None,
    ) -> DriftDetection:
        """
        Classify the text's altitude and compare it with the tracker's.

        Detection is positive only when a scope was inferred and it differs
        from the tracker's current scope.
        """
        scope, method = self.infer_scope(text, context, tracker.role)
        if scope is None:
            return DriftDetection(detected=False, new_scope=tracker.current_scope, confidence=0.0)

        magnitude = calculate_drift_magnitude(tracker.current_scope, scope)
        detection = DriftDetection(
            detected=scope != tracker.current_scope,
            new_scope=scope,
            confidence=self.detection_confidence(text, scope),
            method=method,
            magnitude=magnitude,
        )
        logger.debug(
            "Altitude %s -> %s (magnitude=%.1f, detected=%s): %s",
            tracker.current_scope.value, scope.value, magnitude, detection.detected, (text or "")[:100],
        )
        return detection

    def record_drift_event(
        self,
        tracker: AltitudeTracker,
        new_scope: ObjectiveScope,
        objective_text: str,
        method: DetectionMethod = DetectionMethod.KEYWORD,
    ) -> ScopeDriftEvent:
        """Append a drift event, move current_scope and lower stability."""
        magnitude = calculate_drift_magnitude(tracker.current_scope, new_scope)
        event = ScopeDriftEvent(
            from_scope=tracker.current_scope,
            to_scope=new_scope,
            drift_magnitude=magnitude,
            detection_method=method,
            objective_text=objective_text,
            triggered_intervention=magnitude >= INTERVENTION_THRESHOLD,
        )
        tracker.drift_history.append(event)
        tracker.current_scope = new_scope
        tracker.last_checked = event.timestamp
        tracker.stability_score = max(MIN_STABILITY, tracker.stability_score - magnitude * 0.2)

        logger.info(
            "Scope drift recorded: %s -> %s (magnitude=%.1f, stability=%.2f)",
            event.from_scope.value, event.to_scope.value, magnitude, tracker.stability_score,
        )
        return event

    def determine_intervention_timing(
        self,
        drift_magnitude: float,
        readiness: InsightReadiness,
        neural_state: Optional[NeuralReadinessState] = None,
    ) -> InterventionTiming:
        """
        Pick when to deliver an altitude intervention.

        Threat always means now, with a SCARF-safe message. A large drift
        the user is not reflecting on is also corrected now; moderate drift
        waits for the user's own reflection when they show any sign of it.
        """
        if neural_state is not None and neural_state.is_threatened():
            return InterventionTiming.IMMEDIATE
        if drift_magnitude >= HIGH_DRIFT:
            if readiness.overall_readiness < LOW_READINESS:
                return InterventionTiming.IMMEDIATE
            return InterventionTiming.AFTER_REFLECTION
        if drift_magnitude >= MODERATE_DRIFT and readiness.signal_count > 0:
            return InterventionTiming.AFTER_REFLECTION
        return InterventionTiming.NEXT_TURN

    def generate_scarf_intervention(
        self,
        event: ScopeDriftEvent,
        neural_state: Optional[NeuralReadinessState] = None,
    ) -> ScarfIntervention:
        drifting_up = is_scope_elevation(event.from_scope, event.to_scope)
        from_name = event.from_scope.display_name
        to_name = event.to_scope.display_name

        if drifting_up:
            next_steps = [
                f"Identify what your {from_name} can directly control",
                "Define measurable outcomes within your authority",
                "Ensure you can track progress independently",
            ]
        else:
            next_steps = [
                "Clarify your span of control and authority",
                "Identify stakeholders you need to influence",
                "Define success criteria you can measure",
            ]

        option_a = (
            "Would you like to explore how your team can contribute to this broader goal?"
            if drifting_up else
            "Should we focus on what you can directly control and measure?"
        )
        if neural_state is not None and neural_state.is_threatened():
            option_a = f"There's no pressure either way. {option_a}"

        return ScarfIntervention(
            status=StatusPreservation(
                acknowledgement=(
                    "I appreciate you thinking big with this objective!" if drifting_up
                    else "You're being thoughtful about scope and practicality."
                ),
                reframing=(
                    "Let's channel that ambition into an objective you can directly influence and measure."
                    if drifting_up else
                    "We can make this more impactful at your organizational level."
                ),
            ),
            certainty=CertaintyBuilding(
                concrete_next_steps=next_steps,
                predictable_outcome=(
                    f"An objective that creates measurable impact at the {from_name} level."
                    if drifting_up else
                    f"An objective that maximizes your influence and authority at the {to_name} level."
                ),
            ),
            autonomy=AutonomyRespecting(
                option_a=option_a,
                option_b=(
                    "Or shall we identify the outcome you want to create within your team's scope?"
                    if drifting_up else
                    "Or would you prefer to expand this to show broader impact?"
                ),
            ),
            relatedness=RelatednessBuilding(
                collaboration="Let's work together to find the sweet spot between ambition and achievability.",
                shared_goal="Our shared goal is creating an OKR that drives real impact you can own and measure.",
            ),
            fairness=FairnessTransparency(
                reasoning=(
                    f"This objective feels like it requires {to_name}-level authority and resources. "
                    "We want to ensure you can realistically achieve and measure it."
                    if drifting_up else
                    "We're adjusting the scope to match your organizational level and span of control."
                ),
                equitable_process=(
                    "These same principles apply to everyone creating OKRs - "
                    "matching objectives to authority and measurability."
                ),
            ),
        )

    def generate_aria_questions(self, event: ScopeDriftEvent, phase: AriaPhase) -> AriaQuestions:
        """Discovery prompts that let the user notice the altitude gap themselves."""
        from_name = event.from_scope.display_name
        to_name = event.to_scope.display_name

        if phase == AriaPhase.AWARENESS:
            return AriaQuestions(
                phase=phase,
                tell=(
                    f"I notice this objective has {to_name}-level scope."
                    if is_scope_elevation(event.from_scope, event.to_scope) else
                    f"This objective seems focused at the {to_name} level."
                ),
                ask=[
                    "What organizational resources do you directly control to achieve this?",
                    "Who else would need to be involved to make this happen?",
                    "If you weren't involved, could this still happen?",
                ],
                problem=(
                    "Help me understand: What's within your team's direct influence versus "
                    "what requires broader organizational action?"
                ),
                solution="Let's discover the outcome you want to create that's within your span of control.",
            )

        if phase == AriaPhase.REFLECTION:
            return AriaQuestions(
                phase=phase,
                tell="Let's think about the scope of impact here.",
                ask=[
                    "If we achieved this objective, would it be because of your team's work, "
                    "or company-wide efforts?",
                    "What would change specifically in your area of responsibility?",
                    "How would you measure your team's contribution to this outcome?",
                ],
                problem="We want to ensure this is something you can realistically own and measure.",
                solution=f"What would a {from_name}-level version of this impact look like?",
            )

        return AriaQuestions(
            phase=phase,
            tell=(
                f"Great insights! You're seeing the distinction between {to_name} "
                f"and {from_name} objectives."
            ),
            ask=[
                "How does this reframed objective feel in terms of your authority and measurability?",
                "Does this capture the impact you want to create at your level?",
            ],
            problem="We're finding the sweet spot between ambition and achievability.",
            solution="This objective now reflects meaningful impact you can directly drive and measure.",
        )

    def record_intervention(
        self,
        tracker: AltitudeTracker,
        event: ScopeDriftEvent,
        intervention: ScarfIntervention,
        timing: InterventionTiming,
        readiness: InsightReadiness,
    ) -> AltitudeIntervention:
        record = AltitudeIntervention(
            drift_magnitude=event.drift_magnitude,
            intervention=intervention,
            timing=timing,
            insight_readiness=readiness,
        )
        tracker.intervention_history.append(record)
        logger.info(
            "Altitude intervention recorded (magnitude=%.1f, timing=%s, readiness=%.2f)",
            event.drift_magnitude, timing.value, readiness.overall_readiness,
        )
        return record

    def update_intervention_effectiveness(
        self,
        tracker: AltitudeTracker,
        user_response: str,
        new_objective: str,
        context: Optional[UserContext] = None,
    ) -> Optional[float]:
        """
        Score the latest intervention by where the revised objective landed.

        1.0 when the revision is back at the initial altitude, 0.7 for a
        positive response that did not realign, 0.3 otherwise.
        """
        if not tracker.intervention_history:
            return None
        latest = tracker.intervention_history[-1]
        latest.user_response = user_response

        new_scope, _ = self.infer_scope(new_objective, context, tracker.role)
        if new_scope == tracker.initial_scope:
            latest.effectiveness_score = 1.0
        elif user_response == "positive":
            latest.effectiveness_score = 0.7
        else:
            latest.effectiveness_score = 0.3

        logger.info(
            "Intervention effectiveness %.1f (response=%s, scope=%s)",
            latest.effectiveness_score, user_response, new_scope.value if new_scope else "unknown",
        )
        return latest.effectiveness_score

    def calculate_stability_metrics(self, tracker: AltitudeTracker) -> StabilityMetrics:
        total_drifts = len(tracker.drift_history)
        flagged = sum(1 for e in tracker.drift_history if e.triggered_intervention)
        interventions = tracker.intervention_history
        successful = sum(
            1 for i in interventions
            if i.effectiveness_score is not None and i.effectiveness_score >= 0.7
        )
        return StabilityMetrics(
            drift_reduction_rate=flagged / total_drifts if total_drifts else 1.0,
            average_intervention_success=successful / len(interventions) if interventions else 0.0,
            scope_consistency=tracker.stability_score,
        )


# =============================================================================
# Convenience Functions
# =============================================================================

def create_altitude_manager() -> AltitudeManager:
    """Create an AltitudeManager instance."""
    return AltitudeManager()
