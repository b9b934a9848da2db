"""
Checkpoint Progress Tracking
============================

Breaks each coaching phase into small checkpoints whose completion is
inferred from what the user writes. Completing checkpoints builds a streak;
stepping back to an earlier checkpoint resets it but is framed as a
positive reconsideration rather than a mistake.

Phases and their checkpoints:
- discovery (5): context, challenge, outcome, altitude, scope
- refinement (4): draft, quality, anti-patterns, finalized
- kr_discovery (5): brainstorm, selection, specificity, quality, finalized
- validation (3): review, alignment, export

Usage:
    from okrforge.checkpoints import CheckpointManager, ConversationPhase

    manager = CheckpointManager()
    tracker = manager.initialize("session-1", ConversationPhase.DISCOVERY)
    completed = manager.detect_completion(user_message, tracker, neural_state)
    for checkpoint in completed:
        print(manager.generate_celebration(checkpoint, tracker))
"""

import logging
import math
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Union

from okrforge.neural import EmotionalState, NeuralReadinessState

logger = logging.getLogger(__name__)

# Completion needs at least this confidence after the brain-state adjustment
COMPLETION_CONFIDENCE_THRESHOLD = 0.5
# Share of criteria that must match on multi-criterion checkpoints
CRITERIA_MATCH_RATIO = 0.67
# Confidence penalty when the user is not in the checkpoint's optimal state
SUBOPTIMAL_STATE_FACTOR = 0.8
STREAK_BADGE_MIN = 3


class ConversationPhase(Enum):
    """Phases of an OKR coaching conversation."""
    DISCOVERY = "discovery"
    REFINEMENT = "refinement"
    KR_DISCOVERY = "kr_discovery"
    VALIDATION = "validation"
    COMPLETED = "completed"


class ValidationMethod(Enum):
    """How a checkpoint's completion is recognised."""
    EXPLICIT_CONFIRMATION = "explicit_confirmation"
    IMPLICIT_DEMONSTRATION = "implicit_demonstration"
    ASSISTANT_INFERENCE = "assistant_inference"


class CelebrationIntensity(Enum):
    SUBTLE = "subtle"
    MODERATE = "moderate"
    ENTHUSIASTIC = "enthusiastic"


class BacktrackReason(Enum):
    """Why the user is revisiting an earlier checkpoint."""
    NEW_INSIGHT = "new_insight"
    MISSED_DETAIL = "missed_detail"
    SCOPE_CHANGE = "scope_change"
    USER_REQUEST = "user_request"


_PHASE_LABELS = {
    ConversationPhase.DISCOVERY: "Discovery",
    ConversationPhase.REFINEMENT: "Refinement",
    ConversationPhase.KR_DISCOVERY: "Key Results",
    ConversationPhase.VALIDATION: "Validation",
    ConversationPhase.COMPLETED: "Completed",
}

_POSITIVE_REFRAMES = {
    BacktrackReason.NEW_INSIGHT: "💡 Great insight! This shows you're thinking deeply about your OKR.",
    BacktrackReason.MISSED_DETAIL: "🔍 Good catch! Attention to detail like this leads to stronger OKRs.",
    BacktrackReason.SCOPE_CHANGE: "🎯 Excellent - adjusting scope now will save time later.",
    BacktrackReason.USER_REQUEST: "✅ Absolutely - let's revisit that to make sure it's exactly right.",
}
_DEFAULT_REFRAME = "💡 This reflection will strengthen your final OKR."
_AUTONOMY_PROMPT = "Would you like to revisit this, or should we continue forward?"


# =============================================================================
# Criterion Matchers
# =============================================================================

# A matcher receives the lowercased user message and returns evidence text
# when the criterion is satisfied, or None.
Matcher = Callable[[str], Optional[str]]


def _mentions(evidence: str, *indicators: str) -> Matcher:
    def match(message: str) -> Optional[str]:
        return evidence if any(ind in message for ind in indicators) else None
    return match


def _assistant_only(message: str) -> Optional[str]:
    # Needs the assistant's judgement; never inferred from user text alone
    return None


def _team_size(message: str) -> Optional[str]:
    if any(ind in message for ind in ("team", "people", "engineers", "members", "reports")):
        return "Team size mentioned"
    if re.search(r"\d+\s+(people|engineers|members)", message):
        return "Team size mentioned"
    return None


def _challenge(message: str) -> Optional[str]:
    problem = ("problem", "challenge", "issue", "struggling", "difficult", "pain point", "bottleneck")
    opportunity = ("opportunity", "potential", "could improve", "want to", "aim to", "goal")
    if any(ind in message for ind in problem + opportunity):
        return "Challenge/opportunity stated"
    return None


def _metric_count(message: str) -> Optional[str]:
    count = len(re.findall(r"measure|metric|track|count", message))
    return f"{count} metrics mentioned" if count >= 4 else None


def _kr_selection(message: str) -> Optional[str]:
    count = 0
    for pattern in (r"(\d)\s*key results?", r"kr\s*(\d)", r"(\d)\s*krs?"):
        found = re.search(pattern, message)
        if found:
            count = int(found.group(1))
    if any(ind in message for ind in ("choose", "select", "pick", "go with", "focus on", "these")):
        return "KR selection indicated"
    if 3 <= count <= 5:
        return f"{count} key results identified"
    return None


def _prior_checkpoints(message: str) -> Optional[str]:
    return "Quality evaluated by previous checkpoints"


_OUTCOME_WORDS = ("achieve", "reach", "become", "improve", "increase", "decrease", "transform")
_CONFIRMATIONS = ("looks good", "that works", "yes", "correct", "perfect", "ready", "approve")


@dataclass(frozen=True)
class Criterion:
    """One completion criterion of a checkpoint."""
    label: str
    matcher: Matcher = _assistant_only

    def evaluate(self, message: str) -> Optional[str]:
        return self.matcher(message)


@dataclass(frozen=True)
class Celebration:
    intensity: CelebrationIntensity
    message: str
    next_step_preview: str


@dataclass(frozen=True)
class CheckpointDefinition:
    """Static description of a checkpoint."""
    id: str
    phase: ConversationPhase
    sequence_order: int
    name: str
    description: str
    criteria: tuple
    validation_method: ValidationMethod
    celebration: Celebration
    habit_cue: str
    habit_routine: str
    habit_reward: str
    optimal_brain_state: EmotionalState
    scarf_focus: str

    @property
    def completion_threshold(self) -> int:
        """Number of criteria that must match for completion."""
        if len(self.criteria) == 1:
            return 1
        return max(1, math.floor(len(self.criteria) * CRITERIA_MATCH_RATIO))

    def is_brain_state_optimal(self, neural_state: NeuralReadinessState) -> bool:
        if self.optimal_brain_state == EmotionalState.NEUTRAL:
            return neural_state.current_state != EmotionalState.THREAT
        return neural_state.current_state == self.optimal_brain_state


# =============================================================================
# Checkpoint Catalogue
# =============================================================================

def _checkpoint(
    id: str,
    phase: ConversationPhase,
    order: int,
    name: str,
    description: str,
    criteria: list[Criterion],
    method: ValidationMethod,
    celebration: tuple[CelebrationIntensity, str, str],
    habit: tuple[str, str, str],
    brain_state: EmotionalState,
    scarf_focus: str,
) -> CheckpointDefinition:
    return CheckpointDefinition(
        id=id,
        phase=phase,
        sequence_order=order,
        name=name,
        description=description,
        criteria=tuple(criteria),
        validation_method=method,
        celebration=Celebration(*celebration),
        habit_cue=habit[0],
        habit_routine=habit[1],
        habit_reward=habit[2],
        optimal_brain_state=brain_state,
        scarf_focus=scarf_focus,
    )


_D = ConversationPhase.DISCOVERY
_R = ConversationPhase.REFINEMENT
_K = ConversationPhase.KR_DISCOVERY
_V = ConversationPhase.VALIDATION
_EXPLICIT = ValidationMethod.EXPLICIT_CONFIRMATION
_IMPLICIT = ValidationMethod.IMPLICIT_DEMONSTRATION
_INFERRED = ValidationMethod.ASSISTANT_INFERENCE
_SUBTLE = CelebrationIntensity.SUBTLE
_MODERATE = CelebrationIntensity.MODERATE
_ENTHUSIASTIC = CelebrationIntensity.ENTHUSIASTIC
_REWARD = EmotionalState.REWARD
_NEUTRAL = EmotionalState.NEUTRAL

CHECKPOINT_CATALOGUE: tuple[CheckpointDefinition, ...] = (
    # Discovery
    _checkpoint(
        "discovery_context", _D, 1, "Context Gathered",
        "Understand user role, team, and organizational context",
        [
            Criterion("User role/function identified", _mentions(
                "Role mentioned", "manager", "director", "lead", "vp", "engineer",
                "designer", "product", "marketing", "sales")),
            Criterion("Team size or scope mentioned", _team_size),
            Criterion("Organizational context understood", _mentions(
                "Organizational context mentioned", "company", "organization",
                "startup", "enterprise", "department")),
        ],
        _IMPLICIT,
        (_SUBTLE, "✅ Great! I understand your context.",
         "Next: Let's explore what challenge you're facing."),
        ("When starting a new OKR conversation...", "Share your role and team context",
         "Clarity and personalized guidance"),
        _NEUTRAL, "Acknowledge their expertise and let them choose how much context to share",
    ),
    _checkpoint(
        "discovery_challenge", _D, 2, "Challenge Identified",
        "Articulate the core problem or opportunity to address",
        [
            Criterion("Problem or opportunity stated", _challenge),
            Criterion("Why it matters explained", _mentions(
                "Importance explained", "because", "important", "matters", "impact",
                "affects", "result in")),
            Criterion("Current state described", _mentions(
                "Current state described", "currently", "right now", "today",
                "at the moment", "existing")),
        ],
        _EXPLICIT,
        (_MODERATE, "✅ Excellent! You've clearly articulated the challenge.",
         "Next: What outcome do you want to achieve?"),
        ("When defining an objective...", "Start by articulating the problem or opportunity",
         "Focus and alignment on what matters"),
        _REWARD, "Treat the challenge as worth solving, not as a failure to explain",
    ),
    _checkpoint(
        "discovery_outcome", _D, 3, "Desired Outcome Articulated",
        "Express the target result or change sought",
        [
            Criterion("Outcome stated (not activity)", _mentions(
                "Outcome-focused language used", *_OUTCOME_WORDS, "enable")),
            Criterion("Success criteria mentioned", _mentions(
                "Success criteria mentioned", "success", "measure", "metric", "indicator",
                "know we succeeded", "looks like")),
            Criterion("Timeframe indicated", _mentions(
                "Timeframe indicated", "quarter", "q1", "q2", "q3", "q4", "month", "year",
                "90 days", "by end of")),
        ],
        _IMPLICIT,
        (_MODERATE, "🎉 Nice! You're thinking in outcomes, not activities.",
         "Next: Let's confirm the right altitude for this objective."),
        ("When writing an objective...", "Frame it as an outcome/result, not an activity/task",
         "Clarity and strategic thinking"),
        _REWARD, "Give certainty about what a good outcome statement contains",
    ),
    _checkpoint(
        "discovery_altitude", _D, 4, "Altitude Confirmed",
        "Validate the organizational scope (team/initiative/project)",
        [
            Criterion("Scope level identified", _mentions(
                "Scope level mentioned", "team", "initiative", "project", "department",
                "company", "organization")),
            Criterion("Stakeholders clarified", _mentions(
                "Stakeholders identified", "stakeholder", "partner", "customer", "user",
                "executive", "leadership")),
            Criterion("Authority/influence confirmed", _mentions(
                "Authority/influence confirmed", "control", "influence", "responsible for",
                "authority", "decision")),
        ],
        _EXPLICIT,
        (_MODERATE, "✅ Perfect! We've anchored at the right altitude.",
         "Next: Final scope validation before crafting your objective."),
        ("When setting an objective...", "Pause and confirm the right organizational altitude",
         "Appropriate scope and achievability"),
        _NEUTRAL, "Respect their authority boundaries instead of pushing scope upward",
    ),
    _checkpoint(
        "discovery_scope", _D, 5, "Scope Validated",
        "Confirm feasibility and boundaries",
        [
            Criterion("What's in scope clarified", _mentions(
                "In-scope boundaries clarified", "include", "cover", "focus on",
                "scope includes", "within scope")),
            Criterion("What's out of scope clarified", _mentions(
                "Out-of-scope boundaries clarified", "exclude", "not include", "out of scope",
                "beyond scope", "won't cover")),
            Criterion("Feasibility confirmed", _mentions(
                "Feasibility confirmed", "achievable", "realistic", "feasible",
                "can accomplish", "doable")),
        ],
        _EXPLICIT,
        (_ENTHUSIASTIC, "🎉 Fantastic! Discovery complete - ready to craft your objective!",
         "Next Phase: Refinement - we'll craft your objective."),
        ("Before finalizing an objective...", "Explicitly define what's in and out of scope",
         "Focus and boundary clarity"),
        _REWARD, "Let them set the boundaries themselves",
    ),
    # Refinement
    _checkpoint(
        "refinement_draft", _R, 1, "Initial Draft Created",
        "First version of objective written",
        [
            Criterion("Objective statement drafted", _mentions(
                "Objective statement drafted", "objective:", "objective is", "goal:",
                "goal is", "want to", "aim to")),
            Criterion("Outcome-focused language used", _mentions(
                "Outcome language present", *_OUTCOME_WORDS)),
            Criterion("Timeframe included", _mentions(
                "Timeframe included", "quarter", "q1", "q2", "q3", "q4", "month", "year",
                "by end")),
        ],
        _IMPLICIT,
        (_MODERATE, "✅ Great start! You've got the foundation.",
         "Next: Let's check for outcome focus and measurability."),
        ("After discovery...", "Draft objective with outcome-focused language",
         "Tangible progress and structure"),
        _REWARD, "Celebrate a first draft as progress, not a final answer",
    ),
    _checkpoint(
        "refinement_quality", _R, 2, "Quality Standards Met",
        "Objective passes core quality checks",
        [
            Criterion("Outcome-focused (not activity)"),
            Criterion("Inspiring and motivating"),
            Criterion("Clear success visualization"),
        ],
        _INFERRED,
        (_MODERATE, "✅ Excellent! Your objective is outcome-focused and inspiring.",
         "Next: Anti-pattern check to catch common pitfalls."),
        ("When evaluating an objective...", "Check: Is it outcome-focused? Is it inspiring?",
         "Confidence in quality"),
        _REWARD, "Explain the quality bar before judging against it",
    ),
    _checkpoint(
        "refinement_antipatterns", _R, 3, "Anti-Patterns Cleared",
        "Common OKR mistakes addressed",
        [
            Criterion("Not a project or activity"),
            Criterion("Not too vague or too prescriptive"),
            Criterion("Not outside sphere of influence"),
        ],
        _INFERRED,
        (_MODERATE, "✅ Nice! You've avoided common OKR pitfalls.",
         "Next: Final polish and you're done with refinement!"),
        ("Before finalizing an objective...", "Run through anti-pattern checklist",
         "Avoidance of common mistakes"),
        _NEUTRAL, "Frame pitfalls as common to everyone, never as personal errors",
    ),
    _checkpoint(
        "refinement_finalized", _R, 4, "Objective Finalized",
        "Objective is polished and approved",
        [
            Criterion("User confirms satisfaction", _mentions(
                "User confirmation provided", *_CONFIRMATIONS, "finalize")),
            Criterion("Objective scores 7.5+ quality", _prior_checkpoints),
            Criterion("Ready for key results", _mentions(
                "Ready for next phase", "key results", "kr", "next step", "move on", "ready")),
        ],
        _EXPLICIT,
        (_ENTHUSIASTIC, "🎉 Outstanding! Your objective is refined and ready!",
         "Next Phase: Key Result Discovery - defining how to measure success."),
        ("When objective feels strong...", "Confirm readiness before moving to key results",
         "Confidence and momentum"),
        _REWARD, "Let them decide when the objective is done",
    ),
    # Key result discovery
    _checkpoint(
        "kr_brainstorm", _K, 1, "Metrics Brainstormed",
        "Generate potential ways to measure the objective",
        [
            Criterion("4+ potential metrics identified", _metric_count),
            Criterion("Mix of leading and lagging indicators", _mentions(
                "Metric types discussed", "leading", "input", "activity", "behavior",
                "lagging", "output", "outcome", "result")),
            Criterion("Quantitative focus", _mentions(
                "Quantitative focus present", "%", "percent", "number of", "count",
                "total", "from", "to")),
        ],
        _IMPLICIT,
        (_MODERATE, "✅ Great brainstorming! Lots of measurement options.",
         "Next: Let's narrow down to the 3-5 best key results."),
        ("When starting key results...", "Brainstorm all possible ways to measure success",
         "Creative thinking and options"),
        _REWARD, "Welcome every idea before narrowing down",
    ),
    _checkpoint(
        "kr_selection", _K, 2, "Key Results Selected",
        "Choose 3-5 most important metrics",
        [
            Criterion("3-5 key results identified", _kr_selection),
            Criterion("Collectively comprehensive"),
            Criterion("Each independent"),
        ],
        _EXPLICIT,
        (_MODERATE, "✅ Excellent selection! These KRs comprehensively measure your objective.",
         "Next: Let's make each KR specific and measurable."),
        ("When choosing key results...", "Select 3-5 that collectively measure success",
         "Focus and comprehensive coverage"),
        _NEUTRAL, "The user owns the final selection",
    ),
    _checkpoint(
        "kr_specificity", _K, 3, "Specificity Achieved",
        "Each KR has baseline, target, and metric definition",
        [
            Criterion("Baseline values established", _mentions(
                "Baseline mentioned", "currently", "baseline", "starting", "from", "today")),
            Criterion("Target values defined", _mentions(
                "Target mentioned", "target", "goal", "to", "reach", "achieve")),
            Criterion("Measurement method clear", _mentions(
                "Measurement method discussed", "measure", "track", "calculate", "count",
                "monitor")),
        ],
        _INFERRED,
        (_MODERATE, "✅ Perfect! Your KRs are specific and measurable.",
         "Next: Quality check to ensure KRs are strong."),
        ("When writing a key result...", "Define baseline, target, and how to measure",
         "Clarity and trackability"),
        _NEUTRAL, "Make the measurement path predictable",
    ),
    _checkpoint(
        "kr_quality", _K, 4, "Quality Validated",
        "All KRs pass quality standards",
        [
            Criterion("Each KR is quantitative"),
            Criterion("KRs are independent"),
            Criterion("Collectively comprehensive"),
        ],
        _INFERRED,
        (_MODERATE, "✅ Excellent! Your key results meet quality standards.",
         "Next: Final anti-pattern check before completion."),
        ("When evaluating key results...", "Check: Quantitative? Independent? Comprehensive?",
         "Confidence in quality"),
        _REWARD, "Apply the same quality bar to every key result",
    ),
    _checkpoint(
        "kr_finalized", _K, 5, "Key Results Finalized",
        "All KRs approved and ready",
        [
            Criterion("User confirms satisfaction", _mentions(
                "User confirmation provided", *_CONFIRMATIONS, "done")),
            Criterion("All KRs score 7.5+ quality"),
            Criterion("Ready for validation phase"),
        ],
        _EXPLICIT,
        (_ENTHUSIASTIC, "🎉 Amazing! Your complete OKR is crafted and ready!",
         "Next Phase: Validation - final review and export."),
        ("When KRs feel complete...", "Confirm readiness for final validation",
         "Achievement and momentum"),
        _REWARD, "Recognise the work that went into the full OKR",
    ),
    # Validation
    _checkpoint(
        "validation_review", _V, 1, "Final Review Complete",
        "Comprehensive quality assessment performed",
        [
            Criterion("Objective quality confirmed"),
            Criterion("All KRs quality confirmed"),
            Criterion("No anti-patterns present"),
        ],
        _INFERRED,
        (_MODERATE, "✅ Great! Your OKR passes all quality checks.",
         "Next: Stakeholder alignment check."),
        ("Before finalizing OKRs...", "Run comprehensive quality review",
         "Confidence and thoroughness"),
        _NEUTRAL, "Be transparent about every check performed",
    ),
    _checkpoint(
        "validation_alignment", _V, 2, "Alignment Confirmed",
        "Stakeholder and organizational alignment verified",
        [
            Criterion("Stakeholders identified", _mentions(
                "Stakeholders mentioned", "stakeholder", "partner", "team", "leadership",
                "manager", "executive")),
            Criterion("Alignment strategy discussed", _mentions(
                "Alignment discussed", "align", "buy-in", "support", "agreement", "share with")),
            Criterion("Potential objections addressed", _mentions(
                "Potential objections addressed", "concern", "objection", "pushback",
                "resistance", "question")),
        ],
        _EXPLICIT,
        (_MODERATE, "✅ Excellent! You've thought through stakeholder alignment.",
         "Next: Export your OKR and you're done!"),
        ("Before sharing OKRs...", "Consider stakeholder alignment and objections",
         "Preparedness and confidence"),
        _NEUTRAL, "Frame stakeholders as allies rather than judges",
    ),
    _checkpoint(
        "validation_export", _V, 3, "OKR Exported",
        "Final OKR exported and session completed",
        [
            Criterion("Export format chosen", _mentions(
                "Export format discussed", "export", "download", "save", "format", "share",
                "pdf", "json", "csv", "markdown", "text")),
            Criterion("OKR exported successfully"),
            Criterion("User satisfaction confirmed", _mentions(
                "User satisfaction confirmed", "satisfied", "happy", "good", "done",
                "complete", "finished")),
        ],
        _EXPLICIT,
        (_ENTHUSIASTIC, "🎉 Congratulations! You've created a high-quality OKR! 🎯",
         "You're ready to share and track your OKR. Great work!"),
        ("When OKR is finalized...", "Export and share with stakeholders",
         "Achievement and impact"),
        _REWARD, "Close with recognition of what they built",
    ),
)

_DEFINITIONS_BY_ID = {definition.id: definition for definition in CHECKPOINT_CATALOGUE}


def get_checkpoint_definition(checkpoint_id: str) -> Optional[CheckpointDefinition]:
    """Look up a checkpoint definition by id."""
    return _DEFINITIONS_BY_ID.get(checkpoint_id)


def get_checkpoints_for_phase(phase: ConversationPhase) -> list[CheckpointDefinition]:
    """Checkpoint definitions for a phase, in sequence order."""
    return sorted(
        (d for d in CHECKPOINT_CATALOGUE if d.phase == phase),
        key=lambda d: d.sequence_order,
    )


# =============================================================================
# Tracker State
# =============================================================================

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class CheckpointState:
    """Progress on one checkpoint within a session."""
    id: str
    name: str
    sequence_order: int
    is_complete: bool = False
    completion_confidence: float = 0.0
    evidence_collected: list[str] = field(default_factory=list)
    completed_at: Optional[str] = None
    streak_count: int = 0

    @property
    def definition(self) -> Optional[CheckpointDefinition]:
        return get_checkpoint_definition(self.id)

    def reset(self) -> None:
        self.is_complete = False
        self.completion_confidence = 0.0
        self.evidence_collected = []
        self.completed_at = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sequence_order": self.sequence_order,
            "is_complete": self.is_complete,
            "completion_confidence": self.completion_confidence,
            "evidence_collected": list(self.evidence_collected),
            "completed_at": self.completed_at,
            "streak_count": self.streak_count,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CheckpointState":
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            sequence_order=data.get("sequence_order", 0),
            is_complete=data.get("is_complete", False),
            completion_confidence=data.get("completion_confidence", 0.0),
            evidence_collected=list(data.get("evidence_collected", [])),
            completed_at=data.get("completed_at"),
            streak_count=data.get("streak_count", 0),
        )


@dataclass
class BacktrackRecord:
    """A step back from one checkpoint to an earlier one."""
    from_checkpoint: str
    to_checkpoint: str
    reason: str
    positive_reframe: str
    learning_opportunity: str
    autonomy_preservation: str
    timestamp: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "BacktrackRecord":
        return cls(
            from_checkpoint=data["from_checkpoint"],
            to_checkpoint=data["to_checkpoint"],
            reason=data.get("reason", ""),
            positive_reframe=data.get("positive_reframe", ""),
            learning_opportunity=data.get("learning_opportunity", ""),
            autonomy_preservation=data.get("autonomy_preservation", ""),
            timestamp=data.get("timestamp") or _now(),
        )


@dataclass
class CheckpointProgressTracker:
    """
    Checkpoint progress for one session and phase.

    completed_checkpoints always equals the number of checkpoints with
    is_complete set, and completion_percentage is derived from it.
    """
    session_id: str
    current_phase: ConversationPhase
    checkpoints: list[CheckpointState] = field(default_factory=list)
    completed_checkpoints: int = 0
    total_checkpoints: int = 0
    completion_percentage: float = 0.0
    current_streak: int = 0
    longest_streak: int = 0
    backtracking_count: int = 0
    backtracking_history: list[BacktrackRecord] = field(default_factory=list)
    started_at: str = field(default_factory=_now)

    def get(self, checkpoint_id: str) -> Optional[CheckpointState]:
        for checkpoint in self.checkpoints:
            if checkpoint.id == checkpoint_id:
                return checkpoint
        return None

    def incomplete(self) -> list[CheckpointState]:
        return sorted(
            (cp for cp in self.checkpoints if not cp.is_complete),
            key=lambda cp: cp.sequence_order,
        )

    def recalculate(self) -> None:
        """Re-derive the completion count and percentage from checkpoint flags."""
        self.total_checkpoints = len(self.checkpoints)
        self.completed_checkpoints = sum(1 for cp in self.checkpoints if cp.is_complete)
        if self.total_checkpoints:
            self.completion_percentage = self.completed_checkpoints / self.total_checkpoints * 100
        else:
            self.completion_percentage = 0.0

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "current_phase": self.current_phase.value,
            "checkpoints": [cp.to_dict() for cp in self.checkpoints],
            "completed_checkpoints": self.completed_checkpoints,
            "total_checkpoints": self.total_checkpoints,
            "completion_percentage": self.completion_percentage,
            "current_streak": self.current_streak,
            "longest_streak": self.longest_streak,
            "backtracking_count": self.backtracking_count,
            "backtracking_history": [b.to_dict() for b in self.backtracking_history],
            "started_at": self.started_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CheckpointProgressTracker":
        tracker = cls(
            session_id=data["session_id"],
            current_phase=ConversationPhase(data.get("current_phase", ConversationPhase.DISCOVERY.value)),
            checkpoints=[CheckpointState.from_dict(cp) for cp in data.get("checkpoints", [])],
            current_streak=data.get("current_streak", 0),
            longest_streak=data.get("longest_streak", 0),
            backtracking_count=data.get("backtracking_count", 0),
            backtracking_history=[
                BacktrackRecord.from_dict(b) for b in data.get("backtracking_history", [])
            ],
            started_at=data.get("started_at") or _now(),
        )
        tracker.recalculate()
        return tracker


# =============================================================================
# Checkpoint Manager
# =============================================================================

class CheckpointManager:
    """
    Detects, completes and rolls back checkpoints on a tracker.

    The manager holds no per-session state; trackers are passed in and
    mutated in place, except on phase transition where a new tracker is
    returned.
    """

    def initialize(
        self,
        session_id: str,
        phase: ConversationPhase = ConversationPhase.DISCOVERY,
    ) -> CheckpointProgressTracker:
        """Build a tracker with the fixed checkpoint list for a phase."""
        checkpoints = [
            CheckpointState(id=d.id, name=d.name, sequence_order=d.sequence_order)
            for d in get_checkpoints_for_phase(phase)
        ]
        tracker = CheckpointProgressTracker(
            session_id=session_id,
            current_phase=phase,
            checkpoints=checkpoints,
        )
        tracker.recalculate()
        return tracker

    def evaluate_checkpoint(
        self,
        message: str,
        definition: CheckpointDefinition,
        neural_state: Optional[NeuralReadinessState] = None,
    ) -> tuple[bool, float, list[str]]:
        """
        Score a message against one checkpoint's criteria.

        Returns:
            (criteria threshold met, confidence, evidence)
        """
        lowered = (message or "").lower()
        evidence = []
        for criterion in definition.criteria:
            found = criterion.evaluate(lowered)
            if found:
                evidence.append(found)

        confidence = len(evidence) / len(definition.criteria) if definition.criteria else 0.0
        if not definition.is_brain_state_optimal(neural_state or NeuralReadinessState()):
            confidence *= SUBOPTIMAL_STATE_FACTOR

        return len(evidence) >= definition.completion_threshold, confidence, evidence

    def detect_completion(
        self,
        message: str,
        tracker: CheckpointProgressTracker,
        neural_state: Optional[NeuralReadinessState] = None,
    ) -> list[CheckpointState]:
        """
        Detect which checkpoint a user message completes.

        Incomplete checkpoints are evaluated in sequence order and the first
        one that qualifies is completed. At most one checkpoint completes per
        message.
        """
        if not message or not message.strip():
            return []

        for checkpoint in tracker.incomplete():
            definition = checkpoint.definition
            if definition is None:
                continue

            met, confidence, evidence = self.evaluate_checkpoint(message, definition, neural_state)
            logger.debug(
                "Checkpoint %s: met=%s confidence=%.2f evidence=%s",
                checkpoint.id, met, confidence, evidence,
            )
            if met and confidence >= COMPLETION_CONFIDENCE_THRESHOLD:
                self._mark_complete(tracker, checkpoint, confidence, evidence)
                return [checkpoint]

        return []

    def complete_checkpoint(
        self,
        tracker: CheckpointProgressTracker,
        checkpoint_id: str,
        confidence: float,
        evidence: list[str],
    ) -> Optional[CheckpointState]:
        """
        Complete a checkpoint directly (for assistant-inferred completions).

        Returns None when the checkpoint is unknown or already complete.
        """
        checkpoint = tracker.get(checkpoint_id)
        if checkpoint is None or checkpoint.is_complete:
            return None
        self._mark_complete(tracker, checkpoint, confidence, evidence)
        return checkpoint

    def _mark_complete(
        self,
        tracker: CheckpointProgressTracker,
        checkpoint: CheckpointState,
        confidence: float,
        evidence: list[str],
    ) -> None:
        checkpoint.is_complete = True
        checkpoint.completed_at = _now()
        checkpoint.completion_confidence = confidence
        checkpoint.evidence_collected = list(evidence)
        checkpoint.streak_count += 1

        tracker.recalculate()
        tracker.current_streak += 1
        tracker.longest_streak = max(tracker.longest_streak, tracker.current_streak)
        logger.info(
            "Session %s completed checkpoint %s (%d/%d)",
            tracker.session_id, checkpoint.id,
            tracker.completed_checkpoints, tracker.total_checkpoints,
        )

    def transition_to_phase(
        self,
        tracker: CheckpointProgressTracker,
        new_phase: ConversationPhase,
    ) -> CheckpointProgressTracker:
        """
        Replace the tracker's checkpoint set with the new phase's.

        Completion state starts from zero; streaks and backtracking history
        belong to the session and carry over.
        """
        fresh = self.initialize(tracker.session_id, new_phase)
        fresh.current_streak = tracker.current_streak
        fresh.longest_streak = tracker.longest_streak
        fresh.backtracking_count = tracker.backtracking_count
        fresh.backtracking_history = list(tracker.backtracking_history)
        fresh.started_at = tracker.started_at
        logger.info(
            "Session %s moved from %s to %s",
            tracker.session_id, tracker.current_phase.value, new_phase.value,
        )
        return fresh

    def handle_backtracking(
        self,
        tracker: CheckpointProgressTracker,
        from_checkpoint_id: str,
        to_checkpoint_id: str,
        reason: Union[BacktrackReason, str],
        neural_state: Optional[NeuralReadinessState] = None,
    ) -> Optional[str]:
        """
        Reopen a completed checkpoint so the user can revisit earlier ground.

        Unmarks from_checkpoint_id, resets the streak and returns a
        reframing message that praises the reconsideration. Returns None
        (and leaves the tracker untouched) when either id is unknown or the
        checkpoint being left is not complete.
        """
        from_checkpoint = tracker.get(from_checkpoint_id)
        to_checkpoint = tracker.get(to_checkpoint_id)
        if from_checkpoint is None or to_checkpoint is None:
            return None
        if not from_checkpoint.is_complete:
            return None

        reason_value = reason.value if isinstance(reason, BacktrackReason) else str(reason)
        try:
            positive = _POSITIVE_REFRAMES[BacktrackReason(reason_value)]
        except ValueError:
            positive = _DEFAULT_REFRAME

        target = to_checkpoint.definition
        description = target.description.lower() if target else to_checkpoint.name.lower()
        learning = f'Revisiting "{to_checkpoint.name}" will help us {description}.'
        autonomy = _AUTONOMY_PROMPT
        if neural_state is not None and neural_state.is_threatened():
            autonomy = f"There's no rush here. {_AUTONOMY_PROMPT}"

        from_checkpoint.reset()
        tracker.recalculate()
        tracker.current_streak = 0
        tracker.backtracking_count += 1
        tracker.backtracking_history.append(BacktrackRecord(
            from_checkpoint=from_checkpoint_id,
            to_checkpoint=to_checkpoint_id,
            reason=reason_value,
            positive_reframe=positive,
            learning_opportunity=learning,
            autonomy_preservation=autonomy,
        ))
        logger.info(
            "Session %s backtracked %s -> %s (%s)",
            tracker.session_id, from_checkpoint_id, to_checkpoint_id, reason_value,
        )
        return f"{positive}\n\n{learning}\n\n{autonomy}"

    def progress_visualization(self, tracker: CheckpointProgressTracker) -> str:
        """Render phase progress as a small bar, e.g. 'Discovery: ▓▓▓▒▒ (3/5)'."""
        done = tracker.completed_checkpoints
        remaining = tracker.total_checkpoints - done
        label = _PHASE_LABELS[tracker.current_phase]
        return f"{label}: {'▓' * done}{'▒' * remaining} ({done}/{tracker.total_checkpoints})"

    def generate_celebration(
        self,
        checkpoint: CheckpointState,
        tracker: CheckpointProgressTracker,
    ) -> str:
        """Celebration text for a just-completed checkpoint."""
        definition = checkpoint.definition
        if definition is None:
            return ""
        celebration = definition.celebration

        message = f"{celebration.message}\n\n{self.progress_visualization(tracker)}"
        if tracker.current_streak >= STREAK_BADGE_MIN:
            message += f"\n🔥 {tracker.current_streak}-checkpoint streak!"
        message += f"\n\n{celebration.next_step_preview}"
        return message

    def current_checkpoint(self, tracker: CheckpointProgressTracker) -> Optional[CheckpointState]:
        """First incomplete checkpoint in sequence order."""
        remaining = tracker.incomplete()
        return remaining[0] if remaining else None

    def is_phase_complete(self, tracker: CheckpointProgressTracker) -> bool:
        return tracker.total_checkpoints > 0 and tracker.completed_checkpoints == tracker.total_checkpoints

    def get_progress_summary(self, tracker: CheckpointProgressTracker) -> str:
        """Markdown progress summary for prompt composition."""
        phase_name = tracker.current_phase.value.replace("_", " ").upper()
        summary = f"**{phase_name}** Progress: {round(tracker.completion_percentage)}%"

        current = self.current_checkpoint(tracker)
        if current is not None:
            summary += f"\n📍 Current: {current.name}"
            summary += f"\n{tracker.completed_checkpoints}/{tracker.total_checkpoints} checkpoints complete"

        if tracker.current_streak >= STREAK_BADGE_MIN:
            summary += f"\n🔥 {tracker.current_streak}-checkpoint streak!"

        return summary


# =============================================================================
# Convenience Functions
# =============================================================================

def create_checkpoint_manager() -> CheckpointManager:
    """Create a CheckpointManager instance."""
    return CheckpointManager()
