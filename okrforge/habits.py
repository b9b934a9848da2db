"""
Habit Formation Tracking
========================

Counts repeated coaching behaviours (outcome-focused phrasing, completed
checkpoints, stable scope) and promotes a behaviour to a habit once it has
been seen three times. Habits gain automaticity with repetition and move
through forming -> developing -> automatic stages.

Usage:
    from okrforge.habits import HabitManager, HabitTracker

    manager = HabitManager()
    tracker = HabitTracker(session_id="session-1")
    manager.record_behavior(tracker, "outcome_language")
    manager.get_progress(tracker)
"""

import logging
import uuid
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone, timedelta
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)

HABIT_THRESHOLD = 3
CELEBRATION_WINDOW = timedelta(seconds=60)


class HabitStage(Enum):
    FORMING = "forming"
    DEVELOPING = "developing"
    AUTOMATIC = "automatic"


class AutomaticityLevel(Enum):
    """Categorical automaticity used when reporting on checkpoint habits."""
    CONSCIOUS_EFFORT = "conscious_effort"
    OCCASIONAL_AUTOMATIC = "occasional_automatic"
    MOSTLY_AUTOMATIC = "mostly_automatic"
    FULLY_AUTOMATIC = "fully_automatic"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class BehaviorPattern:
    """A behaviour observed at least once."""
    type: str
    occurrences: int = 1
    first_occurrence: str = field(default_factory=_now)
    last_occurrence: str = field(default_factory=_now)
    context: dict[str, Any] = field(default_factory=dict)


@dataclass
class HabitMilestone:
    name: str
    timestamp: str = field(default_factory=_now)
    reached: bool = True


@dataclass
class Habit:
    """A behaviour repeated often enough to count as a habit."""
    id: str
    type: str
    stage: HabitStage
    automaticity: float
    milestones: list[HabitMilestone] = field(default_factory=list)
    created_at: str = field(default_factory=_now)
    last_reinforced: str = field(default_factory=_now)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["stage"] = self.stage.value
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Habit":
        return cls(
            id=data["id"],
            type=data["type"],
            stage=HabitStage(data.get("stage", HabitStage.FORMING.value)),
            automaticity=data.get("automaticity", 0.0),
            milestones=[HabitMilestone(**m) for m in data.get("milestones", [])],
            created_at=data.get("created_at") or _now(),
            last_reinforced=data.get("last_reinforced") or _now(),
        )


@dataclass
class HabitInsight:
    type: str  # emerging_pattern, approaching_milestone
    message: str
    suggestion: str
    habit_id: Optional[str] = None
    actionable: bool = True


@dataclass
class HabitProgress:
    total_habits: int
    forming_habits: int
    developing_habits: int
    automatic_habits: int
    total_patterns: int
    average_automaticity: float
    recent_habits: list[Habit]


@dataclass
class HabitTracker:
    """Behaviour patterns and habits for one session."""
    session_id: str
    patterns: list[BehaviorPattern] = field(default_factory=list)
    habits: list[Habit] = field(default_factory=list)

    def find_pattern(self, behavior_type: str) -> Optional[BehaviorPattern]:
        return next((p for p in self.patterns if p.type == behavior_type), None)

    def find_habit(self, behavior_type: str) -> Optional[Habit]:
        return next((h for h in self.habits if h.type == behavior_type), None)

    def to_dict(self) -> dict:
        return {
            "session_id": self.session_id,
            "patterns": [asdict(p) for p in self.patterns],
            "habits": [h.to_dict() for h in self.habits],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HabitTracker":
        return cls(
            session_id=data["session_id"],
            patterns=[BehaviorPattern(**p) for p in data.get("patterns", [])],
            habits=[Habit.from_dict(h) for h in data.get("habits", [])],
        )


def calculate_automaticity(occurrences: int) -> float:
    """Automaticity score (0-1) for a number of repetitions."""
    if occurrences >= 30:
        return 1.0
    if occurrences >= 20:
        return 0.9
    if occurrences >= 10:
        return 0.7
    if occurrences >= 5:
        return 0.5
    return occurrences * 0.1


def stage_for(automaticity: float) -> HabitStage:
    if automaticity >= 0.9:
        return HabitStage.AUTOMATIC
    if automaticity >= 0.5:
        return HabitStage.DEVELOPING
    return HabitStage.FORMING


def calculate_habit_automaticity(repetitions: int, consistency: float) -> AutomaticityLevel:
    """
    Categorise automaticity from repetition count and consistency (0-1).

    Both thresholds must be passed to reach a level.
    """
    if repetitions < 10 or consistency < 0.5:
        return AutomaticityLevel.CONSCIOUS_EFFORT
    if repetitions < 30 or consistency < 0.7:
        return AutomaticityLevel.OCCASIONAL_AUTOMATIC
    if repetitions < 50 or consistency < 0.85:
        return AutomaticityLevel.MOSTLY_AUTOMATIC
    return AutomaticityLevel.FULLY_AUTOMATIC


class HabitManager:
    """Records behaviours on a HabitTracker and reports on habit formation."""

    def record_behavior(
        self,
        tracker: HabitTracker,
        behavior_type: str,
        context: Optional[dict[str, Any]] = None,
    ) -> Optional[Habit]:
        """
        Record one occurrence of a behaviour.

        Returns:
            The habit formed or reinforced by this occurrence, if any
        """
        pattern = tracker.find_pattern(behavior_type)
        if pattern is None:
            tracker.patterns.append(BehaviorPattern(type=behavior_type, context=dict(context or {})))
            logger.debug("Recorded new behaviour %s for %s", behavior_type, tracker.session_id)
            return None

        pattern.occurrences += 1
        pattern.last_occurrence = _now()
        if pattern.occurrences < HABIT_THRESHOLD:
            return None
        return self._promote(tracker, pattern)

    def _promote(self, tracker: HabitTracker, pattern: BehaviorPattern) -> Habit:
        habit = tracker.find_habit(pattern.type)
        if habit is None:
            habit = Habit(
                id=f"habit_{uuid.uuid4().hex[:12]}",
                type=pattern.type,
                stage=HabitStage.FORMING,
                automaticity=calculate_automaticity(pattern.occurrences),
                milestones=[
                    HabitMilestone("First Occurrence", pattern.first_occurrence),
                    HabitMilestone("Pattern Established", pattern.last_occurrence),
                ],
                created_at=pattern.first_occurrence,
                last_reinforced=pattern.last_occurrence,
            )
            tracker.habits.append(habit)
            logger.info("Habit formed for %s: %s", tracker.session_id, habit.type)
            return habit

        habit.automaticity = calculate_automaticity(pattern.occurrences)
        habit.last_reinforced = pattern.last_occurrence
        new_stage = stage_for(habit.automaticity)
        if new_stage != habit.stage:
            habit.stage = new_stage
            habit.milestones.append(HabitMilestone(f"Stage: {new_stage.value}"))
            logger.info("Habit %s reached %s stage", habit.type, new_stage.value)
        return habit

    def get_progress(self, tracker: HabitTracker) -> HabitProgress:
        habits = tracker.habits
        by_stage = {stage: sum(1 for h in habits if h.stage == stage) for stage in HabitStage}
        return HabitProgress(
            total_habits=len(habits),
            forming_habits=by_stage[HabitStage.FORMING],
            developing_habits=by_stage[HabitStage.DEVELOPING],
            automatic_habits=by_stage[HabitStage.AUTOMATIC],
            total_patterns=len(tracker.patterns),
            average_automaticity=(
                sum(h.automaticity for h in habits) / len(habits) if habits else 0.0
            ),
            recent_habits=habits[-3:],
        )

    def should_celebrate(
        self,
        tracker: HabitTracker,
        now: Optional[datetime] = None,
    ) -> tuple[bool, Optional[str]]:
        """Check whether a habit milestone was reached within the last minute."""
        now = now or datetime.now(timezone.utc)

        def recent(habit: Habit) -> bool:
            if not habit.milestones:
                return False
            reached = datetime.fromisoformat(habit.milestones[-1].timestamp)
            return now - reached < CELEBRATION_WINDOW

        automatic = [h for h in tracker.habits if h.stage == HabitStage.AUTOMATIC]
        if len(automatic) == 1 and recent(automatic[0]):
            return True, f"First habit reached automatic stage: {automatic[0].type}"

        recent_count = sum(1 for h in tracker.habits if recent(h))
        if recent_count:
            return True, f"{recent_count} new milestone(s) reached"
        return False, None

    def get_insights(self, tracker: HabitTracker) -> list[HabitInsight]:
        insights = []
        for habit in tracker.habits:
            percent = f"{habit.automaticity * 100:.0f}%"
            if habit.stage == HabitStage.FORMING and habit.automaticity >= 0.4:
                insights.append(HabitInsight(
                    type="approaching_milestone",
                    habit_id=habit.id,
                    message=f'Habit "{habit.type}" is close to developing stage ({percent} automaticity)',
                    suggestion="Continue reinforcing this behavior to reach developing stage",
                ))
            elif habit.stage == HabitStage.DEVELOPING and habit.automaticity >= 0.8:
                insights.append(HabitInsight(
                    type="approaching_milestone",
                    habit_id=habit.id,
                    message=f'Habit "{habit.type}" is close to automatic stage ({percent} automaticity)',
                    suggestion="A few more repetitions will make this habit automatic",
                ))

        for pattern in tracker.patterns:
            if pattern.occurrences == HABIT_THRESHOLD - 1:
                insights.append(HabitInsight(
                    type="emerging_pattern",
                    message=f'Behavior "{pattern.type}" observed twice - one more occurrence will form a habit',
                    suggestion="Consider reinforcing this positive behavior",
                ))
        return insights
