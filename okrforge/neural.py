"""
Neural Readiness
================

SCARF model bookkeeping (Status, Certainty, Autonomy, Relatedness, Fairness)
and the emotional state derived from it. The checkpoint tracker and the
altitude tracker both read a NeuralReadinessState to decide how gently to
intervene.

Usage:
    from okrforge.neural import NeuralReadinessState, ScarfLevel

    state = NeuralReadinessState.from_scarf({"certainty": ScarfLevel.THREATENED})
    state.is_threatened()
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional


class EmotionalState(Enum):
    """Overall approach/avoid state of the user."""
    REWARD = "reward"
    THREAT = "threat"
    NEUTRAL = "neutral"


class ScarfLevel(Enum):
    """How well one SCARF dimension is currently being served."""
    ELEVATED = "elevated"
    MAINTAINED = "maintained"
    NEUTRAL = "neutral"
    THREATENED = "threatened"


SCARF_DIMENSIONS = ("status", "certainty", "autonomy", "relatedness", "fairness")

# Certainty and autonomy weigh most on learning capacity
_DIMENSION_WEIGHTS = {
    "status": 0.2,
    "certainty": 0.3,
    "autonomy": 0.25,
    "relatedness": 0.15,
    "fairness": 0.1,
}

_LEVEL_SCORES = {
    ScarfLevel.ELEVATED: 1.0,
    ScarfLevel.MAINTAINED: 0.8,
    ScarfLevel.NEUTRAL: 0.5,
    ScarfLevel.THREATENED: 0.2,
}


@dataclass
class ScarfState:
    """Current level of each SCARF dimension."""
    status: ScarfLevel = ScarfLevel.NEUTRAL
    certainty: ScarfLevel = ScarfLevel.NEUTRAL
    autonomy: ScarfLevel = ScarfLevel.NEUTRAL
    relatedness: ScarfLevel = ScarfLevel.NEUTRAL
    fairness: ScarfLevel = ScarfLevel.NEUTRAL

    def levels(self) -> dict[str, ScarfLevel]:
        return {name: getattr(self, name) for name in SCARF_DIMENSIONS}

    def to_dict(self) -> dict:
        return {name: level.value for name, level in self.levels().items()}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ScarfState":
        data = data or {}
        return cls(**{
            name: ScarfLevel(data.get(name, ScarfLevel.NEUTRAL.value))
            for name in SCARF_DIMENSIONS
        })


def calculate_learning_capacity(scarf: ScarfState) -> int:
    """Weighted SCARF score on a 0-100 scale."""
    total = sum(
        _LEVEL_SCORES[level] * _DIMENSION_WEIGHTS[name]
        for name, level in scarf.levels().items()
    )
    return round(total * 100)


def derive_emotional_state(scarf: ScarfState) -> EmotionalState:
    """Two threatened dimensions tip into threat; three elevated ones into reward."""
    levels = list(scarf.levels().values())
    if levels.count(ScarfLevel.THREATENED) >= 2:
        return EmotionalState.THREAT
    if levels.count(ScarfLevel.ELEVATED) >= 3:
        return EmotionalState.REWARD
    return EmotionalState.NEUTRAL


@dataclass
class NeuralReadinessState:
    """Snapshot of the user's readiness to learn."""
    current_state: EmotionalState = EmotionalState.NEUTRAL
    scarf: ScarfState = field(default_factory=ScarfState)
    learning_capacity: int = 50
    last_updated: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @classmethod
    def from_scarf(cls, levels: Optional[dict[str, ScarfLevel]] = None) -> "NeuralReadinessState":
        """Build a readiness snapshot, deriving state and capacity from SCARF levels."""
        scarf = ScarfState(**(levels or {}))
        return cls(
            current_state=derive_emotional_state(scarf),
            scarf=scarf,
            learning_capacity=calculate_learning_capacity(scarf),
        )

    def is_threatened(self) -> bool:
        return self.current_state == EmotionalState.THREAT

    def to_dict(self) -> dict:
        return {
            "current_state": self.current_state.value,
            "scarf": self.scarf.to_dict(),
            "learning_capacity": self.learning_capacity,
            "last_updated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "NeuralReadinessState":
        if not data:
            return cls()
        return cls(
            current_state=EmotionalState(data.get("current_state", EmotionalState.NEUTRAL.value)),
            scarf=ScarfState.from_dict(data.get("scarf")),
            learning_capacity=data.get("learning_capacity", 50),
            last_updated=data.get("last_updated") or datetime.now(timezone.utc).isoformat(),
        )
