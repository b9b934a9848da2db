"""
User Context
============

Explicit, versioned description of the person being coached. Every field the
detectors read is declared here; unknown keys in stored payloads are ignored.

Usage:
    from okrforge.context import UserContext

    ctx = UserContext(industry="Technology", function="Engineering Manager")
    ctx.has_resistance("scope_elevation_resistance")
"""

from dataclasses import dataclass, field, asdict, fields
from typing import Any, Optional

USER_CONTEXT_VERSION = 1


@dataclass
class UserContext:
    """What the coach knows about the user's organisation and preferences."""
    industry: Optional[str] = None
    function: Optional[str] = None
    company_size: Optional[str] = None
    team_size: Optional[int] = None
    resistance_patterns: list[str] = field(default_factory=list)
    schema_version: int = USER_CONTEXT_VERSION

    def has_resistance(self, pattern_id: str) -> bool:
        """Check whether the user has previously resisted a given intervention."""
        return pattern_id in self.resistance_patterns

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Optional[dict[str, Any]]) -> "UserContext":
        """Create UserContext from dictionary, ignoring unrecognised keys."""
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in data.items() if k in known}
        values["resistance_patterns"] = list(values.get("resistance_patterns") or [])
        return cls(**values)
