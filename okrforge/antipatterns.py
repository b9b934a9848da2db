"""
Anti-Pattern Detection and Reframing
====================================

Rule-based classifier that scores a user message against a catalogue of
common OKR-writing mistakes (activity-focused language, binary goals, vanity
metrics, ...) and picks a scripted Socratic reframing strategy for the most
severe match.

The catalogue is a data file (okrforge/data/antipatterns.json). Each rule is
a plain record: regular expressions, keyword triggers, severity, the
strategy it uses and the name of a contextual predicate looked up in
PREDICATES. Contextual predicates are the only code in a rule.

Usage:
    from okrforge.antipatterns import AntiPatternDetector

    detector = AntiPatternDetector()
    result = detector.detect_patterns("Launch the new mobile app", context)
    if result.detected:
        reframing = detector.generate_reframing_response(result, text, context)
        print(reframing.reframed_question)
"""

import json
import logging
import re
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional

from okrforge.context import UserContext

logger = logging.getLogger(__name__)

DEFAULT_CATALOGUE_PATH = Path(__file__).parent / "data" / "antipatterns.json"

# Scoring constants. Changing any of these changes which patterns fire.
REGEX_MATCH_WEIGHT = 0.25
REGEX_MATCH_CAP = 0.7
KEYWORD_MATCH_WEIGHT = 0.18
KEYWORD_MATCH_CAP = 0.45
CONTEXT_BOOST = 0.4
CONTEXT_FLOOR = 0.6
DETECTION_THRESHOLD = 0.3
REFRAMING_CONFIDENCE = 0.8
# Post-reframing confidence must fall below this share of the original
SUCCESS_CONFIDENCE_RATIO = 0.7
SUCCESS_SCORE_GAIN = 10

FALLBACK_QUESTION = "Let's step back. What change or improvement will people see when this succeeds?"


class Severity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    @property
    def bonus(self) -> float:
        return _SEVERITY_BONUS[self]


_SEVERITY_RANK = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}

_SEVERITY_BONUS = {
    Severity.LOW: 0.0,
    Severity.MEDIUM: 0.05,
    Severity.HIGH: 0.10,
    Severity.CRITICAL: 0.15,
}


class InterventionType(Enum):
    """Kind of coaching move a detected pattern calls for."""
    ACTIVITY_TO_OUTCOME = "activity_to_outcome"
    METRIC_EDUCATION = "metric_education"
    AMBITION_CALIBRATION = "ambition_calibration"
    CLARITY_IMPROVEMENT = "clarity_improvement"
    INSPIRATION_BOOST = "inspiration_boost"
    ALIGNMENT_CHECK = "alignment_check"
    FEASIBILITY_REALITY_CHECK = "feasibility_reality_check"
    ALTITUDE_CORRECTION = "altitude_correction"
    SCARF_SAFETY_BUILDING = "scarf_safety_building"


class Technique(Enum):
    FIVE_WHYS = "five_whys"
    OUTCOME_TRANSFORMATION = "outcome_transformation"
    VALUE_EXPLORATION = "value_exploration"
    QUESTION_CASCADE = "question_cascade"
    EXAMPLE_DRIVEN = "example_driven"


_FOLLOW_UP_QUESTIONS = {
    InterventionType.ACTIVITY_TO_OUTCOME: [
        "What will be different when this is done?",
        "Who benefits from this change?",
        "How will you know it's working?",
    ],
    InterventionType.METRIC_EDUCATION: [
        "What business result does this metric indicate?",
        "How does this connect to revenue or customer value?",
    ],
    InterventionType.AMBITION_CALIBRATION: [
        "How could you exceed normal expectations here?",
        "What would make this feel like a real achievement?",
    ],
    InterventionType.CLARITY_IMPROVEMENT: [
        "Can you be more specific about what success looks like?",
        "What exact numbers would represent success?",
    ],
    InterventionType.ALIGNMENT_CHECK: [
        "Which parts of this outcome can your team directly influence?",
        "Who else needs to be involved, and what would you ask of them?",
    ],
    InterventionType.FEASIBILITY_REALITY_CHECK: [
        "What would your team do differently starting next week to move this?",
        "Which assumptions here are outside your control?",
    ],
}

_EXPECTED_OUTCOMES = {
    InterventionType.ACTIVITY_TO_OUTCOME: "User shifts from describing tasks to describing results and changes",
    InterventionType.METRIC_EDUCATION: "User connects metrics to business value and customer impact",
    InterventionType.AMBITION_CALIBRATION: "User raises ambition level with challenging but achievable targets",
    InterventionType.CLARITY_IMPROVEMENT: "User provides specific, measurable definitions of success",
    InterventionType.INSPIRATION_BOOST: "User articulates more inspiring and motivational objectives",
    InterventionType.ALIGNMENT_CHECK: "User demonstrates clear connection to organizational goals",
    InterventionType.FEASIBILITY_REALITY_CHECK: "User balances ambition with realistic constraints",
    InterventionType.ALTITUDE_CORRECTION: "User adjusts objective to appropriate organizational level",
    InterventionType.SCARF_SAFETY_BUILDING: "User demonstrates increased psychological safety and comfort",
}
_DEFAULT_EXPECTED_OUTCOME = "User provides more outcome-focused response"


# =============================================================================
# Contextual Predicates
# =============================================================================

# A predicate receives the original text and the optional user context and
# says whether the surrounding context confirms the lexical evidence.
Predicate = Callable[[str, Optional[UserContext]], bool]

PREDICATES: dict[str, Predicate] = {}


def predicate(name: str) -> Callable[[Predicate], Predicate]:
    """Register a contextual predicate under the name used in the catalogue."""
    def register(func: Predicate) -> Predicate:
        PREDICATES[name] = func
        return func
    return register


def _never(text: str, context: Optional[UserContext]) -> bool:
    return False


def _has(pattern: str, text: str) -> bool:
    return re.search(pattern, text, re.IGNORECASE) is not None


_NUMBERS = r"\b(\d+|by\s+\d|from\s+\d|to\s+\d|%|percent|points?)\b"
_COMPLETION = (
    r"\b(done|completed?|complete|finished?|finish|launched?|launch|shipped?|ship"
    r"|delivered?|deliver|implemented?|implement)\b"
)
_ACTION_WORDS = (
    r"\b(increas(?:e|ing)|improv(?:e|ing)|reduc(?:e|ing)|enhanc(?:e|ing)|optimiz(?:e|ing)"
    r"|achiev(?:e|ing)|grow(?:ing)?|expand(?:ing)?|boost(?:ing)?|mak(?:e|ing)|keep(?:ing)?"
    r"|be(?:ing|come|coming)?|establish(?:ing)?|creat(?:e|ing)|build(?:ing)?"
    r"|develop(?:ing)?|launch(?:ing)?)\b"
)
_EXTERNAL_ACTORS = r"\b(customers?|users?|clients?|market|partners?|regulators?|competitors?)\b"


@predicate("no_outcome_language")
def no_outcome_language(text: str, context: Optional[UserContext]) -> bool:
    return not _has(
        r"\b(increase|decrease|improve|reduce|enhance|achieve|reach|result|outcome|impact|benefit|value|change)\b",
        text,
    )


@predicate("binary_without_numbers")
def binary_without_numbers(text: str, context: Optional[UserContext]) -> bool:
    if _has(_NUMBERS, text):
        return False
    aspiration = _has(
        r"\b(achieve|attain|accomplish|reach|improve|enhance|optimize)\s+"
        r"(excellence|success|leadership|satisfaction|quality|performance)\b",
        text,
    )
    return aspiration or _has(_COMPLETION, text)


@predicate("no_business_context")
def no_business_context(text: str, context: Optional[UserContext]) -> bool:
    return not _has(
        r"\b(revenue|conversion|retention|satisfaction|value|business|customer|sales|profit|growth)\b",
        text,
    )


@predicate("no_stretch_language")
def no_stretch_language(text: str, context: Optional[UserContext]) -> bool:
    return not _has(
        r"\b(improve|increase|enhance|optimize|accelerate|transform|exceed|breakthrough|stretch|ambitious)\b",
        text,
    )


@predicate("too_many_goals")
def too_many_goals(text: str, context: Optional[UserContext]) -> bool:
    kr_count = len(re.findall(r"\b(key\s*result|kr)\b", text, re.IGNORECASE))
    metric_count = len(re.findall(r"\b(metric|measure|track|monitor)\b", text, re.IGNORECASE))
    actions = len(re.findall(_ACTION_WORDS, text, re.IGNORECASE))
    commas = text.count(",")
    return (actions >= 4 and commas >= 2) or actions >= 5 or kr_count > 5 or metric_count > 7


@predicate("no_specific_numbers")
def no_specific_numbers(text: str, context: Optional[UserContext]) -> bool:
    return not _has(r"\b\d+(\.\d+)?[%$]?\b|\bfrom\s+\d+|\bto\s+\d+|\bby\s+\d+", text)


@predicate("scope_resistance")
def scope_resistance(text: str, context: Optional[UserContext]) -> bool:
    if context is not None and context.has_resistance("scope_elevation_resistance"):
        return True
    resistance = _has(
        r"\b(no|not|can't|cannot|won't|shouldn't|don't|disagree|resist|oppose|against)\b", text
    )
    scope = _has(
        r"\b(company|corporate|organization|enterprise|strategic|executive|board|c-level|ceo|cto|cfo)\b",
        text,
    )
    boundary = _has(
        r"\b(my|our|just|only|within|limited|scope|authority|control|team|department|area)\b", text
    )
    return resistance and (scope or boundary)


@predicate("outside_sphere_of_influence")
def outside_sphere_of_influence(text: str, context: Optional[UserContext]) -> bool:
    dependency = _has(
        r"\b(if|when|assuming|provided|contingent|dependent|relies on|requires|needs|depends)\b", text
    )
    external = _has(
        r"\b(customer|user|market|client|partner|vendor|third party|external|other team|other department)\b",
        text,
    )
    control = _has(r"\b(will|must|should|chooses|decides|adopts|accepts|agrees|buys)\b", text)
    return dependency and external and control


@predicate("commitment_beyond_control")
def commitment_beyond_control(text: str, context: Optional[UserContext]) -> bool:
    commitment = _has(r"\b(guarantee|promise|commit|ensure|make sure|will|must)\b", text)
    return commitment and _has(_EXTERNAL_ACTORS, text)


@predicate("value_statement")
def value_statement(text: str, context: Optional[UserContext]) -> bool:
    if _has(r"\d", text):
        return False
    return not _has(r"\b(quarter|q[1-4]|month|year|week|by the end)\b", text)


@predicate("wishful_thinking")
def wishful_thinking(text: str, context: Optional[UserContext]) -> bool:
    return not _has(
        r"\b(we will|we'll|our team will|by (launching|running|building|reducing|improving|shipping|hiring|training))\b",
        text,
    )


@predicate("disconnected_metric")
def disconnected_metric(text: str, context: Optional[UserContext]) -> bool:
    return not _has(
        r"\b(customers?|revenue|retention|quality|satisfaction|conversion|churn|defects?|adoption|nps)\b",
        text,
    )


@predicate("low_ambition_target")
def low_ambition_target(text: str, context: Optional[UserContext]) -> bool:
    small_percentage = any(
        float(value) <= 5
        for value in re.findall(r"\b(\d+(?:\.\d+)?)\s*(?:%|percent)", text, re.IGNORECASE)
    )
    safe_language = _has(
        r"\b(safe|easy|conservative|modest|guaranteed|low bar|play it safe|at least)\b", text
    )
    return small_percentage or safe_language


# =============================================================================
# Catalogue Types
# =============================================================================

@dataclass(frozen=True)
class ReframingExample:
    before: str
    after: str
    context: str
    explanation: str


@dataclass(frozen=True)
class ReframingStrategy:
    """Scripted Socratic dialogue used to correct one kind of anti-pattern."""
    name: str
    technique: Technique
    questions: tuple
    examples: tuple
    success_criteria: tuple
    max_attempts: int

    @classmethod
    def from_dict(cls, data: dict) -> "ReframingStrategy":
        return cls(
            name=data["name"],
            technique=Technique(data.get("technique", Technique.QUESTION_CASCADE.value)),
            questions=tuple(data.get("questions", [])),
            examples=tuple(ReframingExample(**e) for e in data.get("examples", [])),
            success_criteria=tuple(data.get("success_criteria", [])),
            max_attempts=data.get("max_attempts", 3),
        )


@dataclass(frozen=True)
class AntiPatternRule:
    """One catalogue entry with its patterns compiled."""
    id: str
    name: str
    description: str
    regexes: tuple
    keywords: tuple
    keyword_patterns: tuple
    predicate_name: str
    predicate: Predicate
    strategy: ReframingStrategy
    severity: Severity
    intervention_type: InterventionType

    def score(self, text: str, context: Optional[UserContext] = None) -> float:
        """
        Confidence (0-1) that the text shows this anti-pattern.

        Regex matches count every occurrence; keywords count once each.
        Contextual agreement only counts when there is lexical evidence.
        """
        regex_matches = sum(len(list(regex.finditer(text))) for regex in self.regexes)
        keyword_matches = sum(1 for kw in self.keyword_patterns if kw.search(text))

        confidence = min(regex_matches * REGEX_MATCH_WEIGHT, REGEX_MATCH_CAP)
        confidence += min(keyword_matches * KEYWORD_MATCH_WEIGHT, KEYWORD_MATCH_CAP)

        if (regex_matches or keyword_matches) and self.predicate(text, context):
            confidence = max(confidence + CONTEXT_BOOST, CONTEXT_FLOOR)

        confidence += self.severity.bonus
        return min(confidence, 1.0)


@dataclass(frozen=True)
class AntiPatternCatalogue:
    patterns: tuple = ()
    strategies: dict = field(default_factory=dict)

    def get(self, pattern_id: str) -> Optional[AntiPatternRule]:
        return next((p for p in self.patterns if p.id == pattern_id), None)


def _compile_all(rule_id: str, sources: list[str], wrap_words: bool = False) -> tuple:
    compiled = []
    for source in sources:
        expression = rf"\b{re.escape(source)}\b" if wrap_words else source
        try:
            compiled.append(re.compile(expression, re.IGNORECASE))
        except re.error as e:
            logger.warning("Skipping invalid pattern %r in rule %s: %s", source, rule_id, e)
    return tuple(compiled)


def _build_rule(data: dict, strategies: dict[str, ReframingStrategy]) -> Optional[AntiPatternRule]:
    rule_id = data.get("id", "<unnamed>")
    strategy = strategies.get(data.get("strategy", ""))
    if strategy is None:
        logger.warning("Rule %s references unknown strategy %r; skipped", rule_id, data.get("strategy"))
        return None
    try:
        severity = Severity(data["severity"])
        intervention_type = InterventionType(data["intervention_type"])
    except (KeyError, ValueError) as e:
        logger.warning("Rule %s has invalid severity or intervention type (%s); skipped", rule_id, e)
        return None

    predicate_name = data.get("predicate", "")
    rule_predicate = PREDICATES.get(predicate_name)
    if rule_predicate is None:
        logger.warning("Rule %s uses unknown predicate %r; it will never fire", rule_id, predicate_name)
        rule_predicate = _never

    keywords = tuple(data.get("keywords", []))
    return AntiPatternRule(
        id=rule_id,
        name=data.get("name", rule_id),
        description=data.get("description", ""),
        regexes=_compile_all(rule_id, data.get("regexes", [])),
        keywords=keywords,
        keyword_patterns=_compile_all(rule_id, list(keywords), wrap_words=True),
        predicate_name=predicate_name,
        predicate=rule_predicate,
        strategy=strategy,
        severity=severity,
        intervention_type=intervention_type,
    )


def parse_catalogue(data: dict) -> AntiPatternCatalogue:
    """Build a catalogue from its JSON document."""
    strategies = {}
    for key, raw in data.get("strategies", {}).items():
        try:
            strategies[key] = ReframingStrategy.from_dict(raw)
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping malformed reframing strategy %s: %s", key, e)

    rules = []
    for raw in data.get("patterns", []):
        rule = _build_rule(raw, strategies)
        if rule is not None:
            rules.append(rule)
    return AntiPatternCatalogue(patterns=tuple(rules), strategies=strategies)


@lru_cache(maxsize=None)
def load_catalogue(path: Optional[str] = None) -> AntiPatternCatalogue:
    """
    Load and compile the anti-pattern catalogue once per path.

    A missing or unreadable catalogue is logged and yields an empty
    catalogue, so detection keeps working without anti-pattern awareness.
    """
    catalogue_path = Path(path) if path else DEFAULT_CATALOGUE_PATH
    try:
        with open(catalogue_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not load anti-pattern catalogue from %s: %s", catalogue_path, e)
        return AntiPatternCatalogue()

    catalogue = parse_catalogue(data)
    logger.debug("Loaded %d anti-patterns from %s", len(catalogue.patterns), catalogue_path)
    return catalogue


# =============================================================================
# Results
# =============================================================================

@dataclass
class DetectedPattern:
    """A catalogue rule that fired on one message."""
    id: str
    name: str
    description: str
    severity: Severity
    intervention_type: InterventionType
    strategy: ReframingStrategy
    confidence: float

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "severity": self.severity.value,
            "intervention_type": self.intervention_type.value,
            "strategy": self.strategy.name,
            "confidence": round(self.confidence, 3),
        }


@dataclass
class DetectionResult:
    detected: bool = False
    patterns: list[DetectedPattern] = field(default_factory=list)
    severity: Severity = Severity.LOW
    confidence: float = 0.0
    suggested_interventions: list[InterventionType] = field(default_factory=list)
    reframing_strategy: Optional[ReframingStrategy] = None

    @property
    def top_pattern(self) -> Optional[DetectedPattern]:
        return self.patterns[0] if self.patterns else None

    def to_dict(self) -> dict:
        return {
            "detected": self.detected,
            "patterns": [p.to_dict() for p in self.patterns],
            "severity": self.severity.value,
            "confidence": round(self.confidence, 3),
            "suggested_interventions": [i.value for i in self.suggested_interventions],
            "reframing_strategy": self.reframing_strategy.name if self.reframing_strategy else None,
        }


@dataclass
class ReframingResult:
    """Structured facts handed to the text-generation step."""
    original_text: str
    reframed_question: str
    technique: Technique
    examples: list[ReframingExample]
    follow_up_questions: list[str]
    expected_outcome: str
    confidence: float
    suggestion: str
    attempt: int


@dataclass
class InterventionResult:
    intervention_type: InterventionType
    triggered: bool
    success: bool
    before_score: int
    after_score: int
    technique: str
    user_response: str  # positive, neutral
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        data = asdict(self)
        data["intervention_type"] = self.intervention_type.value
        return data


@dataclass
class Dependency:
    """Something an objective relies on that the team may not control."""
    type: str  # customer_behavior, other_team, market_dynamics, external_factor
    description: str
    controllability: str  # none, low, medium


_DEPENDENCY_PHRASES = {
    "customer_behavior": "customer choices",
    "other_team": "other teams' delivery",
    "market_dynamics": "market conditions",
    "external_factor": "external partners",
}


# =============================================================================
# Text Scoring
# =============================================================================

_OUTCOME_TERMS = ("increase", "decrease", "improve", "reduce", "achieve", "result",
                  "outcome", "impact", "value", "benefit")
_ACTIVITY_TERMS = ("implement", "launch", "complete", "deliver", "build", "create", "develop")
_VAGUE_TERMS = ("better", "good", "more", "some", "many")


def _whole_words(terms: tuple) -> re.Pattern:
    return re.compile(r"\b(" + "|".join(terms) + r")\b")


_OUTCOME_WORDS = _whole_words(_OUTCOME_TERMS)
_ACTIVITY_WORDS = _whole_words(_ACTIVITY_TERMS)
_VAGUE_WORDS = _whole_words(_VAGUE_TERMS)


def _count_terms(pattern: re.Pattern, text: str) -> int:
    """Number of distinct terms from the list that appear as whole words."""
    return len(set(pattern.findall(text)))


def calculate_text_score(text: str) -> int:
    """Lexical OKR quality score (0-100) used to judge reframing progress."""
    lowered = (text or "").lower()
    score = 50
    score += 10 * _count_terms(_OUTCOME_WORDS, lowered)
    score -= 8 * _count_terms(_ACTIVITY_WORDS, lowered)
    if re.search(r"\d+", lowered):
        score += 15
    score -= 5 * _count_terms(_VAGUE_WORDS, lowered)
    return max(0, min(100, score))


# =============================================================================
# Detector
# =============================================================================

class AntiPatternDetector:
    """
    Scores messages against the anti-pattern catalogue.

    The detector is stateless apart from the read-only catalogue; attempt
    counts and context are passed in by the caller.
    """

    def __init__(
        self,
        catalogue: Optional[AntiPatternCatalogue] = None,
        catalogue_path: Optional[str] = None,
    ):
        self.catalogue = catalogue if catalogue is not None else load_catalogue(catalogue_path)

    def detect_patterns(self, text: str, context: Optional[UserContext] = None) -> DetectionResult:
        """
        Classify a message against every catalogue rule.

        Detected patterns are ordered by severity, then confidence (both
        descending). The strategy of the first one becomes the active
        reframing strategy.
        """
        if not text or not text.strip():
            return DetectionResult()

        detected = []
        for rule in self.catalogue.patterns:
            confidence = rule.score(text, context)
            if confidence > DETECTION_THRESHOLD:
                detected.append(DetectedPattern(
                    id=rule.id,
                    name=rule.name,
                    description=rule.description,
                    severity=rule.severity,
                    intervention_type=rule.intervention_type,
                    strategy=rule.strategy,
                    confidence=confidence,
                ))

        if not detected:
            return DetectionResult()

        detected.sort(key=lambda p: (p.severity.rank, p.confidence), reverse=True)

        interventions = []
        for pattern in detected:
            if pattern.intervention_type not in interventions:
                interventions.append(pattern.intervention_type)

        result = DetectionResult(
            detected=True,
            patterns=detected,
            severity=max((p.severity for p in detected), key=lambda s: s.rank),
            confidence=sum(p.confidence for p in detected) / len(detected),
            suggested_interventions=interventions,
            reframing_strategy=detected[0].strategy,
        )
        logger.debug(
            "Detected %s (severity=%s)",
            ", ".join(f"{p.id}:{p.confidence:.2f}" for p in detected), result.severity.value,
        )
        return result

    def generate_reframing_response(
        self,
        detection: DetectionResult,
        text: str,
        context: Optional[UserContext] = None,
        previous_attempts: int = 0,
    ) -> Optional[ReframingResult]:
        """
        Pick the next reframing question for the top detected pattern.

        Returns None when nothing was detected. Once previous_attempts runs
        past the scripted questions a generic outcome question is used.
        """
        top = detection.top_pattern
        if not detection.detected or top is None:
            return None

        strategy = detection.reframing_strategy or top.strategy
        if 0 <= previous_attempts < len(strategy.questions):
            question = self._fill_placeholders(strategy.questions[previous_attempts], text, context)
        else:
            question = FALLBACK_QUESTION

        examples = self._select_examples(strategy, context)
        suggestion = question
        if examples:
            first = examples[0]
            suggestion += (
                f'\n\nFor example, instead of:\n"{first.before}"'
                f'\n\nConsider:\n"{first.after}"\n\n{first.explanation}'
            )

        return ReframingResult(
            original_text=text,
            reframed_question=question,
            technique=strategy.technique,
            examples=examples,
            follow_up_questions=list(_FOLLOW_UP_QUESTIONS.get(top.intervention_type, [])),
            expected_outcome=_EXPECTED_OUTCOMES.get(top.intervention_type, _DEFAULT_EXPECTED_OUTCOME),
            confidence=REFRAMING_CONFIDENCE,
            suggestion=suggestion,
            attempt=previous_attempts,
        )

    def _fill_placeholders(self, template: str, text: str, context: Optional[UserContext]) -> str:
        context = context or UserContext()
        dependencies = self.extract_dependencies(text)
        external_factor = (
            _DEPENDENCY_PHRASES.get(dependencies[0].type, "external factors")
            if dependencies else "external factors"
        )
        values = {
            "{activity}": self._extract_activity(text),
            "{user_name}": context.function or "you",
            "{function}": context.function or "your role",
            "{industry}": context.industry or "your industry",
            "{external_factor}": external_factor,
            "{desired_result}": "your objective",
            "{external_success}": "that outcome",
        }
        for placeholder, value in values.items():
            template = template.replace(placeholder, value)
        return template

    def _extract_activity(self, text: str) -> str:
        match = re.search(
            r"\b(implement|launch|complete|deliver|build|create|develop|deploy)\s+([^.!?]+)",
            text or "",
            re.IGNORECASE,
        )
        return match.group(0).strip() if match else "this initiative"

    def _select_examples(
        self,
        strategy: ReframingStrategy,
        context: Optional[UserContext],
    ) -> list[ReframingExample]:
        examples = list(strategy.examples)
        if context is not None and context.industry:
            industry = context.industry.lower()
            relevant = [e for e in examples if industry in e.context.lower()]
            if relevant:
                examples = relevant
        return examples[:2]

    def evaluate_reframing_success(
        self,
        before_text: str,
        after_text: str,
        strategy: Optional[ReframingStrategy] = None,
        context: Optional[UserContext] = None,
    ) -> InterventionResult:
        """
        Compare a message before and after a reframing attempt.

        Success when pattern confidence drops below 70% of its earlier value
        or the lexical quality score rises by more than 10 points.
        """
        before = self.detect_patterns(before_text, context)
        after = self.detect_patterns(after_text, context)
        before_score = calculate_text_score(before_text)
        after_score = calculate_text_score(after_text)

        success = (
            after.confidence < before.confidence * SUCCESS_CONFIDENCE_RATIO
            or after_score > before_score + SUCCESS_SCORE_GAIN
        )

        top = before.top_pattern
        if strategy is None and top is not None:
            strategy = top.strategy

        return InterventionResult(
            intervention_type=top.intervention_type if top else InterventionType.ACTIVITY_TO_OUTCOME,
            triggered=True,
            success=success,
            before_score=before_score,
            after_score=after_score,
            technique=strategy.name if strategy else "",
            user_response="positive" if success else "neutral",
        )

    def extract_dependencies(self, text: str) -> list[Dependency]:
        """List what an objective depends on outside the team's control."""
        if not text:
            return []
        dependencies = []

        if _has(
            r"\b(customer|user|client)\s+(will|must|should|needs to|has to|chooses|decides|adopts|accepts|buys|uses)\b",
            text,
        ):
            dependencies.append(Dependency(
                "customer_behavior", "Depends on customer/user choices or behavior", "low"))

        if _has(r"\b(requires|depends on|needs|relies on)\b.*\b(team|department|group|function|org)\b", text) \
                or _has(r"\b(other team|another team|delivery team|design team|sales team|support team|operations team)\b", text):
            dependencies.append(Dependency(
                "other_team", "Requires coordination or delivery from other teams", "medium"))

        if _has(r"\b(market|industry|competition|competitor|economic|economy|trends)\b", text) \
                and _has(r"\b(if|when|assuming|provided|grows|changes|shifts|evolves)\b", text):
            dependencies.append(Dependency(
                "market_dynamics", "Dependent on market conditions or competitive landscape", "none"))

        if _has(r"\b(partner|vendor|third party|external|supplier|contractor)\b.*\b(delivers|provides|completes|supports)\b", text):
            dependencies.append(Dependency(
                "external_factor", "Relies on external partners or vendors", "low"))

        for match in re.finditer(
            r"\b(if|when|once|assuming|provided that|contingent on)\b[^.!?]*", text, re.IGNORECASE
        ):
            clause = match.group(0).strip()
            if not any(d.type in clause.lower() for d in dependencies):
                dependencies.append(Dependency(
                    "external_factor", f"Conditional dependency: {clause[:80]}", "low"))

        return dependencies


# =============================================================================
# Convenience Functions
# =============================================================================

def create_antipattern_detector(catalogue_path: Optional[str] = None) -> AntiPatternDetector:
    """Create an AntiPatternDetector backed by the packaged (or given) catalogue."""
    return AntiPatternDetector(catalogue_path=catalogue_path)
