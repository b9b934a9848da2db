"""
Question Flow
=============

Keeps the coach to one question per turn. Generated assistant text is split
into prose and questions; the first new question is shown, the rest are
queued and asked on later turns, and questions that repeat earlier ones are
dropped.

QuestionState values are never mutated; every operation returns a new state.

Usage:
    from okrforge.questions import QuestionFlowManager, QuestionState

    flow = QuestionFlowManager()
    processed = flow.process_response(generated_text, QuestionState())
    send(processed.response_to_user)
    state = processed.state
"""

import logging
import re
from dataclasses import dataclass, field, replace
from typing import Optional

logger = logging.getLogger(__name__)

# Two questions with at least this word-overlap ratio count as the same question
DUPLICATE_SIMILARITY = 0.8
MIN_QUESTION_LENGTH = 10

REPEAT_NUDGE = (
    "I notice I may be repeating myself. Let's move forward - please share any "
    "additional details you think are important for your OKR."
)

_QUESTION_PATTERNS = (
    re.compile(r"[^.!?]*\?"),
    re.compile(r"\d+\.\s*[^?]*\?"),
    re.compile(r"-\s*[^?]*\?"),
)
_FILLER_CONFIRMATIONS = ("right?", "okay?")
_ACKNOWLEDGEMENT = re.compile(r"^(yes|no|ok|sure|thanks)\.?$", re.IGNORECASE)


@dataclass
class QuestionState:
    """Question bookkeeping for one session."""
    pending_questions: list[str] = field(default_factory=list)
    asked_questions: list[str] = field(default_factory=list)
    current_question: Optional[str] = None
    answered_questions: dict[str, str] = field(default_factory=dict)
    question_context: str = ""

    def to_dict(self) -> dict:
        return {
            "pending_questions": list(self.pending_questions),
            "asked_questions": list(self.asked_questions),
            "current_question": self.current_question,
            "answered_questions": dict(self.answered_questions),
            "question_context": self.question_context,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "QuestionState":
        data = data or {}
        return cls(
            pending_questions=list(data.get("pending_questions", [])),
            asked_questions=list(data.get("asked_questions", [])),
            current_question=data.get("current_question"),
            answered_questions=dict(data.get("answered_questions", {})),
            question_context=data.get("question_context", ""),
        )


@dataclass
class QuestionExtraction:
    questions: list[str]
    has_multiple: bool
    cleaned_content: str


@dataclass
class ProcessedResponse:
    state: QuestionState
    response_to_user: str
    has_queued: bool


def normalize_question(question: str) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    text = re.sub(r"[?!.,;:]", "", question.lower())
    return re.sub(r"\s+", " ", text).strip()


def question_similarity(first: str, second: str) -> float:
    """Dice coefficient over the word sets of two normalised questions."""
    words1 = set(normalize_question(first).split(" "))
    words2 = set(normalize_question(second).split(" "))
    if not words1 and not words2:
        return 1.0
    return 2 * len(words1 & words2) / (len(words1) + len(words2))


def is_duplicate_question(question: str, asked: list[str]) -> bool:
    normalized = normalize_question(question)
    for previous in asked:
        if normalized == normalize_question(previous):
            return True
        if question_similarity(question, previous) >= DUPLICATE_SIMILARITY:
            return True
    return False


def _clean_question(question: str) -> str:
    question = question.strip()
    question = re.sub(r"^\d+\.\s*", "", question)
    question = re.sub(r"^-\s*", "", question)
    question = re.sub(r"^\*\s*", "", question)
    return question.strip()


def _is_valid_question(question: str) -> bool:
    lowered = question.lower()
    return (
        len(question) > MIN_QUESTION_LENGTH
        and question.endswith("?")
        and not any(filler in lowered for filler in _FILLER_CONFIRMATIONS)
    )


def _clean_remaining_content(content: str) -> str:
    content = re.sub(r"^\s*[-•*]\s*", "", content, flags=re.MULTILINE)
    content = re.sub(r"^\s*\d+\.\s*", "", content, flags=re.MULTILINE)
    content = re.sub(r"\n{3,}", "\n\n", content)
    return content.strip()


def extract_questions(content: str) -> QuestionExtraction:
    """
    Split text into its questions and the prose around them.

    Plain sentences, numbered items and bullets ending in "?" are all
    recognised. Very short questions and filler confirmations ("right?")
    are left in the prose.
    """
    content = content or ""
    found: list[str] = []
    cleaned = content

    for pattern in _QUESTION_PATTERNS:
        for match in pattern.finditer(content):
            span = match.group(0)
            question = _clean_question(span)
            if question and _is_valid_question(question):
                if question not in found:
                    found.append(question)
                cleaned = cleaned.replace(span, "", 1).strip()

    return QuestionExtraction(
        questions=found,
        has_multiple=len(found) > 1,
        cleaned_content=_clean_remaining_content(cleaned),
    )


class QuestionFlowManager:
    """Applies the one-question-per-turn rule to generated assistant text."""

    def __init__(self, announce_queued: bool = True):
        self.announce_queued = announce_queued

    def process_response(self, content: str, state: QuestionState) -> ProcessedResponse:
        """
        Reduce a generated response to at most one question.

        Text with zero or one question is returned unchanged. Otherwise the
        first question is asked and the rest are queued; a first question
        that repeats an earlier one is replaced by the next queued question
        or, failing that, by a nudge to move on.
        """
        extraction = extract_questions(content)
        if len(extraction.questions) <= 1:
            return ProcessedResponse(state, content, bool(state.pending_questions))

        first, *remaining = extraction.questions

        if is_duplicate_question(first, state.asked_questions):
            logger.info("Suppressed repeated question: %s", first)
            if state.pending_questions:
                next_question, *rest = state.pending_questions
                new_state = replace(
                    state,
                    pending_questions=rest,
                    current_question=next_question,
                    asked_questions=[*state.asked_questions, next_question],
                )
                response = self._compose(extraction.cleaned_content, next_question)
                return ProcessedResponse(new_state, response, bool(rest))

            response = self._compose(extraction.cleaned_content, REPEAT_NUDGE)
            return ProcessedResponse(state, response, False)

        history = [*state.asked_questions, first]
        new_questions = [q for q in remaining if not is_duplicate_question(q, history)]
        if len(new_questions) < len(remaining):
            logger.debug("Filtered %d duplicate question(s)", len(remaining) - len(new_questions))

        new_state = replace(
            state,
            pending_questions=[*state.pending_questions, *new_questions],
            current_question=first,
            asked_questions=history,
            question_context=extraction.cleaned_content or state.question_context,
        )
        response = self._compose(extraction.cleaned_content, first)
        if self.announce_queued and new_questions:
            noun = "question" if len(new_questions) == 1 else "questions"
            response += (
                f"\n\n(I have {len(new_questions)} more {noun} to help refine this further, "
                "but let's take it one step at a time.)"
            )
        return ProcessedResponse(new_state, response, bool(new_questions))

    def _compose(self, context: str, question: str) -> str:
        return f"{context}\n\n{question}" if context else question

    def get_next_question(self, state: QuestionState) -> tuple[QuestionState, Optional[str], bool]:
        """
        Dequeue the next pending question and record it as asked.

        Returns:
            (new state, question or None, whether more questions remain)
        """
        if not state.pending_questions:
            return state, None, False
        next_question, *rest = state.pending_questions
        new_state = replace(
            state,
            pending_questions=rest,
            current_question=next_question,
            asked_questions=[*state.asked_questions, next_question],
        )
        return new_state, next_question, bool(rest)

    def record_answer(self, answer: str, state: QuestionState) -> QuestionState:
        """Attach the user's answer to the current question and clear it."""
        if not state.current_question:
            return state
        return replace(
            state,
            answered_questions={**state.answered_questions, state.current_question: answer},
            current_question=None,
        )

    def should_ask_next_question(self, message: str, state: QuestionState) -> bool:
        """True when a queued question should follow a substantive, non-question reply."""
        if not state.pending_questions:
            return False
        stripped = (message or "").strip()
        return (
            len(stripped) > MIN_QUESTION_LENGTH
            and "?" not in stripped
            and not _ACKNOWLEDGEMENT.match(stripped)
        )

    def generate_context_summary(self, state: QuestionState) -> str:
        """Question history block for the system prompt; empty before any question."""
        if not state.asked_questions:
            return ""

        summary = "\n\nQUESTION CONTEXT:\n"
        if state.answered_questions:
            summary += "ANSWERED QUESTIONS:\n"
            for question, answer in state.answered_questions.items():
                summary += f"Q: {question}\nA: {answer}\n\n"
        if state.current_question:
            summary += f"CURRENT QUESTION: {state.current_question}\n"
        if state.pending_questions:
            summary += f"PENDING QUESTIONS ({len(state.pending_questions)} remaining):\n"
            for i, question in enumerate(state.pending_questions, 1):
                summary += f"{i}. {question}\n"
        return summary


# =============================================================================
# Convenience Functions
# =============================================================================

def create_question_flow_manager(announce_queued: bool = True) -> QuestionFlowManager:
    """Create a QuestionFlowManager instance."""
    return QuestionFlowManager(announce_queued=announce_queued)
