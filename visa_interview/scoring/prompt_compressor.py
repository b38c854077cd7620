"""
Prompt compressor for the final session evaluation.

Turns the full history and per-answer scores into one short line per answer
so the final evaluation request stays small regardless of interview length.
"""

import logging
import math
import re
from dataclasses import dataclass, field

from visa_interview.core.data_models import ConversationEntry, Route, StudentProfile
from visa_interview.interview.prompt_builder import PromptBuilder
from visa_interview.scoring.score_validator import round_half_up

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 100
BRIEF_ANSWER_WORDS = 10
MAX_SUMMARY_FLAGS = 3

_DIGITS = re.compile(r"\d+")
_AGENT = re.compile(r"agent|consultant", re.IGNORECASE)
_AGENT_TOLD = re.compile(r"told|said|advised", re.IGNORECASE)
_ACCOMMODATION = re.compile(r"accommodation|housing", re.IGNORECASE)
_UNCONFIRMED = re.compile(r"will find|will look|will arrange", re.IGNORECASE)


@dataclass
class PerAnswerScore:
    """Scores recorded for one answer."""

    overall: float
    content: float
    speech: float = 0
    body: float = 0


@dataclass
class AnswerSummary:
    """Compressed record of one answer."""

    question_number: int
    question_type: str
    difficulty: str
    scores: dict[str, int]
    answer_length: int
    word_count: int
    excerpt: str
    red_flags: list[str] = field(default_factory=list)

    def to_line(self) -> str:
        """Render as `Qn: overall/100 (C S B) words ⚠️flags`."""
        flag_text = f" ⚠️{len(self.red_flags)}" if self.red_flags else ""
        return (
            f"Q{self.question_number}: {self.scores['overall']}/100 "
            f"(C{self.scores['content']} S{self.scores['speech']} B{self.scores['body']}) "
            f"{self.word_count}w{flag_text}"
        )


@dataclass
class CompressedPrompt:
    """Final evaluation prompt with a rough token estimate."""

    system: str
    user: str
    token_estimate: int
    summaries: list[AnswerSummary] = field(default_factory=list)


def detect_red_flags(answer: str, words: int) -> list[str]:
    """Cheap regex red flags for a single answer."""
    flags = []
    lowered = answer.lower()

    if "sufficient" in lowered and not _DIGITS.search(lowered):
        flags.append("Vague financial terms without specific amounts")
    if _AGENT.search(lowered) and _AGENT_TOLD.search(lowered):
        flags.append("Heavy reliance on agent/consultant")
    if _ACCOMMODATION.search(lowered) and _UNCONFIRMED.search(lowered):
        flags.append("No concrete accommodation plan")
    if words < BRIEF_ANSWER_WORDS:
        flags.append(f"Very brief answer ({words} words)")

    return flags


def build_answer_summary(
    entry: ConversationEntry, score: PerAnswerScore, index: int
) -> AnswerSummary:
    """
    Build a compact summary of one answered question.

    Args:
        entry: Conversation entry
        score: Scores recorded for the answer
        index: 0-based position in the history

    Returns:
        AnswerSummary
    """
    words = len(entry.answer.split())
    excerpt = entry.answer[:EXCERPT_CHARS].strip()
    if len(entry.answer) > EXCERPT_CHARS:
        excerpt += "..."

    return AnswerSummary(
        question_number=index + 1,
        question_type=entry.question_type.value if entry.question_type else "unknown",
        difficulty=entry.difficulty.value if entry.difficulty else "medium",
        scores={
            "content": round_half_up(score.content),
            "speech": round_half_up(score.speech),
            "body": round_half_up(score.body),
            "overall": round_half_up(score.overall),
        },
        answer_length=len(entry.answer),
        word_count=words,
        excerpt=excerpt,
        red_flags=detect_red_flags(entry.answer, words),
    )


def estimate_tokens(text: str) -> int:
    """Rough token count: one token per four characters."""
    return math.ceil(len(text) / 4)


def build_summary(
    route: Route,
    profile: StudentProfile,
    history: list[ConversationEntry],
    per_answer_scores: list[PerAnswerScore],
    prompt_builder: PromptBuilder | None = None,
) -> CompressedPrompt:
    """
    Build the compressed final-evaluation prompt.

    Answers without a recorded score are summarized with zero scores.

    Args:
        route: Interview route
        profile: Candidate profile
        history: Conversation history
        per_answer_scores: Scores aligned with history by index
        prompt_builder: Prompt templates (defaults to packaged prompts)

    Returns:
        CompressedPrompt with system/user text and token estimate
    """
    builder = prompt_builder or PromptBuilder()
    empty = PerAnswerScore(overall=0, content=0)

    summaries = [
        build_answer_summary(
            entry, per_answer_scores[i] if i < len(per_answer_scores) else empty, i
        )
        for i, entry in enumerate(history)
    ]

    def average(key: str) -> int:
        if not summaries:
            return 0
        return round_half_up(sum(s.scores[key] for s in summaries) / len(summaries))

    averages = {key: average(key) for key in ("overall", "content", "speech", "body")}

    unique_flags = []
    for summary in summaries:
        for flag in summary.red_flags:
            if flag not in unique_flags:
                unique_flags.append(flag)

    system, user = builder.build_final_evaluation_prompt(
        route,
        profile,
        [s.to_line() for s in summaries],
        averages,
        unique_flags[:MAX_SUMMARY_FLAGS],
    )
    token_estimate = math.ceil((len(system) + len(user)) / 4)
    logger.debug(f"Compressed {len(summaries)} answers into ~{token_estimate} tokens")

    return CompressedPrompt(system=system, user=user, token_estimate=token_estimate, summaries=summaries)
