"""
Answer scorer.

Scores one answer against the route rubric through the answer_scoring LLM,
clamps and validates the result, and falls back to surface heuristics when
the provider is unavailable or returns unusable output.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum

from visa_interview.core.data_models import (
    ConversationEntry,
    FactMemory,
    Route,
    StudentProfile,
)
from visa_interview.interview.prompt_builder import PromptBuilder
from visa_interview.interview.session_memory import ContradictionLevel, check_contradiction
from visa_interview.llm.base_client import BaseLLMClient
from visa_interview.llm.exceptions import LLMError
from visa_interview.scoring.rubrics import RouteRubric, get_rubric
from visa_interview.scoring.score_validator import (
    ScoreValidationResult,
    round_half_up,
    validate_and_correct_score,
)

logger = logging.getLogger(__name__)

MAX_SUMMARY_CHARS = 800
MAX_LIST_ITEMS = 8

CONTENT_WEIGHT = 0.7
SPEECH_WEIGHT = 0.2
BODY_WEIGHT = 0.1

GREEN_THRESHOLD = 80
AMBER_THRESHOLD = 65

SPECIFIC_AMOUNT = re.compile(r"\$\d+|£\d+|\d+,\d+")
VAGUE_TERMS = re.compile(r"sufficient|enough|good|best|world-class|pursue|dream", re.IGNORECASE)
# Multi-word proper nouns ("Kathmandu University") or acronyms ("MIT")
NAMED_ENTITY = re.compile(r"\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)+\b|\b[A-Z]{2,}\b")


class ScoreBand(str, Enum):
    """Traffic-light band for a per-answer overall score."""

    GREEN = "green"
    AMBER = "amber"
    RED = "red"


@dataclass
class ScoringResult:
    """Scored answer with validated content score."""

    scores: dict[str, float]
    summary: str
    recommendations: list[str]
    red_flags: list[str]
    content_score: int
    provider_content_score: float
    validation: ScoreValidationResult
    used_fallback: bool = False
    contradiction: ContradictionLevel = ContradictionLevel.NONE
    warnings: list[str] = field(default_factory=list)


def word_count(text: str) -> int:
    return len(text.split())


def clamp_score(value) -> float:
    """Coerce a provider value to a number in [0, 100]; junk becomes 0."""
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(100.0, number))


def combine_overall(
    content: float, speech: float | None = None, body: float | None = None
) -> int:
    """
    Per-answer overall score from content, speech and body language.

    Weights are 0.7/0.2/0.1; the weight of a missing signal folds into
    content (0.8 content when body language is unavailable).
    """
    content_weight = CONTENT_WEIGHT
    total = 0.0
    if speech is None:
        content_weight += SPEECH_WEIGHT
    else:
        total += SPEECH_WEIGHT * speech
    if body is None:
        content_weight += BODY_WEIGHT
    else:
        total += BODY_WEIGHT * body
    return round_half_up(total + content_weight * content)


def score_band(overall: float) -> ScoreBand:
    if overall >= GREEN_THRESHOLD:
        return ScoreBand.GREEN
    if overall >= AMBER_THRESHOLD:
        return ScoreBand.AMBER
    return ScoreBand.RED


class AnswerScorer:
    """Scores answers with an LLM rubric and a heuristic fallback."""

    def __init__(
        self,
        llm_client: BaseLLMClient | None = None,
        prompt_builder: PromptBuilder | None = None,
        timeout: float = 30.0,
    ):
        """
        Initialize answer scorer.

        Args:
            llm_client: Optional client for the answer_scoring use case
            prompt_builder: Prompt templates (defaults to packaged prompts)
            timeout: Seconds to wait for the scoring call
        """
        self.llm = llm_client
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.timeout = timeout

    async def score_answer(
        self,
        question: str,
        answer: str,
        route: Route,
        profile: StudentProfile,
        history: list[ConversationEntry] | None = None,
        memory: FactMemory | None = None,
        timeout: float | None = None,
    ) -> ScoringResult:
        """
        Score one answer.

        Provider errors and unparseable output never propagate; the
        heuristic fallback is used instead.

        Args:
            question: Question that was asked
            answer: Candidate answer
            route: Interview route (selects rubric and prompt)
            profile: Candidate profile
            history: Earlier answered turns, for consistency context
            memory: Fact memory, for contradiction context
            timeout: Seconds to wait for the provider (defaults to the scorer timeout)

        Returns:
            ScoringResult with validated content score
        """
        rubric = get_rubric(route)
        contradiction = check_contradiction(memory, answer)

        parsed = None
        if self.llm is not None:
            parsed = await self._score_with_llm(
                rubric,
                question,
                answer,
                profile,
                history or [],
                memory,
                contradiction,
                timeout if timeout is not None else self.timeout,
            )
        else:
            logger.info("No scoring provider configured, using heuristic fallback")

        used_fallback = parsed is None
        if parsed is None:
            parsed = self.heuristic_scores(rubric, answer)

        scores, summary, recommendations, red_flags, provider_score = parsed
        validation = validate_and_correct_score(rubric, scores, provider_score, word_count(answer))
        if validation.warnings:
            logger.info(f"Score corrected {provider_score} -> {validation.corrected_content_score}")

        return ScoringResult(
            scores=scores,
            summary=summary,
            recommendations=recommendations,
            red_flags=red_flags,
            content_score=validation.corrected_content_score,
            provider_content_score=provider_score,
            validation=validation,
            used_fallback=used_fallback,
            contradiction=contradiction,
            warnings=list(validation.warnings),
        )

    async def _score_with_llm(
        self,
        rubric: RouteRubric,
        question: str,
        answer: str,
        profile: StudentProfile,
        history: list[ConversationEntry],
        memory: FactMemory | None,
        contradiction: ContradictionLevel,
        timeout: float,
    ):
        system_prompt, user_prompt = self.prompt_builder.build_scoring_prompt(
            rubric, question, answer, profile, history, memory, contradiction
        )
        try:
            response = await self.llm.complete_json(system_prompt, user_prompt, timeout=timeout)
        except LLMError as e:
            logger.error(f"Scoring provider error, using heuristic fallback: {e}")
            return None

        return self.parse_response(rubric, response)

    @staticmethod
    def parse_response(rubric: RouteRubric, response: dict):
        """
        Clamp and normalize a provider scoring response.

        Core dimensions are always present (missing counts as 0); domain
        dimensions are kept only when the provider returned them.

        Returns:
            Tuple of (scores, summary, recommendations, red_flags, content_score),
            or None when the response has no rubric object
        """
        raw_rubric = response.get("rubric")
        if not isinstance(raw_rubric, dict):
            logger.warning("Scoring response missing rubric object")
            return None

        scores = {}
        for dim in rubric.dimensions:
            if dim in rubric.domain_dimensions and dim not in raw_rubric:
                continue
            scores[dim] = clamp_score(raw_rubric.get(dim))

        recommendations = response.get("recommendations")
        red_flags = response.get("redFlags")

        return (
            scores,
            str(response.get("summary") or "")[:MAX_SUMMARY_CHARS],
            [str(r) for r in recommendations[:MAX_LIST_ITEMS]] if isinstance(recommendations, list) else [],
            [str(r) for r in red_flags[:MAX_LIST_ITEMS]] if isinstance(red_flags, list) else [],
            clamp_score(response.get("contentScore")),
        )

    @staticmethod
    def heuristic_scores(rubric: RouteRubric, answer: str):
        """
        Approximate rubric from surface features of the answer.

        Returns:
            Tuple of (scores, summary, recommendations, red_flags, content_score)
        """
        words = word_count(answer)
        has_amount = bool(SPECIFIC_AMOUNT.search(answer))
        has_entities = bool(NAMED_ENTITY.search(answer))
        is_vague = bool(VAGUE_TERMS.search(answer))

        if has_amount:
            specificity = 75
        elif has_entities:
            specificity = 65
        elif is_vague:
            specificity = 35
        else:
            specificity = 50

        if 10 < words < 100:
            communication = 65
        elif words <= 10:
            communication = 40
        else:
            communication = 55
        relevance = 60 if words > 5 else 30

        first_domain, financial_domain, last_domain = rubric.domain_dimensions
        scores = {
            "communication": communication,
            "relevance": relevance,
            "specificity": specificity,
            "consistency": 60,
            first_domain: 55,
            financial_domain: 70 if has_amount else 45,
            last_domain: 55,
        }

        recommendations = [
            "Good use of specific amounts" if has_amount else "Add specific amounts and figures",
            "Provide more concrete details",
            "Ensure answer directly addresses the question",
        ]
        red_flags = ["Uses vague or coached language"] if is_vague else []

        return (
            scores,
            "Automated heuristic scoring (LLM unavailable). Scores are approximate.",
            recommendations,
            red_flags,
            (communication + relevance + specificity) / 3,
        )
