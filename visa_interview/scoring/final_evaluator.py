"""
Final session evaluator.

Sends the compressed session summary to the final_evaluation LLM once and
parses a decision. Any failure degrades to a score-based heuristic decision.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from visa_interview.core.data_models import InterviewSession
from visa_interview.interview.prompt_builder import PromptBuilder
from visa_interview.llm.base_client import BaseLLMClient
from visa_interview.llm.exceptions import LLMError
from visa_interview.scoring.answer_scorer import MAX_LIST_ITEMS, clamp_score
from visa_interview.scoring.prompt_compressor import PerAnswerScore, build_summary
from visa_interview.scoring.score_validator import round_half_up

logger = logging.getLogger(__name__)

ACCEPT_THRESHOLD = 75
REJECT_THRESHOLD = 55


class Decision(str, Enum):
    """Mock visa decision."""

    ACCEPTED = "accepted"
    BORDERLINE = "borderline"
    REJECTED = "rejected"


@dataclass
class FinalEvaluation:
    """Session-level evaluation result."""

    decision: Decision
    overall: int
    dimensions: dict[str, int] = field(default_factory=dict)
    summary: str = ""
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    used_fallback: bool = False
    token_estimate: int = 0


def decide(overall: float) -> Decision:
    """Heuristic decision from the mean per-answer score."""
    if overall >= ACCEPT_THRESHOLD:
        return Decision.ACCEPTED
    if overall < REJECT_THRESHOLD:
        return Decision.REJECTED
    return Decision.BORDERLINE


def _string_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(item) for item in value[:MAX_LIST_ITEMS]]


class FinalEvaluator:
    """Produces the holistic decision at the end of an interview."""

    def __init__(
        self,
        llm_client: BaseLLMClient | None = None,
        prompt_builder: PromptBuilder | None = None,
        timeout: float = 45.0,
    ):
        """
        Initialize final evaluator.

        Args:
            llm_client: Optional client for the final_evaluation use case
            prompt_builder: Prompt templates (defaults to packaged prompts)
            timeout: Seconds to wait for the evaluation call
        """
        self.llm = llm_client
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.timeout = timeout

    async def evaluate(
        self, session: InterviewSession, per_answer_scores: list[PerAnswerScore]
    ) -> FinalEvaluation:
        """
        Evaluate a finished session.

        Args:
            session: Session (normally completed)
            per_answer_scores: Scores aligned with the answered history entries

        Returns:
            FinalEvaluation; never raises for provider failures
        """
        answered = [entry for entry in session.conversation_history if entry.is_answered]
        prompt = build_summary(
            session.route,
            session.profile,
            answered,
            per_answer_scores,
            self.prompt_builder,
        )
        logger.info(
            f"Final evaluation for session {session.id}: "
            f"{len(answered)} answers, ~{prompt.token_estimate} tokens"
        )

        if self.llm is not None:
            try:
                response = await self.llm.complete_json(
                    prompt.system, prompt.user, timeout=self.timeout
                )
                evaluation = self.parse_response(response)
                if evaluation is not None:
                    evaluation.token_estimate = prompt.token_estimate
                    return evaluation
            except LLMError as e:
                logger.error(f"Final evaluation provider error, using heuristic: {e}")

        evaluation = self.heuristic_evaluation(per_answer_scores)
        evaluation.token_estimate = prompt.token_estimate
        return evaluation

    @staticmethod
    def parse_response(response: dict) -> FinalEvaluation | None:
        """Parse a provider evaluation; None if the decision is unusable."""
        try:
            decision = Decision(str(response.get("decision", "")).lower())
        except ValueError:
            logger.warning(f"Final evaluation returned invalid decision: {response.get('decision')!r}")
            return None

        raw_dimensions = response.get("dimensions")
        dimensions = {}
        if isinstance(raw_dimensions, dict):
            dimensions = {
                str(name): round_half_up(clamp_score(value))
                for name, value in raw_dimensions.items()
            }

        return FinalEvaluation(
            decision=decision,
            overall=round_half_up(clamp_score(response.get("overall"))),
            dimensions=dimensions,
            summary=str(response.get("summary") or ""),
            strengths=_string_list(response.get("strengths")),
            weaknesses=_string_list(response.get("weaknesses")),
            recommendations=_string_list(response.get("recommendations")),
        )

    @staticmethod
    def heuristic_evaluation(per_answer_scores: list[PerAnswerScore]) -> FinalEvaluation:
        """Decision from mean per-answer scores when no provider result is usable."""
        if not per_answer_scores:
            return FinalEvaluation(
                decision=Decision.REJECTED,
                overall=0,
                summary="No scored answers were available for evaluation.",
                used_fallback=True,
            )

        count = len(per_answer_scores)
        overall = sum(s.overall for s in per_answer_scores) / count
        dimensions = {
            "content": round_half_up(sum(s.content for s in per_answer_scores) / count),
            "speech": round_half_up(sum(s.speech for s in per_answer_scores) / count),
            "body": round_half_up(sum(s.body for s in per_answer_scores) / count),
        }
        decision = decide(overall)

        return FinalEvaluation(
            decision=decision,
            overall=round_half_up(overall),
            dimensions=dimensions,
            summary=(
                f"Automated heuristic evaluation (LLM unavailable): mean answer score "
                f"{overall:.1f}, decision {decision.value}."
            ),
            used_fallback=True,
        )
