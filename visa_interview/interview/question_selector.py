"""
Question Selector for adaptive interviews.

Chooses the next question for a session:
1. Route follow-up rules (and an optional LLM follow-up) on the last answer
2. Bank filtering: route, asked ids, recent clusters, context, degree level,
   category caps, difficulty
3. Stage gating for routes with a fixed interview flow
4. LLM ranking with a bounded timeout, validated against the candidate pool
5. Deterministic hash-seeded rule-based fallback
6. Fixed closing question when the bank is exhausted
"""

import logging
import re
from enum import Enum

from visa_interview.core.data_models import (
    Difficulty,
    Question,
    QuestionCategory,
    QuestionSource,
    Route,
    SelectedQuestion,
    SelectionContext,
)
from visa_interview.core.question_bank import QuestionBank
from visa_interview.interview.context_flags import (
    active_flags,
    build_context_flags,
    has_required_context,
    is_appropriate_for_degree,
)
from visa_interview.interview.follow_up_rules import detect_follow_up, follow_up_id
from visa_interview.interview.prompt_builder import MAX_RANKING_CANDIDATES, PromptBuilder
from visa_interview.interview.question_deduplicator import QuestionDeduplicator
from visa_interview.interview.semantic_clusters import classify
from visa_interview.interview.session_memory import needs_follow_up
from visa_interview.llm.base_client import BaseLLMClient
from visa_interview.llm.exceptions import LLMError

logger = logging.getLogger(__name__)

CLOSING_QUESTION = "Is there anything else you'd like to share about your plans?"
CLOSING_ID_PREFIX = "CLOSING_"

# Size of the sliding window of recent clusters that may not repeat
CLUSTER_WINDOW = 3


class InterviewStage(str, Enum):
    """Position in the fixed USA F1 interview flow."""

    STUDY_PLANS = "study_plans"
    UNIVERSITY_CHOICE = "university_choice"
    ACADEMIC_CAPABILITY = "academic_capability"
    FINANCIAL = "financial"
    POST_STUDY = "post_study"


STAGE_LABELS = {
    InterviewStage.STUDY_PLANS: "Study Plans (why US, why this major/program)",
    InterviewStage.UNIVERSITY_CHOICE: "University Choice specifics",
    InterviewStage.ACADEMIC_CAPABILITY: "Academic Capability (scores/GPA/background)",
    InterviewStage.FINANCIAL: "Financial Status (costs, sponsors, sources)",
    InterviewStage.POST_STUDY: "Post-graduation Plans and Return Intent",
}

STAGE_GATED_ROUTES = {Route.USA_F1}

_ACADEMIC_RECORD_TEXT = re.compile(r"marksheet|fail|backlog", re.IGNORECASE)


def stage_for_step(step: int) -> InterviewStage:
    """Map a 1-based question index to its interview stage."""
    if step <= 2:
        return InterviewStage.STUDY_PLANS
    if step == 3:
        return InterviewStage.UNIVERSITY_CHOICE
    if step == 4:
        return InterviewStage.ACADEMIC_CAPABILITY
    if step <= 6:
        return InterviewStage.FINANCIAL
    return InterviewStage.POST_STUDY


def _has_any(question: Question, keywords: list[str]) -> bool:
    return any(k in question.keywords for k in keywords)


def filter_by_stage(questions: list[Question], stage: InterviewStage) -> list[Question]:
    """
    Restrict candidates to questions matching a stage's topic signature.

    Args:
        questions: Route-filtered candidates
        stage: Current stage

    Returns:
        Matching questions (possibly empty)
    """
    academic = [q for q in questions if q.category == QuestionCategory.ACADEMIC]

    if stage == InterviewStage.STUDY_PLANS:
        return [
            q
            for q in academic
            if _has_any(q, ["study", "major", "degree"])
            and not _has_any(q, ["university", "school", "test", "scores", "gpa"])
        ]
    if stage == InterviewStage.UNIVERSITY_CHOICE:
        return [q for q in academic if _has_any(q, ["university", "school"])]
    if stage == InterviewStage.ACADEMIC_CAPABILITY:
        return [
            q
            for q in academic
            if _has_any(q, ["test", "scores", "gpa"]) or _ACADEMIC_RECORD_TEXT.search(q.text)
        ]
    if stage == InterviewStage.FINANCIAL:
        return [q for q in questions if q.category == QuestionCategory.FINANCIAL]

    post_study = [q for q in questions if q.category == QuestionCategory.POST_STUDY]
    if post_study:
        return post_study
    return [
        q
        for q in questions
        if q.category == QuestionCategory.INTENT and _has_any(q, ["return", "plans", "future"])
    ]


def hash_string(value: str) -> int:
    """
    Deterministic non-negative string hash (31-multiplier, signed 32-bit).

    Used to seed fallback selection so identical sessions pick identically.
    """
    h = 0
    for ch in value:
        h = (h * 31 + ord(ch)) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return abs(h)


class QuestionSelector:
    """Selects the next interview question from the bank or as a follow-up."""

    def __init__(
        self,
        bank: QuestionBank,
        llm_client: BaseLLMClient | None = None,
        prompt_builder: PromptBuilder | None = None,
        deduplicator: QuestionDeduplicator | None = None,
        ranking_timeout: float = 10.0,
        follow_up_timeout: float = 10.0,
    ):
        """
        Initialize question selector.

        Args:
            bank: Loaded question bank
            llm_client: Optional LLM client for ranking and contextual follow-ups
            prompt_builder: Prompt templates (defaults to packaged prompts)
            deduplicator: Near-duplicate text detector
            ranking_timeout: Seconds to wait for the ranking call
            follow_up_timeout: Seconds to wait for a contextual follow-up
        """
        self.bank = bank
        self.llm = llm_client
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.deduplicator = deduplicator or QuestionDeduplicator()
        self.ranking_timeout = ranking_timeout
        self.follow_up_timeout = follow_up_timeout

    async def select_next(self, context: SelectionContext) -> SelectedQuestion:
        """
        Select the next question for a session.

        Never raises for provider failures or an exhausted bank; those paths
        degrade to the rule-based fallback and the closing question.

        Args:
            context: Read-only selection context

        Returns:
            SelectedQuestion with a non-empty question_id
        """
        asked_texts = [entry.question for entry in context.history]

        follow_up = self._follow_up_from_rules(context, asked_texts)
        if follow_up is None:
            follow_up = await self._contextual_follow_up(context, asked_texts)
        if follow_up is not None:
            return follow_up

        flags = build_context_flags(context.profile, context.history)
        candidates = self.filter_candidates(context, flags)
        if not candidates:
            logger.info(f"Question bank exhausted for {context.route.value} at step {context.step}")
            return self.closing_question(context)

        pool, stage = self.apply_stage_gating(context, candidates)

        selected = await self._select_with_llm(context, pool, active_flags(flags), stage)
        if selected is None:
            selected = self.select_rule_based(context, pool, stage)
        if selected is None:
            return self.closing_question(context)
        return selected

    # ------------------------------------------------------------------
    # Follow-ups
    # ------------------------------------------------------------------

    def _follow_up_candidate_entry(self, context: SelectionContext):
        """Last entry if it is an answered bank question, else None."""
        if not context.history:
            return None
        last = context.history[-1]
        # A follow-up is never followed directly by another follow-up
        if not last.is_answered or last.source == QuestionSource.FOLLOWUP:
            return None
        return last

    def _follow_up_from_rules(
        self, context: SelectionContext, asked_texts: list[str]
    ) -> SelectedQuestion | None:
        last = self._follow_up_candidate_entry(context)
        if last is None:
            return None

        rule = detect_follow_up(context.route, last.answer)
        if rule is None:
            return None

        is_repetitive, reason, _ = self.deduplicator.is_repetitive(rule.text, asked_texts)
        if is_repetitive:
            logger.debug(f"Follow-up rule '{rule.name}' skipped ({reason})")
            return None

        question_id = follow_up_id(context.route, context.step)
        logger.info(
            f"path=followup route={context.route.value} step={context.step} "
            f"id={question_id} rule={rule.name}"
        )
        return SelectedQuestion(
            question=rule.text,
            source=QuestionSource.FOLLOWUP,
            question_id=question_id,
            category=last.question_type,
            path="followup",
            reasoning=f"Follow-up rule '{rule.name}' matched the last answer",
        )

    async def _contextual_follow_up(
        self, context: SelectionContext, asked_texts: list[str]
    ) -> SelectedQuestion | None:
        """Ask the LLM for a probing follow-up when the local gate fires."""
        if self.llm is None:
            return None
        last = self._follow_up_candidate_entry(context)
        if last is None:
            return None

        need = needs_follow_up(last.question_type, last.answer, context.session_memory)
        if not need.needed:
            return None

        system_prompt, user_prompt = self.prompt_builder.build_follow_up_prompt(
            context.route, last.question, last.answer, need.reason
        )
        try:
            result = await self.llm.complete_json(
                system_prompt, user_prompt, timeout=self.follow_up_timeout
            )
        except LLMError as e:
            logger.warning(f"Contextual follow-up failed: {e}")
            return None

        text = result.get("followUp")
        if not isinstance(text, str) or not text.strip():
            logger.warning("Contextual follow-up response had no followUp text")
            return None
        text = text.strip()

        is_repetitive, reason, _ = self.deduplicator.is_repetitive(text, asked_texts)
        if is_repetitive:
            logger.info(f"Contextual follow-up rejected ({reason})")
            return None

        question_id = follow_up_id(context.route, context.step)
        logger.info(
            f"path=followup route={context.route.value} step={context.step} "
            f"id={question_id} reason={need.reason}"
        )
        return SelectedQuestion(
            question=text,
            source=QuestionSource.FOLLOWUP,
            question_id=question_id,
            category=last.question_type,
            path="followup",
            reasoning=f"Contextual follow-up ({need.reason})",
        )

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def filter_candidates(
        self, context: SelectionContext, flags: dict[str, bool]
    ) -> list[Question]:
        """
        Apply bank filters in order, each on the surviving set.

        Args:
            context: Selection context
            flags: Context flags derived from profile and answers

        Returns:
            Candidate questions (possibly empty)
        """
        asked_ids = set(context.asked_question_ids)
        recent_clusters = set(context.asked_clusters[-CLUSTER_WINDOW:])

        candidates = [q for q in self.bank.for_route(context.route) if q.id not in asked_ids]

        candidates = [q for q in candidates if classify(q.text) not in recent_clusters]

        candidates = [q for q in candidates if has_required_context(q, flags)]

        candidates = [
            q
            for q in candidates
            if is_appropriate_for_degree(q, context.route, context.profile.degree_level)
        ]

        if context.category_requirements:
            full = {
                category
                for category, requirement in context.category_requirements.items()
                if requirement.max is not None
                and context.category_coverage.get(category, 0) >= requirement.max
            }
            candidates = [q for q in candidates if q.category.value not in full]

        if context.target_difficulty is not None:
            matching = [q for q in candidates if q.difficulty == context.target_difficulty]
            if matching:
                candidates = matching

        logger.debug(
            f"{len(candidates)} candidates for {context.route.value} step {context.step}"
        )
        return candidates

    def apply_stage_gating(
        self, context: SelectionContext, candidates: list[Question]
    ) -> tuple[list[Question], InterviewStage | None]:
        """
        Restrict candidates to the current stage when gating is enabled.

        Falls back to the whole pool if the stage filter leaves nothing.

        Returns:
            Tuple of (pool, stage or None)
        """
        if not context.stage_gating or context.route not in STAGE_GATED_ROUTES:
            return candidates, None

        stage = stage_for_step(context.step)
        staged = filter_by_stage(candidates, stage)
        if not staged:
            logger.debug(f"Stage {stage.value} has no candidates; using whole pool")
            return candidates, stage
        return staged, stage

    # ------------------------------------------------------------------
    # LLM ranking
    # ------------------------------------------------------------------

    async def _select_with_llm(
        self,
        context: SelectionContext,
        pool: list[Question],
        flags: list[str],
        stage: InterviewStage | None,
    ) -> SelectedQuestion | None:
        """
        Ask the LLM to rank the pool; None means use the fallback.

        The returned id is trusted only if it was among the candidates shown
        in the prompt, not already asked and not a near-duplicate of an
        earlier question.
        """
        if self.llm is None:
            return None

        system_prompt, user_prompt = self.prompt_builder.build_ranking_prompt(
            context, pool, flags, STAGE_LABELS[stage] if stage else None
        )
        try:
            result = await self.llm.complete_json(
                system_prompt, user_prompt, timeout=self.ranking_timeout
            )
        except LLMError as e:
            logger.warning(f"LLM selection failed, using rule-based fallback: {e}")
            return None

        question_id = result.get("questionId")
        # Only ids the model was shown are accepted
        by_id = {q.id: q for q in pool[:MAX_RANKING_CANDIDATES]}
        question = by_id.get(question_id) if isinstance(question_id, str) else None
        if question is None:
            logger.warning(
                f"llm_invalid_selection route={context.route.value} step={context.step} "
                f"id={question_id!r} reason=not_in_pool"
            )
            return None

        history_ids = {entry.question_id for entry in context.history}
        if question.id in history_ids or self._is_repetitive(question.text, context):
            logger.warning(
                f"llm_invalid_selection route={context.route.value} step={context.step} "
                f"id={question.id} reason=already_asked"
            )
            return None

        logger.info(f"path=llm route={context.route.value} step={context.step} id={question.id}")
        reasoning = result.get("reasoning")
        return self._bank_selection(
            question, "llm", reasoning if isinstance(reasoning, str) else ""
        )

    # ------------------------------------------------------------------
    # Fallbacks
    # ------------------------------------------------------------------

    def select_rule_based(
        self,
        context: SelectionContext,
        candidates: list[Question],
        stage: InterviewStage | None = None,
    ) -> SelectedQuestion | None:
        """
        Deterministic fallback selection seeded by session id and step.

        Prefers a category below its configured minimum, then the priority
        category, otherwise the least covered category; within it prefers non-hard questions and indexes
        by hash. A pick that was already asked is replaced by the next valid
        candidate from the rest of the pool.

        Args:
            context: Selection context
            candidates: Filtered (and possibly stage-gated) candidates
            stage: Current stage, for the reasoning text

        Returns:
            SelectedQuestion, or None when every candidate was already asked
        """
        if not candidates:
            return None

        category, reason = self._fallback_category(context, candidates)
        in_category = [q for q in candidates if q.category == category]
        preferred = [q for q in in_category if q.difficulty != Difficulty.HARD] or in_category

        seed = f"{context.session_id}:{context.step}"
        index = hash_string(seed) % len(preferred)
        pick = preferred[index]

        if not self._is_valid_pick(pick, context):
            # Rotate from the seeded index through the rest of the pool
            rest = [q for q in candidates if q.id != pick.id]
            start = index % len(rest) if rest else 0
            pick = next(
                (q for q in rest[start:] + rest[:start] if self._is_valid_pick(q, context)),
                None,
            )
            if pick is None:
                logger.info(f"Rule-based fallback found no unasked candidate at step {context.step}")
                return None

        if stage is not None:
            reason = f"stage:{stage.value}"
        logger.info(
            f"path=rule route={context.route.value} step={context.step} id={pick.id} reason={reason}"
        )
        return self._bank_selection(pick, "rule", f"Rule-based selection ({reason})")

    @staticmethod
    def _fallback_category(
        context: SelectionContext, candidates: list[Question]
    ) -> tuple[QuestionCategory, str]:
        available = [c for c in QuestionCategory if any(q.category == c for q in candidates)]

        for name, requirement in context.category_requirements.items():
            category = QuestionCategory(name)
            if category in available and context.category_coverage.get(name, 0) < requirement.min:
                return category, f"below_min:{name}"

        if context.priority_category in available:
            return context.priority_category, f"priority:{context.priority_category.value}"

        least = min(available, key=lambda c: context.category_coverage.get(c.value, 0))
        return least, f"least_covered:{least.value}"

    def _is_valid_pick(self, question: Question, context: SelectionContext) -> bool:
        if question.id in context.asked_question_ids:
            return False
        return not self._is_repetitive(question.text, context)

    def _is_repetitive(self, text: str, context: SelectionContext) -> bool:
        is_repetitive, _, _ = self.deduplicator.is_repetitive(
            text, [entry.question for entry in context.history]
        )
        return is_repetitive

    @staticmethod
    def _bank_selection(question: Question, path: str, reasoning: str) -> SelectedQuestion:
        return SelectedQuestion(
            question=question.text,
            source=QuestionSource.BANK,
            question_id=question.id,
            cluster=classify(question.text),
            category=question.category,
            difficulty=question.difficulty,
            path=path,
            reasoning=reasoning,
        )

    def closing_question(self, context: SelectionContext) -> SelectedQuestion:
        """Fixed closing prompt used when no bank question is left."""
        question_id = f"{CLOSING_ID_PREFIX}{context.route.value}_{context.step}"
        logger.info(f"path=closing route={context.route.value} step={context.step} id={question_id}")
        return SelectedQuestion(
            question=CLOSING_QUESTION,
            source=QuestionSource.BANK,
            question_id=question_id,
            path="closing",
            reasoning="No more questions available in bank",
        )
