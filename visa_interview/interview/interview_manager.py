"""
Interview Manager - Orchestrates the interview session lifecycle.

Owns session state transitions (active, paused, completed), records answers
and fact memory, asks the selector for each next question and computes the
structural score when a session ends. Sessions are immutable values: every
operation returns an updated copy.
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from visa_interview.config.interview_config_loader import (
    InterviewConfigLoader,
    InterviewModeConfig,
)
from visa_interview.core.data_models import (
    ConversationEntry,
    FactMemory,
    InterviewSession,
    Route,
    SelectedQuestion,
    SelectionContext,
    SessionStatus,
    StudentProfile,
    resolve_route,
)
from visa_interview.core.exceptions import SessionStateError
from visa_interview.core.question_bank import QuestionBankLoader, get_question_bank
from visa_interview.interview.prompt_builder import PromptBuilder
from visa_interview.interview.question_selector import CLOSING_ID_PREFIX, QuestionSelector
from visa_interview.interview.session_memory import update_memory
from visa_interview.llm.base_client import BaseLLMClient
from visa_interview.llm.client_factory import LLMClientFactory
from visa_interview.scoring.answer_scorer import AnswerScorer, ScoringResult
from visa_interview.scoring.prompt_compressor import detect_red_flags
from visa_interview.scoring.structural_scorer import calculate_structural_score
from visa_interview.utils.logger import InterviewLogger

logger = logging.getLogger(__name__)


@dataclass
class TurnResult:
    """Outcome of submitting one answer."""

    session: InterviewSession
    next_question: SelectedQuestion | None
    is_complete: bool
    scoring: ScoringResult | None = None


class InterviewManager:
    """Manages complete interview sessions."""

    def __init__(
        self,
        config_loader: InterviewConfigLoader | None = None,
        bank_loader: QuestionBankLoader | None = None,
        question_client: BaseLLMClient | None = None,
        scorer: AnswerScorer | None = None,
        prompt_builder: PromptBuilder | None = None,
        session_logging: bool = False,
    ):
        """
        Initialize interview manager.

        Args:
            config_loader: Interview mode configuration (defaults to packaged modes)
            bank_loader: Question bank loader (defaults to the process-wide bank)
            question_client: LLM client for ranking and follow-ups (optional)
            scorer: Per-answer scorer; answers are not scored when omitted
            prompt_builder: Prompt templates shared by the selector
            session_logging: Write per-session structured log files
        """
        self.config_loader = config_loader or InterviewConfigLoader()
        self.bank_loader = bank_loader
        self.question_client = question_client
        self.scorer = scorer
        self.prompt_builder = prompt_builder or PromptBuilder()
        self.session_logging = session_logging
        self._selectors: dict[Route, QuestionSelector] = {}

    @classmethod
    def from_model_config(
        cls, config_path: str | None = None, **kwargs
    ) -> "InterviewManager":
        """
        Build a manager with LLM clients from the model configuration.

        Use cases whose API key is not set run on local fallbacks.

        Raises:
            LLMConfigError: Invalid model configuration
        """
        prompt_builder = kwargs.pop("prompt_builder", None) or PromptBuilder()
        question_client = LLMClientFactory.create_optional_client("question_selection", config_path)
        scoring_client = LLMClientFactory.create_optional_client("answer_scoring", config_path)
        scorer = AnswerScorer(scoring_client, prompt_builder=prompt_builder)
        return cls(
            question_client=question_client,
            scorer=scorer,
            prompt_builder=prompt_builder,
            **kwargs,
        )

    async def _get_selector(self, mode: InterviewModeConfig) -> QuestionSelector:
        if mode.route not in self._selectors:
            if self.bank_loader is not None:
                bank = await self.bank_loader.get()
            else:
                bank = await get_question_bank()
            self._selectors[mode.route] = QuestionSelector(
                bank,
                llm_client=self.question_client,
                prompt_builder=self.prompt_builder,
                ranking_timeout=mode.ranking_timeout_seconds,
                follow_up_timeout=mode.ranking_timeout_seconds,
            )
        return self._selectors[mode.route]

    def _session_log(self, session: InterviewSession) -> InterviewLogger | None:
        if not self.session_logging:
            return None
        return InterviewLogger(session.id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(
        self,
        user_id: str,
        profile: StudentProfile,
        route: str | Route,
        session_id: str | None = None,
    ) -> tuple[InterviewSession, SelectedQuestion]:
        """
        Start a session and issue the first question.

        The first question is appended immediately, so history is never
        empty after start.

        Args:
            user_id: Owner of the session
            profile: Candidate profile
            route: Route name or alias
            session_id: Optional explicit session id

        Returns:
            Tuple of (session, first question)

        Raises:
            ValueError: Unknown route or route without a configured mode
        """
        resolved = resolve_route(route)
        mode = self.config_loader.get_mode(resolved)

        session = InterviewSession(
            id=session_id or uuid.uuid4().hex,
            user_id=user_id,
            route=resolved,
            profile=profile,
            session_memory=FactMemory() if mode.fact_memory else None,
        )

        selection = await self._select(session, mode)
        session = self.append_question(session, selection)

        logger.info(f"Session {session.id} started on {resolved.value} for user {user_id}")
        session_log = self._session_log(session)
        if session_log:
            session_log.session_start(resolved.value, user_id, mode.question_count)
            session_log.question_issued(1, selection.question_id, selection.path, selection.question)

        return session, selection

    async def submit_answer(self, session: InterviewSession, answer: str) -> TurnResult:
        """
        Record an answer and issue the next question or complete the session.

        Args:
            session: Active session whose last question is unanswered
            answer: Candidate answer text

        Returns:
            TurnResult with the updated session and next question

        Raises:
            SessionStateError: Session is not active or has no open question
            ValueError: Empty answer
        """
        if session.status != SessionStatus.ACTIVE:
            raise SessionStateError(
                f"Cannot answer in session {session.id} with status {session.status.value}"
            )
        last = session.last_entry
        if last is None or last.is_answered:
            raise SessionStateError(f"Session {session.id} has no unanswered question")
        if not answer.strip():
            raise ValueError("Answer must not be empty")

        mode = self.config_loader.get_mode(session.route)
        step = len(session.conversation_history)
        prior_history = session.conversation_history[:-1]
        prior_memory = session.session_memory

        answered = last.model_copy(update={"answer": answer, "answered_at": datetime.now()})
        memory = (
            update_memory(prior_memory, answer, last.question_type)
            if prior_memory is not None
            else None
        )
        session = session.model_copy(
            update={
                "conversation_history": prior_history + [answered],
                "session_memory": memory,
                "current_question_number": session.current_question_number + 1,
            }
        )

        session_log = self._session_log(session)
        if session_log:
            session_log.answer_received(step, answer)

        scoring = None
        if self.scorer is not None:
            scoring = await self.scorer.score_answer(
                answered.question,
                answer,
                session.route,
                session.profile,
                prior_history,
                prior_memory,
                timeout=mode.scoring_timeout_seconds,
            )
            if session_log:
                session_log.llm_call(step, "answer_scoring", not scoring.used_fallback)
                session_log.score_validated(
                    step,
                    scoring.provider_content_score,
                    scoring.content_score,
                    scoring.warnings,
                )

        if session.current_question_number > mode.question_count:
            session = self.end(session)
            return TurnResult(session=session, next_question=None, is_complete=True, scoring=scoring)

        selection = await self._select(session, mode)
        if selection.path == "closing" and self.closing_asked(session):
            # Bank exhausted and the closing prompt was already answered
            logger.info(f"Session {session.id} has no questions left at step {step + 1}")
            session = self.end(session, reason="bank_exhausted")
            return TurnResult(session=session, next_question=None, is_complete=True, scoring=scoring)

        session = self.append_question(session, selection)
        if session_log:
            if self.question_client is not None and selection.path in ("llm", "rule"):
                session_log.llm_call(
                    len(session.conversation_history),
                    "question_selection",
                    selection.path == "llm",
                )
            session_log.question_issued(
                len(session.conversation_history),
                selection.question_id,
                selection.path,
                selection.question,
            )

        return TurnResult(session=session, next_question=selection, is_complete=False, scoring=scoring)

    def pause(self, session: InterviewSession) -> InterviewSession:
        """
        Pause an active session.

        Raises:
            SessionStateError: Session is not active
        """
        if session.status != SessionStatus.ACTIVE:
            raise SessionStateError(
                f"Only active sessions can be paused (status: {session.status.value})"
            )
        logger.info(f"Session {session.id} paused")
        return self._set_status(session, SessionStatus.PAUSED)

    def resume(self, session: InterviewSession) -> InterviewSession:
        """
        Resume a paused session.

        Raises:
            SessionStateError: Session is not paused
        """
        if session.status != SessionStatus.PAUSED:
            raise SessionStateError(
                f"Only paused sessions can be resumed (status: {session.status.value})"
            )
        logger.info(f"Session {session.id} resumed")
        return self._set_status(session, SessionStatus.ACTIVE)

    def end(self, session: InterviewSession, reason: str | None = None) -> InterviewSession:
        """
        Complete a session and attach the structural score.

        Args:
            session: Session to complete
            reason: Completion reason for the session log (derived when omitted)

        Raises:
            SessionStateError: Session is already completed
        """
        if session.status == SessionStatus.COMPLETED:
            raise SessionStateError(f"Session {session.id} is already completed")

        score = calculate_structural_score(session.conversation_history)
        ended = session.model_copy(
            update={
                "status": SessionStatus.COMPLETED,
                "end_time": datetime.now(),
                "score": score,
            }
        )

        answers = sum(1 for entry in ended.conversation_history if entry.is_answered)
        logger.info(
            f"Session {session.id} completed: {answers} answers, structural score {score.overall}"
        )
        session_log = self._session_log(ended)
        if session_log:
            session_log.session_end(
                {
                    "questions": len(ended.conversation_history),
                    "answers": answers,
                    "score": score.overall,
                    "completion_reason": reason or (
                        "question_count_reached"
                        if ended.current_question_number > self.config_loader.get_mode(ended.route).question_count
                        else "ended_early"
                    ),
                }
            )
        return ended

    def _set_status(self, session: InterviewSession, status: SessionStatus) -> InterviewSession:
        session_log = self._session_log(session)
        if session_log:
            session_log.status_changed(session.status.value, status.value)
        return session.model_copy(update={"status": status})

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    async def _select(self, session: InterviewSession, mode: InterviewModeConfig) -> SelectedQuestion:
        selector = await self._get_selector(mode)
        return await selector.select_next(self.build_selection_context(session, mode))

    @staticmethod
    def build_selection_context(
        session: InterviewSession, mode: InterviewModeConfig
    ) -> SelectionContext:
        """Derive the selector's read-only view of a session."""
        red_flags = []
        for entry in session.conversation_history:
            if not entry.is_answered:
                continue
            for flag in detect_red_flags(entry.answer, len(entry.answer.split())):
                if flag not in red_flags:
                    red_flags.append(flag)

        return SelectionContext(
            session_id=session.id,
            route=session.route,
            profile=session.profile,
            history=list(session.conversation_history),
            asked_question_ids=list(session.asked_question_ids),
            asked_clusters=list(session.asked_semantic_clusters),
            detected_red_flags=red_flags,
            category_coverage=session.category_coverage(),
            session_memory=session.session_memory,
            priority_category=mode.priority_category,
            target_difficulty=mode.difficulty_for_step(len(session.conversation_history) + 1),
            category_requirements=dict(mode.category_requirements),
            stage_gating=mode.stage_gating,
        )

    @staticmethod
    def closing_asked(session: InterviewSession) -> bool:
        """Check if the closing prompt has already been issued."""
        return any(qid.startswith(CLOSING_ID_PREFIX) for qid in session.asked_question_ids)

    @staticmethod
    def append_question(session: InterviewSession, selection: SelectedQuestion) -> InterviewSession:
        """
        Append an issued question to the session.

        Every issued question id is tracked exactly once; clusters are
        tracked only for questions that have one.
        """
        entry = ConversationEntry(
            question=selection.question,
            question_type=selection.category,
            difficulty=selection.difficulty,
            question_id=selection.question_id,
            source=selection.source,
            cluster=selection.cluster,
        )
        clusters = list(session.asked_semantic_clusters)
        if selection.cluster:
            clusters.append(selection.cluster)

        return session.model_copy(
            update={
                "conversation_history": session.conversation_history + [entry],
                "asked_question_ids": session.asked_question_ids + [selection.question_id],
                "asked_semantic_clusters": clusters,
            }
        )
