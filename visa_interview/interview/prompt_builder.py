"""
Prompt builder for the engine's LLM calls.

Loads YAML templates and fills them with session context for question
ranking, contextual follow-ups, answer scoring and final evaluation.
"""

import json
import logging
from pathlib import Path

import yaml

from visa_interview.core.data_models import (
    ConversationEntry,
    FactMemory,
    Question,
    Route,
    SelectionContext,
    StudentProfile,
)
from visa_interview.interview.session_memory import ContradictionLevel, format_memory_facts
from visa_interview.scoring.rubrics import RouteRubric

logger = logging.getLogger(__name__)

DEFAULT_PROMPTS_PATH = Path(__file__).resolve().parent.parent / "configs" / "prompts.yaml"

# Candidates shown to the ranking model
MAX_RANKING_CANDIDATES = 20

CONTRADICTION_RANGES = {
    ContradictionLevel.MAJOR: "20-30",
    ContradictionLevel.MINOR: "40-50",
}


class PromptBuilder:
    """Builds LLM prompts from YAML templates."""

    def __init__(self, prompts_path: str | Path | None = None):
        """
        Initialize prompt builder.

        Args:
            prompts_path: Path to prompts YAML file (defaults to packaged prompts)
        """
        self.prompts_path = Path(prompts_path) if prompts_path else DEFAULT_PROMPTS_PATH
        self._prompts = self._load_prompts()

    def _load_prompts(self) -> dict:
        """Load prompts from YAML file."""
        if not self.prompts_path.exists():
            raise FileNotFoundError(f"Prompts file not found: {self.prompts_path}")

        with open(self.prompts_path, encoding="utf-8") as f:
            prompts = yaml.safe_load(f)

        logger.info(f"Loaded prompts from {self.prompts_path}")
        return prompts

    def build_ranking_prompt(
        self,
        context: SelectionContext,
        pool: list[Question],
        context_flags: list[str],
        stage: str | None = None,
    ) -> tuple[str, str]:
        """
        Build the question ranking prompt.

        The candidate list is truncated to the first MAX_RANKING_CANDIDATES
        entries, with an explicit warning when anything is hidden.

        Args:
            context: Selection context
            pool: Filtered candidate questions
            context_flags: Names of active context flags
            stage: Current interview stage, when stage gating applies

        Returns:
            Tuple of (system_prompt, user_prompt)
        """
        templates = self._prompts["question_ranking"]

        coverage = ", ".join(f"{cat}: {count}" for cat, count in context.category_coverage.items())
        clusters_summary = (
            f"Already covered semantic topics: {', '.join(context.asked_clusters)}"
            if context.asked_clusters
            else "No semantic topics covered yet"
        )
        stage_hint = (
            templates["stage_hint"].format(step=context.step, stage=stage) if stage else ""
        )

        system_prompt = templates["system_prompt_template"].format(
            route_guidance=templates["route_guidance"][context.route.value],
            stage_hint=stage_hint,
            questions_asked=len(context.history),
            coverage=coverage or "none yet",
            clusters_summary=clusters_summary,
            red_flags=", ".join(context.detected_red_flags) or "none",
            field_of_study=context.profile.field_of_study or "unknown",
            institution=context.profile.institution or "unknown",
            context_flags=", ".join(context_flags) or "none",
        )

        shown = pool[:MAX_RANKING_CANDIDATES]
        candidates = [
            {
                "id": q.id,
                "category": q.category.value,
                "difficulty": q.difficulty.value,
                "preview": q.text[:80],
            }
            for q in shown
        ]
        hidden = len(pool) - len(shown)
        truncation_warning = ""
        if hidden > 0:
            logger.warning(
                f"Ranking pool truncated for {context.route.value} step {context.step}: "
                f"showing {len(shown)} of {len(pool)} candidates"
            )
            truncation_warning = templates["truncation_warning"].format(hidden=hidden)

        recent_turns = "\n\n".join(
            f"Q: {entry.question}\nA: {entry.answer}" for entry in context.history[-2:]
        )

        user_prompt = templates["user_prompt_template"].format(
            pool_size=len(pool),
            shown=len(shown),
            candidates=json.dumps(candidates, indent=2),
            truncation_warning=truncation_warning,
            recent_turns=recent_turns or "(start of interview)",
        )

        return system_prompt, user_prompt

    def build_follow_up_prompt(
        self, route: Route, question: str, answer: str, reason: str | None
    ) -> tuple[str, str]:
        """Build the contextual follow-up generation prompt."""
        templates = self._prompts["contextual_follow_up"]
        system_prompt = templates["system_prompt_template"].format(
            route_guidance=templates["route_guidance"][route.value],
            reason=reason or "vague answer",
        )
        user_prompt = templates["user_prompt_template"].format(question=question, answer=answer)
        return system_prompt, user_prompt

    def build_scoring_prompt(
        self,
        rubric: RouteRubric,
        question: str,
        answer: str,
        profile: StudentProfile,
        history: list[ConversationEntry],
        memory: FactMemory | None,
        contradiction: ContradictionLevel = ContradictionLevel.NONE,
    ) -> tuple[str, str]:
        """
        Build the answer scoring prompt.

        Args:
            rubric: Rubric for the interview route
            question: Question being scored
            answer: Candidate answer
            profile: Candidate profile
            history: Answered turns before this one
            memory: Fact memory, included so the model can check consistency
            contradiction: Locally detected contradiction level for this answer

        Returns:
            Tuple of (system_prompt, user_prompt)
        """
        templates = self._prompts["answer_scoring"]
        route = rubric.route

        # Only the last two turns are needed for consistency checks
        recent = history[-2:]
        offset = len(history) - len(recent)
        history_text = "\n\n".join(
            f"Q{offset + i + 1}: {entry.question}\nA{offset + i + 1}: {entry.answer[:150]}"
            for i, entry in enumerate(recent)
        )

        facts = format_memory_facts(memory)
        memory_block = (
            templates["memory_block_template"].format(
                facts="\n".join(f"  - {fact}" for fact in facts)
            )
            if facts
            else ""
        )

        contradiction_warning = ""
        if contradiction != ContradictionLevel.NONE:
            contradiction_warning = templates["contradiction_template"].format(
                level=contradiction.value.upper(),
                range=CONTRADICTION_RANGES[contradiction],
            )

        descriptions = templates["dimension_descriptions"]
        dimension_lines = "\n".join(
            f"- {name}: {descriptions.get(name, '')}" for name in rubric.dimensions
        )
        formula = " + ".join(
            f"({weight:.2f} x {name})" for name, weight in rubric.weights.items()
        )
        rubric_schema = ", ".join(f'"{name}": <0-100>' for name in rubric.dimensions)

        user_prompt = templates["user_prompt_template"].format(
            route=route.value,
            name=profile.name,
            country=profile.country or "Not specified",
            institution=profile.institution or "Not specified",
            field_of_study=profile.field_of_study or "Not specified",
            previous_education=profile.previous_education or "Not specified",
            memory_block=memory_block,
            history=history_text or "(No previous questions)",
            question=question,
            answer=answer,
            contradiction_warning=contradiction_warning,
            dimension_lines=dimension_lines,
            formula=formula,
            rubric_schema=rubric_schema,
        )

        return templates["system_prompt"][route.value], user_prompt

    def build_final_evaluation_prompt(
        self,
        route: Route,
        profile: StudentProfile,
        summary_lines: list[str],
        averages: dict[str, int],
        flags: list[str],
    ) -> tuple[str, str]:
        """Build the compact session-level evaluation prompt."""
        templates = self._prompts["final_evaluation"]
        flags_summary = f"\nFLAGS: {'; '.join(flags)}" if flags else ""

        user_prompt = templates["user_prompt_template"].format(
            name=profile.name,
            country=profile.country or "N/A",
            institution=profile.institution or "N/A",
            count=len(summary_lines),
            summary_lines="\n".join(summary_lines),
            avg_overall=averages["overall"],
            avg_content=averages["content"],
            avg_speech=averages["speech"],
            avg_body=averages["body"],
            flags_summary=flags_summary,
            dimensions_schema=templates["dimensions_schema"][route.value],
        )
        return templates["system_prompt"][route.value], user_prompt
