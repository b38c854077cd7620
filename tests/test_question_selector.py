"""
Tests for QuestionSelector (filtering, ranking, fallbacks).
"""

import logging

import pytest

from conftest import NEUTRAL_ANSWER, answered_entry, make_question
from visa_interview.core.data_models import (
    CategoryRequirement,
    DegreeLevel,
    Difficulty,
    QuestionCategory,
    QuestionSource,
    Route,
    StudentProfile,
)
from visa_interview.core.question_bank import QuestionBank
from visa_interview.interview.question_selector import (
    CLOSING_QUESTION,
    InterviewStage,
    QuestionSelector,
    filter_by_stage,
    hash_string,
    stage_for_step,
)
from visa_interview.llm.exceptions import LLMTimeoutError, LLMValidationError


class TestHelpers:
    """Tests for stage mapping and hashing."""

    @pytest.mark.parametrize(
        "step, stage",
        [
            (1, InterviewStage.STUDY_PLANS),
            (2, InterviewStage.STUDY_PLANS),
            (3, InterviewStage.UNIVERSITY_CHOICE),
            (4, InterviewStage.ACADEMIC_CAPABILITY),
            (5, InterviewStage.FINANCIAL),
            (6, InterviewStage.FINANCIAL),
            (7, InterviewStage.POST_STUDY),
            (12, InterviewStage.POST_STUDY),
        ],
    )
    def test_stage_for_step(self, step, stage):
        assert stage_for_step(step) == stage

    def test_hash_string_is_stable(self):
        assert hash_string("") == 0
        assert hash_string("a") == 97
        assert hash_string("ab") == 97 * 31 + 98
        assert hash_string("sess-1:3") == hash_string("sess-1:3")

    def test_hash_string_is_non_negative_for_overflowing_input(self):
        assert hash_string("a much longer seed value that overflows 32 bits:15") >= 0

    def test_filter_by_stage_post_study_falls_back_to_return_intent(self):
        questions = [
            make_question("I1", "intent", keywords=["return", "plans"]),
            make_question("I2", "intent", keywords=["ties"]),
        ]

        staged = filter_by_stage(questions, InterviewStage.POST_STUDY)

        assert [q.id for q in staged] == ["I1"]


class TestFiltering:
    """Tests for the ordered bank filters."""

    def test_drops_asked_ids(self, small_bank, make_context):
        selector = QuestionSelector(small_bank)
        context = make_context(asked_question_ids=["A1", "F1"])

        candidates = selector.filter_candidates(context, {})

        assert [q.id for q in candidates] == ["I1"]

    def test_drops_other_route_questions(self, make_context):
        bank = QuestionBank(
            [
                make_question("US1", route="usa_f1"),
                make_question("UK1", route="uk_student"),
                make_question("B1", route="both"),
            ]
        )
        selector = QuestionSelector(bank)

        candidates = selector.filter_candidates(make_context(route=Route.UK_STUDENT), {})

        assert {q.id for q in candidates} == {"UK1", "B1"}

    def test_cluster_window_only_covers_last_three(self, make_context):
        bank = QuestionBank(
            [
                make_question("R1", "intent", text="Do you plan to return home?"),
                make_question("S1", "financial", text="Who will sponsor your studies?"),
            ]
        )
        selector = QuestionSelector(bank)
        context = make_context(
            asked_clusters=["return_intent", "finance_sponsor", "failure_grades", "study_reason"]
        )

        candidates = selector.filter_candidates(context, {})

        # return_intent fell out of the window, finance_sponsor is still in it
        assert [q.id for q in candidates] == ["R1"]

    def test_requires_context(self, make_context):
        bank = QuestionBank(
            [make_question("FAIL1", requires_context=["has_failures"]), make_question("A1")]
        )
        selector = QuestionSelector(bank)

        without = selector.filter_candidates(make_context(), {"has_failures": False})
        with_flag = selector.filter_candidates(make_context(), {"has_failures": True})

        assert [q.id for q in without] == ["A1"]
        assert {q.id for q in with_flag} == {"FAIL1", "A1"}

    @pytest.mark.parametrize(
        "degree_level, expected",
        [
            (DegreeLevel.UNDERGRADUATE, {"A1"}),
            (DegreeLevel.GRADUATE, {"A1", "UG_DEGREE", "PHD_PLAN"}),
            (DegreeLevel.DOCTORATE, {"A1", "UG_DEGREE", "PHD_PLAN", "DISSERTATION"}),
        ],
    )
    def test_degree_level_filter(self, make_context, degree_level, expected):
        bank = QuestionBank(
            [
                make_question("A1"),
                make_question("UG_DEGREE", text="What did you study in your undergraduate degree?"),
                make_question("PHD_PLAN", text="Do you plan to pursue a PhD afterwards?"),
                make_question("DISSERTATION", text="Who is the advisor for your dissertation?"),
            ]
        )
        selector = QuestionSelector(bank)
        context = make_context(
            route=Route.USA_F1,
            profile=StudentProfile(name="Test", degree_level=degree_level),
        )

        candidates = selector.filter_candidates(context, {})

        assert {q.id for q in candidates} == expected

    def test_degree_filter_only_applies_to_usa(self, make_context):
        bank = QuestionBank(
            [make_question("UG_DEGREE", text="What did you study in your undergraduate degree?")]
        )
        selector = QuestionSelector(bank)
        context = make_context(
            route=Route.UK_STUDENT,
            profile=StudentProfile(name="Test", degree_level=DegreeLevel.UNDERGRADUATE),
        )

        assert len(selector.filter_candidates(context, {})) == 1

    def test_category_max_cap(self, small_bank, make_context):
        selector = QuestionSelector(small_bank)
        context = make_context(
            category_requirements={"financial": CategoryRequirement(min=0, max=1)},
            category_coverage={"financial": 1},
        )

        candidates = selector.filter_candidates(context, {})

        assert "F1" not in {q.id for q in candidates}

    def test_difficulty_restriction_never_empties_pool(self, small_bank, make_context):
        selector = QuestionSelector(small_bank)

        candidates = selector.filter_candidates(make_context(target_difficulty=Difficulty.HARD), {})

        assert len(candidates) == 3

    def test_difficulty_restriction_applies_when_possible(self, make_context):
        bank = QuestionBank([make_question("E1"), make_question("H1", difficulty="hard")])
        selector = QuestionSelector(bank)

        candidates = selector.filter_candidates(make_context(target_difficulty=Difficulty.HARD), {})

        assert [q.id for q in candidates] == ["H1"]


class TestStageGating:
    """Tests for the USA stage flow."""

    @pytest.fixture
    def usa_bank(self):
        return QuestionBank(
            [
                make_question("STUDY", text="Why do you want to study here?", keywords=["study"]),
                make_question(
                    "UNI", text="Why this university?", keywords=["university", "choice"]
                ),
                make_question("FIN", "financial", text="Who pays for it?", keywords=["sponsor"]),
            ]
        )

    @pytest.mark.asyncio
    async def test_first_step_is_study_plans(self, usa_bank, make_context):
        selector = QuestionSelector(usa_bank)
        context = make_context(route=Route.USA_F1, stage_gating=True)

        selected = await selector.select_next(context)

        assert selected.question_id == "STUDY"
        assert "stage:study_plans" in selected.reasoning

    @pytest.mark.asyncio
    async def test_empty_stage_falls_back_to_whole_pool(self, make_context):
        bank = QuestionBank([make_question("FIN", "financial", keywords=["sponsor"])])
        selector = QuestionSelector(bank)
        context = make_context(route=Route.USA_F1, stage_gating=True)

        selected = await selector.select_next(context)

        assert selected.question_id == "FIN"

    def test_gating_disabled_for_other_routes(self, usa_bank, make_context):
        selector = QuestionSelector(usa_bank)
        context = make_context(route=Route.UK_STUDENT, stage_gating=True)

        pool, stage = selector.apply_stage_gating(context, list(usa_bank.questions))

        assert stage is None
        assert len(pool) == 3


class TestRuleBasedFallback:
    """Tests for deterministic fallback selection."""

    def test_same_context_same_pick(self, small_bank, make_context):
        context = make_context()
        candidates = list(small_bank.questions)

        first = QuestionSelector(small_bank).select_rule_based(context, candidates)
        second = QuestionSelector(small_bank).select_rule_based(context, candidates)

        assert first.question_id == second.question_id
        assert first.path == "rule"

    def test_prefers_category_below_minimum(self, small_bank, make_context):
        context = make_context(
            category_requirements={"intent": CategoryRequirement(min=2)},
            category_coverage={"academic": 0, "financial": 0, "intent": 1},
        )

        selected = QuestionSelector(small_bank).select_rule_based(
            context, list(small_bank.questions)
        )

        assert selected.question_id == "I1"
        assert "below_min:intent" in selected.reasoning

    def test_prefers_least_covered_category(self, small_bank, make_context):
        context = make_context(category_coverage={"academic": 2, "financial": 0, "intent": 1})

        selected = QuestionSelector(small_bank).select_rule_based(
            context, list(small_bank.questions)
        )

        assert selected.question_id == "F1"

    def test_priority_category_after_minimums(self, small_bank, make_context):
        context = make_context(
            priority_category=QuestionCategory.INTENT,
            category_coverage={"academic": 0, "financial": 0, "intent": 3},
        )

        selected = QuestionSelector(small_bank).select_rule_based(
            context, list(small_bank.questions)
        )

        assert selected.question_id == "I1"
        assert "priority:intent" in selected.reasoning

    def test_minimum_outranks_priority_category(self, small_bank, make_context):
        context = make_context(
            priority_category=QuestionCategory.INTENT,
            category_requirements={"financial": CategoryRequirement(min=1)},
        )

        selected = QuestionSelector(small_bank).select_rule_based(
            context, list(small_bank.questions)
        )

        assert selected.question_id == "F1"

    def test_prefers_non_hard_within_category(self, make_context):
        bank = QuestionBank(
            [make_question("H1", difficulty="hard"), make_question("E1", difficulty="easy")]
        )

        selected = QuestionSelector(bank).select_rule_based(make_context(), list(bank.questions))

        assert selected.question_id == "E1"

    def test_already_asked_pick_rotates_to_valid_candidate(self, small_bank, make_context):
        # Desynced caller: ids were asked but are still offered as candidates
        context = make_context(asked_question_ids=["A1", "F1"])

        selected = QuestionSelector(small_bank).select_rule_based(
            context, list(small_bank.questions)
        )

        assert selected.question_id == "I1"

    def test_returns_none_when_everything_asked(self, small_bank, make_context):
        context = make_context(asked_question_ids=["A1", "F1", "I1"])

        selected = QuestionSelector(small_bank).select_rule_based(
            context, list(small_bank.questions)
        )

        assert selected is None


class TestSelectNext:
    """Tests for the full selection pipeline."""

    @pytest.mark.asyncio
    async def test_bank_exhaustion_returns_closing_question(self, small_bank, make_context):
        selector = QuestionSelector(small_bank)
        history = []
        asked = []

        for _ in range(3):
            selected = await selector.select_next(
                make_context(history=list(history), asked_question_ids=list(asked))
            )
            assert selected.source == QuestionSource.BANK
            asked.append(selected.question_id)
            history.append(answered_entry(selected.question, question_id=selected.question_id))

        closing = await selector.select_next(
            make_context(history=history, asked_question_ids=asked)
        )

        assert sorted(asked) == ["A1", "F1", "I1"]
        assert closing.question == CLOSING_QUESTION
        assert closing.path == "closing"
        assert closing.question_id == "CLOSING_uk_student_4"

    @pytest.mark.asyncio
    async def test_every_selection_has_question_id(self, small_bank, make_context):
        selected = await QuestionSelector(small_bank).select_next(make_context())

        assert selected.question_id

    @pytest.mark.asyncio
    async def test_rule_follow_up_for_unquantified_parental_funding(self, small_bank, make_context):
        history = [
            answered_entry(
                "How will you fund your studies?",
                answer="My parents will pay for everything.",
                question_id="F1",
                category="financial",
            )
        ]
        context = make_context(route=Route.USA_F1, history=history, asked_question_ids=["F1"])

        selected = await QuestionSelector(small_bank).select_next(context)

        assert selected.source == QuestionSource.FOLLOWUP
        assert selected.path == "followup"
        assert selected.question_id.startswith("FOLLOWUP_usa_f1_2_")
        assert selected.cluster is None
        assert "exact dollar amount" in selected.question

    @pytest.mark.asyncio
    async def test_no_follow_up_directly_after_follow_up(self, small_bank, make_context):
        history = [
            answered_entry(
                "Can you specify the amount?",
                answer="My parents will pay for everything.",
                question_id="FOLLOWUP_usa_f1_2_1",
                source=QuestionSource.FOLLOWUP,
            )
        ]
        context = make_context(route=Route.USA_F1, history=history)

        selected = await QuestionSelector(small_bank).select_next(context)

        assert selected.source == QuestionSource.BANK

    @pytest.mark.asyncio
    async def test_llm_selection_accepted_when_in_pool(
        self, small_bank, make_context, mock_llm_client
    ):
        mock_llm_client.complete_json.return_value = {
            "questionId": "I1",
            "reasoning": "Intent not covered yet",
        }
        selector = QuestionSelector(small_bank, llm_client=mock_llm_client)

        selected = await selector.select_next(make_context())

        assert selected.question_id == "I1"
        assert selected.path == "llm"
        assert selected.reasoning == "Intent not covered yet"
        mock_llm_client.complete_json.assert_awaited_once()
        assert mock_llm_client.complete_json.call_args.kwargs["timeout"] == 10.0

    @pytest.mark.asyncio
    async def test_llm_id_outside_shown_candidates_falls_back_to_rules(
        self, make_context, mock_llm_client
    ):
        bank = QuestionBank([make_question(f"Q{i}") for i in range(25)])
        mock_llm_client.complete_json.return_value = {"questionId": "Q24"}
        selector = QuestionSelector(bank, llm_client=mock_llm_client)

        selected = await selector.select_next(make_context())

        assert selected.path == "rule"
        assert selected.question_id in {f"Q{i}" for i in range(25)}

    @pytest.mark.asyncio
    async def test_llm_unknown_id_falls_back_to_rules(
        self, small_bank, make_context, mock_llm_client, caplog
    ):
        mock_llm_client.complete_json.return_value = {"questionId": "INVENTED_99"}
        selector = QuestionSelector(small_bank, llm_client=mock_llm_client)

        with caplog.at_level(logging.WARNING):
            selected = await selector.select_next(make_context())

        assert selected.path == "rule"
        assert selected.question_id in {"A1", "F1", "I1"}
        assert "llm_invalid_selection" in caplog.text
        assert "reason=not_in_pool" in caplog.text

    @pytest.mark.asyncio
    async def test_llm_choice_already_in_history_is_rejected(
        self, small_bank, make_context, mock_llm_client, caplog
    ):
        mock_llm_client.complete_json.return_value = {"questionId": "A1"}
        selector = QuestionSelector(small_bank, llm_client=mock_llm_client)
        # History knows A1 but asked ids were never updated
        history = [answered_entry("Question A1?", question_id="A1")]

        with caplog.at_level(logging.WARNING):
            selected = await selector.select_next(make_context(history=history))

        assert selected.question_id != "A1"
        assert selected.path == "rule"
        assert "reason=already_asked" in caplog.text

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error", [LLMTimeoutError("slow"), LLMValidationError("not json")]
    )
    async def test_llm_errors_fall_back_to_rules(
        self, small_bank, make_context, mock_llm_client, error
    ):
        mock_llm_client.complete_json.side_effect = error
        selector = QuestionSelector(small_bank, llm_client=mock_llm_client)

        selected = await selector.select_next(make_context())

        assert selected.path == "rule"

    @pytest.mark.asyncio
    async def test_contextual_follow_up_for_vague_answer(
        self, small_bank, make_context, mock_llm_client
    ):
        mock_llm_client.complete_json.return_value = {
            "followUp": "Could you describe your study plan in more detail?"
        }
        history = [
            answered_entry("Question A1?", answer="Yes.", question_id="A1"),
        ]
        selector = QuestionSelector(small_bank, llm_client=mock_llm_client)

        selected = await selector.select_next(
            make_context(history=history, asked_question_ids=["A1"])
        )

        assert selected.source == QuestionSource.FOLLOWUP
        assert selected.question == "Could you describe your study plan in more detail?"
        assert "too_vague" in selected.reasoning

    @pytest.mark.asyncio
    async def test_repeated_contextual_follow_up_is_rejected(
        self, small_bank, make_context, mock_llm_client
    ):
        mock_llm_client.complete_json.side_effect = [
            {"followUp": "Question A1?"},
            {"questionId": "F1"},
        ]
        history = [answered_entry("Question A1?", answer="Yes.", question_id="A1")]
        selector = QuestionSelector(small_bank, llm_client=mock_llm_client)

        selected = await selector.select_next(
            make_context(history=history, asked_question_ids=["A1"])
        )

        assert selected.source == QuestionSource.BANK
        assert selected.question_id == "F1"

    @pytest.mark.asyncio
    async def test_neutral_answer_gets_no_follow_up(self, small_bank, make_context):
        history = [answered_entry("Question A1?", answer=NEUTRAL_ANSWER, question_id="A1")]

        selected = await QuestionSelector(small_bank).select_next(
            make_context(route=Route.USA_F1, history=history, asked_question_ids=["A1"])
        )

        assert selected.source == QuestionSource.BANK
        assert selected.question_id in {"F1", "I1"}
