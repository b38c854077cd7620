"""
Tests for fact memory extraction and contradiction detection.
"""

import pytest

from visa_interview.core.data_models import FactMemory, QuestionCategory
from visa_interview.interview.session_memory import (
    ContradictionLevel,
    check_contradiction,
    extract_currency_numbers,
    format_memory_facts,
    needs_follow_up,
    update_memory,
)


class TestCurrencyExtraction:
    """Tests for amount normalization."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("The total is $50,000 per year", 50000),
            ("About $45k in tuition", 45000),
            ("We saved NPR 5000000 for this", 5000000),
            ("Roughly 30k each year", 30000),
        ],
    )
    def test_first_amount(self, text, expected):
        assert extract_currency_numbers(text)[0] == expected

    def test_no_amount(self):
        assert extract_currency_numbers("My parents will pay") == []


class TestUpdateMemory:
    """Tests for the first-value-wins write policy."""

    def test_total_cost_first_value_wins(self):
        memory = update_memory(None, "The total cost is $50,000 per year.")
        memory = update_memory(memory, "Actually the total cost is $60,000.")

        assert memory.total_cost == 50000

    def test_cost_needs_trigger_word(self):
        memory = update_memory(None, "I have $50,000 saved.")

        assert memory.total_cost is None

    def test_returns_new_instance(self):
        original = FactMemory()

        updated = update_memory(original, "Tuition is $30,000 each year.")

        assert original.total_cost is None
        assert updated.total_cost == 30000

    def test_sponsor_and_occupation(self):
        memory = update_memory(
            None,
            "My father will sponsor me. My father is a businessman.",
            QuestionCategory.FINANCIAL,
        )

        assert memory.sponsor == "father"
        assert memory.sponsor_occupation == "businessman"

    def test_occupation_only_for_financial_questions(self):
        memory = update_memory(None, "My father is a teacher.", QuestionCategory.PERSONAL)

        assert memory.sponsor_occupation is None

    def test_scholarship_and_loan(self):
        memory = update_memory(None, "I received a scholarship of $10,000.")
        memory = update_memory(memory, "The bank loan is $20,000.")

        assert memory.scholarship_amount == 10000
        assert memory.loan_amount == 20000

    def test_post_study_role_and_country(self):
        memory = update_memory(
            None, "After graduation I plan to become a data analyst in Nepal."
        )

        assert memory.post_study_role == "data analyst"
        assert memory.target_country == "nepal"

    def test_us_relatives_flag_is_monotonic(self):
        memory = update_memory(None, "My uncle lives in the USA.")
        memory = update_memory(memory, "No other family members abroad.")

        assert memory.relatives_us is True

    def test_us_pronoun_does_not_count_as_country(self):
        memory = update_memory(None, "My family helps us a lot.")

        assert memory.relatives_us is False

    @pytest.mark.parametrize(
        "answer, expected",
        [
            ("I have relatives in the U.S. but we rarely talk.", True),
            ("My cousin is already settled in America.", True),
            ("My uncle and aunt live in the United States.", True),
            ("My family supports me to study in America.", False),
            ("My family will pay, and I will study in the USA.", False),
            ("None of my relatives have been to America.", False),
        ],
    )
    def test_relatives_need_to_live_in_us(self, answer, expected):
        assert update_memory(None, answer).relatives_us is expected


class TestContradiction:
    """Tests for numeric contradiction thresholds."""

    @pytest.fixture
    def memory(self):
        return FactMemory(total_cost=50000)

    @pytest.mark.parametrize(
        "answer, level",
        [
            ("It costs $52,000", ContradictionLevel.NONE),
            ("It costs $55,000", ContradictionLevel.NONE),
            ("It costs $56,000", ContradictionLevel.MINOR),
            ("It costs $60,000", ContradictionLevel.MINOR),
            ("It costs $70,000", ContradictionLevel.MAJOR),
            ("It costs $30,000", ContradictionLevel.MAJOR),
        ],
    )
    def test_relative_delta_thresholds(self, memory, answer, level):
        assert check_contradiction(memory, answer) == level

    def test_no_memory(self):
        assert check_contradiction(None, "$70,000") == ContradictionLevel.NONE

    def test_answer_without_amount(self, memory):
        assert check_contradiction(memory, "My parents pay") == ContradictionLevel.NONE


class TestNeedsFollowUp:
    """Tests for the local follow-up gate."""

    def test_financial_without_number(self):
        need = needs_follow_up(QuestionCategory.FINANCIAL, "My parents will pay.", None)

        assert need.needed
        assert need.reason == "finance_no_number"

    def test_contradiction(self):
        need = needs_follow_up(
            QuestionCategory.ACADEMIC,
            "The program will cost around $80,000 for both years of study.",
            FactMemory(total_cost=50000),
        )

        assert need.reason == "contradiction_major"

    def test_too_vague(self):
        need = needs_follow_up("academic", "Yes, I will.", None)

        assert need.reason == "too_vague"

    def test_adequate_answer(self):
        need = needs_follow_up(
            "academic",
            "I chose this program because of its machine learning research group.",
            None,
        )

        assert not need.needed
        assert need.reason is None


def test_format_memory_facts():
    memory = FactMemory(total_cost=50000, sponsor="father", relatives_us=True)

    facts = format_memory_facts(memory)

    assert "Total cost: $50,000" in facts
    assert "Sponsor: father" in facts
    assert any("RED FLAG" in fact for fact in facts)
    assert format_memory_facts(None) == []
