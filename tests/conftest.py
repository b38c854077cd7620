"""
Shared fixtures for engine tests.
"""

from unittest.mock import AsyncMock

import pytest

from visa_interview.core.data_models import (
    ConversationEntry,
    DegreeLevel,
    Question,
    QuestionSource,
    Route,
    SelectionContext,
    StudentProfile,
)
from visa_interview.core.question_bank import QuestionBank

# Answer that triggers no follow-up rule on any route
NEUTRAL_ANSWER = "I have prepared thoroughly for this interview today."


def make_question(
    qid: str,
    category: str = "academic",
    difficulty: str = "easy",
    text: str | None = None,
    route: str = "both",
    keywords: list[str] | None = None,
    requires_context: list[str] | None = None,
) -> Question:
    """Bank question with neutral text unless given."""
    return Question(
        id=qid,
        route=route,
        category=category,
        difficulty=difficulty,
        text=text or f"Question {qid}?",
        keywords=keywords or [],
        requires_context=requires_context or [],
    )


def answered_entry(
    question: str,
    answer: str = NEUTRAL_ANSWER,
    question_id: str | None = None,
    category: str | None = "academic",
    source: QuestionSource = QuestionSource.BANK,
) -> ConversationEntry:
    return ConversationEntry(
        question=question,
        answer=answer,
        question_id=question_id,
        question_type=category,
        source=source,
    )


@pytest.fixture
def profile():
    """Graduate applicant profile."""
    return StudentProfile(
        name="Asha Karki",
        country="Nepal",
        institution="University of Texas at Dallas",
        field_of_study="Computer Science",
        degree_level=DegreeLevel.GRADUATE,
        previous_education="BSc Computer Engineering, Kathmandu University",
    )


@pytest.fixture
def small_bank():
    """Three neutral questions, one per category."""
    return QuestionBank(
        [
            make_question("A1", "academic"),
            make_question("F1", "financial"),
            make_question("I1", "intent"),
        ]
    )


@pytest.fixture
def make_context(profile):
    """Factory for selection contexts with sensible defaults."""

    def _make(route: Route = Route.UK_STUDENT, **overrides) -> SelectionContext:
        data = {"session_id": "sess-1", "route": route, "profile": profile}
        data.update(overrides)
        return SelectionContext(**data)

    return _make


@pytest.fixture
def mock_llm_client():
    """LLM client whose complete_json is an AsyncMock."""
    client = AsyncMock()
    client.model = "mock-model"
    client.complete_json = AsyncMock()
    return client
