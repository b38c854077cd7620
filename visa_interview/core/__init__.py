"""
Core data structures for the interview engine.
"""

from visa_interview.core.data_models import (
    ConversationEntry,
    Difficulty,
    FactMemory,
    InterviewSession,
    Question,
    QuestionCategory,
    QuestionSource,
    Route,
    SelectedQuestion,
    SelectionContext,
    SessionScore,
    SessionStatus,
    StudentProfile,
)
from visa_interview.core.exceptions import InterviewError, QuestionBankError, SessionStateError
from visa_interview.core.question_bank import QuestionBank, QuestionBankLoader, get_question_bank

__all__ = [
    # Models
    "ConversationEntry",
    "Difficulty",
    "FactMemory",
    "InterviewSession",
    "Question",
    "QuestionCategory",
    "QuestionSource",
    "Route",
    "SelectedQuestion",
    "SelectionContext",
    "SessionScore",
    "SessionStatus",
    "StudentProfile",
    # Errors
    "InterviewError",
    "QuestionBankError",
    "SessionStateError",
    # Bank
    "QuestionBank",
    "QuestionBankLoader",
    "get_question_bank",
]
