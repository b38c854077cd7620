"""
Adaptive mock visa interview engine.

Picks each next question, tracks candidate facts for contradiction checks,
and scores answers with a validated rubric feeding a session-level decision.
"""

from visa_interview.core.data_models import InterviewSession, Route, StudentProfile
from visa_interview.interview.interview_manager import InterviewManager, TurnResult
from visa_interview.scoring.answer_scorer import AnswerScorer
from visa_interview.scoring.final_evaluator import FinalEvaluator

__version__ = "0.1.0"

__all__ = [
    "InterviewManager",
    "TurnResult",
    "InterviewSession",
    "Route",
    "StudentProfile",
    "AnswerScorer",
    "FinalEvaluator",
]
