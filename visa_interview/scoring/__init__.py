"""Answer scoring and score validation."""

from visa_interview.scoring.rubrics import RouteRubric, get_rubric
from visa_interview.scoring.score_validator import (
    ScoreValidationResult,
    validate_and_correct_score,
)

__all__ = [
    "RouteRubric",
    "get_rubric",
    "ScoreValidationResult",
    "validate_and_correct_score",
]
