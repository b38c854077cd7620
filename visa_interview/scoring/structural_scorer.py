"""
Structural session score.

A word-count and keyword-density heuristic computed when a session ends.
It does not depend on any LLM, so a session always has a score even when
the scoring provider is fully unavailable.
"""

from visa_interview.core.data_models import ConversationEntry, SessionScore
from visa_interview.scoring.score_validator import round_half_up

KNOWLEDGE_KEYWORDS = ("university", "degree", "program", "research", "career", "goals")
CONFIDENCE_INDICATORS = ("will", "plan to", "definitely", "certainly", "committed")

# Points available per answer in each dimension
POINTS_PER_ANSWER = 20


def _communication_points(answer: str) -> int:
    words = len(answer.split())
    if words >= 20 and len(answer) >= 100:
        return 20
    if words >= 10:
        return 15
    return 10


def _capped_matches(answer: str, phrases: tuple[str, ...], points: int) -> int:
    lowered = answer.lower()
    matches = sum(1 for phrase in phrases if phrase in lowered)
    return min(matches * points, POINTS_PER_ANSWER)


def calculate_structural_score(history: list[ConversationEntry]) -> SessionScore:
    """
    Score a session from answer structure alone.

    Args:
        history: Conversation history (unanswered entries are ignored)

    Returns:
        SessionScore with each dimension normalized to 0-100
    """
    responses = [entry.answer for entry in history if entry.is_answered]
    if not responses:
        return SessionScore(overall=0, communication=0, knowledge=0, confidence=0)

    communication = sum(_communication_points(a) for a in responses)
    knowledge = sum(_capped_matches(a, KNOWLEDGE_KEYWORDS, 5) for a in responses)
    confidence = sum(_capped_matches(a, CONFIDENCE_INDICATORS, 4) for a in responses)

    max_possible = len(responses) * POINTS_PER_ANSWER
    communication = min(communication / max_possible * 100, 100)
    knowledge = min(knowledge / max_possible * 100, 100)
    confidence = min(confidence / max_possible * 100, 100)

    return SessionScore(
        overall=round_half_up((communication + knowledge + confidence) / 3),
        communication=round_half_up(communication),
        knowledge=round_half_up(knowledge),
        confidence=round_half_up(confidence),
    )
