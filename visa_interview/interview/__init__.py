"""
Interview flow components.

Only leaf modules are re-exported here; import the selector, prompt builder
and manager from their own modules.
"""

from visa_interview.interview.question_deduplicator import QuestionDeduplicator
from visa_interview.interview.semantic_clusters import classify
from visa_interview.interview.session_memory import (
    ContradictionLevel,
    check_contradiction,
    needs_follow_up,
    update_memory,
)

__all__ = [
    "QuestionDeduplicator",
    "classify",
    "ContradictionLevel",
    "check_contradiction",
    "needs_follow_up",
    "update_memory",
]
