"""
Domain exceptions for the interview engine.
"""


class InterviewError(Exception):
    """Base exception for interview engine errors."""

    pass


class QuestionBankError(InterviewError):
    """Question bank file is malformed or violates an invariant."""

    pass


class SessionStateError(InterviewError):
    """Operation is not allowed in the session's current status."""

    pass
