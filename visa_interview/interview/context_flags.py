"""
Context flags and degree-level filtering.

Flags are recomputed once per turn from the profile and all answers so far.
A bank question with ``requires_context`` is only eligible when at least one
of its listed flags is true.
"""

import logging
import re

from visa_interview.core.data_models import (
    ConversationEntry,
    DegreeLevel,
    Question,
    Route,
    StudentProfile,
)

logger = logging.getLogger(__name__)

# Flags detected in answers and profile text together
PROFILE_AND_ANSWER_FLAGS = {
    "has_failures": re.compile(r"fail|backlog|arrear|poor.*grade|low.*gpa", re.IGNORECASE),
    "has_scholarship": re.compile(r"scholarship|grant|award|stipend", re.IGNORECASE),
    "low_gpa": re.compile(r"gpa.*\b[12]\.\d|low.*gpa|poor.*grade", re.IGNORECASE),
    "has_work_experience": re.compile(r"work|job|employee|experience.*(year|month)", re.IGNORECASE),
}

# Flags detected in answers only
ANSWER_FLAGS = {
    "has_us_relatives": re.compile(
        r"relative|uncle|aunt|cousin|friend.*(in|living|stay).*(us|usa|america|united states)",
        re.IGNORECASE,
    ),
    "mentioned_return_plans": re.compile(r"return|come back|go back|plan.*after", re.IGNORECASE),
    "agent_dependency": re.compile(
        r"(agent|consultant).*?(told|said|helped|chose|selected)", re.IGNORECASE
    ),
}

UNDERGRAD_EXCLUDED = re.compile(r"your undergraduate degree|your bachelor'?s degree", re.IGNORECASE)
NON_DOCTORATE_EXCLUDED = re.compile(
    r"dissertation|advisor|publication|phd|doctoral", re.IGNORECASE
)
GRADUATE_PHD_CARVE_OUT = re.compile(r"(do you )?plan to pursue a phd", re.IGNORECASE)

# Degree filtering applies to the primary route only
DEGREE_FILTERED_ROUTES = {Route.USA_F1}


def build_context_flags(
    profile: StudentProfile,
    history: list[ConversationEntry],
) -> dict[str, bool]:
    """
    Derive boolean context flags from profile and answers.

    Args:
        profile: Candidate profile
        history: Conversation so far

    Returns:
        Mapping of flag name to value
    """
    answers = " ".join(entry.answer for entry in history).lower()
    profile_text = profile.as_search_text()
    combined = f"{answers} {profile_text}"

    flags = {name: bool(pattern.search(combined)) for name, pattern in PROFILE_AND_ANSWER_FLAGS.items()}
    flags.update({name: bool(pattern.search(answers)) for name, pattern in ANSWER_FLAGS.items()})

    level = profile.degree_level
    flags["is_undergraduate"] = level == DegreeLevel.UNDERGRADUATE
    flags["is_graduate"] = level == DegreeLevel.GRADUATE
    flags["is_doctorate"] = level == DegreeLevel.DOCTORATE
    flags["has_completed_bachelors"] = level in (DegreeLevel.GRADUATE, DegreeLevel.DOCTORATE)

    return flags


def active_flags(flags: dict[str, bool]) -> list[str]:
    """Names of flags that are set."""
    return [name for name, value in flags.items() if value]


def has_required_context(question: Question, flags: dict[str, bool]) -> bool:
    """Check a question's ``requires_context`` against the flags."""
    if not question.requires_context:
        return True
    return any(flags.get(ctx) is True for ctx in question.requires_context)


def is_appropriate_for_degree(
    question: Question,
    route: Route,
    degree_level: DegreeLevel | None,
) -> bool:
    """
    Check whether question wording fits the candidate's degree level.

    Undergraduate applicants are not asked about "your undergraduate
    degree". Non-doctorate applicants are not asked about dissertations,
    advisors or publications, except that graduate applicants may be asked
    whether they plan to pursue a PhD.

    Args:
        question: Candidate question
        route: Interview route
        degree_level: Declared degree level (None skips the filter)

    Returns:
        True if the question may be asked
    """
    if route not in DEGREE_FILTERED_ROUTES or degree_level is None:
        return True

    text = question.text

    if degree_level == DegreeLevel.UNDERGRADUATE and UNDERGRAD_EXCLUDED.search(text):
        return False

    if degree_level != DegreeLevel.DOCTORATE and NON_DOCTORATE_EXCLUDED.search(text):
        if degree_level == DegreeLevel.GRADUATE and GRADUATE_PHD_CARVE_OUT.search(text):
            return True
        return False

    return True
