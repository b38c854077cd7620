"""
Fact memory and contradiction detection.

Extracts a small fixed set of facts from free-text answers with regex
heuristics. This is a best-effort signal, not a source of truth: values are
recorded the first time they are seen (the candidate's original claim) and
later answers are compared against them.
"""

import logging
import re
from dataclasses import dataclass
from enum import Enum

from visa_interview.core.data_models import FactMemory, QuestionCategory

logger = logging.getLogger(__name__)


class ContradictionLevel(str, Enum):
    """Severity of a numeric contradiction against memory."""

    NONE = "none"
    MINOR = "minor"
    MAJOR = "major"


MAJOR_DELTA = 0.20
MINOR_DELTA = 0.10

_NUMBER = r"(\d+(?:,\d{3})*(?:\.\d+)?)"

# Tried in order; every match of every pattern is collected
CURRENCY_PATTERNS = [
    re.compile(r"\$\s*" + _NUMBER + r"\s*k\b", re.IGNORECASE),
    re.compile(r"\$\s*" + _NUMBER),
    re.compile(r"NPR\s*" + _NUMBER, re.IGNORECASE),
    re.compile(_NUMBER + r"\s*k\b", re.IGNORECASE),
    re.compile(_NUMBER),
]

ROLE_PATTERNS = [
    re.compile(
        r"(?:work as|job as|position as|role as|become(?: an?)?)\s+([a-z\s]+?)(?:\.|,|\bin\b|\bat\b|$)",
        re.IGNORECASE,
    ),
    re.compile(
        r"((?:software|data|business|marketing|financial|research)\s+"
        r"(?:engineer|analyst|scientist|manager|developer))",
        re.IGNORECASE,
    ),
]

OCCUPATION_PATTERN = re.compile(r"(?:is a|works as|profession is)\s+([a-z\s]+?)(?:\.|,|$)", re.IGNORECASE)

US_PATTERN = re.compile(r"\bU\.S\.|\bUSA?\b|(?i:united states|america)")

COUNTRY_PATTERNS = [
    (re.compile(r"\bnepal\b", re.IGNORECASE), "nepal"),
    (US_PATTERN, "US"),
    (re.compile(r"\bindia\b", re.IGNORECASE), "india"),
    (re.compile(r"\bchina\b", re.IGNORECASE), "china"),
]

COST_TRIGGER = re.compile(r"total|year|tuition|cost", re.IGNORECASE)
SCHOLARSHIP_TRIGGER = re.compile(r"scholar", re.IGNORECASE)
LOAN_TRIGGER = re.compile(r"loan", re.IGNORECASE)
SPONSOR_TRIGGER = re.compile(r"father|mother|self|sponsor|parent", re.IGNORECASE)
OCCUPATION_TRIGGER = re.compile(
    r"business|engineer|doctor|teacher|occupation|profession|work", re.IGNORECASE
)
PLANS_TRIGGER = re.compile(r"after|graduate|post[- ]study|future|plan|career", re.IGNORECASE)
# A relative followed by residence wording and a US location in the same clause
KINSHIP = (
    r"(?i:relatives?|uncles?|aunts?|cousins?|brothers?|sisters?|siblings?|family|"
    r"grand(?:father|mother|parents?))"
)
RESIDENCE_WORDS = (
    r"(?i:who|that|members?|and|my|is|are|lives?|living|stays?|staying|settled|based|"
    r"resides?|residing|works?|working|studies|studying|currently|already|also|now|still)"
)
RELATIVES_IN_US = re.compile(
    rf"\b{KINSHIP}(?:\s+{RESIDENCE_WORDS})*\s+(?i:in|at)\s+(?:(?i:the)\s+)?"
    r"(?:U\.S\.|USA?\b|(?i:united states|america))"
)


@dataclass
class FollowUpNeed:
    """Outcome of the local follow-up gate."""

    needed: bool
    reason: str | None = None


def extract_currency_numbers(text: str) -> list[float]:
    """
    Extract positive amounts from text.

    Handles "$50,000", "$50k", "NPR 5000000", "50k" and bare numbers.
    Thousands separators are removed and a "k" suffix multiplies by 1000.

    Args:
        text: Answer text

    Returns:
        Amounts in pattern order (the same figure may appear more than once)
    """
    numbers = []
    for pattern in CURRENCY_PATTERNS:
        for match in pattern.finditer(text):
            value = float(match.group(1).replace(",", ""))
            if "k" in match.group(0).lower():
                value *= 1000
            if value > 0:
                numbers.append(value)
    return numbers


def extract_role(text: str) -> str | None:
    """Extract a job title phrase such as "software engineer"."""
    for pattern in ROLE_PATTERNS:
        match = pattern.search(text)
        if match and match.group(1).strip():
            return match.group(1).strip().lower()
    return None


def extract_sponsor(text: str) -> str | None:
    """Extract the sponsor relationship."""
    lowered = text.lower()
    if "father" in lowered:
        return "father"
    if "mother" in lowered:
        return "mother"
    if "parents" in lowered:
        return "parents"
    if "self" in lowered:
        return "self"
    if "uncle" in lowered or "aunt" in lowered:
        return "relative"
    return None


def extract_country(text: str) -> str | None:
    """Extract the first country mentioned, normalizing US variants to "US"."""
    for pattern, normalized in COUNTRY_PATTERNS:
        if pattern.search(text):
            return normalized
    return None


def update_memory(
    memory: FactMemory | None,
    answer: str,
    question_type: QuestionCategory | str | None = None,
) -> FactMemory:
    """
    Record facts from an answer without overwriting earlier ones.

    Each extractor only runs when the answer contains words indicating its
    topic. A fact already present is kept (first value wins); the US
    relatives flag can only go from False to True.

    Args:
        memory: Current memory (None starts an empty one)
        answer: Candidate answer text
        question_type: Category of the question being answered

    Returns:
        New FactMemory instance
    """
    current = memory or FactMemory()
    numbers = extract_currency_numbers(answer)
    first_amount = numbers[0] if numbers else None
    updates: dict = {}

    def set_once(key: str, value) -> None:
        if value is not None and getattr(current, key) is None and key not in updates:
            updates[key] = value

    if first_amount is not None and COST_TRIGGER.search(answer):
        set_once("total_cost", first_amount)

    if first_amount is not None and SCHOLARSHIP_TRIGGER.search(answer):
        set_once("scholarship_amount", first_amount)

    if first_amount is not None and LOAN_TRIGGER.search(answer):
        set_once("loan_amount", first_amount)

    if SPONSOR_TRIGGER.search(answer):
        set_once("sponsor", extract_sponsor(answer))

    category = question_type.value if isinstance(question_type, QuestionCategory) else question_type
    if category == QuestionCategory.FINANCIAL.value and OCCUPATION_TRIGGER.search(answer):
        occupation = OCCUPATION_PATTERN.search(answer)
        if occupation and occupation.group(1).strip():
            set_once("sponsor_occupation", occupation.group(1).strip().lower())

    if PLANS_TRIGGER.search(answer):
        set_once("post_study_role", extract_role(answer))
        set_once("target_country", extract_country(answer))

    if RELATIVES_IN_US.search(answer):
        updates["relatives_us"] = True

    if updates:
        logger.debug(f"Fact memory updated: {sorted(updates)}")

    return current.model_copy(update=updates)


def check_contradiction(memory: FactMemory | None, answer: str) -> ContradictionLevel:
    """
    Compare the first amount in an answer with the recorded total cost.

    Only the total cost is checked numerically. Sponsor, occupation and
    country are handed to the scorer as prompt context instead.

    Args:
        memory: Current fact memory
        answer: New answer text

    Returns:
        MAJOR above 20% relative difference, MINOR above 10%, else NONE
    """
    if memory is None or not memory.total_cost:
        return ContradictionLevel.NONE

    numbers = extract_currency_numbers(answer)
    if not numbers:
        return ContradictionLevel.NONE

    delta = abs(numbers[0] - memory.total_cost) / memory.total_cost
    if delta > MAJOR_DELTA:
        return ContradictionLevel.MAJOR
    if delta > MINOR_DELTA:
        return ContradictionLevel.MINOR
    return ContradictionLevel.NONE


def needs_follow_up(
    question_type: QuestionCategory | str | None,
    answer: str,
    memory: FactMemory | None,
) -> FollowUpNeed:
    """
    Cheap local check for answers that warrant probing.

    Args:
        question_type: Category of the question answered
        answer: Candidate answer text
        memory: Current fact memory

    Returns:
        FollowUpNeed with reason finance_no_number, contradiction_<level> or too_vague
    """
    category = question_type.value if isinstance(question_type, QuestionCategory) else question_type
    has_number = bool(extract_currency_numbers(answer))
    answer_length = len(answer.strip())

    if category == QuestionCategory.FINANCIAL.value and not has_number and answer_length < 100:
        return FollowUpNeed(True, "finance_no_number")

    contradiction = check_contradiction(memory, answer)
    if contradiction != ContradictionLevel.NONE:
        return FollowUpNeed(True, f"contradiction_{contradiction.value}")

    if answer_length < 30:
        return FollowUpNeed(True, "too_vague")

    return FollowUpNeed(False)


def format_memory_facts(memory: FactMemory | None) -> list[str]:
    """Human-readable fact lines for prompts."""
    if memory is None:
        return []

    facts = []
    if memory.total_cost:
        facts.append(f"Total cost: ${memory.total_cost:,.0f}")
    if memory.sponsor:
        facts.append(f"Sponsor: {memory.sponsor}")
    if memory.scholarship_amount:
        facts.append(f"Scholarship: ${memory.scholarship_amount:,.0f}")
    if memory.loan_amount:
        facts.append(f"Loan: ${memory.loan_amount:,.0f}")
    if memory.sponsor_occupation:
        facts.append(f"Sponsor occupation: {memory.sponsor_occupation}")
    if memory.post_study_role:
        facts.append(f"Career plan: {memory.post_study_role}")
    if memory.target_country:
        facts.append(f"Return destination: {memory.target_country}")
    if memory.relatives_us:
        facts.append("Has relatives in US: YES (RED FLAG)")
    return facts
