"""
Route-specific follow-up rules.

Each rule pairs a topic pattern with a trigger predicate over the last
answer. Rules are checked in order and the first match produces the
follow-up. Follow-ups are not bank members, so they get synthetic ids.
"""

import logging
import re
import time
from collections.abc import Callable
from dataclasses import dataclass

from visa_interview.core.data_models import Route

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FollowUpRule:
    """One pattern-triggered follow-up."""

    name: str
    pattern: re.Pattern
    trigger: Callable[[str], bool]
    text: str

    def matches(self, answer: str) -> bool:
        return bool(self.pattern.search(answer)) and self.trigger(answer)


def _has(regex: str) -> Callable[[str], bool]:
    compiled = re.compile(regex, re.IGNORECASE)
    return lambda answer: bool(compiled.search(answer))


def _lacks(regex: str) -> Callable[[str], bool]:
    compiled = re.compile(regex, re.IGNORECASE)
    return lambda answer: not compiled.search(answer)


def _both(*predicates: Callable[[str], bool]) -> Callable[[str], bool]:
    return lambda answer: all(p(answer) for p in predicates)


def _fewer_words(limit: int) -> Callable[[str], bool]:
    return lambda answer: len(answer.split()) < limit


def _shorter_than(limit: int) -> Callable[[str], bool]:
    return lambda answer: len(answer) < limit


def _rule(name: str, pattern: str, trigger: Callable[[str], bool], text: str) -> FollowUpRule:
    return FollowUpRule(name, re.compile(pattern, re.IGNORECASE), trigger, text)


USA_RULES = [
    _rule(
        "parents_amount",
        r"parents?|father|mother|family",
        _both(_has(r"will pay|paying|support|fund"), _lacks(r"\$\d+|dollar|USD|thousand")),
        "You mentioned your parents will pay for your education. Can you specify the exact "
        "dollar amount they will be contributing?",
    ),
    _rule(
        "sponsor_occupation",
        r"sponsor|funding|finance",
        _lacks(r"occupation|job|business|profession|income"),
        "Can you tell me more about your sponsor's occupation and how they'll be funding "
        "your education?",
    ),
    _rule(
        "scholarship_amount",
        r"scholarship|award|grant",
        _lacks(r"\$\d+|amount|percentage|full|partial"),
        "You mentioned a scholarship. Can you specify the exact amount or percentage of "
        "tuition it covers?",
    ),
    _rule(
        "coached_language",
        r"dream|passion|world[- ]?class|best|pursue|opportunity",
        _has(r"(fulfill|achieve) (my )?dream|(world[- ]?class|best) (education|university)"),
        "Can you give me more specific, practical reasons for choosing this university "
        "beyond general statements?",
    ),
    _rule(
        "uncertain_return",
        r"return|come back|go back|plans?",
        _has(r"maybe|thinking|might|probably|planning|considering"),
        "You seem uncertain about returning home. Can you describe concrete plans or "
        "commitments that tie you to your home country after graduation?",
    ),
    _rule(
        "thin_academic_reason",
        r"major|degree|study|course",
        _both(_fewer_words(15), _lacks(r"because|specific|career|interest|experience")),
        "Can you elaborate more on your specific academic interests and how they relate to "
        "your career goals back home?",
    ),
    _rule(
        "loan_details",
        r"loan|education loan|bank loan",
        _both(_has(r"loan"), _lacks(r"approved|sanctioned|\$\d+|interest|rate|tenure|emi|amount")),
        "You mentioned an education loan. Is it approved? What is the sanctioned amount, "
        "interest rate, and repayment plan?",
    ),
    _rule(
        "deposit_source",
        r"deposit|lump sum|recently deposited|bank statement",
        _both(
            _has(r"deposit|lump sum|recent"),
            _lacks(r"salary|business income|sale deed|gift deed|inheritance|evidence"),
        ),
        "There are large recent deposits in your bank statements. Can you explain the source "
        "with evidence (salary, business revenue, sale deed, or gift deed)?",
    ),
    _rule(
        "business_revenue",
        r"business|family business|shop|company|factory",
        _both(
            _has(r"business|company|factory|shop"),
            _lacks(r"annual (income|revenue)|turnover|tax returns?|profit"),
        ),
        "You said your family runs a business. What is the annual revenue and what do the "
        "tax returns show for the last year?",
    ),
    _rule(
        "us_relatives_support",
        r"uncle|aunt|cousin|relative|friend in (the )?US|usa",
        _both(_has(r"uncle|aunt|cousin|relative|friend"), _lacks(r"financial support|sponsor|no support")),
        "You mentioned relatives or friends in the US. Are they providing any financial "
        "support? If not, clarify your independent funding.",
    ),
]

UK_RULES = [
    _rule(
        "module_names",
        r"business|management|marketing|finance modules?",
        _lacks(r"specific|module name|[A-Z]{4}\s?\d{3,4}|e\.g\.|such as"),
        "You mentioned business modules. Can you tell me the specific module names or codes "
        "you'll be studying?",
    ),
    _rule(
        "maintenance_amount",
        r"sufficient|enough|covered|funds?|money|pay",
        _lacks(r"£\s?\d|\d{1,3},\d{3}|\d{4,}|thousand"),
        "You mentioned having sufficient funds. Can you specify the exact maintenance "
        "requirement amount for your course duration?",
    ),
    _rule(
        "accommodation_cost",
        r"accommodation|housing|living|residence",
        _lacks(r"£\d+|week|month|specific|address|arranged"),
        "Can you provide more details about your accommodation arrangements, including the "
        "weekly or monthly cost?",
    ),
    _rule(
        "agent_research",
        r"agent|consultant|agency|representative",
        _has(r"told|said|suggested|recommended|helped|guided"),
        "I see you mentioned an agent or consultant. Can you explain what independent "
        "research you did about the university and course?",
    ),
    _rule(
        "work_hours",
        r"work|job|employment|earn",
        _lacks(r"20 hours?|part[- ]?time|limit|restriction"),
        "You mentioned working while studying. Are you aware of the work hour restrictions "
        "for international students in the UK?",
    ),
    _rule(
        "reputation_only",
        r"university|chose|selected|picked",
        _both(_has(r"good|best|top|ranked|prestigious"), _shorter_than(100)),
        "You mentioned the university's reputation. Can you be more specific about what "
        "research you did comparing different universities for your course?",
    ),
    _rule(
        "course_reason",
        r"course|program|degree",
        _both(_fewer_words(20), _lacks(r"because|specific|research|module|career")),
        "Can you elaborate more on why you chose this specific course and how it aligns "
        "with your career goals?",
    ),
    _rule(
        "bank_statement_rule",
        r"bank|statement|savings|deposit",
        _lacks(r"28[- ]?day|consecutive|period|rule"),
        "Regarding your financial documents, are you aware of the 28-day rule for bank "
        "statements?",
    ),
]

FRANCE_RULES = [
    _rule(
        "programme_duration",
        r"course|programme|program",
        _lacks(r"duration|length|years?|months?|\d+"),
        "Can you specify the exact duration of your course?",
    ),
    _rule(
        "tuition_amount",
        r"tuition|fees?|cost",
        _lacks(r"€|euro|amount|\d+"),
        "Can you provide the exact tuition fee amount for your programme?",
    ),
    _rule(
        "career_specifics",
        r"career|objectives?|goals?",
        _both(_fewer_words(20), _lacks(r"specific|role|position|industry")),
        "Can you be more specific about your career objectives and the role you're targeting?",
    ),
    _rule(
        "choice_beyond_reputation",
        r"chose|choose|selected",
        _both(_has(r"good|best|top|ranked|reputation"), _shorter_than(100)),
        "Beyond the reputation, what specific features of the programme attracted you?",
    ),
    _rule(
        "sponsor_identity",
        r"sponsor|financing|paying",
        _lacks(r"parent|family|loan|scholarship|savings"),
        "Who specifically will be sponsoring your studies? What is their relationship to you?",
    ),
    _rule(
        "work_regulations",
        r"work|job|employment",
        _both(_has(r"yes|maybe|plan"), _lacks(r"hours?|part[- ]?time|rules")),
        "Are you aware of the work regulations for international students in France?",
    ),
    _rule(
        "qualification_details",
        r"background|experience|education",
        _both(_fewer_words(25), _lacks(r"degree|university|years?|graduated")),
        "Can you provide more details about your academic qualifications and when you "
        "completed them?",
    ),
]

ROUTE_RULES: dict[Route, list[FollowUpRule]] = {
    Route.USA_F1: USA_RULES,
    Route.UK_STUDENT: UK_RULES,
    Route.FRANCE: FRANCE_RULES,
}


def detect_follow_up(route: Route, answer: str) -> FollowUpRule | None:
    """
    Find the first follow-up rule triggered by an answer.

    Args:
        route: Interview route
        answer: Last answer text

    Returns:
        Matching rule, or None
    """
    if not answer.strip():
        return None

    for rule in ROUTE_RULES.get(route, []):
        if rule.matches(answer):
            logger.debug(f"Follow-up rule '{rule.name}' triggered for {route.value}")
            return rule
    return None


def follow_up_id(route: Route, step: int, timestamp_ms: int | None = None) -> str:
    """Synthetic id for a follow-up question: FOLLOWUP_<route>_<step>_<ts>."""
    ts = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f"FOLLOWUP_{route.value}_{step}_{ts}"
