"""
Core Pydantic data models for the visa interview engine.

Defines the data structures shared across the engine:
- Routes, categories and other enumerations
- Question bank entries and candidate profiles
- Conversation history, fact memory and the session aggregate
- Selector input/output
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# ============================================================================
# Enumerations
# ============================================================================


class Route(str, Enum):
    """Interview route (destination country and visa type)."""

    USA_F1 = "usa_f1"
    UK_STUDENT = "uk_student"
    FRANCE = "france"


BOTH_ROUTES = "both"

ROUTE_ALIASES: dict[str, Route] = {
    "usa": Route.USA_F1,
    "usa_f1": Route.USA_F1,
    "uk": Route.UK_STUDENT,
    "uk_student": Route.UK_STUDENT,
    "france": Route.FRANCE,
    "france_ema": Route.FRANCE,
    "france_icn": Route.FRANCE,
}


def resolve_route(value: str | Route) -> Route:
    """
    Resolve a route name or alias to a canonical Route.

    Args:
        value: Route enum or name such as "usa", "uk_student", "france_ema"

    Returns:
        Canonical Route

    Raises:
        ValueError: Unknown route name
    """
    if isinstance(value, Route):
        return value
    key = value.strip().lower()
    if key not in ROUTE_ALIASES:
        raise ValueError(f"Unknown interview route: {value}")
    return ROUTE_ALIASES[key]


class QuestionCategory(str, Enum):
    """Topic category of a bank question."""

    FINANCIAL = "financial"
    ACADEMIC = "academic"
    INTENT = "intent"
    PERSONAL = "personal"
    POST_STUDY = "post_study"


class Difficulty(str, Enum):
    """Question difficulty."""

    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"


class DegreeLevel(str, Enum):
    """Degree level the candidate is applying for."""

    UNDERGRADUATE = "undergraduate"
    GRADUATE = "graduate"
    DOCTORATE = "doctorate"
    OTHER = "other"


class SessionStatus(str, Enum):
    """Lifecycle status of an interview session."""

    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"


class QuestionSource(str, Enum):
    """Where an issued question came from."""

    BANK = "bank"
    FOLLOWUP = "followup"


# ============================================================================
# Bank & Profile
# ============================================================================


class Question(BaseModel):
    """A pre-authored question in the route-tagged bank."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique question identifier within the bank")
    route: str = Field(..., description="Route value or 'both'")
    category: QuestionCategory
    difficulty: Difficulty
    text: str = Field(..., description="Question wording")
    keywords: list[str] = Field(default_factory=list, description="Topic keywords")
    follow_up_triggers: list[str] = Field(
        default_factory=list, description="Answer phrases that warrant a follow-up"
    )
    requires_context: list[str] = Field(
        default_factory=list,
        description="Context flags of which at least one must be true to ask this question",
    )

    @field_validator("route")
    @classmethod
    def validate_route(cls, v: str) -> str:
        """Accept canonical route values and 'both'."""
        if v == BOTH_ROUTES:
            return v
        return resolve_route(v).value

    @field_validator("keywords", "follow_up_triggers", mode="before")
    @classmethod
    def require_string_phrases(cls, v: list, info) -> list:
        """Reject YAML scalars such as unquoted yes/no that load as booleans."""
        for item in v or []:
            if not isinstance(item, str):
                raise ValueError(
                    f"{info.field_name} entries must be strings, got {item!r}; "
                    "quote yes/no/on/off in YAML"
                )
        return v

    @field_validator("keywords")
    @classmethod
    def normalize_keywords(cls, v: list[str]) -> list[str]:
        """Keywords are matched lowercase."""
        return [k.lower() for k in v]

    def matches_route(self, route: Route) -> bool:
        """Check if question can be asked on a route."""
        return self.route == BOTH_ROUTES or self.route == route.value


class StudentProfile(BaseModel):
    """Read-only candidate profile supplied by the caller."""

    name: str
    country: str = ""
    institution: str | None = None
    field_of_study: str | None = None
    degree_level: DegreeLevel | None = None
    previous_education: str | None = None

    def as_search_text(self) -> str:
        """Lowercase text of all profile values, for regex flag detection."""
        values = [str(v) for v in self.model_dump(mode="json").values() if v]
        return " ".join(values).lower()


# ============================================================================
# Session State
# ============================================================================


class ConversationEntry(BaseModel):
    """One issued question and, once given, the candidate's answer."""

    question: str
    answer: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    question_type: QuestionCategory | None = None
    difficulty: Difficulty | None = None
    question_id: str | None = None
    source: QuestionSource = QuestionSource.BANK
    cluster: str | None = Field(default=None, description="Semantic cluster, if any")
    answered_at: datetime | None = None

    @property
    def is_answered(self) -> bool:
        """Check if the candidate has responded."""
        return bool(self.answer.strip())


class FactMemory(BaseModel):
    """
    Facts extracted from answers, used for self-consistency checks.

    Values record the candidate's first claim; see
    ``visa_interview.interview.session_memory`` for the write policy.
    """

    model_config = ConfigDict(frozen=True)

    total_cost: float | None = None
    sponsor: str | None = None
    scholarship_amount: float | None = None
    loan_amount: float | None = None
    sponsor_occupation: str | None = None
    post_study_role: str | None = None
    target_country: str | None = None
    relatives_us: bool = False


class SessionScore(BaseModel):
    """Lightweight structural score computed when a session ends."""

    overall: int = Field(ge=0, le=100)
    communication: int = Field(ge=0, le=100)
    knowledge: int = Field(ge=0, le=100)
    confidence: int = Field(ge=0, le=100)


class InterviewSession(BaseModel):
    """
    Aggregate root for one interview.

    Treated as an immutable value: engine operations return updated copies
    built with ``model_copy(update=...)`` and never mutate an instance.
    """

    id: str
    user_id: str
    route: Route
    profile: StudentProfile
    conversation_history: list[ConversationEntry] = Field(default_factory=list)
    current_question_number: int = 1
    status: SessionStatus = SessionStatus.ACTIVE
    asked_question_ids: list[str] = Field(default_factory=list)
    asked_semantic_clusters: list[str] = Field(default_factory=list)
    session_memory: FactMemory | None = None
    score: SessionScore | None = None
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: datetime | None = None

    @property
    def last_entry(self) -> ConversationEntry | None:
        """Most recently issued question, if any."""
        return self.conversation_history[-1] if self.conversation_history else None

    def category_coverage(self) -> dict[str, int]:
        """Count bank questions issued per category."""
        coverage = {category.value: 0 for category in QuestionCategory}
        for entry in self.conversation_history:
            if entry.source == QuestionSource.BANK and entry.question_type is not None:
                coverage[entry.question_type.value] += 1
        return coverage

    def to_record(self) -> dict[str, Any]:
        """Serialize to a plain JSON-compatible dict for storage."""
        return self.model_dump(mode="json")

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "InterviewSession":
        """Restore a session from a stored record."""
        return cls.model_validate(record)


# ============================================================================
# Selection
# ============================================================================


class CategoryRequirement(BaseModel):
    """Minimum/maximum number of questions for a category."""

    min: int = Field(default=0, ge=0)
    max: int | None = Field(default=None, ge=0)


class SelectionContext(BaseModel):
    """Read-only view of a session handed to the question selector."""

    session_id: str
    route: Route
    profile: StudentProfile
    history: list[ConversationEntry] = Field(default_factory=list)
    asked_question_ids: list[str] = Field(default_factory=list)
    asked_clusters: list[str] = Field(default_factory=list)
    detected_red_flags: list[str] = Field(default_factory=list)
    category_coverage: dict[str, int] = Field(default_factory=dict)
    session_memory: FactMemory | None = None
    priority_category: QuestionCategory | None = None
    target_difficulty: Difficulty | None = None
    category_requirements: dict[str, CategoryRequirement] = Field(default_factory=dict)
    stage_gating: bool = False

    @property
    def step(self) -> int:
        """1-based index of the question being selected."""
        return len(self.history) + 1


class SelectedQuestion(BaseModel):
    """Question chosen by the selector."""

    question: str
    source: QuestionSource
    question_id: str = Field(..., description="Always set; synthesized for non-bank questions")
    cluster: str | None = None
    category: QuestionCategory | None = None
    difficulty: Difficulty | None = None
    path: str = Field(..., description="followup, llm, rule or closing")
    reasoning: str = ""
