"""
Question bank loading and lookup.

The bank is read once per process from packaged YAML and never mutated
afterwards. Concurrent first callers share one in-flight load.
"""

import asyncio
import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from visa_interview.core.data_models import Question, Route
from visa_interview.core.exceptions import QuestionBankError

logger = logging.getLogger(__name__)

DEFAULT_BANK_PATH = Path(__file__).resolve().parent.parent / "configs" / "question_bank.yaml"

# Used when the bank file cannot be read at all
DEFAULT_QUESTIONS: list[dict] = [
    {
        "id": "USA_FIN_001",
        "route": "usa_f1",
        "category": "financial",
        "difficulty": "easy",
        "text": "How will you finance your education in the United States?",
        "keywords": ["finance", "sponsor", "funding", "cost", "scholarship"],
        "follow_up_triggers": ["parents will pay", "sufficient", "covered"],
    },
    {
        "id": "USA_ACD_001",
        "route": "usa_f1",
        "category": "academic",
        "difficulty": "easy",
        "text": "Why do you want to study in the US?",
        "keywords": ["study", "education", "reason", "motivation"],
        "follow_up_triggers": ["dream", "best", "world-class"],
    },
    {
        "id": "USA_INT_001",
        "route": "usa_f1",
        "category": "intent",
        "difficulty": "medium",
        "text": "Do you plan to return to Nepal after completing your studies?",
        "keywords": ["return", "nepal", "plans", "future"],
        "follow_up_triggers": ["maybe", "thinking", "probably"],
    },
    {
        "id": "UK_FIN_001",
        "route": "uk_student",
        "category": "financial",
        "difficulty": "easy",
        "text": "What is the total cost of your education, including tuition and living expenses?",
        "keywords": ["cost", "tuition", "living", "maintenance"],
        "follow_up_triggers": ["sufficient", "enough", "covered"],
    },
    {
        "id": "UK_ACD_001",
        "route": "uk_student",
        "category": "academic",
        "difficulty": "easy",
        "text": "Why did you choose this specific university and course?",
        "keywords": ["university", "course", "choice", "reason"],
        "follow_up_triggers": ["good", "best", "ranked"],
    },
    {
        "id": "UK_INT_001",
        "route": "uk_student",
        "category": "intent",
        "difficulty": "medium",
        "text": "Do you know the rules for international students working in the UK?",
        "keywords": ["work", "rules", "hours", "employment"],
        "follow_up_triggers": ["yes", "allowed", "can work"],
    },
    {
        "id": "BOTH_ACD_001",
        "route": "both",
        "category": "academic",
        "difficulty": "medium",
        "text": "Why did you choose this specific field of study?",
        "keywords": ["field", "major", "program", "career"],
        "follow_up_triggers": ["passion", "interest"],
    },
]


class QuestionBank:
    """Immutable catalogue of bank questions."""

    def __init__(self, questions: list[Question]):
        """
        Initialize bank.

        Args:
            questions: Validated questions

        Raises:
            QuestionBankError: Two questions share an id
        """
        seen: set[str] = set()
        duplicates = []
        for question in questions:
            if question.id in seen:
                duplicates.append(question.id)
            seen.add(question.id)

        if duplicates:
            raise QuestionBankError(f"Duplicate question ids in bank: {', '.join(duplicates)}")

        self._questions = tuple(questions)
        self._by_id = {q.id: q for q in questions}

    @classmethod
    def from_dicts(cls, raw_questions: list[dict]) -> "QuestionBank":
        """
        Build a bank from raw question mappings.

        Raises:
            QuestionBankError: A question fails validation or ids collide
        """
        questions = []
        for idx, raw in enumerate(raw_questions):
            try:
                questions.append(Question.model_validate(raw))
            except ValidationError as e:
                raise QuestionBankError(f"Invalid question at index {idx}: {e}") from e
        return cls(questions)

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    def __len__(self) -> int:
        return len(self._questions)

    def __contains__(self, question_id: str) -> bool:
        return question_id in self._by_id

    def get(self, question_id: str) -> Question | None:
        """Look up a question by id."""
        return self._by_id.get(question_id)

    def for_route(self, route: Route) -> list[Question]:
        """Questions askable on a route (route-specific plus shared)."""
        return [q for q in self._questions if q.matches_route(route)]


def load_question_bank(bank_path: str | Path | None = None) -> QuestionBank:
    """
    Load question bank from YAML, falling back to the built-in defaults.

    A missing or unparseable file degrades to the default bank with a
    warning. A readable file with invalid content is an error.

    Args:
        bank_path: Path to question bank YAML (defaults to the packaged file)

    Returns:
        QuestionBank: Loaded bank

    Raises:
        QuestionBankError: File content violates the bank invariants
    """
    path = Path(bank_path) if bank_path else DEFAULT_BANK_PATH

    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.warning(f"Failed to load question bank from {path} ({e}), using defaults")
        return QuestionBank.from_dicts(DEFAULT_QUESTIONS)

    if not isinstance(data, dict) or not isinstance(data.get("questions"), list):
        raise QuestionBankError(f"Question bank must define a 'questions' list: {path}")

    bank = QuestionBank.from_dicts(data["questions"])
    logger.info(f"Loaded {len(bank)} questions from {path}")
    return bank


class QuestionBankLoader:
    """Loads the bank at most once and shares the in-flight load."""

    def __init__(self, bank_path: str | Path | None = None):
        """
        Initialize loader.

        Args:
            bank_path: Path to question bank YAML
        """
        self.bank_path = bank_path
        self._bank: QuestionBank | None = None
        self._pending: asyncio.Task | None = None
        self.load_count = 0

    async def get(self) -> QuestionBank:
        """
        Return the cached bank, loading it on first use.

        Concurrent callers during the first load await the same task. A
        failed load is not cached, so a later caller can try again.
        """
        if self._bank is not None:
            return self._bank

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._load())

        pending = self._pending
        try:
            bank = await asyncio.shield(pending)
        except Exception:
            if self._pending is pending:
                self._pending = None
            raise

        return bank

    async def _load(self) -> QuestionBank:
        self.load_count += 1
        bank = await asyncio.to_thread(load_question_bank, self.bank_path)
        self._bank = bank
        self._pending = None
        return bank

    def reset(self) -> None:
        """Drop the cached bank (tests and hot reload)."""
        self._bank = None
        self._pending = None


_default_loader = QuestionBankLoader()


async def get_question_bank() -> QuestionBank:
    """Process-wide question bank, loaded once."""
    return await _default_loader.get()
