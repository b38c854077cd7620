"""
Question Deduplicator for detecting near-duplicate question text.

Runs independently of semantic clustering, against every question already
asked in the session:
- Exact match after normalization
- Word overlap (Jaccard similarity of stopword-filtered tokens)
"""

import logging
import re

logger = logging.getLogger(__name__)


class QuestionDeduplicator:
    """Reject candidate questions that repeat earlier wording."""

    # Stopwords to exclude from word overlap calculation
    STOPWORDS = {
        "what", "why", "how", "do", "did", "are", "is", "your", "you", "the",
        "in", "to", "of", "for", "on", "at", "this", "that", "it", "a", "an",
        "any", "have", "will", "can",
    }

    def __init__(self, word_overlap_threshold: float = 0.70):
        """
        Initialize question deduplicator.

        Args:
            word_overlap_threshold: Jaccard similarity threshold (0-1)
        """
        self.word_overlap_threshold = word_overlap_threshold

    def is_repetitive(
        self, new_question: str, question_history: list[str]
    ) -> tuple[bool, str, float]:
        """
        Check if question repeats any previous question.

        Args:
            new_question: Question to check
            question_history: All previous questions in the session

        Returns:
            Tuple of (is_repetitive, reason, similarity_score)
        """
        if not question_history:
            return False, "not_repetitive", 0.0

        candidate_norm = self.normalize(new_question)
        candidate_tokens = self.tokens(new_question)

        for past_q in question_history:
            if candidate_norm and candidate_norm == self.normalize(past_q):
                logger.warning(f"Exact duplicate question rejected: {new_question[:60]}")
                return True, "exact_match", 1.0

            word_sim = self.jaccard(candidate_tokens, self.tokens(past_q))
            if word_sim >= self.word_overlap_threshold:
                logger.warning(
                    f"Word overlap detected: {word_sim:.2f} >= {self.word_overlap_threshold}"
                )
                return True, "word_overlap", word_sim

        return False, "not_repetitive", 0.0

    @staticmethod
    def normalize(text: str) -> str:
        """Lowercase, drop quotes and punctuation, collapse whitespace."""
        text = re.sub(r"[“”\"'’]", "", text.lower())
        text = re.sub(r"[^a-z0-9\s]", " ", text)
        return re.sub(r"\s+", " ", text).strip()

    def tokens(self, text: str) -> set[str]:
        return {w for w in self.normalize(text).split(" ") if w and w not in self.STOPWORDS}

    @staticmethod
    def jaccard(words1: set[str], words2: set[str]) -> float:
        """
        Calculate Jaccard similarity of two token sets.

        Returns:
            Jaccard similarity score (0-1), 0 when both sets are empty
        """
        union = len(words1 | words2)
        if union == 0:
            return 0.0
        return len(words1 & words2) / union
