"""
Score validator for LLM rubric scoring.

Detects known failure patterns in provider scores and corrects the content
score. Corrections run in a fixed, cumulative order:
1. All-zero rubric: word-count gated floor
2. Zero-domain pattern: core-only score, domain dimensions excluded
3. Healthy-core floor
4. Word-count floor
5. Formula consistency against the weighted rubric formula
"""

import logging
import math
from dataclasses import dataclass, field

from visa_interview.scoring.rubrics import CORE_DIMENSIONS, RouteRubric

logger = logging.getLogger(__name__)

CORE_AVERAGE_THRESHOLD = 60
HEALTHY_CORE_THRESHOLD = 70
HEALTHY_CORE_FLOOR = 50
ANSWER_FLOOR = 30
ANSWER_FLOOR_MIN_WORDS = 10
CONSISTENCY_THRESHOLD = 30

ANOMALY_SCORE_THRESHOLD = 40

ASR_CONFIDENCE_THRESHOLD = 0.5
ASR_SCORE_THRESHOLD = 40
ASR_BOOST_PERCENTAGE = 0.25


@dataclass
class ScoreValidationResult:
    """Result of validating one provider score."""

    is_valid: bool
    has_zero_dimension_pattern: bool
    original_content_score: float
    corrected_content_score: int
    excluded_dimensions: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    redistributed_weights: dict[str, float] = field(default_factory=dict)


@dataclass
class AsrBoostResult:
    """Outcome of the low-confidence transcription boost."""

    score: float
    boosted: bool
    boost_amount: float


def round_half_up(value: float) -> int:
    """Round .5 upward (77.5 -> 78), unlike Python's banker's rounding."""
    return int(math.floor(value + 0.5))


def core_average(scores: dict[str, float]) -> float:
    """Unweighted mean of the four core dimensions."""
    return sum(scores.get(dim, 0) for dim in CORE_DIMENSIONS) / len(CORE_DIMENSIONS)


def has_domain_dimensions(rubric: RouteRubric, scores: dict[str, float]) -> bool:
    return all(dim in scores for dim in rubric.domain_dimensions)


def detect_all_zero(rubric: RouteRubric, scores: dict[str, float]) -> bool:
    """True if every rubric dimension is exactly 0."""
    return all(scores.get(dim, 0) == 0 for dim in rubric.dimensions)


def detect_zero_dimension_pattern(rubric: RouteRubric, scores: dict[str, float]) -> bool:
    """
    Detect domain dimensions all 0 while core dimensions are healthy.

    This means the question was factual and the domain criteria did not
    apply, rather than that the answer was poor.
    """
    if not all(scores.get(dim, 0) == 0 for dim in rubric.domain_dimensions):
        return False
    return core_average(scores) >= CORE_AVERAGE_THRESHOLD


def calculate_weighted_score(rubric: RouteRubric, scores: dict[str, float]) -> float:
    """Content score by the fixed weighted formula over all dimensions."""
    return sum(weight * scores.get(dim, 0) for dim, weight in rubric.weights.items())


def redistribute_weights(rubric: RouteRubric, excluded_dimensions: list[str]) -> dict[str, float]:
    """
    Renormalize weights after excluding dimensions.

    Remaining weights are divided by (1 - excluded weight) so they still
    sum to 1.0 and keep their relative emphasis. Excluded dimensions get 0.

    Args:
        rubric: Route rubric
        excluded_dimensions: Dimension names to exclude

    Returns:
        New weights for every rubric dimension
    """
    weights = rubric.weights
    excluded_weight = sum(weights.get(dim, 0) for dim in excluded_dimensions)
    remaining_weight = 1 - excluded_weight
    remaining = [dim for dim in weights if dim not in excluded_dimensions]

    if not remaining or remaining_weight <= 0:
        return dict(weights)

    return {
        dim: 0.0 if dim in excluded_dimensions else weight / remaining_weight
        for dim, weight in weights.items()
    }


def validate_and_correct_score(
    rubric: RouteRubric,
    scores: dict[str, float],
    content_score: float,
    answer_word_count: int,
) -> ScoreValidationResult:
    """
    Validate a provider score and apply corrections.

    Only applies when the rubric carries all three domain dimensions;
    otherwise the provider score passes through unchanged.

    Args:
        rubric: Route rubric
        scores: Clamped dimension scores from the provider
        content_score: Provider content score
        answer_word_count: Words in the scored answer

    Returns:
        ScoreValidationResult with the corrected content score
    """
    if not has_domain_dimensions(rubric, scores):
        return ScoreValidationResult(
            is_valid=True,
            has_zero_dimension_pattern=False,
            original_content_score=content_score,
            corrected_content_score=round_half_up(content_score),
        )

    warnings = []
    excluded = []
    redistributed = {}
    corrected = content_score
    is_valid = True
    core_avg = core_average(scores)

    # 1. All-zero rubric is a scoring failure, never a real signal
    if detect_all_zero(rubric, scores):
        is_valid = False
        corrected = ANSWER_FLOOR if answer_word_count > ANSWER_FLOOR_MIN_WORDS else 0
        warnings.append(
            f"All rubric dimensions are 0 (scoring failure). Answer has {answer_word_count} "
            f"words; using floor of {corrected}."
        )
        logger.warning(f"All-zero rubric detected, corrected score {corrected}")

    # 2. Zero-domain pattern
    zero_domain = detect_zero_dimension_pattern(rubric, scores)
    if zero_domain:
        is_valid = False
        excluded.extend(rubric.domain_dimensions)
        redistributed = redistribute_weights(rubric, excluded)
        corrected = core_avg
        warnings.append(
            f"Zero-dimension pattern detected: domain dimensions are 0 but core avg is "
            f"{core_avg:.1f}. Recalculating with core dimensions only."
        )
        logger.info(
            f"Zero-dimension pattern: original={content_score} corrected={core_avg:.1f}"
        )
    elif content_score == 0 and core_avg >= CORE_AVERAGE_THRESHOLD:
        is_valid = False
        corrected = core_avg
        warnings.append(
            f"Provider returned contentScore=0 but core dimensions avg is {core_avg:.1f}. "
            f"Overriding with core average."
        )

    # 3. Healthy-core floor
    if core_avg >= HEALTHY_CORE_THRESHOLD and corrected < HEALTHY_CORE_FLOOR:
        is_valid = False
        previous = corrected
        corrected = HEALTHY_CORE_FLOOR
        warnings.append(
            f"Core dimensions avg is {core_avg:.1f} (>={HEALTHY_CORE_THRESHOLD}) but content "
            f"score was {previous}. Applying floor of {HEALTHY_CORE_FLOOR}."
        )
        logger.info(f"Healthy core floor applied: {previous} -> {HEALTHY_CORE_FLOOR}")

    # 4. Word-count floor
    if answer_word_count > ANSWER_FLOOR_MIN_WORDS and corrected < ANSWER_FLOOR:
        is_valid = False
        previous = corrected
        corrected = ANSWER_FLOOR
        warnings.append(
            f"Answer has {answer_word_count} words but content score was {previous}. "
            f"Applying minimum floor of {ANSWER_FLOOR}."
        )
        logger.info(f"Minimum floor applied: {previous} -> {ANSWER_FLOOR}")

    # 5. Formula consistency
    formula_score = core_avg if zero_domain else calculate_weighted_score(rubric, scores)
    difference = abs(content_score - formula_score)
    if difference > CONSISTENCY_THRESHOLD and not zero_domain:
        is_valid = False
        # Earlier corrections take precedence over the formula
        if corrected == content_score:
            corrected = formula_score
        warnings.append(
            f"Provider contentScore ({content_score}) differs from formula result "
            f"({formula_score:.1f}) by {difference:.1f} points "
            f"(threshold: {CONSISTENCY_THRESHOLD}). Using formula-calculated score."
        )
        logger.warning(
            f"Consistency correction: provider={content_score} formula={formula_score:.1f}"
        )

    return ScoreValidationResult(
        is_valid=is_valid,
        has_zero_dimension_pattern=zero_domain,
        original_content_score=content_score,
        corrected_content_score=round_half_up(corrected),
        excluded_dimensions=excluded,
        warnings=warnings,
        redistributed_weights=redistributed,
    )


def detect_scoring_anomaly(score: float, word_count: int) -> bool:
    """A low score for a substantive answer is likely a scoring error."""
    return score < ANOMALY_SCORE_THRESHOLD and word_count > ANSWER_FLOOR_MIN_WORDS


def apply_asr_boost(content_score: float, asr_confidence: float) -> AsrBoostResult:
    """
    Boost low scores when the transcript itself is unreliable.

    Args:
        content_score: Current content score
        asr_confidence: Transcription confidence (0-1)

    Returns:
        AsrBoostResult (score unchanged when no boost applies)
    """
    if asr_confidence < ASR_CONFIDENCE_THRESHOLD and content_score < ASR_SCORE_THRESHOLD:
        boost_amount = content_score * ASR_BOOST_PERCENTAGE
        boosted = round_half_up(content_score + boost_amount)
        logger.info(
            f"ASR boost applied: {content_score} -> {boosted} (confidence {asr_confidence:.2f})"
        )
        return AsrBoostResult(score=boosted, boosted=True, boost_amount=boost_amount)

    return AsrBoostResult(score=content_score, boosted=False, boost_amount=0.0)
