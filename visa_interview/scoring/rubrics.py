"""
Route rubrics for answer scoring.

Every route shares four core dimensions and adds three route-specific
domain dimensions. The content score formula weights them in a fixed order.
"""

from dataclasses import dataclass

from visa_interview.core.data_models import Route

CORE_DIMENSIONS = ("communication", "relevance", "specificity", "consistency")

CORE_WEIGHTS = {
    "communication": 0.15,
    "relevance": 0.15,
    "specificity": 0.20,
    "consistency": 0.15,
}

# Applied to domain dimensions in rubric order
DOMAIN_WEIGHTS = (0.15, 0.10, 0.10)


@dataclass(frozen=True)
class RouteRubric:
    """Dimensions and weights used to score answers on one route."""

    route: Route
    domain_dimensions: tuple[str, str, str]

    @property
    def dimensions(self) -> tuple[str, ...]:
        return CORE_DIMENSIONS + self.domain_dimensions

    @property
    def weights(self) -> dict[str, float]:
        """Formula weights for all seven dimensions (sum to 1.0)."""
        weights = dict(CORE_WEIGHTS)
        weights.update(zip(self.domain_dimensions, DOMAIN_WEIGHTS))
        return weights


RUBRICS: dict[Route, RouteRubric] = {
    Route.USA_F1: RouteRubric(
        Route.USA_F1,
        ("academic_preparedness", "financial_capability", "intent_to_return"),
    ),
    Route.UK_STUDENT: RouteRubric(
        Route.UK_STUDENT,
        ("course_and_university_fit", "financial_requirement", "compliance_and_intent"),
    ),
    Route.FRANCE: RouteRubric(
        Route.FRANCE,
        ("program_fit", "financial_proof", "compliance_and_intent"),
    ),
}


def get_rubric(route: Route) -> RouteRubric:
    return RUBRICS[route]
