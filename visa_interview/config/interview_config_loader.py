"""
Interview Mode Configuration Loader - Loads per-route interview settings from YAML.
Provides clean separation between configuration and codebase.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from visa_interview.core.data_models import (
    CategoryRequirement,
    Difficulty,
    QuestionCategory,
    Route,
    resolve_route,
)

logger = logging.getLogger(__name__)

DEFAULT_MODES_PATH = Path(__file__).resolve().parent.parent / "configs" / "interview_modes.yaml"


@dataclass
class InterviewModeConfig:
    """Interview settings for one route."""
    route: Route
    name: str
    question_count: int
    answer_time_seconds: int
    prep_time_seconds: int | None = None
    category_requirements: dict[str, CategoryRequirement] = field(default_factory=dict)
    difficulty_schedule: list[Difficulty] = field(default_factory=list)
    priority_category: QuestionCategory | None = None
    stage_gating: bool = False
    fact_memory: bool = True
    ranking_timeout_seconds: float = 10.0
    scoring_timeout_seconds: float = 30.0

    def difficulty_for_step(self, step: int) -> Difficulty | None:
        """Scheduled difficulty for a 1-based step; the last entry repeats."""
        if not self.difficulty_schedule:
            return None
        index = min(step - 1, len(self.difficulty_schedule) - 1)
        return self.difficulty_schedule[max(index, 0)]


class InterviewConfigLoader:
    """Loads and validates interview mode configuration from YAML."""

    def __init__(self, config_path: str | Path | None = None):
        """Initialize the config loader.

        Args:
            config_path: Path to the interview modes file (defaults to the packaged file)
        """
        self.config_path = Path(config_path) if config_path else DEFAULT_MODES_PATH
        self._config_data: dict[str, Any] | None = None
        self._modes: dict[Route, InterviewModeConfig] | None = None

    def load_config(self) -> dict[Route, InterviewModeConfig]:
        """Load and validate all route modes.

        Returns:
            Mapping of route to its mode configuration

        Raises:
            ValueError: If configuration is invalid
            FileNotFoundError: If config file doesn't exist
        """
        if self._modes is not None:
            return self._modes

        logger.info(f"Loading interview modes from {self.config_path}")

        if not self.config_path.exists():
            raise FileNotFoundError(f"Interview modes file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ValueError(f"Failed to parse YAML config: {e}") from e

        self._modes = self._validate_and_create_modes()
        return self._modes

    def get_mode(self, route: str | Route) -> InterviewModeConfig:
        """Mode configuration for a route name or alias.

        Raises:
            ValueError: Unknown route or route missing from the file
        """
        resolved = resolve_route(route)
        modes = self.load_config()
        if resolved not in modes:
            raise ValueError(f"No interview mode configured for route '{resolved.value}'")
        return modes[resolved]

    def _validate_and_create_modes(self) -> dict[Route, InterviewModeConfig]:
        """Validate configuration and create one InterviewModeConfig per route."""
        modes_data = self._config_data.get('modes', {})
        if not isinstance(modes_data, dict) or not modes_data:
            raise ValueError("Interview modes file must define a non-empty 'modes' mapping")

        modes = {}
        for route_name, data in modes_data.items():
            try:
                route = resolve_route(route_name)
                modes[route] = InterviewModeConfig(
                    route=route,
                    name=data.get('name', route.value),
                    question_count=int(data.get('question_count', 8)),
                    answer_time_seconds=int(data.get('answer_time_seconds', 30)),
                    prep_time_seconds=data.get('prep_time_seconds'),
                    category_requirements=self._parse_requirements(
                        data.get('category_requirements', {})
                    ),
                    difficulty_schedule=[
                        Difficulty(d) for d in data.get('difficulty_schedule', [])
                    ],
                    priority_category=(
                        QuestionCategory(data['priority_category'])
                        if data.get('priority_category')
                        else None
                    ),
                    stage_gating=bool(data.get('stage_gating', False)),
                    fact_memory=bool(data.get('fact_memory', True)),
                    ranking_timeout_seconds=float(data.get('ranking_timeout_seconds', 10)),
                    scoring_timeout_seconds=float(data.get('scoring_timeout_seconds', 30)),
                )
            except (TypeError, ValueError, AttributeError) as e:
                raise ValueError(f"Invalid mode configuration for '{route_name}': {e}") from e

            if modes[route].question_count < 1:
                raise ValueError(f"question_count must be positive for '{route_name}'")

        logger.info(f"Loaded {len(modes)} interview modes: {', '.join(r.value for r in modes)}")
        return modes

    @staticmethod
    def _parse_requirements(raw: dict) -> dict[str, CategoryRequirement]:
        requirements = {}
        for category, bounds in raw.items():
            # Raises ValueError for unknown categories
            QuestionCategory(category)
            requirements[category] = CategoryRequirement(**(bounds or {}))
        return requirements
