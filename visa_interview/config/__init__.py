"""Interview mode configuration."""

from visa_interview.config.interview_config_loader import (
    InterviewConfigLoader,
    InterviewModeConfig,
)

__all__ = ["InterviewConfigLoader", "InterviewModeConfig"]
