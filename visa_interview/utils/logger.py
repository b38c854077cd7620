"""
Logging setup for the visa interview engine.

Modules log through ``logging.getLogger(__name__)``. This module adds the
handlers: console output, a rotating engine log and, for interview
sessions, one plain log file per session id. Level and directory come from
``INTERVIEW_LOG_LEVEL`` and ``INTERVIEW_LOG_DIR``.
"""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ENGINE_LOG_FILE = "visa_interview.log"
ENGINE_LOG_MAX_BYTES = 5 * 1024 * 1024
ENGINE_LOG_BACKUPS = 5

FALLBACK_LOGS_DIR = Path("/tmp/logs")

_configured: dict[str, logging.Logger] = {}


def get_project_root() -> Path:
    """Repository root (two levels above this package's utils/)."""
    return Path(__file__).resolve().parents[2]


def get_logs_dir() -> Path:
    """
    Resolve and create the log directory.

    Order: INTERVIEW_LOG_DIR, then <project root>/logs, then /tmp/logs if
    the project directory cannot be written.

    Returns:
        Path: Existing logs directory
    """
    configured = os.getenv("INTERVIEW_LOG_DIR")
    logs_dir = Path(configured) if configured else get_project_root() / "logs"

    try:
        logs_dir.mkdir(parents=True, exist_ok=True)
    except PermissionError:
        logs_dir = FALLBACK_LOGS_DIR
        logs_dir.mkdir(parents=True, exist_ok=True)

    return logs_dir


def _level_from_env() -> int:
    name = os.getenv("INTERVIEW_LOG_LEVEL", "INFO").upper()
    return getattr(logging, name, logging.INFO)


def _file_handlers(session_id: Optional[str]) -> list[logging.Handler]:
    logs_dir = get_logs_dir()
    handlers: list[logging.Handler] = [
        RotatingFileHandler(
            logs_dir / ENGINE_LOG_FILE,
            maxBytes=ENGINE_LOG_MAX_BYTES,
            backupCount=ENGINE_LOG_BACKUPS,
        )
    ]
    if session_id:
        handlers.append(logging.FileHandler(logs_dir / f"session_{session_id}.log"))
    return handlers


def setup_logger(
    name: str,
    level: Optional[int] = None,
    log_to_console: bool = True,
    log_to_file: bool = True,
    session_id: Optional[str] = None,
) -> logging.Logger:
    """
    Configure a named logger once and return it.

    Args:
        name: Logger name
        level: Logging level (defaults to INTERVIEW_LOG_LEVEL, else INFO)
        log_to_console: Attach a stdout handler
        log_to_file: Attach the rotating engine log (and session log)
        session_id: Also write to session_<id>.log

    Returns:
        Configured logger
    """
    key = f"{name}_{session_id}" if session_id else name
    if key in _configured:
        return _configured[key]

    level = _level_from_env() if level is None else level
    logger = logging.getLogger(name)
    logger.setLevel(level)

    if not logger.handlers:
        handlers: list[logging.Handler] = []
        if log_to_console:
            handlers.append(logging.StreamHandler(sys.stdout))
        if log_to_file:
            handlers.extend(_file_handlers(session_id))

        formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
        for handler in handlers:
            handler.setLevel(level)
            handler.setFormatter(formatter)
            logger.addHandler(handler)

    _configured[key] = logger
    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger configured by setup_logger, configuring it if needed."""
    return _configured.get(name) or setup_logger(name)


class InterviewLogger:
    """
    Per-session event log.

    Writes one line per interview event to ``session_<id>.log`` so a single
    session can be replayed without filtering the engine log.
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        log_to_console: bool = False,
        log_to_file: bool = True,
    ):
        self.session_id = session_id or datetime.now().strftime("%Y%m%d_%H%M%S")
        self.logger = setup_logger(
            f"visa_interview.session.{self.session_id}",
            log_to_console=log_to_console,
            log_to_file=log_to_file,
            session_id=self.session_id,
        )

    def _banner(self, title: str, lines: list[str]) -> None:
        self.logger.info("=" * 60)
        self.logger.info(f"{title}: {self.session_id}")
        for line in lines:
            self.logger.info(line)
        self.logger.info("=" * 60)

    def session_start(self, route: str, user_id: str, question_count: int) -> None:
        self._banner(
            "SESSION START",
            [f"Route: {route} | User: {user_id} | Questions: {question_count}"],
        )

    def session_end(self, summary: dict) -> None:
        """Log the end-of-session summary (questions, answers, score, reason)."""
        self._banner(
            "SESSION END",
            [
                f"Questions asked: {summary.get('questions', 0)}",
                f"Answers given: {summary.get('answers', 0)}",
                f"Structural score: {summary.get('score', 'n/a')}",
                f"Completion reason: {summary.get('completion_reason', 'unknown')}",
            ],
        )

    def question_issued(self, step: int, question_id: str, path: str, question: str) -> None:
        self.logger.info(f"[Q{step}] path={path} id={question_id}")
        self.logger.info(f"[Q{step}] Question: {question}")

    def answer_received(self, step: int, answer: str) -> None:
        shown = answer if len(answer) <= 200 else f"{answer[:200]}..."
        self.logger.info(f"[A{step}] Answer: {shown}")

    def llm_call(self, step: int, use_case: str, success: bool) -> None:
        """Log whether an LLM step produced a usable result or fell back."""
        status = "OK" if success else "FALLBACK"
        self.logger.info(f"[LLM Q{step}] {use_case}: {status}")

    def score_validated(
        self, step: int, original: float, corrected: int, warnings: list[str]
    ) -> None:
        """Log a validated score; corrections are warnings with their reasons."""
        if not warnings:
            self.logger.info(f"[Score Q{step}] {corrected}")
            return
        self.logger.warning(f"[Score Q{step}] {original} -> {corrected}")
        for warning in warnings:
            self.logger.warning(f"  {warning}")

    def status_changed(self, old_status: str, new_status: str) -> None:
        self.logger.info(f"[Status] {old_status} -> {new_status}")
