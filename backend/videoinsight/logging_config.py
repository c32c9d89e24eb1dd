"""
Application Logging System
==========================
Session-aware structured logging for the analysis service.

Every record carries a session_id (``-`` when it is not tied to a request),
so one upload can be followed across the routes, the orchestrator and the
collaborator adapters.

This module provides:
- JSON-lines formatter for log files, console formatter for humans
- Named application loggers with optional rotating file output
- Helpers for stage lifecycle, orchestrator decisions, progress events and
  collaborator fallbacks

Usage:
    from videoinsight.logging_config import get_app_logger, get_pipeline_logger

    logger = get_app_logger("routes")
    logger.info("Upload received", extra={"session_id": session_id, "size_bytes": 1024})

    log = get_pipeline_logger(session_id)
    log.info("Processing request")
"""

import sys
import json
import logging
import logging.handlers
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .config import get_config


NO_SESSION = "-"

# LogRecord attributes that are never treated as user-supplied extras
_RESERVED_ATTRS = frozenset((
    'name', 'msg', 'args', 'created', 'filename',
    'funcName', 'levelname', 'levelno', 'lineno',
    'module', 'msecs', 'pathname', 'process',
    'processName', 'relativeCreated', 'stack_info',
    'exc_info', 'exc_text', 'thread', 'threadName',
    'taskName', 'message', 'session_id',
))


def _extras(record: logging.LogRecord) -> Dict[str, Any]:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


# =============================================================================
# FILTERS AND FORMATTERS
# =============================================================================

class SessionFilter(logging.Filter):
    """Give every record a session_id attribute."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, 'session_id', None):
            record.session_id = NO_SESSION
        return True


class StructuredFormatter(logging.Formatter):
    """
    JSON-lines formatter.

    {"timestamp": "2024-05-01T10:00:00.123Z", "level": "INFO",
     "service": "video-insight", "logger": "video-insight.pipeline",
     "session_id": "session_...", "message": "...", ...extras}
    """

    def __init__(self, service_name: Optional[str] = None):
        super().__init__()
        self.service_name = service_name

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created, tz=timezone.utc)
        log_data = {
            "timestamp": timestamp.isoformat(timespec='milliseconds').replace('+00:00', 'Z'),
            "level": record.levelname,
            "service": self.service_name or get_config().logging.service_name,
            "logger": record.name,
            "session_id": getattr(record, 'session_id', None) or NO_SESSION,
            "message": record.getMessage(),
        }

        for key, value in _extras(record).items():
            try:
                json.dumps(value)
                log_data[key] = value
            except (TypeError, ValueError):
                log_data[key] = str(value)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console format.

    HH:MM:SS [LEVEL] logger [session]: message (key=value, ...)

    The session tag is omitted for records outside a request.
    """

    COLORS = {
        'DEBUG': '\033[36m',     # Cyan
        'INFO': '\033[32m',      # Green
        'WARNING': '\033[33m',   # Yellow
        'ERROR': '\033[31m',     # Red
        'CRITICAL': '\033[35m',  # Magenta
    }
    RESET = '\033[0m'

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors and sys.stdout.isatty()

    def format(self, record: logging.LogRecord) -> str:
        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level}{self.RESET}"

        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        session_id = getattr(record, 'session_id', None)
        session_tag = f" [{session_id}]" if session_id and session_id != NO_SESSION else ""

        msg = f"{clock} [{level}] {record.name}{session_tag}: {record.getMessage()}"

        extras = [
            f"{key}={value}"
            for key, value in _extras(record).items()
            if isinstance(value, (str, int, float, bool))
            or (isinstance(value, dict) and len(value) < 3)
        ]
        if extras:
            msg += f" ({', '.join(extras)})"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


# =============================================================================
# LOGGER FACTORY
# =============================================================================

_loggers: Dict[str, logging.Logger] = {}


def _file_handler(name: str) -> logging.Handler:
    """Rotating JSON-lines handler writing to logs/<name>.jsonl."""
    config = get_config()
    log_dir = config.paths.logs
    log_dir.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_dir / f"{name}.jsonl",
        maxBytes=config.logging.max_file_bytes,
        backupCount=config.logging.backup_count,
        encoding='utf-8',
    )
    handler.setFormatter(StructuredFormatter(config.logging.service_name))
    return handler


def get_app_logger(
    name: str,
    log_to_file: Optional[bool] = None,
) -> logging.Logger:
    """
    Get or create a named application logger.

    Args:
        name: Short logger name ("routes", "pipeline", "decisions", "cli", ...)
        log_to_file: Also write JSON lines to logs/<name>.jsonl.
            Defaults to config.logging.log_to_file.

    Returns:
        Logger named "<service_name>.<name>"
    """
    config = get_config()
    full_name = f"{config.logging.service_name}.{name}"

    if full_name in _loggers:
        return _loggers[full_name]

    logger = logging.getLogger(full_name)
    logger.setLevel(getattr(logging, config.logging.log_level, logging.INFO))
    logger.propagate = False
    logger.addFilter(SessionFilter())

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ConsoleFormatter())
    logger.addHandler(console_handler)

    if log_to_file is None:
        log_to_file = config.logging.log_to_file
    if log_to_file:
        logger.addHandler(_file_handler(name))

    _loggers[full_name] = logger
    return logger


def get_pipeline_logger(session_id: Optional[str] = None) -> logging.LoggerAdapter:
    """Pipeline logger whose records are tagged with one session id."""
    return logging.LoggerAdapter(get_app_logger("pipeline"), {'session_id': session_id or NO_SESSION})


def get_decision_logger() -> logging.Logger:
    return get_app_logger("decisions")


# =============================================================================
# CONVENIENCE LOGGING FUNCTIONS
# =============================================================================

def log_pipeline_decision(
    decision_type: str,
    details: Dict[str, Any],
    session_id: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Log a branch the orchestrator took.

    Args:
        decision_type: "demo_branch", "sampling_stride", ...
        details: Inputs that led to the decision
        session_id: Session the decision belongs to
        logger: Optional logger override
    """
    if not get_config().logging.log_decisions:
        return

    log = logger or get_decision_logger()
    log.info(
        f"Decision: {decision_type}",
        extra={
            'session_id': session_id,
            'decision_type': decision_type,
            'details': details,
        }
    )


def log_stage_start(
    stage_name: str,
    session_id: str,
    logger: Optional[logging.Logger] = None
) -> None:
    log = logger or get_app_logger("pipeline")
    log.info(
        f"Starting stage: {stage_name}",
        extra={'session_id': session_id, 'stage_name': stage_name, 'event': 'stage_start'}
    )


def log_stage_complete(
    stage_name: str,
    session_id: str,
    duration_seconds: float,
    output_summary: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    log = logger or get_app_logger("pipeline")
    log.info(
        f"Completed stage: {stage_name} ({duration_seconds:.2f}s)",
        extra={
            'session_id': session_id,
            'stage_name': stage_name,
            'event': 'stage_complete',
            'duration_seconds': round(duration_seconds, 3),
            'output_summary': output_summary or 'completed',
        }
    )


def log_stage_error(
    stage_name: str,
    session_id: str,
    error: str,
    duration_seconds: float,
    logger: Optional[logging.Logger] = None
) -> None:
    log = logger or get_app_logger("pipeline")
    log.error(
        f"Stage failed: {stage_name}",
        extra={
            'session_id': session_id,
            'stage_name': stage_name,
            'event': 'stage_error',
            'error': error,
            'duration_seconds': round(duration_seconds, 3),
        }
    )


def log_progress_event(
    session_id: str,
    step: int,
    progress: float,
    message: str,
    delivered: bool,
    logger: Optional[logging.Logger] = None
) -> None:
    """Debug trace of one progress event; delivered=False means nobody was listening."""
    log = logger or get_app_logger("progress")
    log.debug(
        f"Progress {progress}%: {message}",
        extra={'session_id': session_id, 'step': step, 'delivered': delivered}
    )


def log_collaborator_fallback(
    collaborator: str,
    error: Union[str, BaseException],
    fallback: str,
    session_id: Optional[str] = None,
    logger: Optional[logging.Logger] = None
) -> None:
    """
    Log a collaborator failure that was absorbed with a default value.

    Args:
        collaborator: "vision", "sentiment", "segment_sentiment", "qa", ...
        error: The exception or its message
        fallback: Short description of the value used instead
    """
    log = logger or get_app_logger("collaborators")
    log.warning(
        f"{collaborator} failed, using {fallback}: {error}",
        extra={
            'session_id': session_id,
            'collaborator': collaborator,
            'event': 'collaborator_fallback',
            'fallback': fallback,
        }
    )


# =============================================================================
# LOG FILE UTILITIES
# =============================================================================

def read_log_file(log_path: Union[str, Path], session_id: Optional[str] = None) -> list:
    """
    Read a JSON-lines log file.

    Lines that are not valid JSON are skipped. When session_id is given,
    only that session's entries are returned.
    """
    entries = []
    with open(log_path, 'r', encoding='utf-8') as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if session_id is None or entry.get('session_id') == session_id:
                entries.append(entry)
    return entries
