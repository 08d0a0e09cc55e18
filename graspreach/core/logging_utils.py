"""
Selection event logging.

Events are tagged with a selection phase and go to the `graspreach` logger.
When an event file is configured they are also appended as JSON lines, so a
run can be inspected afterwards (which gate rejected how many candidates,
how long IK took, ...).
"""

import json
import logging
import sys
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Optional, Union

import numpy as np

ROOT_LOGGER = "graspreach"
CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Extra level between INFO and WARNING for completed phases
SUCCESS = 25
logging.addLevelName(SUCCESS, "SUCCESS")


class EventPhase(Enum):
    """Grasp selection phases."""
    SETUP = "setup"
    GATING = "gating"
    IK = "ik"
    COLLISION = "collision"
    SELECTION = "selection"
    COMPLETED = "completed"
    FAILED = "failed"


class ColoredFormatter(logging.Formatter):
    """Prefixes the level name with an ANSI color on terminals."""

    RESET = "\033[0m"
    LEVEL_COLORS = {
        logging.DEBUG: "\033[36m",
        logging.INFO: "\033[32m",
        SUCCESS: "\033[1;32m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[31m",
        logging.CRITICAL: "\033[35m",
    }

    def __init__(self, fmt: str = CONSOLE_FORMAT, datefmt: str = "%H:%M:%S", use_color: bool = True):
        super().__init__(fmt, datefmt=datefmt)
        self.use_color = use_color

    def formatMessage(self, record):
        text = super().formatMessage(record)
        color = self.LEVEL_COLORS.get(record.levelno)
        if not self.use_color or color is None:
            return text
        return text.replace(record.levelname, f"{color}{record.levelname}{self.RESET}", 1)


def _to_native(value):
    """Make numpy scalars and arrays JSON serializable."""
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, np.ndarray):
        return value.tolist()
    if isinstance(value, dict):
        return {key: _to_native(v) for key, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_native(v) for v in value]
    return value


def _resolve_level(level: Union[int, str]) -> int:
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(level.upper())
    if not isinstance(resolved, int):
        raise ValueError(f"Unknown log level: {level}")
    return resolved


@dataclass
class PhaseRecord:
    """What happened in one phase of the current request."""
    first_seen: float
    events: int = 0
    last_message: Optional[str] = None


@dataclass
class MetricRecord:
    """Running aggregate of one numeric metric."""
    count: int = 0
    total: float = 0.0
    minimum: float = float("inf")
    maximum: float = float("-inf")
    last: float = 0.0

    def add(self, value: float):
        self.count += 1
        self.total += value
        self.minimum = min(self.minimum, value)
        self.maximum = max(self.maximum, value)
        self.last = value

    def to_dict(self) -> Dict[str, float]:
        return {
            "count": self.count,
            "min": self.minimum,
            "max": self.maximum,
            "avg": self.total / self.count,
            "last": self.last,
        }


class LogEventManager:
    """
    Process-wide sink for selection events.

    Use `get_log_manager()` rather than instantiating this directly. Events
    may be logged from planner worker threads.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.logger = logging.getLogger(ROOT_LOGGER)
        self.logger.setLevel(logging.DEBUG)
        self.console = logging.StreamHandler(sys.stderr)
        self.console.setLevel(logging.INFO)
        self.console.setFormatter(ColoredFormatter(use_color=sys.stderr.isatty()))
        self.logger.addHandler(self.console)

        self.log_file: Optional[Path] = None
        self.request_id: Optional[str] = None
        self.start_time = time.time()
        self.phases: Dict[str, PhaseRecord] = {}
        self.metrics: Dict[str, MetricRecord] = {}

    def set_console_level(self, level: Union[int, str]):
        self.console.setLevel(_resolve_level(level))

    def set_request_id(self, request_id: str):
        """Start tracking a new request; phase and metric history is reset."""
        with self._lock:
            self.request_id = request_id
            self.start_time = time.time()
            self.phases = {}
            self.metrics = {}

    def set_log_file(self, filepath: Union[str, Path]):
        self.log_file = Path(filepath)
        self.log_file.parent.mkdir(parents=True, exist_ok=True)

    def log_event(
        self,
        phase: Union[str, EventPhase],
        message: str,
        level: Union[int, str] = logging.INFO,
        **metrics
    ):
        """
        Record an event.

        Args:
            phase: Selection phase the event belongs to
            message: Human readable message
            level: logging level (int or name, "success" included)
            **metrics: Values attached to the event
        """
        phase = phase.value if isinstance(phase, EventPhase) else str(phase)
        levelno = _resolve_level(level)
        metrics = _to_native(metrics)
        elapsed = time.time() - self.start_time

        with self._lock:
            record = self.phases.setdefault(phase, PhaseRecord(first_seen=elapsed))
            record.events += 1
            record.last_message = message
            for key, value in metrics.items():
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    self.metrics.setdefault(key, MetricRecord()).add(value)

        text = f"[{phase}] {message}"
        if metrics:
            text += " | " + ", ".join(f"{k}={v}" for k, v in metrics.items())
        self.logger.log(levelno, text)

        if self.log_file is not None:
            self._append({
                "timestamp": datetime.now().isoformat(),
                "request_id": self.request_id,
                "phase": phase,
                "level": logging.getLevelName(levelno).lower(),
                "message": message,
                "elapsed_time": round(elapsed, 3),
                "metrics": metrics,
            })

    def _append(self, event: Dict):
        try:
            with self._lock, open(self.log_file, "a", encoding="utf-8") as f:
                f.write(json.dumps(event) + "\n")
        except OSError as e:
            self.logger.error(f"Cannot write event file {self.log_file}: {e}")

    def get_phase_summary(self) -> Dict:
        with self._lock:
            return {
                phase: {
                    "start_time": record.first_seen,
                    "message_count": record.events,
                    "last_message": record.last_message,
                }
                for phase, record in self.phases.items()
            }

    def get_metrics_summary(self) -> Dict:
        with self._lock:
            return {key: record.to_dict() for key, record in self.metrics.items()}


_manager: Optional[LogEventManager] = None
_manager_lock = threading.Lock()


def get_log_manager() -> LogEventManager:
    """Shared LogEventManager, created on first use."""
    global _manager
    with _manager_lock:
        if _manager is None:
            _manager = LogEventManager()
        return _manager


def configure_logging(level: Union[int, str] = "INFO", event_file: Optional[str] = None) -> LogEventManager:
    """
    Set console verbosity and, optionally, the JSON-lines event file.
    """
    manager = get_log_manager()
    manager.set_console_level(level)
    if event_file:
        manager.set_log_file(event_file)
    return manager


def set_request_context(request_id: str, log_file: Optional[str] = None):
    manager = get_log_manager()
    manager.set_request_id(request_id)
    if log_file:
        manager.set_log_file(log_file)


def log_event(phase: Union[str, EventPhase], message: str, level: Union[int, str] = logging.INFO, **metrics):
    """
    Log a phase event on the shared manager.

    Example:
        log_event(EventPhase.SELECTION, "Grasp selection complete",
                  candidates=12, accepted=4)
    """
    get_log_manager().log_event(phase, message, level, **metrics)


def log_error(phase: Union[str, EventPhase], message: str, **metrics):
    log_event(phase, message, logging.ERROR, **metrics)


def log_success(phase: Union[str, EventPhase], message: str, **metrics):
    log_event(phase, message, SUCCESS, **metrics)


def get_execution_summary() -> Dict:
    """Phases, metric aggregates and elapsed time of the current request."""
    manager = get_log_manager()
    return {
        "request_id": manager.request_id,
        "total_time": time.time() - manager.start_time,
        "phases": manager.get_phase_summary(),
        "metrics": manager.get_metrics_summary(),
    }
