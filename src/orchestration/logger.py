"""
Progress and log reporting for conversion runs.

**Conceptual**: A conversion is a short batch job, but callers still want to
watch it: a command line prints progress lines, a web handler streams them to
a browser, a test asserts on them. The converter therefore does not know how
progress is shown. It talks to a ConversionObserver with two synchronous
methods, and keeps its own structured log for the result object.

**Functionally**:
  - ProgressEvent is emitted once before each of the six steps.
  - LogEntry is recorded for every message; entries are kept on the run,
    forwarded to the observer, and mirrored to the standard `logging` module
    (SUCCESS is logged at INFO).
  - Observer exceptions raised while a step runs are not caught: a broken
    observer fails the run like any other stage error. The failure entry
    itself is recorded with `failure`, which never lets the observer raise.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from src.utils.time import Clock, elapsed_ms, get_real_clock

logger = logging.getLogger(__name__)

TOTAL_STEPS = 6

STEP_NAMES = {
    1: "Parsing",
    2: "Normalizing",
    3: "Filtering",
    4: "Aggregating",
    5: "Summarizing",
    6: "Validating",
}

LEVEL_DEBUG = "DEBUG"
LEVEL_INFO = "INFO"
LEVEL_SUCCESS = "SUCCESS"
LEVEL_WARNING = "WARNING"
LEVEL_ERROR = "ERROR"

_LOGGING_LEVELS = {
    LEVEL_DEBUG: logging.DEBUG,
    LEVEL_INFO: logging.INFO,
    LEVEL_SUCCESS: logging.INFO,
    LEVEL_WARNING: logging.WARNING,
    LEVEL_ERROR: logging.ERROR,
}


@dataclass(frozen=True)
class ProgressEvent:
    """Announcement that a pipeline step is about to start."""
    step: int
    total_steps: int
    step_name: str
    progress_percent: int
    elapsed_ms: int


@dataclass(frozen=True)
class LogEntry:
    """
    One structured log message from a conversion run.

    Attributes:
        timestamp: Wall-clock time of the message (from the run's clock).
        level: DEBUG, INFO, SUCCESS, WARNING or ERROR.
        message: Human-readable text.
        step: Step number active when the message was logged (0 before step 1).
        step_name: Name of that step ("" before step 1).
        metadata: Structured details (counts, column names, ...).
        elapsed_ms: Milliseconds since the run started.
    """
    timestamp: datetime
    level: str
    message: str
    step: int
    step_name: str
    metadata: Dict[str, Any] = field(default_factory=dict)
    elapsed_ms: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "message": self.message,
            "step": self.step,
            "stepName": self.step_name,
            "metadata": dict(self.metadata),
            "elapsedMs": self.elapsed_ms,
        }


class ConversionObserver(Protocol):
    """Sink for progress and log events. Both methods are called synchronously."""

    def on_progress(self, event: ProgressEvent) -> None:
        ...

    def on_log(self, entry: LogEntry) -> None:
        ...


class NullObserver:
    """Observer that ignores everything."""

    def on_progress(self, event: ProgressEvent) -> None:
        pass

    def on_log(self, entry: LogEntry) -> None:
        pass


class RecordingObserver:
    """
    Observer that keeps every event in memory.

    Used by the command line actions to print a step summary and by tests to
    assert on the event sequence.
    """

    def __init__(self):
        self.progress: List[ProgressEvent] = []
        self.logs: List[LogEntry] = []

    def on_progress(self, event: ProgressEvent) -> None:
        self.progress.append(event)

    def on_log(self, entry: LogEntry) -> None:
        self.logs.append(entry)


class ConversionLogger:
    """
    Per-run log and progress recorder.

    One instance is created per conversion call and discarded with it.

    Args:
        observer: Receives progress events and log entries.
        clock: Time source for timestamps and elapsed times.
    """

    def __init__(self, observer: Optional[ConversionObserver] = None, clock: Optional[Clock] = None):
        self.observer = observer or NullObserver()
        self.clock = clock or get_real_clock()
        self.started_at = self.clock.now()
        self.entries: List[LogEntry] = []
        self.current_step = 0

    @property
    def current_step_name(self) -> str:
        return STEP_NAMES.get(self.current_step, "")

    def elapsed_ms(self) -> int:
        return elapsed_ms(self.started_at, self.clock)

    def start_step(self, step: int) -> ProgressEvent:
        """
        Enter a step and notify the observer.

        Raises:
            ValueError: If the step is not the next one in sequence.
        """
        if step != self.current_step + 1 or step not in STEP_NAMES:
            raise ValueError(f"Step {step} cannot follow step {self.current_step}")
        self.current_step = step
        event = ProgressEvent(
            step=step,
            total_steps=TOTAL_STEPS,
            step_name=STEP_NAMES[step],
            progress_percent=round(step / TOTAL_STEPS * 100),
            elapsed_ms=self.elapsed_ms(),
        )
        self.observer.on_progress(event)
        self.log(LEVEL_INFO, f"Step {step}/{TOTAL_STEPS}: {event.step_name}")
        return event

    def log(self, level: str, message: str, **metadata: Any) -> LogEntry:
        entry = LogEntry(
            timestamp=self.clock.now(),
            level=level,
            message=message,
            step=self.current_step,
            step_name=self.current_step_name,
            metadata=metadata,
            elapsed_ms=self.elapsed_ms(),
        )
        self.entries.append(entry)
        self.observer.on_log(entry)
        logger.log(_LOGGING_LEVELS.get(level, logging.INFO), "[%s] %s", entry.step_name or "Setup", message)
        return entry

    def debug(self, message: str, **metadata: Any) -> LogEntry:
        return self.log(LEVEL_DEBUG, message, **metadata)

    def info(self, message: str, **metadata: Any) -> LogEntry:
        return self.log(LEVEL_INFO, message, **metadata)

    def success(self, message: str, **metadata: Any) -> LogEntry:
        return self.log(LEVEL_SUCCESS, message, **metadata)

    def warning(self, message: str, **metadata: Any) -> LogEntry:
        return self.log(LEVEL_WARNING, message, **metadata)

    def error(self, message: str, **metadata: Any) -> LogEntry:
        return self.log(LEVEL_ERROR, message, **metadata)

    def failure(self, message: str, **metadata: Any) -> LogEntry:
        """
        Record an ERROR entry for a failed run.

        The entry is always kept on the run. An observer that raises from
        `on_log` is reported through `logging` and otherwise ignored, so the
        caller still receives its failed result.
        """
        entry = LogEntry(
            timestamp=self.clock.now(),
            level=LEVEL_ERROR,
            message=message,
            step=self.current_step,
            step_name=self.current_step_name,
            metadata=metadata,
            elapsed_ms=self.elapsed_ms(),
        )
        self.entries.append(entry)
        try:
            self.observer.on_log(entry)
        except Exception:
            logger.exception("Observer failed while recording a conversion failure")
        logger.error("[%s] %s", entry.step_name or "Setup", message)
        return entry
