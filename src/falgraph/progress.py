"""Progress Reporting for Remote Inference Jobs.

Maps provider queue updates plus an expected-duration estimate to a bounded
0-100 step and a status message for the host's progress bar.
"""

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

PROGRESS_TOTAL = 100

# Queue step is fixed low; the host shows "waiting" without implying work.
QUEUE_STEP = 5

# Highest step any non-terminal update may report.
PRE_TERMINAL_CEILING = 99

# Elapsed/expected alone can carry the bar this far.
TIME_SPAN = 90
# In-progress events close the remaining gap to the ceiling; after this many
# events half of it is closed. Tunable.
STEP_HALF_LIFE = 20

GENERIC_MESSAGE = "Processing..."

# (lowercase substring, message); first match wins.
DEFAULT_MILESTONES: Tuple[Tuple[str, str], ...] = (
    ("loading model", "Loading model..."),
    ("loading weights", "Loading model..."),
    ("downloading", "Fetching inputs..."),
    ("uploading", "Uploading results..."),
    ("encoding", "Encoding output..."),
    ("decoding", "Decoding latents..."),
    ("safety check", "Running safety checks..."),
    ("nsfw", "Running safety checks..."),
    ("rendering", "Rendering..."),
    ("generating frame", "Generating frames..."),
    ("texturing", "Texturing mesh..."),
)


class Lifecycle(Enum):
    """Remote job lifecycle phase."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


@dataclass
class QueueEvent:
    """Provider queue update, tagged by lifecycle phase."""

    phase: Lifecycle
    position: Optional[int] = None  # QUEUED only
    logs: List[str] = field(default_factory=list)

    @classmethod
    def queued(cls, position: Optional[int] = None) -> "QueueEvent":
        return cls(Lifecycle.QUEUED, position=position)

    @classmethod
    def in_progress(cls, logs: Sequence[str] = ()) -> "QueueEvent":
        return cls(Lifecycle.IN_PROGRESS, logs=list(logs))

    @classmethod
    def completed(cls, logs: Sequence[str] = ()) -> "QueueEvent":
        return cls(Lifecycle.COMPLETED, logs=list(logs))


@dataclass
class ProgressUpdate:
    """One progress report: step out of PROGRESS_TOTAL plus a message."""

    step: int
    message: str
    total: int = PROGRESS_TOTAL

    @property
    def progress(self) -> Dict[str, int]:
        return {"step": self.step, "total": self.total}

    def to_status(self) -> dict:
        """Status payload in the host's ``running`` shape."""
        return {"type": "running", "message": self.message, "progress": self.progress}


def default_progress_message(step_index: int) -> str:
    return f"Processing step {step_index}..."


def match_milestone(logs: Sequence[str], milestones: Sequence[Tuple[str, str]]) -> Optional[str]:
    """Message for the most recent log line that names a known milestone."""
    for line in reversed(list(logs)):
        lowered = str(line).lower()
        for phrase, message in milestones:
            if phrase in lowered:
                return message
    return None


class ProgressStrategy:
    """
    Per-job ETA estimator.

    One instance per job invocation; never shared. State is the start time,
    the last reported step and whether the job has completed.

    Example:
        strategy = ProgressStrategy(expected_ms=60000, in_queue_message="Waiting in queue...",
                                    finalizing_message="Finalizing video...")
        strategy.on_queue()                 # step 5
        strategy.on_progress(event, 1)      # step rises with elapsed time
        strategy.on_completed()             # step 100
    """

    def __init__(
        self,
        expected_ms: float,
        in_queue_message: str = "Waiting in queue...",
        finalizing_message: str = "Finalizing...",
        default_in_progress_message: Optional[Callable[[int], str]] = default_progress_message,
        milestones: Sequence[Tuple[str, str]] = DEFAULT_MILESTONES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.expected_ms = expected_ms
        self.in_queue_message = in_queue_message
        self.finalizing_message = finalizing_message
        self.default_in_progress_message = default_in_progress_message
        self.milestones = tuple(milestones)
        self._clock = clock
        self._started = clock()
        self._last_step = 0
        self._step_index = 0
        self._completed = False

    @property
    def last_step(self) -> int:
        return self._last_step

    @property
    def completed(self) -> bool:
        return self._completed

    def elapsed_ms(self) -> float:
        return max(0.0, (self._clock() - self._started) * 1000.0)

    def time_fraction(self) -> float:
        """Elapsed over expected, saturated to 1.0 for non-positive expectations."""
        if not self.expected_ms or self.expected_ms <= 0:
            return 1.0
        return min(1.0, self.elapsed_ms() / self.expected_ms)

    def _advance(self, candidate: int) -> int:
        step = max(self._last_step, min(PRE_TERMINAL_CEILING, int(candidate)))
        self._last_step = step
        return step

    def on_queue(self) -> ProgressUpdate:
        step = self._advance(QUEUE_STEP)
        return ProgressUpdate(step, self.in_queue_message)

    def on_progress(self, event: Optional[QueueEvent], step_index: int) -> ProgressUpdate:
        self._step_index = max(self._step_index, step_index, 0)
        time_estimate = self.time_fraction() * TIME_SPAN
        step_fill = self._step_index / (self._step_index + STEP_HALF_LIFE)
        blended = time_estimate + (PRE_TERMINAL_CEILING - time_estimate) * step_fill
        step = self._advance(int(blended))

        logs = event.logs if event is not None else []
        message = match_milestone(logs, self.milestones)
        if message is None and self.default_in_progress_message is not None:
            message = self.default_in_progress_message(step_index)
        return ProgressUpdate(step, message or GENERIC_MESSAGE)

    def on_completed(self) -> ProgressUpdate:
        self._completed = True
        self._last_step = PROGRESS_TOTAL
        return ProgressUpdate(PROGRESS_TOTAL, self.finalizing_message)

    def handle(self, event: QueueEvent) -> ProgressUpdate:
        """Dispatch one queue event; in-progress events are counted here."""
        if event.phase is Lifecycle.QUEUED:
            return self.on_queue()
        if event.phase is Lifecycle.IN_PROGRESS:
            return self.on_progress(event, self._step_index + 1)
        return self.on_completed()


def create_progress_strategy(
    expected_ms: float,
    in_queue_message: str = "Waiting in queue...",
    finalizing_message: str = "Finalizing...",
    default_in_progress_message: Optional[Callable[[int], str]] = default_progress_message,
    milestones: Sequence[Tuple[str, str]] = DEFAULT_MILESTONES,
) -> ProgressStrategy:
    """Build a fresh estimator for one job."""
    return ProgressStrategy(
        expected_ms,
        in_queue_message=in_queue_message,
        finalizing_message=finalizing_message,
        default_in_progress_message=default_in_progress_message,
        milestones=milestones,
    )
