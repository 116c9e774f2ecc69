"""Transfer telemetry.

Tracks the byte progress of one transfer and derives percentage, elapsed
and remaining time, and a throughput estimate smoothed over the last few
updates.
"""

import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

# Number of instantaneous throughput samples averaged into bytes_per_second
RATE_WINDOW = 5


class TransferState(str, Enum):
    """Lifecycle of a transfer."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


@dataclass(frozen=True, slots=True)
class TransferStats:
    """Point-in-time view of a transfer.

    Attributes:
        state: Lifecycle state.
        bytes_completed: Bytes transferred so far.
        bytes_total: Declared size, None if unknown.
        ms_elapsed: Running time in milliseconds, excluding pauses.
        bytes_per_second: Mean of the recent throughput samples.
        bytes_per_second_sharp: Most recent throughput sample.
        started_at: Clock value (seconds) when the transfer started.
        finished_at: Clock value (seconds) when the transfer finished.
    """

    state: TransferState
    bytes_completed: int
    bytes_total: int | None
    ms_elapsed: float
    bytes_per_second: float
    bytes_per_second_sharp: float
    started_at: float | None = None
    finished_at: float | None = None

    @property
    def started(self) -> bool:
        return self.state is not TransferState.IDLE

    @property
    def paused(self) -> bool:
        return self.state is TransferState.PAUSED

    @property
    def finished(self) -> bool:
        return self.state is TransferState.FINISHED

    @property
    def bytes_remaining(self) -> int | None:
        if self.bytes_total is None:
            return None
        return max(self.bytes_total - self.bytes_completed, 0)

    @property
    def percentage(self) -> float | None:
        """Completed fraction in [0, 1], None if the size is unknown."""
        remaining = self.bytes_remaining
        if remaining is None or self.bytes_total is None:
            return None
        if self.bytes_total == 0:
            return 1.0
        return round(1 - remaining / self.bytes_total, 10)

    @property
    def ms_total(self) -> float | None:
        """Estimated total duration at the current rate."""
        if self.bytes_total is None or self.bytes_per_second <= 0:
            return None
        return float(int(self.bytes_total / self.bytes_per_second * 1000))

    @property
    def ms_remaining(self) -> float | None:
        """Estimated time left, 0 once every byte has arrived."""
        if self.bytes_remaining == 0:
            return 0.0
        ms_total = self.ms_total
        if ms_total is None:
            return None
        return max(ms_total - self.ms_elapsed, 0.0)


class Transfer:
    """Progress tracker for a single transfer.

    State transitions: idle -> running (start), running <-> paused
    (pause/resume), running -> finished (finish).

    Example:
        >>> transfer = Transfer(bytes_total=1000)
        >>> transfer.start()
        >>> transfer.update_bytes(250)
        >>> transfer.stats().percentage
        0.25
    """

    def __init__(
        self,
        bytes_total: int | None = None,
        bytes_completed: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the tracker.

        Args:
            bytes_total: Declared transfer size, None if unknown.
            bytes_completed: Bytes already present (e.g., when resuming).
            clock: Monotonic clock returning seconds.
        """
        self.bytes_total = bytes_total
        self.bytes_completed = bytes_completed
        self._clock = clock
        self._state = TransferState.IDLE
        self._rates: deque[float] = deque([0.0] * RATE_WINDOW, maxlen=RATE_WINDOW)
        self._started_at: float | None = None
        self._updated_at: float | None = None
        self._paused_at: float | None = None
        self._paused_total = 0.0
        self._finished_at: float | None = None

    @property
    def state(self) -> TransferState:
        return self._state

    def start(self) -> None:
        """Start the transfer; the start time is recorded only once."""
        if self._state is TransferState.FINISHED:
            msg = "Transfer already finished"
            raise RuntimeError(msg)
        if self._started_at is None:
            now = self._clock()
            self._started_at = now
            self._updated_at = now
        if self._state is TransferState.IDLE:
            self._state = TransferState.RUNNING

    def pause(self) -> None:
        """Pause the transfer and forget the throughput samples."""
        if self._state is not TransferState.RUNNING:
            return
        self._paused_at = self._clock()
        self._rates = deque([0.0] * RATE_WINDOW, maxlen=RATE_WINDOW)
        self._state = TransferState.PAUSED

    def resume(self) -> None:
        """Resume a paused transfer, excluding the pause from elapsed time."""
        if self._state is not TransferState.PAUSED:
            return
        now = self._clock()
        self._paused_total += now - (self._paused_at or now)
        self._paused_at = None
        self._updated_at = now
        self._state = TransferState.RUNNING

    def finish(self) -> None:
        """Mark the transfer as finished."""
        if self._state is TransferState.PAUSED:
            self.resume()
        self._finished_at = self._clock()
        self._state = TransferState.FINISHED

    def update_bytes(self, bytes_completed: int) -> None:
        """Record the new number of completed bytes.

        While paused only the byte count changes; no throughput sample is
        taken.

        Args:
            bytes_completed: Total bytes transferred so far.

        Raises:
            RuntimeError: If the transfer has not been started.
        """
        if self._state is TransferState.IDLE:
            msg = "Transfer not started. Call start() before you call update_bytes()"
            raise RuntimeError(msg)
        if self._state is TransferState.RUNNING:
            now = self._clock()
            last = self._updated_at if self._updated_at is not None else now
            elapsed = now - last
            if elapsed > 0:
                self._rates.append((bytes_completed - self.bytes_completed) / elapsed)
                self._updated_at = now
        self.bytes_completed = bytes_completed

    def _ms_elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        end = self._finished_at if self._finished_at is not None else self._clock()
        paused = self._paused_total
        if self._paused_at is not None:
            paused += end - self._paused_at
        return (end - self._started_at - paused) * 1000

    def stats(self) -> TransferStats:
        """Take a snapshot of the current progress."""
        mean = sum(self._rates) / len(self._rates)
        return TransferStats(
            state=self._state,
            bytes_completed=self.bytes_completed,
            bytes_total=self.bytes_total,
            ms_elapsed=self._ms_elapsed(),
            bytes_per_second=mean if mean > 1e-9 else 0.0,
            bytes_per_second_sharp=self._rates[-1],
            started_at=self._started_at,
            finished_at=self._finished_at,
        )
