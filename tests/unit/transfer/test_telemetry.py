"""Unit tests for transfer telemetry."""

import pytest
from kmainline.transfer.telemetry import RATE_WINDOW, Transfer, TransferState


class FakeClock:
    """Manually advanced clock in seconds."""

    def __init__(self, now: float = 100.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestTransfer:
    """Tests for Transfer state and derived statistics."""

    def test_first_sample(self) -> None:
        """One second at 100 B/s is averaged over the sample window."""
        clock = FakeClock()
        transfer = Transfer(bytes_total=1000, clock=clock)
        transfer.start()
        clock.now += 1
        transfer.update_bytes(100)

        stats = transfer.stats()

        assert stats.state is TransferState.RUNNING
        assert stats.bytes_per_second_sharp == 100
        assert stats.bytes_per_second == 100 / RATE_WINDOW
        assert stats.percentage == 0.1
        assert stats.bytes_remaining == 900
        assert stats.ms_elapsed == 1000
        assert stats.ms_total == 50000
        assert stats.ms_remaining == 49000

    def test_pause_excluded_from_elapsed(self) -> None:
        """Time spent paused does not count as elapsed time."""
        clock = FakeClock(0.0)
        transfer = Transfer(bytes_total=1000, clock=clock)
        transfer.start()
        clock.now = 1
        transfer.update_bytes(100)
        transfer.pause()
        clock.now = 5
        transfer.update_bytes(200)
        assert transfer.stats().paused
        assert transfer.stats().bytes_per_second == 0

        transfer.resume()
        clock.now = 6
        transfer.update_bytes(300)
        stats = transfer.stats()

        assert stats.ms_elapsed == 2000
        assert stats.bytes_completed == 300
        assert stats.bytes_per_second_sharp == 100

    def test_finish_freezes_elapsed(self) -> None:
        """Elapsed time stops at finish()."""
        clock = FakeClock(0.0)
        transfer = Transfer(bytes_total=10, clock=clock)
        transfer.start()
        clock.now = 2
        transfer.update_bytes(10)
        transfer.finish()
        clock.now = 60

        stats = transfer.stats()

        assert stats.finished
        assert stats.ms_elapsed == 2000
        assert stats.finished_at == 2
        assert stats.ms_remaining == 0

    def test_start_is_recorded_once(self) -> None:
        """Calling start() again keeps the original start time."""
        clock = FakeClock(10.0)
        transfer = Transfer(clock=clock)
        transfer.start()
        clock.now = 20
        transfer.start()
        assert transfer.stats().started_at == 10

    def test_update_before_start(self) -> None:
        """update_bytes() requires a started transfer."""
        with pytest.raises(RuntimeError, match="not started"):
            Transfer(bytes_total=10).update_bytes(5)

    def test_start_after_finish(self) -> None:
        """A finished transfer cannot be restarted."""
        transfer = Transfer()
        transfer.start()
        transfer.finish()
        with pytest.raises(RuntimeError, match="already finished"):
            transfer.start()

    def test_zero_total_is_complete(self) -> None:
        """An empty transfer is always 100 percent complete."""
        transfer = Transfer(bytes_total=0, clock=FakeClock())
        transfer.start()
        assert transfer.stats().percentage == 1.0

    def test_unknown_total(self) -> None:
        """Without a declared size no percentage or estimate is given."""
        clock = FakeClock()
        transfer = Transfer(clock=clock)
        transfer.start()
        clock.now += 1
        transfer.update_bytes(512)

        stats = transfer.stats()

        assert stats.percentage is None
        assert stats.bytes_remaining is None
        assert stats.ms_total is None
        assert stats.ms_remaining is None

    def test_idle_stats(self) -> None:
        """A new transfer reports nothing elapsed."""
        stats = Transfer(bytes_total=100).stats()
        assert not stats.started
        assert stats.ms_elapsed == 0
        assert stats.bytes_per_second == 0
