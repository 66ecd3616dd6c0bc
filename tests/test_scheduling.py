"""
Tests for the Qt frame scheduler and the first-frame back-off.
"""

from core.scheduling import FrameBackoff, QtFrameScheduler, display_refresh_interval_ms


class TestQtFrameScheduler:
    """Tests for QtFrameScheduler on a real Qt event loop."""

    def test_fires_once(self, qtbot):
        scheduler = QtFrameScheduler(tick_ms=5)
        fired = []
        scheduler.schedule(lambda: fired.append(1))
        assert scheduler.pending
        qtbot.waitUntil(lambda: fired == [1], timeout=1000)
        qtbot.wait(30)
        assert fired == [1]
        assert not scheduler.pending

    def test_cancel_drops_callback(self, qtbot):
        scheduler = QtFrameScheduler(tick_ms=5)
        fired = []
        scheduler.schedule(lambda: fired.append(1))
        scheduler.cancel()
        qtbot.wait(50)
        assert fired == []
        assert not scheduler.pending

    def test_schedule_replaces_pending(self, qtbot):
        scheduler = QtFrameScheduler(tick_ms=5)
        fired = []
        scheduler.schedule(lambda: fired.append("old"))
        scheduler.schedule(lambda: fired.append("new"), delay_ms=10)
        qtbot.waitUntil(lambda: fired, timeout=1000)
        qtbot.wait(30)
        assert fired == ["new"]

    def test_callback_can_reschedule(self, qtbot):
        scheduler = QtFrameScheduler(tick_ms=1)
        fired = []

        def tick():
            fired.append(len(fired))
            if len(fired) < 3:
                scheduler.schedule(tick)

        scheduler.schedule(tick)
        qtbot.waitUntil(lambda: len(fired) == 3, timeout=1000)

    def test_default_tick_from_display(self):
        tick = display_refresh_interval_ms()
        assert 1 <= tick <= 100
        assert QtFrameScheduler().tick_ms == tick


class TestFrameBackoff:
    """Tests for FrameBackoff."""

    def test_doubles_up_to_cap(self):
        backoff = FrameBackoff(tick_ms=16, max_ms=100)
        delays = [backoff.next_delay_ms() for _ in range(6)]
        assert delays == [16, 32, 64, 100, 100, 100]

    def test_reset(self):
        backoff = FrameBackoff(tick_ms=10, max_ms=250)
        backoff.next_delay_ms()
        backoff.next_delay_ms()
        backoff.reset()
        assert backoff.attempts == 0
        assert backoff.next_delay_ms() == 10

    def test_cap_never_below_tick(self):
        backoff = FrameBackoff(tick_ms=40, max_ms=10)
        assert backoff.next_delay_ms() == 40
