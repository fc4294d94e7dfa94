"""Time sources and periodic tickers used by the live tracker.

The tracker never reads the system clock or schedules callbacks on its own;
it is handed a ``Clock`` and a ``Ticker`` so both can be swapped out (Qt in
the app, manual stand-ins in tests).
"""

import time
from datetime import datetime, timedelta, timezone


class Clock:
    """Real clock. Monotonic milliseconds for measuring, UTC wall time for stamping."""

    def monotonic_ms(self):
        return time.monotonic() * 1000.0

    def now(self):
        return datetime.now(timezone.utc)


class Ticker:
    """A cancellable periodic task. At most one schedule is ever alive per ticker."""

    def start(self, callback, interval_ms):
        raise NotImplementedError

    def stop(self):
        raise NotImplementedError

    @property
    def active(self):
        raise NotImplementedError


class ManualClock(Clock):
    """Clock that only moves when told to."""

    def __init__(self, start=None, mono_ms=0.0):
        self._wall = start or datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
        self._mono = float(mono_ms)

    def monotonic_ms(self):
        return self._mono

    def now(self):
        return self._wall

    def advance(self, ms):
        self._mono += ms
        self._wall += timedelta(milliseconds=ms)


class ManualTicker(Ticker):
    """Ticker that fires only when ``fire()`` is called. Used headless and in tests."""

    def __init__(self):
        self._callback = None
        self.interval_ms = None
        self.start_count = 0

    def start(self, callback, interval_ms):
        # Restarting replaces the old schedule rather than stacking a second one
        self._callback = callback
        self.interval_ms = interval_ms
        self.start_count += 1

    def stop(self):
        self._callback = None

    @property
    def active(self):
        return self._callback is not None

    def fire(self):
        if self._callback is not None:
            self._callback()
