from PySide6.QtCore import QTimer
from st.core.clock import Ticker

# Ticker backed by a single QTimer. Starting an already-running ticker just reschedules the same QTimer, so there's
# never more than one schedule alive.
class QtTicker(Ticker):

    def __init__(self, parent=None):
        self._timer = QTimer(parent)
        self._callback = None
        self._timer.timeout.connect(self._on_timeout)

    def _on_timeout(self):
        if self._callback is not None:
            self._callback()

    def start(self, callback, interval_ms):
        self._callback = callback
        self._timer.start(interval_ms)

    def stop(self):
        self._timer.stop()
        self._callback = None

    @property
    def active(self):
        return self._timer.isActive()
