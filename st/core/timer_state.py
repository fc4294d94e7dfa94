from st.common.logger import log

IDLE = "idle"
RUNNING = "running"
PAUSED = "paused"

MODE_NONE = "none"
STOPWATCH = "stopwatch"
TIMER = "timer"
MODES = (STOPWATCH, TIMER)

# This object holds everything about the one live tracking session in progress. Elapsed time is measured in
# monotonic milliseconds (clock change immunity), so started_at is a monotonic reading, not a wall-clock stamp.
class LiveTrackSession:

    def __init__(self, default_color):
        self.default_color = default_color
        self.reset()

    # Puts every field back to its idle default.
    def reset(self):
        self.status = IDLE
        self.mode = MODE_NONE
        self.subject_name = ""
        self.subject_color = self.default_color
        self.started_at = None
        self.accumulated_ms = 0.0
        self.timer_duration_ms = 0
        self.is_submitting = False
        self.show_mode_picker = False
        self.show_setup = False
        self.message = ""
        self.message_kind = ""

    @property
    def is_timer(self):
        return self.mode == TIMER and self.timer_duration_ms > 0

    # Total time banked plus the interval currently running, with no timer cap applied.
    def raw_elapsed_ms(self, now_ms):
        elapsed = self.accumulated_ms
        if self.status == RUNNING and self.started_at is not None:
            elapsed += max(0.0, now_ms - self.started_at)
        return elapsed

    # Elapsed time as displayed and as submitted, capped at the timer duration when in timer mode.
    def elapsed_ms(self, now_ms):
        raw = self.raw_elapsed_ms(now_ms)
        if self.is_timer:
            return min(raw, self.timer_duration_ms)
        return raw

    # Time left on the timer, or None when not in timer mode.
    def remaining_ms(self, now_ms):
        if not self.is_timer:
            return None
        return max(self.timer_duration_ms - self.raw_elapsed_ms(now_ms), 0)

    # Starts a running interval at now_ms.
    def begin_running(self, now_ms):
        self.started_at = now_ms
        self.status = RUNNING
        log.debug(f"Live track '{self.subject_name}' running from mono {now_ms}")

    # Banks the running interval into accumulated_ms and leaves the session paused. Timer mode never banks more
    # than its duration.
    def bank(self, now_ms):
        if self.started_at is not None:
            self.accumulated_ms += max(0.0, now_ms - self.started_at)
            self.started_at = None
        if self.is_timer:
            self.accumulated_ms = min(self.accumulated_ms, self.timer_duration_ms)
        if self.status == RUNNING:
            self.status = PAUSED
        log.debug(f"Live track '{self.subject_name}' banked, accumulated now {self.accumulated_ms}ms")

    def set_message(self, message="", kind="info"):
        self.message = message
        self.message_kind = kind if message else ""
