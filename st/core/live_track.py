"""Live Track: the stopwatch/timer that turns a running study session into a log entry.

``LiveTrackTimer`` owns a single ``LiveTrackSession`` and is the only thing
that mutates it. The UI reads it through ``LiveTrackView.project`` and never
touches the session directly.

Transitions::

    idle --select_mode--> idle (setup) --start--> running <--toggle_pause--> paused
    running --tick (timer ran out)--> paused
    running/paused --log (saved)--> idle
    any --reset/cancel--> idle

Validation problems never raise. They leave a message on the session and the
operation returns False/None without changing state.
"""

import math
from dataclasses import dataclass
from datetime import timedelta

from st.common.errors import ApiError, StudyTrackError
from st.common.logger import log
from st.core.clock import Clock
from st.core.config import (
    DEFAULT_SUBJECT_COLOR,
    LIVE_TRACK_MIN_MS,
    TICK_INTERVAL_MS,
    TIMER_MAX_MINUTES,
    TIMER_MIN_MINUTES,
)
from st.core.timer_state import IDLE, MODES, PAUSED, RUNNING, TIMER, LiveTrackSession
from st.util import digits_only, format_duration, normalize_color, to_api_iso

LIVE_TRACK_NOTE = "Logged via Live Track"


def clamp_minutes(minutes):
    return min(max(minutes, TIMER_MIN_MINUTES), TIMER_MAX_MINUTES)


def sanitize_duration_text(text):
    """Strip non-digits and clamp to the allowed minute range. Empty stays empty."""
    digits = digits_only(str(text).strip() if text is not None else "")
    if not digits:
        return ""
    return str(clamp_minutes(int(digits)))


def resolve_duration_ms(value):
    """Turn user duration input (text or number of minutes) into milliseconds.

    Text is reduced to its digits, numbers are truncated to whole minutes, and
    the result is clamped to [TIMER_MIN_MINUTES, TIMER_MAX_MINUTES]. Input with
    no usable number resolves to 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        if not math.isfinite(value):
            return 0
        return clamp_minutes(int(value)) * 60 * 1000
    cleaned = sanitize_duration_text(value)
    if not cleaned:
        return 0
    return int(cleaned) * 60 * 1000


class LiveTrackTimer:

    def __init__(self, session_store, clock=None, ticker=None, default_color=DEFAULT_SUBJECT_COLOR,
                 default_duration_minutes=25, color_lookup=None, on_change=None, on_logged=None):
        self.session_store = session_store
        self.clock = clock or Clock()
        self.ticker = ticker
        self.default_color = normalize_color(default_color, DEFAULT_SUBJECT_COLOR)
        self.default_duration_text = str(clamp_minutes(int(default_duration_minutes)))
        self.duration_text = self.default_duration_text
        self.color_lookup = color_lookup
        self.on_change = on_change
        self.on_logged = on_logged
        self.session = LiveTrackSession(self.default_color)

    # ------------------------------------------------------------------ #
    #  Internals                                                           #
    # ------------------------------------------------------------------ #

    def _now(self):
        return self.clock.monotonic_ms()

    def _changed(self):
        if self.on_change is not None:
            self.on_change()

    def _start_ticker(self):
        if self.ticker is not None:
            self.ticker.start(self.tick, TICK_INTERVAL_MS)
        self.tick()

    def _stop_ticker(self):
        if self.ticker is not None and self.ticker.active:
            self.ticker.stop()

    def _blocked(self):
        return self.session.status != IDLE or self.session.is_submitting

    # ------------------------------------------------------------------ #
    #  Setup phase                                                         #
    # ------------------------------------------------------------------ #

    # The "Track Live" button. Opens the mode picker from a clean slate, or backs out of setup entirely.
    def open_mode_picker(self):
        if self._blocked():
            return
        s = self.session
        if not s.show_mode_picker and not s.show_setup and s.mode not in MODES:
            s.show_mode_picker = True
            self._changed()
        else:
            self.reset()

    def select_mode(self, mode):
        if self._blocked():
            return
        if mode not in MODES:
            log.debug(f"Ignoring unknown live track mode '{mode}'")
            return
        s = self.session
        s.mode = mode
        s.show_mode_picker = False
        s.show_setup = True
        s.timer_duration_ms = resolve_duration_ms(self.duration_text) if mode == TIMER else 0
        s.set_message("")
        log.debug(f"Selected live track mode '{mode}'")
        self._changed()

    def change_mode(self):
        if self._blocked():
            return
        self.session.show_setup = False
        self.session.show_mode_picker = True
        self._changed()

    # Keeps the duration field digits-only as the user types. Clamping waits until the value is actually used.
    def set_duration_input(self, text):
        self.duration_text = digits_only(text)
        s = self.session
        if s.mode == TIMER and s.status == IDLE:
            s.timer_duration_ms = resolve_duration_ms(self.duration_text)
        return self.duration_text

    # Color of an already known subject with this name, so the picker can be pre-filled. Empty string if unknown
    # or if tracking has already begun.
    def apply_known_subject_color(self, name):
        if self.session.status != IDLE or self.color_lookup is None:
            return ""
        return self.color_lookup((name or "").strip()) or ""

    # ------------------------------------------------------------------ #
    #  Tracking                                                            #
    # ------------------------------------------------------------------ #

    def start(self, subject_name, subject_color=None, duration_minutes=None):
        if self._blocked():
            return False
        s = self.session
        if s.mode not in MODES:
            s.set_message("Pick stopwatch or timer first.", "error")
            self._changed()
            return False
        subject = (subject_name or "").strip()
        if not subject:
            s.set_message("Subject is required to start tracking.", "error")
            self._changed()
            return False

        if s.mode == TIMER:
            raw = duration_minutes if duration_minutes is not None else self.duration_text
            duration_ms = resolve_duration_ms(raw)
            if duration_ms <= 0:
                s.set_message("Timer duration must be at least 1 minute.", "error")
                self._changed()
                return False
            s.timer_duration_ms = duration_ms
            self.duration_text = str(duration_ms // 60000)
        else:
            s.timer_duration_ms = 0

        s.subject_name = subject
        s.subject_color = normalize_color(subject_color, self.default_color)
        s.accumulated_ms = 0.0
        s.show_setup = False
        s.set_message("")
        s.begin_running(self._now())
        log.info(f"Started live track {s.mode} for '{subject}'"
                 + (f" ({s.timer_duration_ms // 60000} min)" if s.mode == TIMER else ""))
        self._start_ticker()
        return True

    # Runs once a second while running. Finishing a timer pauses it and never saves on its own.
    def tick(self):
        s = self.session
        if s.status == RUNNING and s.is_timer:
            now = self._now()
            if s.remaining_ms(now) <= 0:
                s.bank(now)
                self._stop_ticker()
                s.set_message("Timer finished! Tap Save to keep it.", "info")
                log.info(f"Live track timer for '{s.subject_name}' finished after {s.accumulated_ms}ms")
        self._changed()

    def toggle_pause(self):
        s = self.session
        if s.is_submitting:
            return
        if s.status == RUNNING:
            s.bank(self._now())
            self._stop_ticker()
            log.debug(f"Paused live track for '{s.subject_name}'")
        elif s.status == PAUSED:
            s.begin_running(self._now())
            log.debug(f"Resumed live track for '{s.subject_name}'")
            s.set_message("")
            self._start_ticker()
            return
        else:
            return
        s.set_message("")
        self._changed()

    # ------------------------------------------------------------------ #
    #  Logging                                                             #
    # ------------------------------------------------------------------ #

    # First half of a log: pauses, checks the minimum, and hands back the payload to submit. Returns None when
    # there's nothing to submit, in which case the session is left as it was (a running session keeps running).
    def prepare_log(self):
        s = self.session
        if s.status == IDLE or s.is_submitting:
            return None
        was_running = s.status == RUNNING
        now = self._now()
        s.bank(now)
        self._stop_ticker()

        total_ms = s.elapsed_ms(now)
        if total_ms < LIVE_TRACK_MIN_MS:
            s.set_message("Track at least one minute before saving.", "error")
            log.debug(f"Rejected live track log of {total_ms}ms, below the {LIVE_TRACK_MIN_MS}ms minimum")
            if was_running:
                s.begin_running(self._now())
                self._start_ticker()
            else:
                self._changed()
            return None

        s.is_submitting = True
        s.set_message("")
        end_time = self.clock.now()
        start_time = end_time - timedelta(milliseconds=total_ms)
        payload = {
            "subject": s.subject_name,
            "subjectColor": s.subject_color,
            "notes": LIVE_TRACK_NOTE,
            "reflection": "",
            "startTime": to_api_iso(start_time),
            "endTime": to_api_iso(end_time),
        }
        self._changed()
        return payload

    # Second half of a log. With no error the session resets to idle keeping the success message, otherwise it
    # stays paused with its progress intact so the user can retry.
    def finish_log(self, error=None):
        s = self.session
        if not s.is_submitting:
            return False
        if error is None:
            log.info(f"Logged live track session for '{s.subject_name}'")
            self.reset(notify=False)
            s.set_message("Session saved to your log.", "success")
        else:
            log.warning(f"Failed to save live track session for '{s.subject_name}': {error}")
            s.status = PAUSED
            s.started_at = None
            s.set_message(str(error) or "Failed to save session.", "error")
        s.is_submitting = False
        self._changed()
        if error is None and self.on_logged is not None:
            self.on_logged()
        return error is None

    def log(self):
        payload = self.prepare_log()
        if payload is None:
            return False
        try:
            self.session_store.create(payload)
        except StudyTrackError as err:
            return self.finish_log(err)
        except Exception as err:
            log.exception("Unexpected error while saving live track session")
            return self.finish_log(ApiError(str(err) or "Failed to save session."))
        return self.finish_log()

    # ------------------------------------------------------------------ #
    #  Reset                                                               #
    # ------------------------------------------------------------------ #

    def reset(self, preserve_message=False, notify=True):
        self._stop_ticker()
        s = self.session
        message, kind = s.message, s.message_kind
        s.reset()
        if preserve_message:
            s.set_message(message, kind)
        self.duration_text = self.default_duration_text
        if notify:
            self._changed()

    def cancel(self):
        log.info(f"Cancelled live track for '{self.session.subject_name}'")
        self.reset()

    # Called on sign-out: nothing tracked survives a change of user. Refused while a save is in flight so its
    # outcome still reaches the user. Returns True once reset.
    def sign_out(self):
        if self.session.is_submitting:
            log.info("Sign-out refused, a live track session is still being saved")
            return False
        self.reset()
        return True


# Everything the Live Track card shows, derived purely from the session at one instant.
@dataclass
class LiveTrackView:
    timer_text: str
    status_text: str
    message: str
    message_kind: str
    show_trigger: bool
    trigger_enabled: bool
    trigger_expanded: bool
    show_mode_picker: bool
    show_setup: bool
    show_duration: bool
    show_timer: bool
    start_enabled: bool
    pause_enabled: bool
    pause_label: str
    log_enabled: bool
    selected_mode_label: str
    show_change_mode: bool
    active_mode: str
    is_paused: bool
    accent_color: str
    sign_out_enabled: bool

    @staticmethod
    def project(session, now_ms):
        s = session
        elapsed = s.elapsed_ms(now_ms)
        has_progress = elapsed > 0
        showing_timer = s.status != IDLE
        is_timer_mode = s.mode == TIMER
        has_mode = s.mode in MODES

        if s.is_timer:
            timer_text = format_duration(s.remaining_ms(now_ms))
        else:
            timer_text = format_duration(elapsed)

        if s.is_submitting:
            status_text = "Saving session..."
        elif s.status == RUNNING:
            status_text = "Timer in progress." if is_timer_mode else "Stopwatch running."
        elif s.status == PAUSED and has_progress:
            status_text = "Paused. Resume or log below."
        elif s.show_mode_picker:
            status_text = "Choose stopwatch or timer to continue."
        elif s.show_setup and is_timer_mode:
            status_text = "Set your timer details, then press Start."
        elif s.show_setup:
            status_text = "Name your stopwatch session and press Start."
        else:
            status_text = "Tap Track Live to begin."

        if not has_mode:
            selected_mode_label = ""
        else:
            selected_mode_label = "Timer" if is_timer_mode else "Stopwatch"

        return LiveTrackView(
            timer_text=timer_text,
            status_text=status_text,
            message=s.message,
            message_kind=s.message_kind,
            show_trigger=not showing_timer,
            trigger_enabled=s.status == IDLE and not s.is_submitting,
            trigger_expanded=s.show_mode_picker or s.show_setup,
            show_mode_picker=s.show_mode_picker,
            show_setup=s.show_setup,
            show_duration=s.show_setup and is_timer_mode,
            show_timer=showing_timer,
            start_enabled=s.show_setup and not s.is_submitting and s.status == IDLE and has_mode,
            pause_enabled=s.status != IDLE and not s.is_submitting,
            pause_label="Resume" if s.status == PAUSED else "Pause",
            log_enabled=has_progress and not s.is_submitting,
            selected_mode_label=selected_mode_label,
            show_change_mode=has_mode and s.status == IDLE,
            active_mode=s.mode if has_mode else "",
            is_paused=s.status == PAUSED,
            accent_color=normalize_color(s.subject_color, s.default_color),
            sign_out_enabled=not s.is_submitting,
        )
