"""Tests for the Live Track stopwatch/timer state machine.

Covers: st.core.live_track, st.core.timer_state, st.core.clock
"""

import unittest

from st.common.errors import ApiError
from st.core.clock import ManualClock, ManualTicker
from st.core.live_track import LiveTrackTimer, LiveTrackView, resolve_duration_ms, sanitize_duration_text
from st.core.timer_state import IDLE, MODE_NONE, PAUSED, RUNNING, STOPWATCH, TIMER
from st.util import parse_api_iso


class FakeSessionStore:
    def __init__(self):
        self.created = []
        self.fail = None

    def create(self, session):
        if self.fail is not None:
            raise self.fail
        self.created.append(session)
        return None


def _span_ms(payload):
    start = parse_api_iso(payload["startTime"])
    end = parse_api_iso(payload["endTime"])
    return (end - start).total_seconds() * 1000


class LiveTrackTestCase(unittest.TestCase):

    def setUp(self):
        self.clock = ManualClock()
        self.ticker = ManualTicker()
        self.store = FakeSessionStore()
        self.refreshes = 0
        self.timer = LiveTrackTimer(
            self.store,
            clock=self.clock,
            ticker=self.ticker,
            default_color="#6366f1",
            default_duration_minutes=25,
            on_logged=self._on_logged,
        )

    def _on_logged(self):
        self.refreshes += 1

    def _start_stopwatch(self, subject="Math"):
        self.timer.select_mode(STOPWATCH)
        self.assertTrue(self.timer.start(subject, "#ff0000"))

    def _run_ticks(self, count):
        for _ in range(count):
            self.clock.advance(1000)
            self.ticker.fire()

    @property
    def session(self):
        return self.timer.session


# ──────────────────────────────────────────────────────────────────────────
# Duration input
# ──────────────────────────────────────────────────────────────────────────

class TestDurationResolution(unittest.TestCase):

    def test_in_range_minutes_resolve_exactly(self):
        """Every whole minute in [1, 240] converts straight to milliseconds."""
        for minutes in range(1, 241):
            self.assertEqual(resolve_duration_ms(minutes), minutes * 60000)
            self.assertEqual(resolve_duration_ms(str(minutes)), minutes * 60000)

    def test_out_of_range_clamps(self):
        self.assertEqual(resolve_duration_ms(500), 240 * 60000)
        self.assertEqual(resolve_duration_ms("9999"), 240 * 60000)
        self.assertEqual(resolve_duration_ms(0), 60000)
        self.assertEqual(resolve_duration_ms("0"), 60000)
        self.assertEqual(resolve_duration_ms(-15), 60000)

    def test_non_numeric_resolves_to_zero(self):
        self.assertEqual(resolve_duration_ms(""), 0)
        self.assertEqual(resolve_duration_ms("   "), 0)
        self.assertEqual(resolve_duration_ms("abc"), 0)
        self.assertEqual(resolve_duration_ms(None), 0)
        self.assertEqual(resolve_duration_ms(float("nan")), 0)

    def test_text_is_reduced_to_digits(self):
        self.assertEqual(resolve_duration_ms("4a5 min"), 45 * 60000)
        self.assertEqual(sanitize_duration_text("1x2"), "12")
        self.assertEqual(sanitize_duration_text("300"), "240")
        self.assertEqual(sanitize_duration_text("--"), "")


# ──────────────────────────────────────────────────────────────────────────
# Setup and start
# ──────────────────────────────────────────────────────────────────────────

class TestSetupAndStart(LiveTrackTestCase):

    def test_fresh_timer_is_idle(self):
        self.assertEqual(self.session.status, IDLE)
        self.assertEqual(self.session.mode, MODE_NONE)
        self.assertIsNone(self.session.started_at)
        self.assertEqual(self.session.accumulated_ms, 0)
        self.assertFalse(self.ticker.active)

    def test_start_without_mode_fails(self):
        self.assertFalse(self.timer.start("Math"))
        self.assertEqual(self.session.status, IDLE)
        self.assertEqual(self.session.message, "Pick stopwatch or timer first.")
        self.assertEqual(self.session.message_kind, "error")

    def test_start_with_blank_subject_stays_idle(self):
        self.timer.select_mode(STOPWATCH)
        for subject in ("", "   ", None):
            self.assertFalse(self.timer.start(subject))
            self.assertEqual(self.session.status, IDLE)
            self.assertIsNone(self.session.started_at)
        self.assertEqual(self.session.message, "Subject is required to start tracking.")
        self.assertFalse(self.ticker.active)

    def test_timer_start_with_malformed_duration_stays_idle(self):
        self.timer.select_mode(TIMER)
        self.assertFalse(self.timer.start("Math", duration_minutes="abc"))
        self.assertEqual(self.session.status, IDLE)
        self.assertEqual(self.session.message, "Timer duration must be at least 1 minute.")

        self.timer.set_duration_input("")
        self.assertFalse(self.timer.start("Math"))
        self.assertEqual(self.session.status, IDLE)

    def test_stopwatch_start_runs(self):
        self._start_stopwatch("  Math  ")
        self.assertEqual(self.session.status, RUNNING)
        self.assertEqual(self.session.subject_name, "Math")
        self.assertEqual(self.session.subject_color, "#ff0000")
        self.assertEqual(self.session.timer_duration_ms, 0)
        self.assertEqual(self.session.started_at, self.clock.monotonic_ms())
        self.assertTrue(self.ticker.active)
        self.assertEqual(self.ticker.interval_ms, 1000)

    def test_timer_start_uses_clamped_duration(self):
        self.timer.select_mode(TIMER)
        self.assertTrue(self.timer.start("Physics", duration_minutes=999))
        self.assertEqual(self.session.timer_duration_ms, 240 * 60000)
        self.assertEqual(self.timer.duration_text, "240")

    def test_timer_start_defaults_to_configured_duration(self):
        self.timer.select_mode(TIMER)
        self.assertEqual(self.session.timer_duration_ms, 25 * 60000)
        self.assertTrue(self.timer.start("Physics"))
        self.assertEqual(self.session.timer_duration_ms, 25 * 60000)

    def test_invalid_color_falls_back_to_default(self):
        self.timer.select_mode(STOPWATCH)
        self.timer.start("Math", "not-a-color")
        self.assertEqual(self.session.subject_color, "#6366f1")

    def test_select_mode_ignored_once_tracking(self):
        self._start_stopwatch()
        self.timer.select_mode(TIMER)
        self.assertEqual(self.session.mode, STOPWATCH)
        self.assertEqual(self.session.timer_duration_ms, 0)

    def test_select_unknown_mode_ignored(self):
        self.timer.select_mode("pomodoro")
        self.assertEqual(self.session.mode, MODE_NONE)
        self.assertFalse(self.session.show_setup)

    def test_start_ignored_while_running(self):
        self._start_stopwatch("Math")
        self.clock.advance(5000)
        self.assertFalse(self.timer.start("Art"))
        self.assertEqual(self.session.subject_name, "Math")
        self.assertEqual(self.session.elapsed_ms(self.clock.monotonic_ms()), 5000)

    def test_duration_input_strips_non_digits(self):
        self.timer.select_mode(TIMER)
        self.assertEqual(self.timer.set_duration_input("4a5"), "45")
        self.assertEqual(self.session.timer_duration_ms, 45 * 60000)

    def test_mode_picker_toggle(self):
        self.timer.open_mode_picker()
        self.assertTrue(self.session.show_mode_picker)
        self.timer.open_mode_picker()
        self.assertFalse(self.session.show_mode_picker)
        self.assertEqual(self.session.mode, MODE_NONE)

    def test_change_mode_reopens_picker(self):
        self.timer.select_mode(TIMER)
        self.timer.change_mode()
        self.assertTrue(self.session.show_mode_picker)
        self.assertFalse(self.session.show_setup)

    def test_known_subject_color_lookup(self):
        self.timer.color_lookup = lambda name: "#123456" if name.lower() == "math" else ""
        self.assertEqual(self.timer.apply_known_subject_color(" Math "), "#123456")
        self.assertEqual(self.timer.apply_known_subject_color("Art"), "")
        self._start_stopwatch()
        self.assertEqual(self.timer.apply_known_subject_color("Math"), "")


# ──────────────────────────────────────────────────────────────────────────
# Running, pausing and the timer finishing
# ──────────────────────────────────────────────────────────────────────────

class TestRunningAndPausing(LiveTrackTestCase):

    def test_pause_banks_elapsed_and_stops_ticker(self):
        self._start_stopwatch()
        self.clock.advance(10000)
        self.timer.toggle_pause()
        self.assertEqual(self.session.status, PAUSED)
        self.assertIsNone(self.session.started_at)
        self.assertEqual(self.session.accumulated_ms, 10000)
        self.assertFalse(self.ticker.active)

    def test_elapsed_accumulates_across_pause_cycles(self):
        """Run 10s, pause 5s, run 10s: 20s elapsed, not 25s."""
        self._start_stopwatch()
        self.clock.advance(10000)
        self.timer.toggle_pause()
        self.clock.advance(5000)
        self.assertEqual(self.session.elapsed_ms(self.clock.monotonic_ms()), 10000)
        self.timer.toggle_pause()
        self.assertEqual(self.session.status, RUNNING)
        self.assertTrue(self.ticker.active)
        self.clock.advance(10000)
        self.assertEqual(self.session.elapsed_ms(self.clock.monotonic_ms()), 20000)

    def test_toggle_pause_when_idle_is_noop(self):
        self.timer.toggle_pause()
        self.assertEqual(self.session.status, IDLE)
        self.assertFalse(self.ticker.active)

    def test_timer_elapsed_never_exceeds_duration(self):
        self.timer.select_mode(TIMER)
        self.timer.start("Physics", duration_minutes=1)
        self.clock.advance(90000)
        now = self.clock.monotonic_ms()
        self.assertEqual(self.session.elapsed_ms(now), 60000)
        self.assertEqual(self.session.remaining_ms(now), 0)

    def test_timer_finishes_by_pausing(self):
        self.timer.select_mode(TIMER)
        self.timer.start("Physics", duration_minutes=1)
        self._run_ticks(59)
        self.assertEqual(self.session.status, RUNNING)

        self._run_ticks(1)
        self.assertEqual(self.session.status, PAUSED)
        self.assertIsNone(self.session.started_at)
        self.assertEqual(self.session.accumulated_ms, 60000)
        self.assertFalse(self.ticker.active)
        self.assertEqual(self.session.message, "Timer finished! Tap Save to keep it.")
        # Finishing never saves on its own
        self.assertEqual(self.store.created, [])

    def test_stopwatch_tick_never_pauses(self):
        self._start_stopwatch()
        self._run_ticks(3600)
        self.assertEqual(self.session.status, RUNNING)

    def test_one_ticker_schedule_per_run(self):
        self._start_stopwatch()
        self.timer.toggle_pause()
        self.assertFalse(self.ticker.active)
        self.timer.toggle_pause()
        self.assertTrue(self.ticker.active)
        self.timer.cancel()
        self.assertFalse(self.ticker.active)


# ──────────────────────────────────────────────────────────────────────────
# Logging
# ──────────────────────────────────────────────────────────────────────────

class TestLogging(LiveTrackTestCase):

    def test_log_when_idle_does_nothing(self):
        self.assertFalse(self.timer.log())
        self.assertEqual(self.store.created, [])

    def test_stopwatch_log_rejected_then_accepted(self):
        """Log at 45s is rejected and keeps running; log at 75s submits 75s."""
        self._start_stopwatch("Math")
        self.clock.advance(45000)
        self.assertFalse(self.timer.log())
        self.assertEqual(self.session.message, "Track at least one minute before saving.")
        self.assertEqual(self.session.status, RUNNING)
        self.assertTrue(self.ticker.active)
        self.assertEqual(self.store.created, [])

        self.clock.advance(30000)
        self.assertTrue(self.timer.log())
        self.assertEqual(len(self.store.created), 1)
        payload = self.store.created[0]
        self.assertEqual(payload["subject"], "Math")
        self.assertEqual(payload["subjectColor"], "#ff0000")
        self.assertEqual(payload["notes"], "Logged via Live Track")
        self.assertEqual(payload["reflection"], "")
        self.assertAlmostEqual(_span_ms(payload), 75000, delta=1)
        self.assertEqual(parse_api_iso(payload["endTime"]), self.clock.now())

    def test_rejected_log_while_paused_stays_paused(self):
        self._start_stopwatch()
        self.clock.advance(30000)
        self.timer.toggle_pause()
        self.assertFalse(self.timer.log())
        self.assertEqual(self.session.status, PAUSED)
        self.assertEqual(self.session.accumulated_ms, 30000)
        self.assertFalse(self.ticker.active)

    def test_successful_log_resets_to_idle(self):
        self._start_stopwatch()
        self.clock.advance(120000)
        self.assertTrue(self.timer.log())
        self.assertEqual(self.session.status, IDLE)
        self.assertEqual(self.session.mode, MODE_NONE)
        self.assertEqual(self.session.accumulated_ms, 0)
        self.assertFalse(self.session.is_submitting)
        self.assertFalse(self.ticker.active)
        self.assertEqual(self.session.message, "Session saved to your log.")
        self.assertEqual(self.session.message_kind, "success")
        self.assertEqual(self.refreshes, 1)

    def test_finished_timer_logs_exact_duration(self):
        """A 1 minute timer left to run out logs exactly 60s."""
        self.timer.select_mode(TIMER)
        self.timer.start("Physics", duration_minutes=1)
        self._run_ticks(60)
        self.assertEqual(self.session.status, PAUSED)
        self.clock.advance(30000)

        self.assertTrue(self.timer.log())
        self.assertEqual(_span_ms(self.store.created[0]), 60000)

    def test_failed_log_keeps_progress(self):
        self.store.fail = ApiError("Server down", status=500)
        self._start_stopwatch()
        self.clock.advance(90000)

        self.assertFalse(self.timer.log())
        self.assertEqual(self.session.status, PAUSED)
        self.assertEqual(self.session.mode, STOPWATCH)
        self.assertEqual(self.session.accumulated_ms, 90000)
        self.assertFalse(self.session.is_submitting)
        self.assertEqual(self.session.message, "Server down")
        self.assertEqual(self.session.message_kind, "error")
        self.assertEqual(self.refreshes, 0)

        # Retry once the server is back; paused time didn't grow
        self.store.fail = None
        self.clock.advance(60000)
        self.assertTrue(self.timer.log())
        self.assertAlmostEqual(_span_ms(self.store.created[0]), 90000, delta=1)

    def test_unexpected_error_is_shown_not_raised(self):
        """A non-API failure from the store still ends as a paused session with its message."""
        self.store.fail = ValueError("Server returned malformed record")
        self._start_stopwatch()
        self.clock.advance(90000)
        self.assertFalse(self.timer.log())
        self.assertFalse(self.session.is_submitting)
        self.assertEqual(self.session.status, PAUSED)
        self.assertEqual(self.session.accumulated_ms, 90000)
        self.assertEqual(self.session.message, "Server returned malformed record")
        self.assertEqual(self.session.message_kind, "error")
        self.assertEqual(self.refreshes, 0)

    def test_unexpected_error_without_text_uses_fallback_message(self):
        self.store.fail = RuntimeError()
        self._start_stopwatch()
        self.clock.advance(90000)
        self.assertFalse(self.timer.log())
        self.assertEqual(self.session.message, "Failed to save session.")

    def test_submission_in_flight_blocks_everything(self):
        self._start_stopwatch()
        self.clock.advance(90000)
        payload = self.timer.prepare_log()
        self.assertIsNotNone(payload)
        self.assertTrue(self.session.is_submitting)

        self.timer.toggle_pause()
        self.assertEqual(self.session.status, PAUSED)
        self.assertFalse(self.timer.start("Art"))
        self.timer.select_mode(TIMER)
        self.assertEqual(self.session.mode, STOPWATCH)
        self.assertIsNone(self.timer.prepare_log())

        self.assertTrue(self.timer.finish_log())
        self.assertEqual(self.session.status, IDLE)

    def test_refresh_runs_after_submitting_cleared(self):
        seen = []
        self.timer.on_logged = lambda: seen.append(self.session.is_submitting)
        self._start_stopwatch()
        self.clock.advance(61000)
        self.timer.log()
        self.assertEqual(seen, [False])

    def test_finish_without_submission_is_noop(self):
        self._start_stopwatch()
        self.assertFalse(self.timer.finish_log())
        self.assertEqual(self.session.status, RUNNING)

    def test_cancel_discards_everything(self):
        self._start_stopwatch()
        self.clock.advance(300000)
        self.timer.cancel()
        self.assertEqual(self.session.status, IDLE)
        self.assertEqual(self.session.mode, MODE_NONE)
        self.assertEqual(self.session.accumulated_ms, 0)
        self.assertIsNone(self.session.started_at)
        self.assertEqual(self.timer.duration_text, "25")
        self.assertFalse(self.ticker.active)

    def test_sign_out_resets(self):
        self._start_stopwatch()
        self.clock.advance(1000)
        self.assertTrue(self.timer.sign_out())
        self.assertEqual(self.session.status, IDLE)
        self.assertEqual(self.session.subject_name, "")

    def test_sign_out_refused_while_saving(self):
        """The outcome of an in-flight save must still reach the user."""
        self._start_stopwatch()
        self.clock.advance(90000)
        self.timer.prepare_log()
        self.assertFalse(self.timer.sign_out())
        self.assertTrue(self.session.is_submitting)
        self.assertEqual(self.session.subject_name, "Math")

        self.assertTrue(self.timer.finish_log())
        self.assertEqual(self.session.message, "Session saved to your log.")
        self.assertTrue(self.timer.sign_out())


# ──────────────────────────────────────────────────────────────────────────
# View projection
# ──────────────────────────────────────────────────────────────────────────

class TestLiveTrackView(LiveTrackTestCase):

    def _view(self):
        return LiveTrackView.project(self.session, self.clock.monotonic_ms())

    def test_idle_view(self):
        view = self._view()
        self.assertEqual(view.timer_text, "00:00:00")
        self.assertEqual(view.status_text, "Tap Track Live to begin.")
        self.assertTrue(view.show_trigger)
        self.assertTrue(view.trigger_enabled)
        self.assertFalse(view.show_timer)
        self.assertFalse(view.log_enabled)
        self.assertFalse(view.start_enabled)
        self.assertEqual(view.selected_mode_label, "")

    def test_setup_views(self):
        self.timer.open_mode_picker()
        self.assertEqual(self._view().status_text, "Choose stopwatch or timer to continue.")
        self.timer.select_mode(TIMER)
        view = self._view()
        self.assertEqual(view.status_text, "Set your timer details, then press Start.")
        self.assertTrue(view.show_duration)
        self.assertTrue(view.start_enabled)
        self.assertTrue(view.show_change_mode)
        self.assertEqual(view.selected_mode_label, "Timer")
        self.assertEqual(view.active_mode, TIMER)

    def test_running_stopwatch_floors_seconds(self):
        self._start_stopwatch()
        self.clock.advance(3999)
        view = self._view()
        self.assertEqual(view.timer_text, "00:00:03")
        self.assertEqual(view.status_text, "Stopwatch running.")
        self.assertEqual(view.pause_label, "Pause")
        self.assertTrue(view.log_enabled)
        self.assertFalse(view.show_trigger)
        self.assertEqual(view.accent_color, "#ff0000")

    def test_timer_shows_remaining(self):
        self.timer.select_mode(TIMER)
        self.timer.start("Physics", duration_minutes=1)
        self.clock.advance(15000)
        view = self._view()
        self.assertEqual(view.timer_text, "00:00:45")
        self.assertEqual(view.status_text, "Timer in progress.")

    def test_paused_view(self):
        self._start_stopwatch()
        self.clock.advance(5000)
        self.timer.toggle_pause()
        view = self._view()
        self.assertEqual(view.pause_label, "Resume")
        self.assertTrue(view.is_paused)
        self.assertEqual(view.status_text, "Paused. Resume or log below.")

    def test_submitting_view(self):
        self._start_stopwatch()
        self.clock.advance(90000)
        self.timer.prepare_log()
        view = self._view()
        self.assertEqual(view.status_text, "Saving session...")
        self.assertFalse(view.log_enabled)
        self.assertFalse(view.pause_enabled)
        self.assertFalse(view.sign_out_enabled)

        self.timer.finish_log()
        self.assertTrue(self._view().sign_out_enabled)

    def test_on_change_fires_on_transitions(self):
        calls = []
        self.timer.on_change = lambda: calls.append(self.session.status)
        self._start_stopwatch()
        self.timer.toggle_pause()
        self.assertIn(RUNNING, calls)
        self.assertEqual(calls[-1], PAUSED)


if __name__ == "__main__":
    unittest.main()
