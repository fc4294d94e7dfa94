import sys
from PySide6.QtCore import QDate, QDateTime, QObject, QRunnable, QThreadPool, Qt, Signal, QStringListModel
from PySide6.QtGui import QColor
from PySide6.QtWidgets import (
    QApplication,
    QColorDialog,
    QComboBox,
    QCompleter,
    QDateEdit,
    QDateTimeEdit,
    QFormLayout,
    QFrame,
    QGridLayout,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QListWidgetItem,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QScrollArea,
    QVBoxLayout,
    QWidget,
)
from st.api.client import ApiClient
from st.api.stores import AuthService, SessionStore, SubjectStore, SummaryService, build_manual_session
from st.common.errors import ApiError, StudyTrackError
from st.common.logger import log
from st.core import config
from st.core.clock import Clock
from st.core.data import StudyData
from st.core.live_track import LiveTrackTimer, LiveTrackView
from st.core.timer_state import IDLE, STOPWATCH, TIMER
from st.ui.dialogs.login import LoginDialog
from st.ui.theme import build_stylesheet
from st.ui.ticker import QtTicker
from st.util import normalize_color


# ---------------------------------------------------------------------------
# Background submission
# ---------------------------------------------------------------------------

class _SubmitSignals(QObject):
    finished = Signal(object)  # None on success, the exception otherwise


# Runs SessionStore.create off the UI thread. The outcome comes back through a queued signal, so finish_log always
# runs on the main thread.
class _SubmitJob(QRunnable):

    def __init__(self, store, payload):
        super().__init__()
        self.store = store
        self.payload = payload
        self.signals = _SubmitSignals()

    def run(self):
        try:
            self.store.create(self.payload)
        except StudyTrackError as err:
            self.signals.finished.emit(err)
            return
        except Exception as err:
            log.exception("Unexpected error while saving live track session")
            self.signals.finished.emit(ApiError(str(err) or "Failed to save session."))
            return
        self.signals.finished.emit(None)


def _card(title):
    frame = QFrame()
    frame.setObjectName("card")
    lay = QVBoxLayout(frame)
    lay.setContentsMargins(16, 16, 16, 16)
    heading = QLabel(title)
    heading.setObjectName("heading")
    lay.addWidget(heading)
    return frame, lay


def _set_message(label, message, kind=""):
    label.setText(message)
    label.setVisible(bool(message))
    label.setProperty("kind", kind)
    label.style().unpolish(label)
    label.style().polish(label)


# ---------------------------------------------------------------------------
# Main window
# ---------------------------------------------------------------------------

# Main window: Live Track card up top, then progress summary, history, subjects and manual entry. Every Live Track
# widget is refreshed from LiveTrackView.project in _render_live_track and nowhere else.
class MainWindow(QMainWindow):

    def __init__(self, settings=None):
        super().__init__()
        self.setWindowTitle("StudyTrack")
        self.resize(980, 760)

        self.settings = settings or config.load_settings()
        if self.settings["always_on_top"]:
            self.setWindowFlags(self.windowFlags() | Qt.WindowStaysOnTopHint)

        # -- API and data --
        self.client = ApiClient(self.settings["api_base_url"], timeout=self.settings["request_timeout"])
        self.auth = AuthService(self.client)
        self.sessions = SessionStore(self.client)
        self.subjects = SubjectStore(self.client)
        self.data = StudyData(self.sessions, self.subjects, SummaryService(self.client))
        self.user = None

        # -- Live tracker --
        self.clock = Clock()
        self.timer = LiveTrackTimer(
            self.sessions,
            clock=self.clock,
            ticker=QtTicker(self),
            default_color=self.settings["default_subject_color"],
            default_duration_minutes=self.settings["timer_default_minutes"],
            color_lookup=self.data.find_subject_color,
            on_change=self._render_live_track,
            on_logged=self._refresh_data,
        )
        self._picked_color = self.timer.default_color
        self._pool = QThreadPool.globalInstance()
        self._jobs = set()
        self._editing_subject_id = None
        self._editing_session_id = None

        # -- Build UI --
        scroll = QScrollArea()
        scroll.setWidgetResizable(True)
        body = QWidget()
        self._main_lay = QVBoxLayout(body)
        self._main_lay.setContentsMargins(20, 20, 20, 20)
        self._main_lay.setSpacing(16)
        scroll.setWidget(body)
        self.setCentralWidget(scroll)

        self._main_lay.addLayout(self._build_top_bar())
        self._main_lay.addWidget(self._build_live_track_card())
        self._main_lay.addWidget(self._build_summary_card())
        row = QHBoxLayout()
        row.addWidget(self._build_history_card(), 3)
        row.addWidget(self._build_subjects_card(), 2)
        self._main_lay.addLayout(row)
        self._main_lay.addWidget(self._build_manual_card())
        self._main_lay.addStretch()

        self._apply_style()
        self._render_live_track()

    # ------------------------------------------------------------------ #
    #  Style                                                               #
    # ------------------------------------------------------------------ #

    def _apply_style(self, accent=None):
        style = build_stylesheet(self.settings["theme"], accent or self.timer.default_color)
        self.setStyleSheet(style)

    # ------------------------------------------------------------------ #
    #  Builders                                                            #
    # ------------------------------------------------------------------ #

    def _build_top_bar(self):
        bar = QHBoxLayout()
        self._user_lbl = QLabel("")
        self._user_lbl.setObjectName("muted")
        bar.addWidget(self._user_lbl)
        bar.addStretch()
        refresh_btn = QPushButton("Refresh")
        refresh_btn.clicked.connect(self._refresh_data)
        self._logout_btn = QPushButton("Sign out")
        self._logout_btn.clicked.connect(self._on_logout)
        bar.addWidget(refresh_btn)
        bar.addWidget(self._logout_btn)
        return bar

    def _build_live_track_card(self):
        frame, lay = _card("Live Track")

        self._lt_status = QLabel("")
        self._lt_status.setObjectName("muted")
        lay.addWidget(self._lt_status)

        self._lt_trigger = QPushButton("Track Live")
        self._lt_trigger.clicked.connect(self.timer.open_mode_picker)
        lay.addWidget(self._lt_trigger)

        # Mode picker
        self._lt_mode_box = QWidget()
        mode_lay = QHBoxLayout(self._lt_mode_box)
        mode_lay.setContentsMargins(0, 0, 0, 0)
        self._lt_mode_btns = {}
        for mode, text in ((STOPWATCH, "Stopwatch"), (TIMER, "Timer")):
            btn = QPushButton(text)
            btn.clicked.connect(lambda _=False, m=mode: self.timer.select_mode(m))
            mode_lay.addWidget(btn)
            self._lt_mode_btns[mode] = btn
        lay.addWidget(self._lt_mode_box)

        # Selected mode + change
        mode_row = QHBoxLayout()
        self._lt_selected_mode = QLabel("")
        self._lt_change_mode = QPushButton("Change mode")
        self._lt_change_mode.clicked.connect(self.timer.change_mode)
        mode_row.addWidget(self._lt_selected_mode)
        mode_row.addWidget(self._lt_change_mode)
        mode_row.addStretch()
        lay.addLayout(mode_row)

        # Setup
        self._lt_setup = QWidget()
        form = QFormLayout(self._lt_setup)
        form.setContentsMargins(0, 0, 0, 0)
        self._lt_subject = QLineEdit()
        self._lt_subject.setPlaceholderText("What are you studying?")
        self._subject_model = QStringListModel()
        completer = QCompleter(self._subject_model, self)
        completer.setCaseSensitivity(Qt.CaseInsensitive)
        completer.setFilterMode(Qt.MatchContains)
        self._lt_subject.setCompleter(completer)
        self._lt_subject.textChanged.connect(self._on_subject_typed)
        self._lt_subject.textEdited.connect(self._update_suggestions)
        self._lt_subject.returnPressed.connect(self._on_start)
        self._lt_color = QPushButton("")
        self._lt_color.clicked.connect(self._on_pick_color)
        self._lt_duration_lbl = QLabel("Minutes")
        self._lt_duration = QLineEdit(self.timer.duration_text)
        self._lt_duration.setMaxLength(3)
        self._lt_duration.textEdited.connect(self._on_duration_typed)
        self._lt_start = QPushButton("Start")
        self._lt_start.clicked.connect(self._on_start)
        form.addRow("Subject", self._lt_subject)
        form.addRow("Color", self._lt_color)
        form.addRow(self._lt_duration_lbl, self._lt_duration)
        form.addRow("", self._lt_start)
        lay.addWidget(self._lt_setup)

        # Timer + controls
        self._lt_timer = QLabel("00:00:00")
        self._lt_timer.setObjectName("timer")
        self._lt_timer.setAlignment(Qt.AlignCenter)
        lay.addWidget(self._lt_timer)

        self._lt_controls = QWidget()
        ctl = QHBoxLayout(self._lt_controls)
        ctl.setContentsMargins(0, 0, 0, 0)
        self._lt_pause = QPushButton("Pause")
        self._lt_pause.clicked.connect(self.timer.toggle_pause)
        self._lt_log = QPushButton("Save")
        self._lt_log.clicked.connect(self._on_log)
        self._lt_cancel = QPushButton("Discard")
        self._lt_cancel.clicked.connect(self._on_cancel)
        ctl.addWidget(self._lt_pause)
        ctl.addWidget(self._lt_log)
        ctl.addStretch()
        ctl.addWidget(self._lt_cancel)
        lay.addWidget(self._lt_controls)

        self._lt_message = QLabel("")
        self._lt_message.setObjectName("message")
        self._lt_message.setWordWrap(True)
        lay.addWidget(self._lt_message)
        return frame

    def _build_summary_card(self):
        frame, lay = _card("Progress")
        grid = QGridLayout()
        self._stat_labels = {}
        stats = (
            ("total_minutes", "Total minutes"), ("session_count", "Sessions"), ("average", "Avg. minutes"),
            ("today_minutes", "Today"), ("week_minutes", "This week"), ("month_minutes", "This month"),
            ("streak_days", "Day streak"),
        )
        for i, (key, text) in enumerate(stats):
            value = QLabel("0")
            value.setObjectName("heading")
            caption = QLabel(text)
            caption.setObjectName("muted")
            grid.addWidget(value, 0, i)
            grid.addWidget(caption, 1, i)
            self._stat_labels[key] = value
        lay.addLayout(grid)
        lists = QHBoxLayout()
        self._breakdown = QListWidget()
        self._breakdown.setMaximumHeight(140)
        self._trend = QListWidget()
        self._trend.setMaximumHeight(140)
        for caption, widget in (("By subject", self._breakdown), ("Daily trend", self._trend)):
            col = QVBoxLayout()
            heading = QLabel(caption)
            heading.setObjectName("muted")
            col.addWidget(heading)
            col.addWidget(widget)
            lists.addLayout(col)
        lay.addLayout(lists)
        return frame

    def _build_history_card(self):
        frame, lay = _card("History")
        filters = QHBoxLayout()
        self._hist_subject = QComboBox()
        self._hist_subject.currentIndexChanged.connect(self._render_history)
        self._hist_start = QDateEdit()
        self._hist_end = QDateEdit()
        for edit in (self._hist_start, self._hist_end):
            edit.setCalendarPopup(True)
            edit.setSpecialValueText(" ")
            edit.setMinimumDate(QDate(2000, 1, 1))
            edit.setDate(edit.minimumDate())
            edit.dateChanged.connect(self._render_history)
        clear_btn = QPushButton("Clear")
        clear_btn.clicked.connect(self._on_clear_history_filters)
        filters.addWidget(self._hist_subject)
        filters.addWidget(self._hist_start)
        filters.addWidget(self._hist_end)
        filters.addWidget(clear_btn)
        lay.addLayout(filters)

        self._hist_count = QLabel("")
        self._hist_count.setObjectName("muted")
        lay.addWidget(self._hist_count)
        self._hist_list = QListWidget()
        lay.addWidget(self._hist_list)
        actions = QHBoxLayout()
        edit_btn = QPushButton("Edit selected")
        edit_btn.clicked.connect(self._on_edit_session)
        delete_btn = QPushButton("Delete selected")
        delete_btn.clicked.connect(self._on_delete_session)
        actions.addWidget(edit_btn)
        actions.addWidget(delete_btn)
        actions.addStretch()
        lay.addLayout(actions)
        self._hist_error = QLabel("")
        self._hist_error.setObjectName("message")
        lay.addWidget(self._hist_error)
        return frame

    def _build_subjects_card(self):
        frame, lay = _card("Subjects")
        self._subject_search = QLineEdit()
        self._subject_search.setPlaceholderText("Search subjects")
        self._subject_search.textChanged.connect(self._render_subjects)
        lay.addWidget(self._subject_search)
        self._subject_list = QListWidget()
        lay.addWidget(self._subject_list)

        add_row = QHBoxLayout()
        self._subject_name = QLineEdit()
        self._subject_name.setPlaceholderText("New subject")
        self._subject_color = QLineEdit(self.timer.default_color)
        self._subject_color.setMaximumWidth(90)
        self._subject_submit = QPushButton("Add")
        self._subject_submit.clicked.connect(self._on_submit_subject)
        edit_btn = QPushButton("Edit")
        edit_btn.clicked.connect(self._on_edit_subject)
        self._subject_cancel = QPushButton("Cancel")
        self._subject_cancel.clicked.connect(self._end_subject_edit)
        self._subject_cancel.setVisible(False)
        del_btn = QPushButton("Delete")
        del_btn.clicked.connect(self._on_delete_subject)
        add_row.addWidget(self._subject_name)
        add_row.addWidget(self._subject_color)
        add_row.addWidget(self._subject_submit)
        add_row.addWidget(self._subject_cancel)
        add_row.addWidget(edit_btn)
        add_row.addWidget(del_btn)
        lay.addLayout(add_row)
        self._subject_error = QLabel("")
        self._subject_error.setObjectName("message")
        lay.addWidget(self._subject_error)
        return frame

    def _build_manual_card(self):
        frame, lay = _card("Log a past session")
        form = QFormLayout()
        self._manual_subject = QLineEdit()
        self._manual_subject.setCompleter(self._lt_subject.completer())
        self._manual_subject.textEdited.connect(self._update_suggestions)
        now = QDateTime.currentDateTime()
        self._manual_start = QDateTimeEdit(now.addSecs(-3600))
        self._manual_end = QDateTimeEdit(now)
        for edit in (self._manual_start, self._manual_end):
            edit.setCalendarPopup(True)
        self._manual_notes = QLineEdit()
        self._manual_reflection = QLineEdit()
        form.addRow("Subject", self._manual_subject)
        form.addRow("Start", self._manual_start)
        form.addRow("End", self._manual_end)
        form.addRow("Notes", self._manual_notes)
        form.addRow("Reflection", self._manual_reflection)
        lay.addLayout(form)
        buttons = QHBoxLayout()
        self._manual_submit = QPushButton("Save session")
        self._manual_submit.clicked.connect(self._on_manual_submit)
        self._manual_cancel = QPushButton("Cancel edit")
        self._manual_cancel.clicked.connect(self._reset_manual_form)
        self._manual_cancel.setVisible(False)
        buttons.addWidget(self._manual_submit)
        buttons.addWidget(self._manual_cancel)
        buttons.addStretch()
        lay.addLayout(buttons)
        self._manual_error = QLabel("")
        self._manual_error.setObjectName("message")
        lay.addWidget(self._manual_error)
        return frame

    # ------------------------------------------------------------------ #
    #  Rendering                                                           #
    # ------------------------------------------------------------------ #

    def _render_live_track(self):
        view = LiveTrackView.project(self.timer.session, self.clock.monotonic_ms())
        self._lt_timer.setText(view.timer_text)
        self._lt_status.setText(view.status_text)
        _set_message(self._lt_message, view.message, view.message_kind)

        self._lt_trigger.setVisible(view.show_trigger)
        self._lt_trigger.setEnabled(view.trigger_enabled)
        self._lt_trigger.setText("Close" if view.trigger_expanded else "Track Live")
        self._lt_mode_box.setVisible(view.show_mode_picker)
        self._lt_setup.setVisible(view.show_setup)
        self._lt_duration.setVisible(view.show_duration)
        self._lt_duration_lbl.setVisible(view.show_duration)
        self._lt_timer.setVisible(view.show_timer)
        self._lt_controls.setVisible(view.show_timer)

        self._lt_start.setEnabled(view.start_enabled)
        self._lt_pause.setEnabled(view.pause_enabled)
        self._lt_pause.setText(view.pause_label)
        self._lt_log.setEnabled(view.log_enabled)
        self._lt_cancel.setEnabled(not self.timer.session.is_submitting)
        self._logout_btn.setEnabled(view.sign_out_enabled)

        self._lt_selected_mode.setText(view.selected_mode_label)
        self._lt_selected_mode.setVisible(bool(view.selected_mode_label))
        self._lt_change_mode.setVisible(view.show_change_mode)
        for mode, btn in self._lt_mode_btns.items():
            btn.setProperty("active", "true" if mode == view.active_mode else "false")
            btn.style().unpolish(btn)
            btn.style().polish(btn)

        if self.timer.session.status == IDLE and not view.show_setup:
            self._lt_subject.clear()
            self._picked_color = self.timer.default_color
        if self._lt_duration.text() != self.timer.duration_text:
            self._lt_duration.setText(self.timer.duration_text)
        self._lt_color.setText(self._picked_color)
        self._lt_color.setStyleSheet(f"background-color: {self._picked_color};")
        self._lt_timer.setStyleSheet(f"color: {view.accent_color};")

    def _render_data(self):
        names = self.data.subject_names()
        self._update_suggestions("")

        current = self._hist_subject.currentData() or "all"
        self._hist_subject.blockSignals(True)
        self._hist_subject.clear()
        self._hist_subject.addItem("All subjects", "all")
        for name in names:
            self._hist_subject.addItem(name, name)
        idx = self._hist_subject.findData(current)
        self._hist_subject.setCurrentIndex(idx if idx >= 0 else 0)
        self._hist_subject.blockSignals(False)

        self._render_summary()
        self._render_history()
        self._render_subjects()

    def _render_summary(self):
        summary = self.data.summary
        self._breakdown.clear()
        self._trend.clear()
        if summary is None:
            for lbl in self._stat_labels.values():
                lbl.setText("0")
            self._stat_labels["average"].setText("0.0")
            self._breakdown.addItem("No data yet.")
            self._trend.addItem("No data yet.")
            return
        trend = summary.trend_rows()
        if not trend:
            self._trend.addItem("No data yet.")
        for label, minutes, count in trend:
            self._trend.addItem(f"{label}    {minutes} min  |  {count} {'session' if count == 1 else 'sessions'}")
        for key, lbl in self._stat_labels.items():
            if key == "average":
                lbl.setText(f"{summary.average_minutes:.1f}")
            else:
                lbl.setText(str(getattr(summary, key)))
        rows = summary.subject_breakdown()
        if not rows:
            self._breakdown.addItem("No data yet.")
        for index, (name, minutes, percent) in enumerate(rows):
            item = QListWidgetItem(f"{name}    {minutes} min ({percent}%)")
            item.setForeground(QColor(self.data.subject_color(name, index)))
            self._breakdown.addItem(item)

    def _history_filters(self):
        def _date(edit):
            if edit.date() == edit.minimumDate():
                return None
            return edit.date().toPython()
        return self._hist_subject.currentData() or "all", _date(self._hist_start), _date(self._hist_end)

    def _render_history(self, *_):
        subject, start, end = self._history_filters()
        filtered = self.data.filter_sessions(subject, start, end)
        self._hist_count.setText(self.data.history_count_label(filtered))
        self._hist_list.clear()
        for index, session in enumerate(filtered):
            when = session.start_time.astimezone().strftime("%a %b %d, %H:%M") if session.start_time else "Time unavailable"
            item = QListWidgetItem(f"{session.subject or 'Unknown'}  |  {session.duration_minutes} min  |  {when}")
            item.setForeground(QColor(self.data.subject_color(session.subject or "", index)))
            item.setToolTip(f"Notes: {session.notes or 'No notes'}" +
                            (f"\nReflection: {session.reflection}" if session.reflection else ""))
            item.setData(Qt.UserRole, session.id)
            self._hist_list.addItem(item)
        _set_message(self._hist_error, self.data.errors.get("sessions", ""), "error")

    def _render_subjects(self, *_):
        self._subject_list.clear()
        matches = self.data.search_subjects(self._subject_search.text())
        if not matches:
            query = self._subject_search.text().strip()
            self._subject_list.addItem(f'No subjects match "{query}".' if self.data.subjects and query
                                       else "No subjects yet. Add one below.")
            return
        for index, subject in enumerate(matches):
            item = QListWidgetItem(f"{subject.name}  ({subject.session_count} sessions, {subject.total_minutes} min)")
            item.setForeground(QColor(self.data.subject_color(subject.name, index)))
            item.setData(Qt.UserRole, subject.id)
            self._subject_list.addItem(item)

    # ------------------------------------------------------------------ #
    #  Live Track handlers                                                 #
    # ------------------------------------------------------------------ #

    # Autocomplete for both subject fields, narrowed to names containing what's typed so far.
    def _update_suggestions(self, text):
        self._subject_model.setStringList(self.data.suggestions(text))

    def _on_subject_typed(self, text):
        color = self.timer.apply_known_subject_color(text)
        if color:
            self._picked_color = color
        self._lt_color.setEnabled(not color)
        self._lt_color.setText(self._picked_color)
        self._lt_color.setStyleSheet(f"background-color: {self._picked_color};")

    def _on_pick_color(self):
        chosen = QColorDialog.getColor(QColor(self._picked_color), self, "Subject color")
        if chosen.isValid():
            self._picked_color = chosen.name()
            self._render_live_track()

    def _on_duration_typed(self, text):
        cleaned = self.timer.set_duration_input(text)
        if cleaned != text:
            self._lt_duration.setText(cleaned)

    def _on_start(self):
        self.timer.start(self._lt_subject.text(), self._picked_color)

    def _on_cancel(self):
        if self.timer.session.status != IDLE:
            reply = QMessageBox.question(self, "Discard session", "Discard the time tracked so far?")
            if reply != QMessageBox.Yes:
                return
        self.timer.cancel()

    def _on_log(self):
        payload = self.timer.prepare_log()
        if payload is None:
            return
        job = _SubmitJob(self.sessions, payload)
        self._jobs.add(job)
        job.signals.finished.connect(lambda err, j=job: self._on_log_finished(j, err))
        self._pool.start(job)

    def _on_log_finished(self, job, error):
        self._jobs.discard(job)
        self.timer.finish_log(error)

    # ------------------------------------------------------------------ #
    #  Data handlers                                                       #
    # ------------------------------------------------------------------ #

    def _refresh_data(self):
        if self.user is None:
            return
        self.data.refresh_all()
        self._render_data()

    def _on_clear_history_filters(self):
        self._hist_subject.setCurrentIndex(0)
        for edit in (self._hist_start, self._hist_end):
            edit.setDate(edit.minimumDate())

    def _on_delete_session(self):
        item = self._hist_list.currentItem()
        session_id = item.data(Qt.UserRole) if item else None
        if not session_id:
            return
        if QMessageBox.question(self, "Delete session", "Delete this study session?") != QMessageBox.Yes:
            return
        try:
            self.sessions.delete(session_id)
        except ApiError:
            log.warning(f"Failed to delete session '{session_id}'", exc_info=True)
            _set_message(self._hist_error, "Failed to delete session.", "error")
            return
        self._refresh_data()

    # Add or, while editing, save the subject in the name/color fields.
    def _on_submit_subject(self):
        _set_message(self._subject_error, "")
        name = self._subject_name.text()
        color = normalize_color(self._subject_color.text(), self.timer.default_color)
        try:
            if self._editing_subject_id is None:
                self.subjects.create(name, color)
            else:
                self.subjects.update(self._editing_subject_id, name, color)
        except StudyTrackError as err:
            fallback = "Failed to add subject." if self._editing_subject_id is None else "Failed to update subject."
            _set_message(self._subject_error, str(err) or fallback, "error")
            return
        self._end_subject_edit()
        self._refresh_data()

    def _on_edit_subject(self):
        item = self._subject_list.currentItem()
        subject = self.data.subject_by_id(item.data(Qt.UserRole)) if item else None
        if subject is None:
            return
        self._editing_subject_id = subject.id
        self._subject_name.setText(subject.name)
        self._subject_color.setText(subject.color or self.timer.default_color)
        self._subject_submit.setText("Save")
        self._subject_cancel.setVisible(True)
        _set_message(self._subject_error, "")

    def _end_subject_edit(self):
        self._editing_subject_id = None
        self._subject_name.clear()
        self._subject_color.setText(self.timer.default_color)
        self._subject_submit.setText("Add")
        self._subject_cancel.setVisible(False)

    def _on_delete_subject(self):
        item = self._subject_list.currentItem()
        subject_id = item.data(Qt.UserRole) if item else None
        if not subject_id:
            return
        if QMessageBox.question(self, "Delete subject",
                                "Delete this subject? Existing sessions will remain unchanged.") != QMessageBox.Yes:
            return
        try:
            self.subjects.delete(subject_id)
        except ApiError:
            log.warning(f"Failed to delete subject '{subject_id}'", exc_info=True)
            _set_message(self._subject_error, "Failed to delete subject.", "error")
            return
        self._refresh_data()

    def _on_manual_submit(self):
        _set_message(self._manual_error, "")
        subject = self._manual_subject.text()
        try:
            payload = build_manual_session(
                subject,
                self._manual_start.dateTime().toPython().astimezone(),
                self._manual_end.dateTime().toPython().astimezone(),
                notes=self._manual_notes.text(),
                reflection=self._manual_reflection.text(),
                color=self.data.subject_color(subject.strip()),
            )
            self.subjects.ensure_exists(payload["subject"], payload["subjectColor"], self.data.subjects)
            if self._editing_session_id is None:
                self.sessions.create(payload)
            else:
                self.sessions.update(self._editing_session_id, payload)
        except StudyTrackError as err:
            _set_message(self._manual_error, str(err) or "Failed to save session.", "error")
            return
        self._reset_manual_form()
        self._refresh_data()

    def _reset_manual_form(self):
        self._editing_session_id = None
        self._manual_subject.clear()
        self._manual_notes.clear()
        self._manual_reflection.clear()
        now = QDateTime.currentDateTime()
        self._manual_start.setDateTime(now.addSecs(-3600))
        self._manual_end.setDateTime(now)
        self._manual_submit.setText("Save session")
        self._manual_cancel.setVisible(False)
        _set_message(self._manual_error, "")

    # Loads the selected history entry into the manual form; saving then updates it in place.
    def _on_edit_session(self):
        item = self._hist_list.currentItem()
        session = self.data.session_by_id(item.data(Qt.UserRole)) if item else None
        if session is None:
            return
        self._editing_session_id = session.id
        self._manual_subject.setText(session.subject)
        if session.start_time is not None:
            self._manual_start.setDateTime(QDateTime.fromSecsSinceEpoch(int(session.start_time.timestamp())))
        if session.end_time is not None:
            self._manual_end.setDateTime(QDateTime.fromSecsSinceEpoch(int(session.end_time.timestamp())))
        self._manual_notes.setText(session.notes)
        self._manual_reflection.setText(session.reflection)
        self._manual_submit.setText("Update session")
        self._manual_cancel.setVisible(True)
        _set_message(self._manual_error, "")

    # ------------------------------------------------------------------ #
    #  Auth                                                                #
    # ------------------------------------------------------------------ #

    def _set_user(self, user):
        self.user = user
        if user is None:
            self.timer.sign_out()
            self.data.clear()
            self._end_subject_edit()
            self._reset_manual_form()
            self._user_lbl.setText("")
            self._render_data()
            return
        self._user_lbl.setText(f"Signed in as {user.get('email', '')}")
        self._refresh_data()

    def ensure_signed_in(self):
        try:
            user = self.auth.me()
        except ApiError:
            log.warning("Could not reach the API to check the current user", exc_info=True)
            user = None
        if user is None:
            dialog = LoginDialog(self, self.auth)
            if not dialog.exec():
                return False
            user = dialog.user
        self._set_user(user)
        return True

    def _on_logout(self):
        if self.timer.session.is_submitting:
            return
        try:
            self.auth.logout()
        except ApiError:
            log.warning("Logout request failed, clearing local session anyway", exc_info=True)
        self._set_user(None)
        if not self.ensure_signed_in():
            self.close()

    def closeEvent(self, event):
        if self.timer.session.status != IDLE:
            log.info(f"Closing with an unsaved live track session for '{self.timer.session.subject_name}'")
        self.timer.reset(notify=False)
        self.client.close()
        super().closeEvent(event)


def main():
    app = QApplication(sys.argv)
    win = MainWindow()
    win.show()
    if not win.ensure_signed_in():
        return
    sys.exit(app.exec())
