from datetime import datetime, time, timedelta
from st.common.errors import ApiError
from st.common.logger import log
from st.core.config import FALLBACK_COLORS

# Client-side cache of everything loaded from the API: subjects, sessions and the progress summary. Each loader
# fails on its own without taking the others down, leaving the previous data in place and recording what went
# wrong in `errors`.
class StudyData:

    def __init__(self, session_store, subject_store, summary_service):
        self.session_store = session_store
        self.subject_store = subject_store
        self.summary_service = summary_service
        self.sessions = []
        self.subjects = []
        self.summary = None
        self.errors = {}
        self.loaded = False

    #region === Loading ===

    def load_subjects(self):
        try:
            self.subjects = self.subject_store.list()
            self.errors.pop("subjects", None)
            log.debug(f"Loaded {len(self.subjects)} subjects")
        except ApiError as err:
            log.warning("Failed to load subjects", exc_info=True)
            self.errors["subjects"] = str(err)

    def load_sessions(self):
        try:
            self.sessions = self.session_store.list()
            self.errors.pop("sessions", None)
            log.debug(f"Loaded {len(self.sessions)} sessions")
        except ApiError:
            log.warning("Failed to load sessions", exc_info=True)
            self.errors["sessions"] = "Failed to load study sessions."

    def load_summary(self):
        try:
            self.summary = self.summary_service.get()
            self.errors.pop("summary", None)
        except ApiError as err:
            log.warning("Failed to load summary", exc_info=True)
            self.errors["summary"] = str(err)

    # Subjects go first so sessions and summary can be colored by them.
    def refresh_all(self):
        self.load_subjects()
        self.load_sessions()
        self.load_summary()
        self.loaded = True
        log.info(f"Refreshed study data ({len(self.subjects)} subjects, {len(self.sessions)} sessions)")

    def clear(self):
        self.sessions = []
        self.subjects = []
        self.summary = None
        self.errors = {}
        self.loaded = False

    #endregion === Loading ===

    #region === Subject lookups ===

    def _match(self, name):
        if not name:
            return None
        wanted = name.lower()
        for subject in self.subjects:
            if subject.name and subject.name.lower() == wanted:
                return subject
        return None

    # Sorted, de-duplicated subject names from both the subject list and logged sessions.
    def subject_names(self):
        names = {s.name for s in self.subjects if s.name}
        names.update(s.subject for s in self.sessions if s.subject)
        return sorted(names, key=str.lower)

    # Subject names containing the query, for the autocomplete list.
    def suggestions(self, query, limit=8):
        q = (query or "").strip().lower()
        names = self.subject_names()
        if q:
            names = [n for n in names if q in n.lower()]
        return names[:limit]

    def search_subjects(self, query):
        q = (query or "").strip().lower()
        if not q:
            return list(self.subjects)
        return [s for s in self.subjects if s.name and q in s.name.lower()]

    def subject_by_id(self, subject_id):
        return next((s for s in self.subjects if s.id == subject_id), None)

    def find_subject_color(self, name):
        match = self._match(name)
        return match.color if match and match.color else ""

    # Known subject color, otherwise a palette color picked by position so neighbouring rows differ.
    def subject_color(self, name, index=0):
        return self.find_subject_color(name) or FALLBACK_COLORS[index % len(FALLBACK_COLORS)]

    #endregion === Subject lookups ===

    #region === History ===

    def session_by_id(self, session_id):
        return next((s for s in self.sessions if s.id == session_id), None)

    def filter_sessions(self, subject="all", start_date=None, end_date=None):
        """Sessions matching the history filters.

        ``subject`` matches case-insensitively, "all" (or empty) disables it.
        ``start_date`` and ``end_date`` are inclusive dates compared against the
        session start in local time; the end date covers the whole day.
        """
        filtered = list(self.sessions)
        if subject and subject != "all":
            wanted = subject.lower()
            filtered = [s for s in filtered if s.subject and s.subject.lower() == wanted]
        if start_date is not None:
            lower = datetime.combine(start_date, time.min).astimezone()
            filtered = [s for s in filtered if s.start_time is not None and s.start_time >= lower]
        if end_date is not None:
            upper = datetime.combine(end_date + timedelta(days=1), time.min).astimezone()
            filtered = [s for s in filtered if s.start_time is not None and s.start_time < upper]
        return filtered

    def history_count_label(self, filtered):
        total = len(self.sessions)
        showing = len(filtered)
        if showing:
            suffix = f" of {total}" if total and showing != total else ""
            label = "session" if showing == 1 else "sessions"
            return f"Showing {showing}{suffix} {label}"
        if total:
            return "No sessions match these filters."
        return "No sessions logged yet."

    #endregion === History ===
