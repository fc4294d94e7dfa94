from st.api.models import StudySession, Subject, Summary
from st.common.errors import ApiError, ValidationError
from st.common.logger import log
from st.util import to_api_iso

SESSIONS_PATH = "/api/study-sessions"
SUBJECTS_PATH = "/api/subjects"
SUMMARY_PATH = "/api/progress/summary"
AUTH_PATH = "/api/auth"

#region === Sessions ===

# Create/list/update/delete for study sessions. Payloads are plain dicts in the API's own camelCase shape.
class SessionStore:

    def __init__(self, client):
        self.client = client

    def list(self):
        result = self.client.get(SESSIONS_PATH)
        return [StudySession.from_api(item) for item in result or [] if isinstance(item, dict)]

    def create(self, session):
        created = self.client.post(SESSIONS_PATH, session)
        log.info(f"Created study session for subject '{session.get('subject')}'")
        return StudySession.from_api(created) if isinstance(created, dict) else None

    def update(self, session_id, session):
        updated = self.client.put(f"{SESSIONS_PATH}/{session_id}", session)
        log.info(f"Updated study session '{session_id}'")
        return StudySession.from_api(updated) if isinstance(updated, dict) else None

    def delete(self, session_id):
        self.client.delete(f"{SESSIONS_PATH}/{session_id}")
        log.info(f"Deleted study session '{session_id}'")


# Validates a manually entered session and builds the payload SessionStore expects. Raises ValidationError with a
# message meant for the user.
def build_manual_session(subject, start, end, notes="", reflection="", color=""):
    subject = (subject or "").strip()
    if not subject or start is None or end is None:
        raise ValidationError("Please fill subject, start, and end time.")
    if end <= start:
        raise ValidationError("End time must be after start time.")
    return {
        "subject": subject,
        "subjectColor": color,
        "notes": (notes or "").strip(),
        "reflection": (reflection or "").strip(),
        "startTime": to_api_iso(start),
        "endTime": to_api_iso(end),
    }

#endregion === Sessions ===

#region === Subjects ===

class SubjectStore:

    def __init__(self, client):
        self.client = client

    def list(self):
        result = self.client.get(SUBJECTS_PATH)
        return [Subject.from_api(item) for item in result or [] if isinstance(item, dict)]

    def create(self, name, color):
        name = (name or "").strip()
        if not name:
            raise ValidationError("Subject name is required.")
        created = self.client.post(SUBJECTS_PATH, {"name": name, "color": color})
        log.info(f"Created subject '{name}'")
        return Subject.from_api(created) if isinstance(created, dict) else None

    def update(self, subject_id, name, color):
        name = (name or "").strip()
        if not name:
            raise ValidationError("Subject name is required.")
        updated = self.client.put(f"{SUBJECTS_PATH}/{subject_id}", {"id": subject_id, "name": name, "color": color})
        log.info(f"Updated subject '{subject_id}' to '{name}'")
        return Subject.from_api(updated) if isinstance(updated, dict) else None

    def delete(self, subject_id):
        self.client.delete(f"{SUBJECTS_PATH}/{subject_id}")
        log.info(f"Deleted subject '{subject_id}'")

    # Makes sure a subject with this name exists, creating it when it's not among the known ones. Losing a race to
    # another client ("already exists") counts as success. Returns the matching subject after a reload, if any.
    def ensure_exists(self, name, color, known=()):
        normalized = (name or "").strip().lower()
        if not normalized:
            raise ValidationError("Subject name missing.")
        for subject in known:
            if subject.name and subject.name.lower() == normalized:
                return subject
        try:
            self.create(name, color)
        except ApiError as err:
            if "exists" not in str(err).lower():
                raise
            log.debug(f"Subject '{name}' already existed on the server")
        for subject in self.list():
            if subject.name and subject.name.lower() == normalized:
                return subject
        return None

#endregion === Subjects ===

#region === Summary and Auth ===

class SummaryService:

    def __init__(self, client):
        self.client = client

    def get(self):
        return Summary.from_api(self.client.get(SUMMARY_PATH))


# Session-cookie auth. Protocol details stay with the server, this only forwards credentials and reports who is
# signed in.
class AuthService:

    def __init__(self, client):
        self.client = client

    # Returns the signed-in user dict, or None when nobody is signed in.
    def me(self):
        try:
            return self.client.get(f"{AUTH_PATH}/me")
        except ApiError as err:
            if err.status in (401, 403):
                return None
            raise

    def login(self, email, password):
        self.client.post(f"{AUTH_PATH}/login", {"email": (email or "").strip(), "password": password or ""})
        log.info(f"Signed in as '{(email or '').strip()}'")
        return self.me()

    def register(self, email, password):
        self.client.post(f"{AUTH_PATH}/register", {"email": (email or "").strip(), "password": password or ""})
        log.info(f"Registered '{(email or '').strip()}'")
        return self.me()

    def logout(self):
        try:
            self.client.post(f"{AUTH_PATH}/logout")
        finally:
            self.client.session.cookies.clear()
            log.info("Signed out")

    def google_login_url(self):
        result = self.client.get(f"{AUTH_PATH}/google/login") or {}
        return result.get("url") or ""

#endregion === Summary and Auth ===
