import os
import tempfile

# Keep logs and settings written during tests out of the real user data dir. Must run before any `st` import.
os.environ.setdefault("STUDYTRACK_HOME", tempfile.mkdtemp(prefix="studytrack-tests-"))
