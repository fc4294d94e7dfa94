"""Exception types shared across the client."""


class StudyTrackError(Exception):
    """Base class for every error raised by StudyTrack itself."""


class ApiError(StudyTrackError):
    """A request to the StudyTrack API failed.

    ``str(err)`` is always a message fit for showing to the user. ``status``
    is the HTTP status code, or None when the request never got a response.
    """

    def __init__(self, message, status=None):
        super().__init__(message or "Request failed")
        self.status = status

    @property
    def message(self):
        return str(self)


class ValidationError(StudyTrackError):
    """User input was rejected before anything was sent to the API."""
