import requests
from st.common.errors import ApiError
from st.common.logger import log

# Thin JSON-over-HTTP client for the StudyTrack API. A single requests.Session carries the auth cookie between calls,
# so signing in through AuthService authenticates every store sharing this client.
class ApiClient:

    def __init__(self, base_url, timeout=10, session=None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        log.debug(f"Initialized API client for '{self.base_url}' with timeout {timeout}s")

    def url(self, path):
        return f"{self.base_url}/{path.lstrip('/')}"

    # Sends one request and returns the decoded JSON body (None for 204 No Content). Anything other than a 2xx, and
    # any transport failure, raises ApiError carrying a human-readable message.
    def request(self, method, path, payload=None):
        url = self.url(path)
        kwargs = {"timeout": self.timeout}
        if payload is not None:
            kwargs["json"] = payload
        log.debug(f"{method} {url}")
        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as err:
            log.warning(f"{method} {url} failed before a response arrived", exc_info=True)
            raise ApiError(str(err) or "Request failed") from err

        if not response.ok:
            message = (response.text or "").strip() or "Request failed"
            log.warning(f"{method} {url} returned {response.status_code}: {message}")
            raise ApiError(message, status=response.status_code)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as err:
            log.warning(f"{method} {url} returned a body that isn't JSON", exc_info=True)
            raise ApiError("Server returned an unreadable response.", status=response.status_code) from err

    def get(self, path):
        return self.request("GET", path)

    def post(self, path, payload=None):
        return self.request("POST", path, payload)

    def put(self, path, payload=None):
        return self.request("PUT", path, payload)

    def delete(self, path):
        return self.request("DELETE", path)

    def close(self):
        self.session.close()
