import threading
from collections import defaultdict

import pytest

from media2nextcloud.models import PipelineState
from media2nextcloud.remote.client import WebDAVClient

BASE_URL = "https://cloud.example/remote.php/dav/files/alice/Photos"


class FakeResponse:
    def __init__(self, status_code: int, reason: str = ""):
        self.status_code = status_code
        self.reason = reason
        self.closed = False

    def close(self):
        self.closed = True


class FakeServer:
    """
    Records every request and answers from per-URL scripts.

    Unscripted MKCOL behaves like a WebDAV server: 201 the first time a
    collection is created, 405 afterwards. Unscripted PUT answers 201.
    A scripted entry may be an exception instance, which is raised.
    """

    def __init__(self):
        self.calls = []
        self.sessions = []
        self._scripts = defaultdict(list)
        self._collections = set()
        self._lock = threading.Lock()

    def script(self, method: str, url: str, *statuses):
        self._scripts[(method, url)].extend(statuses)

    def session(self):
        s = FakeSession(self)
        with self._lock:
            self.sessions.append(s)
        return s

    def handle(self, method, url, data):
        body = data.read() if hasattr(data, "read") else data
        with self._lock:
            self.calls.append((method, url, body))
            scripted = self._scripts.get((method, url))
            if scripted:
                answer = scripted.pop(0)
                if isinstance(answer, Exception):
                    raise answer
                if method == "MKCOL" and answer in (200, 201):
                    self._collections.add(url)
                return FakeResponse(answer)
            if method == "MKCOL":
                if url in self._collections:
                    return FakeResponse(405, "Method Not Allowed")
                self._collections.add(url)
                return FakeResponse(201, "Created")
            return FakeResponse(201, "Created")

    def requests(self, method):
        return [url for m, url, _ in self.calls if m == method]


class FakeSession:
    def __init__(self, server: FakeServer):
        self.server = server
        self.auth = None
        self.verify = True

    def request(self, method, url, data=None, timeout=None):
        return self.server.handle(method, url, data)


@pytest.fixture
def server():
    return FakeServer()


@pytest.fixture
def client(server):
    """WebDAVClient wired to the fake server."""
    return WebDAVClient(BASE_URL, "alice", "secret", verify_tls=True, session_factory=server.session)


@pytest.fixture
def state():
    return PipelineState()
