from __future__ import annotations

import threading
import time
from typing import Callable, Optional

import pytest

from attendance_client.config.client_storage import ClientStorage
from attendance_client.services.transport import RequestSpec, Response

Handler = Callable[[RequestSpec, Optional[str]], Response]


class FakeTransport:
    """In-memory transport; ``handler`` decides the response for each request."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.calls: list[tuple[RequestSpec, Optional[str]]] = []
        self._lock = threading.Lock()

    def send(self, spec: RequestSpec, *, access_token: Optional[str] = None) -> Response:
        with self._lock:
            self.calls.append((spec, access_token))
        return self.handler(spec, access_token)

    def calls_to(self, path: str) -> list[tuple[RequestSpec, Optional[str]]]:
        with self._lock:
            return [call for call in self.calls if call[0].path == path]


@pytest.fixture
def storage(tmp_path) -> ClientStorage:
    return ClientStorage(tmp_path / "client_storage.json")


@pytest.fixture
def seeded_storage(storage) -> ClientStorage:
    storage.update(
        {
            "accessToken": "old-access",
            "refreshToken": "refresh-1",
            "user": '{"id": "42", "email": "student@example.com", "name": "Sam Student"}',
        }
    )
    return storage


@pytest.fixture(autouse=True)
def local_timezone(monkeypatch):
    """Run every test in UTC; call the fixture with a zone name to switch."""

    if not hasattr(time, "tzset"):
        yield lambda name: pytest.skip("switching timezones needs time.tzset")
        return

    def use(name: str) -> None:
        monkeypatch.setenv("TZ", name)
        time.tzset()

    use("UTC")
    yield use
    monkeypatch.undo()
    time.tzset()
