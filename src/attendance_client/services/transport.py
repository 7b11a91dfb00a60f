from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Protocol

import requests

from attendance_client.errors import NetworkError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0


@dataclass(slots=True, frozen=True)
class RequestSpec:
    method: str
    path: str
    json: Any = None
    data: Optional[bytes] = None
    headers: Mapping[str, str] = field(default_factory=dict)

    def describe(self) -> str:
        return f"{self.method.upper()} {self.path}"


@dataclass(slots=True, frozen=True)
class Response:
    status_code: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def unauthorized(self) -> bool:
        return self.status_code == 401


class Transport(Protocol):
    def send(self, spec: RequestSpec, *, access_token: Optional[str] = None) -> Response:
        """Issue one request; raise ``NetworkError`` when no response arrives."""


class RequestsTransport:
    """HTTP transport backed by a shared ``requests.Session``."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._session = session or requests.Session()

    def send(self, spec: RequestSpec, *, access_token: Optional[str] = None) -> Response:
        headers = {"Accept": "application/json", **spec.headers}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        try:
            raw = self._session.request(
                spec.method.upper(),
                self._resolve(spec.path),
                json=spec.json,
                data=spec.data,
                headers=headers,
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.warning("%s failed without a response: %s", spec.describe(), exc.__class__.__name__)
            raise NetworkError() from exc

        logger.debug("%s -> %s", spec.describe(), raw.status_code)
        return Response(status_code=raw.status_code, body=_decode_body(raw))

    def close(self) -> None:
        self._session.close()

    def _resolve(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}/{path.lstrip('/')}"


def _decode_body(raw: requests.Response) -> Any:
    if not raw.content:
        return None
    try:
        return raw.json()
    except ValueError:
        return raw.text
