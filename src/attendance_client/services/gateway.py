from __future__ import annotations

import logging

from attendance_client.errors import AuthExpiredError, RefreshFailedError, RequestFailedError
from attendance_client.services.session_manager import SessionManager
from attendance_client.services.transport import RequestSpec, Response, Transport

logger = logging.getLogger(__name__)


class AuthenticatedGateway:
    """Send authenticated requests: try once, refresh once, retry once."""

    def __init__(self, sessions: SessionManager, transport: Transport) -> None:
        self._sessions = sessions
        self._transport = transport

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    def call(self, spec: RequestSpec) -> Response:
        access_token = self._sessions.get_access_token()
        response = self._transport.send(spec, access_token=access_token)
        if not response.unauthorized:
            return self._checked(response)

        logger.info("%s was unauthorized; refreshing the session", spec.describe())
        try:
            session = self._sessions.refresh(stale_token=access_token)
        except RefreshFailedError as exc:
            failure = AuthExpiredError()
            self._sessions.clear(failure)
            raise failure from exc

        response = self._transport.send(spec, access_token=session.access_token)
        if response.unauthorized:
            logger.warning("%s still unauthorized after refresh", spec.describe())
            failure = AuthExpiredError()
            self._sessions.clear(failure)
            raise failure
        return self._checked(response)

    def get(self, path: str) -> Response:
        return self.call(RequestSpec("GET", path))

    def post(self, path: str, payload=None) -> Response:
        return self.call(RequestSpec("POST", path, json=payload))

    def put(self, path: str, payload=None) -> Response:
        return self.call(RequestSpec("PUT", path, json=payload))

    @staticmethod
    def _checked(response: Response) -> Response:
        if not response.ok:
            raise RequestFailedError(response.status_code, response.body)
        return response
