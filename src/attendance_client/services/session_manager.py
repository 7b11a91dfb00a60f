from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Optional

from attendance_client.config.settings import LOGIN_PATH, TOKEN_REFRESH_PATH
from attendance_client.errors import (
    NetworkError,
    NoSessionError,
    RefreshFailedError,
    RequestFailedError,
)
from attendance_client.models import Session, UserProfile, token_expiry
from attendance_client.services.token_store import TokenStore
from attendance_client.services.transport import RequestSpec, Transport

logger = logging.getLogger(__name__)

TerminationListener = Callable[[Exception | None], None]

LOGIN_FAILED_MESSAGE = "Login failed. Please check your credentials."


class SessionManager:
    """Own the session and its refresh protocol.

    ``refresh()`` is single-flight: while one refresh is in flight every other
    caller waits on the same pending future and sees the same Session or the
    same ``RefreshFailedError``. Nothing else in the client writes tokens to
    the store.
    """

    def __init__(self, token_store: TokenStore, transport: Transport) -> None:
        self._token_store = token_store
        self._transport = transport
        self._lock = threading.Lock()
        self._pending: Optional[Future[Session]] = None
        self._listeners: list[TerminationListener] = []
        self._session: Optional[Session] = token_store.load()
        self._user: Optional[UserProfile] = token_store.load_user() if self._session else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def session(self) -> Optional[Session]:
        with self._lock:
            return self._session

    @property
    def user(self) -> Optional[UserProfile]:
        with self._lock:
            return self._user

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    def get_access_token(self) -> str:
        with self._lock:
            if self._session is None:
                raise NoSessionError()
            return self._session.access_token

    def add_termination_listener(self, listener: TerminationListener) -> None:
        self._listeners.append(listener)

    def login(self, email: str, password: str) -> Session:
        response = self._transport.send(
            RequestSpec("POST", LOGIN_PATH, json={"email": email, "password": password})
        )
        if not response.ok:
            raise RequestFailedError(response.status_code, response.body, fallback=LOGIN_FAILED_MESSAGE)

        body = response.body if isinstance(response.body, dict) else {}
        access_token = body.get("access") or body.get("token")
        refresh_token = body.get("refresh")
        if not access_token or not refresh_token:
            raise RequestFailedError(response.status_code, None, fallback=LOGIN_FAILED_MESSAGE)

        user_payload = body.get("user") if isinstance(body.get("user"), dict) else {}
        user = UserProfile.from_api(user_payload) if user_payload else UserProfile(id="", email=email)
        session = Session(
            access_token=access_token,
            refresh_token=refresh_token,
            user_id=user.id,
            expires_approx=token_expiry(access_token),
        )

        with self._lock:
            self._session = session
            self._user = user
            self._token_store.save(session, user)
        logger.info("Logged in as user %s", user.id or email)
        return session

    def update_user(self, user: UserProfile) -> None:
        with self._lock:
            if self._session is None:
                raise NoSessionError()
            self._user = user
            self._token_store.save_user(user)

    def refresh(self, stale_token: Optional[str] = None) -> Session:
        """Exchange the refresh token for a new access token.

        ``stale_token`` is the access token a caller was just rejected with.
        If a sibling already replaced it, the current session is returned
        without another network call.
        """

        with self._lock:
            pending = self._pending
            owner = pending is None
            if owner:
                if self._session is None:
                    raise RefreshFailedError()
                if stale_token is not None and self._session.access_token != stale_token:
                    return self._session
                pending = Future()
                self._pending = pending

        if owner:
            try:
                pending.set_result(self._perform_refresh())
            except Exception as exc:
                pending.set_exception(exc)
            finally:
                with self._lock:
                    self._pending = None

        return pending.result()

    def clear(self, reason: Exception | None = None) -> None:
        with self._lock:
            had_session = self._session is not None
            self._session = None
            self._user = None
            self._token_store.clear()

        if had_session:
            logger.info("Session cleared%s", f" ({reason.__class__.__name__})" if reason else "")
            for listener in list(self._listeners):
                listener(reason)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _perform_refresh(self) -> Session:
        with self._lock:
            current = self._session
        if current is None or not current.refresh_token:
            raise RefreshFailedError()

        try:
            response = self._transport.send(
                RequestSpec("POST", TOKEN_REFRESH_PATH, json={"refresh": current.refresh_token})
            )
        except NetworkError as exc:
            failure = RefreshFailedError()
            self.clear(failure)
            raise failure from exc

        body = response.body if isinstance(response.body, dict) else {}
        access_token = body.get("access")
        if not response.ok or not access_token:
            logger.warning("Token refresh rejected with status %s", response.status_code)
            failure = RefreshFailedError()
            self.clear(failure)
            raise failure

        refreshed = current.with_access_token(access_token, body.get("refresh"))
        with self._lock:
            # a logout during the refresh wins
            if self._session is None:
                raise RefreshFailedError()
            if self._session is not current:
                logger.info("Session replaced during refresh; keeping the newer session")
                return self._session
            self._session = refreshed
            self._token_store.save(refreshed)
        logger.info("Access token refreshed")
        return refreshed
