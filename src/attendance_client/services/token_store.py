from __future__ import annotations

import json
import logging
from typing import Any, Optional

from attendance_client.config.client_storage import ClientStorage, StorageUnavailableError
from attendance_client.models import Session, UserProfile
from attendance_client.utils.time import coerce_datetime

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
LEGACY_ACCESS_TOKEN_KEY = "authToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_KEY = "user"
EXPIRES_KEY = "accessTokenExpiresAt"

SESSION_KEYS = (ACCESS_TOKEN_KEY, LEGACY_ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY, EXPIRES_KEY)


class TokenStore:
    """Persist the session under fixed storage keys.

    Storage failures never propagate: an unreadable store loads as "no
    session" and a failed write is logged.
    """

    def __init__(self, storage: ClientStorage) -> None:
        self._storage = storage

    def load(self) -> Optional[Session]:
        try:
            self._storage.reload()
        except StorageUnavailableError as exc:
            logger.warning("Token storage unavailable: %s", exc)
            return None

        access_token = self._storage.get(ACCESS_TOKEN_KEY) or self._storage.get(LEGACY_ACCESS_TOKEN_KEY)
        refresh_token = self._storage.get(REFRESH_TOKEN_KEY)
        if not access_token or not refresh_token:
            return None

        user = self.load_user()
        return Session(
            access_token=access_token,
            refresh_token=refresh_token,
            user_id=user.id if user else "",
            expires_approx=self._load_expiry(),
        )

    def save(self, session: Session, user: Optional[UserProfile] = None) -> None:
        values: dict[str, Optional[str]] = {
            ACCESS_TOKEN_KEY: session.access_token,
            LEGACY_ACCESS_TOKEN_KEY: None,
            REFRESH_TOKEN_KEY: session.refresh_token,
            EXPIRES_KEY: session.expires_approx.isoformat() if session.expires_approx else None,
        }
        if user is not None:
            values[USER_KEY] = json.dumps(user.to_dict())
        self._write(values)

    def save_user(self, user: UserProfile) -> None:
        self._write({USER_KEY: json.dumps(user.to_dict())})

    def load_user(self) -> Optional[UserProfile]:
        raw = self._storage.get(USER_KEY)
        if not raw:
            return None
        try:
            payload: Any = json.loads(raw)
        except ValueError:
            logger.warning("Stored user profile is not valid JSON; ignoring it.")
            return None
        if not isinstance(payload, dict):
            return None
        return UserProfile.from_api(payload)

    def clear(self) -> None:
        self._write({key: None for key in SESSION_KEYS})

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _write(self, values: dict[str, Optional[str]]) -> None:
        try:
            self._storage.update(values)
        except StorageUnavailableError as exc:
            logger.warning("Could not persist session state: %s", exc)

    def _load_expiry(self):
        raw = self._storage.get(EXPIRES_KEY)
        if not raw:
            return None
        try:
            return coerce_datetime(raw)
        except ValueError:
            return None
