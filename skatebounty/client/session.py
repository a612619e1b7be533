from __future__ import annotations
import uuid
from typing import Callable

import structlog

from skatebounty.identity import Identity
from skatebounty.security import peek_subject

log = structlog.get_logger()

SessionListener = Callable[[uuid.UUID | None], None]

class SessionStore:
    """
    Client-side view of the identity provider: holds the bearer token and
    tells listeners when the signed-in user changes.
    """

    def __init__(self, token: str | None = None):
        self._token = token
        self._listeners: list[SessionListener] = []

    @property
    def token(self) -> str | None:
        return self._token

    def current_user_id(self) -> uuid.UUID | None:
        if not self._token:
            return None
        sub = peek_subject(self._token)
        try:
            return uuid.UUID(sub) if sub else None
        except ValueError:
            return None

    def identity(self) -> Identity:
        return Identity(user_id=self.current_user_id())

    def set_token(self, token: str | None) -> None:
        before = self.current_user_id()
        self._token = token
        after = self.current_user_id()
        if before != after:
            for listener in list(self._listeners):
                listener(after)

    def on_session_change(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    def sign_out(self) -> None:
        log.info("sign_out", user_id=str(self.current_user_id()))
        self.set_token(None)
