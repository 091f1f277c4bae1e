from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Optional, Protocol

log = logging.getLogger("stockdash.auth")

SIGNED_IN = "SIGNED_IN"
SIGNED_OUT = "SIGNED_OUT"


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class Session:
    access_token: str
    user: AuthUser


AuthCallback = Callable[[str, Optional[Session]], None]


class Subscription:
    def __init__(self, registry: "SessionEvents", callback: AuthCallback):
        self._registry = registry
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        if self.active:
            self._registry._listeners.remove(self)
            self.active = False


class SessionEvents:
    """Listener registry shared by the identity backends."""

    def __init__(self) -> None:
        self._listeners: list[Subscription] = []

    def on_auth_state_change(self, callback: AuthCallback) -> Subscription:
        sub = Subscription(self, callback)
        self._listeners.append(sub)
        return sub

    def _emit(self, event: str, session: Optional[Session]) -> None:
        log.info("auth_event event=%s user=%s", event, session.user.id if session else None)
        for sub in list(self._listeners):
            sub.callback(event, session)


class IdentityProvider(Protocol):
    def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> AuthUser: ...
    def sign_in_with_password(self, email: str, password: str) -> Session: ...
    def sign_out(self) -> None: ...
    def get_session(self) -> Optional[Session]: ...
    def on_auth_state_change(self, callback: AuthCallback) -> Subscription: ...
