from __future__ import annotations

import logging
from typing import Optional

import requests

from stockdash.domain.errors import AuthError, StorageError
from stockdash.identity.provider import SIGNED_IN, SIGNED_OUT, AuthUser, Session, SessionEvents

log = logging.getLogger("stockdash.auth")

# statuses a GoTrue-style server uses for credential / input rejections
_AUTH_STATUSES = {400, 401, 403, 422}


class HttpIdentityProvider(SessionEvents):
    """Client for a hosted GoTrue-style auth API (``/auth/v1/...``)."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10):
        super().__init__()
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._session: Optional[Session] = None

    def _headers(self, token: Optional[str] = None) -> dict:
        headers = {"apikey": self.api_key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {token or self.api_key}"
        return headers

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        return requests.request(method, url, timeout=self.timeout, **kwargs)

    @staticmethod
    def _error_message(r: requests.Response) -> str:
        try:
            body = r.json()
        except ValueError:
            return r.text or f"HTTP {r.status_code}"
        if isinstance(body, dict):
            for key in ("error_description", "msg", "message", "error"):
                if body.get(key):
                    return str(body[key])
        return f"HTTP {r.status_code}"

    def _request(
        self,
        method: str,
        path: str,
        payload: Optional[dict] = None,
        token: Optional[str] = None,
        auth_call: bool = True,
    ) -> dict:
        url = f"{self.base_url}{path}"
        try:
            r = self._send(method, url, json=payload, headers=self._headers(token))
        except requests.RequestException as e:
            log.warning("auth_request_failed url=%s error=%s", url, e)
            raise StorageError(str(e)) from e

        if auth_call and r.status_code in _AUTH_STATUSES:
            raise AuthError(self._error_message(r))
        if r.status_code >= 400:
            raise StorageError(self._error_message(r))
        if r.status_code == 204 or not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise StorageError(f"Invalid JSON from auth server: {e}") from e

    @staticmethod
    def _user(data: dict) -> AuthUser:
        return AuthUser(
            id=str(data["id"]),
            email=str(data.get("email") or ""),
            metadata=dict(data.get("user_metadata") or {}),
        )

    def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> AuthUser:
        data = self._request(
            "POST",
            "/auth/v1/signup",
            {"email": email, "password": password, "data": metadata or {}},
        )
        if data.get("access_token"):
            user = self._user(data["user"])
            self._session = Session(access_token=str(data["access_token"]), user=user)
            self._emit(SIGNED_IN, self._session)
            return user
        # confirmation-required servers answer with the bare user
        return self._user(data.get("user") or data)

    def sign_in_with_password(self, email: str, password: str) -> Session:
        data = self._request(
            "POST",
            "/auth/v1/token?grant_type=password",
            {"email": email, "password": password},
        )
        if not data.get("access_token"):
            raise AuthError("Invalid login credentials")
        self._session = Session(access_token=str(data["access_token"]), user=self._user(data["user"]))
        self._emit(SIGNED_IN, self._session)
        return self._session

    def sign_out(self) -> None:
        if self._session is None:
            return
        token = self._session.access_token
        self._request("POST", "/auth/v1/logout", token=token)
        self._session = None
        self._emit(SIGNED_OUT, None)

    def get_session(self) -> Optional[Session]:
        return self._session

    def get_user_email(self, user_id: str) -> Optional[str]:
        token = self._session.access_token if self._session else None
        data = self._request(
            "POST", "/rest/v1/rpc/get_user_email", {"user_id": user_id}, token=token, auth_call=False
        )
        return str(data) if data else None
