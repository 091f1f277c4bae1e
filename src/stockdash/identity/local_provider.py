from __future__ import annotations

import json
import secrets
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Optional

from stockdash.domain.errors import AuthError, StorageError
from stockdash.identity.passwords import hash_password, verify_password
from stockdash.identity.provider import SIGNED_IN, SIGNED_OUT, AuthUser, Session, SessionEvents
from stockdash.repositories.schema import AUTH_USERS_DDL

INVALID_CREDENTIALS = "Invalid login credentials"


class SqliteIdentityProvider(SessionEvents):
    """Identity backend kept in the ``auth_users`` table of the app database.

    Sign-up signs the new account in straight away, the same way a hosted auth
    service with email confirmation disabled does. The current session lives
    in this object and is shared by everything holding a reference to it.
    """

    def __init__(self, db_path: Path | str, hash_rounds: int = 200_000):
        super().__init__()
        self.db_path = str(db_path)
        self.hash_rounds = int(hash_rounds)
        self._session: Optional[Session] = None

    def _conn(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def init_db(self) -> None:
        conn = self._conn()
        try:
            conn.execute(AUTH_USERS_DDL)
            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _user(r) -> AuthUser:
        return AuthUser(id=str(r[0]), email=str(r[1]), metadata=json.loads(r[2] or "{}"))

    def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> AuthUser:
        email = email.strip().lower()
        user_id = str(uuid.uuid4())
        now = datetime.now().replace(microsecond=0).isoformat(sep=" ")
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                INSERT INTO auth_users (id, email, password_hash, user_metadata, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (user_id, email, hash_password(password, rounds=self.hash_rounds), json.dumps(metadata or {}), now),
            )
            conn.commit()
        except sqlite3.IntegrityError as exc:
            conn.rollback()
            raise AuthError("User already registered") from exc
        except sqlite3.Error as exc:
            conn.rollback()
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()

        user = AuthUser(id=user_id, email=email, metadata=dict(metadata or {}))
        self._start_session(user)
        return user

    def sign_in_with_password(self, email: str, password: str) -> Session:
        conn = self._conn()
        try:
            cur = conn.cursor()
            cur.execute(
                "SELECT id, email, user_metadata, password_hash FROM auth_users WHERE email=?",
                (email.strip().lower(),),
            )
            row = cur.fetchone()
            if not row or not verify_password(str(row[3]), password):
                raise AuthError(INVALID_CREDENTIALS)
            cur.execute(
                "UPDATE auth_users SET last_sign_in_at=datetime('now') WHERE id=?",
                (str(row[0]),),
            )
            conn.commit()
        except sqlite3.Error as exc:
            raise StorageError(str(exc)) from exc
        finally:
            conn.close()
        return self._start_session(self._user(row))

    def _start_session(self, user: AuthUser) -> Session:
        self._session = Session(access_token=secrets.token_urlsafe(32), user=user)
        self._emit(SIGNED_IN, self._session)
        return self._session

    def sign_out(self) -> None:
        if self._session is None:
            return
        self._session = None
        self._emit(SIGNED_OUT, None)

    def get_session(self) -> Optional[Session]:
        return self._session
