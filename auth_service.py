import hashlib
import hmac
import secrets
import sqlite3
import time
from typing import Optional

from fastapi import HTTPException, Request

from app_config import AppSettings
import auth_repository

SESSION_COOKIE_NAME = "session_token"


def password_matches(settings: AppSettings, candidate: str) -> bool:
    return hmac.compare_digest(
        str(candidate or "").encode("utf-8"),
        settings.password.encode("utf-8"),
    )


def hash_session_token(settings: AppSettings, token: str) -> str:
    return hmac.new(
        settings.session_secret.encode("utf-8"),
        token.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def create_session(conn: sqlite3.Connection, settings: AppSettings) -> str:
    token = secrets.token_urlsafe(32)
    now = time.time()
    auth_repository.insert_session(
        conn,
        hash_session_token(settings, token),
        created_at=now,
        expires_at=now + settings.session_max_age_s,
    )
    return token


def end_session(conn: sqlite3.Connection, settings: AppSettings, token: str) -> None:
    auth_repository.delete_session(conn, hash_session_token(settings, token))


def purge_expired_sessions(conn: sqlite3.Connection, now: Optional[float] = None) -> int:
    return auth_repository.delete_expired_sessions(conn, time.time() if now is None else now)


def session_is_valid(conn: sqlite3.Connection, settings: AppSettings, token: str) -> bool:
    token = (token or "").strip()
    if not token:
        return False
    token_hash = hash_session_token(settings, token)
    now = time.time()
    row = auth_repository.find_session(conn, token_hash)
    if not row or float(row["expires_at"]) <= now:
        return False
    auth_repository.touch_session(conn, token_hash, now)
    conn.commit()
    return True


def is_authenticated(conn: sqlite3.Connection, request: Request) -> bool:
    settings: AppSettings = request.app.state.settings
    if settings.dev_skip_auth:
        return True
    return session_is_valid(conn, settings, request.cookies.get(SESSION_COOKIE_NAME) or "")


def require_login(conn: sqlite3.Connection, request: Request) -> None:
    if not is_authenticated(conn, request):
        raise HTTPException(status_code=401, detail="Authentication required")
