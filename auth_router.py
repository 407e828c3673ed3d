"""
Login session routes:
  /login       (POST)
  /logout      (POST)
  /check-auth  (GET)
"""

import sqlite3
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel

from app_config import AppSettings
from auth_service import (
    SESSION_COOKIE_NAME,
    create_session,
    end_session,
    is_authenticated,
    password_matches,
)
from db import get_db

router = APIRouter(tags=["auth"])


class LoginReq(BaseModel):
    password: str


@router.post("/login")
def login(req: LoginReq, request: Request, response: Response, conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    settings: AppSettings = request.app.state.settings
    if not req.password:
        raise HTTPException(status_code=400, detail="password is required")
    if not password_matches(settings, req.password):
        raise HTTPException(status_code=401, detail="Invalid password")

    old_token = (request.cookies.get(SESSION_COOKIE_NAME) or "").strip()
    if old_token:
        end_session(conn, settings, old_token)
    token = create_session(conn, settings)
    conn.commit()

    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=token,
        max_age=settings.session_max_age_s,
        httponly=True,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        path="/",
    )
    return {"ok": True}


@router.post("/logout")
def logout(request: Request, response: Response, conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    token = (request.cookies.get(SESSION_COOKIE_NAME) or "").strip()
    if token:
        end_session(conn, request.app.state.settings, token)
        conn.commit()
    response.delete_cookie(SESSION_COOKIE_NAME, path="/")
    return {"ok": True}


@router.get("/check-auth")
def check_auth(request: Request, conn: sqlite3.Connection = Depends(get_db)) -> Dict[str, Any]:
    return {"authenticated": is_authenticated(conn, request)}
