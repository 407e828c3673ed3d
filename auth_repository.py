import sqlite3
from typing import Optional


def insert_session(conn: sqlite3.Connection, token_hash: str, created_at: float, expires_at: float) -> None:
    conn.execute(
        "INSERT INTO sessions (token_hash,created_at,expires_at,last_seen) VALUES (?,?,?,?)",
        (token_hash, created_at, expires_at, created_at),
    )


def find_session(conn: sqlite3.Connection, token_hash: str) -> Optional[sqlite3.Row]:
    return conn.execute(
        "SELECT token_hash,created_at,expires_at,last_seen FROM sessions WHERE token_hash=?",
        (token_hash,),
    ).fetchone()


def touch_session(conn: sqlite3.Connection, token_hash: str, now: float) -> None:
    conn.execute("UPDATE sessions SET last_seen=? WHERE token_hash=?", (now, token_hash))


def delete_session(conn: sqlite3.Connection, token_hash: str) -> None:
    conn.execute("DELETE FROM sessions WHERE token_hash=?", (token_hash,))


def delete_expired_sessions(conn: sqlite3.Connection, now: float) -> int:
    cur = conn.execute("DELETE FROM sessions WHERE expires_at<=?", (now,))
    return int(cur.rowcount or 0)

