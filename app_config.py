import logging
import os
import secrets
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

APP_DIR = Path(__file__).resolve().parent

INVALID_ITEM_POLICIES = ("abort", "skip")


class ConfigError(ValueError):
    pass


def _env_flag(environ: Mapping[str, str], key: str, default: bool = False) -> bool:
    raw = environ.get(key)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_int(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = (environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer")


def _env_path(environ: Mapping[str, str], key: str, default: Path) -> Path:
    raw = (environ.get(key) or "").strip()
    return Path(raw) if raw else default


@dataclass(frozen=True)
class AppSettings:
    """Runtime settings, built once at startup and kept on ``app.state.settings``.

    Notes
    - password is the single shared login password.
    - session_secret keys the hashes of session tokens stored in SQLite, so
      rotating it logs everybody out.
    - invalid_item_policy decides what the Lua export does with malformed
      items: "abort" fails the whole export, "skip" drops them with a warning.
    """

    password: str
    session_secret: str
    data_dir: Path
    items_path: Path
    upload_dir: Path
    db_path: Path
    session_max_age_s: int = 24 * 60 * 60
    cookie_secure: bool = False
    cookie_samesite: str = "lax"
    max_upload_bytes: int = 5 * 1024 * 1024
    trust_proxy_headers: bool = True
    invalid_item_policy: str = "abort"
    dev_skip_auth: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    @property
    def image_dir(self) -> Path:
        return self.upload_dir / "images"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "AppSettings":
        env = os.environ if environ is None else environ

        password = env.get("PASSWORD") or ""
        if not password:
            raise ConfigError("PASSWORD environment variable is required")

        session_secret = (env.get("SESSION_SECRET") or "").strip()
        if not session_secret:
            session_secret = secrets.token_hex(32)
            logging.warning("SESSION_SECRET not set; generated a random one, sessions will not survive a restart")

        policy = (env.get("EXPORT_INVALID_ITEMS") or "abort").strip().lower()
        if policy not in INVALID_ITEM_POLICIES:
            raise ConfigError(f"EXPORT_INVALID_ITEMS must be one of {', '.join(INVALID_ITEM_POLICIES)}")

        samesite = (env.get("COOKIE_SAMESITE") or "lax").strip().lower()
        if samesite not in ("lax", "strict", "none"):
            raise ConfigError("COOKIE_SAMESITE must be lax, strict or none")

        data_dir = _env_path(env, "DATA_DIR", APP_DIR / "data")
        production = (env.get("ENV") or env.get("NODE_ENV") or "").strip().lower() == "production"

        max_age = _env_int(env, "SESSION_MAX_AGE_S", 24 * 60 * 60)
        if max_age <= 0:
            raise ConfigError("SESSION_MAX_AGE_S must be positive")
        max_upload = _env_int(env, "MAX_UPLOAD_BYTES", 5 * 1024 * 1024)
        if max_upload <= 0:
            raise ConfigError("MAX_UPLOAD_BYTES must be positive")

        return cls(
            password=password,
            session_secret=session_secret,
            data_dir=data_dir,
            items_path=_env_path(env, "ITEMS_PATH", data_dir / "items.json"),
            upload_dir=_env_path(env, "UPLOAD_DIR", APP_DIR / "uploads"),
            db_path=_env_path(env, "DB_PATH", data_dir / "sessions.db"),
            session_max_age_s=max_age,
            cookie_secure=_env_flag(env, "COOKIE_SECURE", default=production),
            cookie_samesite=samesite,
            max_upload_bytes=max_upload,
            trust_proxy_headers=_env_flag(env, "TRUST_PROXY_HEADERS", default=True),
            invalid_item_policy=policy,
            dev_skip_auth=_env_flag(env, "DEV_SKIP_AUTH"),
            host=(env.get("HOST") or "0.0.0.0").strip(),
            port=_env_int(env, "PORT", 3000),
        )
