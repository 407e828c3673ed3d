import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import FileResponse, RedirectResponse
from fastapi.staticfiles import StaticFiles

from app_config import APP_DIR, AppSettings
from asset_store import AssetStore
from assets_router import router as assets_router
from auth_router import router as auth_router
from auth_service import is_authenticated, purge_expired_sessions
from db import connect_db
from db_migrations import apply_migrations
from item_store import ItemStore
from items_router import router as items_router

STATIC_DIR = APP_DIR / "static"


def create_app(settings: Optional[AppSettings] = None) -> FastAPI:
    """FastAPI app factory; settings default to the process environment."""
    settings = settings or AppSettings.from_env()

    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.image_dir.mkdir(parents=True, exist_ok=True)

    app = FastAPI(title="Item Catalog")
    app.state.settings = settings
    app.state.asset_store = AssetStore(settings.image_dir, max_bytes=settings.max_upload_bytes)
    app.state.item_store = ItemStore(settings.items_path, assets=app.state.asset_store)

    app.mount("/static", StaticFiles(directory=str(STATIC_DIR)), name="static")
    app.mount("/uploads", StaticFiles(directory=str(settings.upload_dir)), name="uploads")
    app.include_router(auth_router)
    app.include_router(items_router)
    app.include_router(assets_router)

    @app.on_event("startup")
    def _startup():
        conn = connect_db(settings.db_path)
        try:
            apply_migrations(conn)
            purged = purge_expired_sessions(conn)
            conn.commit()
        finally:
            conn.close()
        if purged:
            logging.info("Purged %d expired sessions", purged)

    @app.get("/")
    def root(request: Request):
        conn = connect_db(settings.db_path)
        try:
            if not is_authenticated(conn, request):
                return RedirectResponse(url="/login", status_code=302)
        finally:
            conn.close()
        return FileResponse(str(STATIC_DIR / "index.html"))

    @app.get("/login")
    def login_page(request: Request):
        conn = connect_db(settings.db_path)
        try:
            if is_authenticated(conn, request):
                return RedirectResponse(url="/", status_code=302)
        finally:
            conn.close()
        return FileResponse(str(STATIC_DIR / "login.html"))

    @app.get("/api/health")
    def api_health() -> Dict[str, Any]:
        return {
            "ok": True,
            "service": "item-catalog",
        }

    return app


def main() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    settings = AppSettings.from_env()
    app = create_app(settings)
    print(f"Server running at http://localhost:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        proxy_headers=settings.trust_proxy_headers,
        forwarded_allow_ips="*",
    )


if __name__ == "__main__":
    main()
