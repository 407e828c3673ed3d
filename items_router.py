"""
Item catalog routes:
  /items.json             (GET)     current collection
  /save-items             (POST)    replace the whole collection
  /items/{index}          (DELETE)  delete by position
  /items/by-name/{name}   (DELETE)  delete by item name
  /generate-lua           (GET)     Lua export as a download
"""

import logging
import sqlite3
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel

from auth_service import require_login
from db import get_db
from host_context import get_base_url
from item_schema import ItemValidationError
from item_store import ItemStore, ItemStoreVersionConflictError, PersistenceError
from lua_emitter import LUA_CONTENT_TYPE, LUA_FILENAME, emit_items_lua

router = APIRouter(tags=["items"])

VERSION_HEADER = "X-Items-Version"


class SaveItemsReq(BaseModel):
    items: List[Any]
    version: Optional[str] = None


def get_item_store(request: Request) -> ItemStore:
    return request.app.state.item_store


def _conflict(exc: ItemStoreVersionConflictError) -> HTTPException:
    return HTTPException(
        status_code=409,
        detail={"message": str(exc), "current_version": exc.current_version},
    )


@router.get("/items.json")
def list_items(
    request: Request,
    response: Response,
    conn: sqlite3.Connection = Depends(get_db),
    store: ItemStore = Depends(get_item_store),
) -> List[Any]:
    require_login(conn, request)
    try:
        snapshot = store.snapshot()
    except PersistenceError as exc:
        logging.exception("Failed to load items")
        raise HTTPException(status_code=500, detail="Failed to load items") from exc
    response.headers[VERSION_HEADER] = snapshot["version"]
    return snapshot["items"]


@router.post("/save-items")
def save_items(
    req: SaveItemsReq,
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    store: ItemStore = Depends(get_item_store),
) -> Dict[str, Any]:
    require_login(conn, request)
    try:
        version = store.replace_all(req.items, expected_version=req.version)
    except ItemValidationError as exc:
        raise HTTPException(status_code=400, detail={"message": "Invalid items", "errors": exc.errors}) from exc
    except ItemStoreVersionConflictError as exc:
        raise _conflict(exc) from exc
    except PersistenceError as exc:
        logging.exception("Failed to save items")
        raise HTTPException(status_code=500, detail="Failed to save items") from exc
    return {"ok": True, "version": version, "count": len(req.items)}


@router.delete("/items/by-name/{name}")
def delete_item_by_name(
    name: str,
    request: Request,
    version: Optional[str] = Query(default=None),
    conn: sqlite3.Connection = Depends(get_db),
    store: ItemStore = Depends(get_item_store),
) -> Dict[str, Any]:
    require_login(conn, request)
    try:
        removed, new_version = store.delete_named(name, expected_version=version)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=f"Item not found: {name}") from exc
    except ItemStoreVersionConflictError as exc:
        raise _conflict(exc) from exc
    except PersistenceError as exc:
        logging.exception("Failed to delete item %s", name)
        raise HTTPException(status_code=500, detail="Failed to delete item") from exc
    return {"ok": True, "removed": removed.get("name"), "version": new_version}


@router.delete("/items/{index}")
def delete_item_at(
    index: int,
    request: Request,
    version: Optional[str] = Query(default=None),
    conn: sqlite3.Connection = Depends(get_db),
    store: ItemStore = Depends(get_item_store),
) -> Dict[str, Any]:
    require_login(conn, request)
    try:
        removed, new_version = store.delete_at(index, expected_version=version)
    except IndexError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except ItemStoreVersionConflictError as exc:
        raise _conflict(exc) from exc
    except PersistenceError as exc:
        logging.exception("Failed to delete item at %s", index)
        raise HTTPException(status_code=500, detail="Failed to delete item") from exc
    name = removed.get("name") if isinstance(removed, dict) else None
    return {"ok": True, "removed": name, "version": new_version}


@router.get("/generate-lua")
def generate_lua(
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    store: ItemStore = Depends(get_item_store),
) -> PlainTextResponse:
    require_login(conn, request)
    settings = request.app.state.settings
    try:
        lua_text = emit_items_lua(
            store.list_items(),
            get_base_url(request),
            on_invalid=settings.invalid_item_policy,
        )
    except ItemValidationError as exc:
        raise HTTPException(status_code=422, detail={"message": "Catalog has invalid items", "errors": exc.errors}) from exc
    except PersistenceError as exc:
        logging.exception("Error generating Lua file")
        raise HTTPException(status_code=500, detail="Failed to generate Lua file") from exc

    return PlainTextResponse(
        lua_text,
        media_type=LUA_CONTENT_TYPE,
        headers={"Content-Disposition": f"attachment; filename={LUA_FILENAME}"},
    )
