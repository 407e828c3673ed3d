"""
Item image routes:
  /upload-image  (POST, multipart field "image")
  /delete-image  (DELETE, {"imageUrl": ...})
"""

import logging
import sqlite3
from typing import Any, Dict

from fastapi import APIRouter, Depends, File, HTTPException, Request, UploadFile
from pydantic import BaseModel

from asset_store import AssetError, AssetNotFoundError, AssetRejectedError, AssetStore
from auth_service import require_login
from db import get_db
from host_context import get_base_url

router = APIRouter(tags=["assets"])


class DeleteImageReq(BaseModel):
    imageUrl: str = ""


def get_asset_store(request: Request) -> AssetStore:
    return request.app.state.asset_store


@router.post("/upload-image")
def upload_image(
    request: Request,
    image: UploadFile = File(...),
    conn: sqlite3.Connection = Depends(get_db),
    assets: AssetStore = Depends(get_asset_store),
) -> Dict[str, Any]:
    require_login(conn, request)
    if not image.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    try:
        filename = assets.save_image(image.filename, image.file)
    except AssetRejectedError as exc:
        raise HTTPException(status_code=413 if exc.too_large else 400, detail=str(exc)) from exc
    except OSError as exc:
        logging.exception("Failed to store uploaded image %s", image.filename)
        raise HTTPException(status_code=500, detail="Failed to store image") from exc
    finally:
        image.file.close()

    return {
        "url": f"{get_base_url(request)}{assets.public_path(filename)}",
        "filename": filename,
    }


@router.delete("/delete-image")
def delete_image(
    req: DeleteImageReq,
    request: Request,
    conn: sqlite3.Connection = Depends(get_db),
    assets: AssetStore = Depends(get_asset_store),
) -> Dict[str, Any]:
    require_login(conn, request)
    if not req.imageUrl.strip():
        raise HTTPException(status_code=400, detail="No image URL provided")
    try:
        assets.delete_asset(req.imageUrl)
    except AssetNotFoundError as exc:
        raise HTTPException(status_code=404, detail="Image file not found") from exc
    except AssetError as exc:
        logging.exception("Error deleting image %s", req.imageUrl)
        raise HTTPException(status_code=500, detail="Failed to delete image") from exc
    return {"ok": True}
