import re
import time
from pathlib import Path
from typing import BinaryIO, Optional
from urllib.parse import unquote, urlsplit

ALLOWED_IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".gif")
IMAGE_URL_PREFIX = "/uploads/images"
_CHUNK_SIZE = 64 * 1024
_UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


class AssetError(RuntimeError):
    pass


class AssetNotFoundError(AssetError):
    pass


class AssetRejectedError(AssetError):
    def __init__(self, message: str, too_large: bool = False):
        super().__init__(message)
        self.too_large = too_large


def sanitize_filename(original_name: str) -> str:
    name = Path(str(original_name or "").replace("\\", "/")).name
    name = _UNSAFE_FILENAME_CHARS.sub("_", name).strip("._")
    return name or "image"


def filename_from_reference(reference: str) -> str:
    """Last path segment of an asset URL or bare filename."""
    raw = str(reference or "").strip()
    if not raw:
        raise AssetNotFoundError("No image reference provided")
    path = unquote(urlsplit(raw).path or raw)
    filename = path.rstrip("/").split("/")[-1]
    if filename in ("", ".", "..") or "\\" in filename:
        raise AssetNotFoundError(f"Invalid image reference: {reference}")
    return filename


class AssetStore:
    """Uploaded item images under ``<upload_dir>/images``, served from ``/uploads/images``."""

    def __init__(self, image_dir: Path, max_bytes: int = 5 * 1024 * 1024):
        self.image_dir = image_dir
        self.max_bytes = max_bytes

    def public_path(self, filename: str) -> str:
        return f"{IMAGE_URL_PREFIX}/{filename}"

    def path_for(self, reference: str) -> Path:
        return self.image_dir / filename_from_reference(reference)

    def save_image(self, original_name: str, stream: BinaryIO, now_ms: Optional[int] = None) -> str:
        """Store an uploaded image and return its stored filename."""
        if not str(original_name or "").lower().endswith(ALLOWED_IMAGE_EXTENSIONS):
            raise AssetRejectedError("Only image files are allowed!")

        stamp = int(time.time() * 1000) if now_ms is None else int(now_ms)
        filename = f"{stamp}-{sanitize_filename(original_name)}"
        self.image_dir.mkdir(parents=True, exist_ok=True)
        target = self.image_dir / filename
        partial = target.with_name(target.name + ".part")

        written = 0
        try:
            with partial.open("wb") as handle:
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise AssetRejectedError(
                            f"File too large (limit {self.max_bytes} bytes)",
                            too_large=True,
                        )
                    handle.write(chunk)
            partial.replace(target)
        finally:
            if partial.exists():
                partial.unlink()
        return filename

    def delete_asset(self, reference: str) -> None:
        path = self.path_for(reference)
        if not path.is_file():
            raise AssetNotFoundError(f"Image file not found: {path.name}")
        try:
            path.unlink()
        except FileNotFoundError:
            raise AssetNotFoundError(f"Image file not found: {path.name}")
        except OSError as exc:
            raise AssetError(f"Failed to delete image {path.name}: {exc}") from exc
