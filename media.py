"""
Local image storage for uploaded resource images.

Files are written to UPLOAD_DIR and referenced from records by relative URL
(/assets/uploads/<name>).
"""
import logging
import os
import re
import secrets
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from config import ALLOWED_IMAGE_EXTENSIONS, MAX_UPLOAD_BYTES, UPLOAD_DIR, UPLOAD_URL_PREFIX
from errors import StorageError, ValidationError

logger = logging.getLogger(__name__)

_IMAGE_TYPES = re.compile("|".join(ALLOWED_IMAGE_EXTENSIONS))


@dataclass
class ImageUpload:
    filename: str
    content_type: str
    body: bytes


class MediaStore:
    def __init__(self, upload_dir: Path, url_prefix: str = UPLOAD_URL_PREFIX, max_bytes: int = MAX_UPLOAD_BYTES):
        self.upload_dir = Path(upload_dir)
        self.url_prefix = url_prefix.rstrip("/")
        self.max_bytes = max_bytes

    def save(self, upload: ImageUpload) -> str:
        suffix = os.path.splitext(upload.filename or "")[1].lower()
        if suffix.lstrip(".") not in ALLOWED_IMAGE_EXTENSIONS or not _IMAGE_TYPES.search(upload.content_type or ""):
            raise ValidationError("Only jpeg, png, gif, webp or svg images are allowed", ["image"])
        if len(upload.body) > self.max_bytes:
            raise ValidationError(f"Image exceeds {self.max_bytes // (1024 * 1024)} MB", ["image"])

        fname = f"{datetime.now(timezone.utc).strftime('%Y%m%d%H%M%S%f')}-{secrets.randbelow(10000)}{suffix}"
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            with open(self.upload_dir / fname, "wb") as f:
                f.write(upload.body)
        except OSError as e:
            raise StorageError(f"Could not store image: {e.strerror or e}") from e
        logger.info(f"Stored upload {upload.filename} as {fname}")
        return f"{self.url_prefix}/{fname}"

    def path_for(self, url: str) -> Optional[Path]:
        if not url or not url.startswith(self.url_prefix + "/"):
            return None
        name = os.path.basename(url)
        return self.upload_dir / name if name else None

    def release(self, url: str) -> None:
        """Delete the file behind `url`. A file that is already gone is fine."""
        path = self.path_for(url)
        if path is None:
            return
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            raise StorageError(f"Could not delete image: {e.strerror or e}") from e
        logger.info(f"Released upload {path.name}")


media = MediaStore(UPLOAD_DIR)


def get_media() -> MediaStore:
    return media
