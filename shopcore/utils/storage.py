import logging
import shutil
import uuid
from pathlib import Path
from typing import BinaryIO, Optional, Protocol
from urllib.parse import urljoin

from shopcore.config import settings

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_TYPES = {"image/jpeg": "jpg", "image/png": "png", "image/webp": "webp"}


class FileStorage(Protocol):
    def save(self, stream: BinaryIO, content_type: str) -> str: ...

    def url_for(self, ref: Optional[str]) -> Optional[str]: ...

    def delete(self, ref: Optional[str]) -> bool: ...


# Stores product images on local disk and serves them under /uploads
class LocalFileStorage:
    def __init__(self, upload_dir: str = None, base_url: str = None):
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)
        self.base_url = base_url or settings.PUBLIC_BASE_URL

    def save(self, stream: BinaryIO, content_type: str) -> str:
        """Copy an uploaded stream to disk and return its image reference."""
        ext = ALLOWED_IMAGE_TYPES.get(content_type)
        if ext is None:
            raise ValueError(f"Invalid file type: {content_type}")

        self.upload_dir.mkdir(parents=True, exist_ok=True)
        ref = f"{uuid.uuid4()}.{ext}"
        with open(self.upload_dir / ref, "wb") as buffer:
            shutil.copyfileobj(stream, buffer)
        return ref

    def url_for(self, ref: Optional[str]) -> Optional[str]:
        if not ref:
            return None
        return urljoin(self.base_url.rstrip("/") + "/", f"uploads/{ref}")

    def delete(self, ref: Optional[str]) -> bool:
        """Best-effort removal; never raises."""
        if not ref:
            return False
        path = self.upload_dir / Path(ref).name
        try:
            if path.exists():
                path.unlink()
                logger.info("Image %s removed", ref)
                return True
        except OSError as e:
            logger.warning("Could not remove image %s: %s", ref, e)
        return False


# FastAPI dependency; overridden in tests
def get_storage() -> FileStorage:
    return LocalFileStorage()
