"""Image hosting on Cloudinary."""

import base64
import logging
import os
from typing import Dict, Optional, Tuple

from fastapi import UploadFile

from errors import UpstreamError

logger = logging.getLogger(__name__)

CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")
CLOUDINARY_FOLDER = os.getenv("CLOUDINARY_FOLDER", "adminhub")

ImageFile = Tuple[bytes, str]


class MediaStore:
    def upload(self, data: bytes, content_type: str) -> Dict[str, str]:
        raise NotImplementedError

    def delete(self, public_id: str) -> None:
        raise NotImplementedError


class CloudinaryMedia(MediaStore):
    def __init__(self, cloud_name=None, api_key=None, api_secret=None, folder=CLOUDINARY_FOLDER):
        self.cloud_name = cloud_name or CLOUDINARY_CLOUD_NAME
        self.api_key = api_key or CLOUDINARY_API_KEY
        self.api_secret = api_secret or CLOUDINARY_API_SECRET
        self.folder = folder
        self._configured = False

    def _configure(self):
        if not (self.cloud_name and self.api_key and self.api_secret):
            raise UpstreamError("Media store not configured")
        if not self._configured:
            import cloudinary
            cloudinary.config(
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
                secure=True,
            )
            self._configured = True

    def upload(self, data: bytes, content_type: str) -> Dict[str, str]:
        self._configure()
        import cloudinary.uploader
        data_uri = f"data:{content_type};base64,{base64.b64encode(data).decode()}"
        try:
            result = cloudinary.uploader.upload(data_uri, folder=self.folder)
        except Exception as e:
            logger.warning("image upload failed: %s", e)
            raise UpstreamError(f"Failed to upload image: {str(e)[:100]}") from e
        return {"url": result["secure_url"], "public_id": result["public_id"]}

    def delete(self, public_id: str) -> None:
        self._configure()
        import cloudinary.uploader
        try:
            cloudinary.uploader.destroy(public_id)
        except Exception as e:
            logger.warning("image delete failed for %s: %s", public_id, e)
            raise UpstreamError(f"Failed to delete image: {str(e)[:100]}") from e


_media: Optional[MediaStore] = None


def get_media() -> MediaStore:
    global _media
    if _media is None:
        _media = CloudinaryMedia()
    return _media


def read_upload(file: Optional[UploadFile]) -> Optional[ImageFile]:
    """Return (bytes, content type) for a submitted file, or None when the field was left empty."""
    if file is None or not file.filename:
        return None
    data = file.file.read()
    if not data:
        return None
    return data, file.content_type or "application/octet-stream"
