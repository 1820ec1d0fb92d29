"""
Image uploads to the Cloudinary image store.
"""

from __future__ import annotations

import time
from pathlib import PurePath
from typing import Optional, Protocol

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

from src.catalog.config import MediaConfig
from src.catalog.errors import MediaUploadError
from src.catalog.logging_utils import configure_logger

logger = configure_logger(__name__)

ALLOWED_CONTENT_TYPES = frozenset({"image/jpeg", "image/jpg", "image/png", "image/webp"})


class ImageStore(Protocol):
    def upload(self, data: bytes, filename: str, content_type: Optional[str]) -> str:
        ...


def validate_image(content_type: Optional[str]) -> str:
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise MediaUploadError("Invalid file type. Only JPG, PNG, and WEBP images are allowed.")
    return content_type.split("/", 1)[1]


class CloudinaryImageStore:
    def __init__(self, config: MediaConfig) -> None:
        self._folder = config.folder
        cloudinary.config(
            cloud_name=config.cloud_name,
            api_key=config.api_key,
            api_secret=config.api_secret,
            secure=True,
        )

    def upload(self, data: bytes, filename: str, content_type: Optional[str]) -> str:
        """Upload ``data`` and return the public HTTPS URL of the stored image."""
        image_format = validate_image(content_type)
        public_id = f"{int(time.time() * 1000)}-{PurePath(filename or 'image').stem}"

        try:
            result = cloudinary.uploader.upload(
                data,
                folder=self._folder,
                public_id=public_id,
                format=image_format,
                resource_type="image",
            )
        except CloudinaryError as exc:
            logger.error(
                "Image upload failed",
                extra={"event": "media.upload_failed", "error_type": type(exc).__name__},
            )
            raise MediaUploadError(f"Image upload failed: {exc}") from exc

        url = result.get("secure_url") or result.get("url")
        logger.info("Image uploaded", extra={"event": "media.uploaded", "path": url})
        return url
