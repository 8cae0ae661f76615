"""
Object storage for uploaded images.

Objects are addressed by path and kept in the "storageobject" collection.
A user may only write under their own prefixes:

- ``products/{uid}/{millis}_{rand}.jpg`` for listing photos
- ``profiles/{uid}_{millis}.jpg`` for profile pictures

Images arrive either as already-hosted http(s) URLs, which are kept as-is,
or as base64 ``data:`` URLs, which are decoded and stored.
"""

import base64
import binascii
import logging
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import List, Optional, Tuple

from fastapi import HTTPException
from pymongo.errors import AutoReconnect, ConnectionFailure, PyMongoError

import config
from database import create_document, get_db, utcnow
from errors import PermissionDenied, StorageError, ValidationFailed, categorize
from schemas import StorageObject

logger = logging.getLogger(__name__)

COLLECTION = "storageobject"


def is_remote_url(value: str) -> bool:
    return value.startswith("http://") or value.startswith("https://")


def download_url(path: str) -> str:
    return f"{config.PUBLIC_BASE_URL}/api/storage/{path}"


def product_image_path(user_id: str) -> str:
    millis = int(time.time() * 1000)
    return f"products/{user_id}/{millis}_{uuid.uuid4().hex[:6]}.jpg"


def profile_image_path(user_id: str) -> str:
    return f"profiles/{user_id}_{int(time.time() * 1000)}.jpg"


def can_write(path: str, user_id: str) -> bool:
    return path.startswith(f"products/{user_id}/") or path.startswith(f"profiles/{user_id}_")


def decode_data_url(data_url: str) -> Tuple[bytes, str]:
    """Split ``data:<type>;base64,<payload>`` into raw bytes and content type."""
    try:
        header, payload = data_url.split(",", 1)
    except ValueError:
        raise ValidationFailed("Invalid image data")
    if not header.startswith("data:") or not header.endswith(";base64"):
        raise ValidationFailed("Invalid image data")
    content_type = header[len("data:"):-len(";base64")] or "application/octet-stream"
    if not content_type.startswith("image/"):
        raise ValidationFailed("Only image uploads are allowed")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationFailed("Invalid image data")
    return data, content_type


def upload_bytes(path: str, data: bytes, content_type: str, user_id: str) -> str:
    if not can_write(path, user_id):
        raise PermissionDenied("Storage permission denied.")
    if len(data) > config.MAX_IMAGE_BYTES:
        raise ValidationFailed("Image is too large")

    logger.info("Uploading image: %s", path)
    db = get_db()
    obj = StorageObject(path=path, content_type=content_type, size=len(data), owner_id=user_id, data=data)
    try:
        existing = db[COLLECTION].find_one({"path": path}, {"_id": 1})
        if existing:
            db[COLLECTION].update_one({"_id": existing["_id"]}, {"$set": {**obj.model_dump(), "updated_at": utcnow()}})
        else:
            create_document(COLLECTION, obj)
    except (ConnectionFailure, AutoReconnect) as e:
        logger.error("Upload of %s failed, database unreachable: %s", path, e)
        raise categorize(e) from e
    except PyMongoError as e:
        logger.error("Upload of %s failed: %s", path, e)
        raise StorageError("Unknown storage error. Check your internet connection.") from e
    url = download_url(path)
    logger.info("Image uploaded successfully: %s", url)
    return url


def upload_image(image: str, user_id: str, path: Optional[str] = None) -> str:
    """Store one image and return its download URL; hosted URLs pass through."""
    if is_remote_url(image):
        return image
    if not image.startswith("data:"):
        raise ValidationFailed("Unsupported image format")
    data, content_type = decode_data_url(image)
    return upload_bytes(path or product_image_path(user_id), data, content_type, user_id)


def upload_images(images: List[str], user_id: str) -> List[str]:
    """
    Upload every image concurrently and wait for all of them.

    The first failure propagates and aborts the whole batch. Objects that
    did make it into storage before the failure are left in place.
    """
    if not images:
        return []
    with ThreadPoolExecutor(max_workers=max(1, min(config.UPLOAD_WORKERS, len(images)))) as pool:
        futures = [pool.submit(upload_image, image, user_id) for image in images]
        return [f.result() for f in futures]


def download(path: str) -> Tuple[bytes, str]:
    obj = get_db()[COLLECTION].find_one({"path": path})
    if not obj:
        raise HTTPException(status_code=404, detail="Object not found")
    return bytes(obj["data"]), obj.get("content_type", "application/octet-stream")

