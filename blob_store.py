"""
Media storage.

``BlobStore`` is the contract the endpoints depend on; ``LocalBlobStore``
keeps files on disk under ``upload_dir`` and serves them from ``/static``.
"""

import logging
import os
import shutil
from typing import BinaryIO, Optional

from bson import ObjectId
from fastapi import Request, UploadFile
from pydantic import BaseModel

from errors import BadRequest, Internal

logger = logging.getLogger(__name__)

IMAGE_FOLDER = "images"
VIDEO_FOLDER = "videos"


class StoredBlob(BaseModel):
    url: str
    public_id: str
    duration: Optional[float] = None


class BlobStore:
    def upload(self, fileobj: BinaryIO, filename: str, folder: str) -> Optional[StoredBlob]:
        """Store the file; returns None when the store could not keep it."""
        raise NotImplementedError

    def delete(self, url: str) -> bool:
        raise NotImplementedError


class LocalBlobStore(BlobStore):
    def __init__(self, upload_dir: str, base_url: str = ""):
        self.upload_dir = upload_dir
        self.base_url = base_url.rstrip("/")

    def _path_for(self, url: str) -> Optional[str]:
        marker = "/static/"
        if not url or marker not in url:
            return None
        relative = url.split(marker, 1)[1]
        path = os.path.normpath(os.path.join(self.upload_dir, relative))
        if not path.startswith(os.path.normpath(self.upload_dir) + os.sep):
            return None
        return path

    def upload(self, fileobj, filename, folder):
        ext = os.path.splitext(filename or "")[1]
        public_id = f"{ObjectId()}{ext}"
        directory = os.path.join(self.upload_dir, folder)
        try:
            os.makedirs(directory, exist_ok=True)
            with open(os.path.join(directory, public_id), "wb") as out_file:
                shutil.copyfileobj(fileobj, out_file)
        except OSError:
            logger.exception("Failed to store %s in %s", filename, directory)
            return None
        return StoredBlob(url=f"{self.base_url}/static/{folder}/{public_id}", public_id=f"{folder}/{public_id}")

    def delete(self, url):
        path = self._path_for(url)
        if path is None:
            return False
        try:
            os.remove(path)
        except OSError as e:
            logger.warning("Could not delete blob %s: %s", url, e)
            return False
        return True


def check_media_type(upload: Optional[UploadFile], kind: str, label: str) -> None:
    if upload is None or not upload.filename:
        raise BadRequest(f"{label} is required")
    if upload.content_type is None or not upload.content_type.startswith(f"{kind}/"):
        raise BadRequest(f"{label} must be a {kind} file")


def store_upload(blob_store: BlobStore, upload: UploadFile, folder: str, label: str) -> StoredBlob:
    """Push an upload to the blob store. The temporary upload file is closed either way."""
    try:
        stored = blob_store.upload(upload.file, upload.filename, folder)
    finally:
        upload.file.close()
    if stored is None:
        raise Internal(f"Failed to upload {label.lower()}")
    return stored


def discard_blob(blob_store: BlobStore, url: Optional[str]) -> None:
    """Best-effort removal of a blob that is no longer referenced."""
    if not url:
        return
    try:
        if not blob_store.delete(url):
            logger.warning("Blob %s was not deleted", url)
    except Exception:
        logger.exception("Error deleting blob %s", url)


def get_blob_store(request: Request) -> BlobStore:
    return request.app.state.blob_store
