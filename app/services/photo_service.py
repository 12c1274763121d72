"""Photo ingestion pipeline and record lifecycle.

Upload order: validate, write the blob, read it back twice for GPS and
capture time, then persist the record. The blob write is the only step
whose failure aborts an upload; metadata is best effort.
"""

import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional, TypeVar

from app.core.config import settings
from app.core.errors import (
    BlobNotFound,
    MetadataExtractionFault,
    PhotoNotFound,
    PhotoValidationError,
    StorageFault,
)
from app.core.security import Principal
from app.models.photo import Photo
from app.services.blob_service import BlobObject, BlobService
from app.services.metadata_extractor import extract_captured_at, extract_gps
from app.services.photo_store import PhotoRecordStore

logger = logging.getLogger(__name__)

DEFAULT_SERVE_CONTENT_TYPE = "image/jpeg"

T = TypeVar("T")


def file_extension(filename: Optional[str]) -> str:
    """Everything from the last dot of the base name on, or '' when there is none."""
    if not filename:
        return ""
    # Client-side directories must not leak into the storage key
    basename = Path(filename.replace("\\", "/")).name
    dot = basename.rfind(".")
    if dot == -1:
        return ""
    return basename[dot:]


def new_storage_key(filename: Optional[str]) -> str:
    return f"{uuid.uuid4()}{file_extension(filename)}"


def image_url(storage_key: str) -> str:
    return f"{settings.IMAGE_PATH_PREFIX}{storage_key}"


def _seekable_copy(stream: BinaryIO) -> BinaryIO:
    seekable = getattr(stream, "seekable", None)
    if seekable is not None and seekable():
        return stream
    spool = tempfile.SpooledTemporaryFile(max_size=settings.BLOB_SPOOL_MAX_BYTES)
    shutil.copyfileobj(stream, spool)
    spool.seek(0)
    return spool


def _is_empty(stream: BinaryIO) -> bool:
    start = stream.tell()
    empty = stream.read(1) == b""
    stream.seek(start)
    return empty


class PhotoService:
    def __init__(
        self,
        records: PhotoRecordStore,
        blobs: BlobService,
        upload_dir: Optional[str] = None,
    ):
        self.records = records
        self.blobs = blobs
        self.upload_dir = Path(upload_dir or settings.UPLOAD_DIR)

    # ------------------------------------------------------------------
    # Upload
    # ------------------------------------------------------------------

    def upload(
        self,
        stream: BinaryIO,
        content_type: Optional[str],
        original_name: Optional[str],
        description: Optional[str],
        principal: Principal,
    ) -> Photo:
        stream = _seekable_copy(stream)
        if _is_empty(stream):
            raise PhotoValidationError("File is empty")
        if not content_type or not content_type.startswith("image/"):
            raise PhotoValidationError(
                f"Only image files are accepted, got {content_type or 'no content type'}"
            )

        storage_key = new_storage_key(original_name)
        logger.info(
            "Uploading %s as %s for user %s", original_name, storage_key, principal.username,
        )
        self.blobs.store(stream, storage_key, content_type, str(principal.user_id))

        location = self._read_back(storage_key, original_name, extract_gps)
        captured_at = self._read_back(storage_key, original_name, extract_captured_at)

        photo = Photo(
            owner_id=principal.user_id,
            storage_key=storage_key,
            url=image_url(storage_key),
            original_name=original_name,
            description=description,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            captured_at=captured_at,
        )
        photo = self.records.save(photo)

        if photo.has_location:
            logger.info("Photo %s saved with GPS (%s, %s)", photo.id, photo.latitude, photo.longitude)
        else:
            logger.info("Photo %s saved without GPS", photo.id)
        return photo

    def _read_back(
        self,
        storage_key: str,
        original_name: Optional[str],
        extractor: Callable[[BinaryIO, str], Optional[T]],
    ) -> Optional[T]:
        """Run one extractor over a fresh stream from the blob store."""
        try:
            with self.blobs.open_read(storage_key) as blob:
                return extractor(blob.body, original_name or storage_key)
        except (MetadataExtractionFault, StorageFault, BlobNotFound, OSError) as e:
            logger.warning("Metadata extraction failed for %s: %s", original_name or storage_key, e)
            return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def list(self, owner_id: uuid.UUID) -> List[Photo]:
        return self.records.find_by_owner(owner_id)

    def list_with_gps(self, owner_id: uuid.UUID) -> List[Photo]:
        return self.records.find_by_owner_with_gps(owner_id)

    def get(self, photo_id: uuid.UUID, owner_id: Optional[uuid.UUID] = None) -> Photo:
        photo = self.records.find_by_id(photo_id)
        # Another user's photo is indistinguishable from a missing one
        if photo is None or (owner_id is not None and photo.owner_id != owner_id):
            raise PhotoNotFound(f"Photo not found with id: {photo_id}")
        return photo

    def serve(self, storage_key: str) -> BlobObject:
        blob = self.blobs.open_read(storage_key)
        if not blob.content_type or not blob.content_type.startswith("image/"):
            blob.content_type = DEFAULT_SERVE_CONTENT_TYPE
        return blob

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_location(
        self,
        photo_id: uuid.UUID,
        latitude: Optional[float],
        longitude: Optional[float],
        owner_id: Optional[uuid.UUID] = None,
    ) -> Photo:
        if latitude is None or longitude is None:
            raise PhotoValidationError("latitude and longitude are required together")
        photo = self.get(photo_id, owner_id)
        photo.latitude = latitude
        photo.longitude = longitude
        photo = self.records.save(photo)
        logger.info("Updated location for photo %s: (%s, %s)", photo_id, latitude, longitude)
        return photo

    def delete(self, photo_id: uuid.UUID, owner_id: Optional[uuid.UUID] = None):
        """Remove the blob (or legacy file), then the record."""
        photo = self.get(photo_id, owner_id)
        url = photo.url or ""

        if url.startswith(settings.IMAGE_PATH_PREFIX):
            self.blobs.delete(url[len(settings.IMAGE_PATH_PREFIX):])
        elif url.startswith(settings.STATIC_PATH_PREFIX):
            self._delete_legacy_file(url[len(settings.STATIC_PATH_PREFIX):])
        else:
            logger.warning("Photo %s has unrecognised url %s, no file removed", photo_id, url)

        self.records.delete_by_id(photo.id)
        logger.info("Deleted photo %s", photo_id)

    def _delete_legacy_file(self, filename: str):
        root = self.upload_dir.resolve()
        path = (root / filename).resolve()
        if root not in path.parents:
            logger.warning("Refusing to delete legacy file outside %s: %s", root, filename)
            return
        try:
            if path.exists():
                path.unlink()
                logger.info("Deleted legacy file from disk: %s", path)
        except OSError as e:
            logger.warning("Failed to delete legacy file %s: %s", path, e)

