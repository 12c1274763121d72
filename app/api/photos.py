"""Photo upload, listing, serving, relocation and deletion."""

import logging
import uuid
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel

from app.api.dependencies import get_current_principal, get_photo_service
from app.core.security import Principal
from app.services.blob_service import BlobObject
from app.services.photo_service import PhotoService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/photos", tags=["photos"])

CHUNK_SIZE = 64 * 1024


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class PhotoResponse(BaseModel):
    id: uuid.UUID
    storage_key: str
    url: str
    original_name: str | None = None
    description: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    captured_at: datetime | None = None
    uploaded_at: datetime

    class Config:
        from_attributes = True


class LocationUpdateRequest(BaseModel):
    latitude: float | None = None
    longitude: float | None = None


def _iter_blob(blob: BlobObject):
    with blob:
        while True:
            chunk = blob.body.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@router.get("/image/{storage_key}")
def serve_image(
    storage_key: str,
    photos: PhotoService = Depends(get_photo_service),
):
    """Stream a stored image. Public, so map markers can use plain <img> tags."""
    blob = photos.serve(storage_key)
    return StreamingResponse(
        _iter_blob(blob),
        media_type=blob.content_type,
        headers={"Content-Disposition": f'inline; filename="{storage_key}"'},
    )


@router.get("/with-gps", response_model=List[PhotoResponse])
def list_photos_with_gps(
    principal: Principal = Depends(get_current_principal),
    photos: PhotoService = Depends(get_photo_service),
):
    logger.info("Fetching photos with GPS for user %s", principal.username)
    return photos.list_with_gps(principal.user_id)


@router.get("", response_model=List[PhotoResponse])
def list_photos(
    principal: Principal = Depends(get_current_principal),
    photos: PhotoService = Depends(get_photo_service),
):
    return photos.list(principal.user_id)


@router.post("/upload", response_model=PhotoResponse, status_code=status.HTTP_201_CREATED)
def upload_photo(
    file: UploadFile = File(...),
    description: str | None = Form(None),
    principal: Principal = Depends(get_current_principal),
    photos: PhotoService = Depends(get_photo_service),
):
    """Store an image and pull GPS and capture time from its EXIF data."""
    return photos.upload(
        file.file,
        file.content_type,
        file.filename,
        description,
        principal,
    )


@router.get("/{photo_id}", response_model=PhotoResponse)
def get_photo(
    photo_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    photos: PhotoService = Depends(get_photo_service),
):
    return photos.get(photo_id, principal.user_id)


@router.put("/{photo_id}/location", response_model=PhotoResponse)
def update_photo_location(
    photo_id: uuid.UUID,
    body: LocationUpdateRequest,
    principal: Principal = Depends(get_current_principal),
    photos: PhotoService = Depends(get_photo_service),
):
    """Set coordinates by hand, typically for photos uploaded without GPS."""
    return photos.update_location(photo_id, body.latitude, body.longitude, principal.user_id)


@router.delete("/{photo_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_photo(
    photo_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    photos: PhotoService = Depends(get_photo_service),
):
    photos.delete(photo_id, principal.user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
