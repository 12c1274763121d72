"""Shared FastAPI dependencies for authentication, storage and database access."""

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.core.security import Principal
from app.database.engine import SessionLocal
from app.database.session import get_db
from app.models.user import User
from app.services.blob_service import BlobService, blob_service
from app.services.photo_service import PhotoService
from app.services.photo_store import PhotoRecordStore


def principal_from_user(user: User) -> Principal:
    return Principal(user_id=user.id, username=user.username, role=user.role)


def load_principal(username: str) -> Optional[Principal]:
    """Look up an enabled user by username. Used by the authentication gate."""
    db = SessionLocal()
    try:
        user = db.query(User).filter(User.username == username).first()
        if user is None or not user.is_enabled:
            return None
        return principal_from_user(user)
    finally:
        db.close()


def get_current_principal(request: Request) -> Principal:
    """The principal the authentication gate attached, or 401."""
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return principal


def get_blob_store() -> BlobService:
    return blob_service


def get_photo_service(
    db: Session = Depends(get_db),
    blobs: BlobService = Depends(get_blob_store),
) -> PhotoService:
    return PhotoService(PhotoRecordStore(db), blobs)
