"""Persistence of photo records."""

import uuid
from typing import List, Optional

from sqlalchemy.orm import Session

from app.models.photo import Photo


class PhotoRecordStore:
    def __init__(self, db: Session):
        self.db = db

    def save(self, photo: Photo) -> Photo:
        self.db.add(photo)
        self.db.commit()
        self.db.refresh(photo)
        return photo

    def find_by_id(self, photo_id: uuid.UUID) -> Optional[Photo]:
        return self.db.get(Photo, photo_id)

    def find_by_owner(self, owner_id: uuid.UUID) -> List[Photo]:
        return (
            self.db.query(Photo)
            .filter(Photo.owner_id == owner_id)
            .order_by(Photo.uploaded_at.desc())
            .all()
        )

    def find_by_owner_with_gps(self, owner_id: uuid.UUID) -> List[Photo]:
        return (
            self.db.query(Photo)
            .filter(
                Photo.owner_id == owner_id,
                Photo.latitude.isnot(None),
                Photo.longitude.isnot(None),
            )
            .order_by(Photo.uploaded_at.desc())
            .all()
        )

    def delete_by_id(self, photo_id: uuid.UUID):
        photo = self.db.get(Photo, photo_id)
        if photo is not None:
            self.db.delete(photo)
            self.db.commit()
