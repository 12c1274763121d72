import uuid

from sqlalchemy import Column, Float, ForeignKey, String, Text, func
from sqlalchemy.dialects.postgresql import TIMESTAMP
from sqlalchemy.orm import relationship

from app.database.base import Base, UUIDType


class Photo(Base):
    """Metadata for one uploaded photo. The bytes live in the blob store."""

    __tablename__ = "photos"

    id = Column(UUIDType, primary_key=True, default=uuid.uuid4, index=True)
    owner_id = Column(UUIDType, ForeignKey("users.id"), nullable=False, index=True)
    storage_key = Column(String, nullable=False, unique=True)
    # /api/photos/image/{key}, or /uploads/{name} for pre-blob-store rows
    url = Column(String, nullable=False)
    original_name = Column(String, nullable=True)
    description = Column(Text, nullable=True)
    # Set together or not at all
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    captured_at = Column(TIMESTAMP(timezone=False), nullable=True)
    uploaded_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)

    owner = relationship("User", back_populates="photos")

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None
