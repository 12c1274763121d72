"""SQLAlchemy models for the photo service."""

from .user import User
from .photo import Photo

__all__ = [
    "User",
    "Photo",
]
