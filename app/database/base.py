import uuid
from typing import Any, Optional

from sqlalchemy import Dialect, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql.type_api import TypeEngine
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


class UUIDType(TypeDecorator):
    """Native UUID on PostgreSQL, String(36) on SQLite and the rest.

    Ids are always generated client side with ``uuid.uuid4`` so rows can be
    inserted on any dialect.
    """

    impl = UUID
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine:
        if dialect.name == "postgresql":
            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(String(36))

    def process_bind_param(self, value: Optional[Any], dialect: Dialect) -> Any:
        if value is None:
            return None
        if not isinstance(value, uuid.UUID):
            value = uuid.UUID(str(value))
        if dialect.name == "postgresql":
            return value
        return str(value)

    def process_result_value(self, value: Optional[Any], dialect: Dialect) -> Optional[uuid.UUID]:
        if value is None or isinstance(value, uuid.UUID):
            return value
        return uuid.UUID(value)
