import io
import os
import tempfile
from collections.abc import Generator
from fractions import Fraction

_tmp_dir = tempfile.mkdtemp(prefix="geophoto-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{_tmp_dir}/test.db"
os.environ["UPLOAD_DIR"] = os.path.join(_tmp_dir, "uploads")
os.environ["BLOB_ENSURE_BUCKET"] = "false"
os.environ["JWT_SECRET"] = "test-secret"

import pytest
from fastapi.testclient import TestClient
from PIL import Image, TiffImagePlugin

from app.api.dependencies import get_blob_store, principal_from_user
from app.core.errors import BlobNotFound, StorageFault
from app.core.security import hash_password, token_service
from app.database.base import Base
from app.database.engine import SessionLocal, engine
from app.database.session import init_db
from app.models.user import User
from app.services.blob_service import BlobObject
from main import app

GPS_IFD = 0x8825
EXIF_IFD = 0x8769
DATETIME_ORIGINAL = 0x9003


class InMemoryBlobStore:
    """Blob store double with the same surface as BlobService."""

    def __init__(self):
        self.blobs = {}
        self.reads = []
        self.fail_writes = False
        self.fail_reads = False

    def store(self, stream, key, content_type, owner_tag):
        if self.fail_writes:
            raise StorageFault(f"Failed to store blob {key}: disk full")
        self.blobs[key] = (stream.read(), content_type, owner_tag)
        return key

    def open_read(self, key):
        self.reads.append(key)
        if self.fail_reads:
            raise StorageFault(f"Failed to read blob {key}: connection reset")
        if key not in self.blobs:
            raise BlobNotFound(f"Blob not found: {key}")
        data, content_type, _ = self.blobs[key]
        return BlobObject(key=key, content_type=content_type, body=io.BytesIO(data))

    def delete(self, key):
        self.blobs.pop(key, None)

    def data(self, key):
        return self.blobs[key][0]


def _rational(value):
    return TiffImagePlugin.IFDRational(Fraction(str(value)))


def make_image(
    fmt="JPEG",
    gps=None,
    captured_at=None,
    size=(32, 32),
    noise=False,
    **save_kwargs,
):
    """Encode an image, optionally with GPS (lat, lon) and DateTimeOriginal."""
    if noise:
        image = Image.frombytes("RGB", size, os.urandom(size[0] * size[1] * 3))
    else:
        image = Image.new("RGB", size, color=(200, 120, 40))

    exif = Image.Exif()
    if gps is not None:
        lat, lon = gps
        exif[GPS_IFD] = {
            1: "N" if lat >= 0 else "S",
            2: (_rational(abs(lat)), _rational(0), _rational(0)),
            3: "E" if lon >= 0 else "W",
            4: (_rational(abs(lon)), _rational(0), _rational(0)),
        }
    if captured_at is not None:
        exif[EXIF_IFD] = {DATETIME_ORIGINAL: captured_at}

    buf = io.BytesIO()
    if len(exif):
        save_kwargs["exif"] = exif
    image.save(buf, fmt, **save_kwargs)
    return buf.getvalue()


@pytest.fixture()
def image_factory():
    return make_image


@pytest.fixture(autouse=True)
def tables() -> Generator[None, None, None]:
    init_db()
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture()
def client(blob_store) -> Generator[TestClient, None, None]:
    app.dependency_overrides[get_blob_store] = lambda: blob_store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_user(db, username="alice", password="secret123", **kwargs):
    user = User(
        username=username,
        email=kwargs.pop("email", f"{username}@example.com"),
        password_hash=hash_password(password),
        **kwargs,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def user(db):
    return create_user(db)


@pytest.fixture()
def other_user(db):
    return create_user(db, username="bob")


@pytest.fixture()
def principal(user):
    return principal_from_user(user)


@pytest.fixture()
def auth_headers(principal):
    return {"Authorization": f"Bearer {token_service.mint(principal)}"}


@pytest.fixture()
def other_auth_headers(other_user):
    token = token_service.mint(principal_from_user(other_user))
    return {"Authorization": f"Bearer {token}"}
