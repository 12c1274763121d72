"""Application configuration loaded from environment variables."""

from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str

    CORS_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    API_PREFIX: str = "/api"

    # Bearer tokens
    JWT_SECRET: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRATION_SECONDS: int = 86400

    # S3-compatible blob storage (MinIO in dev)
    BLOB_STORAGE_BUCKET: str = "geophoto-images"
    BLOB_STORAGE_ENDPOINT: str = ""
    BLOB_STORAGE_ACCESS_KEY: str = ""
    BLOB_STORAGE_SECRET_KEY: str = ""
    BLOB_STORAGE_REGION: str = "us-east-1"
    BLOB_ENSURE_BUCKET: bool = True
    BLOB_SPOOL_MAX_BYTES: int = 4 * 1024 * 1024

    # Pre-blob-storage uploads, still served and deleted from disk
    UPLOAD_DIR: str = "uploads"

    # Paths the authentication gate lets through without a token
    AUTH_PATH_PREFIX: str = "/api/auth/"
    STATIC_PATH_PREFIX: str = "/uploads/"
    IMAGE_PATH_PREFIX: str = "/api/photos/image/"

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


settings = Settings()
