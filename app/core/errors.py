"""Domain errors raised by the photo services and mapped to HTTP in main.py."""


class PhotoError(Exception):
    status_code = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class PhotoValidationError(PhotoError):
    """Rejected input; nothing was written."""

    status_code = 400


class PhotoNotFound(PhotoError):
    status_code = 404


class BlobNotFound(PhotoError):
    status_code = 404


class StorageFault(PhotoError):
    """The blob store failed to write or read."""

    status_code = 500


class MetadataExtractionFault(PhotoError):
    """Image metadata could not be read. Never leaves the ingestion pipeline."""
