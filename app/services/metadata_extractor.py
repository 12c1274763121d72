"""EXIF metadata extraction: GPS position and capture time.

Each function consumes the stream it is given. Callers that need both
values open two streams.
"""

import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, BinaryIO, Optional

import exifread
from PIL import Image

from app.core.errors import MetadataExtractionFault

logger = logging.getLogger(__name__)

GPS_IFD = 0x8825
GPS_LATITUDE_REF = 1
GPS_LATITUDE = 2
GPS_LONGITUDE_REF = 3
GPS_LONGITUDE = 4

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"
CAPTURE_TIME_TAGS = ["EXIF DateTimeOriginal", "EXIF DateTimeDigitized"]


@dataclass(frozen=True)
class GeoPoint:
    latitude: float
    longitude: float


def _ref(value: Any) -> Optional[str]:
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    return value.strip("\x00 ").upper() or None


def _to_degrees(values: Any, ref: Optional[str], negative_ref: str) -> Optional[float]:
    """Degrees/minutes/seconds rationals to signed decimal degrees."""
    if not isinstance(values, (tuple, list)) or len(values) != 3 or ref is None:
        return None
    try:
        degrees, minutes, seconds = (float(v) for v in values)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    decimal = degrees + minutes / 60 + seconds / 3600
    if not math.isfinite(decimal):
        return None
    return -decimal if ref == negative_ref else decimal


def _gps_point(gps: dict, name: str) -> Optional[GeoPoint]:
    if not gps:
        logger.info("No GPS directory in image %s", name)
        return None

    lat_ref = _ref(gps.get(GPS_LATITUDE_REF))
    lon_ref = _ref(gps.get(GPS_LONGITUDE_REF))
    if lat_ref not in ("N", "S") or lon_ref not in ("E", "W"):
        logger.info("Incomplete GPS directory in image %s", name)
        return None

    latitude = _to_degrees(gps.get(GPS_LATITUDE), lat_ref, "S")
    longitude = _to_degrees(gps.get(GPS_LONGITUDE), lon_ref, "W")
    if latitude is None or longitude is None:
        logger.info("Incomplete GPS directory in image %s", name)
        return None
    return GeoPoint(latitude=latitude, longitude=longitude)


def extract_gps(stream: BinaryIO, name: str = "") -> Optional[GeoPoint]:
    """Read the GPS IFD. Returns None when there is no usable position."""
    try:
        with Image.open(stream) as image:
            gps = dict(image.getexif().get_ifd(GPS_IFD))
        point = _gps_point(gps, name)
    except Exception as e:
        raise MetadataExtractionFault(f"Cannot read GPS from {name or 'image'}: {e}") from e

    if point is not None:
        logger.info(
            "Extracted GPS coordinates from %s: lat=%s lon=%s", name, point.latitude, point.longitude,
        )
    return point


def _capture_time(tags: dict, name: str) -> Optional[datetime]:
    for key in CAPTURE_TIME_TAGS:
        if key not in tags:
            continue
        try:
            return datetime.strptime(str(tags[key]).strip(), EXIF_DATETIME_FORMAT)
        except ValueError:
            continue
    logger.info("No capture time in image %s", name)
    return None


def extract_captured_at(stream: BinaryIO, name: str = "") -> Optional[datetime]:
    """Read the original capture time. The stream must be seekable."""
    try:
        tags = exifread.process_file(stream, details=False)
        captured_at = _capture_time(tags, name)
    except Exception as e:
        raise MetadataExtractionFault(f"Cannot read EXIF from {name or 'image'}: {e}") from e

    if captured_at is not None:
        logger.info("Extracted capture time from %s: %s", name, captured_at)
    return captured_at
