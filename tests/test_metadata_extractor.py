import io
from datetime import datetime

import pytest
from PIL import Image, TiffImagePlugin

from app.core.errors import MetadataExtractionFault
from app.services.metadata_extractor import GeoPoint, extract_captured_at, extract_gps


def test_gps_matches_embedded_values(image_factory):
    data = image_factory(gps=(16.0544, 108.2022))

    point = extract_gps(io.BytesIO(data), "danang.jpg")

    assert point == GeoPoint(latitude=16.0544, longitude=108.2022)


def test_southern_and_western_references_are_negative(image_factory):
    data = image_factory(gps=(-33.8688, -70.6693))

    point = extract_gps(io.BytesIO(data))

    assert point.latitude == pytest.approx(-33.8688)
    assert point.longitude == pytest.approx(-70.6693)


def test_no_gps_directory_returns_none(image_factory):
    assert extract_gps(io.BytesIO(image_factory())) is None


def test_png_without_exif_has_no_gps(image_factory):
    assert extract_gps(io.BytesIO(image_factory(fmt="PNG"))) is None


def test_gps_without_references_returns_none():
    degrees = tuple(TiffImagePlugin.IFDRational(v) for v in (10, 0, 0))
    exif = Image.Exif()
    exif[0x8825] = {2: degrees, 4: degrees}
    buf = io.BytesIO()
    Image.new("RGB", (16, 16)).save(buf, "JPEG", exif=exif)

    assert extract_gps(io.BytesIO(buf.getvalue())) is None


def test_unreadable_bytes_raise_extraction_fault():
    with pytest.raises(MetadataExtractionFault):
        extract_gps(io.BytesIO(b"definitely not an image"), "junk.jpg")


def test_capture_time_is_read(image_factory):
    data = image_factory(captured_at="2023:07:14 08:30:05")

    captured_at = extract_captured_at(io.BytesIO(data), "beach.jpg")

    assert captured_at == datetime(2023, 7, 14, 8, 30, 5)


def test_missing_capture_time_returns_none(image_factory):
    assert extract_captured_at(io.BytesIO(image_factory(gps=(1.0, 2.0)))) is None


def test_unparseable_capture_time_returns_none(image_factory):
    data = image_factory(captured_at="0000:00:00 00:00:00")

    assert extract_captured_at(io.BytesIO(data)) is None


def test_gps_and_time_from_same_photo(image_factory):
    data = image_factory(gps=(21.0285, 105.8542), captured_at="2024:01:02 03:04:05")

    assert extract_gps(io.BytesIO(data)) == GeoPoint(21.0285, 105.8542)
    assert extract_captured_at(io.BytesIO(data)) == datetime(2024, 1, 2, 3, 4, 5)


def _single_rational_gps_image():
    exif = Image.Exif()
    exif[0x8825] = {
        1: "N",
        2: TiffImagePlugin.IFDRational(16, 1),
        3: "E",
        4: TiffImagePlugin.IFDRational(108, 1),
    }
    buf = io.BytesIO()
    Image.new("RGB", (16, 16)).save(buf, "JPEG", exif=exif)
    return buf.getvalue()


def test_single_rational_coordinates_return_none():
    assert extract_gps(io.BytesIO(_single_rational_gps_image()), "odd.jpg") is None


def test_parsing_errors_surface_as_extraction_fault(monkeypatch, image_factory):
    def broken(gps, name):
        raise KeyError("GPSLatitude")

    monkeypatch.setattr("app.services.metadata_extractor._gps_point", broken)

    with pytest.raises(MetadataExtractionFault):
        extract_gps(io.BytesIO(image_factory(gps=(1.0, 2.0))), "odd.jpg")
