import io
from collections.abc import Callable
from pathlib import Path

import pytest
from PIL import Image

from media_ingest.config.settings import Settings

ORIENTATION_TAG = 0x0112
MAKE_TAG = 0x010F
GPS_IFD_TAG = 0x8825

RED = (255, 0, 0)
BLUE = (0, 0, 255)

ImageFactory = Callable[..., bytes]


def build_image_bytes(
    size: tuple[int, int] = (600, 400),
    fmt: str = "JPEG",
    orientation: int | None = None,
    gps: bool = False,
    mode: str = "RGB",
) -> bytes:
    """Image whose left half is red and right half blue, optionally with EXIF tags."""
    fill = BLUE + (255,) if mode == "RGBA" else BLUE
    image = Image.new(mode, size, fill)
    left = RED + (255,) if mode == "RGBA" else RED
    image.paste(left, (0, 0, size[0] // 2, size[1]))

    exif = Image.Exif()
    if orientation is not None:
        exif[ORIENTATION_TAG] = orientation
    if gps:
        exif[MAKE_TAG] = "TestCam"
        exif[GPS_IFD_TAG] = {1: "N", 3: "E", 29: "2024:01:01"}

    buf = io.BytesIO()
    params = {"exif": exif} if len(exif) else {}
    image.save(buf, format=fmt, **params)
    return buf.getvalue()


def assert_no_metadata(path: Path) -> None:
    data = path.read_bytes()
    assert b"Exif\x00\x00" not in data
    with Image.open(path) as image:
        assert len(image.getexif()) == 0
        assert "exif" not in image.info
        assert "icc_profile" not in image.info
        assert "xmp" not in image.info


def dominant_color(image: Image.Image, xy: tuple[int, int]) -> str:
    r, g, b = image.convert("RGB").getpixel(xy)[:3]
    if r > 180 and b < 90:
        return "red"
    if b > 180 and r < 90:
        return "blue"
    return "other"


@pytest.fixture()
def image_bytes() -> ImageFactory:
    return build_image_bytes


@pytest.fixture()
def jpeg_bytes() -> bytes:
    return build_image_bytes()


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        upload_dir=tmp_path / "public" / "uploads",
        staging_dir=tmp_path / "staging",
        max_concurrent_transforms=2,
    )


@pytest.fixture()
def assert_clean() -> Callable[[Path], None]:
    return assert_no_metadata


@pytest.fixture()
def color_at() -> Callable[[Image.Image, tuple[int, int]], str]:
    return dominant_color
