from collections.abc import Callable

import pytest

from media_ingest.intake.signatures import canonical_mime, extension_for, sniff_image_type


class TestSniffImageType:
    def test_detects_jpeg(self, jpeg_bytes: bytes) -> None:
        assert sniff_image_type(jpeg_bytes[:12]) == "image/jpeg"

    def test_detects_png(self, image_bytes: Callable[..., bytes]) -> None:
        assert sniff_image_type(image_bytes(fmt="PNG")[:12]) == "image/png"

    def test_detects_webp(self, image_bytes: Callable[..., bytes]) -> None:
        assert sniff_image_type(image_bytes(fmt="WEBP")[:12]) == "image/webp"

    def test_riff_without_webp_marker_is_unknown(self) -> None:
        assert sniff_image_type(b"RIFF\x00\x00\x00\x00WAVE") is None

    @pytest.mark.parametrize("head", [b"", b"%PDF-1.7", b"GIF89a", b"\xff\xd8"])
    def test_unknown_signatures(self, head: bytes) -> None:
        assert sniff_image_type(head) is None


class TestCanonicalMime:
    @pytest.mark.parametrize(
        ("declared", "expected"),
        [
            ("image/jpeg", "image/jpeg"),
            ("image/jpg", "image/jpeg"),
            ("IMAGE/PNG", "image/png"),
            ("image/webp; charset=binary", "image/webp"),
            (None, ""),
            ("", ""),
        ],
    )
    def test_canonicalizes(self, declared: str | None, expected: str) -> None:
        assert canonical_mime(declared) == expected


class TestExtensionFor:
    def test_extensions_follow_verified_type(self) -> None:
        assert extension_for("image/jpeg") == ".jpg"
        assert extension_for("image/jpg") == ".jpg"
        assert extension_for("image/png") == ".png"
        assert extension_for("image/webp") == ".webp"

    def test_unknown_type_raises(self) -> None:
        with pytest.raises(KeyError):
            extension_for("image/gif")
