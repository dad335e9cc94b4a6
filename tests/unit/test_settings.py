from pathlib import Path

import pytest
from pydantic import ValidationError

from media_ingest.config.settings import Settings


class TestSettingsDefaults:
    def test_default_app_env(self) -> None:
        s = Settings()
        assert s.app_env == "dev"

    def test_default_max_upload_is_ten_mebibytes(self) -> None:
        s = Settings()
        assert s.max_upload_bytes == 10 * 1024 * 1024

    def test_default_allow_set_is_images_only(self) -> None:
        s = Settings()
        assert set(s.allowed_mime_types) == {"image/jpeg", "image/jpg", "image/png", "image/webp"}

    def test_default_processing_fallbacks(self) -> None:
        s = Settings()
        assert (s.default_target_width, s.default_target_height) == (1920, 1080)
        assert s.default_quality == 85
        assert s.default_output_format == "jpeg"
        assert s.thumbnail_size == 200

    def test_signatures_verified_by_default(self) -> None:
        s = Settings()
        assert s.verify_signatures is True

    def test_default_url_prefix(self) -> None:
        s = Settings()
        assert s.public_url_prefix == "/uploads"


class TestSettingsFromEnv:
    def test_loads_upload_dir(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("UPLOAD_DIR", "/srv/media")
        s = Settings()
        assert s.upload_dir == Path("/srv/media")

    def test_loads_max_upload_bytes(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "2048")
        s = Settings()
        assert s.max_upload_bytes == 2048

    def test_loads_allowed_mime_types_as_json(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ALLOWED_MIME_TYPES", '["IMAGE/PNG"]')
        s = Settings()
        assert s.allowed_mime_types == ["image/png"]

    def test_normalizes_url_prefix(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PUBLIC_URL_PREFIX", "media/")
        s = Settings()
        assert s.public_url_prefix == "/media"


class TestSettingsValidation:
    @pytest.mark.parametrize("quality", ["0", "101"])
    def test_quality_out_of_range_raises(
        self, monkeypatch: pytest.MonkeyPatch, quality: str
    ) -> None:
        monkeypatch.setenv("DEFAULT_QUALITY", quality)
        with pytest.raises(ValidationError):
            Settings()

    def test_unknown_output_format_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DEFAULT_OUTPUT_FORMAT", "gif")
        with pytest.raises(ValidationError):
            Settings()

    def test_non_image_mime_type_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ALLOWED_MIME_TYPES", '["image/png", "application/pdf"]')
        with pytest.raises(ValidationError, match="application/pdf"):
            Settings()

    def test_empty_allow_set_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ALLOWED_MIME_TYPES", "[]")
        with pytest.raises(ValidationError):
            Settings()

    def test_zero_upload_ceiling_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("MAX_UPLOAD_BYTES", "0")
        with pytest.raises(ValidationError):
            Settings()

    def test_root_url_prefix_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PUBLIC_URL_PREFIX", "/")
        with pytest.raises(ValidationError):
            Settings()
