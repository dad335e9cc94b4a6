import json
from collections.abc import Callable, Iterator
from pathlib import Path
from unittest.mock import patch

import pytest
from PIL import Image

from media_ingest.main import main


def _last_json_line(stream: str) -> dict[str, dict[str, str]]:
    return json.loads(stream.strip().splitlines()[-1])


@pytest.fixture()
def media_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Iterator[Path]:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("UPLOAD_DIR", str(tmp_path / "public"))
    monkeypatch.setenv("STAGING_DIR", str(tmp_path / "staging"))
    with patch("media_ingest.main.Log.configure"):
        yield tmp_path


class TestMain:
    def test_prints_descriptors_for_ingested_files(
        self,
        media_env: Path,
        image_bytes: Callable[..., bytes],
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        photo = media_env / "holiday.jpg"
        photo.write_bytes(image_bytes(size=(800, 600)))

        exit_code = main([str(photo), "--width", "400", "--height", "400", "--format", "png"])

        assert exit_code == 0
        uploads = json.loads(capsys.readouterr().out)["uploads"]
        assert len(uploads) == 1
        primary = uploads[0]["primary"]
        assert primary["mime_type"] == "image/png"
        assert primary["url"] == f"/uploads/{primary['storage_path']}"
        with Image.open(media_env / "public" / primary["storage_path"]) as image:
            assert image.size == (400, 300)
        assert photo.exists()

    def test_rejected_file_exits_with_error_payload(
        self, media_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        notes = media_env / "notes.txt"
        notes.write_text("not an image")

        exit_code = main([str(notes)])

        assert exit_code == 1
        error = _last_json_line(capsys.readouterr().err)["error"]
        assert error["kind"] == "invalid_input"
        assert error["reason"].startswith("Invalid file type")

    def test_missing_file_exits_with_error_payload(
        self, media_env: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        exit_code = main([str(media_env / "missing.jpg")])

        assert exit_code == 1
        error = _last_json_line(capsys.readouterr().err)["error"]
        assert error == {"kind": "invalid_input", "reason": "Could not read input file"}

    def test_invalid_quality_exits_with_error_payload(
        self,
        media_env: Path,
        jpeg_bytes: bytes,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        photo = media_env / "photo.jpg"
        photo.write_bytes(jpeg_bytes)

        exit_code = main([str(photo), "--quality", "0"])

        assert exit_code == 1
        error = _last_json_line(capsys.readouterr().err)["error"]
        assert error["reason"] == "Quality must be between 1 and 100"
