import os
import tempfile
from pathlib import Path
from typing import Any

from PIL import Image, ImageOps, UnidentifiedImageError

from media_ingest.logging.logger import Log
from media_ingest.pipeline.exceptions import TranscodeError
from media_ingest.transcode.base import BaseTranscoder
from media_ingest.transcode.models import OutputFormat, ProcessingOptions

_PIL_FORMATS: dict[OutputFormat, str] = {
    OutputFormat.JPEG: "JPEG",
    OutputFormat.PNG: "PNG",
    OutputFormat.WEBP: "WEBP",
}

_JPEG_BACKGROUND = (255, 255, 255)


class PillowTranscoder(BaseTranscoder):
    """Decodes, sanitizes, resizes and re-encodes images with Pillow."""

    def process(self, staged_path: Path, options: ProcessingOptions) -> Path:
        image = self._load_clean(staged_path)
        # Image.thumbnail only ever shrinks and keeps the aspect ratio.
        image.thumbnail(
            (options.target_width, options.target_height),
            Image.Resampling.LANCZOS,
        )
        output = self._encode(image, staged_path.parent, options.output_format, options.quality)
        Log.debug(f"Encoded primary {image.width}x{image.height} to {output.name}")
        return output

    def thumbnail(
        self,
        staged_path: Path,
        size: int,
        output_format: OutputFormat = OutputFormat.JPEG,
        quality: int = 85,
    ) -> Path:
        if size < 1:
            raise ValueError("Thumbnail size must be positive")
        image = self._load_clean(staged_path)
        square = ImageOps.fit(
            image,
            (size, size),
            Image.Resampling.LANCZOS,
            centering=(0.5, 0.5),
        )
        output = self._encode(square, staged_path.parent, output_format, quality)
        Log.debug(f"Encoded {size}x{size} thumbnail to {output.name}")
        return output

    def _load_clean(self, path: Path) -> Image.Image:
        """Decode, apply orientation and rebuild the raster without any metadata."""
        try:
            with Image.open(path) as source:
                width, height = source.size
                if width * height > self._max_image_pixels:
                    raise TranscodeError(
                        "Image dimensions exceed the allowed maximum",
                        TranscodeError.UNSUPPORTED_OR_CORRUPT_IMAGE,
                    )
                source.load()
                oriented = ImageOps.exif_transpose(source)
        except TranscodeError:
            raise
        except (
            UnidentifiedImageError,
            Image.DecompressionBombError,
            OSError,
            ValueError,
            SyntaxError,
        ) as exc:
            raise TranscodeError(
                "Unsupported or corrupt image",
                TranscodeError.UNSUPPORTED_OR_CORRUPT_IMAGE,
            ) from exc
        return self._without_metadata(oriented)

    @staticmethod
    def _without_metadata(image: Image.Image) -> Image.Image:
        has_alpha = image.mode in ("RGBA", "LA", "PA") or (
            image.mode == "P" and "transparency" in image.info
        )
        converted = image.convert("RGBA" if has_alpha else "RGB")
        # A raster rebuilt from raw pixels carries no EXIF, XMP, ICC or text chunks.
        return Image.frombytes(converted.mode, converted.size, converted.tobytes())

    def _encode(
        self,
        image: Image.Image,
        directory: Path,
        output_format: OutputFormat,
        quality: int,
    ) -> Path:
        if output_format is OutputFormat.JPEG and image.mode == "RGBA":
            background = Image.new("RGB", image.size, _JPEG_BACKGROUND)
            background.paste(image, mask=image.getchannel("A"))
            image = background

        artifact_id = self._allocator.new_id()
        target = directory / self._allocator.filename_for(artifact_id, output_format.mime_type)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{artifact_id}.", suffix=".tmp", dir=directory)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                image.save(
                    handle,
                    format=_PIL_FORMATS[output_format],
                    **self._encoder_params(output_format, quality),
                )
            os.replace(tmp_path, target)
        except (OSError, ValueError, KeyError) as exc:
            tmp_path.unlink(missing_ok=True)
            raise TranscodeError(
                "Failed to encode image",
                TranscodeError.CODEC_FAILURE,
            ) from exc
        return target

    @staticmethod
    def _encoder_params(output_format: OutputFormat, quality: int) -> dict[str, Any]:
        if output_format is OutputFormat.JPEG:
            return {"quality": quality, "optimize": True}
        if output_format is OutputFormat.WEBP:
            return {"quality": quality, "method": 4}
        # PNG is lossless; quality does not apply.
        return {"optimize": True}
