from dataclasses import dataclass
from enum import Enum

from media_ingest.config.settings import Settings
from media_ingest.pipeline.exceptions import InvalidInputError


class OutputFormat(str, Enum):
    """Encodings the transcoder can produce."""

    JPEG = "jpeg"
    PNG = "png"
    WEBP = "webp"

    @property
    def mime_type(self) -> str:
        return f"image/{self.value}"

    @property
    def is_lossy(self) -> bool:
        return self is not OutputFormat.PNG


@dataclass(frozen=True)
class ProcessingOptions:
    """Per-upload transformation parameters.

    ``thumbnail_size == 0`` means no thumbnail is produced.
    """

    target_width: int = 1920
    target_height: int = 1080
    quality: int = 85
    output_format: OutputFormat = OutputFormat.JPEG
    thumbnail_size: int = 200

    def __post_init__(self) -> None:
        if isinstance(self.output_format, str) and not isinstance(self.output_format, OutputFormat):
            try:
                object.__setattr__(self, "output_format", OutputFormat(self.output_format.lower()))
            except ValueError:
                raise InvalidInputError(
                    f"Unsupported output format '{self.output_format}'. "
                    f"Choose from: {[fmt.value for fmt in OutputFormat]}"
                ) from None
        if self.target_width < 1 or self.target_height < 1:
            raise InvalidInputError("Target width and height must be positive")
        if not 1 <= self.quality <= 100:
            raise InvalidInputError("Quality must be between 1 and 100")
        if self.thumbnail_size < 0:
            raise InvalidInputError("Thumbnail size must not be negative")

    @property
    def wants_thumbnail(self) -> bool:
        return self.thumbnail_size > 0

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        *,
        target_width: int | None = None,
        target_height: int | None = None,
        quality: int | None = None,
        output_format: OutputFormat | str | None = None,
        thumbnail_size: int | None = None,
    ) -> "ProcessingOptions":
        """Build options from configured fallbacks, overriding only what is given."""
        return cls(
            target_width=settings.default_target_width if target_width is None else target_width,
            target_height=(
                settings.default_target_height if target_height is None else target_height
            ),
            quality=settings.default_quality if quality is None else quality,
            output_format=(
                settings.default_output_format if output_format is None else output_format
            ),
            thumbnail_size=settings.thumbnail_size if thumbnail_size is None else thumbnail_size,
        )
