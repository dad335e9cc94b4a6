from abc import ABC, abstractmethod
from pathlib import Path

from media_ingest.identity.allocator import IdentityAllocator
from media_ingest.transcode.models import OutputFormat, ProcessingOptions


class BaseTranscoder(ABC):
    """Contract for all image transcoding adapters.

    Implementations never modify or delete their input file; every call writes
    a brand new file next to it.
    """

    def __init__(
        self,
        allocator: IdentityAllocator | None = None,
        max_image_pixels: int = 40_000_000,
    ) -> None:
        self._allocator = allocator if allocator is not None else IdentityAllocator()
        self._max_image_pixels = max_image_pixels

    @abstractmethod
    def process(self, staged_path: Path, options: ProcessingOptions) -> Path:
        """Produce the display-optimized primary artifact.

        Applies embedded orientation, drops all metadata, fits the image inside
        ``target_width`` x ``target_height`` without upscaling and encodes it as
        ``options.output_format``.

        Returns:
            Path of the newly written staged artifact.

        Raises:
            TranscodeError: if the image cannot be decoded or encoded.
        """

    @abstractmethod
    def thumbnail(
        self,
        staged_path: Path,
        size: int,
        output_format: OutputFormat = OutputFormat.JPEG,
        quality: int = 85,
    ) -> Path:
        """Produce an exact ``size`` x ``size`` center-cropped thumbnail.

        Raises:
            TranscodeError: if the image cannot be decoded or encoded.
        """
