from media_ingest.config.settings import Settings
from media_ingest.identity.allocator import IdentityAllocator
from media_ingest.transcode.base import BaseTranscoder
from media_ingest.transcode.pillow_adapter import PillowTranscoder


class TranscoderFactory:
    """Creates the correct transcoder based on settings."""

    ADAPTERS: dict[str, type[BaseTranscoder]] = {
        "pillow": PillowTranscoder,
    }

    @classmethod
    def create(
        cls,
        settings: Settings,
        allocator: IdentityAllocator | None = None,
    ) -> BaseTranscoder:
        engine = settings.transcode_engine.lower()
        adapter_cls = cls.ADAPTERS.get(engine)
        if adapter_cls is None:
            raise ValueError(
                f"Unknown transcode engine '{engine}'. Choose from: {list(cls.ADAPTERS)}"
            )
        return adapter_cls(allocator=allocator, max_image_pixels=settings.max_image_pixels)
