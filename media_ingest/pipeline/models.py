from dataclasses import dataclass
from enum import Enum

from media_ingest.storage.models import ArtifactDescriptor


class UploadState(str, Enum):
    """Lifecycle of a single upload. ``FAILED`` is reachable from any non-terminal state."""

    RECEIVED = "received"
    VALIDATED = "validated"
    STAGED = "staged"
    TRANSFORMED = "transformed"
    PUBLISHED = "published"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (UploadState.DONE, UploadState.FAILED)


@dataclass(frozen=True)
class IngestResult:
    """Descriptors produced for one upload."""

    upload_id: str
    primary: ArtifactDescriptor
    thumbnail: ArtifactDescriptor | None = None

    @property
    def descriptors(self) -> list[ArtifactDescriptor]:
        if self.thumbnail is None:
            return [self.primary]
        return [self.primary, self.thumbnail]

    def to_dict(self) -> dict[str, object]:
        return {
            "upload_id": self.upload_id,
            "primary": self.primary.to_dict(),
            "thumbnail": self.thumbnail.to_dict() if self.thumbnail is not None else None,
        }
