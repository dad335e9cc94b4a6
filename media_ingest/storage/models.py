from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ArtifactKind(str, Enum):
    ORIGINAL = "original"
    THUMBNAIL = "thumbnail"


@dataclass(frozen=True)
class ArtifactDescriptor:
    """A published artifact. Only ever built after its bytes are in place."""

    id: str
    kind: ArtifactKind
    storage_path: str  # relative to the public root, e.g. "<id>.jpg"
    url: str  # e.g. "/uploads/<id>.jpg"
    mime_type: str
    byte_size: int
    created_at: datetime

    def to_dict(self) -> dict[str, object]:
        """JSON-ready representation for the record store."""
        return {
            "id": self.id,
            "kind": self.kind.value,
            "storage_path": self.storage_path,
            "url": self.url,
            "mime_type": self.mime_type,
            "byte_size": self.byte_size,
            "created_at": self.created_at.isoformat(),
        }
