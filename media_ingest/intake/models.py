from dataclasses import dataclass, field


@dataclass(frozen=True)
class UploadCandidate:
    """A single inbound file as handed over by the transport layer.

    ``original_filename`` is display-only and never reaches a storage path.
    """

    data: bytes = field(repr=False)
    declared_mime_type: str | None
    declared_size: int | None = None
    original_filename: str = ""
    field_name: str = "file"

    @property
    def size(self) -> int:
        return len(self.data)
