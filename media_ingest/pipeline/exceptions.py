class PipelineError(Exception):
    """Base exception for all ingestion pipeline errors.

    ``reason`` is safe to show to the client; the underlying cause is chained
    via ``raise ... from exc`` and only ever reaches the logs.
    """

    kind = "pipeline_error"

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    def to_payload(self) -> dict[str, str]:
        """Return the user-visible error structure."""
        return {"kind": self.kind, "reason": self.reason}


class InvalidInputError(PipelineError):
    """Raised when an upload or its processing options are rejected."""

    kind = "invalid_input"


class TranscodeError(PipelineError):
    """Raised when image bytes cannot be decoded or re-encoded."""

    kind = "transcode_error"

    UNSUPPORTED_OR_CORRUPT_IMAGE = "unsupported_or_corrupt_image"
    CODEC_FAILURE = "codec_failure"

    def __init__(self, reason: str, detail: str = CODEC_FAILURE) -> None:
        super().__init__(reason)
        self.detail = detail

    def to_payload(self) -> dict[str, str]:
        return {**super().to_payload(), "detail": self.detail}


class StorageError(PipelineError):
    """Raised when staging, publishing or renaming an artifact fails."""

    kind = "storage_error"
