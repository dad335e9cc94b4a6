from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path

from media_ingest.intake.models import UploadCandidate
from media_ingest.logging.logger import Log
from media_ingest.pipeline.exceptions import PipelineError
from media_ingest.pipeline.models import UploadState
from media_ingest.storage.models import ArtifactDescriptor, ArtifactKind
from media_ingest.transcode.models import ProcessingOptions


@dataclass(slots=True)
class UploadContext:
    upload_id: str
    candidate: UploadCandidate
    options: ProcessingOptions
    state: UploadState = UploadState.RECEIVED
    mime_type: str = ""
    staged_input: Path | None = None
    staged: dict[ArtifactKind, Path] = field(default_factory=dict)
    published: dict[ArtifactKind, ArtifactDescriptor] = field(default_factory=dict)
    error: PipelineError | None = None

    def advance(self, state: UploadState) -> None:
        if self.state.is_terminal:
            raise RuntimeError(f"Upload {self.upload_id} is already {self.state.value}")
        Log.info(
            f"Upload {self.state.value} -> {state.value}",
            upload_id=self.upload_id,
        )
        self.state = state

    def fail(self, error: PipelineError) -> None:
        self.error = error
        self.state = UploadState.FAILED

    def staged_paths(self) -> list[Path]:
        paths = list(self.staged.values())
        if self.staged_input is not None:
            paths.append(self.staged_input)
        return paths


class PipelineStep(ABC):
    """One stage of the upload pipeline.

    Unexpected exceptions escaping ``run`` are reported to the caller as
    ``failure_type(failure_reason)``.
    """

    failure_type: type[PipelineError] = PipelineError
    failure_reason: str = "Failed to process upload"

    @abstractmethod
    async def run(self, context: UploadContext) -> UploadContext:
        raise NotImplementedError
