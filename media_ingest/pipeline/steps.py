import asyncio

from media_ingest.identity.allocator import IdentityAllocator
from media_ingest.intake.signatures import extension_for
from media_ingest.intake.validator import IntakeValidator
from media_ingest.logging.logger import Log
from media_ingest.pipeline.exceptions import InvalidInputError, StorageError, TranscodeError
from media_ingest.pipeline.models import UploadState
from media_ingest.pipeline.pipeline import PipelineStep, UploadContext
from media_ingest.storage.models import ArtifactKind
from media_ingest.storage.store import ArtifactStore
from media_ingest.transcode.base import BaseTranscoder


class ValidateStep(PipelineStep):
    failure_type = InvalidInputError
    failure_reason = "Upload could not be validated"

    def __init__(self, validator: IntakeValidator) -> None:
        self._validator = validator

    async def run(self, context: UploadContext) -> UploadContext:
        context.mime_type = self._validator.validate(context.candidate)
        context.advance(UploadState.VALIDATED)
        Log.info(
            f"Validated {context.candidate.size} bytes as {context.mime_type}",
            upload_id=context.upload_id,
        )
        return context


class StageStep(PipelineStep):
    failure_type = StorageError
    failure_reason = "Failed to store upload"

    def __init__(self, store: ArtifactStore) -> None:
        self._store = store

    async def run(self, context: UploadContext) -> UploadContext:
        if not context.mime_type:
            raise ValueError("UploadContext.mime_type must be set before staging")
        context.staged_input = await asyncio.to_thread(
            self._store.stage,
            context.candidate.data,
            extension_for(context.mime_type),
        )
        context.advance(UploadState.STAGED)
        return context


class TranscodePrimaryStep(PipelineStep):
    failure_type = TranscodeError
    failure_reason = "Failed to process image"

    def __init__(self, transcoder: BaseTranscoder, limiter: asyncio.Semaphore) -> None:
        self._transcoder = transcoder
        self._limiter = limiter

    async def run(self, context: UploadContext) -> UploadContext:
        if context.staged_input is None:
            raise ValueError("UploadContext.staged_input must be set before transcoding")
        async with self._limiter:
            context.staged[ArtifactKind.ORIGINAL] = await asyncio.to_thread(
                self._transcoder.process,
                context.staged_input,
                context.options,
            )
        return context


class TranscodeThumbnailStep(PipelineStep):
    """Produces the square thumbnail; a no-op when the options ask for none."""

    failure_type = TranscodeError
    failure_reason = "Failed to create thumbnail"

    def __init__(self, transcoder: BaseTranscoder, limiter: asyncio.Semaphore) -> None:
        self._transcoder = transcoder
        self._limiter = limiter

    async def run(self, context: UploadContext) -> UploadContext:
        if context.staged_input is None:
            raise ValueError("UploadContext.staged_input must be set before transcoding")
        if context.options.wants_thumbnail:
            async with self._limiter:
                context.staged[ArtifactKind.THUMBNAIL] = await asyncio.to_thread(
                    self._transcoder.thumbnail,
                    context.staged_input,
                    context.options.thumbnail_size,
                    context.options.output_format,
                    context.options.quality,
                )
        context.advance(UploadState.TRANSFORMED)
        return context


class PublishStep(PipelineStep):
    """Publishes every staged derivative, primary first, each under a fresh id."""

    failure_type = StorageError
    failure_reason = "Failed to publish artifact"

    _ORDER = (ArtifactKind.ORIGINAL, ArtifactKind.THUMBNAIL)

    def __init__(self, store: ArtifactStore, allocator: IdentityAllocator) -> None:
        self._store = store
        self._allocator = allocator

    async def run(self, context: UploadContext) -> UploadContext:
        mime_type = context.options.output_format.mime_type
        for kind in self._ORDER:
            staged_path = context.staged.get(kind)
            if staged_path is None:
                continue
            descriptor = await asyncio.to_thread(
                self._store.publish,
                staged_path,
                self._allocator.new_id(),
                kind,
                mime_type,
            )
            del context.staged[kind]
            context.published[kind] = descriptor
        context.advance(UploadState.PUBLISHED)
        return context
