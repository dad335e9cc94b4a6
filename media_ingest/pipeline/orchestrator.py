import asyncio
import os
from collections.abc import Sequence
from typing import Any

from media_ingest.config.settings import Settings
from media_ingest.identity.allocator import IdentityAllocator
from media_ingest.intake.models import UploadCandidate
from media_ingest.intake.validator import IntakeValidator
from media_ingest.logging.logger import Log
from media_ingest.pipeline.exceptions import InvalidInputError, PipelineError, StorageError
from media_ingest.pipeline.models import IngestResult, UploadState
from media_ingest.pipeline.pipeline import PipelineStep, UploadContext
from media_ingest.pipeline.steps import (
    PublishStep,
    StageStep,
    TranscodePrimaryStep,
    TranscodeThumbnailStep,
    ValidateStep,
)
from media_ingest.storage.models import ArtifactKind
from media_ingest.storage.store import ArtifactStore
from media_ingest.transcode.factory import TranscoderFactory
from media_ingest.transcode.models import ProcessingOptions

# Worst case bytes per decoded pixel (RGBA, 8 bits per channel).
_BYTES_PER_PIXEL = 4


class PipelineOrchestrator:
    """Runs uploads through validate -> stage -> transform -> publish.

    Every upload gets its own ``UploadContext``. When any step fails, the
    upload's staged files are discarded and its published artifacts removed
    before the typed error is re-raised. Nothing is retried here.
    """

    def __init__(
        self,
        steps: Sequence[PipelineStep],
        store: ArtifactStore,
        allocator: IdentityAllocator,
        default_options: ProcessingOptions,
        max_batch_files: int = 3,
    ) -> None:
        self._steps = list(steps)
        self._store = store
        self._allocator = allocator
        self._default_options = default_options
        self._max_batch_files = max_batch_files
        # Abandoned uploads and their rollbacks, kept alive until they finish.
        self._background: set[asyncio.Future[Any]] = set()

    @property
    def store(self) -> ArtifactStore:
        return self._store

    async def ingest(
        self,
        candidate: UploadCandidate,
        options: ProcessingOptions | None = None,
    ) -> IngestResult:
        """Process one upload end to end.

        Raises:
            InvalidInputError: the upload or options were rejected.
            TranscodeError: the image could not be decoded or encoded.
            StorageError: staging or publishing failed.
        """
        context = UploadContext(
            upload_id=self._allocator.new_id(),
            candidate=candidate,
            options=options if options is not None else self._default_options,
        )
        Log.info(
            f"Received upload '{candidate.original_filename}'",
            upload_id=context.upload_id,
            declared_type=candidate.declared_mime_type,
        )
        work = asyncio.ensure_future(self._run(context))
        try:
            return await asyncio.shield(work)
        except asyncio.CancelledError:
            # In-flight transforms cannot be interrupted; roll back once they settle.
            Log.warning("Upload abandoned by caller", upload_id=context.upload_id)
            self._background.add(work)
            work.add_done_callback(lambda done: self._rollback_abandoned(done, context))
            raise

    async def drain(self) -> None:
        """Wait until every abandoned upload has settled and been rolled back."""
        while self._background:
            await asyncio.gather(*self._background, return_exceptions=True)

    async def ingest_batch(
        self,
        candidates: Sequence[UploadCandidate],
        options: ProcessingOptions | None = None,
    ) -> list[IngestResult]:
        """Process several uploads concurrently, all or nothing.

        If any upload fails, the artifacts of the others are removed and the
        first error is raised.
        """
        if not candidates:
            raise InvalidInputError("No files provided")
        if len(candidates) > self._max_batch_files:
            raise InvalidInputError(f"Maximum {self._max_batch_files} files allowed")
        outcomes = await asyncio.gather(
            *(self.ingest(candidate, options) for candidate in candidates),
            return_exceptions=True,
        )
        failures = [outcome for outcome in outcomes if isinstance(outcome, BaseException)]
        if not failures:
            return [outcome for outcome in outcomes if isinstance(outcome, IngestResult)]
        for outcome in outcomes:
            if isinstance(outcome, IngestResult):
                for descriptor in outcome.descriptors:
                    await self._remove_quietly(descriptor.id, outcome.upload_id)
        Log.error(f"Batch of {len(candidates)} failed: {len(failures)} upload(s) rejected")
        raise failures[0]

    async def _run(self, context: UploadContext) -> IngestResult:
        for step in self._steps:
            try:
                context = await step.run(context)
            except PipelineError as exc:
                await self._fail(context, exc)
                raise
            except Exception as exc:
                error = step.failure_type(step.failure_reason)
                Log.exception(
                    f"Unexpected error in {type(step).__name__}",
                    upload_id=context.upload_id,
                )
                await self._fail(context, error)
                raise error from exc

        primary = context.published.get(ArtifactKind.ORIGINAL)
        if primary is None:
            error = StorageError("Failed to publish artifact")
            await self._fail(context, error)
            raise error

        # The staged input is only dropped once every derivative is written.
        if context.staged_input is not None:
            await asyncio.to_thread(self._store.discard, context.staged_input)
            context.staged_input = None
        context.advance(UploadState.DONE)
        Log.info("Upload done", upload_id=context.upload_id, artifact_id=primary.id)
        return IngestResult(
            upload_id=context.upload_id,
            primary=primary,
            thumbnail=context.published.get(ArtifactKind.THUMBNAIL),
        )

    async def _fail(self, context: UploadContext, error: PipelineError) -> None:
        failed_in = context.state
        await self._rollback(context)
        context.fail(error)
        Log.error(
            f"Upload failed after {failed_in.value}: {error.kind}: {error.reason}",
            upload_id=context.upload_id,
        )

    async def _rollback(self, context: UploadContext) -> None:
        for path in context.staged_paths():
            await asyncio.to_thread(self._store.discard, path)
        context.staged.clear()
        context.staged_input = None
        for descriptor in list(context.published.values()):
            await self._remove_quietly(descriptor.id, context.upload_id)
        context.published.clear()

    def _rollback_abandoned(
        self,
        work: asyncio.Future[IngestResult],
        context: UploadContext,
    ) -> None:
        if not work.cancelled() and work.exception() is not None:
            Log.debug("Abandoned upload had already failed", upload_id=context.upload_id)
        rollback = asyncio.ensure_future(self._rollback(context))
        self._background.add(rollback)
        self._background.discard(work)
        rollback.add_done_callback(
            lambda done: self._finish_rollback(done, context.upload_id)
        )

    def _finish_rollback(self, rollback: asyncio.Future[None], upload_id: str) -> None:
        self._background.discard(rollback)
        if rollback.cancelled():
            Log.warning("Rollback of abandoned upload was cancelled", upload_id=upload_id)
            return
        error = rollback.exception()
        if error is not None:
            Log.error(f"Rollback of abandoned upload failed: {error!r}", upload_id=upload_id)
        else:
            Log.info("Rolled back abandoned upload", upload_id=upload_id)

    async def _remove_quietly(self, artifact_id: str, upload_id: str) -> None:
        try:
            await asyncio.to_thread(self._store.remove, artifact_id)
        except PipelineError as exc:
            Log.warning(
                f"Rollback could not remove artifact: {exc.reason}",
                upload_id=upload_id,
                artifact_id=artifact_id,
            )


def transform_slots(settings: Settings) -> int:
    """How many decode/resize/encode jobs may hold a raster in memory at once."""
    if settings.max_concurrent_transforms > 0:
        return settings.max_concurrent_transforms
    worst_case_raster = settings.max_image_pixels * _BYTES_PER_PIXEL
    by_memory = settings.transform_memory_budget_bytes // worst_case_raster
    return max(1, min(os.cpu_count() or 1, by_memory))


def build_orchestrator(settings: Settings) -> PipelineOrchestrator:
    """Build a PipelineOrchestrator with all required components."""
    allocator = IdentityAllocator()
    store = ArtifactStore.from_settings(settings, allocator=allocator)
    validator = IntakeValidator.from_settings(settings)
    transcoder = TranscoderFactory.create(settings, allocator=allocator)
    limiter = asyncio.Semaphore(transform_slots(settings))
    steps: list[PipelineStep] = [
        ValidateStep(validator),
        StageStep(store),
        TranscodePrimaryStep(transcoder, limiter),
        TranscodeThumbnailStep(transcoder, limiter),
        PublishStep(store, allocator),
    ]
    return PipelineOrchestrator(
        steps=steps,
        store=store,
        allocator=allocator,
        default_options=ProcessingOptions.from_settings(settings),
        max_batch_files=settings.max_batch_files,
    )
