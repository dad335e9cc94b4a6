import errno
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from media_ingest.config.settings import Settings
from media_ingest.identity.allocator import IdentityAllocator
from media_ingest.logging.logger import Log
from media_ingest.pipeline.exceptions import InvalidInputError, StorageError
from media_ingest.storage.models import ArtifactDescriptor, ArtifactKind


class ArtifactStore:
    """Owns the on-disk lifecycle of staged and published artifacts.

    Staged files live under ``staging_root``, which must sit outside
    ``public_root``. Files only appear under ``public_root`` through an atomic
    rename, so a served path never points at a half-written file.
    """

    def __init__(
        self,
        public_root: Path,
        staging_root: Path,
        url_prefix: str = "/uploads",
        allocator: IdentityAllocator | None = None,
    ) -> None:
        self._public_root = Path(public_root).resolve()
        self._staging_root = Path(staging_root).resolve()
        if self._staging_root == self._public_root or self._public_root in self._staging_root.parents:
            raise ValueError("staging_root must not be inside public_root")
        self._url_prefix = "/" + url_prefix.strip("/")
        self._allocator = allocator if allocator is not None else IdentityAllocator()
        self._public_root.mkdir(parents=True, exist_ok=True)
        self._staging_root.mkdir(parents=True, exist_ok=True)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        allocator: IdentityAllocator | None = None,
    ) -> "ArtifactStore":
        return cls(
            public_root=settings.upload_dir,
            staging_root=settings.staging_dir,
            url_prefix=settings.public_url_prefix,
            allocator=allocator,
        )

    @property
    def public_root(self) -> Path:
        return self._public_root

    @property
    def staging_root(self) -> Path:
        return self._staging_root

    @property
    def incoming_root(self) -> Path:
        """Unserved sibling of the public root used for cross-device copies."""
        return self._public_root.parent / f".{self._public_root.name}.incoming"

    def stage(self, data: bytes, extension: str) -> Path:
        """Write raw upload bytes into the staging area.

        Raises:
            StorageError: if the bytes cannot be written (disk full, permissions).
        """
        target = self._staging_root / f"{self._allocator.new_id()}{extension}"
        try:
            self._write_then_rename(data, target)
        except OSError as exc:
            Log.error(f"Failed to stage upload at {target}: {exc}")
            raise StorageError("Failed to store upload") from exc
        return target

    def publish(
        self,
        staged_path: Path,
        artifact_id: str,
        kind: ArtifactKind,
        mime_type: str,
    ) -> ArtifactDescriptor:
        """Move a staged file to its servable location under ``artifact_id``.

        Either the whole file appears at the destination or nothing does.

        Raises:
            StorageError: if the move fails or the destination is taken.
        """
        if not self._allocator.is_valid_id(artifact_id):
            raise ValueError(f"Malformed artifact id: {artifact_id!r}")
        filename = self._allocator.filename_for(artifact_id, mime_type)
        destination = self._public_root / filename
        if destination.exists():
            raise StorageError("Failed to publish artifact")
        try:
            byte_size = staged_path.stat().st_size
            self._move_atomic(staged_path, destination)
        except OSError as exc:
            Log.error(f"Failed to publish {staged_path} to {destination}: {exc}")
            raise StorageError("Failed to publish artifact") from exc
        Log.info(f"Published {kind.value} artifact", artifact_id=artifact_id, bytes=byte_size)
        return ArtifactDescriptor(
            id=artifact_id,
            kind=kind,
            storage_path=filename,
            url=self.url_for(filename),
            mime_type=mime_type,
            byte_size=byte_size,
            created_at=datetime.now(timezone.utc),
        )

    def discard(self, staged_path: Path) -> None:
        """Best-effort delete of a staged file; failures are only logged."""
        try:
            staged_path.unlink(missing_ok=True)
        except OSError as exc:
            Log.warning(f"Could not discard staged file {staged_path}: {exc}")

    def remove(self, artifact_id: str) -> bool:
        """Delete a published artifact. Removing an unknown id is not an error.

        Returns:
            True if a file was deleted.

        Raises:
            InvalidInputError: if ``artifact_id`` is not a well-formed identifier.
            StorageError: if an existing file cannot be deleted.
        """
        if not self._allocator.is_valid_id(artifact_id):
            raise InvalidInputError("Invalid artifact identifier")
        removed = False
        for path in self._public_root.glob(f"{artifact_id}.*"):
            try:
                path.unlink()
            except FileNotFoundError:
                continue
            except OSError as exc:
                Log.error(f"Failed to remove {path}: {exc}")
                raise StorageError("Failed to remove artifact") from exc
            removed = True
        if removed:
            Log.info("Removed artifact", artifact_id=artifact_id)
        return removed

    def resolve(self, artifact_id: str) -> Path | None:
        """Physical path of a published artifact, or None if it does not exist."""
        if not self._allocator.is_valid_id(artifact_id):
            return None
        return next(self._public_root.glob(f"{artifact_id}.*"), None)

    def url_for(self, filename: str) -> str:
        return f"{self._url_prefix}/{filename}"

    def _write_then_rename(self, data: bytes, target: Path) -> None:
        fd, tmp_name = tempfile.mkstemp(prefix=".", suffix=".part", dir=target.parent)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle:
                handle.write(data)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, target)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise

    def _incoming_dir(self) -> Path:
        incoming = self.incoming_root
        incoming.mkdir(exist_ok=True)
        if incoming.stat().st_dev != self._public_root.stat().st_dev:
            # The public root is a mount point; no unserved directory shares its filesystem.
            Log.warning(f"{incoming} is not on the filesystem of {self._public_root}")
            return self._public_root
        return incoming

    def _move_atomic(self, source: Path, destination: Path) -> None:
        try:
            os.replace(source, destination)
            return
        except OSError as exc:
            if exc.errno != errno.EXDEV:
                raise
        # Staging and public roots are on different filesystems: copy onto the
        # destination filesystem outside the served tree, then rename.
        fd, tmp_name = tempfile.mkstemp(prefix=".", suffix=".part", dir=self._incoming_dir())
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as handle, source.open("rb") as src:
                shutil.copyfileobj(src, handle)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, destination)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
        self.discard(source)
