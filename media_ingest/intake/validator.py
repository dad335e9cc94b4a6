from typing import BinaryIO

from media_ingest.config.settings import Settings
from media_ingest.intake.models import UploadCandidate
from media_ingest.intake.signatures import SIGNATURE_PROBE_BYTES, canonical_mime, sniff_image_type
from media_ingest.logging.logger import Log
from media_ingest.pipeline.exceptions import InvalidInputError


class IntakeValidator:
    """Rejects untrusted uploads before any disk or processing work happens.

    Checks run in order and stop at the first failure:
    declared type -> size -> byte signature.
    """

    def __init__(
        self,
        allowed_mime_types: list[str],
        max_upload_bytes: int,
        verify_signatures: bool = True,
        read_chunk_bytes: int = 64 * 1024,
    ) -> None:
        self._allowed = frozenset(canonical_mime(mime) for mime in allowed_mime_types)
        self._max_bytes = max_upload_bytes
        self._verify_signatures = verify_signatures
        self._chunk_bytes = read_chunk_bytes

    @classmethod
    def from_settings(cls, settings: Settings) -> "IntakeValidator":
        return cls(
            allowed_mime_types=settings.allowed_mime_types,
            max_upload_bytes=settings.max_upload_bytes,
            verify_signatures=settings.verify_signatures,
            read_chunk_bytes=settings.read_chunk_bytes,
        )

    def validate(self, candidate: UploadCandidate) -> str:
        """Validate a fully received candidate.

        Returns:
            The canonical MIME type the artifact will be stored under.

        Raises:
            InvalidInputError: with a client-safe reason on the first failed check.
        """
        mime = self._check_declared_type(candidate.declared_mime_type)
        self._check_declared_size(candidate.declared_size)
        if candidate.size == 0:
            raise self._reject("Upload is empty")
        if candidate.size > self._max_bytes:
            raise self._reject(f"File too large. Maximum size is {self._max_bytes} bytes")
        if candidate.declared_size is not None and candidate.declared_size != candidate.size:
            raise self._reject("Declared size does not match the received content")
        if self._verify_signatures:
            sniffed = sniff_image_type(candidate.data[:SIGNATURE_PROBE_BYTES])
            if sniffed != mime:
                raise self._reject("File content does not match the declared type")
        return mime

    def receive(
        self,
        stream: BinaryIO,
        declared_mime_type: str | None,
        declared_size: int | None = None,
        original_filename: str = "",
        field_name: str = "file",
    ) -> UploadCandidate:
        """Read an upload from a stream, stopping as soon as the ceiling is crossed.

        The declared type and size are checked before the first read, so an
        upload that announces itself as oversize is never buffered at all.
        """
        self._check_declared_type(declared_mime_type)
        self._check_declared_size(declared_size)
        data = self._read_bounded(stream)
        return UploadCandidate(
            data=data,
            declared_mime_type=declared_mime_type,
            declared_size=declared_size,
            original_filename=original_filename,
            field_name=field_name,
        )

    def _read_bounded(self, stream: BinaryIO) -> bytes:
        buffer = bytearray()
        while True:
            chunk = stream.read(self._chunk_bytes)
            if not chunk:
                return bytes(buffer)
            buffer.extend(chunk)
            if len(buffer) > self._max_bytes:
                raise self._reject(f"File too large. Maximum size is {self._max_bytes} bytes")

    def _check_declared_type(self, declared_mime_type: str | None) -> str:
        mime = canonical_mime(declared_mime_type)
        if not mime or mime not in self._allowed:
            raise self._reject(
                f"Invalid file type. Allowed: {', '.join(sorted(self._allowed))}"
            )
        return mime

    def _check_declared_size(self, declared_size: int | None) -> None:
        if declared_size is None:
            return
        if declared_size < 0:
            raise self._reject("Declared size must not be negative")
        if declared_size > self._max_bytes:
            raise self._reject(f"File too large. Maximum size is {self._max_bytes} bytes")

    @staticmethod
    def _reject(reason: str) -> InvalidInputError:
        Log.warning(f"Upload rejected: {reason}")
        return InvalidInputError(reason)
