import re
import secrets

from media_ingest.intake.signatures import extension_for

_ID_PATTERN = re.compile(r"[0-9a-f]{32}")


class IdentityAllocator:
    """Issues opaque artifact identifiers drawn from a 128-bit random space."""

    ID_BYTES = 16

    def new_id(self) -> str:
        return secrets.token_hex(self.ID_BYTES)

    def filename_for(self, artifact_id: str, mime_type: str) -> str:
        """Storage filename ``<id><ext>``; the client's filename never contributes."""
        return f"{artifact_id}{extension_for(mime_type)}"

    @staticmethod
    def is_valid_id(value: str) -> bool:
        return bool(_ID_PATTERN.fullmatch(value))
