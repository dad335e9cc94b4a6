"""Byte-signature sniffing for the image families the pipeline accepts."""

MIME_ALIASES: dict[str, str] = {
    "image/jpg": "image/jpeg",
    "image/pjpeg": "image/jpeg",
}

EXTENSIONS: dict[str, str] = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
}

# Longest signature needed to classify any supported type.
SIGNATURE_PROBE_BYTES = 12

_PREFIX_SIGNATURES: list[tuple[bytes, str]] = [
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
]


def canonical_mime(mime_type: str | None) -> str:
    """Lowercase, drop parameters and resolve aliases like ``image/jpg``."""
    if not mime_type:
        return ""
    base = mime_type.split(";", 1)[0].strip().lower()
    return MIME_ALIASES.get(base, base)


def sniff_image_type(head: bytes) -> str | None:
    """Return the canonical MIME type implied by the leading bytes, if any."""
    for signature, mime in _PREFIX_SIGNATURES:
        if head.startswith(signature):
            return mime
    if len(head) >= 12 and head[:4] == b"RIFF" and head[8:12] == b"WEBP":
        return "image/webp"
    return None


def extension_for(mime_type: str) -> str:
    """File extension (with leading dot) for a verified MIME type.

    Raises:
        KeyError: if the type is not one the pipeline produces.
    """
    return EXTENSIONS[canonical_mime(mime_type)]
