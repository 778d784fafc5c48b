"""Content type sniffing for local files.

Used by the CLI to label files it uploads. Detection looks at magic bytes
first and falls back to the filename. The storage services never use this:
they trust the caller's content type and do not inspect bytes.
"""

from __future__ import annotations

import mimetypes
from pathlib import Path
from typing import Final

OCTET_STREAM: Final[str] = "application/octet-stream"

# Format: (magic_bytes, offset, content_type)
_MAGIC_SIGNATURES: Final[list[tuple[bytes, int, str]]] = [
    # Images
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    (b"BM", 0, "image/bmp"),
    (b"II*\x00", 0, "image/tiff"),  # little-endian
    (b"MM\x00*", 0, "image/tiff"),  # big-endian
    (b"\x00\x00\x01\x00", 0, "image/vnd.microsoft.icon"),
    # Video
    (b"\x1aE\xdf\xa3", 0, "video/webm"),  # EBML (WebM/MKV)
    (b"FLV\x01", 0, "video/x-flv"),
    (b"\x00\x00\x01\xba", 0, "video/mpeg"),
    (b"\x00\x00\x01\xb3", 0, "video/mpeg"),
]

# RIFF container subtypes at offset 8
_RIFF_TYPES: Final[dict[bytes, str]] = {
    b"WEBP": "image/webp",
    b"AVI ": "video/x-msvideo",
    b"WAVE": "audio/wav",
}

# ISO base media (ftyp) brands
_FTYP_BRANDS: Final[dict[bytes, str]] = {
    b"heic": "image/heic",
    b"heix": "image/heic",
    b"hevc": "image/heic-sequence",
    b"mif1": "image/heif",
    b"msf1": "image/heif-sequence",
    b"avif": "image/avif",
    b"qt  ": "video/quicktime",
    b"M4V ": "video/x-m4v",
    b"M4VP": "video/x-m4v",
    b"3gp4": "video/3gpp",
    b"3gp5": "video/3gpp",
    b"M4A ": "audio/mp4",
}

# Minimum bytes needed for reliable magic byte detection
HEADER_SIZE: Final[int] = 32


def sniff_content_type(data: bytes, *, filename: str | None = None) -> str:
    """Guess the MIME type of content.

    Args:
        data: File content, or at least its first HEADER_SIZE bytes.
        filename: Optional name used when the bytes are inconclusive.

    Returns:
        A MIME type, ``application/octet-stream`` when nothing matches.
    """
    content_type = _detect_by_magic(data) if data else None
    if content_type is None and filename:
        content_type, _ = mimetypes.guess_type(filename, strict=False)
    return content_type or OCTET_STREAM


def sniff_content_type_from_path(path: str | Path) -> str:
    """Guess the MIME type of a file on disk from its header and name.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        PermissionError: If the file can't be read.
    """
    path = Path(path)
    with path.open("rb") as f:
        header = f.read(HEADER_SIZE)
    return sniff_content_type(header, filename=path.name)


def _detect_by_magic(data: bytes) -> str | None:
    if data.startswith(b"RIFF") and len(data) >= 12:
        return _RIFF_TYPES.get(data[8:12])

    ftyp = _check_ftyp(data)
    if ftyp is not None:
        return ftyp

    for magic, offset, content_type in _MAGIC_SIGNATURES:
        if data[offset : offset + len(magic)] == magic:
            return content_type
    return None


def _check_ftyp(data: bytes) -> str | None:
    """ISO base media file format: size (4) + 'ftyp' (4) + major brand (4)."""
    if len(data) < 12 or data[4:8] != b"ftyp":
        return None
    # Unknown brands are nearly always some flavour of MP4
    return _FTYP_BRANDS.get(data[8:12], "video/mp4")
