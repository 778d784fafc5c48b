"""Identifier generation for stored files.

Two independent random draws per file: an internal id that names the blob
on disk, and a public token that is the only identifier ever shared.
Neither is derived from the other, from the filename, or from the content.
"""

from __future__ import annotations

import os
import secrets
import uuid
from uuid import UUID

DEFAULT_TOKEN_BYTES = 16
MIN_TOKEN_BYTES = 8


def new_internal_id() -> UUID:
    """Return a random (version 4) UUID for a new record."""
    return uuid.uuid4()


def new_public_token(nbytes: int = DEFAULT_TOKEN_BYTES) -> str:
    """Return a hex token drawn from the OS CSPRNG.

    Args:
        nbytes: Random bytes in the token; at least 8 (64 bits).

    Raises:
        ValueError: If nbytes is too small to be unguessable.
    """
    if nbytes < MIN_TOKEN_BYTES:
        raise ValueError(f"Public tokens need at least {MIN_TOKEN_BYTES} random bytes, got {nbytes}")
    return secrets.token_hex(nbytes)


def file_extension(original_name: str) -> str:
    """Extension of the basename, verbatim, with its leading dot.

    ``"clip.MP4"`` -> ``".MP4"``, ``"archive.tar.gz"`` -> ``".gz"``,
    ``"README"`` and ``".bashrc"`` -> ``""``.
    """
    # Accept either separator so client-side Windows paths behave the same
    basename = original_name.replace("\\", "/").rsplit("/", 1)[-1]
    return os.path.splitext(basename)[1]


def stored_name_for(internal_id: UUID | str, original_name: str) -> str:
    return f"{internal_id}{file_extension(original_name)}"
