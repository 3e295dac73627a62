"""
app/archive.py
-----------------------------------------------------------------------------
.sb3 archive utilities.

An ``.sb3`` file is a plain zip archive with a flat layout::

    project.json
    <md5>.svg
    <md5>.png
    <md5>.wav
    ...

Sections
--------
1. **Detection**: recognise a payload that is already a finished archive.
2. **Assembly**: write ``project.json`` plus the downloaded assets into a
   compressed zip and return its bytes.
"""

from __future__ import annotations

import io
import json
import zipfile
from typing import Iterable

from app.errors import AssemblyFailed

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Entry name the Scratch runtime looks for at the archive root.
PROJECT_JSON_NAME: str = "project.json"

# Local file header signature of a zip archive ("PK").
ZIP_MAGIC: bytes = b"\x50\x4b"


# ---------------------------------------------------------------------------
# Section 1: Detection
# ---------------------------------------------------------------------------


def is_archive(payload: bytes) -> bool:
    """
    Return True when ``payload`` starts with the zip magic number.

    Only the first two bytes are inspected; nothing else is sniffed.
    """
    return payload[:2] == ZIP_MAGIC


# ---------------------------------------------------------------------------
# Section 2: Assembly
# ---------------------------------------------------------------------------


def serialise_document(document: dict) -> bytes:
    """
    Encode a project document as compact JSON.

    Non-ASCII characters are written as ``\\uXXXX`` escapes, so strings that
    hold a lone surrogate (a truncated emoji, for instance) still encode.

    Raises
    ------
    AssemblyFailed : If the document holds values JSON cannot represent.
    """
    try:
        text = json.dumps(document, ensure_ascii=True, separators=(",", ":"))
    except (TypeError, ValueError) as exc:
        raise AssemblyFailed(f"Failed to serialise project.json: {exc}") from exc
    return text.encode("ascii")


def build_sb3_archive(project_json: bytes, assets: Iterable[tuple[str, bytes]]) -> bytes:
    """
    Bundle a project document and its assets into an ``.sb3`` archive.

    Entries are stored with flat names (no directory entries), the document
    first, then the assets in the order given.

    Parameters
    ----------
    project_json : Encoded ``project.json`` content.
    assets       : ``(filename, content)`` pairs for every asset that was
                   downloaded successfully.

    Returns
    -------
    bytes : Raw zip bytes, ready to stream to the client.

    Raises
    ------
    AssemblyFailed : If the archive cannot be written (bad entry name,
                     duplicate entry, I/O failure inside ``zipfile``).
    """
    buffer = io.BytesIO()
    written: set[str] = {PROJECT_JSON_NAME}

    try:
        with zipfile.ZipFile(buffer, mode="w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(PROJECT_JSON_NAME, project_json)
            for filename, content in assets:
                # Reject names that would create directories or duplicates.
                if not filename or "/" in filename or "\\" in filename:
                    raise ValueError(f"invalid asset entry name {filename!r}")
                if filename in written:
                    raise ValueError(f"duplicate archive entry {filename!r}")
                zf.writestr(filename, content)
                written.add(filename)
    except (zipfile.BadZipFile, OSError, ValueError) as exc:
        raise AssemblyFailed(f"Failed to build project archive: {exc}") from exc

    return buffer.getvalue()
