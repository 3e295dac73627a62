"""
app/asset_collector.py
-----------------------------------------------------------------------------
Find every costume and sound a project references, deduplicate them by
filename, and split them into download batches.

No network activity happens here; ``pipeline.fetch_assets`` consumes the
output.
"""

from __future__ import annotations

import logging
from typing import Iterator, TypeVar

from pydantic import ValidationError

from app.archive import PROJECT_JSON_NAME
from app.schema import AssetDescriptor

logger = logging.getLogger(__name__)

# Number of asset downloads allowed in flight at once.
ASSET_BATCH_SIZE: int = 10

T = TypeVar("T")


def asset_filename(descriptor: AssetDescriptor) -> str | None:
    """Return the archive filename for ``descriptor`` (see ``AssetDescriptor.filename``)."""
    return descriptor.filename


def collect_assets(document: dict) -> list[tuple[str, AssetDescriptor]]:
    """
    Return the unique ``(filename, descriptor)`` pairs referenced by a project.

    Encounter order is target order, then costumes before sounds within a
    target.  When two descriptors resolve to the same filename the last one
    seen is kept, at the position where the filename first appeared.

    Descriptors that are not objects, that have neither ``md5ext`` nor
    ``assetId`` + ``dataFormat``, or whose filename would clash with
    ``project.json`` or nest a directory in the archive are skipped with a
    warning.

    Parameters
    ----------
    document : Parsed (and normally sanitised) ``project.json``.

    Returns
    -------
    list[tuple[str, AssetDescriptor]] : Ordered, one entry per filename.
    """
    unique: dict[str, AssetDescriptor] = {}

    for target in document.get("targets") or []:
        if not isinstance(target, dict):
            continue
        entries = list(target.get("costumes") or []) + list(target.get("sounds") or [])

        for raw in entries:
            try:
                descriptor = AssetDescriptor.model_validate(raw)
            except ValidationError as exc:
                logger.warning(
                    "Skipping malformed asset in target %r: %s",
                    target.get("name"),
                    exc.errors()[0].get("msg", "invalid"),
                )
                continue

            filename = asset_filename(descriptor)
            if filename is None:
                logger.warning(
                    "Skipping asset %r in target %r: no md5ext or assetId/dataFormat.",
                    descriptor.name,
                    target.get("name"),
                )
                continue

            if not _is_flat_entry_name(filename):
                logger.warning(
                    "Skipping asset %r in target %r: unusable filename %r.",
                    descriptor.name,
                    target.get("name"),
                    filename,
                )
                continue

            unique[filename] = descriptor

    return list(unique.items())


def _is_flat_entry_name(filename: str) -> bool:
    return (
        filename != PROJECT_JSON_NAME
        and "/" not in filename
        and "\\" not in filename
        and filename not in {".", ".."}
    )


def chunked(items: list[T], size: int = ASSET_BATCH_SIZE) -> Iterator[list[T]]:
    """
    Yield consecutive slices of ``items`` holding at most ``size`` elements.

    Raises
    ------
    ValueError : If ``size`` is less than 1.
    """
    if size < 1:
        raise ValueError(f"batch size must be at least 1, got {size}")
    for start in range(0, len(items), size):
        yield items[start : start + size]
