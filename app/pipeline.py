"""
app/pipeline.py
-----------------------------------------------------------------------------
The retrieval → sanitise → package pipeline behind ``POST /download``.

State machine
-------------
::

    RESOLVING_TOKEN → FETCHING_PAYLOAD ─┬─→ RETURN_ARCHIVE_VERBATIM ──→ DONE
                                        └─→ SANITIZING
                                            → COLLECTING_ASSETS
                                            → FETCHING_ASSETS
                                            → ASSEMBLING ─────────────→ DONE

Any state may end in FAILED, in which case a ``DownloadError`` propagates to
the caller carrying the message shown to the user.

Concurrency
-----------
Each request runs as one task.  Asset downloads are split into batches of
``ASSET_BATCH_SIZE``; the fetches inside a batch run concurrently under
``asyncio.gather`` and the next batch starts only after every fetch in the
current one has settled.  Results are collected into an ordered outcome list
and handed to the archive assembler once all batches are done, so no
structure is mutated from concurrent tasks.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from enum import Enum

import httpx

from app.archive import build_sb3_archive, is_archive, serialise_document
from app.asset_collector import ASSET_BATCH_SIZE, chunked, collect_assets
from app.errors import AssetUnavailable, BadInput, DownloadError, PayloadFetchFailed
from app.sanitizer import sanitize_project
from app.schema import AssetDescriptor, DownloadResult
from app.scratch_client import fetch_asset, fetch_project_payload, resolve_project_token

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"[0-9]+")


class PipelineState(str, Enum):
    RESOLVING_TOKEN = "resolving_token"
    FETCHING_PAYLOAD = "fetching_payload"
    RETURN_ARCHIVE_VERBATIM = "return_archive_verbatim"
    SANITIZING = "sanitizing"
    COLLECTING_ASSETS = "collecting_assets"
    FETCHING_ASSETS = "fetching_assets"
    ASSEMBLING = "assembling"
    DONE = "done"
    FAILED = "failed"


# -----------------------------------------------------------------------------
# Identifier extraction
# -----------------------------------------------------------------------------


def extract_project_id(text: str) -> int:
    """
    Return the first run of digits in ``text`` as a project identifier.

    Accepts full links (``https://scratch.mit.edu/projects/104``), TurboWarp
    links, or a bare number.

    Raises
    ------
    BadInput : If ``text`` contains no digits.
    """
    match = _DIGITS.search(text or "")
    if match is None:
        raise BadInput("Could not find a project ID.")
    return int(match.group(0))


# -----------------------------------------------------------------------------
# Batched asset fetching
# -----------------------------------------------------------------------------


async def _fetch_outcome(client: httpx.AsyncClient, filename: str) -> tuple[str, bytes | None]:
    try:
        content = await fetch_asset(client, filename)
    except AssetUnavailable as exc:
        logger.error("Could not download asset %s: %s", filename, exc.message)
        return filename, None
    logger.debug("Downloaded: %s", filename)
    return filename, content


async def fetch_assets(
    client: httpx.AsyncClient,
    assets: list[tuple[str, AssetDescriptor]],
    batch_size: int = ASSET_BATCH_SIZE,
) -> list[tuple[str, bytes | None]]:
    """
    Download every asset in ``assets``, one batch at a time.

    Parameters
    ----------
    client     : Request-scoped async HTTP client.
    assets     : Output of :func:`app.asset_collector.collect_assets`.
    batch_size : Maximum number of downloads in flight at once.

    Returns
    -------
    list[tuple[str, bytes | None]] : One outcome per asset, in input order.
    ``None`` marks an asset no mirror could provide.
    """
    outcomes: list[tuple[str, bytes | None]] = []

    for batch in chunked(assets, batch_size):
        results = await asyncio.gather(
            *(_fetch_outcome(client, filename) for filename, _ in batch)
        )
        outcomes.extend(results)

    return outcomes


# -----------------------------------------------------------------------------
# Orchestration
# -----------------------------------------------------------------------------


def _enter(state: PipelineState, project_id: int) -> PipelineState:
    logger.debug("Project %d: %s", project_id, state.value)
    return state


def _parse_document(payload: bytes) -> dict:
    try:
        document = json.loads(payload.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise PayloadFetchFailed("Project data is not valid JSON.") from exc
    if not isinstance(document, dict):
        raise PayloadFetchFailed("Project data is not valid JSON.")
    return document


async def download_project(
    project_id: int,
    client: httpx.AsyncClient | None = None,
    batch_size: int = ASSET_BATCH_SIZE,
) -> DownloadResult:
    """
    Run the full pipeline for one project and return the archive.

    When ``client`` is None a fresh ``httpx.AsyncClient`` is created for this
    request and closed before returning.

    Raises
    ------
    NotFoundOrUnshared, PayloadFetchFailed, AssemblyFailed
        Fatal errors; the message is meant for the end user.
    """
    if client is None:
        async with httpx.AsyncClient(follow_redirects=True) as own_client:
            return await download_project(project_id, own_client, batch_size)

    state = _enter(PipelineState.RESOLVING_TOKEN, project_id)
    try:
        token = await resolve_project_token(client, project_id)

        state = _enter(PipelineState.FETCHING_PAYLOAD, project_id)
        payload = await fetch_project_payload(client, project_id, token)

        if is_archive(payload):
            state = _enter(PipelineState.RETURN_ARCHIVE_VERBATIM, project_id)
            logger.info("Project %d: server returned a complete .sb3 file.", project_id)
            _enter(PipelineState.DONE, project_id)
            return DownloadResult(project_id=project_id, content=payload, verbatim=True)

        state = _enter(PipelineState.SANITIZING, project_id)
        logger.info("Project %d: server returned JSON, sanitising.", project_id)
        document = _parse_document(payload)
        repaired = sanitize_project(document)

        state = _enter(PipelineState.COLLECTING_ASSETS, project_id)
        assets = collect_assets(document)
        logger.info("Project %d: found %d asset(s) to download.", project_id, len(assets))

        state = _enter(PipelineState.FETCHING_ASSETS, project_id)
        outcomes = await fetch_assets(client, assets, batch_size)
        downloaded = [(name, content) for name, content in outcomes if content is not None]
        missing = [name for name, content in outcomes if content is None]
        if missing:
            logger.warning(
                "Project %d: %d asset(s) missing from the archive.", project_id, len(missing)
            )

        state = _enter(PipelineState.ASSEMBLING, project_id)
        content = build_sb3_archive(serialise_document(document), downloaded)
    except DownloadError as exc:
        logger.warning(
            "Project %d failed while %s: %s", project_id, state.value, exc.message
        )
        _enter(PipelineState.FAILED, project_id)
        raise

    _enter(PipelineState.DONE, project_id)
    return DownloadResult(
        project_id=project_id,
        content=content,
        asset_count=len(assets),
        downloaded=[name for name, _ in downloaded],
        missing=missing,
        repaired_inputs=repaired,
    )
