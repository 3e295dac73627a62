"""
app/scratch_client.py
-----------------------------------------------------------------------------
Thin asynchronous wrapper around the Scratch project and asset endpoints.

Why asynchronous?
-----------------
A single download request fans out to many asset fetches.  Using
``httpx.AsyncClient`` lets one request's fetches overlap on the event loop
without a thread per connection, and lets independent requests to this
service proceed while one of them waits on the network.

Endpoint reference
------------------
GET {SCRATCH_API_HOST}/projects/{id}
    → {"id": ..., "title": ..., "project_token": "<opaque>", ...}
    Non-2xx for deleted, private, or nonexistent projects.

GET {SCRATCH_PROJECTS_HOST}/{id}?token=<project_token>
    → raw bytes: either a complete .sb3 zip (starts with b"PK") or the
      project.json document as UTF-8.

GET https://assets.scratch.mit.edu/internalapi/asset/{filename}/get/
GET https://cdn.assets.scratch.mit.edu/internalapi/asset/{filename}/get/
    → asset bytes.  Both mirrors expect a browser User-Agent and a
      scratch.mit.edu Referer.

Environment variables
---------------------
SCRATCH_API_HOST      – metadata endpoint base (default https://api.scratch.mit.edu).
SCRATCH_PROJECTS_HOST – payload endpoint base (default https://projects.scratch.mit.edu).

Both are read once at import time so the value is consistent for the
lifetime of the process.

Error handling
--------------
Nothing here retries.  Metadata and payload failures are raised as
``NotFoundOrUnshared`` / ``PayloadFetchFailed`` and end the request.  Asset
failures fall through to the next mirror and only raise ``AssetUnavailable``
once every mirror has failed.
"""

from __future__ import annotations

import logging
import os
from typing import Callable

import httpx
from dotenv import load_dotenv

from app.errors import AssetUnavailable, NotFoundOrUnshared, PayloadFetchFailed

# Load .env if present (no-op if the file doesn't exist)
load_dotenv()

logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

# Strip any trailing slash so we can safely append paths.
SCRATCH_API_HOST: str = os.getenv("SCRATCH_API_HOST", "https://api.scratch.mit.edu").rstrip("/")
SCRATCH_PROJECTS_HOST: str = os.getenv(
    "SCRATCH_PROJECTS_HOST", "https://projects.scratch.mit.edu"
).rstrip("/")

# Asset mirrors in priority order.  ``{filename}`` is the md5ext.
ASSET_MIRRORS: tuple[str, ...] = (
    "https://assets.scratch.mit.edu/internalapi/asset/{filename}/get/",
    "https://cdn.assets.scratch.mit.edu/internalapi/asset/{filename}/get/",
)

# The asset CDN rejects requests that do not look like they come from the
# Scratch website.
ASSET_HEADERS: dict[str, str] = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    ),
    "Referer": "https://scratch.mit.edu/",
}


def _build_mirror(template: str) -> Callable[[str], str]:
    return lambda filename: template.format(filename=filename)


# -----------------------------------------------------------------------------
# Project resolver
# -----------------------------------------------------------------------------


async def resolve_project_token(client: httpx.AsyncClient, project_id: int) -> str:
    """
    Fetch the short-lived ``project_token`` for ``project_id``.

    Parameters
    ----------
    client     : Request-scoped async HTTP client.
    project_id : Numeric Scratch project identifier.

    Returns
    -------
    str : The opaque token to pass to :func:`fetch_project_payload`.

    Raises
    ------
    NotFoundOrUnshared : On transport errors, non-2xx responses, an
                         unparseable body, or a missing token.
    """
    url = f"{SCRATCH_API_HOST}/projects/{project_id}"

    try:
        response = await client.get(url)
    except httpx.HTTPError as exc:
        logger.warning("Metadata request for project %d failed: %s", project_id, exc)
        raise NotFoundOrUnshared("Project not found or unshared.") from exc

    if not response.is_success:
        logger.info(
            "Metadata endpoint returned HTTP %d for project %d.",
            response.status_code,
            project_id,
        )
        raise NotFoundOrUnshared("Project not found or unshared.")

    try:
        metadata = response.json()
    except ValueError as exc:
        raise NotFoundOrUnshared("Project not found or unshared.") from exc

    token = metadata.get("project_token") if isinstance(metadata, dict) else None
    if not token:
        logger.warning("Metadata for project %d carries no project_token.", project_id)
        raise NotFoundOrUnshared("Project not found or unshared.")

    return str(token)


async def fetch_project_payload(client: httpx.AsyncClient, project_id: int, token: str) -> bytes:
    """
    Download the raw project payload using a token from
    :func:`resolve_project_token`.

    The payload is returned untouched; the caller decides whether it is a
    finished archive or a JSON document.

    Raises
    ------
    PayloadFetchFailed : On transport errors or non-2xx responses.
    """
    url = f"{SCRATCH_PROJECTS_HOST}/{project_id}"

    try:
        response = await client.get(url, params={"token": token})
    except httpx.HTTPError as exc:
        logger.warning("Payload request for project %d failed: %s", project_id, exc)
        raise PayloadFetchFailed("Failed to fetch project data.") from exc

    if not response.is_success:
        logger.info(
            "Payload endpoint returned HTTP %d for project %d.",
            response.status_code,
            project_id,
        )
        raise PayloadFetchFailed("Failed to fetch project data.")

    return response.content


# -----------------------------------------------------------------------------
# Asset fetcher
# -----------------------------------------------------------------------------


async def fetch_asset(client: httpx.AsyncClient, filename: str) -> bytes:
    """
    Download one asset, trying each mirror in :data:`ASSET_MIRRORS` order.

    The first 2xx response wins.  Transport errors and non-2xx responses are
    logged at DEBUG and the next mirror is tried.

    Parameters
    ----------
    client   : Request-scoped async HTTP client.
    filename : Content-addressed asset filename, e.g. ``"abc123.svg"``.

    Returns
    -------
    bytes : The asset body.

    Raises
    ------
    AssetUnavailable : When every mirror failed.
    """
    for build_url in (_build_mirror(template) for template in ASSET_MIRRORS):
        url = build_url(filename)
        try:
            response = await client.get(url, headers=ASSET_HEADERS)
        except httpx.HTTPError as exc:
            logger.debug("Mirror %s failed for %s: %s", url, filename, exc)
            continue

        if response.is_success:
            return response.content

        logger.debug("Mirror %s returned HTTP %d for %s.", url, response.status_code, filename)

    raise AssetUnavailable(filename)
