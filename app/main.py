"""
app/main.py
-----------------------------------------------------------------------------
FastAPI application entrypoint for SB3 Fetch.

This module is a **thin routing layer**: each route handler delegates to
the pipeline and turns its result into an HTTP response.  All business
logic lives in dedicated modules:

Domain modules
~~~~~~~~~~~~~~
- ``app.scratch_client``  – Async HTTP wrapper around the Scratch endpoints.
- ``app.sanitizer``       – Block-input repair for project.json.
- ``app.asset_collector`` – Asset discovery, deduplication, batching.
- ``app.archive``         – Archive detection and .sb3 assembly.
- ``app.pipeline``        – Identifier extraction and orchestration.
- ``app.schema``          – Pydantic v2 models.
- ``app.errors``          – ``DownloadError`` hierarchy.

Run with:
    uvicorn app.main:app --reload --host 127.0.0.1 --port 3000
or:
    python -m app.main          (honours HOST / PORT / LOG_LEVEL)

Endpoints
---------
GET  /            → serves index.html (one form)
POST /download    → form field ``projectLink``; returns the .sb3 or
                    ``Error: <message>`` as plain text
GET  /api/status  → static service information

Architecture notes
------------------
- ``/download`` is an ``async def`` route so the many outbound requests of
  one download share the event loop with other requests.
- Failures are answered with HTTP 200 and a plain-text ``Error: ...`` line;
  the form posts straight to the route, so the browser shows the message
  as the page body.
"""

from __future__ import annotations

import io
import logging
import os
import tomllib
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI, Form
from fastapi.responses import HTMLResponse, PlainTextResponse, StreamingResponse
from fastapi.templating import Jinja2Templates
from starlette.requests import Request

from app.asset_collector import ASSET_BATCH_SIZE
from app.errors import DownloadError
from app.pipeline import download_project, extract_project_id
from app.schema import StatusResponse
from app.scratch_client import ASSET_MIRRORS, SCRATCH_API_HOST, SCRATCH_PROJECTS_HOST

# -----------------------------------------------------------------------------
# Bootstrap
# -----------------------------------------------------------------------------

load_dotenv()

logger = logging.getLogger(__name__)

# Resolve paths relative to this file so the app works regardless of the
# working directory from which uvicorn is launched.
_HERE = Path(__file__).parent
_TEMPLATES_DIR = _HERE / "templates"

_HOST: str = os.getenv("HOST", "127.0.0.1")
_PORT: int = int(os.getenv("PORT", "3000"))
_LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

# Read version from pyproject.toml (single source of truth).
_PYPROJECT = _HERE.parent / "pyproject.toml"
with open(_PYPROJECT, "rb") as _f:
    _APP_VERSION: str = tomllib.load(_f)["project"]["version"]

# -----------------------------------------------------------------------------
# FastAPI app
# -----------------------------------------------------------------------------

app = FastAPI(
    title="SB3 Fetch",
    description=(
        "Download a Scratch project as a self-contained .sb3 archive, "
        "with malformed block inputs repaired."
    ),
    version=_APP_VERSION,
)

# Jinja2 for the single HTML page.
templates = Jinja2Templates(directory=str(_TEMPLATES_DIR))


def _error_response(message: str) -> PlainTextResponse:
    return PlainTextResponse(f"Error: {message}")


# -----------------------------------------------------------------------------
# Routes
# -----------------------------------------------------------------------------


@app.get("/", response_class=HTMLResponse, include_in_schema=False)
def index(request: Request) -> HTMLResponse:
    """Serve the page with the project link form."""
    return templates.TemplateResponse(
        request,
        "index.html",
        {"app_version": _APP_VERSION},
    )


@app.post("/download", summary="Download a project as an .sb3 archive")
async def download(project_link: str = Form(default="", alias="projectLink")):
    """
    Extract a project id from the submitted link and stream back the archive.

    Parameters
    ----------
    project_link : Free text from the form.  The first run of digits is
                   used as the project identifier.

    Returns
    -------
    StreamingResponse with ``Content-Disposition: attachment; filename=<id>.sb3``
    on success, otherwise a ``PlainTextResponse`` reading ``Error: <message>``.
    """
    try:
        project_id = extract_project_id(project_link)
    except DownloadError as exc:
        return _error_response(exc.message)

    logger.info("Processing ID: %d", project_id)

    try:
        result = await download_project(project_id)
    except DownloadError as exc:
        return _error_response(exc.message)
    except Exception as exc:
        # Anything unexpected is still answered in the same plain-text form
        # so the user sees a message instead of a bare 500 page.
        logger.exception("Unexpected failure downloading project %d", project_id)
        return _error_response(str(exc))

    if result.missing:
        logger.info(
            "Project %d served with %d of %d asset(s).",
            project_id,
            len(result.downloaded),
            result.asset_count,
        )

    return StreamingResponse(
        io.BytesIO(result.content),
        media_type="application/zip",
        headers={
            "Content-Disposition": f"attachment; filename={result.filename}",
        },
    )


@app.get("/api/status", response_model=StatusResponse, summary="Service information")
def status() -> StatusResponse:
    """Return the version and the upstream endpoints this instance talks to."""
    return StatusResponse(
        service="sb3-fetch",
        version=_APP_VERSION,
        metadata_host=SCRATCH_API_HOST,
        projects_host=SCRATCH_PROJECTS_HOST,
        asset_mirrors=list(ASSET_MIRRORS),
        batch_size=ASSET_BATCH_SIZE,
    )


def main() -> None:
    """Console entry point: run the app under uvicorn."""
    import uvicorn

    logging.basicConfig(
        level=_LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info("Server running on port %d", _PORT)
    uvicorn.run(app, host=_HOST, port=_PORT, log_level=_LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
