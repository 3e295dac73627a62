"""
app/errors.py
-----------------------------------------------------------------------------
Exception taxonomy for the download pipeline.

Every failure the pipeline can report derives from ``DownloadError`` and
carries a short, human-readable ``message``.  The route handler in
``main.py`` renders that message verbatim as ``Error: <message>``.

Fatal vs. recoverable
---------------------
- ``BadInput``, ``NotFoundOrUnshared``, ``PayloadFetchFailed`` and
  ``AssemblyFailed`` abort the whole request.  They are never retried.
- ``AssetUnavailable`` is recovered locally by ``pipeline.fetch_assets``:
  the failure is logged and the asset is left out of the archive.
"""

from __future__ import annotations


class DownloadError(Exception):
    """Base class for every error surfaced to the person downloading."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadInput(DownloadError):
    """The submitted text contains no project identifier."""


class NotFoundOrUnshared(DownloadError):
    """The metadata endpoint refused the project (deleted, private, missing)."""


class PayloadFetchFailed(DownloadError):
    """The project payload could not be retrieved or decoded."""


class AssetUnavailable(DownloadError):
    """Every asset mirror failed for one filename."""

    def __init__(self, filename: str) -> None:
        super().__init__(f"Failed to download {filename}")
        self.filename = filename


class AssemblyFailed(DownloadError):
    """The .sb3 archive could not be serialised."""
