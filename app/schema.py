"""
app/schema.py
-----------------------------------------------------------------------------
Pydantic v2 models for the data that flows through the download pipeline
and the status API.

Design principles
-----------------
• Keep models thin – no network or archive logic here.
• ``AssetDescriptor`` mirrors the costume / sound entries of a Scratch 3
  ``project.json``.  Unknown keys are kept (``extra="allow"``) because the
  descriptor is only ever *read* – the document itself is written back
  untouched apart from input repairs.
• Every field has a ``description`` so FastAPI's OpenAPI UI is useful.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# -----------------------------------------------------------------------------
# Project document primitives
# -----------------------------------------------------------------------------


class AssetDescriptor(BaseModel):
    """
    A costume or sound entry from a Target.

    Scratch 3 descriptors normally carry ``md5ext`` (``"<md5>.<ext>"``).
    Older or hand-edited projects sometimes only provide ``assetId`` and
    ``dataFormat``, in which case the filename is synthesised from both.
    """

    # Numeric ids and formats are read as strings; only the filename fields
    # have to be usable.
    model_config = ConfigDict(extra="allow", populate_by_name=True, coerce_numbers_to_str=True)

    name: Any = Field(
        default=None,
        description="Display name of the costume or sound.  Not used for the filename.",
    )
    asset_id: str | None = Field(
        default=None,
        alias="assetId",
        description="MD5 of the asset content, without extension.",
    )
    data_format: str | None = Field(
        default=None,
        alias="dataFormat",
        description="File extension of the asset (e.g. 'svg', 'png', 'wav').",
    )
    md5ext: str | None = Field(
        default=None,
        description="Combined '<assetId>.<dataFormat>' filename, when present.",
    )

    @property
    def filename(self) -> str | None:
        """
        Canonical archive filename for this asset.

        ``md5ext`` wins when present; otherwise ``assetId`` + ``dataFormat``.
        Returns None when neither form is available.
        """
        if self.md5ext:
            return self.md5ext
        if self.asset_id and self.data_format:
            return f"{self.asset_id}.{self.data_format}"
        return None


# -----------------------------------------------------------------------------
# Pipeline result
# -----------------------------------------------------------------------------


class DownloadResult(BaseModel):
    """
    Everything the route handler needs to answer one download request.

    ``content`` holds the final ``.sb3`` bytes.  When ``verbatim`` is True the
    upstream payload was already a complete archive and is returned as-is;
    the asset counters are then all zero.
    """

    project_id: int = Field(..., ge=0, description="Numeric project identifier.")
    content: bytes = Field(..., description="Serialised .sb3 archive bytes.")
    verbatim: bool = Field(
        default=False,
        description="True when the upstream payload was already an archive.",
    )
    asset_count: int = Field(
        default=0,
        ge=0,
        description="Number of unique asset filenames referenced by the project.",
    )
    downloaded: list[str] = Field(
        default_factory=list,
        description="Asset filenames written into the archive.",
    )
    missing: list[str] = Field(
        default_factory=list,
        description="Asset filenames that no mirror could provide.",
    )
    repaired_inputs: int = Field(
        default=0,
        ge=0,
        description="Number of block inputs rewritten by the sanitizer.",
    )

    @property
    def filename(self) -> str:
        """Download filename hint, ``<project_id>.sb3``."""
        return f"{self.project_id}.sb3"


# -----------------------------------------------------------------------------
# GET /api/status  response
# -----------------------------------------------------------------------------


class StatusResponse(BaseModel):
    """Static service information for health checks and the UI footer."""

    service: str = Field(..., description="Service name.")
    version: str = Field(..., description="Version string from pyproject.toml.")
    metadata_host: str = Field(..., description="Base URL of the metadata endpoint.")
    projects_host: str = Field(..., description="Base URL of the payload endpoint.")
    asset_mirrors: list[str] = Field(
        ...,
        description="Asset mirror URL templates, in the order they are tried.",
    )
    batch_size: int = Field(
        ...,
        ge=1,
        description="Maximum number of asset downloads in flight at once.",
    )
