"""Shared fixtures for the SB3 Fetch test suite."""

from __future__ import annotations

import io
import zipfile

import pytest
from fastapi.testclient import TestClient

from app.main import app


@pytest.fixture()
def client() -> TestClient:
    """FastAPI test client."""
    return TestClient(app)


@pytest.fixture()
def sample_project() -> dict:
    """A small project.json with a stage, one sprite, and one broken input."""
    return {
        "targets": [
            {
                "isStage": True,
                "name": "Stage",
                "blocks": {},
                "costumes": [
                    {"name": "backdrop1", "assetId": "bd01", "dataFormat": "svg", "md5ext": "bd01.svg"},
                ],
                "sounds": [
                    {"name": "pop", "assetId": "pop01", "dataFormat": "wav", "md5ext": "pop01.wav"},
                ],
            },
            {
                "isStage": False,
                "name": "Sprite1",
                "blocks": {
                    "b1": {
                        "opcode": "motion_movesteps",
                        "inputs": {"STEPS": 5},
                        "fields": {},
                    },
                },
                "costumes": [
                    {"name": "costume1", "assetId": "abc123", "dataFormat": "svg", "md5ext": "abc123.svg"},
                ],
                "sounds": [
                    {"name": "pop", "assetId": "pop01", "dataFormat": "wav", "md5ext": "pop01.wav"},
                ],
            },
        ],
        "monitors": [],
        "extensions": [],
        "meta": {"semver": "3.0.0"},
    }


@pytest.fixture()
def sb3_bytes() -> bytes:
    """A tiny but valid .sb3 archive, as the payload endpoint may return it."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, mode="w") as zf:
        zf.writestr("project.json", '{"targets":[]}')
    return buffer.getvalue()
