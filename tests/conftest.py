"""Shared test fixtures for Bundlecraft."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from bundlecraft.assembly.context import AssemblyContext
from bundlecraft.config import reset_settings

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def _clean_settings(monkeypatch):
    """Keep BUNDLECRAFT_* env vars and cached settings out of every test."""
    for key in list(os.environ):
        if key.startswith("BUNDLECRAFT_"):
            monkeypatch.delenv(key, raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def fixtures_dir():
    return FIXTURES_DIR


@pytest.fixture
def catalog():
    """A small apparel catalog with collections and product types."""
    return {
        "collections": [
            {"id": "c1", "title": "Shirts"},
            {"id": "c2", "title": "Summer Dresses"},
            {"id": "c3", "title": "Leather Belts"},
            {"id": "c4", "title": "Socks"},
        ],
        "products": [
            {"id": "p1", "productType": "Hat"},
            {"id": "p2", "productType": "Hat"},
            {"id": "p3", "productType": "Scarf"},
        ],
    }


@pytest.fixture
def single_step_structure():
    return {
        "structureType": "SINGLE_STEP",
        "steps": [{"label": "Pick items", "collectionHints": ["Shirts"]}],
    }


@pytest.fixture
def multi_step_structure():
    return {
        "structureType": "MULTI_STEP",
        "steps": [
            {"label": "Choose a shirt", "collectionHints": ["Shirts"]},
            {"label": "Add socks", "collectionHints": ["Socks"]},
        ],
    }


@pytest.fixture
def percentage_discount():
    return {
        "discountMode": "PERCENTAGE",
        "rules": [{"type": "quantity", "value": 2, "discountValue": 10}],
    }


@pytest.fixture
def ctx():
    """Fresh per-run context with no logger."""
    return AssemblyContext(case_id="test")
