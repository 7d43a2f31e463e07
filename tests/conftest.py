from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for path in (SRC, ROOT):
    if str(path) not in sys.path:
        sys.path.insert(0, str(path))

from tests.fixtures import dust_fake  # noqa: E402


@pytest.fixture
def dust_settings():
    """Complete settings pointing at the fake Dust endpoint."""

    return dust_fake.build_settings()
