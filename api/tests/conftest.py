"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("DATABASE_URL", "HOTFIX_CONFIG_PATH", "COINGECKO_API_KEY", "IPFS_GATEWAY"):
        monkeypatch.delenv(key, raising=False)
