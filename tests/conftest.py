"""Test configuration ensuring the project source tree is importable."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parent.parent
TESTS = ROOT / "tests"
FIXTURES = TESTS / "fixtures"

root_str = str(ROOT)
if root_str not in sys.path:
    sys.path.insert(0, root_str)
else:
    idx = sys.path.index(root_str)
    if idx != 0:
        sys.path.insert(0, sys.path.pop(idx))


@pytest.fixture
def listing():
    """Return the text of a recorded ``luac -l -l -p`` listing by stem."""

    def _load(name: str) -> str:
        return (FIXTURES / f"{name}.lst").read_text(encoding="utf-8")

    return _load


@pytest.fixture
def lua51():
    from lglob.dialects import get_dialect

    return get_dialect("5.1")


@pytest.fixture
def lua52():
    from lglob.dialects import get_dialect

    return get_dialect("5.2")
