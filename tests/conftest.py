"""
Pytest configuration and fixtures.
"""

import sys
from pathlib import Path

import pytest

# diagram.py and tui.py live at the repository root
sys.path.insert(0, str(Path(__file__).parent.parent))

from diagram import CATALOG, SelectionModel  # noqa: E402


@pytest.fixture
def selection():
    return SelectionModel()


@pytest.fixture(params=CATALOG, ids=lambda p: f"{p.family.value}-{p.hook.value}")
def point(request):
    return request.param
