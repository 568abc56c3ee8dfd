import sys
from pathlib import Path

import pytest

# Add the project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from autofill.gazetteer import Gazetteer

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture(scope="session")
def gazetteer():
    """Gazetteer backed by the bundled reference tables"""
    return Gazetteer().load()


@pytest.fixture
def denia_html():
    return (FIXTURES_DIR / "idealista_denia.html").read_text(encoding="utf-8")
