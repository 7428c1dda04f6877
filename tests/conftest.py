"""Pytest configuration and fixtures."""

import shutil
import sys
from pathlib import Path

import pytest

# Add src to path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

# Add tests to path for azure_mock imports
tests_path = Path(__file__).parent
sys.path.insert(0, str(tests_path))

TRANSACTIONS_DIR = tests_path / "transactions"


@pytest.fixture
def recordings_dir(tmp_path: Path) -> Path:
    """Writable copy of the checked-in transactions."""
    target = tmp_path / "transactions"
    shutil.copytree(TRANSACTIONS_DIR, target)
    return target
