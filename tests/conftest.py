# Test configuration
import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent

# Add repo root to path so tests can import modules
sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def log_file(tmp_path):
    return tmp_path / "gateway.log"
