import shutil
from pathlib import Path

import pytest

from rpg_companion.persistence import Persistence
from rpg_companion.state import SessionState
from rpg_companion.storage import Storage

TEST_DATA_DIR = Path("data-tests")


@pytest.fixture(autouse=True)
def clean_test_data():
    """Wipe data-tests/ before every test."""
    if TEST_DATA_DIR.exists():
        shutil.rmtree(TEST_DATA_DIR)
    TEST_DATA_DIR.mkdir()
    yield
    # leave data-tests around after tests for inspection; CI can ignore it


@pytest.fixture
def storage() -> Storage:
    return Storage(TEST_DATA_DIR)


@pytest.fixture
def state() -> SessionState:
    return SessionState()


@pytest.fixture
def persistence(storage, state) -> Persistence:
    return Persistence(storage, state)
