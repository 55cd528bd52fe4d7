import sys
import os
from tempfile import TemporaryDirectory
import pytest
# Ensure the project root is on sys.path for all tests
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from tests.test_utils import load_fixture


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test outputs."""
    with TemporaryDirectory() as dir_path:
        yield dir_path


# Resolved schemas are never mutated by the generator, so one load per session is enough.
@pytest.fixture(scope="session")
def monster_schema():
    return load_fixture("monster.fbs")


@pytest.fixture(scope="session")
def arrays_schema():
    return load_fixture("arrays.fbs")


@pytest.fixture(scope="session")
def scenario_schema():
    return load_fixture("scenario.fbs")
