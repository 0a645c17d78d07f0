import pytest
from fastapi.testclient import TestClient

from file_center.dependencies.file_center import get_file_center
from file_center.file_center import FileCenter
from file_center.main import app
from tests.constants import TEST_THRESHOLD


@pytest.fixture
def database_url(tmp_path):
    """Each test gets its own SQLite database file."""
    return f"sqlite:///{tmp_path / 'file_center.db'}"


@pytest.fixture
def center(database_url):
    center = FileCenter(database_url, initial_file_size_threshold=TEST_THRESHOLD)
    yield center
    center.close()


@pytest.fixture
def db(center):
    """Session on the center's database for inspecting and tampering with rows."""
    session = center.session_factory()
    yield session
    session.close()


@pytest.fixture
def client(center):
    """Test client serving the center under test."""
    app.dependency_overrides[get_file_center] = lambda: center
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
