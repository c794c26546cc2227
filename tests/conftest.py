from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from database import JsonDatabase, get_db
from main import app
from media import MediaStore, get_media


class TickingClock:
    """Returns a timestamp one minute later on every call."""

    def __init__(self, start=datetime(2026, 10, 1, 9, 0, tzinfo=timezone.utc), step=timedelta(minutes=1)):
        self.now = start
        self.step = step

    def __call__(self):
        self.now += self.step
        return self.now


@pytest.fixture
def database(tmp_path):
    return JsonDatabase(tmp_path / "data")


@pytest.fixture
def media_store(tmp_path):
    return MediaStore(tmp_path / "uploads")


@pytest.fixture
def clock():
    return TickingClock()


@pytest.fixture
def client(database, media_store):
    app.dependency_overrides[get_db] = lambda: database
    app.dependency_overrides[get_media] = lambda: media_store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
