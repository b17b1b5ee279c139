"""
Test configuration and fixtures for the Lighthouse Audit Service.

The document store is an in-memory SQLite database created per test; the
artifact store, job queue, browser and audit engine are replaced by fakes so
no test touches the network or launches a browser.
"""

import os
import tempfile
from contextlib import contextmanager
from typing import Generator

from dotenv import load_dotenv

load_dotenv()

# must be set before anything imports app.platform.config
os.environ["DATABASE_URL"] = os.getenv("TEST_DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_DIR", os.path.join(tempfile.gettempdir(), "lighthouse-audit-test-logs"))

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from app.features.audits.exceptions import ArtifactStoreError, BrowserSessionError
from app.features.audits.models import AuditTask  # noqa: F401  (registers the table)
from app.features.audits.services.repository.task_repository import TaskRepository
from app.platform.db.base import Base
from app.platform.db.session import build_engine
from app.platform.storage.artifact_store import DeleteSummary

# 1x1 transparent PNG
PNG_DATA_URL = (
    "data:image/png;base64,"
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAQAAAC1HAwCAAAAC0lEQVR42mNkYAAAAAYAAjCB0C8AAAAASUVORK5CYII="
)
JPEG_DATA_URL = "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQAAAQABAAD/2w=="


def make_report(score=0.87, filmstrip_frames=2, with_thumbnail=True, data_url=PNG_DATA_URL):
    """A trimmed-down Lighthouse result with the fields the pipeline reads."""
    audits = {
        "first-contentful-paint": {"id": "first-contentful-paint", "numericValue": 1200.5},
        "largest-contentful-paint": {"id": "largest-contentful-paint", "numericValue": 2400.0},
        "cumulative-layout-shift": {"id": "cumulative-layout-shift", "numericValue": 0.02},
        "total-blocking-time": {"id": "total-blocking-time", "numericValue": 150},
        "speed-index": {"id": "speed-index", "numericValue": 3100.2},
        "interactive": {"id": "interactive", "numericValue": 4000},
        "render-blocking-resources": {
            "id": "render-blocking-resources",
            "details": {"type": "opportunity", "items": [{"url": "https://example.com/app.css"}]},
        },
    }
    if filmstrip_frames:
        audits["screenshot-thumbnails"] = {
            "id": "screenshot-thumbnails",
            "details": {
                "type": "filmstrip",
                "items": [
                    {"timing": 300 * (i + 1), "timestamp": 1000 + i, "data": data_url}
                    for i in range(filmstrip_frames)
                ],
            },
        }
    if with_thumbnail:
        audits["final-screenshot"] = {
            "id": "final-screenshot",
            "details": {"type": "screenshot", "timestamp": 2000, "data": data_url},
        }
    return {
        "lighthouseVersion": "12.0.0",
        "requestedUrl": "https://example.com",
        "categories": {"performance": {"id": "performance", "score": score}},
        "audits": audits,
    }


class FakeArtifactStore:
    """In-memory artifact store recording every call."""

    def __init__(self, fail_uploads=False, fail_signing=False):
        self.objects = {}
        self.content_types = {}
        self.sign_calls = []
        self.delete_calls = []
        self.fail_uploads = fail_uploads
        self.fail_signing = fail_signing

    def upload(self, object_key, body, content_type="image/png"):
        if self.fail_uploads:
            raise ArtifactStoreError("bucket unavailable")
        self.objects[object_key] = body
        self.content_types[object_key] = content_type
        return object_key

    def sign(self, object_key):
        self.sign_calls.append(object_key)
        if self.fail_signing:
            raise ArtifactStoreError("signing unavailable")
        return f"https://signed.example/{object_key}?sig=abc"

    def delete_many(self, object_keys):
        self.delete_calls.append(list(object_keys))
        for key in object_keys:
            self.objects.pop(key, None)
        return DeleteSummary(requested=len(object_keys), deleted=len(object_keys), batches=1)


class FakeJobQueue:
    def __init__(self, fail=False):
        self.enqueued = []
        self.fail = fail

    def enqueue(self, task_id):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.enqueued.append(task_id)
        return f"job-{task_id}"


class FakeBrowserSession:
    """Stands in for BrowserSession; tracks open pages and whether it was closed."""

    def __init__(self, fail_launch=False):
        self.fail_launch = fail_launch
        self.launched = False
        self.closed = False
        self.pages_opened = 0
        self.open_pages = 0
        self.emulated = []

    def __enter__(self):
        if self.fail_launch:
            raise BrowserSessionError("Failed to launch browser: chrome not found")
        self.launched = True
        return self

    def __exit__(self, exc_type, exc, tb):
        self.closed = True
        return False

    @contextmanager
    def open_page(self):
        self.pages_opened += 1
        self.open_pages += 1
        try:
            yield f"tab-{self.pages_opened}"
        finally:
            self.open_pages -= 1

    def emulate_device(self, device):
        self.emulated.append(device)

    @property
    def control_endpoint(self):
        return ("127.0.0.1", 9222)


@pytest.fixture
def session_factory() -> Generator[sessionmaker, None, None]:
    engine = build_engine("sqlite://")
    Base.metadata.create_all(engine)
    factory = sessionmaker(bind=engine, autocommit=False, autoflush=False, expire_on_commit=False)
    yield factory
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def repository(session_factory) -> TaskRepository:
    return TaskRepository(session_factory)


@pytest.fixture
def artifact_store() -> FakeArtifactStore:
    return FakeArtifactStore()


@pytest.fixture
def job_queue() -> FakeJobQueue:
    return FakeJobQueue()


@pytest.fixture(scope="session")
def test_app():
    """Create FastAPI test application."""
    from app.main import app

    return app


@pytest.fixture(scope="function")
def client(test_app) -> Generator[TestClient, None, None]:
    """
    Create a test client for making HTTP requests.
    This fixture provides a clean TestClient instance for each test function,
    ensuring proper isolation between tests.
    """
    with TestClient(test_app) as test_client:
        yield test_client
