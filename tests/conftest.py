"""
Shared fixtures: SQLite database, in-memory storage and queue fakes, auth headers.
"""
import os
import tempfile

# Settings are read at import time, so the environment must be ready first
_tmp_dir = tempfile.mkdtemp(prefix="insightful-tests-")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_tmp_dir, 'test.db')}"
os.environ.setdefault("S3_ENDPOINT", "http://localhost:9000")
os.environ.setdefault("S3_ACCESS_KEY", "test-access")
os.environ.setdefault("S3_SECRET_KEY", "test-secret")
os.environ.setdefault("S3_BUCKET", "meetings")
os.environ.setdefault("S3_PUBLIC_URL", "https://cdn.example.com/")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/0")
os.environ.setdefault("ANALYSIS_SERVICE_URL", "http://analysis.local/analyze")
os.environ["INSIGHTFUL_CACHE_DIR"] = os.path.join(_tmp_dir, "cache")

import pytest
from fastapi.testclient import TestClient

from insightful.core.database import SessionLocal, create_tables, drop_tables
from insightful.core.security import create_access_token
from insightful.core.storage import StorageError, get_storage
from insightful.main import app
from insightful.models import MeetingJob, JobStatus, AnalysisResult
from insightful.services.queue import get_job_queue


class FakeStorage:
    """In-memory stand-in for StorageClient"""

    def __init__(self):
        self.objects = {}
        self.deleted = []
        self.fail_delete = False
        self.bucket_name = "meetings"

    def get_presigned_put_url(self, object_name, expires_seconds=None):
        return f"https://storage.example.com/{self.bucket_name}/{object_name}?X-Amz-Signature=abc"

    def get_public_url(self, object_name):
        return f"https://cdn.example.com/{object_name.lstrip('/')}"

    def upload_file(self, file_obj, object_name, file_size, content_type="application/octet-stream"):
        self.objects[object_name] = {"data": file_obj.read(), "content_type": content_type, "size": file_size}
        return object_name

    def put(self, object_name, data=b"audio", content_type="audio/webm"):
        self.objects[object_name] = {"data": data, "content_type": content_type, "size": len(data)}

    def get_file_info(self, object_name):
        obj = self.objects.get(object_name)
        if not obj:
            return None
        return {"size": obj["size"], "content_type": obj["content_type"], "etag": "x", "last_modified": None}

    def delete_file(self, object_name):
        if self.fail_delete:
            raise StorageError(f"Failed to delete file '{object_name}': boom")
        self.deleted.append(object_name)
        self.objects.pop(object_name, None)
        return True

    def check(self):
        return None


class FakeQueue:
    def __init__(self):
        self.published = []
        self.fail = False

    def publish(self, job_id):
        if self.fail:
            raise RuntimeError("broker unavailable")
        self.published.append(job_id)
        return f"task-{job_id}"


@pytest.fixture(autouse=True)
def reset_db():
    drop_tables()
    create_tables()
    yield


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def queue():
    return FakeQueue()


@pytest.fixture
def client(storage, queue):
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_job_queue] = lambda: queue
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def auth_headers(user_id="user-1", email="alice@example.com", name="Alice"):
    token = create_access_token(user_id, email=email, name=name)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers():
    return auth_headers()


@pytest.fixture
def make_job(db):
    """Insert a job directly; returns its id"""

    def _make_job(user_id="user-1", status=JobStatus.PENDING, file_name="standup.webm", analysis=None, file_key=None):
        job = MeetingJob(
            user_id=user_id,
            file_name=file_name,
            file_key=file_key or f"uploads/{user_id}/{file_name}",
            file_url=f"https://cdn.example.com/uploads/{user_id}/{file_name}",
            content_type="audio/webm",
            status=status,
        )
        if analysis is not None:
            job.analysis_result = AnalysisResult(**analysis)
        db.add(job)
        db.commit()
        db.refresh(job)
        return job.id

    return _make_job
