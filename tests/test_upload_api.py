import io

from insightful.core.database import SessionLocal
from insightful.models import MeetingJob, JobStatus


def _job(job_id):
    session = SessionLocal()
    try:
        return session.query(MeetingJob).filter(MeetingJob.id == job_id).first()
    finally:
        session.close()


def test_upload_endpoints_require_auth(client):
    assert client.post("/api/upload/presign", json={"filename": "a.mp3", "content_type": "audio/mpeg"}).status_code == 401
    assert client.post("/api/upload/complete", json={}).status_code == 401
    assert client.post("/api/upload/delete", json={}).status_code == 401


def test_invalid_token_is_rejected(client):
    response = client.get("/api/jobs", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401
    assert response.headers["www-authenticate"] == "Bearer"


def test_presign_requires_filename_and_type(client, headers):
    response = client.post("/api/upload/presign", json={"filename": "a.mp3"}, headers=headers)
    assert response.status_code == 400


def test_presign_generates_user_scoped_uuid_key(client, headers):
    response = client.post(
        "/api/upload/presign",
        json={"filename": "weekly sync.mp4", "content_type": "video/mp4"},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["file_key"].startswith("uploads/user-1/")
    assert data["file_key"].endswith(".mp4")
    assert "weekly" not in data["file_key"]
    assert data["upload_url"].startswith("https://storage.example.com/meetings/uploads/user-1/")
    assert data["file_url"] == f"https://cdn.example.com/{data['file_key']}"


def test_presign_keeps_recording_file_names(client, headers):
    response = client.post(
        "/api/upload/presign",
        json={"filename": "recording_2025-06-01.webm", "content_type": "audio/webm"},
        headers=headers,
    )
    key = response.json()["file_key"]
    prefix, _, name = key.rpartition("/")
    assert prefix == "uploads/user-1"
    timestamp, _, original = name.partition("_")
    assert timestamp.isdigit()
    assert original == "recording_2025-06-01.webm"


def test_complete_creates_pending_job_and_dispatches(client, headers, storage, queue):
    storage.put("uploads/user-1/abc.webm")
    response = client.post(
        "/api/upload/complete",
        json={"file_key": "uploads/user-1/abc.webm", "file_name": "Standup"},
        headers=headers,
    )
    assert response.status_code == 200
    job_id = response.json()["job_id"]
    assert queue.published == [job_id]

    job = _job(job_id)
    assert job.status == JobStatus.PENDING
    assert job.user_id == "user-1"
    assert job.file_key == "uploads/user-1/abc.webm"
    assert job.file_url == "https://cdn.example.com/uploads/user-1/abc.webm"
    assert job.task_id == f"task-{job_id}"
    assert job.content_type == "audio/webm"


def test_complete_validates_input(client, headers):
    response = client.post("/api/upload/complete", json={"file_name": "x"}, headers=headers)
    assert response.status_code == 400


def test_complete_rejects_foreign_keys(client, headers, storage):
    storage.put("uploads/user-2/abc.webm")
    response = client.post(
        "/api/upload/complete",
        json={"file_key": "uploads/user-2/abc.webm", "file_name": "x"},
        headers=headers,
    )
    assert response.status_code == 403


def test_complete_requires_object_in_storage(client, headers, queue):
    response = client.post(
        "/api/upload/complete",
        json={"file_key": "uploads/user-1/missing.webm", "file_name": "x"},
        headers=headers,
    )
    assert response.status_code == 404
    assert queue.published == []


def test_complete_marks_job_failed_when_dispatch_fails(client, headers, storage, queue, db):
    storage.put("uploads/user-1/abc.webm")
    queue.fail = True
    response = client.post(
        "/api/upload/complete",
        json={"file_key": "uploads/user-1/abc.webm", "file_name": "x"},
        headers=headers,
    )
    assert response.status_code == 500

    jobs = db.query(MeetingJob).all()
    assert len(jobs) == 1
    assert jobs[0].status == JobStatus.FAILED
    assert "broker unavailable" in jobs[0].error_message


def test_direct_upload_stores_object_and_creates_job(client, headers, storage, queue):
    response = client.post(
        "/api/upload/direct",
        files={"file": ("retro.mp3", io.BytesIO(b"ID3-data"), "application/octet-stream")},
        headers=headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "PENDING"
    assert data["file_name"] == "retro.mp3"
    assert queue.published == [data["job_id"]]

    (key, obj), = storage.objects.items()
    assert key.startswith("uploads/user-1/")
    assert obj["data"] == b"ID3-data"
    assert obj["content_type"] == "audio/mpeg"
    assert data["file_url"] == f"https://cdn.example.com/{key}"


def test_direct_upload_removes_object_when_job_creation_fails(client, headers, storage, queue, monkeypatch):
    from insightful.services import job_service

    def broken_create_job(db, **kwargs):
        raise RuntimeError("database is read-only")

    monkeypatch.setattr(job_service, "create_job", broken_create_job)
    response = client.post(
        "/api/upload/direct",
        files={"file": ("retro.mp3", io.BytesIO(b"ID3-data"), "audio/mpeg")},
        headers=headers,
    )
    assert response.status_code == 500
    assert "database is read-only" in response.json()["detail"]
    assert storage.objects == {}
    (deleted,) = storage.deleted
    assert deleted.startswith("uploads/user-1/")
    assert queue.published == []


def test_direct_upload_enforces_size_limit(client, headers, monkeypatch):
    from insightful.core.config import settings

    monkeypatch.setattr(settings, "max_direct_upload_mb", 0)
    response = client.post(
        "/api/upload/direct",
        files={"file": ("big.mp3", io.BytesIO(b"x" * 10), "audio/mpeg")},
        headers=headers,
    )
    assert response.status_code == 413


def test_delete_upload(client, headers, storage):
    storage.put("uploads/user-1/cancelled.webm")

    assert client.post("/api/upload/delete", json={}, headers=headers).status_code == 400
    assert client.post(
        "/api/upload/delete", json={"file_key": "uploads/user-2/x.webm"}, headers=headers
    ).status_code == 403

    response = client.post("/api/upload/delete", json={"file_key": "uploads/user-1/cancelled.webm"}, headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert storage.deleted == ["uploads/user-1/cancelled.webm"]


def test_recording_with_dotted_name_can_be_completed(client, headers, storage, queue):
    presign = client.post(
        "/api/upload/presign",
        json={"filename": "recording_standup..webm", "content_type": "audio/webm"},
        headers=headers,
    )
    assert presign.status_code == 200
    file_key = presign.json()["file_key"]
    storage.put(file_key)

    response = client.post(
        "/api/upload/complete",
        json={"file_key": file_key, "file_name": "recording_standup..webm"},
        headers=headers,
    )
    assert response.status_code == 200
    assert queue.published == [response.json()["job_id"]]


def test_recording_name_cannot_escape_user_prefix(client, headers):
    response = client.post(
        "/api/upload/presign",
        json={"filename": "recording_../../user-2/x.webm", "content_type": "audio/webm"},
        headers=headers,
    )
    file_key = response.json()["file_key"]
    assert file_key.count("/") == 2
    assert file_key.startswith("uploads/user-1/")
