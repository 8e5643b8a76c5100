from insightful.models import MeetingJob, JobStatus, AnalysisResult

from .conftest import auth_headers

ANALYSIS = {
    "transcript": "Alice: let's ship on Friday.",
    "summary": "The team agreed to ship on Friday.",
    "action_items": [{"task": "Prepare release notes", "assignee": "Bob", "due_date": "2025-06-06"}],
    "key_decisions": [{"text": "Ship on Friday", "context": "QA signed off"}],
}


def test_list_jobs_returns_only_own_jobs_newest_first(client, headers, make_job):
    first = make_job(file_name="one.webm")
    make_job(user_id="user-2", file_name="theirs.webm")
    second = make_job(file_name="two.webm", status=JobStatus.COMPLETED)

    response = client.get("/api/jobs", headers=headers)
    assert response.status_code == 200
    jobs = response.json()
    assert [j["id"] for j in jobs] == [second, first]
    assert set(jobs[0]) == {"id", "file_name", "file_url", "status", "created_at"}
    assert jobs[0]["status"] == "COMPLETED"


def test_list_jobs_filters_by_status(client, headers, make_job):
    make_job(status=JobStatus.PENDING)
    done = make_job(status=JobStatus.COMPLETED)

    response = client.get("/api/jobs", params={"status": "COMPLETED"}, headers=headers)
    assert [j["id"] for j in response.json()] == [done]


def test_list_jobs_requires_auth(client):
    assert client.get("/api/jobs").status_code == 401


def test_get_job_includes_analysis(client, headers, make_job):
    job_id = make_job(status=JobStatus.COMPLETED, analysis=ANALYSIS)

    response = client.get(f"/api/job/{job_id}", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "COMPLETED"
    assert data["analysis_result"]["summary"] == ANALYSIS["summary"]
    assert data["analysis_result"]["action_items"] == ANALYSIS["action_items"]


def test_get_job_hides_other_users_jobs(client, make_job):
    job_id = make_job(user_id="user-2")
    response = client.get(f"/api/job/{job_id}", headers=auth_headers("user-1"))
    assert response.status_code == 404
    assert client.get("/api/job/9999", headers=auth_headers("user-1")).status_code == 404


def test_delete_job_removes_row_object_and_analysis(client, headers, make_job, storage, db):
    job_id = make_job(status=JobStatus.COMPLETED, analysis=ANALYSIS, file_key="uploads/user-1/a.webm")
    storage.put("uploads/user-1/a.webm")

    response = client.delete(f"/api/job/{job_id}", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert storage.deleted == ["uploads/user-1/a.webm"]
    assert db.query(MeetingJob).count() == 0
    assert db.query(AnalysisResult).count() == 0


def test_delete_job_survives_storage_failure(client, headers, make_job, storage, db):
    job_id = make_job()
    storage.fail_delete = True

    response = client.delete(f"/api/job/{job_id}", headers=headers)
    assert response.status_code == 200
    assert db.query(MeetingJob).count() == 0


def test_delete_job_ownership(client, make_job, db):
    job_id = make_job(user_id="user-2")
    assert client.delete(f"/api/job/{job_id}", headers=auth_headers("user-1")).status_code == 403
    assert client.delete("/api/job/9999", headers=auth_headers("user-1")).status_code == 404
    assert db.query(MeetingJob).count() == 1


def test_rename_completed_job(client, headers, make_job):
    job_id = make_job(status=JobStatus.COMPLETED, file_name="old.webm")

    response = client.patch(f"/api/job/{job_id}/rename", json={"file_name": "  Quarterly review  "}, headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Job renamed successfully"
    assert data["job"]["file_name"] == "Quarterly review"
    assert data["job"]["status"] == "COMPLETED"

    again = client.patch(f"/api/job/{job_id}/rename", json={"file_name": "Quarterly review"}, headers=headers)
    assert again.json()["message"] == "No changes needed"


def test_rename_validation(client, headers, make_job):
    job_id = make_job(status=JobStatus.COMPLETED)
    url = f"/api/job/{job_id}/rename"

    assert client.patch(url, content=b"{not json", headers={**headers, "Content-Type": "application/json"}).status_code == 400
    assert client.patch(url, json={}, headers=headers).status_code == 400
    assert client.patch(url, json={"file_name": 42}, headers=headers).status_code == 400
    assert client.patch(url, json={"file_name": "   "}, headers=headers).status_code == 400
    assert client.patch(url, json={"file_name": "x" * 101}, headers=headers).status_code == 400
    assert client.patch(url, json={"file_name": "x" * 100}, headers=headers).status_code == 200


def test_rename_only_completed_jobs(client, headers, make_job):
    job_id = make_job(status=JobStatus.PROCESSING)
    response = client.patch(f"/api/job/{job_id}/rename", json={"file_name": "New"}, headers=headers)
    assert response.status_code == 400
    assert response.json()["detail"] == "Only completed jobs can be renamed"


def test_rename_ownership(client, make_job):
    job_id = make_job(user_id="user-2", status=JobStatus.COMPLETED)
    response = client.patch(f"/api/job/{job_id}/rename", json={"file_name": "Mine"}, headers=auth_headers("user-1"))
    assert response.status_code == 403
    response = client.patch("/api/job/9999/rename", json={"file_name": "Mine"}, headers=auth_headers("user-1"))
    assert response.status_code == 404


def test_export_markdown(client, headers, make_job):
    job_id = make_job(status=JobStatus.COMPLETED, file_name="Weekly sync", analysis=ANALYSIS)

    response = client.get(f"/api/job/{job_id}/export", params={"lang": "en"}, headers=headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/markdown")
    assert 'filename="Weekly sync.md"' in response.headers["content-disposition"]
    body = response.text
    assert body.startswith("# Weekly sync")
    assert "## Meeting Summary" in body
    assert "- [ ] Prepare release notes (Assignee: Bob; Due date: 2025-06-06)" in body
    assert "- Ship on Friday (QA signed off)" in body
    assert "## Transcript" in body


def test_export_requires_analysis(client, headers, make_job):
    job_id = make_job(status=JobStatus.PROCESSING)
    assert client.get(f"/api/job/{job_id}/export", headers=headers).status_code == 409


def test_session_returns_token_identity(client, headers):
    response = client.get("/api/auth/session", headers=headers)
    assert response.status_code == 200
    assert response.json() == {"user": {"id": "user-1", "email": "alice@example.com", "name": "Alice"}}


def test_health_and_ping(client):
    assert client.get("/api/ping").json() == {"status": "online", "message": "Pong"}
    health = client.get("/health").json()
    assert health["status"] == "healthy"
    assert health["services"] == {"database": "ok", "storage": "ok"}


def test_list_jobs_limit_bounds_and_paging(client, headers, make_job):
    ids = [make_job(file_name=f"m{i}.webm") for i in range(3)]

    assert client.get("/api/jobs", params={"limit": 0}, headers=headers).status_code == 422
    assert client.get("/api/jobs", params={"limit": 201}, headers=headers).status_code == 422

    page = client.get("/api/jobs", params={"limit": 2, "skip": 1}, headers=headers).json()
    assert [j["id"] for j in page] == [ids[1], ids[0]]


def test_export_hides_other_users_jobs(client, make_job):
    job_id = make_job(user_id="user-2", status=JobStatus.COMPLETED, analysis=ANALYSIS)
    response = client.get(f"/api/job/{job_id}/export", headers=auth_headers("user-1"))
    assert response.status_code == 404
