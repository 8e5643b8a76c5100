# HTTP client for the Insightful API - bearer auth, presigned PUTs with progress

import os
from typing import Optional, Callable, Dict, Any, List

import httpx

ProgressCallback = Callable[[int, int], None]

CHUNK_SIZE = 1024 * 1024


class ApiError(Exception):
    """Raised for non-2xx API responses"""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code} - {detail}")
        self.status_code = status_code
        self.detail = detail


class ApiClient:
    """
    Thin wrapper over httpx for the /api endpoints.

    ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        server_url: str,
        token: Optional[str] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.server_url = server_url.rstrip("/")
        self._transport = transport
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.Client(
            base_url=self.server_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    def close(self):
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            detail = response.json().get("detail", response.text)
        except ValueError:
            detail = response.text or response.reason_phrase
        raise ApiError(response.status_code, str(detail))

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = self._client.request(method, path, **kwargs)
        self._raise_for_status(response)
        return response

    # Health / session

    def health(self) -> Dict[str, Any]:
        return self._request("GET", "/health").json()

    def session(self) -> Dict[str, Any]:
        return self._request("GET", "/api/auth/session").json()

    # Uploads

    def presign(self, filename: str, content_type: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/upload/presign",
            json={"filename": filename, "content_type": content_type},
        ).json()

    def put_object(
        self,
        upload_url: str,
        file_path: str,
        content_type: str,
        on_progress: Optional[ProgressCallback] = None,
        timeout: float = 300.0,
    ) -> None:
        """
        PUT a local file to a presigned URL.

        Sent without the API's Authorization header; the URL carries its own signature.
        """
        file_size = os.path.getsize(file_path)

        def chunks():
            bytes_sent = 0
            with open(file_path, "rb") as f:
                while True:
                    chunk = f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    bytes_sent += len(chunk)
                    if on_progress:
                        on_progress(bytes_sent, file_size)
                    yield chunk

        with httpx.Client(timeout=httpx.Timeout(timeout, connect=30.0), transport=self._transport) as client:
            response = client.put(
                upload_url,
                content=chunks(),
                headers={
                    "Content-Type": content_type,
                    "Content-Length": str(file_size),
                },
            )
        if response.status_code not in (200, 201, 204):
            raise ApiError(response.status_code, f"Upload failed: {response.reason_phrase}")

    def complete(
        self,
        file_key: str,
        file_name: str,
        file_url: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            "/api/upload/complete",
            json={
                "file_key": file_key,
                "file_name": file_name,
                "file_url": file_url,
                "content_type": content_type,
            },
        ).json()

    # Jobs

    def list_jobs(self, status: Optional[str] = None, limit: int = 50, skip: int = 0) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"limit": limit, "skip": skip}
        if status:
            params["status"] = status.upper()
        return self._request("GET", "/api/jobs", params=params).json()

    def get_job(self, job_id: int) -> Dict[str, Any]:
        return self._request("GET", f"/api/job/{job_id}").json()

    def rename_job(self, job_id: int, file_name: str) -> Dict[str, Any]:
        return self._request("PATCH", f"/api/job/{job_id}/rename", json={"file_name": file_name}).json()

    def delete_job(self, job_id: int) -> Dict[str, Any]:
        return self._request("DELETE", f"/api/job/{job_id}").json()

    def export_job(self, job_id: int, lang: Optional[str] = None) -> str:
        params = {"lang": lang} if lang else None
        return self._request("GET", f"/api/job/{job_id}/export", params=params).text
