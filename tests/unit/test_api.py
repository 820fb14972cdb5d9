"""
HTTP tests for the candidate API.

The app runs with every backend in mock mode (see conftest.py), so these
tests exercise routing, form parsing, status codes and response bodies
end to end without external services.
"""

import asyncio
import contextlib
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient

from candidate_portal.api import dependencies
from candidate_portal.api.dependencies import get_video_probe
from candidate_portal.api.routes.candidates import BlobStreamingResponse
from candidate_portal.core.submission.models import BlobKind
from candidate_portal.infrastructure.storage.client import MockBlobStore
from candidate_portal.main import create_app

SUBMIT = "/api/candidates/submit"
BOUNDARY = "candidate-portal-test-boundary"


def submit(client, fields, resume=None, video=None):
    files = {}
    if resume is not None:
        files["resume"] = resume
    if video is not None:
        files["video"] = video
    return client.post(SUBMIT, data=fields, files=files or None)


def multipart_body(fields, files) -> bytes:
    parts = []
    for name, value in fields.items():
        parts.append(
            f"--{BOUNDARY}\r\nContent-Disposition: form-data; name=\"{name}\"\r\n\r\n{value}\r\n".encode()
        )
    for name, (filename, data, content_type) in files.items():
        header = (
            f"--{BOUNDARY}\r\n"
            f"Content-Disposition: form-data; name=\"{name}\"; filename=\"{filename}\"\r\n"
            f"Content-Type: {content_type}\r\n\r\n"
        )
        parts.append(header.encode() + data + b"\r\n")
    parts.append(f"--{BOUNDARY}--\r\n".encode())
    return b"".join(parts)


def submit_chunked(client, fields, files, chunk_size=64 * 1024):
    """Send the form without a Content-Length, as a chunked upload would."""
    body = multipart_body(fields, files)

    def chunks():
        for start in range(0, len(body), chunk_size):
            yield body[start:start + chunk_size]

    return client.post(
        SUBMIT,
        content=chunks(),
        headers={"content-type": f"multipart/form-data; boundary={BOUNDARY}"},
    )


@pytest.fixture()
def resume_part(resume_bytes):
    return ("cv.pdf", resume_bytes, "application/pdf")


@pytest.fixture()
def video_part(video_bytes):
    return ("intro.webm", video_bytes, "video/webm")


@pytest.fixture()
def submitted(test_client, form_fields, resume_part, video_part) -> dict:
    response = submit(test_client, form_fields, resume_part, video_part)
    assert response.status_code == 201
    return response.json()


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

class TestSubmit:

    def test_successful_submission(self, submitted):
        assert submitted["message"] == "Candidate submitted successfully"
        assert {"candidateId", "resumeFileId", "videoFileId"} <= submitted.keys()

    def test_record_is_readable_after_submit(self, test_client, submitted):
        response = test_client.get(f"/api/candidates/{submitted['candidateId']}")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == submitted["candidateId"]
        assert body["firstName"] == "Ada"
        assert body["lastName"] == "Lovelace"
        assert body["positionAppliedFor"] == "Engineer"
        assert body["currentPosition"] == "Analyst"
        assert body["experienceYears"] == 5
        assert body["resumeFileId"] == submitted["resumeFileId"]
        assert body["resumeFilename"] == "cv.pdf"
        assert body["videoFileId"] == submitted["videoFileId"]
        assert body["videoFilename"] == "intro.webm"
        assert body["createdAt"]

    def test_missing_text_field(self, test_client, form_fields, resume_part, video_part):
        del form_fields["currentPosition"]

        response = submit(test_client, form_fields, resume_part, video_part)

        assert response.status_code == 400
        assert response.json() == {"message": "All fields are required."}

    def test_non_numeric_years(self, test_client, form_fields, resume_part, video_part):
        form_fields["experienceYears"] = "five"

        response = submit(test_client, form_fields, resume_part, video_part)

        assert response.status_code == 400
        assert response.json()["message"] == "Experience years must be a non-negative whole number."

    def test_missing_resume(self, test_client, form_fields, video_part):
        response = submit(test_client, form_fields, video=video_part)

        assert response.status_code == 400
        assert response.json()["message"] == "Resume is required."

    def test_missing_video(self, test_client, form_fields, resume_part):
        response = submit(test_client, form_fields, resume=resume_part)

        assert response.status_code == 400
        assert response.json()["message"] == "Video is required."

    def test_resume_not_pdf(self, test_client, form_fields, video_part):
        response = submit(test_client, form_fields, ("cv.docx", b"PK\x03\x04", "application/msword"), video_part)

        assert response.status_code == 400
        assert response.json()["message"] == "Resume must be a PDF file."

    def test_resume_too_large(self, test_client, form_fields, video_part, pdf_of_size):
        big = ("cv.pdf", pdf_of_size(6 * 1024 * 1024), "application/pdf")

        response = submit(test_client, form_fields, big, video_part)

        assert response.status_code == 400
        assert response.json()["message"] == "Resume must be ≤ 5 MB."

    def test_video_too_long(self, test_client, video_probe, form_fields, resume_part, video_part):
        video_probe.duration_seconds = 120.0

        response = submit(test_client, form_fields, resume_part, video_part)

        assert response.status_code == 400
        assert response.json()["message"] == "Video duration exceeds 90 seconds."

    def test_probe_failure_is_server_error(self, test_client, video_probe, form_fields, resume_part, video_part):
        video_probe.fail = True

        response = submit(test_client, form_fields, resume_part, video_part)

        assert response.status_code == 500
        assert response.json() == {
            "message": "Video duration check failed. Make sure ffmpeg is installed on server.",
            "error": "video_probe_failed",
        }

    def test_rejected_submission_stores_nothing(self, test_client, video_probe, form_fields, resume_part, video_part):
        video_probe.duration_seconds = 500.0
        submit(test_client, form_fields, resume_part, video_part)

        store = dependencies._mock_blob_store
        assert store is None or len(store) == 0

    def test_upload_over_ceiling_is_rejected(self, settings, video_probe, form_fields, resume_part, video_part):
        settings.max_upload_mb = 1
        app = create_app(settings)
        app.dependency_overrides[get_video_probe] = lambda: video_probe

        with TestClient(app) as client:
            response = submit(client, form_fields, resume_part, video_part)

        assert response.status_code == 413
        assert response.json() == {"message": "Upload exceeds 1 MB limit."}
        assert video_probe.calls == 0

    def test_chunked_upload_over_ceiling_is_rejected(self, settings, video_probe, form_fields, resume_part):
        settings.max_upload_mb = 1
        app = create_app(settings)
        app.dependency_overrides[get_video_probe] = lambda: video_probe
        big_video = ("intro.webm", b"\x1a\x45\xdf\xa3" * (768 * 1024), "video/webm")

        with TestClient(app) as client:
            response = submit_chunked(client, form_fields, {"resume": resume_part, "video": big_video})

        assert response.status_code == 413
        assert response.json() == {"message": "Upload exceeds 1 MB limit."}
        assert video_probe.calls == 0
        store = dependencies._mock_blob_store
        assert store is None or len(store) == 0

    def test_chunked_upload_under_ceiling_is_accepted(self, test_client, form_fields, resume_part, video_part):
        response = submit_chunked(test_client, form_fields, {"resume": resume_part, "video": video_part})

        assert response.status_code == 201
        assert response.json()["message"] == "Candidate submitted successfully"


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------

class TestGetCandidate:

    def test_repeated_reads_are_identical(self, test_client, submitted):
        url = f"/api/candidates/{submitted['candidateId']}"

        assert test_client.get(url).json() == test_client.get(url).json()

    @pytest.mark.parametrize("bad_id", ["abc", "123", "64b7f0c2e4b0a1a2b3c4d5e6"])
    def test_malformed_id(self, test_client, bad_id):
        response = test_client.get(f"/api/candidates/{bad_id}")

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid id"}

    def test_unknown_id(self, test_client):
        response = test_client.get(f"/api/candidates/{uuid4()}")

        assert response.status_code == 404
        assert response.json() == {"message": "Candidate not found"}


class TestFileDownloads:

    def test_resume_download_is_byte_identical(self, test_client, submitted, resume_bytes):
        response = test_client.get(f"/api/candidates/files/resume/{submitted['resumeFileId']}")

        assert response.status_code == 200
        assert response.content == resume_bytes
        assert response.headers["content-type"] == "application/pdf"
        assert "cv.pdf" in response.headers["content-disposition"]

    def test_video_download_is_byte_identical(self, test_client, submitted, video_bytes):
        response = test_client.get(f"/api/candidates/files/video/{submitted['videoFileId']}")

        assert response.status_code == 200
        assert response.content == video_bytes
        assert response.headers["content-type"] == "video/webm"

    def test_repeated_downloads_are_identical(self, test_client, submitted):
        url = f"/api/candidates/files/video/{submitted['videoFileId']}"

        assert test_client.get(url).content == test_client.get(url).content

    def test_wrong_kind_is_not_found(self, test_client, submitted):
        response = test_client.get(f"/api/candidates/files/video/{submitted['resumeFileId']}")

        assert response.status_code == 404
        assert response.json() == {"message": "File not found"}

    @pytest.mark.parametrize("kind", ["resume", "video"])
    def test_malformed_file_id(self, test_client, kind):
        response = test_client.get(f"/api/candidates/files/{kind}/not-an-id")

        assert response.status_code == 400
        assert response.json() == {"message": "Invalid file ID"}

    @pytest.mark.parametrize("kind", ["resume", "video"])
    def test_unknown_file_id(self, test_client, kind):
        response = test_client.get(f"/api/candidates/files/{kind}/{uuid4()}")

        assert response.status_code == 404
        assert response.json() == {"message": "File not found"}


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

class TestHealth:

    def test_root_banner(self, test_client):
        response = test_client.get("/")

        assert response.status_code == 200
        assert response.json()["message"] == "Candidate Portal Backend running"

    def test_liveness(self, test_client):
        response = test_client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["details"]["mock_mode"]["r2"] is True

    def test_ready_in_mock_mode(self, test_client):
        response = test_client.get("/health/ready")

        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    def test_not_ready_without_ffprobe(self, test_client, video_probe):
        video_probe.fail = True

        response = test_client.get("/health/ready")

        assert response.status_code == 503
        checks = {c["name"]: c["status"] for c in response.json()["checks"]}
        assert checks == {"configuration": "ok", "database": "ok", "video_probe": "error"}


# ---------------------------------------------------------------------------
# Download Lifetime
# ---------------------------------------------------------------------------

class ClosingBlobStore(MockBlobStore):

    def __init__(self) -> None:
        super().__init__()
        self.closed = 0

    def close(self) -> None:
        self.closed += 1


class TestDownloadRelease:
    """The store and the body are released however the response ends."""

    async def open_download(self, store):
        blob_id = await store.put(b"webm" * 1024, "video_1_a.webm", "video/webm", BlobKind.VIDEO, "a.webm")
        download = await store.open_stream(blob_id, BlobKind.VIDEO)
        released = []
        download.close_body = lambda: released.append("body")
        return download, released

    @pytest.mark.asyncio
    async def test_released_when_client_leaves_before_first_chunk(self):
        store = ClosingBlobStore()
        download, released = await self.open_download(store)
        response = BlobStreamingResponse(download, store, {})
        sent = []

        async def receive():
            await asyncio.Event().wait()

        async def send(message):
            sent.append(message["type"])
            raise OSError("connection reset by peer")

        with contextlib.suppress(Exception):
            await response({"type": "http", "asgi": {"spec_version": "2.4"}}, receive, send)

        assert sent == ["http.response.start"]
        assert released == ["body"]
        assert store.closed == 1

    @pytest.mark.asyncio
    async def test_released_after_complete_stream(self):
        store = ClosingBlobStore()
        download, released = await self.open_download(store)
        response = BlobStreamingResponse(download, store, {})
        body = []

        async def receive():
            await asyncio.Event().wait()

        async def send(message):
            if message["type"] == "http.response.body":
                body.append(message.get("body", b""))

        await response({"type": "http", "asgi": {"spec_version": "2.4"}}, receive, send)

        assert b"".join(body) == b"webm" * 1024
        assert released == ["body"]
        assert store.closed == 1
