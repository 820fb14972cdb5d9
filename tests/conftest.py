"""
Shared test fixtures.

API tests run against an app built with every backend in mock mode, so
no Snowflake account, object storage or ffprobe install is needed. The
video probe is replaced with a stub whose duration each test controls.
"""

from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient

from candidate_portal.api import dependencies
from candidate_portal.api.dependencies import get_video_probe
from candidate_portal.config.settings import Settings
from candidate_portal.core.submission.errors import VideoProbeError
from candidate_portal.main import create_app

MIB = 1024 * 1024


class StubVideoProbe:
    """Reports a fixed duration, or fails like a missing ffprobe."""

    def __init__(self, duration_seconds: float = 10.0, fail: bool = False) -> None:
        self.duration_seconds = duration_seconds
        self.fail = fail
        self.calls = 0

    def is_available(self) -> bool:
        return not self.fail

    async def get_duration(self, video_data: bytes, suffix: str = ".webm") -> float:
        self.calls += 1
        if self.fail:
            raise VideoProbeError("ffprobe not found")
        return self.duration_seconds


def make_pdf(size: int) -> bytes:
    """PDF-looking bytes of an exact size."""
    header = b"%PDF-1.4\n"
    return header + b"0" * (size - len(header))


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        _env_file=None,
        snowflake_mock_mode=True,
        r2_mock_mode=True,
        video_probe_mock_mode=True,
    )


@pytest.fixture()
def video_probe() -> StubVideoProbe:
    return StubVideoProbe()


@pytest.fixture(autouse=True)
def fresh_mock_backends() -> Generator[None, None, None]:
    """Each test starts with empty in-memory storage."""
    dependencies.reset_mock_backends()
    yield
    dependencies.reset_mock_backends()


@pytest.fixture()
def test_client(settings: Settings, video_probe: StubVideoProbe) -> Generator[TestClient, None, None]:
    app = create_app(settings)
    app.dependency_overrides[get_video_probe] = lambda: video_probe
    with TestClient(app) as client:
        yield client


@pytest.fixture()
def form_fields() -> dict[str, str]:
    return {
        "firstName": "Ada",
        "lastName": "Lovelace",
        "positionAppliedFor": "Engineer",
        "currentPosition": "Analyst",
        "experienceYears": "5",
    }


@pytest.fixture()
def resume_bytes() -> bytes:
    return make_pdf(2 * MIB)


@pytest.fixture()
def video_bytes() -> bytes:
    return b"\x1a\x45\xdf\xa3" + b"webm-clip" * 1000


@pytest.fixture()
def pdf_of_size():
    return make_pdf
