"""
Pytest configuration and fixtures for PDF Relay Backend tests.
"""

from typing import List, Optional

import httpx
import pytest
from fastapi.testclient import TestClient

from pdf_relay_backend.configuration import load_config
from pdf_relay_backend.main import create_app

from helpers import MINIMAL_PDF, WEBHOOK_URL


class DownstreamStub:
    """Stands in for the workflow webhook and records every call."""

    def __init__(self) -> None:
        self.requests: List[httpx.Request] = []
        self.status_code = 200
        self.json_body: object = {"jobId": "wf-123", "status": "queued"}
        self.error: Optional[Exception] = None

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def last_content(self) -> bytes:
        return self.requests[-1].content


@pytest.fixture
def staging_dir(tmp_path):
    path = tmp_path / "uploads"
    path.mkdir()
    return path


@pytest.fixture
def config(staging_dir):
    return load_config(
        environ={},
        overrides={
            "webhook_url": WEBHOOK_URL,
            "temp_dir": str(staging_dir),
            "max_file_size_mb": 5,
        },
    )


@pytest.fixture
def downstream():
    return DownstreamStub()


@pytest.fixture
def app(config, downstream):
    return create_app(config, transport=httpx.MockTransport(downstream.handler))


@pytest.fixture
def client(app):
    """Create a test client for the FastAPI app."""
    return TestClient(app)


@pytest.fixture
def sample_pdf():
    return MINIMAL_PDF
