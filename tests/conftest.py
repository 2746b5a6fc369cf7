"""
MediaProbe Test Configuration

Shared fixtures and configuration for all tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from mediaprobe.config import (
    BatchConfig,
    DeliveryConfig,
    ExtractionConfig,
    FFmpegConfig,
    LoggingConfig,
    MediaProbeConfig,
)
from mediaprobe.extraction.backends import BackendWorkspace
from mediaprobe.extraction.engine import ExtractionEngine
from mediaprobe.main import create_app
from mediaprobe.service import MetadataService
from tests.fixtures import FakeBackend, sample_ffmpeg_log, sample_box_info


# ============ Temporary File Fixtures ============


@pytest.fixture(scope="function")
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(scope="function")
def temp_media_file(temp_dir: Path) -> Path:
    """Create a temporary media file for testing (not a real video)."""
    media_file = temp_dir / "test_video.mkv"
    media_file.write_bytes(b"\x1a\x45\xdf\xa3" + b"\x00" * 1020)
    return media_file


@pytest.fixture(scope="function")
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_file = temp_dir / "config.yaml"
    config_content = """
server:
  host: "0.0.0.0"
  port: 9100
  debug: true

batch:
  item_timeout: 30

logging:
  level: "DEBUG"
  to_file: false
"""
    config_file.write_text(config_content)
    return config_file


# ============ Config Fixtures ============


@pytest.fixture
def fast_config(temp_dir: Path) -> MediaProbeConfig:
    """Configuration with every delay and backoff set to zero."""
    return MediaProbeConfig(
        ffmpeg=FFmpegConfig(scratch_dir=str(temp_dir / "scratch")),
        extraction=ExtractionConfig(
            write_backoff_base=0.0,
            cleanup_backoff=0.0,
            write_timeout=5.0,
            execute_timeout=5.0,
        ),
        batch=BatchConfig(
            item_timeout=5.0,
            admission_delay=0.0,
            success_cooldown=0.0,
            error_cooldown=0.0,
        ),
        delivery=DeliveryConfig(output_dir=str(temp_dir / "exports")),
        logging=LoggingConfig(to_file=False),
    )


# ============ Backend Fixtures ============


@pytest.fixture
def workspace(temp_dir: Path) -> Generator[BackendWorkspace, None, None]:
    """Shared scratch workspace for fake backends."""
    ws = BackendWorkspace(parent=str(temp_dir / "scratch"))
    yield ws
    ws.destroy()


@pytest.fixture
def text_backend(workspace: BackendWorkspace) -> FakeBackend:
    """Scripted text backend printing a one-video, one-audio log."""
    return FakeBackend(workspace, method_name="FFmpeg", log_lines=sample_ffmpeg_log().splitlines())


@pytest.fixture
def box_backend(workspace: BackendWorkspace) -> FakeBackend:
    """Scripted box backend returning a one-track info graph."""
    return FakeBackend(workspace, method_name="FFprobe", info=sample_box_info())


@pytest.fixture
def engine(fast_config: MediaProbeConfig, text_backend: FakeBackend, box_backend: FakeBackend) -> ExtractionEngine:
    """Extraction engine wired to scripted backends."""
    return ExtractionEngine(
        fast_config,
        text_backend=text_backend,
        box_backend=box_backend,
    )


# ============ Application Fixtures ============


@pytest.fixture(scope="function")
def app(fast_config: MediaProbeConfig, engine: ExtractionEngine) -> FastAPI:
    """Create a test application backed by scripted backends."""
    return create_app(fast_config, service=MetadataService(fast_config, engine=engine))


@pytest.fixture(scope="function")
def client(app: FastAPI) -> Generator[TestClient, None, None]:
    """Create a synchronous test client."""
    with TestClient(app) as client:
        yield client


# ============ Environment Fixtures ============


@pytest.fixture(autouse=True)
def clean_environment():
    """Clean environment variables for each test."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("MEDIAPROBE_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def mock_env_vars():
    """Set up mock environment variables."""
    env_vars = {
        "MEDIAPROBE_PORT": "9200",
        "MEDIAPROBE_DEBUG": "true",
        "MEDIAPROBE_ITEM_TIMEOUT": "12.5",
        "MEDIAPROBE_FFMPEG_PATH": "/opt/ffmpeg/bin/ffmpeg",
    }
    with patch.dict(os.environ, env_vars):
        yield env_vars


# ============ Markers ============


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "ffmpeg: FFmpeg required")
