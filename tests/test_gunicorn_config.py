"""
Tests for the production gunicorn configuration.
"""
import importlib.util
from pathlib import Path
from unittest.mock import MagicMock

import pytest

PROJECT_DIR = Path(__file__).resolve().parent.parent


@pytest.fixture
def gunicorn_config(monkeypatch):
    """Load gunicorn.conf.py as a module with a clean environment."""
    for name in ("HOST", "PORT", "GUNICORN_WORKERS", "GUNICORN_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)
    module_spec = importlib.util.spec_from_file_location("gunicorn_conf", PROJECT_DIR / "gunicorn.conf.py")
    module = importlib.util.module_from_spec(module_spec)
    module_spec.loader.exec_module(module)
    return module


class TestGunicornConfig:
    """Tests for the served settings."""

    def test_serves_the_app_with_uvicorn_workers(self, gunicorn_config):
        assert gunicorn_config.worker_class == "uvicorn.workers.UvicornWorker"
        assert gunicorn_config.proc_name == "testpulse-analytics"
        assert gunicorn_config.bind == "0.0.0.0:8000"
        assert gunicorn_config.timeout == 60

    def test_only_service_settings_are_defined(self, gunicorn_config):
        for name in ("preload_app", "reload", "daemon", "pidfile", "umask", "tmp_upload_dir"):
            assert not hasattr(gunicorn_config, name)

    def test_worker_abort_logs_timeout(self, gunicorn_config):
        worker = MagicMock(pid=1234)
        gunicorn_config.worker_abort(worker)
        message = worker.log.warning.call_args[0][0]
        assert "60s" in message
        assert "1234" in message
