"""Tests for config.settings."""

import pytest

from config.settings import Settings


class TestSettings:
    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("HOOKCRON_JOBS_FILE", "/tmp/jobs.yaml")
        monkeypatch.setenv("HOOKCRON_PORT", "9090")
        settings = Settings(_env_file=None)
        assert str(settings.jobs_path) == "/tmp/jobs.yaml"
        assert settings.port == 9090

    def test_with_addr(self):
        settings = Settings(_env_file=None)
        assert settings.with_addr(":9000").port == 9000
        assert settings.with_addr(":9000").host == "0.0.0.0"
        local = settings.with_addr("127.0.0.1:8081")
        assert (local.host, local.port) == ("127.0.0.1", 8081)

    def test_with_addr_rejects_garbage(self):
        with pytest.raises(ValueError):
            Settings(_env_file=None).with_addr("localhost")
