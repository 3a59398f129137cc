"""
Shared fixtures.
"""

import pytest

from herogate.config import reset_config


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's configuration and AWS credentials."""
    monkeypatch.setenv("HEROGATE_CONFIG", str(tmp_path / "config.yaml"))
    monkeypatch.delenv("HEROGATE_REGION", raising=False)
    monkeypatch.delenv("HEROGATE_PROFILE", raising=False)
    monkeypatch.setenv("AWS_ACCESS_KEY_ID", "testing")
    monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "testing")
    monkeypatch.setenv("AWS_DEFAULT_REGION", "us-east-1")
    reset_config()
    yield
    reset_config()
