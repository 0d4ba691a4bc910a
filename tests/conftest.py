"""Shared test fixtures for the HL7 explainer gateway tests."""

from pathlib import Path
from typing import Callable, Dict

import pytest

from hl7_explainer import app as app_module
from hl7_explainer.config import ExplainerConfig, load_config

ADMIN_KEY = "test-admin-key"
TEST_API_KEY_ENV = "TEST_OPENAI_API_KEY"


def build_config(tmp_path: Path, **env: str) -> ExplainerConfig:
    """Build a test config from an environment mapping (no real API key)."""
    environ: Dict[str, str] = {
        "RATE_WINDOW_MS": "60000",
        "RATE_MAX": "10",
        "DAILY_LIMIT": "300",
        "MAX_HL7_CHARS": "5000",
        "ADMIN_KEY": ADMIN_KEY,
        "LOG_FILE": str(tmp_path / "test.log"),
    }
    environ.update(env)
    config = load_config(environ)
    config.provider.api_key_env = TEST_API_KEY_ENV
    return config


@pytest.fixture()
def test_config(tmp_path: Path) -> ExplainerConfig:
    """Return a test ExplainerConfig with default limits."""
    return build_config(tmp_path)


@pytest.fixture()
def configure_app(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> Callable[..., None]:
    """Point the app at a fresh test config and reset its cached state.

    Call with environment-style overrides, e.g. ``configure_app(RATE_MAX="3")``.
    """

    def _configure(**env: str) -> None:
        monkeypatch.delenv(TEST_API_KEY_ENV, raising=False)
        monkeypatch.setattr(app_module, "_config", build_config(tmp_path, **env))
        monkeypatch.setattr(app_module, "_limiter", None)
        monkeypatch.setattr(app_module, "_ledger", None)
        monkeypatch.setattr(app_module, "_geo", None)
        monkeypatch.setattr(app_module, "_system_prompt", None)

    _configure()
    return _configure
