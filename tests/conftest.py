"""Pytest configuration and fixtures."""

from __future__ import annotations

import pytest
import respx

from api_request_helper import config as config_module
from api_request_helper.config import HelperConfig
from api_request_helper.helper import ApiRequestHelper

BASE_URL = "https://api.example.com"

# 1x1 red PNG for download stubs
TINY_PNG = (
    b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01"
    b"\x00\x00\x00\x01\x08\x02\x00\x00\x00\x90wS\xde\x00"
    b"\x00\x00\x0cIDATx\x9cc\xf8\x0f\x00\x00\x01\x01\x00"
    b"\x05\x18\xd8N\x00\x00\x00\x00IEND\xaeB`\x82"
)

FIXED_NOW = 1_700_000_000.0


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Point the config file at a temp dir and clear config env vars."""
    config_dir = tmp_path / "config"
    monkeypatch.setattr(config_module, "CONFIG_DIR", config_dir)
    monkeypatch.setattr(config_module, "CONFIG_FILE", config_dir / "config.toml")
    for name in (
        config_module.API_KEY_ENV,
        config_module.TOKEN_SECRET_ENV,
        config_module.BASE_URL_ENV,
        config_module.TIMEOUT_ENV,
    ):
        monkeypatch.delenv(name, raising=False)
    return config_dir / "config.toml"


@pytest.fixture()
def helper_config() -> HelperConfig:
    """Config with a fixed clock so tokens are reproducible apart from the nonce."""
    return HelperConfig(
        api_key="test-key",
        token_secret="test-secret",
        base_url=BASE_URL,
        timeout=5.0,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture()
def mock_api():
    """Activate respx mock for the API base URL."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as rsps:
        yield rsps


@pytest.fixture()
def helper(mock_api: respx.MockRouter, helper_config: HelperConfig) -> ApiRequestHelper:  # noqa: ARG001
    """ApiRequestHelper wired to the mocked transport."""
    h = ApiRequestHelper(helper_config)
    yield h  # type: ignore[misc]
    h.dispose()


@pytest.fixture()
def statuses(helper: ApiRequestHelper) -> list[int]:
    """Every status code the helper publishes."""
    received: list[int] = []
    helper.status_codes.subscribe(received.append)
    return received
