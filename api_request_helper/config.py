"""Configuration, API key and request token handling."""

from __future__ import annotations

import hashlib
import hmac
import os
import secrets
import time
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Callable

# ============================================================================
# XDG Base Directory Configuration
# ============================================================================

# Config: ~/.config/api-request-helper/config.toml
CONFIG_DIR = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config")) / "api-request-helper"
CONFIG_FILE = CONFIG_DIR / "config.toml"

# Environment variables, checked before the config file
API_KEY_ENV = "XAPI_KEY"
TOKEN_SECRET_ENV = "XAPITOKEN_ENCRYPTION_KEY"
BASE_URL_ENV = "ARH_BASE_URL"
TIMEOUT_ENV = "ARH_TIMEOUT"

DEFAULT_TIMEOUT = 60.0

# Number of parts in a request token
_TOKEN_PARTS = 3
_SIGNATURE_LENGTH = 32


# ============================================================================
# Request tokens
# ============================================================================


def _sign(secret: str, data: str) -> str:
    return hmac.new(secret.encode(), data.encode(), hashlib.sha256).hexdigest()[:_SIGNATURE_LENGTH]


def create_api_token(secret: str, clock: Callable[[], float] = time.time) -> str:
    """Create a signed per-request token from the current timestamp.

    The token is ``<epoch-ms>:<nonce>:<signature>``; the nonce keeps two
    tokens issued in the same millisecond distinct.
    """
    timestamp = int(clock() * 1000)
    data = f"{timestamp}:{secrets.token_hex(8)}"
    return f"{data}:{_sign(secret, data)}"


def verify_api_token(
    token: str | None,
    secret: str,
    max_age: float | None = None,
    clock: Callable[[], float] = time.time,
) -> bool:
    """Verify a token created by :func:`create_api_token`.

    With ``max_age`` (seconds) set, tokens older than that are rejected.
    """
    if not token:
        return False
    try:
        parts = token.split(":")
        if len(parts) != _TOKEN_PARTS:
            return False
        timestamp_str, nonce, signature = parts
        timestamp = int(timestamp_str)
        if max_age is not None and clock() * 1000 - timestamp > max_age * 1000:
            return False
        expected = _sign(secret, f"{timestamp_str}:{nonce}")
        return hmac.compare_digest(signature, expected)
    except (ValueError, TypeError):
        return False


# ============================================================================
# Config file
# ============================================================================


def load_config() -> dict[str, Any]:
    """Load configuration from TOML config file."""
    if CONFIG_FILE.exists():
        with CONFIG_FILE.open("rb") as f:
            return tomllib.load(f)
    return {}


def save_config(config: dict[str, Any]) -> None:
    """Save configuration to TOML config file."""
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    lines: list[str] = []
    for key, value in config.items():
        if isinstance(value, dict):
            lines.append(f"[{key}]")
            for k, v in value.items():
                if isinstance(v, str):
                    lines.append(f'{k} = "{v}"')
                else:
                    lines.append(f"{k} = {v}")
            lines.append("")
        elif isinstance(value, str):
            lines.append(f'{key} = "{value}"')
        else:
            lines.append(f"{key} = {value}")

    CONFIG_FILE.write_text("\n".join(lines) + "\n")


def _api_section() -> dict[str, Any]:
    section = load_config().get("api", {})
    return section if isinstance(section, dict) else {}


def _lookup(env_name: str, key: str, section: dict[str, Any]) -> str | None:
    env_value = os.environ.get(env_name)
    if env_value:
        return env_value
    value = section.get(key)
    if value not in (None, ""):
        return str(value)
    return None


def load_api_key() -> str | None:
    """Load the API key from XAPI_KEY env var or config file."""
    return _lookup(API_KEY_ENV, "key", _api_section())


def load_token_secret() -> str | None:
    """Load the token signing secret from XAPITOKEN_ENCRYPTION_KEY env var or config file."""
    return _lookup(TOKEN_SECRET_ENV, "token_secret", _api_section())


# ============================================================================
# Helper configuration
# ============================================================================


@dataclass
class HelperConfig:
    """Everything the request helper needs to build headers and send requests."""

    api_key: str = ""
    token_secret: str = ""
    api_key_header: str = "x-api-key"
    token_header: str = "x-api-token"
    auth_header: str = "Authorization"
    base_url: str = ""
    timeout: float = DEFAULT_TIMEOUT
    debug: bool = False
    clock: Callable[[], float] = field(default=time.time, repr=False)
    token_factory: Callable[[HelperConfig], str] | None = field(default=None, repr=False)

    def create_token(self) -> str:
        """Return a fresh value for the token header."""
        if self.token_factory is not None:
            return self.token_factory(self)
        return create_api_token(self.token_secret, clock=self.clock)

    @classmethod
    def from_env(cls, **overrides: Any) -> HelperConfig:
        """Build config from env vars, then the config file, then defaults."""
        section = _api_section()
        timeout = _lookup(TIMEOUT_ENV, "timeout", section)
        values: dict[str, Any] = {
            "api_key": _lookup(API_KEY_ENV, "key", section) or "",
            "token_secret": _lookup(TOKEN_SECRET_ENV, "token_secret", section) or "",
            "base_url": _lookup(BASE_URL_ENV, "base_url", section) or "",
            "timeout": float(timeout) if timeout else DEFAULT_TIMEOUT,
        }
        values.update(overrides)
        return cls(**values)
