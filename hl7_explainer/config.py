"""Configuration loader for the HL7 explainer gateway.

All settings are read from environment variables (optionally seeded from a
.env file by the caller). Every value has a default so the service starts with
an empty environment; malformed values fail fast at startup.
"""

import os
from dataclasses import dataclass, field
from typing import Mapping, Optional


@dataclass
class ProviderConfig:
    """Configuration for the OpenAI-compatible LLM provider."""

    name: str = "openai"
    base_url: str = "https://api.openai.com/v1"
    api_key_env: str = "OPENAI_API_KEY"
    default_model: str = "gpt-4o-mini"
    max_output_tokens: int = 500
    timeout_seconds: float = 30.0

    @property
    def api_key(self) -> Optional[str]:
        """Resolve the API key from the environment variable."""
        return os.getenv(self.api_key_env)


@dataclass
class RateLimitConfig:
    """Per-source fixed-window parameters."""

    window_ms: int = 60000
    max_requests: int = 10


@dataclass
class ExplainerConfig:
    """Top-level service configuration."""

    frontend_origin: str = "http://localhost:5173"
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    daily_limit: int = 300
    max_payload_chars: int = 5000
    admin_key: Optional[str] = None
    price_per_million_tokens: float = 5.0
    trust_forwarded_for: bool = True
    geoip_database: Optional[str] = None
    system_prompt_file: Optional[str] = None
    log_file: str = "logs/explainer.log"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000


_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _get_str(env: Mapping[str, str], name: str, default: Optional[str]) -> Optional[str]:
    value = env.get(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _get_int(env: Mapping[str, str], name: str, default: int, minimum: int = 0) -> int:
    raw = _get_str(env, name, None)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ValueError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_float(env: Mapping[str, str], name: str, default: float) -> float:
    raw = _get_str(env, name, None)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ValueError(f"{name} must be >= 0, got {value}")
    return value


def _get_bool(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = _get_str(env, name, None)
    if raw is None:
        return default
    lowered = raw.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean, got {raw!r}")


def _get_log_level(env: Mapping[str, str], name: str, default: str) -> str:
    raw = _get_str(env, name, default)
    level = raw.upper()
    if level not in _LOG_LEVELS:
        choices = ", ".join(_LOG_LEVELS)
        raise ValueError(f"{name} must be one of {choices}, got {raw!r}")
    return level


def load_config(environ: Optional[Mapping[str, str]] = None) -> ExplainerConfig:
    """Build the service configuration from environment variables.

    Args:
        environ: Mapping to read from. Defaults to ``os.environ``.

    Returns:
        A fully resolved ExplainerConfig instance.

    Raises:
        ValueError: If a variable is set to a value of the wrong type or range.
    """
    env = os.environ if environ is None else environ

    rate_limit = RateLimitConfig(
        window_ms=_get_int(env, "RATE_WINDOW_MS", 60000, minimum=1),
        max_requests=_get_int(env, "RATE_MAX", 10, minimum=1),
    )

    provider = ProviderConfig(
        base_url=_get_str(env, "OPENAI_BASE_URL", "https://api.openai.com/v1"),
        default_model=_get_str(env, "OPENAI_MODEL", "gpt-4o-mini"),
        max_output_tokens=_get_int(env, "MAX_OUTPUT_TOKENS", 500, minimum=1),
        timeout_seconds=_get_float(env, "LLM_TIMEOUT_SECONDS", 30.0),
    )

    return ExplainerConfig(
        frontend_origin=_get_str(env, "FRONTEND_ORIGIN", "http://localhost:5173"),
        rate_limit=rate_limit,
        provider=provider,
        daily_limit=_get_int(env, "DAILY_LIMIT", 300),
        max_payload_chars=_get_int(env, "MAX_HL7_CHARS", 5000, minimum=1),
        admin_key=_get_str(env, "ADMIN_KEY", None),
        price_per_million_tokens=_get_float(env, "PRICE_PER_MILLION_TOKENS", 5.0),
        trust_forwarded_for=_get_bool(env, "TRUST_FORWARDED_FOR", True),
        geoip_database=_get_str(env, "GEOIP_DATABASE", None),
        system_prompt_file=_get_str(env, "SYSTEM_PROMPT_FILE", None),
        log_file=_get_str(env, "LOG_FILE", "logs/explainer.log"),
        log_level=_get_log_level(env, "LOG_LEVEL", "INFO"),
        host=_get_str(env, "HOST", "0.0.0.0"),
        port=_get_int(env, "PORT", 3000, minimum=1),
    )
