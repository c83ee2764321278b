"""
Centralized configuration for Watchtower.

Uses Pydantic BaseSettings for environment variable integration
and validation. All configurable values should be defined here.

Configuration sources (in order of precedence):
1. Explicit constructor arguments (CLI flags)
2. Environment variables (WATCHTOWER_*, plus bare webhook names)
3. .env file
4. Default values

The ``json_rpc_url`` default may additionally come from a YAML CLI config
file (see ``load_cli_config``), which the CLI passes in as an override.

Example:
    from watchtower.config import get_config

    config = get_config()
    print(config.json_rpc_url)  # From WATCHTOWER_JSON_RPC_URL or default

    # Override at runtime
    config = get_config(monitor_active_stake=True)
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional
from urllib.parse import urlparse

import yaml
from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from watchtower.constants import (
    DEFAULT_INTERVAL_S,
    DEFAULT_JSON_RPC_URL,
    DEFAULT_MIN_BALANCE_SOL,
    DEFAULT_STAKE_THRESHOLD_PERCENT,
    RPC_CLIENT_TIMEOUT_S,
)

logger = logging.getLogger(__name__)

DEFAULT_CLI_CONFIG_FILE = "~/.config/solana/cli/config.yml"

_BASE58_IDENTITY = re.compile(r"^[1-9A-HJ-NP-Za-km-z]{32,44}$")


def is_valid_identity(value: str) -> bool:
    """Check that a validator identity looks like a base58 public key."""
    return bool(_BASE58_IDENTITY.match(value))


def validate_url(value: str) -> str:
    """Require an http(s) URL with a hostname."""
    parsed = urlparse(value)
    if (parsed.scheme or "").lower() not in ("http", "https"):
        raise ValueError("url scheme must be http or https")
    if not parsed.hostname:
        raise ValueError("url must include a hostname")
    # .port raises ValueError on a non-numeric or out-of-range port
    _ = parsed.port
    return value


class WatchtowerConfig(BaseSettings):
    """
    Central configuration for Watchtower.

    All settings can be overridden via environment variables
    prefixed with WATCHTOWER_.

    Example:
        export WATCHTOWER_JSON_RPC_URL=http://api.devnet.example:8899
        export WATCHTOWER_MONITOR_ACTIVE_STAKE=true
    """

    model_config = SettingsConfigDict(
        env_prefix="WATCHTOWER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
        frozen=True,
    )

    # Cluster
    json_rpc_url: str = Field(
        default=DEFAULT_JSON_RPC_URL,
        description="JSON RPC URL for the cluster",
    )
    rpc_timeout_seconds: float = Field(
        default=RPC_CLIENT_TIMEOUT_S,
        gt=0,
        description="Timeout for each JSON-RPC request",
    )

    # Poll loop
    interval_seconds: int = Field(
        default=DEFAULT_INTERVAL_S,
        ge=1,
        description="Wait interval seconds between checking the cluster",
    )

    # Checks
    validator_identities: List[str] = Field(
        default_factory=list,
        description="Monitor specific validators only instead of the entire cluster",
    )
    no_duplicate_notifications: bool = Field(
        default=False,
        description="Subsequent identical notifications will be suppressed",
    )
    monitor_active_stake: bool = Field(
        default=False,
        description="Alert when the current stake for the cluster drops below the threshold",
    )
    stake_threshold_percent: int = Field(
        default=DEFAULT_STAKE_THRESHOLD_PERCENT,
        ge=0,
        le=100,
        description="Minimum current stake percentage",
    )
    min_balance_sol: float = Field(
        default=DEFAULT_MIN_BALANCE_SOL,
        ge=0,
        description="Minimum SOL balance for watched validator identities",
    )

    # Notifications
    notification_source: str = Field(
        default="watchtower",
        description="Prefix attached to every delivered notification",
    )
    slack_webhook: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("WATCHTOWER_SLACK_WEBHOOK", "SLACK_WEBHOOK"),
    )
    discord_webhook: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("WATCHTOWER_DISCORD_WEBHOOK", "DISCORD_WEBHOOK"),
    )
    telegram_bot_token: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "WATCHTOWER_TELEGRAM_BOT_TOKEN", "TELEGRAM_BOT_TOKEN"
        ),
    )
    telegram_chat_id: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices(
            "WATCHTOWER_TELEGRAM_CHAT_ID", "TELEGRAM_CHAT_ID"
        ),
    )

    # Logging
    log_level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Logging level for Watchtower",
    )
    log_format: Literal["json", "text"] = Field(
        default="text",
        description="Log output format (json for Loki, text for console)",
    )

    # Telemetry
    service_name: str = Field(
        default="watchtower",
        description="Service name for telemetry attribution",
    )
    metrics_enabled: bool = Field(
        default=True,
        description="Emit per-cycle OTel metrics",
    )
    otlp_endpoint: str = Field(
        default="localhost:4317",
        description="OTLP endpoint for metric export",
    )
    metrics_export_interval_ms: int = Field(
        default=60000,
        ge=1000,
        description="How often metrics are exported",
    )

    @field_validator("json_rpc_url")
    @classmethod
    def check_json_rpc_url(cls, v: str) -> str:
        return validate_url(v)

    @field_validator("slack_webhook", "discord_webhook")
    @classmethod
    def check_webhook_url(cls, v: Optional[str]) -> Optional[str]:
        if not v:
            return None
        return validate_url(v)

    @field_validator("validator_identities")
    @classmethod
    def check_identities(cls, v: List[str]) -> List[str]:
        """Validate identities and drop duplicates, keeping configuration order."""
        seen: List[str] = []
        for identity in v:
            identity = identity.strip()
            if not is_valid_identity(identity):
                raise ValueError(f"invalid validator identity: {identity!r}")
            if identity not in seen:
                seen.append(identity)
        return seen

    @field_validator("otlp_endpoint")
    @classmethod
    def validate_endpoint(cls, v: str) -> str:
        """Validate OTLP endpoint format."""
        # Remove protocol prefix if present (SDK adds it)
        if v.startswith("http://"):
            v = v[7:]
        elif v.startswith("https://"):
            v = v[8:]
        return v

    @property
    def dedup_enabled(self) -> bool:
        return self.no_duplicate_notifications


def load_cli_config(path: Optional[str] = None) -> Dict[str, Any]:
    """
    Read the cluster URL from a YAML CLI config file.

    Args:
        path: Config file path. When None, the default location is tried and
              a missing or unreadable file yields an empty dict.

    Returns:
        Dict with ``json_rpc_url`` when the file provides one

    Raises:
        OSError, yaml.YAMLError: If an explicit path cannot be read or parsed
    """
    explicit = path is not None
    config_path = Path(os.path.expanduser(path or DEFAULT_CLI_CONFIG_FILE))

    if not explicit and not config_path.exists():
        return {}

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        if explicit:
            raise
        logger.debug(f"Ignoring unreadable CLI config {config_path}: {e}")
        return {}

    if not isinstance(data, dict):
        return {}

    url = data.get("json_rpc_url")
    if url:
        return {"json_rpc_url": str(url)}
    return {}


# Global singleton
_config: Optional[WatchtowerConfig] = None


def get_config(**overrides) -> WatchtowerConfig:
    """
    Get the global configuration instance.

    Creates a singleton on first call. Subsequent calls return
    the same instance unless overrides are provided.

    Args:
        **overrides: Override any config values

    Returns:
        WatchtowerConfig instance
    """
    global _config

    if overrides or _config is None:
        _config = WatchtowerConfig(**overrides)

    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None
