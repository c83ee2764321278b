"""Tests for WatchtowerConfig, the YAML CLI config loader and the singleton."""

import pytest
from pydantic import ValidationError

from conftest import VALIDATOR_A, VALIDATOR_B
from watchtower.config import (
    WatchtowerConfig,
    get_config,
    is_valid_identity,
    load_cli_config,
    reset_config,
)
from watchtower.constants import (
    DEFAULT_INTERVAL_S,
    DEFAULT_JSON_RPC_URL,
    DEFAULT_STAKE_THRESHOLD_PERCENT,
)


class TestDefaults:
    def test_defaults(self):
        config = WatchtowerConfig()

        assert config.json_rpc_url == DEFAULT_JSON_RPC_URL
        assert config.interval_seconds == DEFAULT_INTERVAL_S
        assert config.validator_identities == []
        assert config.no_duplicate_notifications is False
        assert config.monitor_active_stake is False
        assert config.stake_threshold_percent == DEFAULT_STAKE_THRESHOLD_PERCENT
        assert config.min_balance_sol == 1.0
        assert config.slack_webhook is None
        assert config.log_format == "text"

    def test_dedup_enabled_mirrors_flag(self):
        assert not WatchtowerConfig().dedup_enabled
        assert WatchtowerConfig(no_duplicate_notifications=True).dedup_enabled

    def test_config_is_frozen(self):
        config = WatchtowerConfig()

        with pytest.raises(ValidationError):
            config.interval_seconds = 5


class TestEnvironment:
    def test_prefixed_env_vars(self, monkeypatch):
        monkeypatch.setenv("WATCHTOWER_JSON_RPC_URL", "https://api.devnet.test")
        monkeypatch.setenv("WATCHTOWER_INTERVAL_SECONDS", "15")
        monkeypatch.setenv("WATCHTOWER_MONITOR_ACTIVE_STAKE", "true")
        monkeypatch.setenv("WATCHTOWER_VALIDATOR_IDENTITIES", f'["{VALIDATOR_A}"]')

        config = WatchtowerConfig()

        assert config.json_rpc_url == "https://api.devnet.test"
        assert config.interval_seconds == 15
        assert config.monitor_active_stake is True
        assert config.validator_identities == [VALIDATOR_A]

    def test_bare_webhook_env_vars(self, monkeypatch):
        monkeypatch.setenv("SLACK_WEBHOOK", "https://hooks.slack.test/x")
        monkeypatch.setenv("TELEGRAM_CHAT_ID", "-42")

        config = WatchtowerConfig()

        assert config.slack_webhook == "https://hooks.slack.test/x"
        assert config.telegram_chat_id == "-42"

    def test_thresholds_tunable_from_env(self, monkeypatch):
        monkeypatch.setenv("WATCHTOWER_STAKE_THRESHOLD_PERCENT", "66")
        monkeypatch.setenv("WATCHTOWER_MIN_BALANCE_SOL", "0.5")

        config = WatchtowerConfig()

        assert config.stake_threshold_percent == 66
        assert config.min_balance_sol == 0.5

    def test_constructor_overrides_env(self, monkeypatch):
        monkeypatch.setenv("WATCHTOWER_INTERVAL_SECONDS", "15")

        assert WatchtowerConfig(interval_seconds=5).interval_seconds == 5


class TestValidation:
    @pytest.mark.parametrize("url", ["ftp://rpc.test", "not a url", "http://"])
    def test_rejects_bad_url(self, url):
        with pytest.raises(ValidationError):
            WatchtowerConfig(json_rpc_url=url)

    @pytest.mark.parametrize(
        "url", ["https://hooks.slack.test:notaport/x", "hooks.slack.test/x", "https://"]
    )
    def test_rejects_bad_webhook_url(self, url):
        with pytest.raises(ValidationError):
            WatchtowerConfig(slack_webhook=url)

    def test_bad_webhook_url_from_env(self, monkeypatch):
        monkeypatch.setenv("DISCORD_WEBHOOK", "discord.test/api/webhooks/1")

        with pytest.raises(ValidationError):
            WatchtowerConfig()

    def test_empty_webhook_is_unset(self):
        assert WatchtowerConfig(slack_webhook="").slack_webhook is None

    def test_rejects_url_with_bad_port(self):
        with pytest.raises(ValidationError):
            WatchtowerConfig(json_rpc_url="http://rpc.test:99999")

    def test_rejects_bad_identity(self):
        with pytest.raises(ValidationError, match="invalid validator identity"):
            WatchtowerConfig(validator_identities=["not-a-pubkey"])

    def test_duplicate_identities_dropped_in_order(self):
        config = WatchtowerConfig(
            validator_identities=[VALIDATOR_B, VALIDATOR_A, VALIDATOR_B]
        )

        assert config.validator_identities == [VALIDATOR_B, VALIDATOR_A]

    def test_interval_must_be_positive(self):
        with pytest.raises(ValidationError):
            WatchtowerConfig(interval_seconds=0)

    def test_otlp_endpoint_scheme_stripped(self):
        assert WatchtowerConfig(otlp_endpoint="http://otel:4317").otlp_endpoint == "otel:4317"

    def test_identity_check(self):
        assert is_valid_identity(VALIDATOR_A)
        assert not is_valid_identity("0OIl" * 10)
        assert not is_valid_identity("short")


class TestCliConfigFile:
    def test_reads_json_rpc_url(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(
            "json_rpc_url: https://api.testnet.test\n"
            "websocket_url: ''\n"
            "keypair_path: /tmp/id.json\n"
        )

        assert load_cli_config(str(path)) == {"json_rpc_url": "https://api.testnet.test"}

    def test_file_without_url(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text("keypair_path: /tmp/id.json\n")

        assert load_cli_config(str(path)) == {}

    def test_missing_explicit_file_raises(self, tmp_path):
        with pytest.raises(OSError):
            load_cli_config(str(tmp_path / "missing.yml"))

    def test_missing_default_file_is_ignored(self):
        assert load_cli_config() == {}

    def test_default_file_is_used(self, tmp_path, monkeypatch):
        path = tmp_path / "default.yml"
        path.write_text("json_rpc_url: http://10.0.0.1:8899\n")
        monkeypatch.setattr("watchtower.config.DEFAULT_CLI_CONFIG_FILE", str(path))

        assert load_cli_config() == {"json_rpc_url": "http://10.0.0.1:8899"}


class TestSingleton:
    def test_get_config_caches(self):
        assert get_config() is get_config()

    def test_overrides_replace_instance(self):
        first = get_config()
        second = get_config(monitor_active_stake=True)

        assert second is not first
        assert second.monitor_active_stake
        assert get_config() is second

    def test_reset(self):
        first = get_config()
        reset_config()

        assert get_config() is not first
