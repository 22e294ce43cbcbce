"""Tests for settings loading."""

from crosspay.config import Settings


class TestSettings:
    """Tests for Settings."""

    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.quote_timeout_seconds == 20
        assert settings.settlement_poll_interval == 5
        assert settings.settlement_max_attempts == 60
        assert settings.provider_ids == ["squid", "lifi", "across", "socket", "1inch"]

    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("ENABLED_PROVIDERS", "across, LIFI")
        monkeypatch.setenv("QUOTE_TIMEOUT_SECONDS", "7.5")
        monkeypatch.setenv("ENVIRONMENT", "production")

        settings = Settings(_env_file=None)

        assert settings.provider_ids == ["across", "lifi"]
        assert settings.quote_timeout_seconds == 7.5
        assert settings.is_production is True

    def test_empty_provider_list(self):
        assert Settings(enabled_providers="").provider_ids == []

    def test_rpc_lookup(self):
        settings = Settings(rpc_urls={8453: "http://base.local"})

        assert settings.get_rpc_url(8453) == "http://base.local"
        assert settings.get_rpc_url(1) is None

    def test_safe_dict_redacts_keys(self):
        settings = Settings(socket_api_key="sock-secret", lifi_api_key="")
        safe = settings.get_safe_dict()

        assert safe["providers"]["socket"] == "***"
        assert safe["providers"]["lifi"] == "(not set)"
        assert "sock-secret" not in str(safe)
