from crypto_proxy.config.settings import Settings


def test_defaults():
    config = Settings(_env_file=None)
    assert config.port == 4000
    assert config.cache_ttl_seconds == 900
    assert config.rate_limit_max_requests == 100
    assert config.rate_limit_window_seconds == 900
    assert config.upstream_base_url == "https://api.coingecko.com/api/v3"
    assert "http://localhost:5173" in config.cors_allowed_origins


def test_env_lists_and_credential_alias(monkeypatch):
    monkeypatch.delenv("COINGECKO_API_KEY", raising=False)
    monkeypatch.setenv("VITE_API_KEY", "from-vite")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.example, https://b.example")
    monkeypatch.setenv("ALLOWED_VS_CURRENCIES", '["USD", "GBP"]')

    config = Settings(_env_file=None)

    assert config.coingecko_api_key == "from-vite"
    assert config.cors_allowed_origins == ["https://a.example", "https://b.example"]
    assert config.allowed_vs_currencies == ["usd", "gbp"]
