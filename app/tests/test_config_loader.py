from pathlib import Path

import app.config.loader as loader


def _write_config(path: Path, content: str) -> None:
    path.write_text(content, encoding="utf-8")


def test_load_config_missing_file_returns_empty(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_CONFIG_PATH", tmp_path / "config.yaml")

    assert loader.load_config() == {}


def test_load_config_non_mapping_returns_empty(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "- just\n- a list\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    assert loader.load_config() == {}


def test_database_url_env_overrides_config(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(config_path, "database_url: sqlite:///./from-config.db\n")
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    monkeypatch.delenv("MEETLINE_DATABASE_URL", raising=False)
    assert loader.get_database_url() == "sqlite:///./from-config.db"

    monkeypatch.setenv("MEETLINE_DATABASE_URL", "sqlite:///./from-env.db")
    assert loader.get_database_url() == "sqlite:///./from-env.db"


def test_database_url_default(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_CONFIG_PATH", tmp_path / "config.yaml")
    monkeypatch.delenv("MEETLINE_DATABASE_URL", raising=False)

    assert loader.get_database_url() == "sqlite:///./meetline.db"


def test_sqlite_and_pool_coercion(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "sqlite:",
                "  busy_timeout_ms: \"abc\"",
                "  synchronous: FULL",
                "database_pool:",
                "  pool_size: 0",
                "  max_overflow: 5",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    sqlite_settings = loader.get_sqlite_settings()
    pool_settings = loader.get_pool_settings()

    assert sqlite_settings["busy_timeout_ms"] == 30000
    assert sqlite_settings["synchronous"] == "FULL"
    assert sqlite_settings["journal_mode"] == "WAL"
    assert pool_settings["pool_size"] == 20
    assert pool_settings["max_overflow"] == 5


def test_summarization_defaults_when_missing(monkeypatch, tmp_path):
    monkeypatch.setattr(loader, "_CONFIG_PATH", tmp_path / "config.yaml")
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)

    settings = loader.get_summarization_settings()

    assert settings["provider"] == "gemini"
    assert settings["model"] == "gemini-2.0-flash"
    assert settings["timeout_seconds"] == 30
    assert settings["api_key"] is None


def test_summarization_api_key_env_wins(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    _write_config(
        config_path,
        "\n".join(
            [
                "summarization:",
                "  api_key: from-config",
                "  timeout_seconds: \"-1\"",
                "  temperature: 5",
                "  base_url: https://proxy.example/",
            ]
        ),
    )
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)

    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    assert loader.get_summarization_settings()["api_key"] == "from-config"

    monkeypatch.setenv("GEMINI_API_KEY", "from-env")
    settings = loader.get_summarization_settings()
    assert settings["api_key"] == "from-env"
    assert settings["timeout_seconds"] == 30
    assert settings["temperature"] == 1.0
    assert settings["base_url"] == "https://proxy.example"


def test_access_token_expiry_sources(monkeypatch, tmp_path):
    config_path = tmp_path / "config.yaml"
    monkeypatch.setattr(loader, "_CONFIG_PATH", config_path)
    monkeypatch.delenv("MEETLINE_ACCESS_TOKEN_EXPIRE_MINUTES", raising=False)
    assert loader.get_access_token_expire_minutes() == 60

    monkeypatch.setenv("MEETLINE_ACCESS_TOKEN_EXPIRE_MINUTES", "15")
    assert loader.get_access_token_expire_minutes() == 15

    _write_config(config_path, "auth:\n  access_token_expire_minutes: 45\n")
    assert loader.get_access_token_expire_minutes() == 45
