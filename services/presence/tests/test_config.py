import pytest

from presence.config import AppConfig, load_config


def test_missing_file_gives_defaults(tmp_path, monkeypatch) -> None:
    for var in (
        "PRESENCE_HOST",
        "PRESENCE_PORT",
        "PRESENCE_WS_URL",
        "PRESENCE_ROOT_URL",
        "PRESENCE_DEBUG",
        "CORS_ORIGINS",
    ):
        monkeypatch.delenv(var, raising=False)
    assert load_config(tmp_path / "absent.yaml") == AppConfig()


def test_yaml_values_are_loaded(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text(
        "server:\n  port: 9000\npresence:\n  nick_max_chars: 8\nlimits:\n  signin: 5/minute\n",
        encoding="utf-8",
    )
    config = load_config(path)
    assert config.server.port == 9000
    assert config.presence.nick_max_chars == 8
    assert config.limits.signin == "5/minute"


def test_env_overrides_yaml(tmp_path, monkeypatch) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("server:\n  port: 9000\n", encoding="utf-8")
    monkeypatch.setenv("PRESENCE_PORT", "9100")
    monkeypatch.setenv("PRESENCE_WS_URL", "wss://relay.example/")
    monkeypatch.setenv("PRESENCE_DEBUG", "true")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, https://b.example")
    config = load_config(path)
    assert config.server.port == 9100
    assert config.presence.ws_url == "wss://relay.example/"
    assert config.presence.debug is True
    assert config.cors.origins == ["https://a.example", "https://b.example"]


def test_non_mapping_is_rejected(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("- just\n- a list\n", encoding="utf-8")
    with pytest.raises(ValueError, match="must be a mapping"):
        load_config(path)


def test_invalid_values_are_rejected(tmp_path) -> None:
    path = tmp_path / "config.yaml"
    path.write_text("presence:\n  nick_max_chars: 0\n", encoding="utf-8")
    with pytest.raises(ValueError, match="Invalid configuration"):
        load_config(path)
