import pytest

from conduit.client import config as client_config
from conduit.protocol import ConfigError
from conduit.server import config as server_config


@pytest.fixture(autouse=True)
def _restore_configs():
    client_snapshot = client_config.CLIENT_CONFIG.copy()
    server_snapshot = server_config.SERVER_CONFIG.copy()
    yield
    client_config.CLIENT_CONFIG.update(client_snapshot)
    server_config.SERVER_CONFIG.update(server_snapshot)


def test_client_config_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("CONDUIT_ORIGIN", "wss://example.org")
    monkeypatch.setenv("CONDUIT_REQUEST_TIMEOUT", "2.5")
    monkeypatch.setenv("CONDUIT_LOG_LEVEL", "debug")

    loaded = client_config.load_config(str(tmp_path / "missing.env"))

    assert loaded["origin"] == "wss://example.org"
    assert loaded["request_timeout"] == 2.5
    assert loaded["log_level"] == "DEBUG"
    assert client_config.get("key") == client_config.DEFAULT_CONFIG["key"]


def test_client_config_from_env_file(monkeypatch, tmp_path):
    monkeypatch.delenv("CONDUIT_KEY", raising=False)
    env_file = tmp_path / ".env"
    env_file.write_text("CONDUIT_KEY=from-file\n")

    loaded = client_config.load_config(str(env_file))

    assert loaded["key"] == "from-file"
    monkeypatch.delenv("CONDUIT_KEY", raising=False)


def test_client_config_rejects_bad_values(monkeypatch, tmp_path):
    monkeypatch.setenv("CONDUIT_REQUEST_TIMEOUT", "soon")
    with pytest.raises(ConfigError, match="CONDUIT_REQUEST_TIMEOUT"):
        client_config.load_config(str(tmp_path / "missing.env"))


def test_client_config_rejects_non_websocket_origin(monkeypatch, tmp_path):
    monkeypatch.setenv("CONDUIT_ORIGIN", "http://example.org")
    with pytest.raises(ConfigError):
        client_config.load_config(str(tmp_path / "missing.env"))


def test_server_config_from_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("CONDUIT_SERVER_PORT", "9000")
    monkeypatch.setenv("CONDUIT_SERVER_KEY", "secret")

    loaded = server_config.load_server_config(str(tmp_path / "missing.env"))

    assert loaded["port"] == 9000
    assert loaded["key"] == "secret"


def test_server_config_rejects_bad_port(monkeypatch, tmp_path):
    monkeypatch.setenv("CONDUIT_SERVER_PORT", "70000")
    with pytest.raises(ConfigError):
        server_config.load_server_config(str(tmp_path / "missing.env"))
