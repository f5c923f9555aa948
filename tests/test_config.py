import pytest

from upgrade_manager.backend.config import Config, ConfigError

REQUIRED = {
    "DATABASE_URL": "sqlite:///tmp/upgrades.db",
    "PROGRAM_ID": "EWkUZhSovRmxtyGYB7hgnb3LSfb9Z5XdrZtPJEeDiG1H",
    "PAYER_KEYPAIR_PATH": "/tmp/payer.json",
}


def test_defaults_fill_optional_values():
    config = Config.from_env(dict(REQUIRED))
    assert config.rpc_url == "http://localhost:8899"
    assert config.host == "127.0.0.1"
    assert config.port == 3000
    assert config.database_url == REQUIRED["DATABASE_URL"]
    assert config.program_id == REQUIRED["PROGRAM_ID"]
    assert config.payer_keypair_path == REQUIRED["PAYER_KEYPAIR_PATH"]


def test_explicit_values_override_defaults():
    env = dict(REQUIRED, RPC_URL="http://node.example.com", HOST="0.0.0.0", PORT="8080")
    config = Config.from_env(env)
    assert config.rpc_url == "http://node.example.com"
    assert config.host == "0.0.0.0"
    assert config.port == 8080


@pytest.mark.parametrize("missing", sorted(REQUIRED))
def test_missing_required_variable_raises(missing):
    env = {key: value for key, value in REQUIRED.items() if key != missing}
    with pytest.raises(ConfigError, match=missing):
        Config.from_env(env)


@pytest.mark.parametrize("port", ["abc", "", " 80", "-1", "70000", "3.5"])
def test_invalid_port_raises(port):
    with pytest.raises(ConfigError):
        Config.from_env(dict(REQUIRED, PORT=port))


def test_reads_process_environment(monkeypatch):
    for key, value in REQUIRED.items():
        monkeypatch.setenv(key, value)
    monkeypatch.setenv("PORT", "4000")
    monkeypatch.delenv("HOST", raising=False)
    config = Config.from_env()
    assert config.port == 4000
    assert config.host == "127.0.0.1"