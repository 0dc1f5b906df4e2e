from datetime import timedelta

import pytest
from pydantic import ValidationError

from core.config import AppConfig, MarketConfig, SimulationConfig, load_config
from core.duration import parse_duration


@pytest.mark.parametrize(
    "value, expected",
    [
        ("500ms", timedelta(milliseconds=500)),
        ("10s", timedelta(seconds=10)),
        ("1.5m", timedelta(seconds=90)),
        ("2h", timedelta(hours=2)),
        (" 5 S ", timedelta(seconds=5)),
        (3, timedelta(seconds=3)),
    ],
)
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "fast", "10d", "-5s", -1])
def test_parse_duration_rejects_garbage(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_defaults():
    config = AppConfig()
    assert config.server.port == 5000
    assert config.market.tick_seconds == 10.0
    assert config.market.throttle_seconds == 5.0
    assert config.market.tracked_assets == ["Ethereum", "Chainlink"]
    assert config.simulation.historical_days == 30
    assert config.simulation.forecast_days == 7
    assert config.simulation.window_size == 10


def test_gas_price_lookup():
    settings = SimulationConfig()
    assert settings.gas_price_for("Ethereum") == 50.0
    assert settings.gas_price_for("Chainlink") == 25.0


def test_invalid_values_fail_fast():
    with pytest.raises(ValidationError):
        MarketConfig(tick_interval="soon")
    with pytest.raises(ValidationError):
        SimulationConfig(forecast_days=0)
    with pytest.raises(ValidationError):
        SimulationConfig(volatility_factor=1.5)


def test_load_config_from_yaml_and_env(tmp_path, monkeypatch):
    home = tmp_path / "home"
    monkeypatch.setenv("CHAINFOLIO_HOME", str(home))
    # Registers the variable with monkeypatch so the value .env loads is undone
    monkeypatch.setenv("CHAINFOLIO_PORT", "0")
    monkeypatch.delenv("CHAINFOLIO_PORT")

    env_file = tmp_path / ".env"
    env_file.write_text("CHAINFOLIO_PORT=8123\n")
    config_file = tmp_path / "config.yaml"
    config_file.write_text(
        "server:\n"
        "  port: ${CHAINFOLIO_PORT}\n"
        "market:\n"
        "  tick_interval: 2s\n"
        "  tracked_assets: [Ethereum]\n"
        "simulation:\n"
        "  forecast_days: 14\n"
    )

    config = load_config(config_path=config_file, env_path=env_file)

    assert config.server.port == 8123
    assert config.market.tick_seconds == 2.0
    assert config.market.tracked_assets == ["Ethereum"]
    assert config.simulation.forecast_days == 14
    assert config.home_path == home
    assert (home / "events").is_dir()


def test_load_config_without_files_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("CHAINFOLIO_HOME", str(tmp_path))
    config = load_config()
    assert config.server.host == "127.0.0.1"
    assert config.market.seed[0]["asset_name"] == "Ethereum"


def test_env_fallback_syntax(tmp_path, monkeypatch):
    monkeypatch.setenv("CHAINFOLIO_HOME", str(tmp_path))
    monkeypatch.delenv("CHAINFOLIO_TICK", raising=False)
    config_file = tmp_path / "config.yaml"
    config_file.write_text("market:\n  tick_interval: ${CHAINFOLIO_TICK:-3s}\n")

    assert load_config(config_path=config_file).market.tick_seconds == 3.0

    monkeypatch.setenv("CHAINFOLIO_TICK", "500ms")
    assert load_config(config_path=config_file).market.tick_seconds == 0.5
