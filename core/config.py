"""ChainFolio configuration -- config.yaml + .env under the state home.

YAML values may reference the environment as ${VAR} or ${VAR:-fallback}.
Everything is validated by the Pydantic models below, so a bad tick
interval or a zero forecast horizon stops the server at startup.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, field_validator

from core.duration import parse_duration

logger = logging.getLogger(__name__)

HOME_ENV = "CHAINFOLIO_HOME"
DEFAULT_HOME = Path.home() / ".chainfolio"

_ENV_REF = re.compile(r"\$\{(\w+)(?::-([^}]*))?\}")


def _substitute_env(match: re.Match) -> str:
    name, fallback = match.group(1), match.group(2)
    value = os.environ.get(name, fallback)
    if value is None:
        logger.warning("Config references unset environment variable %s", name)
        return match.group(0)
    return value


def _resolve_env_vars(value: Any) -> Any:
    """Substitute ${VAR} / ${VAR:-fallback} in every string of a YAML tree."""
    if isinstance(value, str):
        return _ENV_REF.sub(_substitute_env, value)
    if isinstance(value, dict):
        return {key: _resolve_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# Config models (Pydantic)
# ---------------------------------------------------------------------------

class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = 5000


def _default_seed() -> list[dict]:
    return [
        {
            "asset_name": "Ethereum",
            "ticker": "ETH",
            "price": 3245.67,
            "change_24h_percent": 2.4,
            "volume_24h": 12345678,
            "gas_price_gwei": 34.2,
            "gas_tiers": {"slow": 24, "average": 34, "fast": 48},
        },
        {
            "asset_name": "Chainlink",
            "ticker": "LINK",
            "price": 13.00,
            "change_24h_percent": -1.2,
            "volume_24h": 98765432,
        },
    ]


class MarketConfig(BaseModel):
    tick_interval: str = "10s"
    broadcast_throttle: str = "5s"
    tracked_assets: list[str] = Field(default_factory=lambda: ["Ethereum", "Chainlink"])
    max_price_move: float = 0.005
    max_change_move: float = 0.1
    # Records inserted at startup when the asset has no record yet
    seed: list[dict] = Field(default_factory=_default_seed)

    @field_validator("tick_interval", "broadcast_throttle")
    @classmethod
    def _check_duration(cls, value: str) -> str:
        parse_duration(value)
        return value

    @property
    def tick_seconds(self) -> float:
        return parse_duration(self.tick_interval).total_seconds()

    @property
    def throttle_seconds(self) -> float:
        return parse_duration(self.broadcast_throttle).total_seconds()


class SimulationConfig(BaseModel):
    historical_days: int = Field(default=30, gt=0)
    forecast_days: int = Field(default=7, gt=0)
    window_size: int = Field(default=10, gt=0)
    volatility_factor: float = Field(default=0.03, gt=0, lt=1)
    transaction_cost_percent: float = 0.3
    default_gas_price: float = 25.0
    gas_prices: dict[str, float] = Field(default_factory=lambda: {"Ethereum": 50.0})

    def gas_price_for(self, asset_name: str) -> float:
        return self.gas_prices.get(asset_name, self.default_gas_price)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    audit_events: bool = True
    # Event types kept out of the audit log (ticks fire every few seconds)
    audit_exclude: list[str] = Field(default_factory=lambda: ["market.tick"])


class AppConfig(BaseModel):
    """Top-level application configuration."""

    home_dir: str = str(DEFAULT_HOME)
    server: ServerConfig = Field(default_factory=ServerConfig)
    market: MarketConfig = Field(default_factory=MarketConfig)
    simulation: SimulationConfig = Field(default_factory=SimulationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def home_path(self) -> Path:
        """Resolved home directory as a Path."""
        return Path(self.home_dir).expanduser()


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_config(
    config_path: str | Path | None = None,
    env_path: str | Path | None = None,
) -> AppConfig:
    """Build the AppConfig for this process.

    The .env file is loaded first so config.yaml can reference its values.
    Both files default to the state home ($CHAINFOLIO_HOME or ~/.chainfolio),
    and a missing config.yaml simply means "all defaults". The home and its
    events/ directory are created on the way out.
    """
    home = Path(os.environ.get(HOME_ENV, DEFAULT_HOME)).expanduser()
    env_file = Path(env_path) if env_path is not None else home / ".env"
    config_file = Path(config_path) if config_path is not None else home / "config.yaml"

    if env_file.exists():
        load_dotenv(env_file)
        logger.info("Loaded environment from %s", env_file)

    raw: dict = {}
    if config_file.exists():
        raw = yaml.safe_load(config_file.read_text()) or {}
        logger.info("Loaded config from %s", config_file)
    else:
        logger.warning("No config file at %s, using defaults", config_file)

    settings = _resolve_env_vars(raw)
    if HOME_ENV in os.environ:
        settings["home_dir"] = os.environ[HOME_ENV]

    config = AppConfig(**settings)
    for directory in (config.home_path, config.home_path / "events"):
        directory.mkdir(parents=True, exist_ok=True)
    return config
