"""Market data models -- the live per-asset record and its push message."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class GasTiers(BaseModel):
    """Gas price tiers in gwei. Only present for the native-chain asset."""

    slow: float
    average: float
    fast: float


class MarketDataRecord(BaseModel):
    """Current market state for one tracked asset.

    One record per `asset_name`. Mutated in place by the market ticker and
    by API updates; read by simulations and broadcasts.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: int | None = None
    asset_name: str
    ticker: str
    price: float = Field(gt=0)
    change_24h_percent: float | None = Field(default=None, alias="change24hPercent")
    volume_24h: float | None = Field(default=None, alias="volume24h")
    gas_price_gwei: float | None = None
    gas_tiers: GasTiers | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class MarketDataMessage(BaseModel):
    """Server -> client push message carrying the full market snapshot."""

    type: Literal["MARKET_DATA"] = "MARKET_DATA"
    data: list[MarketDataRecord] = Field(default_factory=list)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
