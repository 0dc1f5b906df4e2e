"""Simulation models -- the persisted forecast result and its chart series."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Tier = Literal["Low", "Medium", "High"]


class FullSeries(BaseModel):
    """Historical and forecast values aligned by index.

    The historical segment has `None` for predicted/bounds, the future
    segment has `None` for actual.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    dates: list[str]
    actual: list[float | None]
    predicted: list[float | None]
    upper_bound: list[float | None]
    lower_bound: list[float | None]


class SimulationResult(BaseModel):
    """A completed price simulation for one owner and asset.

    Created once per run and never updated. `id` is assigned by the store
    when the result is persisted.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: int | None = None
    owner_id: int
    asset_name: str

    # Forecast summary
    last_predicted_price: float
    confidence_percent: int = Field(ge=0, le=100)
    volatility_tier: Tier
    upper_bound: float
    lower_bound: float
    recommendation_text: str

    # Auxiliary metrics
    yield_percent: float
    gas_fee_estimate: float
    impermanent_loss_percent: float
    liquidity_impact_tier: Tier
    break_even_price: float

    full_series: FullSeries
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json_dict(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
