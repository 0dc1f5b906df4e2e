"""Error taxonomy shared by the simulation and market-data pipelines.

Each error carries a `kind` string that the HTTP layer returns to clients so
they can tell bad input apart from an unknown asset or an internal failure.
"""

from __future__ import annotations


class ChainFolioError(Exception):
    """Base class for all domain errors."""

    kind = "Error"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.kind)
        self.message = message or self.kind

    def to_dict(self) -> dict:
        return {"error": self.kind, "message": self.message}


class InvalidInput(ChainFolioError):
    """Malformed parameters (non-positive price or day count, bad factor)."""

    kind = "InvalidInput"


class InsufficientData(ChainFolioError):
    """The series is too short to build a single training window."""

    kind = "InsufficientData"


class AssetNotFound(ChainFolioError):
    """No market data record exists for the requested asset."""

    kind = "AssetNotFound"

    def __init__(self, asset_name: str) -> None:
        super().__init__(f"No market data for asset '{asset_name}'")
        self.asset_name = asset_name


class NotFound(ChainFolioError):
    """A persisted record with the given id does not exist."""

    kind = "NotFound"


class SimulationFailed(ChainFolioError):
    """Unexpected failure inside a simulation run.

    The original exception is chained as `__cause__` and also kept on
    `cause` for callers that log it.
    """

    kind = "SimulationFailed"

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class BroadcastSendFailure(ChainFolioError):
    """Delivering a snapshot to one subscriber failed."""

    kind = "BroadcastSendFailure"


class TickFailure(ChainFolioError):
    """Updating one asset during a market tick failed."""

    kind = "TickFailure"

    def __init__(self, asset_name: str, cause: BaseException | None = None) -> None:
        super().__init__(f"Tick update failed for {asset_name}: {cause}")
        self.asset_name = asset_name
        self.cause = cause
