import logging
import time
from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from auction_monitor.core.data.transforms import _parse_timestamp, _parse_units

logger = logging.getLogger(__name__)


class RawSnapshot(BaseModel):
    """
    Point-in-time auction observation, amounts in integer units (1e18 per token).

    Accepts the history API spelling (currAuction / currentAuctionPrice /
    minting) and the live status spelling (currentAuction / currentPrice /
    tokensRemaining).
    """

    model_config = ConfigDict(frozen=True)

    auction_id: str = Field(
        "",
        validation_alias=AliasChoices(
            "auction_id", "auction", "auctionId", "currAuction", "currentAuction"
        ),
        description="Sequential auction round id",
    )
    current_price: int = Field(
        0,
        validation_alias=AliasChoices(
            "current_price", "currentPrice", "currentAuctionPrice"
        ),
        description="Price in integer units",
    )
    tokens_remaining: int = Field(
        0,
        validation_alias=AliasChoices("tokens_remaining", "tokensRemaining", "minting"),
        description="Supply remaining in the round, integer units",
    )
    timestamp: float = Field(0, description="Unix seconds")

    @field_validator("auction_id", mode="plain")
    @classmethod
    def _coerce_auction_id(cls, value) -> str:
        return "" if value is None else f"{value}"

    @field_validator("current_price", "tokens_remaining", mode="plain")
    @classmethod
    def _coerce_units(cls, value) -> int:
        return _parse_units(value)

    @field_validator("timestamp", mode="plain")
    @classmethod
    def _coerce_timestamp(cls, value) -> float:
        return _parse_timestamp(value)

    @classmethod
    def from_live_status(cls, status: Dict, timestamp: Optional[float] = None) -> "RawSnapshot":
        """create RawSnapshot from a live auction status push, stamped on arrival"""
        if timestamp is None:
            timestamp = time.time()

        return cls(
            auction_id=status.get("currentAuction"),
            current_price=status.get("currentPrice"),
            tokens_remaining=status.get("tokensRemaining"),
            timestamp=timestamp,
        )


@dataclass(frozen=True)
class PlotPoint:
    """One bucket of the plotted series"""

    auction: str
    price: float
    supply: float
    exact_time: int  # ms, timestamp of the surviving snapshot
    time: int  # ms, bucket start
    tokens_sold: float
    tokens_sold_in_group: float

    def to_dict(self) -> Dict:
        return asdict(self)


class ChartSeries(BaseModel):
    time_window: str
    label: str
    times: List[str] = Field(default_factory=list)
    prices: List[float] = Field(default_factory=list)
    volumes: List[float] = Field(default_factory=list)
    supply: List[float] = Field(default_factory=list)
    current_price_eth: Optional[float] = None
    current_price_usd: Optional[float] = None
    error: Optional[str] = None
