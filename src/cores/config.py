import os
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, Optional

from dotenv import load_dotenv

load_dotenv()

# ===================== api endpoints =========================================
met_api_url = os.getenv("MET_API_URL", "http://localhost:3002")
history_request_timeout = float(os.getenv("HISTORY_REQUEST_TIMEOUT", "10"))

coincap_url = os.getenv("COINCAP_URL", "https://api.coincap.io/v2/assets/ethereum")
rate_refresh_seconds = int(os.getenv("RATE_REFRESH_SECONDS", "60"))

# ===================== redis stream ==========================================
redis_host = os.getenv("REDIS_HOST", "localhost")
redis_port = int(os.getenv("REDIS_PORT", "6379"))
redis_db = int(os.getenv("REDIS_DB", "0"))
auction_status_stream = os.getenv("AUCTION_STATUS_STREAM", "auction_status_stream")
auction_consumer_group = "auction_chart_consumers"

# ===================== chart display =========================================
display_timezone = os.getenv("DISPLAY_TIMEZONE", "UTC")
time_label_format = "%I:%M"

# ===================== retention & units =====================================
MAX_DATA_POINTS = 500
WEI_PER_TOKEN = 10**18


# ===================== time windows ==========================================
@dataclass(frozen=True)
class TimeWindowSpec:
    name: str
    duration: timedelta
    grouping: int  # bucket width in milliseconds
    label: str

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "duration_seconds": int(self.duration.total_seconds()),
            "grouping": self.grouping,
            "label": self.label,
        }


TIME_WINDOWS: Dict[str, TimeWindowSpec] = {
    "quarter": TimeWindowSpec("quarter", timedelta(minutes=15), 60000, "15 Minutes"),
    "hour": TimeWindowSpec("hour", timedelta(hours=1), 60000, "Hour"),
    "six": TimeWindowSpec("six", timedelta(hours=6), 600000, "6 Hours"),
    "twelve": TimeWindowSpec("twelve", timedelta(hours=12), 1200000, "12 Hours"),
    "day": TimeWindowSpec("day", timedelta(days=1), 1200000, "Day"),
    "week": TimeWindowSpec("week", timedelta(days=7), 1200000, "7 Days"),
}
DEFAULT_TIME_WINDOW = "day"


# ===================== auction supply caps ===================================
class UnknownAuctionError(ValueError):
    """Raised when an auction id has no configured supply cap."""


class SupplyCapTable:
    """
    Total token supply per auction round, in whole tokens.

    Explicit entries win. ``default_cap`` applies to any other numbered round
    ("1", "2", ...). Anything else is a configuration gap and raises.
    """

    def __init__(self, caps: Dict[str, int], default_cap: Optional[int] = None):
        self.caps = dict(caps)
        self.default_cap = default_cap

    def cap_for(self, auction_id: str) -> int:
        if auction_id in self.caps:
            return self.caps[auction_id]
        if self.default_cap is not None and auction_id.isdigit():
            return self.default_cap
        raise UnknownAuctionError(f"No supply cap configured for auction {auction_id!r}")

    def to_dict(self) -> Dict:
        return {"caps": dict(self.caps), "default_cap": self.default_cap}


# round 0 is the initial auction, every later round is a daily auction
AUCTION_SUPPLY_CAPS = SupplyCapTable({"0": 8_000_000}, default_cap=2_880)


# ===================== lookup functions ======================================
def get_time_window(name):
    if name not in TIME_WINDOWS:
        raise ValueError(f"Unsupported time window: {name}")

    return TIME_WINDOWS[name]


if __name__ == "__main__":
    for spec in TIME_WINDOWS.values():
        print(spec.to_dict())
    print(AUCTION_SUPPLY_CAPS.to_dict())
