"""
Data Manager for the Auction Chart
Owns the retention window, applies live and historical snapshots and
recomputes the chart series on every change
"""

import concurrent.futures
import logging
import threading
import time
from typing import Callable, Dict, List, Optional

from auction_monitor.core.api.history_client import (
    HistoryClient,
    HistoryUnavailableError,
)
from auction_monitor.core.data.history_aggregator import (
    aggregate_history,
    to_chart_series,
)
from auction_monitor.core.data.schema import RawSnapshot
from auction_monitor.core.data.transforms import smart_round, units_to_decimal
from auction_monitor.core.storage.retention import RetentionWindow
from cores.config import (
    AUCTION_SUPPLY_CAPS,
    DEFAULT_TIME_WINDOW,
    MAX_DATA_POINTS,
    SupplyCapTable,
    get_time_window,
)

logger = logging.getLogger(__name__)


class ChartDataManager:
    """Manages auction history for real-time charting"""

    def __init__(
        self,
        history_client: Optional[HistoryClient] = None,
        time_window: str = DEFAULT_TIME_WINDOW,
        max_data_points: int = MAX_DATA_POINTS,
        supply_caps: SupplyCapTable = AUCTION_SUPPLY_CAPS,
        executor: Optional[concurrent.futures.Executor] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.history_client = history_client or HistoryClient()
        self.time_window = get_time_window(time_window)
        self.supply_caps = supply_caps
        self.window = RetentionWindow(max_data_points=max_data_points)
        self.error: Optional[str] = None
        self.eth_usd_rate: Optional[float] = None

        self.executor = executor or concurrent.futures.ThreadPoolExecutor(max_workers=2)
        self.clock = clock

        # bumped on every history request, only the latest one may land
        self._generation = 0
        self._pending: Optional[concurrent.futures.Future] = None
        self._listeners: List[Callable[[Dict], None]] = []
        self._lock = threading.RLock()
        # aggregation and dispatch run under one lock so broadcasts follow state order
        self._recompute_lock = threading.RLock()

    def subscribe(self, callback: Callable[[Dict], None]) -> None:
        """callback receives every recomputed chart payload"""
        self._listeners.append(callback)

    # ------------------------------------------------------------ ingest ----
    def update_from_realtime(self, status: Dict) -> Dict:
        """Apply a live auction status push"""
        now = self.clock()
        snapshot = RawSnapshot.from_live_status(status, timestamp=now)
        # unknown rounds are rejected before they reach the window
        self.supply_caps.cap_for(snapshot.auction_id)

        with self._lock:
            self.window = self.window.append_live(snapshot, self.time_window, now=now)

        return self._recompute()

    def change_time_window(self, name: str) -> concurrent.futures.Future:
        time_window = get_time_window(name)

        with self._lock:
            self.time_window = time_window
        logger.info(f"Time window changed to {name}")

        self._recompute()
        return self.retrieve_data()

    def retrieve_data(self) -> concurrent.futures.Future:
        """Query history for the selected window in the background"""
        with self._lock:
            self._generation += 1
            generation = self._generation

            if self._pending is not None:
                self._pending.cancel()

            to_ts = int(self.clock())
            from_ts = int(to_ts - self.time_window.duration.total_seconds())

            future = self.executor.submit(
                self.history_client.fetch_history, from_ts, to_ts
            )
            self._pending = future

        future.add_done_callback(
            lambda done: self._on_history_loaded(generation, done)
        )
        return future

    def _on_history_loaded(
        self, generation: int, future: concurrent.futures.Future
    ) -> None:
        with self._lock:
            if generation != self._generation or future.cancelled():
                logger.info(
                    f"Discarding stale history result "
                    f"(request {generation}, current {self._generation})"
                )
                return

            try:
                batch = future.result()
            except HistoryUnavailableError as e:
                self.error = f"History unavailable: {e}"
                logger.warning(self.error)
            else:
                self.window = self.window.replace_historical(batch)
                self.error = None
                logger.info(f"Loaded {len(batch)} historical snapshots")

            self._pending = None

        self._recompute()

    def update_eth_usd_rate(self, value: float) -> Dict:
        with self._lock:
            self.eth_usd_rate = value
        return self._recompute()

    # ------------------------------------------------------------ output ----
    def get_chart_data(self) -> Dict:
        with self._lock:
            window = self.window
            time_window = self.time_window
            error = self.error
            rate = self.eth_usd_rate

        points = aggregate_history(window, time_window, self.supply_caps)
        series = to_chart_series(points, time_window)

        update = {"error": error}
        latest = window.latest()
        if latest is not None:
            price_eth = float(units_to_decimal(latest.current_price))
            update["current_price_eth"] = smart_round(price_eth)
            if rate:
                update["current_price_usd"] = smart_round(price_eth * rate, 3, 2, 2)

        return series.model_copy(update=update).model_dump()

    def _recompute(self) -> Dict:
        with self._recompute_lock:
            chart_data = self.get_chart_data()
            for listener in list(self._listeners):
                listener(chart_data)
        return chart_data

    def shutdown(self):
        self.executor.shutdown(wait=False, cancel_futures=True)
