import logging
import time
from typing import Iterable, Iterator, Optional, Tuple

from auction_monitor.core.data.schema import RawSnapshot
from cores.config import MAX_DATA_POINTS, TimeWindowSpec

logger = logging.getLogger(__name__)


class RetentionWindow:
    """
    Bounded buffer of snapshots eligible for aggregation.

    Every operation returns a new window; the tuple held here is never mutated,
    so the aggregator can work on it while ingest moves on.
    """

    def __init__(
        self, snapshots: Iterable[RawSnapshot] = (), max_data_points: int = MAX_DATA_POINTS
    ):
        if max_data_points < 1:
            raise ValueError("max_data_points must be positive")

        self.max_data_points = max_data_points
        self._snapshots: Tuple[RawSnapshot, ...] = tuple(snapshots)

    @property
    def snapshots(self) -> Tuple[RawSnapshot, ...]:
        return self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[RawSnapshot]:
        return iter(self._snapshots)

    def latest(self) -> Optional[RawSnapshot]:
        if not self._snapshots:
            return None
        return max(self._snapshots, key=lambda p: p.timestamp)

    def _cap(self, snapshots) -> Tuple[RawSnapshot, ...]:
        ordered = sorted(snapshots, key=lambda p: p.timestamp)
        if len(ordered) > self.max_data_points:
            logger.debug(
                f"evicting {len(ordered) - self.max_data_points} oldest snapshots"
            )
            ordered = ordered[-self.max_data_points :]
        return tuple(ordered)

    def append_live(
        self,
        snapshot: RawSnapshot,
        time_window: TimeWindowSpec,
        now: Optional[float] = None,
    ) -> "RetentionWindow":
        """Append a live point, drop points older than the window, cap by timestamp"""
        if now is None:
            now = time.time()
        cutoff = now - time_window.duration.total_seconds()

        survivors = [p for p in self._snapshots + (snapshot,) if p.timestamp >= cutoff]

        return RetentionWindow(self._cap(survivors), self.max_data_points)

    def replace_historical(self, batch: Iterable[RawSnapshot]) -> "RetentionWindow":
        """Supersede the whole buffer with a freshly fetched batch"""
        return RetentionWindow(self._cap(batch), self.max_data_points)
