"""
History aggregation for the auction chart
Turns irregular auction snapshots into one point per time bucket, with the
tokens sold inside each bucket derived from the previous bucket.
"""

import logging
from typing import Dict, Iterable, List, Optional

import polars as pl
from prometheus_client import Summary

from auction_monitor.core.data.schema import ChartSeries, PlotPoint, RawSnapshot
from auction_monitor.core.data.transforms import format_time_label, units_to_decimal
from cores.config import (
    AUCTION_SUPPLY_CAPS,
    WEI_PER_TOKEN,
    SupplyCapTable,
    TimeWindowSpec,
    display_timezone,
)

logger = logging.getLogger(__name__)

AGGREGATION_LATENCY = Summary(
    "auction_history_aggregation_seconds", "Time spent bucketing auction history"
)

POINT_SCHEMA = {
    "auction": pl.Utf8,
    "price": pl.Float64,
    "supply": pl.Float64,
    "exact_time": pl.Int64,
    "tokens_sold": pl.Float64,
}

PLOT_SCHEMA = {
    "auction": pl.Utf8,
    "price": pl.Float64,
    "supply": pl.Float64,
    "exact_time": pl.Int64,
    "time": pl.Int64,
    "tokens_sold": pl.Float64,
    "tokens_sold_in_group": pl.Float64,
}


def normalize_snapshot(
    snapshot, supply_caps: SupplyCapTable = AUCTION_SUPPLY_CAPS
) -> Dict:
    """Standardize a snapshot: token amounts in whole tokens, time in ms"""
    if not isinstance(snapshot, RawSnapshot):
        snapshot = RawSnapshot.model_validate(snapshot)

    cap = supply_caps.cap_for(snapshot.auction_id)
    sold_units = cap * WEI_PER_TOKEN - snapshot.tokens_remaining

    return {
        "auction": snapshot.auction_id,
        "price": float(units_to_decimal(snapshot.current_price)),
        "supply": float(units_to_decimal(snapshot.tokens_remaining)),
        "exact_time": round(snapshot.timestamp * 1000),
        "tokens_sold": float(units_to_decimal(sold_units)),
    }


@AGGREGATION_LATENCY.time()
def aggregate_history_frame(
    snapshots: Iterable,
    time_window: TimeWindowSpec,
    supply_caps: SupplyCapTable = AUCTION_SUPPLY_CAPS,
) -> pl.DataFrame:
    rows = [normalize_snapshot(snapshot, supply_caps) for snapshot in snapshots]
    if not rows:
        return pl.DataFrame(schema=PLOT_SCHEMA)

    grouping = time_window.grouping

    grouped = (
        pl.from_dicts(rows, schema=POINT_SCHEMA)
        # ties on timestamp are ordered by content so input order never matters
        .sort(
            ["exact_time", "auction", "tokens_sold", "price", "supply"],
            maintain_order=True,
        )
        .with_columns(
            ((pl.col("exact_time") / grouping).ceil().cast(pl.Int64) * grouping).alias(
                "time"
            )
        )
        # one point per (auction, bucket), the last one wins
        .group_by(["auction", "time"], maintain_order=True)
        .agg(pl.col("price", "supply", "exact_time", "tokens_sold").last())
    )

    with_tokens_sold = grouped.with_columns(
        pl.when(pl.int_range(pl.len()) == 0)
        .then(pl.lit(0.0))
        # a new round starts from scratch
        .when(pl.col("auction") != pl.col("auction").shift(1))
        .then(pl.col("tokens_sold"))
        .otherwise(pl.col("tokens_sold") - pl.col("tokens_sold").shift(1))
        .alias("tokens_sold_in_group")
    )

    # the first bucket only seeds the delta of the second one
    result = with_tokens_sold.slice(1).select(list(PLOT_SCHEMA))

    logger.debug(
        f"aggregated {len(rows)} snapshots into {len(result)} buckets "
        f"(grouping={grouping}ms)"
    )
    return result


def aggregate_history(
    snapshots: Iterable,
    time_window: TimeWindowSpec,
    supply_caps: SupplyCapTable = AUCTION_SUPPLY_CAPS,
) -> List[PlotPoint]:
    frame = aggregate_history_frame(snapshots, time_window, supply_caps)
    return [PlotPoint(**row) for row in frame.iter_rows(named=True)]


def to_chart_series(
    points: List[PlotPoint],
    time_window: TimeWindowSpec,
    tz: Optional[str] = None,
) -> ChartSeries:
    """Split plot points into the parallel arrays the chart consumes"""
    tz = tz or display_timezone

    return ChartSeries(
        time_window=time_window.name,
        label=time_window.label,
        times=[format_time_label(point.time, tz) for point in points],
        prices=[point.price for point in points],
        volumes=[point.tokens_sold_in_group for point in points],
        supply=[point.supply for point in points],
    )
