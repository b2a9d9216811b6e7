"""
Utility functions for choosing time bucket intervals from a date range.

Click history is folded in-process, so buckets are computed with
``strftime`` labels rather than database aggregation stages. The interval
adapts to the span being analysed: 10-minute buckets for the last hour,
hourly up to a day, daily beyond that.
"""

from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, List, Mapping


class TimeBucketStrategy(Enum):
    """Enumeration of available time bucketing strategies"""

    MINUTE_10 = "10_minute"
    HOURLY = "hourly"
    DAILY = "daily"


class TimeBucketConfig:
    """Configuration for time bucket aggregation"""

    def __init__(
        self,
        strategy: TimeBucketStrategy,
        label_format: str,
        interval: timedelta,
    ):
        self.strategy = strategy
        self.label_format = label_format
        self.interval = interval


BUCKET_CONFIGS = {
    TimeBucketStrategy.MINUTE_10: TimeBucketConfig(
        strategy=TimeBucketStrategy.MINUTE_10,
        label_format="%Y-%m-%d %H:%M",
        interval=timedelta(minutes=10),
    ),
    TimeBucketStrategy.HOURLY: TimeBucketConfig(
        strategy=TimeBucketStrategy.HOURLY,
        label_format="%Y-%m-%d %H:00",
        interval=timedelta(hours=1),
    ),
    TimeBucketStrategy.DAILY: TimeBucketConfig(
        strategy=TimeBucketStrategy.DAILY,
        label_format="%Y-%m-%d",
        interval=timedelta(days=1),
    ),
}


def determine_optimal_bucket_strategy(
    start_date: datetime, end_date: datetime
) -> TimeBucketStrategy:
    """
    Determine the optimal time bucket strategy based on the date range.

    Strategy Rules:
    - ≤ 1 hour: 10-minute buckets
    - ≤ 24 hours: hourly buckets
    - > 24 hours: daily buckets
    """
    if not start_date or not end_date:
        return TimeBucketStrategy.DAILY

    total_hours = (end_date - start_date).total_seconds() / 3600

    if total_hours <= 1:
        return TimeBucketStrategy.MINUTE_10
    elif total_hours <= 24:
        return TimeBucketStrategy.HOURLY
    else:
        return TimeBucketStrategy.DAILY


def get_optimal_bucket_config(
    start_date: datetime, end_date: datetime
) -> TimeBucketConfig:
    """Get the optimal bucket configuration based on date range."""
    return BUCKET_CONFIGS[determine_optimal_bucket_strategy(start_date, end_date)]


def floor_to_bucket(moment: datetime, bucket_config: TimeBucketConfig) -> datetime:
    """Round *moment* down to the start of its bucket."""
    if bucket_config.strategy == TimeBucketStrategy.MINUTE_10:
        return moment.replace(minute=(moment.minute // 10) * 10, second=0, microsecond=0)
    if bucket_config.strategy == TimeBucketStrategy.HOURLY:
        return moment.replace(minute=0, second=0, microsecond=0)
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def bucket_label(moment: datetime, bucket_config: TimeBucketConfig) -> str:
    """Return the display label of the bucket containing *moment*."""
    return floor_to_bucket(moment, bucket_config).strftime(bucket_config.label_format)


def generate_complete_time_buckets(
    start_date: datetime, end_date: datetime, bucket_config: TimeBucketConfig
) -> List[str]:
    """
    Generate a complete list of time bucket labels for a given date range.

    This ensures that all time periods are represented in the response,
    even if there are no clicks during those periods.
    """
    buckets = []
    current = floor_to_bucket(start_date, bucket_config)
    while current <= end_date:
        buckets.append(current.strftime(bucket_config.label_format))
        try:
            current += bucket_config.interval
        except OverflowError:
            # Stepped past datetime.max
            break
    return buckets


def fill_missing_buckets(
    counts: Mapping[str, int],
    start_date: datetime,
    end_date: datetime,
    bucket_config: TimeBucketConfig,
) -> List[Dict[str, Any]]:
    """
    Expand bucket counts into a continuous, zero-filled series.

    Args:
        counts: Clicks per bucket label
        start_date: Start of the time range
        end_date: End of the time range
        bucket_config: The bucket configuration used

    Returns:
        One ``{"date", "clicks"}`` entry per bucket, in chronological order
    """
    return [
        {"date": bucket, "clicks": counts.get(bucket, 0)}
        for bucket in generate_complete_time_buckets(start_date, end_date, bucket_config)
    ]
