"""
Sensor analytics generator.

Counts sensor availability per period:
- Daily: per hour bucket, whether temperature, pH, both or neither were sampled
- Weekly/monthly: totals of the daily counters of the dates in the period
"""

from typing import Any, Dict, Iterable, Optional

from aws_lambda_powertools import Logger

from shared.context import PipelineContext
from shared.logging_utils import log_period_skipped
from shared.models import HourlyBucket, SensorAnalytics, TREND_FIELDS, TrendDirection
from shared.paths import analytics_path, hours_collection
from shared.time_utils import DAILY, WEEKLY, dates_in_iso_week, dates_in_month, validate_period_key

logger = Logger(child=True)


def count_hourly_availability(day: str, buckets: Iterable[HourlyBucket]) -> SensorAnalytics:
    """
    Count sensor availability over the hour buckets of a date.

    Args:
        day: Date key
        buckets: Hour buckets of the date

    Returns:
        Daily SensorAnalytics (seed buckets are not counted)
    """
    analytics = SensorAnalytics(level=DAILY, period=day)

    for bucket in buckets:
        if bucket.is_seed:
            continue
        if bucket.has_temperature:
            analytics.temp_availability += 1
        if bucket.has_ph:
            analytics.ph_availability += 1
        if bucket.has_temperature and bucket.has_ph:
            analytics.both_sensors_availability += 1
        if not bucket.has_temperature and not bucket.has_ph:
            analytics.no_data_hours += 1

    return analytics


def sum_daily_analytics(level: str, period: str, daily: Iterable[SensorAnalytics]) -> SensorAnalytics:
    """Total the counters of non-seed daily analytics."""
    analytics = SensorAnalytics(level=level, period=period)
    for day in daily:
        if not day.is_seed:
            analytics.add(day)
    return analytics


def _compute(ctx: PipelineContext, owner_id: str, level: str, period: str) -> SensorAnalytics:
    if level == DAILY:
        documents = ctx.store.get_collection(owner_id, hours_collection(period))
        buckets = [HourlyBucket.from_dynamodb_item(document.data, hour=document.id) for document in documents]
        return count_hourly_availability(period, buckets)

    days = dates_in_iso_week(period) if level == WEEKLY else dates_in_month(period)
    daily = []
    for day in days:
        item = ctx.store.get(owner_id, analytics_path(DAILY, day))
        if item is not None:
            daily.append(SensorAnalytics.from_dynamodb_item(DAILY, item, period=day))
    return sum_daily_analytics(level, period, daily)


def generate_sensor_analytics(
    ctx: PipelineContext,
    owner_id: str,
    level: str,
    period: str
) -> Optional[Dict[str, Any]]:
    """
    Recompute and merge-write the sensor analytics of a period.

    Trend fields are initialized to "unknown" only when the stored document
    has none, so existing verdicts survive a recount.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        level: "daily", "weekly" or "monthly"
        period: Period key for the level

    Returns:
        The stored analytics document, or None when every counter is zero

    Raises:
        ValueError: If the level is unknown
        PeriodKeyError: If the period key is invalid
    """
    validate_period_key(level, period)

    analytics = _compute(ctx, owner_id, level, period)
    if analytics.is_empty():
        log_period_skipped(logger, owner_id, level, period, "no_samples")
        return None

    analytics.generated_at_ms = ctx.now_ms()
    analytics.source = ctx.source
    counts = analytics.to_dynamodb_item()

    def apply(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        fields = dict(counts)
        for trend_field in TREND_FIELDS.values():
            if not current or trend_field not in current:
                fields[trend_field] = TrendDirection.UNKNOWN.value
        return fields

    written = ctx.store.transact(owner_id, analytics_path(level, period), apply)

    logger.info(
        f"Sensor analytics updated: {level} {period}",
        extra={"owner_id": owner_id, "level": level, "period": period, "counters": analytics.counters()}
    )
    return written
