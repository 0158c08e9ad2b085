"""
Hourly record generator.

Rebuilds the hour bucket for an explicit (date, hour) from the sensor
snapshot and the feeding schedule. Used by backfill and manual runs.
"""

from typing import Any, Dict, Iterable, Optional

from aws_lambda_powertools import Logger

from shared.context import PipelineContext
from shared.logging_utils import log_period_skipped
from shared.models import FeedingEvent, PH, SensorSnapshot, TEMPERATURE
from shared.paths import hourly_bucket_path
from shared.time_utils import hour_key, hour_window_ms, parse_date_key, parse_hour_key

logger = Logger(child=True)


def snapshot_applies(snapshot: Optional[SensorSnapshot], window_start_ms: int, window_end_ms: int) -> bool:
    """A snapshot applies to an hour when it is undated or taken inside the hour."""
    if snapshot is None:
        return False
    if snapshot.timestamp_ms is None:
        return True
    return window_start_ms <= snapshot.timestamp_ms < window_end_ms


def feed_used_in_window(
    events: Iterable[FeedingEvent],
    window_start_ms: int,
    window_end_ms: int
) -> Optional[float]:
    """
    Sum the feed of events scheduled inside a window.

    Args:
        events: Feeding events
        window_start_ms: Window start (inclusive)
        window_end_ms: Window end (exclusive)

    Returns:
        Total feed in kg, or None when no fed event falls in the window
    """
    total = 0.0
    found = False

    for event in events:
        if event.scheduled_time_ms is None or event.feed_amount_kg is None:
            continue
        if not event.counts_as_fed():
            continue
        if window_start_ms <= event.scheduled_time_ms < window_end_ms:
            total += event.feed_amount_kg
            found = True

    return total if found else None


def generate_hourly_record(
    ctx: PipelineContext,
    owner_id: str,
    day: str,
    hour: Any
) -> Optional[Dict[str, Any]]:
    """
    Recompute and merge-write one hour bucket.

    Sensors without a contribution are left untouched in an existing
    bucket; feedUsedKg is always replaced by the recomputed sum.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        day: Date key (YYYY-MM-DD)
        hour: Hour key ("00".."23") or int

    Returns:
        The written fields, or None when nothing contributes to the hour

    Raises:
        PeriodKeyError: If the date or hour is invalid
    """
    parse_date_key(day)
    hour_str = hour_key(parse_hour_key(hour))
    window_start_ms, window_end_ms = hour_window_ms(day, hour_str)

    temperature = ctx.sensors.get_latest_value(owner_id, TEMPERATURE)
    ph = ctx.sensors.get_latest_value(owner_id, PH)
    feed_kg = feed_used_in_window(ctx.feedings.list_events(owner_id), window_start_ms, window_end_ms)

    fields = {}
    if snapshot_applies(temperature, window_start_ms, window_end_ms):
        fields.update({
            "temperatureSum": temperature.value,
            "temperatureCount": 1,
            "temperatureAvg": temperature.value,
        })
    if snapshot_applies(ph, window_start_ms, window_end_ms):
        fields.update({
            "phSum": ph.value,
            "phCount": 1,
            "phAvg": ph.value,
        })

    if not fields and feed_kg is None:
        log_period_skipped(logger, owner_id, "hourly", f"{day}T{hour_str}", "no_data")
        return None

    fields.update({
        "hour": hour_str,
        "feedUsedKg": feed_kg if feed_kg is not None else 0.0,
        "isSeed": False,
        "source": ctx.source,
        "updatedAt": ctx.now_ms(),
    })

    ctx.store.set(owner_id, hourly_bucket_path(day, hour_str), fields, merge=True)

    logger.debug(
        "Hourly record generated",
        extra={"owner_id": owner_id, "day": day, "hour": hour_str, "feed_used_kg": fields["feedUsedKg"]}
    )
    return fields
