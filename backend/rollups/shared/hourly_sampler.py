"""
Hourly sampler.

Folds the latest temperature and pH values into the current hour bucket
(hourlyRecords/{date}/hours/{HH}) as running sums and counts. Runs every few
minutes for each active owner; concurrent folds into the same hour are made
safe by the store's atomic read-modify-write.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger

from shared.context import PipelineContext
from shared.logging_utils import log_period_skipped, log_sample_failure
from shared.models import HourlyBucket, PH, TEMPERATURE
from shared.paths import hourly_bucket_path
from shared.time_utils import current_period_keys

logger = Logger(child=True)


def fold_sample(
    current: Optional[Dict[str, Any]],
    hour: str,
    temperature: Optional[float],
    ph: Optional[float],
    source: str,
    updated_at_ms: int
) -> Dict[str, Any]:
    """
    Fold one sample into the fields of an hour bucket.

    A missing bucket, or a seed placeholder, starts from zero sums and
    counts with feedUsedKg initialized to 0.

    Args:
        current: Existing bucket fields, or None
        hour: Hour key ("00".."23")
        temperature: Temperature value, or None when unavailable
        ph: pH value, or None when unavailable
        source: Value for the source field
        updated_at_ms: Write timestamp (epoch ms)

    Returns:
        Bucket fields to merge-write
    """
    if current is None or current.get("isSeed") is True:
        bucket = HourlyBucket(hour=hour)
    else:
        bucket = HourlyBucket.from_dynamodb_item(current, hour=hour)

    bucket.fold(temperature, ph)
    bucket.is_seed = False
    bucket.source = source
    bucket.updated_at_ms = updated_at_ms

    fields = bucket.to_dynamodb_item()
    if bucket.feed_used_kg is None:
        # Leave a bucket's missing feed field alone
        fields.pop("feedUsedKg")
    return fields


def sample_current_hour(
    ctx: PipelineContext,
    owner_id: str,
    now: Optional[datetime] = None
) -> Optional[Dict[str, Any]]:
    """
    Sample the latest sensor values into the current hour bucket.

    Never raises: read, write and conflict failures are logged and the
    sample is dropped.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        now: Optional sampling time (defaults to the context clock)

    Returns:
        The bucket as written, or None when nothing was written
    """
    keys = current_period_keys(now or ctx.now())
    day, hour = keys["date"], keys["hour"]

    try:
        temperature = ctx.sensors.get_latest_value(owner_id, TEMPERATURE)
        ph = ctx.sensors.get_latest_value(owner_id, PH)

        if temperature is None and ph is None:
            log_period_skipped(logger, owner_id, "hourly", f"{day}T{hour}", "no_sensor_values")
            return None

        temperature_value = temperature.value if temperature is not None else None
        ph_value = ph.value if ph is not None else None
        updated_at_ms = ctx.now_ms()

        written = ctx.store.transact(
            owner_id,
            hourly_bucket_path(day, hour),
            lambda current: fold_sample(current, hour, temperature_value, ph_value, ctx.source, updated_at_ms)
        )

        logger.debug(
            "Hourly sample folded",
            extra={
                "owner_id": owner_id,
                "day": day,
                "hour": hour,
                "temperature_count": written.get("temperatureCount"),
                "ph_count": written.get("phCount")
            }
        )
        return written

    except Exception as e:
        log_sample_failure(logger, owner_id, str(e), type(e).__name__, day=day, hour=hour)
        return None
