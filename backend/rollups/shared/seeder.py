"""
Seeder.

Writes zero-valued placeholder documents (isSeed = true) into empty
collections when an owner opens the dashboard, so consumers have something
to render before the first real aggregate exists. Aggregators never read
seed documents as data.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from aws_lambda_powertools import Logger

from shared.context import PipelineContext
from shared.logging_utils import log_seed_failure
from shared.models import HourlyBucket, PeriodReport, TRACKED_SENSORS
from shared.paths import (
    DAILY_REPORTS,
    HOURLY_RECORDS,
    MONTHLY_REPORTS,
    WEEKLY_REPORTS,
    hourly_bucket_path,
    report_path,
)
from shared.time_utils import DAILY, MONTHLY, WEEKLY, current_period_keys

logger = Logger(child=True)

SEED_COLLECTIONS = (HOURLY_RECORDS, DAILY_REPORTS, WEEKLY_REPORTS, MONTHLY_REPORTS)

# Collections that are only seeded once a sensor has reported
SENSOR_GATED_COLLECTIONS = (HOURLY_RECORDS, DAILY_REPORTS)


def _seed_document(ctx: PipelineContext, collection: str, keys: Dict[str, str]) -> Tuple[str, Dict[str, Any]]:
    if collection == HOURLY_RECORDS:
        bucket = HourlyBucket.seed(keys["hour"])
        bucket.source = ctx.source
        bucket.updated_at_ms = ctx.now_ms()
        return hourly_bucket_path(keys["date"], keys["hour"]), bucket.to_dynamodb_item()

    level, period = {
        DAILY_REPORTS: (DAILY, keys["date"]),
        WEEKLY_REPORTS: (WEEKLY, keys["week"]),
        MONTHLY_REPORTS: (MONTHLY, keys["month"]),
    }[collection]
    report = PeriodReport.seed(level, period)
    report.source = ctx.source
    report.generated_at_ms = ctx.now_ms()
    return report_path(level, period), report.to_dynamodb_item()


def _has_sensor_value(ctx: PipelineContext, owner_id: str) -> bool:
    return any(ctx.sensors.get_latest_value(owner_id, name) is not None for name in TRACKED_SENSORS)


def seed_owner_collections(
    ctx: PipelineContext,
    owner_id: str,
    now: Optional[datetime] = None
) -> List[str]:
    """
    Seed each empty collection of an owner with one placeholder document.

    Never raises: a failure on one collection is logged and the others are
    still attempted.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        now: Optional time selecting the seeded periods (defaults to the context clock)

    Returns:
        Names of the collections that were seeded
    """
    keys = current_period_keys(now or ctx.now())
    seeded = []
    has_sensor_value = None

    for collection in SEED_COLLECTIONS:
        try:
            if not ctx.store.is_collection_empty(owner_id, collection):
                continue

            if collection in SENSOR_GATED_COLLECTIONS:
                if has_sensor_value is None:
                    has_sensor_value = _has_sensor_value(ctx, owner_id)
                if not has_sensor_value:
                    logger.debug(
                        "No sensor value yet, not seeding",
                        extra={"owner_id": owner_id, "collection": collection}
                    )
                    continue

            path, fields = _seed_document(ctx, collection, keys)
            created = []

            def apply(current):
                # A concurrent writer got there first; leave its document alone
                del created[:]
                if current is not None:
                    return {}
                created.append(path)
                return fields

            ctx.store.transact(owner_id, path, apply)

            if created:
                seeded.append(collection)
                logger.info("Seeded collection", extra={"owner_id": owner_id, "collection": collection, "doc_path": path})

        except Exception as e:
            log_seed_failure(logger, owner_id, collection, str(e), type(e).__name__)

    return seeded
