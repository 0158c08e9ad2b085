"""
Backfill orchestrator.

Rebuilds the hierarchy bottom-up for one owner, one stage at a time:
- hourly: regenerate every hour bucket of a date range
- daily: refresh every date that owns hour buckets
- weekly_monthly: refresh every ISO week and month touched by daily reports

Stages are independent and re-runnable. Periods are processed in ascending
order so each period's trends see the previous period's analytics. A
failing period is logged and counted without stopping the stage.
"""

from typing import Any, Callable, List, Optional, Tuple

from aws_lambda_powertools import Logger

from shared.context import PipelineContext
from shared.hourly_generator import generate_hourly_record
from shared.logging_utils import log_backfill_summary
from shared.models import BackfillResult
from shared.paths import DAILY_REPORTS, HOURLY_RECORDS
from shared.refresh import refresh_period
from shared.retry_utils import process_batch_with_isolation
from shared.time_utils import (
    DAILY,
    MONTHLY,
    WEEKLY,
    PeriodKeyError,
    date_range,
    hour_key,
    iso_week_key,
    month_key,
    parse_date_key,
)

logger = Logger(child=True)

HOURLY_STAGE = "hourly"
DAILY_STAGE = "daily"
WEEKLY_MONTHLY_STAGE = "weekly_monthly"
STAGES = (HOURLY_STAGE, DAILY_STAGE, WEEKLY_MONTHLY_STAGE)


def _run_stage(
    owner_id: str,
    stage: str,
    items: List[Tuple[str, Any]],
    process: Callable[[Tuple[str, Any]], bool]
) -> BackfillResult:
    """Process (period_key, payload) items in order, counting written, skipped and failed."""
    result = BackfillResult(stage=stage)

    outcomes, failures = process_batch_with_isolation(
        items,
        lambda item: (item[0], process(item)),
        key_func=lambda item: item[0],
        logger_instance=logger
    )

    for period, written in outcomes:
        if written:
            result.processed += 1
            result.periods.append(period)
        else:
            result.skipped += 1

    result.failed = len(failures)
    result.errors = failures

    log_backfill_summary(
        logger, owner_id, stage, result.processed, result.skipped, result.failed, errors=result.errors
    )
    return result


def _valid_date_keys(keys: List[str]) -> List[str]:
    valid = []
    for key in keys:
        try:
            parse_date_key(key)
        except PeriodKeyError:
            logger.warning("Ignoring malformed date key", extra={"key": key})
            continue
        valid.append(key)
    return valid


def backfill_hourly(ctx: PipelineContext, owner_id: str, start_date: str, end_date: str) -> BackfillResult:
    """
    Regenerate every hour bucket from start_date to end_date (inclusive).

    Raises:
        PeriodKeyError: If a date is invalid or start_date is after end_date
    """
    items = [
        (f"{day}T{hour_key(hour)}", (day, hour))
        for day in date_range(start_date, end_date)
        for hour in range(24)
    ]

    def process(item):
        day, hour = item[1]
        return generate_hourly_record(ctx, owner_id, day, hour) is not None

    return _run_stage(owner_id, HOURLY_STAGE, items, process)


def backfill_daily(
    ctx: PipelineContext,
    owner_id: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None
) -> BackfillResult:
    """
    Refresh every date that owns hour buckets, ascending.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        start_date: Optional first date to include
        end_date: Optional last date to include

    Returns:
        BackfillResult for the daily stage

    Raises:
        PeriodKeyError: If a bound is invalid or start_date is after end_date
    """
    if start_date is not None:
        parse_date_key(start_date)
    if end_date is not None:
        parse_date_key(end_date)
    if start_date is not None and end_date is not None:
        date_range(start_date, end_date)

    days = _valid_date_keys(ctx.store.list_child_keys(owner_id, HOURLY_RECORDS))
    # Date keys sort chronologically as strings
    days = sorted(
        day for day in days
        if (start_date is None or day >= start_date) and (end_date is None or day <= end_date)
    )

    def process(item):
        return refresh_period(ctx, owner_id, DAILY, item[0]).written

    return _run_stage(owner_id, DAILY_STAGE, [(day, day) for day in days], process)


def backfill_weekly_monthly(ctx: PipelineContext, owner_id: str) -> BackfillResult:
    """
    Refresh every ISO week and month that has a non-seed daily report.

    Weeks are processed before months, each ascending.
    """
    days = _valid_date_keys([
        document.id
        for document in ctx.store.get_collection(owner_id, DAILY_REPORTS)
        if document.data.get("isSeed") is not True
    ])

    weeks = sorted({iso_week_key(parse_date_key(day)) for day in days})
    months = sorted({month_key(parse_date_key(day)) for day in days})
    items = [(week, WEEKLY) for week in weeks] + [(month, MONTHLY) for month in months]

    def process(item):
        period, level = item
        return refresh_period(ctx, owner_id, level, period).written

    return _run_stage(owner_id, WEEKLY_MONTHLY_STAGE, items, process)
