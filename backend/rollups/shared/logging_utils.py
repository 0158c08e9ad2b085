"""
Logging utilities for structured logging across all Lambda functions.

Provides helper functions for consistent structured logging with AWS Lambda Powertools.
"""

from typing import Dict, Any, List, Optional
from aws_lambda_powertools import Logger


def log_aggregate_update(
    logger: Logger,
    owner_id: str,
    level: str,
    period: str,
    coverage: int,
    avg_temperature: Optional[float] = None,
    avg_ph: Optional[float] = None
) -> None:
    """
    Log an aggregate report write.

    Args:
        logger: Logger instance
        owner_id: Owner identifier
        level: Aggregation level (daily, weekly, monthly)
        period: Period key
        coverage: Coverage hours (daily) or days (weekly, monthly)
        avg_temperature: Optional written temperature average
        avg_ph: Optional written pH average
    """
    logger.info(
        f"Aggregate updated: {level} {period}",
        extra={
            "owner_id": owner_id,
            "level": level,
            "period": period,
            "coverage": coverage,
            "avg_temperature": avg_temperature,
            "avg_ph": avg_ph,
            "event_category": "aggregate_update"
        }
    )


def log_period_skipped(
    logger: Logger,
    owner_id: str,
    level: str,
    period: str,
    reason: str
) -> None:
    """
    Log a period that produced no write.

    Args:
        logger: Logger instance
        owner_id: Owner identifier
        level: Aggregation level or "hourly"
        period: Period key
        reason: Why nothing was written (e.g. "no_coverage", "no_data")
    """
    logger.debug(
        f"Period skipped: {level} {period}",
        extra={
            "owner_id": owner_id,
            "level": level,
            "period": period,
            "reason": reason,
            "event_category": "period_skipped"
        }
    )


def log_sample_failure(
    logger: Logger,
    owner_id: str,
    error_message: str,
    error_type: str,
    day: Optional[str] = None,
    hour: Optional[str] = None
) -> None:
    """
    Log a swallowed hourly sampling failure.

    Args:
        logger: Logger instance
        owner_id: Owner identifier
        error_message: Error message
        error_type: Type of error
        day: Optional date key of the target bucket
        hour: Optional hour key of the target bucket
    """
    logger.error(
        "Hourly sample failed",
        extra={
            "owner_id": owner_id,
            "day": day,
            "hour": hour,
            "error_message": error_message[:256],
            "error_type": error_type,
            "event_category": "sample_failure"
        }
    )


def log_seed_failure(
    logger: Logger,
    owner_id: str,
    collection: str,
    error_message: str,
    error_type: str
) -> None:
    """Log a swallowed seeding failure for one collection."""
    logger.warning(
        f"Seeding failed for {collection}",
        extra={
            "owner_id": owner_id,
            "collection": collection,
            "error_message": error_message[:256],
            "error_type": error_type,
            "event_category": "seed_failure"
        }
    )


def log_trend_update(
    logger: Logger,
    owner_id: str,
    level: str,
    period: str,
    previous_period: str,
    trends: Dict[str, str]
) -> None:
    logger.info(
        f"Trends updated: {level} {period}",
        extra={
            "owner_id": owner_id,
            "level": level,
            "period": period,
            "previous_period": previous_period,
            "trends": trends,
            "event_category": "trend_update"
        }
    )


def log_backfill_summary(
    logger: Logger,
    owner_id: str,
    stage: str,
    processed: int,
    skipped: int,
    failed: int,
    errors: Optional[List[Dict[str, Any]]] = None
) -> None:
    """
    Log the outcome of a backfill stage.

    Args:
        logger: Logger instance
        owner_id: Owner identifier
        stage: Backfill stage (hourly, daily, weekly_monthly)
        processed: Periods written
        skipped: Periods with nothing to write
        failed: Periods that raised
        errors: Optional per-period failures
    """
    extra_data = {
        "owner_id": owner_id,
        "stage": stage,
        "processed": processed,
        "skipped": skipped,
        "failed": failed,
        "event_category": "backfill_summary"
    }

    if errors:
        # Keep the log line bounded
        extra_data["errors"] = errors[:10]

    log_func = logger.warning if failed else logger.info
    log_func(
        f"Backfill stage {stage} completed",
        extra=extra_data
    )
