"""
Report Generator Lambda

Scheduled refresh of daily, weekly and monthly reports for every active
owner. The event detail selects the level and, optionally, the period:

    {"detail": {"level": "weekly", "period": "2024-W25"}}

Without a period, daily runs target yesterday, weekly runs the previous
ISO week and monthly runs the previous month.
"""

from typing import Dict, Any, Optional
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from shared.context import PipelineContext
from shared.refresh import refresh_period
from shared.retry_utils import process_batch_with_isolation
from shared.time_utils import LEVELS, default_target_period, validate_period_key

logger = Logger()


def run_scheduled_refresh(ctx: PipelineContext, level: str, period: Optional[str] = None) -> Dict[str, Any]:
    """
    Refresh one period for every active owner.

    Args:
        ctx: Pipeline context
        level: "daily", "weekly" or "monthly"
        period: Optional period key; defaults to the last complete period

    Returns:
        Summary with level, period, processed, skipped and errors

    Raises:
        ValueError: If the level or period is invalid
    """
    if level not in LEVELS:
        raise ValueError(f"Unknown level: {level}. Expected one of {', '.join(LEVELS)}")

    if period:
        validate_period_key(level, period)
    else:
        period = default_target_period(level, ctx.now())

    owner_ids = ctx.owners.list_active_owners()

    logger.info(
        "Starting scheduled refresh",
        extra={"level": level, "period": period, "owner_count": len(owner_ids)}
    )

    results, failures = process_batch_with_isolation(
        owner_ids,
        lambda owner_id: refresh_period(ctx, owner_id, level, period),
        logger_instance=logger
    )

    processed = sum(1 for result in results if result.written)
    return {
        "level": level,
        "period": period,
        "processed": processed,
        "skipped": len(results) - processed,
        "errors": len(failures),
    }


@logger.inject_lambda_context
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda handler for scheduled report generation.

    Args:
        event: EventBridge event with detail.level and optional detail.period
        context: Lambda context

    Returns:
        Refresh summary
    """
    detail = event.get("detail") or {}
    level = detail.get("level")
    period = detail.get("period")

    ctx = PipelineContext.from_environment()
    summary = run_scheduled_refresh(ctx, level, period)

    logger.info("Report generation complete", extra=summary)
    return summary
