"""
Backfill Lambda

Invoked explicitly to rebuild one owner's hierarchy, one stage per call:

    {"owner_id": "owner-1", "stage": "hourly", "start_date": "2024-06-01", "end_date": "2024-06-07"}
    {"owner_id": "owner-1", "stage": "daily"}
    {"owner_id": "owner-1", "stage": "weekly_monthly"}

Run the stages in that order to rebuild everything.
"""

from typing import Dict, Any, Optional
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from shared.backfill import (
    DAILY_STAGE,
    HOURLY_STAGE,
    STAGES,
    WEEKLY_MONTHLY_STAGE,
    backfill_daily,
    backfill_hourly,
    backfill_weekly_monthly,
)
from shared.context import PipelineContext
from shared.models import BackfillResult

logger = Logger()


def run_backfill_stage(
    ctx: PipelineContext,
    owner_id: str,
    stage: str,
    start_date: Optional[str] = None,
    end_date: Optional[str] = None
) -> BackfillResult:
    """
    Run one backfill stage.

    Raises:
        ValueError: If the owner, stage or dates are invalid
    """
    if not owner_id:
        raise ValueError("owner_id is required")

    if stage == HOURLY_STAGE:
        if not start_date or not end_date:
            raise ValueError("start_date and end_date are required for the hourly stage")
        return backfill_hourly(ctx, owner_id, start_date, end_date)

    if stage == DAILY_STAGE:
        return backfill_daily(ctx, owner_id, start_date, end_date)

    if stage == WEEKLY_MONTHLY_STAGE:
        return backfill_weekly_monthly(ctx, owner_id)

    raise ValueError(f"Unknown stage: {stage}. Expected one of {', '.join(STAGES)}")


@logger.inject_lambda_context
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda handler for backfill.

    Args:
        event: Dict with owner_id, stage and optional start_date/end_date
        context: Lambda context

    Returns:
        Stage result with processed, skipped, failed, periods and errors
    """
    owner_id = event.get("owner_id")
    stage = event.get("stage")

    logger.info("Backfill invoked", extra={"owner_id": owner_id, "stage": stage})

    ctx = PipelineContext.from_environment()
    result = run_backfill_stage(
        ctx,
        owner_id,
        stage,
        start_date=event.get("start_date"),
        end_date=event.get("end_date")
    )
    return result.to_dict()
