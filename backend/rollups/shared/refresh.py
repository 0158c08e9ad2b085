"""
Period refresh: aggregate, then sensor analytics, then trends.

Every trigger (schedule, dashboard navigation, manual refresh, backfill)
refreshes a period through refresh_period.
"""

from aws_lambda_powertools import Logger

from shared.aggregation import aggregate_period
from shared.context import PipelineContext
from shared.models import RefreshResult
from shared.sensor_analytics import generate_sensor_analytics
from shared.time_utils import validate_period_key
from shared.trends import identify_trends

logger = Logger(child=True)


def refresh_period(ctx: PipelineContext, owner_id: str, level: str, period: str) -> RefreshResult:
    """
    Refresh one period of one owner.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        level: "daily", "weekly" or "monthly"
        period: Period key for the level

    Returns:
        RefreshResult with the written report, analytics and trends (None
        for each step that had nothing to write)

    Raises:
        ValueError: If the level is unknown
        PeriodKeyError: If the period key is invalid
    """
    validate_period_key(level, period)

    result = RefreshResult(level=level, period=period)
    result.report = aggregate_period(ctx, owner_id, level, period)
    result.analytics = generate_sensor_analytics(ctx, owner_id, level, period)
    result.trends = identify_trends(ctx, owner_id, level, period)

    logger.debug(
        "Period refreshed",
        extra={"owner_id": owner_id, "level": level, "period": period, "written": result.written}
    )
    return result
