"""
Rollups API Lambda

Provides endpoints for the dashboard and export screens:
- POST /owners/{owner_id}/dashboard/open - seed empty collections
- POST /owners/{owner_id}/refresh/{level} - refresh a period (aggregate, analytics, trends)
- GET /owners/{owner_id}/reports/{level} - list reports, optionally for one month
- GET /owners/{owner_id}/reports/{level}/{period} - read one report
- GET /owners/{owner_id}/analytics/{level}/{period} - read one period's sensor analytics
"""

from typing import Dict, Any, Optional
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext
from aws_lambda_powertools.event_handler import APIGatewayRestResolver
from aws_lambda_powertools.event_handler.exceptions import BadRequestError, NotFoundError

from shared.context import PipelineContext
from shared.refresh import refresh_period
from shared.reports import get_report, get_sensor_analytics, list_reports
from shared.seeder import seed_owner_collections
from shared.time_utils import LEVELS, current_period_key, parse_month_key, validate_period_key

logger = Logger()
app = APIGatewayRestResolver()


def build_context() -> PipelineContext:
    """Pipeline context for one request."""
    return PipelineContext.from_environment()


def validate_level_and_period(level: str, period: Optional[str] = None) -> None:
    """
    Validate path parameters.

    Raises:
        BadRequestError: If the level or period key is invalid
    """
    if level not in LEVELS:
        raise BadRequestError(f"Invalid level: {level}. Must be one of: {', '.join(LEVELS)}")
    if period is not None:
        try:
            validate_period_key(level, period)
        except ValueError as e:
            raise BadRequestError(str(e))


@app.post("/owners/<owner_id>/dashboard/open")
def open_dashboard(owner_id: str):
    """
    Seed placeholder documents for an owner opening the dashboard.

    Returns:
        {"owner_id": ..., "seeded": [collection, ...]}
    """
    ctx = build_context()
    seeded = seed_owner_collections(ctx, owner_id)

    logger.info("Dashboard opened", extra={"owner_id": owner_id, "seeded": seeded})
    return {"owner_id": owner_id, "seeded": seeded}


@app.post("/owners/<owner_id>/refresh/<level>")
def refresh(owner_id: str, level: str):
    """
    Refresh one period of an owner.

    Query parameters:
        period: Optional period key (defaults to the current period)

    Returns:
        Refresh result with the written report, analytics and trends
    """
    validate_level_and_period(level)
    ctx = build_context()

    period = app.current_event.get_query_string_value(name="period", default_value=None)
    if period:
        validate_level_and_period(level, period)
    else:
        period = current_period_key(level, ctx.now())

    result = refresh_period(ctx, owner_id, level, period)

    logger.info(
        "Manual refresh complete",
        extra={"owner_id": owner_id, "level": level, "period": period, "written": result.written}
    )
    return result.to_dict()


@app.get("/owners/<owner_id>/reports/<level>")
def get_reports(owner_id: str, level: str):
    """
    List non-seed reports of a level.

    Query parameters:
        month: Optional month key (YYYY-MM)

    Returns:
        {"level": ..., "month": ..., "reports": [...]}
    """
    validate_level_and_period(level)

    month = app.current_event.get_query_string_value(name="month", default_value=None)
    if month:
        try:
            parse_month_key(month)
        except ValueError as e:
            raise BadRequestError(str(e))

    reports = list_reports(build_context(), owner_id, level, month=month or None)
    return {"level": level, "month": month or None, "reports": reports}


@app.get("/owners/<owner_id>/reports/<level>/<period>")
def get_single_report(owner_id: str, level: str, period: str):
    validate_level_and_period(level, period)

    report = get_report(build_context(), owner_id, level, period)
    if report is None:
        raise NotFoundError(f"No {level} report for {period}")
    return report


@app.get("/owners/<owner_id>/analytics/<level>/<period>")
def get_analytics(owner_id: str, level: str, period: str):
    validate_level_and_period(level, period)

    analytics = get_sensor_analytics(build_context(), owner_id, level, period)
    if analytics is None:
        raise NotFoundError(f"No {level} sensor analytics for {period}")
    return analytics


@logger.inject_lambda_context
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda handler for the Rollups API.

    Args:
        event: API Gateway event
        context: Lambda context

    Returns:
        API Gateway response
    """
    return app.resolve(event, context)
