"""
Report reader for dashboard and export consumers.
"""

from typing import Any, Dict, List, Optional

from shared.context import PipelineContext
from shared.paths import analytics_path, report_collection, report_path
from shared.time_utils import (
    DAILY,
    WEEKLY,
    PeriodKeyError,
    parse_month_key,
    validate_period_key,
    week_overlaps_month,
)


def get_report(ctx: PipelineContext, owner_id: str, level: str, period: str) -> Optional[Dict[str, Any]]:
    """
    Read one report.

    Seed placeholders are returned as stored (isSeed = true) so consumers
    can show an empty state.

    Raises:
        ValueError: If the level is unknown
        PeriodKeyError: If the period key is invalid
    """
    validate_period_key(level, period)
    return ctx.store.get(owner_id, report_path(level, period))


def _in_month(level: str, period: str, month: str) -> bool:
    try:
        validate_period_key(level, period)
    except PeriodKeyError:
        return False
    if level == DAILY:
        return period.startswith(month + "-")
    if level == WEEKLY:
        return week_overlaps_month(period, month)
    return period == month


def list_reports(
    ctx: PipelineContext,
    owner_id: str,
    level: str,
    month: Optional[str] = None
) -> List[Dict[str, Any]]:
    """
    List the non-seed reports of a level, sorted by period.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        level: "daily", "weekly" or "monthly"
        month: Optional month key; daily reports of the month, weekly
            reports whose ISO week overlaps it, or the month's own report

    Returns:
        Report documents, each with its period key under "id"

    Raises:
        ValueError: If the level is unknown
        PeriodKeyError: If the month key is invalid
    """
    collection = report_collection(level)
    if month is not None:
        parse_month_key(month)

    reports = []
    for document in ctx.store.get_collection(owner_id, collection):
        if document.data.get("isSeed") is True:
            continue
        if month is not None and not _in_month(level, document.id, month):
            continue
        report = dict(document.data)
        report["id"] = document.id
        reports.append(report)

    return reports


def get_sensor_analytics(ctx: PipelineContext, owner_id: str, level: str, period: str) -> Optional[Dict[str, Any]]:
    """Read the sensor analytics of one period."""
    validate_period_key(level, period)
    return ctx.store.get(owner_id, analytics_path(level, period))
