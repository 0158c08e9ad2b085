"""
Trend identifier.

Compares each availability counter of a period's sensor analytics with the
same counter of the immediately preceding period.
"""

from typing import Any, Dict, Optional

from aws_lambda_powertools import Logger

from shared.context import PipelineContext
from shared.logging_utils import log_trend_update
from shared.models import TREND_FIELDS, TrendDirection
from shared.paths import analytics_path
from shared.time_utils import previous_period

logger = Logger(child=True)


def compare_counts(current: Optional[float], previous: Optional[float]) -> TrendDirection:
    """
    Three-way comparison of a counter against its previous value.

    Returns:
        UNKNOWN when either side is missing, otherwise UP, DOWN or STABLE
    """
    if current is None or previous is None:
        return TrendDirection.UNKNOWN
    if current > previous:
        return TrendDirection.UP
    if current < previous:
        return TrendDirection.DOWN
    return TrendDirection.STABLE


def _counter(document: Optional[Dict[str, Any]], name: str) -> Optional[float]:
    if not document:
        return None
    value = document.get(name)
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def identify_trends(
    ctx: PipelineContext,
    owner_id: str,
    level: str,
    period: str
) -> Optional[Dict[str, str]]:
    """
    Write trend verdicts onto a period's sensor analytics.

    Only the current document is written; the previous one is read only.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        level: "daily", "weekly" or "monthly"
        period: Period key for the level

    Returns:
        Trend field -> verdict, or None when the period has no analytics

    Raises:
        ValueError: If the level is unknown
        PeriodKeyError: If the period key is invalid
    """
    previous_key = previous_period(level, period)

    current = ctx.store.get(owner_id, analytics_path(level, period))
    if not current or current.get("isSeed") is True:
        return None

    previous = ctx.store.get(owner_id, analytics_path(level, previous_key))
    if previous is not None and previous.get("isSeed") is True:
        previous = None

    trends = {
        trend_field: compare_counts(_counter(current, counter), _counter(previous, counter)).value
        for counter, trend_field in TREND_FIELDS.items()
    }

    fields = dict(trends)
    fields["trendsUpdatedAt"] = ctx.now_ms()
    ctx.store.set(owner_id, analytics_path(level, period), fields, merge=True)

    log_trend_update(logger, owner_id, level, period, previous_key, trends)
    return trends
