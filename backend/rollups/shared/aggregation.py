"""
Daily, weekly and monthly aggregators.

Each aggregator recomputes its report from scratch from the child level
and merge-writes it, so any number of overlapping runs converge on the
same document:
- Daily: hour buckets of the date, averages weighted by sample count
- Weekly: daily reports of the seven dates of the ISO week
- Monthly: daily reports of every date of the month

Seed placeholders are never aggregated, and a period without coverage is
never written.
"""

from typing import Any, Dict, Iterable, List, Optional

from aws_lambda_powertools import Logger

from shared.context import PipelineContext
from shared.logging_utils import log_aggregate_update, log_period_skipped
from shared.models import HourlyBucket, PeriodReport
from shared.paths import hours_collection, report_path
from shared.time_utils import (
    DAILY,
    MONTHLY,
    WEEKLY,
    dates_in_iso_week,
    dates_in_month,
    parse_date_key,
    parse_iso_week_key,
    parse_month_key,
    validate_period_key,
)

logger = Logger(child=True)


def combine_hourly_buckets(day: str, buckets: Iterable[HourlyBucket]) -> PeriodReport:
    """
    Combine hour buckets into a daily report.

    Args:
        day: Date key
        buckets: Hour buckets of the date

    Returns:
        PeriodReport with coverage = hours with at least one sample
    """
    coverage = 0
    temperature_sum = 0.0
    temperature_count = 0
    ph_sum = 0.0
    ph_count = 0
    feed_total = 0.0
    feed_found = False

    for bucket in buckets:
        if bucket.is_seed:
            continue

        if bucket.has_temperature or bucket.has_ph:
            coverage += 1

        temperature_sum += bucket.temperature_sum
        temperature_count += bucket.temperature_count
        ph_sum += bucket.ph_sum
        ph_count += bucket.ph_count

        # feedUsedKg starts at 0 on sampled buckets, which is not a measurement
        if bucket.feed_used_kg is not None and bucket.feed_used_kg > 0:
            feed_total += bucket.feed_used_kg
            feed_found = True

    return PeriodReport(
        level=DAILY,
        period=day,
        avg_temperature=temperature_sum / temperature_count if temperature_count else None,
        avg_ph=ph_sum / ph_count if ph_count else None,
        total_feed_kg=feed_total if feed_found else None,
        coverage=coverage,
    )


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


def combine_daily_reports(level: str, period: str, reports: Iterable[PeriodReport]) -> PeriodReport:
    """
    Combine daily reports into a weekly or monthly report.

    Averages are the simple mean of the daily averages present; feed is the
    sum of the daily totals present.

    Args:
        level: "weekly" or "monthly"
        period: ISO week or month key
        reports: Daily reports of the period

    Returns:
        PeriodReport with coverage = number of non-seed daily reports
    """
    days = [report for report in reports if not report.is_seed]

    temperatures = [r.avg_temperature for r in days if r.avg_temperature is not None]
    phs = [r.avg_ph for r in days if r.avg_ph is not None]
    feeds = [r.total_feed_kg for r in days if r.total_feed_kg is not None]

    return PeriodReport(
        level=level,
        period=period,
        avg_temperature=_mean(temperatures),
        avg_ph=_mean(phs),
        total_feed_kg=sum(feeds) if feeds else None,
        coverage=len(days),
    )


def _write_report(ctx: PipelineContext, owner_id: str, report: PeriodReport) -> Optional[Dict[str, Any]]:
    if report.coverage <= 0:
        log_period_skipped(logger, owner_id, report.level, report.period, "no_coverage")
        return None

    report.is_seed = False
    report.generated_at_ms = ctx.now_ms()
    report.source = ctx.source

    fields = report.to_dynamodb_item()
    ctx.store.set(owner_id, report_path(report.level, report.period), fields, merge=True)

    log_aggregate_update(
        logger,
        owner_id,
        report.level,
        report.period,
        report.coverage,
        avg_temperature=report.avg_temperature,
        avg_ph=report.avg_ph
    )
    return fields


def _read_daily_reports(ctx: PipelineContext, owner_id: str, days: List[str]) -> List[PeriodReport]:
    reports = []
    for day in days:
        item = ctx.store.get(owner_id, report_path(DAILY, day))
        if item is not None:
            reports.append(PeriodReport.from_dynamodb_item(DAILY, item, period=day))
    return reports


def aggregate_daily(ctx: PipelineContext, owner_id: str, day: str) -> Optional[Dict[str, Any]]:
    """
    Aggregate the hour buckets of a date into its daily report.

    Args:
        ctx: Pipeline context
        owner_id: Owner identifier
        day: Date key (YYYY-MM-DD)

    Returns:
        The written report fields, or None when no hour has a sample

    Raises:
        PeriodKeyError: If the date key is invalid
    """
    parse_date_key(day)
    documents = ctx.store.get_collection(owner_id, hours_collection(day))
    buckets = [HourlyBucket.from_dynamodb_item(document.data, hour=document.id) for document in documents]
    return _write_report(ctx, owner_id, combine_hourly_buckets(day, buckets))


def aggregate_weekly(ctx: PipelineContext, owner_id: str, week: str) -> Optional[Dict[str, Any]]:
    """
    Aggregate the daily reports of an ISO week into its weekly report.

    Raises:
        PeriodKeyError: If the week key is invalid
    """
    parse_iso_week_key(week)
    reports = _read_daily_reports(ctx, owner_id, dates_in_iso_week(week))
    return _write_report(ctx, owner_id, combine_daily_reports(WEEKLY, week, reports))


def aggregate_monthly(ctx: PipelineContext, owner_id: str, month: str) -> Optional[Dict[str, Any]]:
    """
    Aggregate the daily reports of a calendar month into its monthly report.

    Raises:
        PeriodKeyError: If the month key is invalid
    """
    parse_month_key(month)
    reports = _read_daily_reports(ctx, owner_id, dates_in_month(month))
    return _write_report(ctx, owner_id, combine_daily_reports(MONTHLY, month, reports))


_AGGREGATORS = {
    DAILY: aggregate_daily,
    WEEKLY: aggregate_weekly,
    MONTHLY: aggregate_monthly,
}


def aggregate_period(ctx: PipelineContext, owner_id: str, level: str, period: str) -> Optional[Dict[str, Any]]:
    """Run the aggregator for a level."""
    validate_period_key(level, period)
    return _AGGREGATORS[level](ctx, owner_id, period)
