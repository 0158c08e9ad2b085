"""
Tests for the daily, weekly and monthly aggregators.

Covers weighted averaging, seed skipping, coverage monotonicity,
idempotence and concurrent invocations.
"""

import pytest
from concurrent.futures import ThreadPoolExecutor

from shared.aggregation import (
    aggregate_daily,
    aggregate_monthly,
    aggregate_period,
    aggregate_weekly,
    combine_daily_reports,
    combine_hourly_buckets,
)
from shared.models import HourlyBucket, PeriodReport
from shared.paths import hourly_bucket_path, report_path
from shared.time_utils import PeriodKeyError


def put_hour(store, owner_id, day, hour, temperature=None, ph=None, feed=0.0, seed=False):
    """Write an hour bucket folded from lists of samples."""
    bucket = HourlyBucket(hour=hour, feed_used_kg=feed, is_seed=seed)
    for value in temperature or []:
        bucket.fold(value, None)
    for value in ph or []:
        bucket.fold(None, value)
    store.set(owner_id, hourly_bucket_path(day, hour), bucket.to_dynamodb_item())


def put_daily(store, owner_id, day, temperature, ph=None, feed=None, seed=False, coverage=1):
    report = PeriodReport(level="daily", period=day, avg_temperature=temperature, avg_ph=ph,
                          total_feed_kg=feed, coverage=coverage, is_seed=seed)
    store.set(owner_id, report_path("daily", day), report.to_dynamodb_item())


class TestCombine:
    """Test the pure combining functions."""

    def test_daily_average_is_weighted_by_sample_count(self):
        buckets = [
            HourlyBucket(hour="01", temperature_sum=20.0, temperature_count=1),
            HourlyBucket(hour="02", temperature_sum=60.0, temperature_count=2),
        ]

        report = combine_hourly_buckets("2024-06-20", buckets)

        assert report.avg_temperature == pytest.approx(26.6667, abs=1e-3)
        assert report.avg_ph is None
        assert report.coverage == 2

    def test_seed_buckets_are_skipped(self):
        seed = HourlyBucket(hour="03", temperature_sum=1000.0, temperature_count=10, is_seed=True)
        real = HourlyBucket(hour="04", temperature_sum=25.0, temperature_count=1)

        report = combine_hourly_buckets("2024-06-20", [seed, real])

        assert report.avg_temperature == 25.0
        assert report.coverage == 1

    def test_zero_feed_is_not_a_measurement(self):
        buckets = [
            HourlyBucket(hour="01", temperature_sum=20.0, temperature_count=1, feed_used_kg=0.0),
            HourlyBucket(hour="02", temperature_sum=20.0, temperature_count=1, feed_used_kg=None),
        ]
        assert combine_hourly_buckets("2024-06-20", buckets).total_feed_kg is None

    def test_weekly_mean_of_daily_averages(self):
        reports = [
            PeriodReport(level="daily", period="2024-06-17", avg_temperature=20.0, avg_ph=7.0, total_feed_kg=1.0),
            PeriodReport(level="daily", period="2024-06-18", avg_temperature=30.0, total_feed_kg=2.5),
            PeriodReport(level="daily", period="2024-06-19", avg_temperature=99.0, is_seed=True),
        ]

        report = combine_daily_reports("weekly", "2024-W25", reports)

        assert report.avg_temperature == 25.0
        assert report.avg_ph == 7.0
        assert report.total_feed_kg == 3.5
        assert report.coverage == 2


class TestAggregateDaily:
    """Test daily aggregation through the store."""

    def test_end_to_end_day(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", temperature=[28.0], ph=[7.0], feed=1.5)
        put_hour(store, owner_id, "2024-06-20", "09", temperature=[30.0])
        put_hour(store, owner_id, "2024-06-20", "10", temperature=[32.0], ph=[7.4])

        written = aggregate_daily(ctx, owner_id, "2024-06-20")

        stored = store.get(owner_id, report_path("daily", "2024-06-20"))
        assert stored == written
        assert stored["date"] == "2024-06-20"
        assert stored["avgTemperature"] == pytest.approx(30.0)
        assert stored["avgPh"] == pytest.approx(7.2)
        assert stored["totalFeedKg"] == 1.5
        assert stored["coverageHours"] == 3
        assert stored["isSeed"] is False
        assert stored["source"] == "test-pipeline"

    def test_no_coverage_no_write(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", seed=True)

        assert aggregate_daily(ctx, owner_id, "2024-06-20") is None
        assert store.get(owner_id, report_path("daily", "2024-06-20")) is None

    def test_zero_coverage_never_reverts_real_report(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", temperature=[28.0])
        aggregate_daily(ctx, owner_id, "2024-06-20")
        before = store.get(owner_id, report_path("daily", "2024-06-20"))

        # Hour buckets disappear; a later run must not touch the report
        store.delete(owner_id, hourly_bucket_path("2024-06-20", "08"))
        assert aggregate_daily(ctx, owner_id, "2024-06-20") is None

        assert store.get(owner_id, report_path("daily", "2024-06-20")) == before

    def test_seed_report_is_promoted(self, ctx, store, owner_id):
        store.set(owner_id, report_path("daily", "2024-06-20"), PeriodReport.seed("daily", "2024-06-20").to_dynamodb_item())
        put_hour(store, owner_id, "2024-06-20", "08", temperature=[28.0])

        aggregate_daily(ctx, owner_id, "2024-06-20")

        stored = store.get(owner_id, report_path("daily", "2024-06-20"))
        assert stored["isSeed"] is False
        assert stored["coverageHours"] == 1

    def test_idempotent(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", temperature=[28.0, 29.0], ph=[7.1])
        put_hour(store, owner_id, "2024-06-20", "09", temperature=[30.0], feed=2.0)

        first = aggregate_daily(ctx, owner_id, "2024-06-20")
        second = aggregate_daily(ctx, owner_id, "2024-06-20")

        first.pop("generatedAt")
        second.pop("generatedAt")
        assert first == second

    def test_concurrent_runs_converge(self, ctx, store, owner_id):
        for hour, value in (("01", 20.0), ("02", 30.0), ("03", 31.0)):
            put_hour(store, owner_id, "2024-06-20", hour, temperature=[value])

        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(lambda _: aggregate_daily(ctx, owner_id, "2024-06-20"), range(12)))

        stored = store.get(owner_id, report_path("daily", "2024-06-20"))
        assert stored["avgTemperature"] == pytest.approx(27.0)
        assert stored["coverageHours"] == 3

    def test_coverage_never_decreases_as_hours_arrive(self, ctx, store, owner_id):
        coverages = []
        for hour in ("00", "01", "02", "03"):
            put_hour(store, owner_id, "2024-06-20", hour, ph=[7.0])
            coverages.append(aggregate_daily(ctx, owner_id, "2024-06-20")["coverageHours"])

        assert coverages == sorted(coverages)
        assert coverages[-1] == 4

    def test_legacy_bucket_without_count(self, ctx, store, owner_id):
        store.set(owner_id, hourly_bucket_path("2024-06-20", "05"), {"hour": "05", "temperatureAvg": 20.0})
        put_hour(store, owner_id, "2024-06-20", "06", temperature=[30.0, 30.0])

        written = aggregate_daily(ctx, owner_id, "2024-06-20")

        assert written["avgTemperature"] == pytest.approx(26.6667, abs=1e-3)
        assert written["coverageHours"] == 2

    def test_invalid_date(self, ctx, owner_id):
        with pytest.raises(PeriodKeyError):
            aggregate_daily(ctx, owner_id, "2024-02-30")

    def test_key_with_trailing_newline_is_rejected(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", temperature=[28.0])

        with pytest.raises(PeriodKeyError):
            aggregate_daily(ctx, owner_id, "2024-06-20\n")
        assert store.get(owner_id, report_path("daily", "2024-06-20\n")) is None


class TestAggregateWeeklyMonthly:
    """Test weekly and monthly aggregation through the store."""

    def test_end_to_end_week_and_month(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", temperature=[28.0])
        put_hour(store, owner_id, "2024-06-20", "09", temperature=[30.0])
        put_hour(store, owner_id, "2024-06-20", "10", temperature=[32.0])
        aggregate_daily(ctx, owner_id, "2024-06-20")

        weekly = aggregate_weekly(ctx, owner_id, "2024-W25")
        monthly = aggregate_monthly(ctx, owner_id, "2024-06")

        assert weekly["week"] == "2024-W25"
        assert weekly["avgTemperature"] == pytest.approx(30.0)
        assert weekly["coverageDays"] == 1
        assert monthly["month"] == "2024-06"
        assert monthly["avgTemperature"] == pytest.approx(30.0)
        assert monthly["coverageDays"] == 1

    def test_week_only_reads_its_dates(self, ctx, store, owner_id):
        put_daily(store, owner_id, "2024-06-16", 10.0)  # Sunday of 2024-W24
        put_daily(store, owner_id, "2024-06-17", 20.0)
        put_daily(store, owner_id, "2024-06-23", 30.0)
        put_daily(store, owner_id, "2024-06-24", 40.0)  # Monday of 2024-W26

        weekly = aggregate_weekly(ctx, owner_id, "2024-W25")

        assert weekly["avgTemperature"] == 25.0
        assert weekly["coverageDays"] == 2

    def test_week_spanning_year_boundary(self, ctx, store, owner_id):
        put_daily(store, owner_id, "2024-12-31", 10.0)
        put_daily(store, owner_id, "2025-01-02", 20.0)

        weekly = aggregate_weekly(ctx, owner_id, "2025-W01")

        assert weekly["avgTemperature"] == 15.0
        assert weekly["coverageDays"] == 2

    def test_seed_daily_reports_are_skipped(self, ctx, store, owner_id):
        put_daily(store, owner_id, "2024-06-01", 0.0, seed=True, coverage=0)

        assert aggregate_monthly(ctx, owner_id, "2024-06") is None
        assert store.get(owner_id, report_path("monthly", "2024-06")) is None

    def test_feed_totals_with_legacy_field(self, ctx, store, owner_id):
        put_daily(store, owner_id, "2024-06-03", 20.0, feed=2.0)
        store.set(owner_id, report_path("daily", "2024-06-04"),
                  {"date": "2024-06-04", "avgTemperature": 22.0, "feedUsedKg": 1.5, "coverageHours": 4})
        put_daily(store, owner_id, "2024-06-05", 24.0)

        monthly = aggregate_monthly(ctx, owner_id, "2024-06")

        assert monthly["totalFeedKg"] == pytest.approx(3.5)
        assert monthly["avgTemperature"] == pytest.approx(22.0)
        assert monthly["coverageDays"] == 3

    def test_dispatch_and_validation(self, ctx, owner_id):
        with pytest.raises(PeriodKeyError):
            aggregate_period(ctx, owner_id, "weekly", "2024-W60")
        with pytest.raises(ValueError):
            aggregate_period(ctx, owner_id, "hourly", "2024-06-20")
        assert aggregate_period(ctx, owner_id, "monthly", "2024-06") is None
