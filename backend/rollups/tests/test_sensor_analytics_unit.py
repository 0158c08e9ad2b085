"""
Unit tests for sensor analytics and trend identification.
"""

import pytest

from shared.models import HourlyBucket
from shared.paths import analytics_path, hourly_bucket_path
from shared.sensor_analytics import count_hourly_availability, generate_sensor_analytics
from shared.trends import compare_counts, identify_trends
from shared.models import TrendDirection
from shared.time_utils import PeriodKeyError


def put_hour(store, owner_id, day, hour, temperature=False, ph=False, seed=False):
    bucket = HourlyBucket(hour=hour, is_seed=seed)
    bucket.fold(25.0 if temperature else None, 7.0 if ph else None)
    store.set(owner_id, hourly_bucket_path(day, hour), bucket.to_dynamodb_item())


def put_analytics(store, owner_id, level, period, temp, ph=0, both=0, no_data=0, seed=False):
    store.set(owner_id, analytics_path(level, period), {
        "id": period,
        "period": period,
        "level": level,
        "tempAvailability": temp,
        "phAvailability": ph,
        "bothSensorsAvailability": both,
        "noDataHours": no_data,
        "isSeed": seed,
    })


class TestSensorAnalytics:
    """Test availability counting."""

    def test_counts_per_hour(self):
        buckets = [
            HourlyBucket(hour="00", temperature_sum=25.0, temperature_count=1, ph_sum=7.0, ph_count=1),
            HourlyBucket(hour="01", temperature_sum=25.0, temperature_count=1),
            HourlyBucket(hour="02", ph_sum=7.0, ph_count=1),
            HourlyBucket(hour="03", feed_used_kg=1.0),
            HourlyBucket(hour="04", temperature_sum=25.0, temperature_count=1, is_seed=True),
        ]

        analytics = count_hourly_availability("2024-06-20", buckets)

        assert analytics.counters() == {
            "tempAvailability": 2,
            "phAvailability": 2,
            "bothSensorsAvailability": 1,
            "noDataHours": 1,
        }

    def test_daily_document(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", temperature=True, ph=True)
        put_hour(store, owner_id, "2024-06-20", "09", temperature=True)

        written = generate_sensor_analytics(ctx, owner_id, "daily", "2024-06-20")

        stored = store.get(owner_id, analytics_path("daily", "2024-06-20"))
        assert stored == written
        assert stored["id"] == "2024-06-20"
        assert stored["level"] == "daily"
        assert stored["tempAvailability"] == 2
        assert stored["bothSensorsAvailability"] == 1
        assert stored["tempTrend"] == "unknown"
        assert stored["phTrend"] == "unknown"
        assert stored["bothSensorsTrend"] == "unknown"

    def test_existing_trends_survive_recount(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", temperature=True)
        store.set(owner_id, analytics_path("daily", "2024-06-20"), {"tempTrend": "up"})

        written = generate_sensor_analytics(ctx, owner_id, "daily", "2024-06-20")

        assert written["tempTrend"] == "up"
        assert written["phTrend"] == "unknown"

    def test_no_samples_no_write(self, ctx, store, owner_id):
        put_hour(store, owner_id, "2024-06-20", "08", temperature=True, seed=True)

        assert generate_sensor_analytics(ctx, owner_id, "daily", "2024-06-20") is None
        assert store.get(owner_id, analytics_path("daily", "2024-06-20")) is None

    def test_weekly_totals_of_daily(self, ctx, store, owner_id):
        put_analytics(store, owner_id, "daily", "2024-06-17", temp=3, ph=2, both=2, no_data=1)
        put_analytics(store, owner_id, "daily", "2024-06-18", temp=4, ph=4, both=4)
        put_analytics(store, owner_id, "daily", "2024-06-19", temp=50, seed=True)
        put_analytics(store, owner_id, "daily", "2024-06-24", temp=50)

        written = generate_sensor_analytics(ctx, owner_id, "weekly", "2024-W25")

        assert written["tempAvailability"] == 7
        assert written["phAvailability"] == 6
        assert written["bothSensorsAvailability"] == 6
        assert written["noDataHours"] == 1
        assert written["period"] == "2024-W25"

    def test_monthly_totals_of_daily(self, ctx, store, owner_id):
        put_analytics(store, owner_id, "daily", "2024-06-01", temp=1)
        put_analytics(store, owner_id, "daily", "2024-06-30", temp=2)
        put_analytics(store, owner_id, "daily", "2024-07-01", temp=5)

        written = generate_sensor_analytics(ctx, owner_id, "monthly", "2024-06")

        assert written["tempAvailability"] == 3

    def test_invalid_level(self, ctx, owner_id):
        with pytest.raises(ValueError):
            generate_sensor_analytics(ctx, owner_id, "yearly", "2024")


class TestTrends:
    """Test trend identification."""

    @pytest.mark.parametrize("current,previous,expected", [
        (5, 3, TrendDirection.UP),
        (3, 5, TrendDirection.DOWN),
        (5, 5, TrendDirection.STABLE),
        (5, None, TrendDirection.UNKNOWN),
        (None, 5, TrendDirection.UNKNOWN),
    ])
    def test_compare_counts(self, current, previous, expected):
        assert compare_counts(current, previous) is expected

    def test_trends_against_previous_day(self, ctx, store, owner_id):
        put_analytics(store, owner_id, "daily", "2024-06-19", temp=3, ph=5, both=5)
        put_analytics(store, owner_id, "daily", "2024-06-20", temp=5, ph=3, both=5)

        trends = identify_trends(ctx, owner_id, "daily", "2024-06-20")

        assert trends == {"tempTrend": "up", "phTrend": "down", "bothSensorsTrend": "stable"}
        stored = store.get(owner_id, analytics_path("daily", "2024-06-20"))
        assert stored["tempTrend"] == "up"
        assert "trendsUpdatedAt" in stored
        # The previous period is never written
        assert "tempTrend" not in store.get(owner_id, analytics_path("daily", "2024-06-19"))

    def test_previous_absent_is_unknown(self, ctx, store, owner_id):
        put_analytics(store, owner_id, "weekly", "2024-W25", temp=5)

        trends = identify_trends(ctx, owner_id, "weekly", "2024-W25")

        assert set(trends.values()) == {"unknown"}

    def test_previous_seed_is_unknown(self, ctx, store, owner_id):
        put_analytics(store, owner_id, "monthly", "2024-05", temp=1, seed=True)
        put_analytics(store, owner_id, "monthly", "2024-06", temp=5)

        assert identify_trends(ctx, owner_id, "monthly", "2024-06")["tempTrend"] == "unknown"

    def test_previous_week_across_year(self, ctx, store, owner_id):
        put_analytics(store, owner_id, "weekly", "2020-W53", temp=10)
        put_analytics(store, owner_id, "weekly", "2021-W01", temp=4)

        assert identify_trends(ctx, owner_id, "weekly", "2021-W01")["tempTrend"] == "down"

    def test_current_absent_is_noop(self, ctx, store, owner_id):
        put_analytics(store, owner_id, "daily", "2024-06-19", temp=3)

        assert identify_trends(ctx, owner_id, "daily", "2024-06-20") is None
        assert store.get(owner_id, analytics_path("daily", "2024-06-20")) is None

    def test_invalid_period(self, ctx, owner_id):
        with pytest.raises(PeriodKeyError):
            identify_trends(ctx, owner_id, "daily", "2024-13-01")
