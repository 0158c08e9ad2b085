"""
Unit tests for the seeder.
"""

from unittest.mock import Mock

from shared.aggregation import aggregate_daily
from shared.bucket_store import MemoryBucketStore
from shared.context import PipelineContext
from shared.hourly_sampler import sample_current_hour
from shared.paths import hourly_bucket_path, report_path
from shared.seeder import seed_owner_collections


class TestSeedOwnerCollections:
    """Test placeholder seeding."""

    def test_seeds_every_empty_collection(self, ctx, store, owner_id, set_sensor):
        set_sensor("ph", 7.0)

        seeded = seed_owner_collections(ctx, owner_id)

        assert seeded == ["hourlyRecords", "dailyReports", "weeklyReports", "monthlyReports"]
        hour = store.get(owner_id, hourly_bucket_path("2024-06-20", "10"))
        assert hour["isSeed"] is True
        assert hour["temperatureAvg"] == 0.0
        assert store.get(owner_id, report_path("daily", "2024-06-20"))["isSeed"] is True
        weekly = store.get(owner_id, report_path("weekly", "2024-W25"))
        assert weekly["isSeed"] is True
        assert weekly["coverageDays"] == 0
        assert store.get(owner_id, report_path("monthly", "2024-06"))["avgPh"] == 0.0

    def test_hourly_and_daily_need_a_sensor_value(self, ctx, store, owner_id):
        seeded = seed_owner_collections(ctx, owner_id)

        assert seeded == ["weeklyReports", "monthlyReports"]
        assert store.is_collection_empty(owner_id, "hourlyRecords")
        assert store.is_collection_empty(owner_id, "dailyReports")

    def test_non_empty_collections_are_left_alone(self, ctx, store, owner_id, set_sensor):
        set_sensor("temperature", 28.0)
        store.set(owner_id, report_path("daily", "2024-06-01"), {"date": "2024-06-01", "coverageHours": 5})

        seeded = seed_owner_collections(ctx, owner_id)

        assert "dailyReports" not in seeded
        assert store.get(owner_id, report_path("daily", "2024-06-20")) is None

    def test_second_open_seeds_nothing(self, ctx, owner_id, set_sensor):
        set_sensor("temperature", 28.0)
        seed_owner_collections(ctx, owner_id)

        assert seed_owner_collections(ctx, owner_id) == []

    def test_seeds_are_replaced_by_real_data(self, ctx, store, owner_id, set_sensor):
        set_sensor("temperature", 28.0)
        seed_owner_collections(ctx, owner_id)

        sample_current_hour(ctx, owner_id)
        aggregate_daily(ctx, owner_id, "2024-06-20")

        hour = store.get(owner_id, hourly_bucket_path("2024-06-20", "10"))
        assert hour["isSeed"] is False
        assert hour["temperatureCount"] == 1
        daily = store.get(owner_id, report_path("daily", "2024-06-20"))
        assert daily["isSeed"] is False
        assert daily["avgTemperature"] == 28.0

    def test_failures_are_isolated_per_collection(self, owner_id):
        class FlakyStore(MemoryBucketStore):
            def is_collection_empty(self, owner, path):
                if path == "weeklyReports":
                    raise RuntimeError("boom")
                return super().is_collection_empty(owner, path)

        sensors = Mock()
        sensors.get_latest_value.return_value = None
        ctx = PipelineContext(store=FlakyStore(), sensors=sensors, feedings=Mock())

        assert seed_owner_collections(ctx, owner_id) == ["monthlyReports"]
