"""
Data models for the aquaculture rollup pipeline.

Contains domain models and persistence models:
- SensorSnapshot
- FeedingEvent
- HourlyBucket
- PeriodReport (daily, weekly, monthly)
- SensorAnalytics
- TrendDirection
- RefreshResult
- BackfillResult

Documents are stored with camelCase field names because dashboard and
export consumers read them directly.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any

TEMPERATURE = "temperature"
PH = "ph"
TRACKED_SENSORS = (TEMPERATURE, PH)

COMPLETED_FEEDING_STATUS = "completed"


class TrendDirection(str, Enum):
    """Trend verdict for an availability counter against the previous period."""
    UP = "up"
    DOWN = "down"
    STABLE = "stable"
    UNKNOWN = "unknown"


# Availability counter -> trend field written next to it
TREND_FIELDS = {
    "tempAvailability": "tempTrend",
    "phAvailability": "phTrend",
    "bothSensorsAvailability": "bothSensorsTrend",
}

ANALYTICS_COUNTERS = (
    "tempAvailability",
    "phAvailability",
    "bothSensorsAvailability",
    "noDataHours",
)


@dataclass
class SensorSnapshot:
    """Latest value of a tracked sensor as held by the sensor transport."""
    sensor_name: str
    value: float
    timestamp_ms: Optional[int] = None


@dataclass
class FeedingEvent:
    """Scheduled feeding event."""
    event_id: str
    scheduled_time_ms: Optional[int]
    feed_amount_kg: Optional[float]
    status: Optional[str] = None

    def counts_as_fed(self) -> bool:
        """Completed events and events without a status contribute feed."""
        return not self.status or self.status == COMPLETED_FEEDING_STATUS


def _as_float(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (OverflowError, TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _as_int(value: Any) -> int:
    number = _as_float(value)
    return int(number) if number is not None else 0


def _accumulator(item: Dict[str, Any], prefix: str):
    count = item.get(f"{prefix}Count")
    avg = _as_float(item.get(f"{prefix}Avg"))
    if count is None:
        return (avg, 1) if avg is not None else (0.0, 0)
    count = _as_int(count)
    total = _as_float(item.get(f"{prefix}Sum"))
    if total is None:
        total = avg * count if avg is not None else 0.0
    return total, count


@dataclass
class HourlyBucket:
    """
    One hour of folded sensor samples.

    Sums and counts are the accumulator fields; averages are derived from
    them on every write.
    """
    hour: str
    temperature_sum: float = 0.0
    temperature_count: int = 0
    ph_sum: float = 0.0
    ph_count: int = 0
    feed_used_kg: Optional[float] = 0.0
    is_seed: bool = False
    source: Optional[str] = None
    updated_at_ms: Optional[int] = None

    @property
    def temperature_avg(self) -> Optional[float]:
        if self.temperature_count > 0:
            return self.temperature_sum / self.temperature_count
        return None

    @property
    def ph_avg(self) -> Optional[float]:
        if self.ph_count > 0:
            return self.ph_sum / self.ph_count
        return None

    @property
    def has_temperature(self) -> bool:
        return self.temperature_count > 0

    @property
    def has_ph(self) -> bool:
        return self.ph_count > 0

    def fold(self, temperature: Optional[float], ph: Optional[float]) -> None:
        """Add one sample to the running sums and counts."""
        if temperature is not None:
            self.temperature_sum += temperature
            self.temperature_count += 1
        if ph is not None:
            self.ph_sum += ph
            self.ph_count += 1

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to document fields."""
        item = {
            "hour": self.hour,
            "temperatureSum": self.temperature_sum,
            "temperatureCount": self.temperature_count,
            "temperatureAvg": 0.0 if self.is_seed else self.temperature_avg,
            "phSum": self.ph_sum,
            "phCount": self.ph_count,
            "phAvg": 0.0 if self.is_seed else self.ph_avg,
            "feedUsedKg": self.feed_used_kg,
            "isSeed": self.is_seed,
        }
        if self.source is not None:
            item["source"] = self.source
        if self.updated_at_ms is not None:
            item["updatedAt"] = self.updated_at_ms
        return item

    @staticmethod
    def from_dynamodb_item(item: Dict[str, Any], hour: Optional[str] = None) -> 'HourlyBucket':
        """
        Create from document fields.

        Buckets that carry an average but no sample count are read as a
        single sample of that average.
        """
        temperature_sum, temperature_count = _accumulator(item, "temperature")
        ph_sum, ph_count = _accumulator(item, "ph")
        return HourlyBucket(
            hour=item.get("hour") or hour or "",
            temperature_sum=temperature_sum,
            temperature_count=temperature_count,
            ph_sum=ph_sum,
            ph_count=ph_count,
            feed_used_kg=_as_float(item.get("feedUsedKg")),
            is_seed=item.get("isSeed") is True,
            source=item.get("source"),
            updated_at_ms=item.get("updatedAt"),
        )

    @staticmethod
    def seed(hour: str) -> 'HourlyBucket':
        """Zero-valued placeholder bucket."""
        return HourlyBucket(hour=hour, is_seed=True)


# Period field name per level: daily reports carry "date", weekly "week", monthly "month"
PERIOD_FIELDS = {
    "daily": "date",
    "weekly": "week",
    "monthly": "month",
}

# Coverage counter name per level
COVERAGE_FIELDS = {
    "daily": "coverageHours",
    "weekly": "coverageDays",
    "monthly": "coverageDays",
}


@dataclass
class PeriodReport:
    """Daily, weekly or monthly aggregate report."""
    level: str
    period: str
    avg_temperature: Optional[float] = None
    avg_ph: Optional[float] = None
    total_feed_kg: Optional[float] = None
    coverage: int = 0
    is_seed: bool = False
    generated_at_ms: Optional[int] = None
    source: Optional[str] = None

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to document fields."""
        item = {
            PERIOD_FIELDS[self.level]: self.period,
            "avgTemperature": self.avg_temperature,
            "avgPh": self.avg_ph,
            "totalFeedKg": self.total_feed_kg,
            COVERAGE_FIELDS[self.level]: self.coverage,
            "isSeed": self.is_seed,
        }
        if self.generated_at_ms is not None:
            item["generatedAt"] = self.generated_at_ms
        if self.source is not None:
            item["source"] = self.source
        return item

    @staticmethod
    def from_dynamodb_item(level: str, item: Dict[str, Any], period: Optional[str] = None) -> 'PeriodReport':
        """Create from document fields."""
        total_feed = item.get("totalFeedKg")
        if total_feed is None:
            # Older daily reports stored the feed total as feedUsedKg
            total_feed = item.get("feedUsedKg")
        return PeriodReport(
            level=level,
            period=item.get(PERIOD_FIELDS[level]) or period or "",
            avg_temperature=_as_float(item.get("avgTemperature")),
            avg_ph=_as_float(item.get("avgPh")),
            total_feed_kg=_as_float(total_feed),
            coverage=_as_int(item.get(COVERAGE_FIELDS[level])),
            is_seed=item.get("isSeed") is True,
            generated_at_ms=item.get("generatedAt"),
            source=item.get("source"),
        )

    @staticmethod
    def seed(level: str, period: str) -> 'PeriodReport':
        """Zero-valued placeholder report."""
        return PeriodReport(
            level=level,
            period=period,
            avg_temperature=0.0,
            avg_ph=0.0,
            total_feed_kg=0.0,
            coverage=0,
            is_seed=True,
        )


@dataclass
class SensorAnalytics:
    """Per-period sensor availability counters and their trends."""
    level: str
    period: str
    temp_availability: int = 0
    ph_availability: int = 0
    both_sensors_availability: int = 0
    no_data_hours: int = 0
    is_seed: bool = False
    generated_at_ms: Optional[int] = None
    source: Optional[str] = None

    def is_empty(self) -> bool:
        return not any(self.counters().values())

    def counters(self) -> Dict[str, int]:
        return {
            "tempAvailability": self.temp_availability,
            "phAvailability": self.ph_availability,
            "bothSensorsAvailability": self.both_sensors_availability,
            "noDataHours": self.no_data_hours,
        }

    def add(self, other: 'SensorAnalytics') -> None:
        """Accumulate another period's counters into this one."""
        self.temp_availability += other.temp_availability
        self.ph_availability += other.ph_availability
        self.both_sensors_availability += other.both_sensors_availability
        self.no_data_hours += other.no_data_hours

    def to_dynamodb_item(self) -> Dict[str, Any]:
        """Convert to document fields (trend fields are written separately)."""
        item = {
            "id": self.period,
            "period": self.period,
            "level": self.level,
            "isSeed": self.is_seed,
        }
        item.update(self.counters())
        if self.generated_at_ms is not None:
            item["generatedAt"] = self.generated_at_ms
        if self.source is not None:
            item["source"] = self.source
        return item

    @staticmethod
    def from_dynamodb_item(level: str, item: Dict[str, Any], period: Optional[str] = None) -> 'SensorAnalytics':
        """Create from document fields."""
        return SensorAnalytics(
            level=level,
            period=item.get("period") or item.get("id") or period or "",
            temp_availability=_as_int(item.get("tempAvailability")),
            ph_availability=_as_int(item.get("phAvailability")),
            both_sensors_availability=_as_int(item.get("bothSensorsAvailability")),
            no_data_hours=_as_int(item.get("noDataHours")),
            is_seed=item.get("isSeed") is True,
            generated_at_ms=item.get("generatedAt"),
            source=item.get("source"),
        )


@dataclass
class RefreshResult:
    """Outcome of refreshing one period (aggregate, analytics, trends)."""
    level: str
    period: str
    report: Optional[Dict[str, Any]] = None
    analytics: Optional[Dict[str, Any]] = None
    trends: Optional[Dict[str, str]] = None

    @property
    def written(self) -> bool:
        return self.report is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level,
            "period": self.period,
            "written": self.written,
            "report": self.report,
            "analytics": self.analytics,
            "trends": self.trends,
        }


@dataclass
class BackfillResult:
    """Counts for one backfill stage."""
    stage: str
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    periods: List[str] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage,
            "processed": self.processed,
            "skipped": self.skipped,
            "failed": self.failed,
            "periods": list(self.periods),
            "errors": list(self.errors),
        }
