"""
Document path generation for owner-scoped pipeline documents.

Format (all relative to the owner):
- hourlyRecords/{date}/hours/{HH}
- dailyReports/{date}
- weeklyReports/{isoWeek}
- monthlyReports/{month}
- sensorAnalytics/{level}/{periodId}
- sensors/{sensorName}
- feedingSchedules/{id}
"""

from shared.time_utils import DAILY, WEEKLY, MONTHLY, hour_key, parse_hour_key

HOURLY_RECORDS = "hourlyRecords"
DAILY_REPORTS = "dailyReports"
WEEKLY_REPORTS = "weeklyReports"
MONTHLY_REPORTS = "monthlyReports"
SENSOR_ANALYTICS = "sensorAnalytics"
SENSORS = "sensors"
FEEDING_SCHEDULES = "feedingSchedules"

REPORT_COLLECTIONS = {
    DAILY: DAILY_REPORTS,
    WEEKLY: WEEKLY_REPORTS,
    MONTHLY: MONTHLY_REPORTS,
}


def join_path(*segments: str) -> str:
    """Join path segments with "/"."""
    return "/".join(segment.strip("/") for segment in segments)


def hours_collection(day_key: str) -> str:
    """Collection holding the hour buckets of a date."""
    return join_path(HOURLY_RECORDS, day_key, "hours")


def hourly_bucket_path(day_key: str, hour) -> str:
    """
    Path of one hour bucket.

    Args:
        day_key: Date key (YYYY-MM-DD)
        hour: Hour key ("00".."23") or int

    Returns:
        Document path
    """
    return join_path(hours_collection(day_key), hour_key(parse_hour_key(hour)))


def report_collection(level: str) -> str:
    """Collection holding the reports of a level."""
    try:
        return REPORT_COLLECTIONS[level]
    except KeyError:
        raise ValueError(f"Unknown level: {level}") from None


def report_path(level: str, period: str) -> str:
    """Path of a daily, weekly or monthly report."""
    return join_path(report_collection(level), period)


def analytics_collection(level: str) -> str:
    """Collection holding the sensor analytics of a level."""
    report_collection(level)
    return join_path(SENSOR_ANALYTICS, level)


def analytics_path(level: str, period: str) -> str:
    """Path of a sensor analytics document."""
    return join_path(analytics_collection(level), period)


def sensor_path(sensor_name: str) -> str:
    """Path of the latest-value document of a sensor."""
    return join_path(SENSORS, sensor_name)
