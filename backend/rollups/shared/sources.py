"""
Collaborator sources read by the pipeline.

- Sensor snapshots: latest value per tracked sensor (sensors/{name})
- Feeding schedule: scheduled feeding events (feedingSchedules/{id})
- Owner directory: owners the scheduled runs iterate over
"""

import math
from typing import Any, Iterable, List, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from aws_lambda_powertools import Logger

from shared.bucket_store import BucketStore
from shared.dynamodb_retry import call_with_retry
from shared.models import FeedingEvent, SensorSnapshot
from shared.paths import FEEDING_SCHEDULES, sensor_path
from shared.time_utils import timestamp_to_ms

logger = Logger(child=True)


def _numeric(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    if not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except (OverflowError, ValueError):
        return None
    # Only finite readings are folded
    return number if math.isfinite(number) else None


class StoreSensorSource:
    """Reads latest sensor values from the owner's sensors collection."""

    def __init__(self, store: BucketStore):
        self.store = store

    def get_latest_value(self, owner_id: str, sensor_name: str) -> Optional[SensorSnapshot]:
        """
        Get the latest value of a sensor.

        Args:
            owner_id: Owner identifier
            sensor_name: "temperature" or "ph"

        Returns:
            SensorSnapshot, or None when the document is absent or its value
            is missing or not numeric
        """
        document = self.store.get(owner_id, sensor_path(sensor_name))
        if not document:
            return None

        value = _numeric(document.get("value"))
        if value is None:
            return None

        return SensorSnapshot(
            sensor_name=sensor_name,
            value=value,
            timestamp_ms=timestamp_to_ms(document.get("timestamp"))
        )


class StoreFeedingSource:
    """Reads scheduled feeding events from the owner's feedingSchedules collection."""

    def __init__(self, store: BucketStore):
        self.store = store

    def list_events(self, owner_id: str) -> List[FeedingEvent]:
        events = []
        for document in self.store.get_collection(owner_id, FEEDING_SCHEDULES):
            events.append(FeedingEvent(
                event_id=document.id,
                scheduled_time_ms=timestamp_to_ms(document.data.get("scheduledTime")),
                feed_amount_kg=_numeric(document.data.get("feedAmount")),
                status=document.data.get("status")
            ))
        return events


class StaticOwnerDirectory:
    """Fixed list of active owners."""

    def __init__(self, owner_ids: Iterable[str] = ()):
        self.owner_ids = list(owner_ids)

    def list_active_owners(self) -> List[str]:
        return list(self.owner_ids)


class DynamoOwnerDirectory:
    """
    Active owners from a DynamoDB owners table.

    Items carry owner_id and an is_active flag; the table is small enough
    to scan on each scheduled run.
    """

    def __init__(self, table_name: str, dynamodb_resource: Any = None):
        self.table_name = table_name
        resource = dynamodb_resource or boto3.resource("dynamodb")
        self.table = resource.Table(table_name)

    def list_active_owners(self) -> List[str]:
        scan_kwargs = {
            "FilterExpression": Attr("is_active").eq(True),
            "ProjectionExpression": "owner_id",
        }

        response = call_with_retry(self.table.scan, self.table_name, **scan_kwargs)
        items = response.get("Items", [])

        # Handle pagination
        while "LastEvaluatedKey" in response:
            response = call_with_retry(
                self.table.scan,
                self.table_name,
                ExclusiveStartKey=response["LastEvaluatedKey"],
                **scan_kwargs
            )
            items.extend(response.get("Items", []))

        owner_ids = sorted({item["owner_id"] for item in items if item.get("owner_id")})
        logger.debug("Listed active owners", extra={"owner_count": len(owner_ids)})
        return owner_ids
