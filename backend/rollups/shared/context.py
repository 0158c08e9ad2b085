"""
Pipeline context.

Carries the store, the collaborator sources, the clock and the source tag
explicitly through every pipeline operation.
"""

import os
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from shared.bucket_store import BucketStore, DynamoBucketStore, MemoryBucketStore
from shared.sources import (
    DynamoOwnerDirectory,
    StaticOwnerDirectory,
    StoreFeedingSource,
    StoreSensorSource,
)
from shared.time_utils import utc_now

DEFAULT_BUCKETS_TABLE = "aquaculture_buckets"
DEFAULT_OWNERS_TABLE = "aquaculture_owners"
DEFAULT_SOURCE = "py-pipeline"


@dataclass
class PipelineContext:
    """Dependencies shared by the pipeline operations."""
    store: BucketStore
    sensors: Any = None
    feedings: Any = None
    owners: Any = None
    clock: Callable[[], datetime] = utc_now
    source: str = DEFAULT_SOURCE

    def __post_init__(self):
        if self.sensors is None:
            self.sensors = StoreSensorSource(self.store)
        if self.feedings is None:
            self.feedings = StoreFeedingSource(self.store)
        if self.owners is None:
            self.owners = StaticOwnerDirectory()

    def now(self) -> datetime:
        return self.clock()

    def now_ms(self) -> int:
        return int(self.clock().timestamp() * 1000)

    @classmethod
    def in_memory(cls, store: Optional[BucketStore] = None, **kwargs) -> 'PipelineContext':
        """Context backed by a MemoryBucketStore, for local runs."""
        return cls(store=store or MemoryBucketStore(), **kwargs)

    @classmethod
    def from_environment(cls, dynamodb_resource: Any = None) -> 'PipelineContext':
        """
        Build a DynamoDB-backed context from environment variables.

        Environment:
            BUCKETS_TABLE: table holding every owner document
            OWNERS_TABLE: table listing owners and their is_active flag
            PIPELINE_SOURCE: value written to each document's source field
        """
        buckets_table = os.environ.get("BUCKETS_TABLE", DEFAULT_BUCKETS_TABLE)
        owners_table = os.environ.get("OWNERS_TABLE", DEFAULT_OWNERS_TABLE)

        store = DynamoBucketStore(buckets_table, dynamodb_resource=dynamodb_resource)
        return cls(
            store=store,
            owners=DynamoOwnerDirectory(owners_table, dynamodb_resource=dynamodb_resource),
            source=os.environ.get("PIPELINE_SOURCE", DEFAULT_SOURCE),
        )
