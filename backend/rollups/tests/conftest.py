"""
Pytest configuration and shared fixtures for rollup pipeline tests.
"""

import os
from datetime import datetime, timezone

import pytest
from unittest.mock import Mock

os.environ.setdefault('POWERTOOLS_SERVICE_NAME', 'test-service')
os.environ.setdefault('AWS_DEFAULT_REGION', 'us-east-1')

from shared.bucket_store import MemoryBucketStore
from shared.context import PipelineContext
from shared.paths import sensor_path

OWNER_ID = "owner-001"

# 2024-06-20 (Thursday, ISO week 2024-W25) 10:30 UTC
FIXED_NOW = datetime(2024, 6, 20, 10, 30, tzinfo=timezone.utc)


@pytest.fixture
def owner_id():
    return OWNER_ID


@pytest.fixture
def store():
    """Fixture providing an empty in-memory bucket store."""
    return MemoryBucketStore()


@pytest.fixture
def ctx(store):
    """Fixture providing a pipeline context with a fixed clock."""
    return PipelineContext(store=store, clock=lambda: FIXED_NOW, source="test-pipeline")


@pytest.fixture
def set_sensor(store):
    """Fixture writing a sensor snapshot document."""
    def _set(name, value, timestamp=None, owner=OWNER_ID):
        fields = {"value": value}
        if timestamp is not None:
            fields["timestamp"] = timestamp
        store.set(owner, sensor_path(name), fields, merge=False)
    return _set


@pytest.fixture
def lambda_context():
    """Fixture providing a minimal Lambda context."""
    context = Mock()
    context.function_name = "test-function"
    context.memory_limit_in_mb = 128
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
    context.aws_request_id = "test-request-id"
    return context
