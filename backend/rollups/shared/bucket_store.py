"""
Bucket store adapters.

All pipeline documents are addressed by an owner id plus a slash-separated
document path. The pipeline only talks to the BucketStore interface:
- get / set (merge or replace) / delete of one document
- get_collection: direct child documents of a collection path
- list_child_keys: distinct next path segments under a path
- transact: atomic read-modify-write of one document

Two implementations:
- MemoryBucketStore: in-process, thread-safe; local runs and tests
- DynamoBucketStore: one DynamoDB table keyed by (owner_id, doc_path)
"""

import copy
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import ClientError
from aws_lambda_powertools import Logger

from shared.dynamodb_retry import call_with_retry, is_conditional_check_failure

logger = Logger(child=True)

# Attributes owned by the DynamoDB adapter, never exposed as document fields
OWNER_ATTRIBUTE = "owner_id"
PATH_ATTRIBUTE = "doc_path"
VERSION_ATTRIBUTE = "_version"
_RESERVED_ATTRIBUTES = (OWNER_ATTRIBUTE, PATH_ATTRIBUTE, VERSION_ATTRIBUTE)

MAX_TRANSACTION_ATTEMPTS = 10

UpdateFn = Callable[[Optional[Dict[str, Any]]], Dict[str, Any]]


class StoreError(Exception):
    """Raised when the bucket store cannot complete an operation."""


class TransactionConflictError(StoreError):
    """Raised when a read-modify-write keeps losing to concurrent writers."""


@dataclass
class StoredDocument:
    """A document read from a collection, tagged with its own key."""
    id: str
    path: str
    data: Dict[str, Any]


def _normalize_path(path: str) -> str:
    normalized = (path or "").strip("/")
    if not normalized or "//" in normalized:
        raise ValueError(f"Invalid document path: {path!r}")
    return normalized


def _validate_owner(owner_id: str) -> str:
    if not owner_id or "/" in owner_id:
        raise ValueError(f"Invalid owner id: {owner_id!r}")
    return owner_id


def _direct_child(prefix: str, path: str) -> Optional[str]:
    """Return the child id when path is a direct child of prefix."""
    remainder = path[len(prefix) + 1:]
    if not path.startswith(prefix + "/") or not remainder or "/" in remainder:
        return None
    return remainder


class BucketStore(ABC):
    """Owner-scoped hierarchical document store."""

    @abstractmethod
    def get(self, owner_id: str, path: str) -> Optional[Dict[str, Any]]:
        """Read one document; None when absent."""

    @abstractmethod
    def set(self, owner_id: str, path: str, fields: Dict[str, Any], merge: bool = True) -> None:
        """Write one document; merge updates only the given fields."""

    @abstractmethod
    def delete(self, owner_id: str, path: str) -> None:
        """Delete one document (no-op when absent)."""

    @abstractmethod
    def get_collection(self, owner_id: str, path: str) -> List[StoredDocument]:
        """Read the direct child documents of a collection, sorted by id."""

    @abstractmethod
    def list_child_keys(self, owner_id: str, path: str) -> List[str]:
        """List distinct next path segments under path, sorted."""

    @abstractmethod
    def transact(self, owner_id: str, path: str, update_fn: UpdateFn) -> Dict[str, Any]:
        """
        Atomically read, modify and merge-write one document.

        update_fn receives the current fields (None when absent) and returns
        the fields to merge. It may be called more than once and must not
        have side effects.

        Returns:
            The document as written
        """

    def is_collection_empty(self, owner_id: str, path: str) -> bool:
        """True when nothing is stored under path."""
        return not self.list_child_keys(owner_id, path)


class MemoryBucketStore(BucketStore):
    """
    In-process bucket store.

    A single re-entrant lock serializes every operation, which makes
    transact atomic. Documents are deep-copied on the way in and out.
    """

    def __init__(self):
        self._documents: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._lock = threading.RLock()

    def get(self, owner_id: str, path: str) -> Optional[Dict[str, Any]]:
        path = _normalize_path(path)
        with self._lock:
            document = self._documents.get(_validate_owner(owner_id), {}).get(path)
            return copy.deepcopy(document) if document is not None else None

    def set(self, owner_id: str, path: str, fields: Dict[str, Any], merge: bool = True) -> None:
        path = _normalize_path(path)
        with self._lock:
            owner_documents = self._documents.setdefault(_validate_owner(owner_id), {})
            if merge and path in owner_documents:
                owner_documents[path].update(copy.deepcopy(fields))
            else:
                owner_documents[path] = copy.deepcopy(fields)

    def delete(self, owner_id: str, path: str) -> None:
        path = _normalize_path(path)
        with self._lock:
            self._documents.get(_validate_owner(owner_id), {}).pop(path, None)

    def get_collection(self, owner_id: str, path: str) -> List[StoredDocument]:
        prefix = _normalize_path(path)
        with self._lock:
            documents = []
            for doc_path, data in self._documents.get(_validate_owner(owner_id), {}).items():
                child_id = _direct_child(prefix, doc_path)
                if child_id is not None:
                    documents.append(StoredDocument(id=child_id, path=doc_path, data=copy.deepcopy(data)))
        return sorted(documents, key=lambda document: document.id)

    def list_child_keys(self, owner_id: str, path: str) -> List[str]:
        prefix = _normalize_path(path) + "/"
        with self._lock:
            keys = {
                doc_path[len(prefix):].split("/", 1)[0]
                for doc_path in self._documents.get(_validate_owner(owner_id), {})
                if doc_path.startswith(prefix)
            }
        return sorted(keys)

    def transact(self, owner_id: str, path: str, update_fn: UpdateFn) -> Dict[str, Any]:
        with self._lock:
            current = self.get(owner_id, path)
            fields = update_fn(copy.deepcopy(current) if current is not None else None)
            self.set(owner_id, path, fields, merge=True)
            return self.get(owner_id, path)


def to_dynamodb_value(value: Any) -> Any:
    """Convert floats (recursively) to Decimal for the DynamoDB resource API."""
    if isinstance(value, bool) or value is None:
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, dict):
        return {k: to_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_dynamodb_value(v) for v in value]
    return value


def from_dynamodb_value(value: Any) -> Any:
    """Convert Decimals (recursively) back to int or float."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() and value.as_tuple().exponent >= 0 else float(value)
    if isinstance(value, dict):
        return {k: from_dynamodb_value(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_dynamodb_value(v) for v in value]
    return value


class DynamoBucketStore(BucketStore):
    """
    Bucket store backed by a single DynamoDB table.

    Table layout:
    - Partition key: owner_id (S)
    - Sort key: doc_path (S), e.g. "hourlyRecords/2024-06-20/hours/05"
    - _version: random token replaced on every write, used by transact
      for optimistic concurrency
    """

    def __init__(
        self,
        table_name: str,
        dynamodb_resource: Any = None,
        max_transaction_attempts: int = MAX_TRANSACTION_ATTEMPTS
    ):
        self.table_name = table_name
        resource = dynamodb_resource or boto3.resource("dynamodb")
        self.table = resource.Table(table_name)
        self.max_transaction_attempts = max_transaction_attempts

    def _key(self, owner_id: str, path: str) -> Dict[str, str]:
        return {OWNER_ATTRIBUTE: _validate_owner(owner_id), PATH_ATTRIBUTE: _normalize_path(path)}

    @staticmethod
    def _to_document(item: Dict[str, Any]) -> Dict[str, Any]:
        return {
            name: from_dynamodb_value(value)
            for name, value in item.items()
            if name not in _RESERVED_ATTRIBUTES
        }

    def get(self, owner_id: str, path: str) -> Optional[Dict[str, Any]]:
        response = call_with_retry(
            self.table.get_item,
            self.table_name,
            Key=self._key(owner_id, path),
            ConsistentRead=True
        )
        item = response.get("Item")
        return self._to_document(item) if item else None

    def set(self, owner_id: str, path: str, fields: Dict[str, Any], merge: bool = True) -> None:
        key = self._key(owner_id, path)

        if not merge:
            item = dict(to_dynamodb_value(fields))
            item.update(key)
            item[VERSION_ATTRIBUTE] = uuid.uuid4().hex
            call_with_retry(self.table.put_item, self.table_name, Item=item)
            return

        # Build SET expression with placeholder names to dodge reserved words
        update_parts = []
        expression_names = {"#version": VERSION_ATTRIBUTE}
        expression_values = {":version": uuid.uuid4().hex}

        for index, (name, value) in enumerate(fields.items()):
            if name in _RESERVED_ATTRIBUTES:
                raise ValueError(f"Field name is reserved by the store: {name}")
            expression_names[f"#f{index}"] = name
            expression_values[f":v{index}"] = to_dynamodb_value(value)
            update_parts.append(f"#f{index} = :v{index}")

        update_parts.append("#version = :version")

        call_with_retry(
            self.table.update_item,
            self.table_name,
            Key=key,
            UpdateExpression="SET " + ", ".join(update_parts),
            ExpressionAttributeNames=expression_names,
            ExpressionAttributeValues=expression_values
        )

    def delete(self, owner_id: str, path: str) -> None:
        call_with_retry(self.table.delete_item, self.table_name, Key=self._key(owner_id, path))

    def _query_prefix(self, owner_id: str, prefix: str, **kwargs) -> List[Dict[str, Any]]:
        """Query every item whose doc_path starts with prefix, following pagination."""
        query_kwargs = {
            "KeyConditionExpression": Key(OWNER_ATTRIBUTE).eq(_validate_owner(owner_id))
            & Key(PATH_ATTRIBUTE).begins_with(prefix),
        }
        query_kwargs.update(kwargs)

        response = call_with_retry(self.table.query, self.table_name, **query_kwargs)
        items = response.get("Items", [])

        # Handle pagination
        while "LastEvaluatedKey" in response:
            response = call_with_retry(
                self.table.query,
                self.table_name,
                ExclusiveStartKey=response["LastEvaluatedKey"],
                **query_kwargs
            )
            items.extend(response.get("Items", []))

        return items

    def get_collection(self, owner_id: str, path: str) -> List[StoredDocument]:
        prefix = _normalize_path(path)
        documents = []
        for item in self._query_prefix(owner_id, prefix + "/"):
            doc_path = item[PATH_ATTRIBUTE]
            child_id = _direct_child(prefix, doc_path)
            if child_id is not None:
                documents.append(StoredDocument(id=child_id, path=doc_path, data=self._to_document(item)))
        return sorted(documents, key=lambda document: document.id)

    def list_child_keys(self, owner_id: str, path: str) -> List[str]:
        prefix = _normalize_path(path) + "/"
        items = self._query_prefix(
            owner_id,
            prefix,
            ProjectionExpression="#path",
            ExpressionAttributeNames={"#path": PATH_ATTRIBUTE}
        )
        return sorted({item[PATH_ATTRIBUTE][len(prefix):].split("/", 1)[0] for item in items})

    def transact(self, owner_id: str, path: str, update_fn: UpdateFn) -> Dict[str, Any]:
        key = self._key(owner_id, path)

        for attempt in range(1, self.max_transaction_attempts + 1):
            response = call_with_retry(self.table.get_item, self.table_name, Key=key, ConsistentRead=True)
            item = response.get("Item")
            current = self._to_document(item) if item else None

            fields = update_fn(copy.deepcopy(current) if current is not None else None)
            document = dict(current or {})
            document.update(fields)

            new_item = dict(to_dynamodb_value(document))
            new_item.update(key)
            new_item[VERSION_ATTRIBUTE] = uuid.uuid4().hex

            condition_kwargs = {"ExpressionAttributeNames": {"#path": PATH_ATTRIBUTE}}
            if item is None:
                condition_kwargs["ConditionExpression"] = "attribute_not_exists(#path)"
            elif VERSION_ATTRIBUTE in item:
                condition_kwargs["ConditionExpression"] = "attribute_exists(#path) AND #version = :expected"
                condition_kwargs["ExpressionAttributeNames"]["#version"] = VERSION_ATTRIBUTE
                condition_kwargs["ExpressionAttributeValues"] = {":expected": item[VERSION_ATTRIBUTE]}
            else:
                condition_kwargs["ConditionExpression"] = "attribute_exists(#path) AND attribute_not_exists(#version)"
                condition_kwargs["ExpressionAttributeNames"]["#version"] = VERSION_ATTRIBUTE

            try:
                call_with_retry(self.table.put_item, self.table_name, Item=new_item, **condition_kwargs)
                return document

            except ClientError as e:
                if not is_conditional_check_failure(e):
                    raise
                logger.debug(
                    "Transaction lost a write race, retrying",
                    extra={"owner_id": owner_id, "doc_path": key[PATH_ATTRIBUTE], "attempt": attempt}
                )

        raise TransactionConflictError(
            f"Transaction on {key[PATH_ATTRIBUTE]} for owner {owner_id} "
            f"did not commit after {self.max_transaction_attempts} attempts"
        )
