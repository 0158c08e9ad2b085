"""
DynamoDB retry wrappers with exponential backoff.

Provides additional retry logic on top of boto3's built-in retries for the
bucket store's table calls.
"""

from typing import Any, Callable, Dict
from botocore.exceptions import ClientError
from aws_lambda_powertools import Logger
from shared.retry_utils import exponential_backoff_retry

logger = Logger(child=True)

RETRYABLE_ERROR_CODES = (
    'ProvisionedThroughputExceededException',
    'ThrottlingException',
    'RequestLimitExceeded',
    'InternalServerError',
    'ServiceUnavailable',
    'TransactionConflictException',
)


def error_code(error: ClientError) -> str:
    """Extract the DynamoDB error code from a ClientError."""
    return error.response.get('Error', {}).get('Code', '')


def is_retryable_dynamodb_error(error: Exception) -> bool:
    """
    Check if a DynamoDB error is retryable.

    Args:
        error: Exception raised by a boto3 call

    Returns:
        True if the error is a throttling or transient service error
    """
    if not isinstance(error, ClientError):
        return False
    return error_code(error) in RETRYABLE_ERROR_CODES


def is_conditional_check_failure(error: Exception) -> bool:
    """Check if a DynamoDB error is a failed condition expression."""
    return isinstance(error, ClientError) and error_code(error) == 'ConditionalCheckFailedException'


@exponential_backoff_retry(
    max_retries=3,
    base_delay=0.5,
    max_delay=10.0,
    exponential_base=2.0,
    exceptions=(ClientError,),
    should_retry=is_retryable_dynamodb_error
)
def call_with_retry(operation: Callable[..., Dict[str, Any]], table_name: str, **kwargs) -> Dict[str, Any]:
    """
    Call a DynamoDB table operation with retry logic.

    Args:
        operation: Bound table method (get_item, put_item, update_item, query, ...)
        table_name: Table name, for logging
        **kwargs: Arguments for the operation

    Returns:
        Response from the operation

    Raises:
        ClientError if the error is not retryable or all retries fail
    """
    try:
        return operation(**kwargs)
    except ClientError as e:
        if not is_retryable_dynamodb_error(e) and not is_conditional_check_failure(e):
            logger.error(
                "Non-retryable DynamoDB error",
                extra={
                    "error_code": error_code(e),
                    "error_message": str(e),
                    "table_name": table_name
                }
            )
        raise
