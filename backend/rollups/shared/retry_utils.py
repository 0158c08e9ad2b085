"""
Retry utilities with exponential backoff.

Provides a retry decorator for transient store errors and a batch helper
that isolates per-item failures so one bad owner or period does not fail
a whole scheduled run.
"""

import time
import functools
from typing import Callable, TypeVar, Any, Optional, Tuple, Type, Iterable, List, Dict
from aws_lambda_powertools import Logger

logger = Logger(child=True)

T = TypeVar('T')


def exponential_backoff_retry(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    should_retry: Optional[Callable[[Exception], bool]] = None,
    logger_instance: Optional[Logger] = None
) -> Callable:
    """
    Decorator for retrying a function with exponential backoff.

    Args:
        max_retries: Maximum number of attempts (default 3)
        base_delay: Base delay in seconds (default 1.0)
        max_delay: Maximum delay in seconds (default 60.0)
        exponential_base: Base for exponential calculation (default 2.0)
        exceptions: Tuple of exception types to catch and retry
        should_retry: Optional predicate; exceptions it rejects are raised immediately
        logger_instance: Optional logger instance for logging retries

    Returns:
        Decorated function with retry logic

    Example:
        @exponential_backoff_retry(max_retries=3, base_delay=0.5)
        def read_document():
            pass
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            log = logger_instance or logger
            last_exception = None

            for attempt in range(1, max_retries + 1):
                try:
                    result = func(*args, **kwargs)
                    if attempt > 1:
                        log.info(
                            f"Function {func.__name__} succeeded on attempt {attempt}",
                            extra={"function": func.__name__, "attempt": attempt}
                        )
                    return result

                except exceptions as e:
                    if should_retry is not None and not should_retry(e):
                        raise

                    last_exception = e

                    if attempt < max_retries:
                        delay = min(base_delay * (exponential_base ** (attempt - 1)), max_delay)

                        log.warning(
                            f"Function {func.__name__} failed on attempt {attempt}/{max_retries}, "
                            f"retrying in {delay:.2f}s",
                            extra={
                                "function": func.__name__,
                                "attempt": attempt,
                                "max_retries": max_retries,
                                "delay_seconds": delay,
                                "error": str(e),
                                "error_type": type(e).__name__
                            }
                        )

                        time.sleep(delay)
                    else:
                        log.error(
                            f"Function {func.__name__} failed after {max_retries} attempts",
                            extra={
                                "function": func.__name__,
                                "max_retries": max_retries,
                                "error": str(e),
                                "error_type": type(e).__name__
                            }
                        )

            raise last_exception

        return wrapper
    return decorator


def process_batch_with_isolation(
    items: Iterable[Any],
    process_func: Callable[[Any], Any],
    key_func: Callable[[Any], str] = str,
    logger_instance: Optional[Logger] = None
) -> Tuple[List[Any], List[Dict[str, str]]]:
    """
    Process a batch of items with error isolation.

    Ensures that failures in individual items don't fail the entire batch.

    Args:
        items: Items to process (owner ids, period keys, ...)
        process_func: Function to process each item
        key_func: Function returning the identifier reported for a failed item
        logger_instance: Optional logger instance

    Returns:
        Tuple of (results of successful items, failures as dicts with
        "itemIdentifier", "error" and "error_type")

    Example:
        results, failures = process_batch_with_isolation(
            owner_ids,
            lambda owner_id: sample_current_hour(ctx, owner_id)
        )
    """
    log = logger_instance or logger
    results = []
    failures = []

    for item in items:
        try:
            results.append(process_func(item))
        except Exception as e:
            identifier = key_func(item)

            log.error(
                "Failed to process batch item",
                extra={
                    "item": identifier,
                    "error": str(e)[:256],
                    "error_type": type(e).__name__
                }
            )

            failures.append({
                "itemIdentifier": identifier,
                "error": str(e)[:256],
                "error_type": type(e).__name__
            })

    return results, failures
