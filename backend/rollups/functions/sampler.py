"""
Sampler Lambda

Scheduled every few minutes. Folds the latest temperature and pH values of
every active owner into that owner's current hour bucket.
"""

from datetime import datetime
from typing import Dict, Any, Optional
from aws_lambda_powertools import Logger
from aws_lambda_powertools.utilities.typing import LambdaContext

from shared.context import PipelineContext
from shared.hourly_sampler import sample_current_hour
from shared.retry_utils import process_batch_with_isolation

logger = Logger()


def sample_all_owners(ctx: PipelineContext, now: Optional[datetime] = None) -> Dict[str, Any]:
    """
    Sample every active owner.

    Args:
        ctx: Pipeline context
        now: Optional sampling time (defaults to the context clock)

    Returns:
        Summary with processed (bucket written), skipped (nothing written)
        and errors counts
    """
    now = now or ctx.now()
    owner_ids = ctx.owners.list_active_owners()

    results, failures = process_batch_with_isolation(
        owner_ids,
        lambda owner_id: sample_current_hour(ctx, owner_id, now=now),
        logger_instance=logger
    )

    processed = sum(1 for written in results if written is not None)
    return {
        "processed": processed,
        "skipped": len(results) - processed,
        "errors": len(failures),
    }


@logger.inject_lambda_context
def lambda_handler(event: Dict[str, Any], context: LambdaContext) -> Dict[str, Any]:
    """
    Lambda handler for the scheduled sampler.

    Args:
        event: EventBridge scheduled event
        context: Lambda context

    Returns:
        Sampling summary
    """
    ctx = PipelineContext.from_environment()
    summary = sample_all_owners(ctx)

    logger.info("Sampling run complete", extra=summary)
    return summary
