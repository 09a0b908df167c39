"""Translation of invocation results into the Lambda SQS contract."""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from ams_consumer.config import Settings
from ams_consumer.core.exceptions import RetryBatchError
from ams_consumer.models.ingestion import InvocationDecision, InvocationResult
from ams_consumer.utils.logging import get_logger, log_event
from ams_consumer.workers.batch_handler import BatchInvocationHandler

logger = get_logger(__name__)

LambdaHandler = Callable[[Dict[str, Any], Any], Optional[Dict[str, Any]]]


def to_lambda_response(
    result: InvocationResult,
    report_batch_item_failures: bool = False,
) -> Optional[Dict[str, Any]]:
    """
    Convert an invocation result into what the Lambda runtime expects.

    Without partial batch responses the only way to get a redelivery is to
    raise, which retries every record of the batch. With
    ``report_batch_item_failures`` only the retryable records are listed.

    Raises:
        RetryBatchError: If the batch must be retried and partial responses are off
    """
    if report_batch_item_failures:
        if result.decision == InvocationDecision.RETRY_BATCH:
            log_event(
                logger,
                logging.WARNING,
                "Reporting batch item failures",
                messageIds=result.retryable_message_ids,
            )
        return {
            "batchItemFailures": [
                {"itemIdentifier": message_id}
                for message_id in result.retryable_message_ids
            ]
        }

    if result.decision == InvocationDecision.RETRY_BATCH:
        log_event(
            logger,
            logging.ERROR,
            "Throwing error to trigger SQS retry",
            messageIds=result.retryable_message_ids,
        )
        raise RetryBatchError(result.retryable_message_ids)

    return None


def build_lambda_handler(
    settings: Settings,
    invocation_handler: Optional[BatchInvocationHandler] = None,
) -> LambdaHandler:
    """Create the function registered as the Lambda entry point."""
    invocation_handler = invocation_handler or BatchInvocationHandler(settings)

    def handler(event: Dict[str, Any], context: Any) -> Optional[Dict[str, Any]]:
        """
        Lambda handler for processing SQS messages.

        Args:
            event: SQS event containing messages
            context: Lambda context

        Returns:
            None, or a partial batch response when enabled
        """
        records = event.get("Records", [])
        request_id = getattr(context, "aws_request_id", None)
        # Lambda handler must be synchronous
        result = asyncio.run(invocation_handler.handle(records, request_id=request_id))
        return to_lambda_response(result, settings.report_batch_item_failures)

    return handler
