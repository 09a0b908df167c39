"""Long-polling SQS consumer for running the pipeline outside Lambda."""

import asyncio
import signal
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from ams_consumer.config import Settings
from ams_consumer.core.exceptions import ConfigurationError
from ams_consumer.models.ingestion import InvocationDecision, InvocationResult
from ams_consumer.utils.aws import get_sqs_client
from ams_consumer.utils.logging import get_logger
from ams_consumer.workers.batch_handler import BatchInvocationHandler

logger = get_logger(__name__)

# SQS DeleteMessageBatch limit
DELETE_BATCH_LIMIT = 10


def to_queue_record(message: Dict[str, Any]) -> Dict[str, Any]:
    """Map a ReceiveMessage entry to the event source mapping record shape."""
    return {
        "messageId": message["MessageId"],
        "receiptHandle": message["ReceiptHandle"],
        "body": message.get("Body", ""),
    }


class SQSPoller:
    """Worker that receives batches from SQS and acknowledges them explicitly."""

    def __init__(
        self,
        settings: Settings,
        invocation_handler: Optional[BatchInvocationHandler] = None,
        sqs_client=None,
    ):
        """Initialize SQS poller."""
        if not settings.sqs_queue_url:
            raise ConfigurationError("SQS_QUEUE_URL is required for the poller")
        self.settings = settings
        self.queue_url = settings.sqs_queue_url
        self.invocation_handler = invocation_handler or BatchInvocationHandler(settings)
        self.sqs_client = sqs_client or get_sqs_client(settings)
        self.running = True

    def signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info("Received shutdown signal, stopping worker...")
        self.running = False

    def _receipts_to_delete(
        self,
        messages: List[Dict[str, Any]],
        result: InvocationResult,
    ) -> List[Dict[str, str]]:
        if result.decision == InvocationDecision.ACKNOWLEDGE:
            keep = set()
        elif self.settings.report_batch_item_failures:
            keep = set(result.retryable_message_ids)
        else:
            # Leave everything to reappear after the visibility timeout
            return []
        return [
            {"Id": str(index), "ReceiptHandle": message["ReceiptHandle"]}
            for index, message in enumerate(messages)
            if message["MessageId"] not in keep
        ]

    def _delete_messages(self, entries: List[Dict[str, str]]) -> int:
        deleted = 0
        for start in range(0, len(entries), DELETE_BATCH_LIMIT):
            chunk = entries[start:start + DELETE_BATCH_LIMIT]
            try:
                response = self.sqs_client.delete_message_batch(
                    QueueUrl=self.queue_url,
                    Entries=chunk,
                )
            except ClientError as e:
                logger.error(f"Error deleting messages from queue: {e}")
                continue
            deleted += len(response.get("Successful", []))
            for failure in response.get("Failed", []):
                logger.error(
                    f"Failed to delete message {failure.get('Id')}: {failure.get('Message')}"
                )
        return deleted

    async def poll_once(self) -> Optional[InvocationResult]:
        """
        Receive one batch, process it and acknowledge according to the decision.

        Returns:
            The invocation result, or None if the queue returned no messages
        """
        response = self.sqs_client.receive_message(
            QueueUrl=self.queue_url,
            MaxNumberOfMessages=self.settings.sqs_max_messages,
            WaitTimeSeconds=self.settings.sqs_wait_time_seconds,
            VisibilityTimeout=self.settings.sqs_visibility_timeout,
        )
        messages = response.get("Messages", [])
        if not messages:
            return None

        logger.info(f"Received {len(messages)} messages from queue")
        records = [to_queue_record(message) for message in messages]
        result = await self.invocation_handler.handle(records)

        entries = self._receipts_to_delete(messages, result)
        deleted = self._delete_messages(entries) if entries else 0
        if result.decision == InvocationDecision.RETRY_BATCH:
            logger.warning(
                f"Batch needs retry ({len(result.retryable_message_ids)} retryable); "
                f"deleted {deleted} of {len(messages)} messages"
            )
        else:
            logger.info(f"Batch acknowledged; deleted {deleted} messages")
        return result

    async def process_messages(self):
        """Poll until stopped."""
        logger.info(f"Starting SQS worker for queue: {self.queue_url}")

        while self.running:
            try:
                await self.poll_once()
            except ClientError as e:
                error_code = e.response.get("Error", {}).get("Code", "Unknown")
                if error_code == "AWS.SimpleQueueService.NonExistentQueue":
                    logger.error(f"Queue does not exist: {self.queue_url}")
                    break
                logger.error(f"SQS error: {e}")
                await asyncio.sleep(5)  # Wait before retrying

        logger.info("SQS worker stopped")

    async def run(self):
        """Run the worker."""
        signal.signal(signal.SIGINT, self.signal_handler)
        signal.signal(signal.SIGTERM, self.signal_handler)

        try:
            await self.process_messages()
        except KeyboardInterrupt:
            logger.info("Worker interrupted by user")
        finally:
            logger.info("Worker shutdown complete")
