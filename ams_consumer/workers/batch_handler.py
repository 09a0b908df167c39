"""Invocation-level handling of an SQS delivery batch."""

import logging
import time
from typing import Any, Dict, Iterable, Optional

from ams_consumer.config import Settings
from ams_consumer.models.ingestion import (
    DeliveryOutcome,
    InvocationDecision,
    InvocationResult,
    RecordResult,
)
from ams_consumer.services.sink_client import IngestSinkClient
from ams_consumer.utils.logging import get_logger, log_event
from ams_consumer.workers.record_processor import RecordProcessor

logger = get_logger(__name__)

# At this many records the completion log carries a count instead of the list
SUMMARY_RESULTS_LIMIT = 10


class BatchInvocationHandler:
    """Processes every record of one delivery and decides acknowledge vs retry."""

    def __init__(
        self,
        settings: Settings,
        sink_client: Optional[IngestSinkClient] = None,
        processor: Optional[RecordProcessor] = None,
    ):
        self.settings = settings
        self.sink_client = sink_client or IngestSinkClient(settings)
        self.processor = processor or RecordProcessor(settings, self.sink_client)

    async def _process_one(self, record: Dict[str, Any]) -> RecordResult:
        message_id = record.get("messageId") or "unknown"
        try:
            return await self.processor.process_record(record)
        except Exception as e:
            # Unknown failures must not drop data; let the queue redeliver
            logger.error(f"Unexpected error processing record {message_id}: {e}", exc_info=True)
            return RecordResult(
                message_id=message_id,
                outcome=DeliveryOutcome.RETRYABLE_ERROR,
                error=f"Unexpected error: {e}",
            )

    async def handle(
        self,
        records: Iterable[Dict[str, Any]],
        request_id: Optional[str] = None,
    ) -> InvocationResult:
        """
        Process records in delivery order and aggregate their outcomes.

        Every record is processed even after a retryable failure. The batch is
        retried as a whole if any record ended with ``retryable_error``;
        otherwise it is acknowledged, client errors included.

        Args:
            records: SQS records of this delivery
            request_id: Runtime request id, for log correlation

        Returns:
            Decision plus per-record results
        """
        records = list(records)
        start_time = time.monotonic()
        log_event(
            logger,
            logging.INFO,
            "Lambda invocation started",
            recordCount=len(records),
            requestId=request_id,
        )

        results = []
        async with self.sink_client:
            for record in records:
                result = await self._process_one(record)
                results.append(result)

                if result.outcome == DeliveryOutcome.CLIENT_ERROR:
                    log_event(
                        logger,
                        logging.WARNING,
                        "Skipping retry for client error",
                        messageId=result.message_id,
                        error=result.error,
                    )
                elif result.outcome == DeliveryOutcome.RETRYABLE_ERROR:
                    log_event(
                        logger,
                        logging.ERROR,
                        "Retryable failure - batch will be redelivered",
                        messageId=result.message_id,
                        error=result.error,
                    )

        if any(r.outcome == DeliveryOutcome.RETRYABLE_ERROR for r in results):
            decision = InvocationDecision.RETRY_BATCH
        else:
            decision = InvocationDecision.ACKNOWLEDGE
        invocation = InvocationResult(decision=decision, results=results)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if len(results) < SUMMARY_RESULTS_LIMIT:
            summary = [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in results]
        else:
            summary = f"{len(results)} records processed"

        log_event(
            logger,
            logging.INFO,
            "Lambda invocation completed",
            requestId=request_id,
            duration=f"{duration_ms}ms",
            totalRecords=len(records),
            successCount=invocation.success_count,
            errorCount=invocation.error_count,
            decision=decision.value,
            results=summary,
        )
        log_event(
            logger,
            logging.INFO,
            "ams_lambda_execution",
            eventType="ams_lambda_execution",
            requestId=request_id,
            duration=duration_ms,
            recordCount=len(records),
            successCount=invocation.success_count,
            errorCount=invocation.error_count,
        )
        return invocation
