"""Processing of a single SQS record: decode, validate, batch, deliver."""

import logging
from typing import Any, Dict, List

from pydantic import ValidationError

from ams_consumer.config import Settings
from ams_consumer.core.batching import chunk_records
from ams_consumer.core.envelope import decode_message_body
from ams_consumer.core.exceptions import (
    PayloadValidationError,
    SinkClientError,
    SinkRetryableError,
)
from ams_consumer.core.validation import validate_payload
from ams_consumer.models.ingestion import (
    DeliveryBatch,
    DeliveryOutcome,
    IngestionPayload,
    QueueRecord,
    RecordResult,
)
from ams_consumer.services.sink_client import IngestSinkClient
from ams_consumer.utils.logging import get_logger, log_event

logger = get_logger(__name__)


class RecordProcessor:
    """Turns one queue record into exactly one delivery outcome."""

    def __init__(self, settings: Settings, sink_client: IngestSinkClient):
        self.settings = settings
        self.sink_client = sink_client

    def parse_record(self, sqs_record: Dict[str, Any]) -> IngestionPayload:
        """
        Parse and validate an SQS record into an ingestion payload.

        Raises:
            PayloadValidationError: If the record, its body, an envelope or the
                payload schema is malformed
        """
        try:
            queue_record = QueueRecord.model_validate(sqs_record)
        except ValidationError as e:
            raise PayloadValidationError(
                f"Malformed SQS record: {e.error_count()} error(s)",
                errors=[
                    {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
                    for err in e.errors(include_url=False)
                ],
            ) from e

        candidate = decode_message_body(queue_record.body)
        return validate_payload(candidate)

    def build_batches(self, payload: IngestionPayload) -> List[DeliveryBatch]:
        return chunk_records(
            payload.dataset,
            payload.records,
            max_size=self.settings.ingest_batch_size,
            max_bytes=self.settings.ingest_max_batch_bytes,
        )

    async def process_record(self, sqs_record: Dict[str, Any]) -> RecordResult:
        """
        Process an SQS record from the event source mapping.

        Validation failures and 4xx rejections are resolved here and reported
        as ``client_error``; only exhausted delivery retries come back as
        ``retryable_error``.

        Args:
            sqs_record: SQS record (``messageId``, ``receiptHandle``, ``body``)

        Returns:
            Outcome for this record
        """
        message_id = sqs_record.get("messageId") or "unknown"
        receipt_handle = sqs_record.get("receiptHandle") or ""
        log_event(
            logger,
            logging.INFO,
            "Processing SQS record",
            messageId=message_id,
            receiptHandle=f"{receipt_handle[:20]}...",
        )

        try:
            payload = self.parse_record(sqs_record)
        except PayloadValidationError as e:
            log_event(
                logger,
                logging.WARNING,
                "Schema validation failed",
                messageId=message_id,
                error=str(e),
                errors=e.errors,
            )
            return RecordResult(
                message_id=message_id,
                outcome=DeliveryOutcome.CLIENT_ERROR,
                error=str(e),
            )

        batches = self.build_batches(payload)
        total_records = len(payload.records)

        for index, batch in enumerate(batches, start=1):
            log_event(
                logger,
                logging.INFO,
                f"Sending batch {index}/{len(batches)}",
                messageId=message_id,
                dataset=payload.dataset,
                batchSize=len(batch.records),
            )
            try:
                await self.sink_client.deliver(batch)
            except SinkClientError as e:
                log_event(
                    logger,
                    logging.WARNING,
                    "Failed to process SQS record",
                    messageId=message_id,
                    dataset=payload.dataset,
                    batch=index,
                    error=str(e),
                )
                return RecordResult(
                    message_id=message_id,
                    outcome=DeliveryOutcome.CLIENT_ERROR,
                    error=str(e),
                    dataset=payload.dataset,
                    total_records=total_records,
                    batches_delivered=index - 1,
                )
            except SinkRetryableError as e:
                log_event(
                    logger,
                    logging.ERROR,
                    "Failed to process SQS record",
                    messageId=message_id,
                    dataset=payload.dataset,
                    batch=index,
                    error=str(e),
                )
                return RecordResult(
                    message_id=message_id,
                    outcome=DeliveryOutcome.RETRYABLE_ERROR,
                    error=str(e),
                    dataset=payload.dataset,
                    total_records=total_records,
                    batches_delivered=index - 1,
                )

        log_event(
            logger,
            logging.INFO,
            "Successfully processed SQS record",
            messageId=message_id,
            dataset=payload.dataset,
            totalRecords=total_records,
            batches=len(batches),
        )
        return RecordResult(
            message_id=message_id,
            outcome=DeliveryOutcome.SUCCESS,
            dataset=payload.dataset,
            total_records=total_records,
            batches_delivered=len(batches),
        )
