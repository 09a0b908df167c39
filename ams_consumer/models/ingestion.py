"""Pydantic models for queue records, ingestion payloads and delivery results."""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class QueueRecord(BaseModel):
    """One SQS message as delivered by the Lambda event source mapping."""

    model_config = ConfigDict(extra="ignore")

    message_id: str = Field(..., alias="messageId", description="SQS message id")
    receipt_handle: Optional[str] = Field(None, alias="receiptHandle", description="SQS receipt handle")
    body: str = Field(..., description="Raw message body, expected to be JSON")


class IngestionRecord(BaseModel):
    """A single AMS record bound for the ingestion endpoint."""

    model_config = ConfigDict(frozen=True)

    dataset: str = Field(..., description="AMS dataset the record belongs to")
    record_id: str = Field(..., alias="recordId", min_length=1, description="Source record identifier")
    profile_id: str = Field(..., alias="profileId", description="Advertising profile id")
    event_time: str = Field(..., alias="eventTime", description="ISO-8601 event timestamp")
    payload: Dict[str, Any] = Field(..., description="Dataset-specific fields")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


class IngestionPayload(BaseModel):
    """Validated `{dataset, records}` structure extracted from a message body."""

    model_config = ConfigDict(frozen=True)

    dataset: str = Field(..., description="Target dataset")
    records: List[IngestionRecord] = Field(..., description="Records in source order")


class DeliveryBatch(BaseModel):
    """A chunk of records sent to the ingestion endpoint in one request."""

    model_config = ConfigDict(frozen=True)

    dataset: str
    records: List[IngestionRecord] = Field(..., min_length=1)

    def to_wire(self) -> Dict[str, Any]:
        """Outbound request body."""
        return {
            "dataset": self.dataset,
            "records": [record.to_wire() for record in self.records],
        }


class DeliveryOutcome(str, Enum):
    """Outcome of processing one queue record."""

    SUCCESS = "success"
    CLIENT_ERROR = "client_error"
    RETRYABLE_ERROR = "retryable_error"


class IngestResult(BaseModel):
    """Summary returned by the ingestion endpoint on success."""

    model_config = ConfigDict(extra="allow")

    ok: Optional[bool] = None
    dataset: Optional[str] = None
    total_records: Optional[int] = None
    inserted: Optional[int] = None
    deduped: Optional[int] = None


class RecordResult(BaseModel):
    """Per-queue-record result collected by the invocation handler."""

    message_id: str = Field(..., serialization_alias="messageId")
    outcome: DeliveryOutcome
    error: Optional[str] = None
    dataset: Optional[str] = None
    total_records: int = Field(default=0, serialization_alias="totalRecords")
    batches_delivered: int = Field(default=0, serialization_alias="batchesDelivered")

    @property
    def is_success(self) -> bool:
        return self.outcome == DeliveryOutcome.SUCCESS


class InvocationDecision(str, Enum):
    """What the queue runtime should do with the delivered batch."""

    ACKNOWLEDGE = "acknowledge"
    RETRY_BATCH = "retry_batch"


class InvocationResult(BaseModel):
    """Aggregated outcome of one handler invocation."""

    decision: InvocationDecision
    results: List[RecordResult] = Field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.results if result.is_success)

    @property
    def error_count(self) -> int:
        return len(self.results) - self.success_count

    @property
    def retryable_message_ids(self) -> List[str]:
        return [
            result.message_id
            for result in self.results
            if result.outcome == DeliveryOutcome.RETRYABLE_ERROR
        ]

    @property
    def acknowledged_message_ids(self) -> List[str]:
        return [
            result.message_id
            for result in self.results
            if result.outcome != DeliveryOutcome.RETRYABLE_ERROR
        ]
