"""Exceptions raised by the ingestion pipeline."""

from typing import Any, Dict, List, Optional


class IngestError(Exception):
    """Base class for ingestion pipeline errors."""


class ConfigurationError(IngestError):
    """Required configuration is missing or invalid. Fatal at startup."""


class PayloadValidationError(IngestError):
    """A queue record body could not be parsed into an ingestion payload.

    Never retryable: redelivering the same body fails the same way.
    """

    def __init__(self, message: str, errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message)
        self.errors = errors or []


class SinkClientError(IngestError):
    """The ingestion endpoint rejected a batch with a 4xx status."""

    def __init__(self, status_code: int, body: str):
        super().__init__(f"Client error {status_code}: {body}")
        self.status_code = status_code
        self.body = body


class SinkRetryableError(IngestError):
    """Delivery kept failing with 5xx or transport errors until attempts ran out."""

    def __init__(self, detail: str, attempts: int):
        super().__init__(f"Delivery failed after {attempts} attempts: {detail}")
        self.detail = detail
        self.attempts = attempts


class RetryBatchError(IngestError):
    """Raised to the Lambda runtime so the whole SQS batch is redelivered."""

    def __init__(self, message_ids: List[str]):
        super().__init__(
            f"Retryable delivery failure for messages: {', '.join(message_ids)}"
        )
        self.message_ids = message_ids
