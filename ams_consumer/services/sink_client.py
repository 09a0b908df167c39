"""Client for delivering batches to the Supabase ingestion endpoint."""

import asyncio
import json
import logging
from typing import Awaitable, Callable, Optional

import httpx
from pydantic import ValidationError

from ams_consumer.config import Settings
from ams_consumer.core.exceptions import SinkClientError, SinkRetryableError
from ams_consumer.core.signing import sign_body
from ams_consumer.models.ingestion import DeliveryBatch, IngestResult
from ams_consumer.utils.logging import get_logger, log_event

logger = get_logger(__name__)


def serialize_batch(batch: DeliveryBatch) -> bytes:
    """Serialize a batch exactly as it is signed and sent."""
    return json.dumps(batch.to_wire(), separators=(",", ":"), allow_nan=False).encode("utf-8")


class IngestSinkClient:
    """Delivers signed batches to the ingestion endpoint with bounded retries."""

    def __init__(
        self,
        settings: Settings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        """
        Initialize the sink client.

        Args:
            settings: Worker settings (endpoint, secret, retry tunables)
            transport: Optional httpx transport, used to fake the endpoint
            sleep: Coroutine used for backoff waits (defaults to asyncio.sleep)
        """
        self.settings = settings
        self.client: Optional[httpx.AsyncClient] = None
        self._transport = transport
        self._sleep = sleep or asyncio.sleep

    def _initialize_client(self) -> None:
        """Initialize HTTP client."""
        self.client = httpx.AsyncClient(
            timeout=self.settings.ingest_timeout_seconds,
            transport=self._transport,
        )

    async def __aenter__(self) -> "IngestSinkClient":
        if self.client is None:
            self._initialize_client()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        """Close HTTP client."""
        if self.client:
            await self.client.aclose()
            self.client = None

    def backoff_delay_ms(self, attempt: int) -> int:
        """Delay before the retry that follows ``attempt`` (1-based)."""
        delay = self.settings.ingest_backoff_base_ms * (2 ** (attempt - 1))
        return min(delay, self.settings.ingest_backoff_max_ms)

    def _parse_result(self, response: httpx.Response) -> IngestResult:
        try:
            data = response.json()
        except ValueError:
            return IngestResult(raw=response.text)
        if not isinstance(data, dict):
            return IngestResult(raw=data)
        try:
            return IngestResult.model_validate(data)
        except ValidationError:
            return IngestResult(raw=data)

    async def deliver(self, batch: DeliveryBatch) -> IngestResult:
        """
        Deliver one batch, retrying server and network failures.

        Args:
            batch: Records to deliver

        Returns:
            Summary parsed from the endpoint's response body

        Raises:
            SinkClientError: On a 4xx response (never retried)
            SinkRetryableError: When every attempt failed with 5xx or a transport error
        """
        if self.client is None:
            self._initialize_client()

        url = self.settings.supabase_ingest_url
        max_attempts = self.settings.ingest_max_attempts
        body = serialize_batch(batch)
        headers = {
            "Content-Type": "application/json",
            "X-Signature": sign_body(body, self.settings.supabase_ingest_secret),
        }

        last_error = None
        for attempt in range(1, max_attempts + 1):
            log_event(
                logger,
                logging.INFO,
                f"HTTP request attempt {attempt}",
                url=url,
                dataset=batch.dataset,
                records=len(batch.records),
                attempt=attempt,
                maxAttempts=max_attempts,
            )

            try:
                response = await self.client.post(url, content=body, headers=headers)
            except httpx.RequestError as e:
                kind = "Network error"
                last_error = f"{type(e).__name__}: {e}"
                log_details = {"error": last_error, "attempt": attempt}
            else:
                status_code = response.status_code
                if response.is_success:
                    result = self._parse_result(response)
                    log_event(
                        logger,
                        logging.INFO,
                        "Ingest request successful",
                        dataset=batch.dataset,
                        statusCode=status_code,
                        result=result.model_dump(exclude_none=True),
                    )
                    return result

                if 400 <= status_code < 500:
                    log_event(
                        logger,
                        logging.WARNING,
                        "Client error - will not retry",
                        statusCode=status_code,
                        error=response.text,
                        dataset=batch.dataset,
                    )
                    raise SinkClientError(status_code, response.text)

                kind = "Server error"
                last_error = f"HTTP {status_code}: {response.text}"
                log_details = {
                    "statusCode": status_code,
                    "error": response.text,
                    "attempt": attempt,
                }

            if attempt < max_attempts:
                delay_ms = self.backoff_delay_ms(attempt)
                log_event(
                    logger,
                    logging.WARNING,
                    f"{kind} - retrying in {delay_ms}ms",
                    delayMs=delay_ms,
                    **log_details,
                )
                await self._sleep(delay_ms / 1000)

        log_event(
            logger,
            logging.ERROR,
            "All retry attempts exhausted",
            error=last_error,
            attempts=max_attempts,
            dataset=batch.dataset,
        )
        raise SinkRetryableError(last_error, attempts=max_attempts)
