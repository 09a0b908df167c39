"""Tests for the long-polling SQS worker."""

import json
from unittest.mock import AsyncMock, Mock

import pytest
from botocore.exceptions import ClientError

from ams_consumer.config import load_settings
from ams_consumer.core.exceptions import ConfigurationError
from ams_consumer.models.ingestion import (
    DeliveryOutcome,
    InvocationDecision,
    InvocationResult,
    RecordResult,
)
from ams_consumer.workers.sqs_poller import SQSPoller, to_queue_record

QUEUE_URL = "https://sqs.us-east-1.amazonaws.com/123456789/ams-queue"


def _settings(**overrides):
    return load_settings(
        _env_file=None,
        supabase_ingest_url="https://example.com/ingest",
        supabase_ingest_secret="secret",
        sqs_queue_url=QUEUE_URL,
        **overrides,
    )


def _messages(count):
    return [
        {
            "MessageId": f"msg-{i + 1}",
            "ReceiptHandle": f"rh-{i + 1}",
            "Body": json.dumps({"dataset": "d", "records": []}),
        }
        for i in range(count)
    ]


def _result(*outcomes):
    results = [
        RecordResult(message_id=f"msg-{i + 1}", outcome=outcome)
        for i, outcome in enumerate(outcomes)
    ]
    retry = any(o == DeliveryOutcome.RETRYABLE_ERROR for o in outcomes)
    return InvocationResult(
        decision=InvocationDecision.RETRY_BATCH if retry else InvocationDecision.ACKNOWLEDGE,
        results=results,
    )


@pytest.fixture
def sqs_client():
    client = Mock()
    client.delete_message_batch.return_value = {"Successful": [], "Failed": []}
    return client


class TestSQSPoller:
    """Tests for SQSPoller.poll_once."""

    def test_requires_queue_url(self, settings, sqs_client):
        """Test the poller refuses to start without a queue URL."""
        with pytest.raises(ConfigurationError):
            SQSPoller(settings, invocation_handler=Mock(), sqs_client=sqs_client)

    def test_to_queue_record(self):
        """Test ReceiveMessage entries map to event source records."""
        message = _messages(1)[0]
        assert to_queue_record(message) == {
            "messageId": "msg-1",
            "receiptHandle": "rh-1",
            "body": message["Body"],
        }

    @pytest.mark.asyncio
    async def test_empty_receive(self, sqs_client):
        """Test nothing is processed when the queue is empty."""
        sqs_client.receive_message.return_value = {}
        handler = Mock()
        handler.handle = AsyncMock()
        poller = SQSPoller(_settings(), invocation_handler=handler, sqs_client=sqs_client)

        assert await poller.poll_once() is None
        handler.handle.assert_not_called()

    @pytest.mark.asyncio
    async def test_acknowledge_deletes_all(self, sqs_client):
        """Test an acknowledged batch is deleted in full."""
        sqs_client.receive_message.return_value = {"Messages": _messages(2)}
        handler = Mock()
        handler.handle = AsyncMock(
            return_value=_result(DeliveryOutcome.SUCCESS, DeliveryOutcome.CLIENT_ERROR)
        )
        poller = SQSPoller(_settings(), invocation_handler=handler, sqs_client=sqs_client)

        await poller.poll_once()

        records = handler.handle.await_args.args[0]
        assert [r["messageId"] for r in records] == ["msg-1", "msg-2"]
        call_kwargs = sqs_client.receive_message.call_args.kwargs
        assert call_kwargs["QueueUrl"] == QUEUE_URL
        assert call_kwargs["MaxNumberOfMessages"] == 10
        assert call_kwargs["WaitTimeSeconds"] == 20
        sqs_client.delete_message_batch.assert_called_once()
        entries = sqs_client.delete_message_batch.call_args.kwargs["Entries"]
        assert [e["ReceiptHandle"] for e in entries] == ["rh-1", "rh-2"]

    @pytest.mark.asyncio
    async def test_retry_deletes_nothing(self, sqs_client):
        """Test a retry decision leaves the whole batch for redelivery."""
        sqs_client.receive_message.return_value = {"Messages": _messages(3)}
        handler = Mock()
        handler.handle = AsyncMock(
            return_value=_result(
                DeliveryOutcome.SUCCESS,
                DeliveryOutcome.RETRYABLE_ERROR,
                DeliveryOutcome.SUCCESS,
            )
        )
        poller = SQSPoller(_settings(), invocation_handler=handler, sqs_client=sqs_client)

        result = await poller.poll_once()

        assert result.decision == InvocationDecision.RETRY_BATCH
        sqs_client.delete_message_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_retry_partial_mode_deletes_resolved(self, sqs_client):
        """Test partial mode deletes everything except retryable messages."""
        sqs_client.receive_message.return_value = {"Messages": _messages(3)}
        handler = Mock()
        handler.handle = AsyncMock(
            return_value=_result(
                DeliveryOutcome.SUCCESS,
                DeliveryOutcome.RETRYABLE_ERROR,
                DeliveryOutcome.CLIENT_ERROR,
            )
        )
        poller = SQSPoller(
            _settings(report_batch_item_failures=True),
            invocation_handler=handler,
            sqs_client=sqs_client,
        )

        await poller.poll_once()

        entries = sqs_client.delete_message_batch.call_args.kwargs["Entries"]
        assert [e["ReceiptHandle"] for e in entries] == ["rh-1", "rh-3"]

    @pytest.mark.asyncio
    async def test_delete_error_is_logged_not_raised(self, sqs_client):
        """Test a failed delete does not crash the worker."""
        sqs_client.receive_message.return_value = {"Messages": _messages(1)}
        sqs_client.delete_message_batch.side_effect = ClientError(
            {"Error": {"Code": "InternalError", "Message": "oops"}},
            "DeleteMessageBatch",
        )
        handler = Mock()
        handler.handle = AsyncMock(return_value=_result(DeliveryOutcome.SUCCESS))
        poller = SQSPoller(_settings(), invocation_handler=handler, sqs_client=sqs_client)

        result = await poller.poll_once()

        assert result.decision == InvocationDecision.ACKNOWLEDGE

    @pytest.mark.asyncio
    async def test_stops_on_missing_queue(self, sqs_client):
        """Test the loop exits when the queue does not exist."""
        sqs_client.receive_message.side_effect = ClientError(
            {"Error": {"Code": "AWS.SimpleQueueService.NonExistentQueue", "Message": "gone"}},
            "ReceiveMessage",
        )
        poller = SQSPoller(_settings(), invocation_handler=Mock(), sqs_client=sqs_client)

        await poller.process_messages()

        assert sqs_client.receive_message.call_count == 1

    def test_signal_stops_worker(self, sqs_client):
        """Test the shutdown signal clears the running flag."""
        poller = SQSPoller(_settings(), invocation_handler=Mock(), sqs_client=sqs_client)
        poller.signal_handler(15, None)
        assert poller.running is False
