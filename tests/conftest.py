"""Shared fixtures for consumer tests."""

import json
from typing import Any, Dict, List, Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from ams_consumer.config import load_settings
from ams_consumer.services.sink_client import IngestSinkClient

INGEST_URL = "https://example.supabase.co/functions/v1/ams-ingest"
INGEST_SECRET = "test-ingest-secret"


class FakeIngestEndpoint:
    """Scripted stand-in for the ingestion endpoint.

    Each entry of ``responses`` is a status code, an ``(status, body)`` tuple,
    or an exception instance to raise. The last entry repeats once the script
    runs out.
    """

    def __init__(self, responses: Optional[List[Any]] = None):
        self.responses = list(responses or [200])
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        index = min(len(self.requests), len(self.responses)) - 1
        scripted = self.responses[index]
        if isinstance(scripted, Exception):
            raise scripted
        if isinstance(scripted, tuple):
            status, body = scripted
        else:
            status, body = scripted, None
        if body is None:
            body = {"ok": True} if 200 <= status < 300 else {"error": f"status {status}"}
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def sent_payloads(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


@pytest.fixture
def settings():
    """Settings with a fake endpoint and no .env lookup."""
    return load_settings(
        _env_file=None,
        supabase_ingest_url=INGEST_URL,
        supabase_ingest_secret=INGEST_SECRET,
    )


@pytest.fixture
def endpoint():
    return FakeIngestEndpoint()


@pytest.fixture
def sleep_mock():
    return AsyncMock()


@pytest.fixture
def sink_client(settings, endpoint, sleep_mock):
    return IngestSinkClient(
        settings,
        transport=httpx.MockTransport(endpoint),
        sleep=sleep_mock,
    )


@pytest.fixture
def make_record():
    def _make_record(record_id: str = "r1", dataset: str = "sp-search-term-report", **overrides):
        record = {
            "dataset": dataset,
            "recordId": record_id,
            "profileId": "p1",
            "eventTime": "2024-01-01T00:00:00Z",
            "payload": {"impressions": 10},
        }
        record.update(overrides)
        return record

    return _make_record


@pytest.fixture
def make_payload(make_record):
    def _make_payload(count: int = 1, dataset: str = "sp-search-term-report"):
        return {
            "dataset": dataset,
            "records": [make_record(f"r{i + 1}", dataset) for i in range(count)],
        }

    return _make_payload


@pytest.fixture
def make_sqs_record():
    def _make_sqs_record(body: Any, message_id: str = "msg-1"):
        if not isinstance(body, str):
            body = json.dumps(body)
        return {
            "messageId": message_id,
            "receiptHandle": f"receipt-handle-for-{message_id}-0123456789",
            "body": body,
            "attributes": {"ApproximateReceiveCount": "1"},
            "messageAttributes": {},
            "eventSource": "aws:sqs",
        }

    return _make_sqs_record
