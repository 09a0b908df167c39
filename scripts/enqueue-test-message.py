#!/usr/bin/env python3
"""Send a sample AMS payload to the consumer's SQS queue."""

import argparse
import json
import sys
from datetime import datetime, timezone
from uuid import uuid4

from ams_consumer.config import get_settings
from ams_consumer.core.exceptions import ConfigurationError
from ams_consumer.utils.aws import get_sqs_client


def build_payload(dataset: str, profile_id: str, count: int) -> dict:
    """Build a payload with ``count`` synthetic records."""
    event_time = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
    return {
        "dataset": dataset,
        "records": [
            {
                "dataset": dataset,
                "recordId": str(uuid4()),
                "profileId": profile_id,
                "eventTime": event_time,
                "payload": {"impressions": 10 + i, "clicks": i},
            }
            for i in range(count)
        ],
    }


def wrap_sns(payload: dict) -> dict:
    """Wrap a payload the way an SNS fan-out record list delivers it."""
    return {"Records": [{"Sns": {"Message": json.dumps(payload)}}]}


def main():
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--dataset", default="sp-search-term-report")
    parser.add_argument("--profile-id", default="p1")
    parser.add_argument("--count", type=int, default=1)
    parser.add_argument("--sns", action="store_true", help="wrap in an SNS envelope")
    parser.add_argument("--queue-url", help="defaults to SQS_QUEUE_URL")
    args = parser.parse_args()

    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    queue_url = args.queue_url or settings.sqs_queue_url
    if not queue_url:
        print("No queue URL; pass --queue-url or set SQS_QUEUE_URL", file=sys.stderr)
        sys.exit(1)

    body = build_payload(args.dataset, args.profile_id, args.count)
    if args.sns:
        body = wrap_sns(body)

    response = get_sqs_client(settings).send_message(
        QueueUrl=queue_url,
        MessageBody=json.dumps(body),
    )
    print(f"Sent message {response['MessageId']} ({args.count} records)")


if __name__ == "__main__":
    main()
