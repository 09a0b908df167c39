"""Decoding of SQS message bodies, including SNS notification envelopes."""

import json
from typing import Any

from ams_consumer.core.exceptions import PayloadValidationError
from ams_consumer.utils.logging import get_logger

logger = get_logger(__name__)


def _reject_constant(name: str) -> Any:
    # NaN, Infinity and -Infinity are accepted by json.loads but are not JSON
    raise ValueError(f"Invalid JSON constant: {name}")


def _parse_json(text: str, what: str) -> Any:
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except (TypeError, ValueError) as e:
        raise PayloadValidationError(
            f"{what} is not valid JSON: {e}",
            errors=[{"field": what, "message": str(e)}],
        ) from e


def _parse_inner_message(message: Any) -> Any:
    # SNS always delivers Message as a string, but tolerate an already-decoded object
    if isinstance(message, str):
        return _parse_json(message, "Sns.Message")
    return message


def unwrap_envelope(message_body: Any) -> Any:
    """
    Return the ingestion payload candidate inside a decoded message body.

    Handles three shapes:
      - ``{"Records": [{"Sns": {"Message": "<json>"}}, ...]}`` (SNS fan-out list)
      - ``{"Type": "Notification", "Message": "<json>"}`` (SNS to SQS, non-raw)
      - anything else is taken to be the payload itself

    Only the first entry of a ``Records`` list is used.
    """
    if isinstance(message_body, dict) and "Records" in message_body:
        entries = message_body["Records"]
        if not isinstance(entries, list) or not entries:
            raise PayloadValidationError(
                "Envelope Records must be a non-empty list",
                errors=[{"field": "Records", "message": "expected a non-empty list"}],
            )
        if len(entries) > 1:
            logger.warning(f"Envelope contains {len(entries)} entries; using the first")

        entry = entries[0]
        sns = entry.get("Sns") if isinstance(entry, dict) else None
        if isinstance(sns, dict) and "Message" in sns:
            return _parse_inner_message(sns["Message"])
        return entry

    if (
        isinstance(message_body, dict)
        and message_body.get("Type") == "Notification"
        and "Message" in message_body
    ):
        return _parse_inner_message(message_body["Message"])

    return message_body


def decode_message_body(body: str) -> Any:
    """Parse a raw SQS body and unwrap any notification envelope."""
    return unwrap_envelope(_parse_json(body, "body"))
