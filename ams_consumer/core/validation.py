"""Schema validation for AMS ingestion payloads."""

from typing import Any, Dict, List

from pydantic import ValidationError

from ams_consumer.core.exceptions import PayloadValidationError
from ams_consumer.models.ingestion import IngestionPayload


def _format_errors(error: ValidationError) -> List[Dict[str, Any]]:
    return [
        {
            "field": ".".join(str(part) for part in detail["loc"]) or "<root>",
            "message": detail["msg"],
        }
        for detail in error.errors(include_url=False)
    ]


def validate_payload(candidate: Any) -> IngestionPayload:
    """
    Validate a decoded payload candidate.

    The payload is accepted or rejected as a whole; invalid records are never
    dropped or coerced individually.

    Args:
        candidate: Decoded JSON value expected to be ``{dataset, records}``

    Returns:
        Validated payload

    Raises:
        PayloadValidationError: If any field is missing or has the wrong type
    """
    try:
        return IngestionPayload.model_validate(candidate)
    except ValidationError as e:
        errors = _format_errors(e)
        summary = "; ".join(f"{err['field']}: {err['message']}" for err in errors)
        raise PayloadValidationError(
            f"Invalid AMS payload schema: {summary}", errors=errors
        ) from e
