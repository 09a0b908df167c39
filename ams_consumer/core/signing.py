"""HMAC request signing for the ingestion endpoint."""

import hashlib
import hmac
from typing import Union

SIGNATURE_PREFIX = "sha256="


def _to_bytes(value: Union[str, bytes]) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else value


def sign_body(body: Union[str, bytes], secret: str) -> str:
    """
    Compute the X-Signature header value for a request body.

    Args:
        body: Exact bytes (or text) that will be sent
        secret: Shared ingest secret

    Returns:
        Header value in the form ``sha256=<hex digest>``
    """
    digest = hmac.new(_to_bytes(secret), _to_bytes(body), hashlib.sha256).hexdigest()
    return f"{SIGNATURE_PREFIX}{digest}"


def verify_signature(body: Union[str, bytes], signature: str, secret: str) -> bool:
    """Check an X-Signature header value against the body, as the endpoint does."""
    if not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False
    return hmac.compare_digest(sign_body(body, secret), signature)
