"""Splitting validated records into delivery batches."""

import json
from typing import Any, List, Optional, Sequence

from ams_consumer.models.ingestion import DeliveryBatch, IngestionRecord

DEFAULT_BATCH_SIZE = 500


def _json_size(value: Any) -> int:
    return len(json.dumps(value, separators=(",", ":"), allow_nan=False).encode("utf-8"))


def _record_size(record: IngestionRecord) -> int:
    # +1 for the separating comma in the records array
    return _json_size(record.to_wire()) + 1


def chunk_records(
    dataset: str,
    records: Sequence[IngestionRecord],
    max_size: int = DEFAULT_BATCH_SIZE,
    max_bytes: Optional[int] = None,
) -> List[DeliveryBatch]:
    """
    Split records into ordered delivery batches.

    Concatenating the batches reproduces ``records`` in order. No batch holds
    more than ``max_size`` records and no batch is empty, so an empty input
    yields no batches.

    When ``max_bytes`` is set, a batch is also closed before its full request
    body (the ``{"dataset", "records"}`` wrapper included) would exceed that
    many bytes. A record that does not fit under ``max_bytes`` on its own is
    sent in a batch by itself.
    """
    if max_size < 1:
        raise ValueError("max_size must be at least 1")

    # The first record has no leading comma, which the -1 accounts for
    wrapper_bytes = _json_size({"dataset": dataset, "records": []}) - 1 if max_bytes else 0

    batches: List[DeliveryBatch] = []
    current: List[IngestionRecord] = []
    current_bytes = wrapper_bytes

    for record in records:
        size = _record_size(record) if max_bytes else 0
        if current and (
            len(current) >= max_size
            or (max_bytes and current_bytes + size > max_bytes)
        ):
            batches.append(DeliveryBatch(dataset=dataset, records=current))
            current = []
            current_bytes = wrapper_bytes
        current.append(record)
        current_bytes += size

    if current:
        batches.append(DeliveryBatch(dataset=dataset, records=current))

    return batches
