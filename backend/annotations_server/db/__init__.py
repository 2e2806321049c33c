"""Storage layer: durable record store and its write queue."""

from annotations_server.db.record_store import (
    RecordStore,
    canonical_json,
    parse_records,
    serialize_records,
)
from annotations_server.db.write_queue import Mutation, WriteQueue

__all__ = [
    "RecordStore",
    "WriteQueue",
    "Mutation",
    "canonical_json",
    "parse_records",
    "serialize_records",
]
