"""
Hashing for the audit chain and configuration fingerprints.

Both depend on a canonical JSON rendering: sorted keys, no whitespace, and
one fixed text form per non-JSON type, so the same logical payload always
hashes to the same digest.
"""

import hashlib
import json
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

# prev_hash stand-in for the first entry of the audit chain
CHAIN_START = "GENESIS"


def _canonical_value(obj: Any) -> Any:
    # datetime is a date subclass; isoformat keeps the time part
    if isinstance(obj, (Decimal, UUID)):
        return str(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (set, frozenset, tuple)):
        return sorted(str(item) for item in obj)
    raise TypeError(f"Cannot canonicalize {type(obj).__name__}")


def _sha256(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def canonicalize_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_canonical_value)


def to_json_safe(data: dict) -> dict:
    """Audit and batch payloads as plain JSON types, ready for a JSON column."""
    return json.loads(canonicalize_json(data))


def hash_payload(payload: dict) -> str:
    return _sha256(canonicalize_json(payload))


def hash_audit_event(
    table_name: str,
    record_id: Any,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Digest of one audit entry, chained to its predecessor.

    Changing any field of an earlier entry changes every later hash.
    """
    return _sha256("|".join((table_name, str(record_id), action, payload_hash, prev_hash or CHAIN_START)))
