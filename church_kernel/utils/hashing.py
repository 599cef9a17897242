"""
Hashing for the audit ledger.

Ledger hashes must be reproducible on any machine and any Python
version: payloads go through canonical JSON (sorted keys, compact
separators, enums/UUIDs/datetimes rendered as strings) before SHA-256.
"""

import hashlib
import json
from datetime import date
from enum import Enum
from typing import Any
from uuid import UUID

# prev_hash stand-in for the first record of a church's chain.
GENESIS = "GENESIS"


def _encode(obj: Any) -> Any:
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, (UUID, date)):
        return str(obj) if isinstance(obj, UUID) else obj.isoformat()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    if isinstance(obj, tuple):
        return list(obj)
    raise TypeError(f"cannot hash value of type {type(obj).__name__}")


def canonical_json(data: Any) -> str:
    return json.dumps(data, sort_keys=True, separators=(",", ":"), default=_encode)


def sha256_hex(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def hash_payload(payload: dict) -> str:
    """SHA-256 of the canonical JSON form of a ledger payload (64 hex chars)."""
    return sha256_hex(canonical_json(payload))


def hash_audit_record(
    church_id: str,
    action: str,
    payload_hash: str,
    prev_hash: str | None,
) -> str:
    """
    Chain hash of one ledger record.

    Covers the church, the action, the payload hash and the previous
    record's hash; rewriting any record breaks every later link.
    """
    return sha256_hex("|".join((church_id, action, payload_hash, prev_hash or GENESIS)))
