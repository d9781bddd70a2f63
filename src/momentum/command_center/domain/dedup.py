"""
Source Deduplication
====================

Each generated item carries a source_hash derived from the record it came
from. Regeneration checks the hash before inserting, so re-running the batch
never creates a second item for the same email or transcript.

The hash is a 32-bit rolling hash over UTF-16 code units, rendered as the
absolute value in hex and left-padded to 16 characters. It is stable across
runs and processes, which is all the gate needs; it is not a security hash.
"""

from typing import Optional

_INT32 = 1 << 32


def _to_int32(value: int) -> int:
    value &= _INT32 - 1
    return value - _INT32 if value >= (1 << 31) else value


def source_hash(key: str) -> str:
    h = 0
    data = key.encode("utf-16-le")
    for i in range(0, len(data), 2):
        code_unit = data[i] | (data[i + 1] << 8)
        h = _to_int32((h << 5) - h + code_unit)
    return format(abs(h), "x").zfill(16)


def email_source_key(email_id: str, communication_type: Optional[str]) -> str:
    return f"email|{email_id}|{communication_type or 'unknown'}"


def transcript_source_key(transcript_id: str) -> str:
    return f"transcript|{transcript_id}|meeting"
