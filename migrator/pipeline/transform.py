# migrator/pipeline/transform.py
"""
Staged detail document -> ledger load payload.

The payload field list is explicit and total: every field is always
present, blank source values become None, and the fields whose valid
domain includes zero keep a literal 0.
"""

import math
from typing import Any, Dict, List, Mapping, Tuple

import msgspec

from ..types import DetailRecord, FieldRule


DETAIL_PAYLOAD_RULES: Tuple[FieldRule, ...] = (
    FieldRule("owner"),
    FieldRule("bounty_id", zero_valid=True, source="parent_id"),
    FieldRule("created_at"),
    FieldRule("start_time"),
    FieldRule("deadline"),
    FieldRule("description"),
    FieldRule("status"),
    FieldRule("bounty_payout_proposal_id"),
    FieldRule("approve_claimer_proposal_id"),
    FieldRule("rejected_timestamp"),
    FieldRule("dispute_id"),
    FieldRule("is_kyc_delayed"),
    FieldRule("payment_timestamps"),
    FieldRule("slot", zero_valid=True),
    FieldRule("bond"),
    FieldRule("claim_number", zero_valid=True),
)

# Fields read from the staged columns rather than the raw ledger attributes
_RECORD_FIELDS = ("owner", "parent_id")


def is_blank(value: Any) -> bool:
    """JSON falsiness: null, false, zero, NaN and the empty string. Empty lists/objects are not blank."""
    if value is None or value is False:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value == 0 or (isinstance(value, float) and math.isnan(value))
    return False


def normalize_field(value: Any, zero_valid: bool) -> Any:
    if zero_valid and isinstance(value, (int, float)) and not isinstance(value, bool) and value == 0:
        return value
    return None if is_blank(value) else value


def build_payload(record: DetailRecord,
                  rules: Tuple[FieldRule, ...] = DETAIL_PAYLOAD_RULES) -> Dict[str, Any]:
    source: Dict[str, Any] = dict(record.attributes)
    for name in _RECORD_FIELDS:
        source[name] = getattr(record, name)

    return {
        rule.name: normalize_field(source.get(rule.source_key), rule.zero_valid)
        for rule in rules
    }


def to_detail_record(document: Mapping[str, Any]) -> DetailRecord:
    return msgspec.convert(
        {field: document.get(field) for field in DetailRecord.__struct_fields__ if field in document},
        DetailRecord,
    )


def build_batch_payload(documents: List[Mapping[str, Any]]) -> List[Dict[str, Any]]:
    return [build_payload(to_detail_record(document)) for document in documents]
