"""
Notes-field metadata codec.

The leads table in some deployments has no columns for the derived fields
(priority score, sentiment, task state...). They are stored as a JSON object
appended to the free-text notes after a marker line:

    Met client at the open house.

    ---LEVRIX_METADATA---
    {"__v": 1, "meta": {"priorityScore": 80}}

Payloads written before versioning are a flat object with no "__v" key and
decode as version 0.
"""

import json
from typing import Any, Dict, NamedTuple, Optional

METADATA_TAG = "---LEVRIX_METADATA---"
SEPARATOR = "\n\n"
VERSION_KEY = "__v"
META_KEY = "meta"
METADATA_VERSION = 1

# Derived fields persisted through the notes column
METADATA_FIELDS = (
    "priorityScore",
    "nextFollowUpTask",
    "sentiment",
    "propertyAddress",
    "campaignSource",
    "taskDueDate",
    "taskCompleted",
    "firstContactedAt",
    "isInvalidEmail",
)


class DecodedNotes(NamedTuple):
    notes: str
    meta: Dict[str, Any]
    version: Optional[int]


def strip_metadata(raw_notes: Optional[str]) -> str:
    """Notes text with any metadata section removed."""
    text = raw_notes or ""
    if METADATA_TAG not in text:
        return text
    head = text.split(METADATA_TAG, 1)[0]
    return head.removesuffix(SEPARATOR)


def encode_notes(notes: Optional[str], meta: Dict[str, Any]) -> str:
    payload = {VERSION_KEY: METADATA_VERSION, META_KEY: meta}
    return f"{strip_metadata(notes)}{SEPARATOR}{METADATA_TAG}\n{json.dumps(payload)}"


def decode_notes(raw_notes: Optional[str]) -> DecodedNotes:
    """
    Split stored notes into (notes, meta, version). Never raises.

    No marker: notes unchanged, empty meta, version None.
    Malformed payload: the whole original string comes back as notes.
    """
    text = "" if raw_notes is None else str(raw_notes)
    if METADATA_TAG not in text:
        return DecodedNotes(text, {}, None)

    head, _, tail = text.partition(METADATA_TAG)
    notes = head.removesuffix(SEPARATOR)
    payload = tail.strip()
    if not payload:
        return DecodedNotes(notes, {}, None)

    try:
        data = json.loads(payload)
    except (json.JSONDecodeError, RecursionError):
        return DecodedNotes(text, {}, None)
    if not isinstance(data, dict):
        return DecodedNotes(text, {}, None)

    if VERSION_KEY not in data:
        return DecodedNotes(notes, data, 0)
    meta = data.get(META_KEY, {})
    if not isinstance(meta, dict):
        return DecodedNotes(text, {}, None)
    return DecodedNotes(notes, meta, data[VERSION_KEY])


def collect_metadata(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Pick the persisted derived fields out of a lead dict."""
    return {key: fields.get(key) for key in METADATA_FIELDS if key in fields}
