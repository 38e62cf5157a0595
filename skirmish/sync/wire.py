"""
Wire format of the combat snapshot.

A snapshot travels as UTF-8 JSON: an array whose first element holds the
round, acting index, phase and log, followed by one record per participant.
"""

import json
from typing import Any

from pydantic import ValidationError

from skirmish.combat.snapshot import CombatSnapshot
from skirmish.core.error_handling import MalformedPayloadError

METADATA_KEYS = ("round", "acting_index", "phase", "log")


def encode_snapshot(snapshot: CombatSnapshot) -> bytes:
    """
    Serializes a snapshot for the sync channel.

    Args:
        snapshot (CombatSnapshot): The snapshot to send.

    Returns:
        bytes: The UTF-8 encoded JSON array.

    """
    data = snapshot.model_dump(mode="json")
    metadata = {key: data[key] for key in METADATA_KEYS}
    return json.dumps([metadata, *data["participants"]], ensure_ascii=False).encode("utf-8")


def decode_snapshot(payload: bytes) -> CombatSnapshot:
    """
    Rebuilds a snapshot received from the sync channel.

    Args:
        payload (bytes): The received bytes.

    Returns:
        CombatSnapshot: The decoded snapshot.

    Raises:
        MalformedPayloadError: If the payload is not a valid snapshot array.

    """
    try:
        text = payload.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayloadError("Payload is not UTF-8 text") from e
    try:
        data: Any = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"Payload is not JSON: {e.msg}") from e
    if not isinstance(data, list):
        raise MalformedPayloadError(f"Payload is not an array but {type(data).__name__}")
    if not data or not isinstance(data[0], dict):
        raise MalformedPayloadError("Payload has no metadata record")

    metadata, *participants = data
    fields = {key: metadata[key] for key in METADATA_KEYS if key in metadata}
    try:
        return CombatSnapshot.model_validate({**fields, "participants": participants})
    except ValidationError as e:
        raise MalformedPayloadError(f"Invalid snapshot: {e.error_count()} errors") from e
    except ValueError as e:
        raise MalformedPayloadError(f"Invalid snapshot: {e}") from e
