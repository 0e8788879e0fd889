"""Deterministic identifiers for idempotent upserts."""

import hashlib


def deterministic_id(*parts) -> str:
    """UUID-formatted ID derived from the SHA-256 of the joined parts.

    The same parts always give the same ID, so re-writing a record after a
    retry overwrites it instead of creating a duplicate.
    """
    canonical = ":".join(str(p) for p in parts)
    digest = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:32]
    return (
        f"{digest[0:8]}-{digest[8:12]}-{digest[12:16]}-"
        f"{digest[16:20]}-{digest[20:32]}"
    ).upper()


def summary_id(conversation_id: str, tier: int, start_turn_index: int, end_turn_index: int) -> str:
    return deterministic_id(conversation_id, "summary", f"L{int(tier)}", start_turn_index, end_turn_index)


def message_id(conversation_id: str, sequence: int, role: str) -> str:
    return deterministic_id(conversation_id, "message", sequence, role)


def tool_call_id(parent_message_id: str, position: int) -> str:
    return deterministic_id(parent_message_id, "tool", position)


def turn_id(conversation_id: str, turn_index: int) -> str:
    return deterministic_id(conversation_id, "turn", turn_index)
