import json
import math
from datetime import datetime, timezone
from typing import Any

from tokenmeter.models import UsageRecord

# node budgets for the generic document walks. Log schemas drift
# between producers, but a line never needs more than this.
USAGE_SEARCH_LIMIT = 4000
TIMESTAMP_SEARCH_LIMIT = 2000

_ID_KEYS = ("id", "messageId", "message_id", "uuid")
_TIMESTAMP_KEYS = ("timestamp", "time")


def extract(raw_line: "str") -> "UsageRecord | None":
    """
    parses one log line into a UsageRecord. Returns None for blank
    or malformed lines, lines without a usage object or a
    resolvable timestamp, and records with no tokens at all.
    """
    line = raw_line.strip()
    if not line:
        return None

    try:
        document = json.loads(line)
    except (ValueError, RecursionError):
        return None

    if not isinstance(document, dict):
        return None

    timestamp = _top_level_timestamp(document) or _search_timestamp(document)
    if timestamp is None:
        return None

    found = _direct_usage(document) or _search_usage(document)
    if found is None:
        return None

    identifier, usage = found
    return usage_record(identifier, usage, timestamp)


def usage_record(
    identifier: "str",
    usage: "dict[str, Any]",
    timestamp: "datetime",
) -> "UsageRecord | None":
    """
    builds a record from a usage object, or None when all four
    token categories are zero.
    """
    input_tokens, output_tokens, cache_creation, cache_read = _token_counts(usage)
    if input_tokens + output_tokens + cache_creation + cache_read <= 0:
        return None

    return UsageRecord(
        identifier=identifier,
        input_tokens=input_tokens,
        output_tokens=output_tokens,
        cache_creation_tokens=cache_creation,
        cache_read_tokens=cache_read,
        timestamp=timestamp,
    )


def _direct_usage(
    document: "dict[str, Any]",
) -> "tuple[str, dict[str, Any]] | None":
    """
    checks the common shape: {"message": {"id": ..., "usage": {...}}}.
    """
    message = document.get("message")
    if not isinstance(message, dict):
        return None

    usage = message.get("usage")
    if not isinstance(usage, dict):
        return None

    for candidate in (
        message.get("id"),
        document.get("messageId"),
        document.get("message_id"),
        document.get("uuid"),
    ):
        if isinstance(candidate, str) and candidate:
            if _has_tokens(usage):
                return candidate, usage
            return None
    return None


def _search_usage(document: "Any") -> "tuple[str, dict[str, Any]] | None":
    """
    walks the document with an explicit stack looking for any object
    holding both an id-like field and a usage object with tokens.
    """
    stack: "list[Any]" = [document]
    visited = 0

    while stack:
        current = stack.pop()
        visited += 1
        if visited > USAGE_SEARCH_LIMIT:
            break

        if isinstance(current, dict):
            usage = current.get("usage")
            if isinstance(usage, dict):
                identifier = _first_id(current)
                if identifier is not None and _has_tokens(usage):
                    return identifier, usage
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)

    return None


def _top_level_timestamp(document: "dict[str, Any]") -> "datetime | None":
    value = document.get("timestamp")
    if isinstance(value, str):
        return parse_timestamp(value)
    return None


def _search_timestamp(document: "Any") -> "datetime | None":
    stack: "list[Any]" = [document]
    visited = 0

    while stack:
        current = stack.pop()
        visited += 1
        if visited > TIMESTAMP_SEARCH_LIMIT:
            break

        if isinstance(current, dict):
            for key in _TIMESTAMP_KEYS:
                value = current.get(key)
                if isinstance(value, str):
                    parsed = parse_timestamp(value)
                    if parsed is not None:
                        return parsed
            stack.extend(current.values())
        elif isinstance(current, list):
            stack.extend(current)

    return None


def parse_timestamp(value: "str") -> "datetime | None":
    """
    parses ISO-8601 with or without fractional seconds. A trailing
    Z is accepted and naive values are taken as UTC.
    """
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _first_id(node: "dict[str, Any]") -> "str | None":
    for key in _ID_KEYS:
        value = node.get(key)
        if isinstance(value, str) and value:
            return value
    return None


def _token_counts(usage: "dict[str, Any]") -> "tuple[int, int, int, int]":
    """
    returns (input, output, cache_creation, cache_read).
    """
    cache_creation = _int_field(usage, "cache_creation_input_tokens")
    # some producers only emit the per-TTL breakdown
    if cache_creation == 0:
        breakdown = usage.get("cache_creation")
        if isinstance(breakdown, dict):
            cache_creation = _int_field(
                breakdown, "ephemeral_5m_input_tokens"
            ) + _int_field(breakdown, "ephemeral_1h_input_tokens")

    return (
        _int_field(usage, "input_tokens"),
        _int_field(usage, "output_tokens"),
        cache_creation,
        _int_field(usage, "cache_read_input_tokens"),
    )


def _has_tokens(usage: "dict[str, Any]") -> "bool":
    return sum(_token_counts(usage)) > 0


def _int_field(source: "dict[str, Any]", key: "str") -> "int":
    """
    reads a token count tolerating ints, floats and numeric strings.
    Anything else counts as zero.
    """
    value = source.get(key)
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, float):
        if not math.isfinite(value):
            return 0
        return max(0, int(value))
    if isinstance(value, str):
        try:
            return max(0, int(value.strip()))
        except ValueError:
            return 0
    return 0
