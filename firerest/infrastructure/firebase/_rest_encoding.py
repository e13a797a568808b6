"""Encode/decode Python values to/from Firestore REST API 'fields' format.

Numbers are always stored as integerValue (truncated toward zero), and
integerValue / timestampValue decode to their wire strings. Existing stored
documents depend on both rules, so they must not be "fixed" here.
"""

import logging
import math
from collections.abc import Mapping
from datetime import date
from typing import Any

from firerest.domain.exceptions import CodecException
from firerest.shared.utils.datetime import to_rfc3339

logger = logging.getLogger(__name__)

_KNOWN_TAGS = frozenset(
    {
        "stringValue",
        "integerValue",
        "timestampValue",
        "nullValue",
        "mapValue",
        "booleanValue",
        "doubleValue",
        "arrayValue",
        "referenceValue",
    }
)


def _encode_value(v: Any) -> dict:
    if v is None:
        return {"nullValue": None}
    if isinstance(v, bool):
        return {"stringValue": "true" if v else "false"}
    if isinstance(v, (int, float)) and math.isfinite(v):
        return {"integerValue": str(math.trunc(v))}
    if isinstance(v, date):
        return {"timestampValue": to_rfc3339(v)}
    if isinstance(v, str):
        return {"stringValue": v}
    if isinstance(v, Mapping):
        return {"mapValue": {"fields": {str(k): _encode_value(x) for k, x in v.items()}}}
    return {"stringValue": str(v)}


def encode_value(v: Any) -> dict:
    """Encode one native value as a tagged Firestore value. Never raises."""
    return _encode_value(v)


def encode_fields(data: Mapping[str, Any]) -> dict[str, dict]:
    """Encode a mapping of native values to a Firestore 'fields' mapping."""
    return {k: _encode_value(v) for k, v in data.items()}


def encode_document(data: Mapping[str, Any]) -> dict:
    """Convert a Python dict to Firestore REST Document body ({"fields": ...})."""
    return {"fields": encode_fields(data)}


def _payload(raw: Any, tag: str, key: str, kind: type) -> Any:
    """Return raw[key] for a container tag, checking the shapes on the way."""
    if raw is None:
        return None
    if not isinstance(raw, Mapping):
        raise CodecException(f"{tag} must be an object, got {type(raw).__name__}", [tag])
    inner = raw.get(key)
    if inner is not None and not isinstance(inner, kind):
        raise CodecException(f"{tag}.{key} has the wrong shape", [tag])
    return inner


def decode_value_strict(obj: Any) -> Any:
    """Decode one tagged value.

    Raises CodecException on zero, several or unknown tags, and on a payload
    whose shape does not match its tag.
    """
    if not isinstance(obj, Mapping):
        raise CodecException(f"Expected a tagged value object, got {type(obj).__name__}")
    tags = [k for k in obj if k.endswith("Value")]
    if len(tags) != 1:
        raise CodecException(f"Expected exactly one value tag, got {len(tags)}", tags)
    tag = tags[0]
    if tag not in _KNOWN_TAGS:
        raise CodecException(f"Unknown value tag: {tag}", tags)
    raw = obj[tag]
    if tag == "nullValue":
        return None
    if tag == "mapValue":
        return decode_fields(_payload(raw, tag, "fields", Mapping))
    if tag == "arrayValue":
        return [_decode_value(x) for x in _payload(raw, tag, "values", list) or []]
    if tag == "booleanValue":
        return bool(raw)
    if tag == "doubleValue":
        try:
            return float(raw)
        except (TypeError, ValueError) as e:
            raise CodecException(f"doubleValue is not a number: {raw!r}", [tag]) from e
    # stringValue, integerValue, timestampValue, referenceValue: wire string as-is
    return raw


def _decode_value(obj: Any) -> Any:
    try:
        return decode_value_strict(obj)
    except CodecException as e:
        logger.debug("Undecodable Firestore value decoded as None: %s", e.message)
        return None


def decode_value(obj: Any) -> Any:
    """Decode one tagged value; malformed values decode to None."""
    return _decode_value(obj)


def decode_fields(fields: Mapping[str, Any] | None) -> dict[str, Any]:
    """Decode a Firestore 'fields' mapping; each bad field becomes None on its own."""
    if not fields:
        return {}
    return {k: _decode_value(v) for k, v in fields.items()}


def decode_document(doc: Mapping[str, Any] | None) -> dict[str, Any]:
    """Convert a Firestore REST Document body to a Python dict of its fields."""
    if not doc:
        return {}
    return decode_fields(doc.get("fields"))
