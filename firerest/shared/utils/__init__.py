"""Shared utilities: datetime helpers."""

from firerest.shared.utils.datetime import (
    ensure_utc,
    from_timestamp_ms_utc,
    to_epoch_millis,
    to_rfc3339,
)

__all__ = [
    "ensure_utc",
    "to_epoch_millis",
    "to_rfc3339",
    "from_timestamp_ms_utc",
]
