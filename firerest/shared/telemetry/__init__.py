"""Shared telemetry: logging setup."""

from firerest.shared.telemetry.logging import setup_logging

__all__ = [
    "setup_logging",
]
