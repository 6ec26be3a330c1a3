"""Observability module for structured attempt logging."""

from .logging import AttemptLogEntry, StructuredLogger

__all__ = [
    "StructuredLogger",
    "AttemptLogEntry",
]
