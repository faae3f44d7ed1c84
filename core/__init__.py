"""
Core Module Package.

This package contains the core infrastructure components
that all other modules depend on.

Components:
- clock: Unified time abstraction
- cancellation: Per-request cancellation signal
- results: Result-with-error container
- logging_setup: Root logger configuration
- config: Application configuration
- context: Component wiring and lifecycle

config and context import the feature packages, so import
them directly (core.config, core.context).
"""

from core.cancellation import CancellationToken, OperationCancelledError
from core.clock import ClockProtocol, MockClock, SystemClock, ensure_utc
from core.logging_setup import setup_logging
from core.results import ErrorCode, OperationError, OperationResult


__all__ = [
    "CancellationToken",
    "ClockProtocol",
    "ErrorCode",
    "MockClock",
    "OperationCancelledError",
    "OperationError",
    "OperationResult",
    "SystemClock",
    "ensure_utc",
    "setup_logging",
]
