"""
Custom error classes for the workforce analytics engine.
Structured error handling with error codes across all modules.

Hierarchy:
    AnalyticsError
    ├── ContractViolationError   (also a TypeError)
    ├── MalformedRecordError
    └── DataError
        ├── ConfigError
        └── DataFetchError

Only ContractViolationError is meant to reach callers of the engine.
Malformed records are recovered locally; ConfigError and DataFetchError
are raised by the batch runner only.
"""


class AnalyticsError(Exception):
    """Base exception for all analytics errors."""

    def __init__(self, message: str, code: str = "UNKNOWN", details: dict = None):
        self.code = code
        self.details = details or {}
        super().__init__(f"[{code}] {message}")


class ContractViolationError(AnalyticsError, TypeError):
    """An argument has the wrong type entirely or an invalid value."""

    def __init__(self, message: str, argument: str = None, received: object = None):
        super().__init__(
            message, code="CONTRACT_VIOLATION",
            details={
                "argument": argument,
                "received_type": type(received).__name__ if received is not None else None,
            },
        )


class MalformedRecordError(AnalyticsError):
    """A work item record cannot be read at all."""

    def __init__(self, message: str, index: int = None):
        super().__init__(
            message, code="MALFORMED_RECORD", details={"index": index},
        )


# --- Data Errors ---

class DataError(AnalyticsError):
    """Base class for data loading errors."""
    pass


class ConfigError(DataError):
    """Configuration value error."""

    def __init__(self, message: str, variable: str = None):
        super().__init__(
            message, code="CONFIG_ERROR",
            details={"variable": variable},
        )


class DataFetchError(DataError):
    """Failed to fetch or load data from storage."""

    def __init__(self, message: str, source: str = None):
        super().__init__(
            message, code="DATA_FETCH_FAILED", details={"source": source},
        )
