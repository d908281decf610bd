# ============================================================================
#  errors.py — Sync Error Taxonomy
#  Version: 2.0.0
#  CHANGES: Structured errors for transport, user errors, validation, config
# ============================================================================
from typing import Any, Dict, List, Optional


class SyncError(Exception):
    """
    Base exception for the catalog sync.

    All errors carry:
    - code: machine-readable code (e.g. "TRANSPORT_ERROR")
    - message: human-readable message
    - details: extra context for logs and reports
    """

    def __init__(self, message: str, code: str = "SYNC_ERROR", details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class TransportError(SyncError):
    """Non-2xx response, protocol-level error, or retries exhausted."""

    def __init__(self, status: int, endpoint: str, body: str = "", message: Optional[str] = None):
        self.status = status
        self.endpoint = endpoint
        self.body = body
        super().__init__(
            message=message or f"HTTP {status} on {endpoint}: {body[:500]}",
            code="TRANSPORT_ERROR",
            details={"status": status, "endpoint": endpoint, "body": body[:2000]},
        )


class ShopifyUserError(SyncError):
    """Mutation payload returned userErrors."""

    def __init__(self, operation: str, user_errors: List[Dict[str, Any]]):
        self.operation = operation
        self.user_errors = user_errors
        messages = "; ".join(str(e.get("message", "")) for e in user_errors)
        super().__init__(
            message=f"{operation} userErrors: {messages}",
            code="USER_ERROR",
            details={"operation": operation, "user_errors": user_errors},
        )


class ValidationError(SyncError):
    """Source record is missing mandatory fields; raised before any network call."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message=message, code="VALIDATION_ERROR", details={"field": field})


class ConfigError(SyncError):
    """Missing or invalid environment configuration."""

    def __init__(self, message: str, missing: Optional[List[str]] = None):
        self.missing = missing or []
        super().__init__(message=message, code="CONFIG_ERROR", details={"missing": self.missing})


class SourceError(SyncError):
    """The catalog source could not be read."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message=message, code="SOURCE_ERROR", details=details)


class ChildSyncWarning(SyncError):
    """A child sub-step failed; recorded in the report, never propagated."""

    def __init__(self, step: str, cause: Exception):
        self.step = step
        self.cause = cause
        super().__init__(
            message=f"{step}: {cause}",
            code="CHILD_SYNC_WARNING",
            details={"step": step, "cause": type(cause).__name__},
        )
# ============================================================================
# End of errors.py — Version: 2.0.0
# ============================================================================
