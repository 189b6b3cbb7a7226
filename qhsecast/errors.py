"""
Engine Exceptions.

Only invalid configuration and cancellation reach the caller. Malformed
entity values, failing rule predicates, zero-weight aggregation and store
outages are recovered inside the engine and logged.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorCode(str, Enum):
    """Engine error codes."""

    INTERNAL_ERROR = "E1000"
    CONFIGURATION_ERROR = "E1001"
    ANALYSIS_CANCELLED = "E1002"

    UNKNOWN_MODULE = "E4000"


class QHSECastError(Exception):
    """Base exception for the engine."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class UnknownModuleError(QHSECastError):
    """A module id has no factor table."""

    def __init__(self, module_id: str):
        super().__init__(
            message=f"Unknown module '{module_id}'",
            code=ErrorCode.UNKNOWN_MODULE,
            details={"module_id": module_id},
        )
        self.module_id = module_id


class ConfigurationError(QHSECastError):
    """Static knowledge or rule catalog is inconsistent."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code=ErrorCode.CONFIGURATION_ERROR,
            details=details,
        )


class AnalysisCancelledError(QHSECastError):
    """The caller superseded an in-flight analysis."""

    def __init__(self, operation: str, entity_id: Optional[str] = None):
        super().__init__(
            message=f"{operation} cancelled",
            code=ErrorCode.ANALYSIS_CANCELLED,
            details={"operation": operation, "entity_id": entity_id},
        )
