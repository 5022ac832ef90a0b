"""Operation ledger: the local record of server operations."""

from .store import OperationLedger
from .types import (
    SEVERITY_VARIANT,
    OperationMessage,
    OperationRecord,
    OperationSpec,
    OperationStatus,
    Severity,
    Variant,
    is_ok_severity,
)

__all__ = [
    "OperationLedger",
    "OperationMessage",
    "OperationRecord",
    "OperationSpec",
    "OperationStatus",
    "SEVERITY_VARIANT",
    "Severity",
    "Variant",
    "is_ok_severity",
]
