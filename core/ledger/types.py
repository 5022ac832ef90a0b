"""Operation ledger types."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from core.notifications import Variant


class OperationStatus(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    ERROR = "error"


class Severity(str, Enum):
    """Message level as sent by the server."""

    SUCCESS = "success"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


SEVERITY_VARIANT: dict[Severity, Variant] = {
    Severity.SUCCESS: Variant.SUCCESS,
    Severity.INFO: Variant.INFO,
    Severity.WARNING: Variant.WARNING,
    Severity.ERROR: Variant.DANGER,
}

OK_SEVERITIES = frozenset({Severity.SUCCESS, Severity.INFO})


def is_ok_severity(severity: Severity) -> bool:
    return severity in OK_SEVERITIES


@dataclass(frozen=True)
class OperationMessage:
    text: str
    severity: Severity

    @property
    def variant(self) -> Variant:
        return SEVERITY_VARIANT[self.severity]


@dataclass(frozen=True)
class OperationSpec:
    """Arguments for OperationLedger.create()."""

    id: str
    title: str
    started_at: int  # milliseconds
    caller: str | None = None
    external: bool = False
    operation_id: str | None = None
    status: OperationStatus = OperationStatus.PENDING
    show_modal: bool = True


@dataclass
class OperationRecord:
    """One entry of the operation ledger."""

    id: str
    title: str
    started_at: int  # milliseconds
    caller: str | None = None
    external: bool = False
    operation_id: str | None = None
    status: OperationStatus = OperationStatus.PENDING
    show_modal: bool = True
    progress: tuple[int, int, int] | None = None
    messages: list[OperationMessage] = field(default_factory=list)
    # Only non-ok severities are counted
    severity_counts: dict[Severity, int] = field(
        default_factory=lambda: {Severity.WARNING: 0, Severity.ERROR: 0}
    )
    error_message: str | None = None
    ended_at: int | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == OperationStatus.PENDING

    @property
    def warnings(self) -> int:
        return self.severity_counts[Severity.WARNING]

    @property
    def errors(self) -> int:
        return self.severity_counts[Severity.ERROR]

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "operation_id": self.operation_id,
            "title": self.title,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "caller": self.caller,
            "status": self.status.value,
            "external": self.external,
            "show_modal": self.show_modal,
            "progress": list(self.progress) if self.progress else None,
            "messages": [{"text": m.text, "variant": m.variant.value} for m in self.messages],
            "warnings": self.warnings,
            "errors": self.errors,
            "error_message": self.error_message,
        }
