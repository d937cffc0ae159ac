"""User-facing scan conditions raised by the coordinator."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class NoticeKind(Enum):
    """Conditions the presentation layer may want to show."""

    PERMISSION_MISSING = auto()
    RADIO_DISABLED = auto()
    SCAN_TRIGGER_REJECTED = auto()
    COMPLETION_FAILURE = auto()
    RESULTS_ACCESS_DENIED = auto()
    EMPTY_RESULT_SET = auto()
    RETRIES_EXHAUSTED = auto()

    @property
    def default_severity(self) -> Severity:
        return _DEFAULT_SEVERITY[self]


_DEFAULT_SEVERITY = {
    NoticeKind.PERMISSION_MISSING: Severity.INFO,
    NoticeKind.RADIO_DISABLED: Severity.ERROR,
    NoticeKind.SCAN_TRIGGER_REJECTED: Severity.WARNING,
    NoticeKind.COMPLETION_FAILURE: Severity.WARNING,
    NoticeKind.RESULTS_ACCESS_DENIED: Severity.ERROR,
    NoticeKind.EMPTY_RESULT_SET: Severity.INFO,
    NoticeKind.RETRIES_EXHAUSTED: Severity.WARNING,
}


@dataclass(frozen=True)
class Notice:
    """A condition plus the message shown for it."""

    kind: NoticeKind
    message: str
    severity: Severity | None = field(default=None)

    def __post_init__(self) -> None:
        if self.severity is None:
            object.__setattr__(self, "severity", self.kind.default_severity)

    @property
    def is_error(self) -> bool:
        return self.severity is Severity.ERROR

    def to_dict(self) -> dict[str, str]:
        return {
            "kind": self.kind.name,
            "severity": self.severity.value if self.severity else "",
            "message": self.message,
        }
