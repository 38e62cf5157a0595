"""
Centralized error handling and user notification.

Every failure in the combat engine is recovered where it is detected and
turned into a Notice. The NoticeBoard logs the notice with its context and
forwards it to whoever presents notifications to the user (a view, a toast,
a test).
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from catchery import log_error, log_info, log_warning

from skirmish.core.constants import NiceEnum


class ErrorKind(NiceEnum):
    """Taxonomy of recoverable failures."""

    INVALID_ACTION = "INVALID_ACTION"
    INVALID_TARGET = "INVALID_TARGET"
    MALFORMED_PAYLOAD = "MALFORMED_PAYLOAD"
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    UNSATISFIABLE_BUDGET = "UNSATISFIABLE_BUDGET"


class ErrorSeverity(Enum):
    """Enumeration of error severity levels."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class TransportError(Exception):
    """Raised by a transport when connecting, scanning, reading or writing fails."""


class MalformedPayloadError(ValueError):
    """Raised by the snapshot codec when a payload cannot be decoded."""


@dataclass
class Notice:
    """A user-facing notification with its logging context."""

    message: str
    kind: ErrorKind
    severity: ErrorSeverity
    context: dict[str, Any] = field(default_factory=dict)
    exception: Exception | None = None

    def __str__(self) -> str:
        return f"[{self.kind}] {self.message}"


NoticeListener = Callable[[Notice], None]


class NoticeBoard:
    """Collects notices, logs them and forwards them to listeners."""

    def __init__(self) -> None:
        self.history: list[Notice] = []
        self._listeners: list[NoticeListener] = []

    def subscribe(self, listener: NoticeListener) -> None:
        """Registers a callable that is invoked for every notice."""
        self._listeners.append(listener)

    def unsubscribe(self, listener: NoticeListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def handle(
        self,
        message: str,
        kind: ErrorKind,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        context: dict[str, Any] | None = None,
        exception: Exception | None = None,
    ) -> Notice:
        """
        Records a notice, logs it according to its severity and notifies the
        listeners.

        Args:
            message (str): Human readable description.
            kind (ErrorKind): What went wrong.
            severity (ErrorSeverity): How loud the log entry should be.
            context (dict[str, Any] | None): Extra values for the log entry.
            exception (Exception | None): The exception that caused it, if any.

        Returns:
            Notice: The recorded notice.

        """
        notice = Notice(
            message=message,
            kind=kind,
            severity=severity,
            context=context or {},
            exception=exception,
        )
        self.history.append(notice)

        log_context = {"kind": str(kind), **notice.context}
        if exception is not None:
            log_context["exception"] = repr(exception)
        if severity == ErrorSeverity.HIGH:
            log_error(message, log_context)
        elif severity == ErrorSeverity.MEDIUM:
            log_warning(message, log_context)
        else:
            log_info(message, log_context)

        for listener in list(self._listeners):
            listener(notice)
        return notice

    def of_kind(self, kind: ErrorKind) -> list[Notice]:
        """Returns the recorded notices of the given kind."""
        return [notice for notice in self.history if notice.kind == kind]

    def clear(self) -> None:
        self.history.clear()


# Global notice board instance
NOTICE_BOARD = NoticeBoard()
