"""Failure taxonomy for the intake pipeline."""

from __future__ import annotations

from typing import Optional


class IntakeError(Exception):
    """Base class for every failure the pipeline knows how to report."""

    kind: str = "intake_error"
    retryable: bool = False

    def __init__(self, message: str = "") -> None:
        super().__init__(message)
        self.message = message or self.__class__.__name__


class ValidationFailure(IntakeError):
    """The step's validity predicate is false or user input is malformed."""

    kind = "validation_failure"
    retryable = False


class SessionExpired(IntakeError):
    """A step needs the draft handle but none has been assigned."""

    kind = "session_expired"
    retryable = False

    def __init__(self, message: str = "") -> None:
        super().__init__(
            message or "Project draft not found. Please restart from the first step."
        )


class Conflict(IntakeError):
    """The supplied email already belongs to a finalized client."""

    kind = "conflict"
    retryable = False

    def __init__(self, email: str, message: str = "") -> None:
        super().__init__(
            message
            or f"{email} is already registered as a client. "
            "Please use a different email or contact support."
        )
        self.email = email


class TransientSubmissionFailure(IntakeError):
    """Network or service error; re-invoking advance is safe."""

    kind = "transient_submission_failure"
    retryable = True


class TerminalActionFailure(IntakeError):
    """A payment, quote or consultation branch failed."""

    kind = "terminal_action_failure"
    retryable = True


class BackendError(TransientSubmissionFailure):
    """The remote intake service rejected a call or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class UnmappedLabelError(ValidationFailure):
    """A UI label has no backend code and strict mapping is enabled."""

    def __init__(self, table: str, label: str) -> None:
        super().__init__(f"No backend code for {table} label {label!r}")
        self.table = table
        self.label = label


class SnapshotVersionError(IntakeError):
    """A persisted snapshot was written by a newer, unknown schema."""

    kind = "snapshot_version"
