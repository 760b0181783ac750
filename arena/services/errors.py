"""
Error taxonomy for the registration and deposit flows.

Every error carries a user-facing `message`; the session layer copies it into
the flow state unchanged. `retryable` marks transient failures where the same
request may simply be sent again.
"""
from __future__ import annotations

from typing import Iterable, Optional


class ArenaError(Exception):
    default_message = "Something went wrong. Please try again."
    retryable = False

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class FlowValidationError(ArenaError):
    """User-correctable input problem. Never reaches the store."""
    default_message = "Please check the entered details."


class DuplicateDeposit(FlowValidationError):
    default_message = "This payment reference has already been submitted and is awaiting review."


class PrerequisiteNotMet(ArenaError):
    default_message = "Registration requirements are not met."

    def __init__(self, reasons: Iterable[str] = ()) -> None:
        self.reasons = list(reasons)
        message = " ".join(self.reasons) if self.reasons else None
        super().__init__(message)


class InsufficientBalance(ArenaError):
    default_message = "Insufficient wallet balance."


class SlotsFull(ArenaError):
    default_message = "This tournament is already full."


class AlreadyRegistered(ArenaError):
    default_message = "You are already registered for this tournament."


class UploadFailed(ArenaError):
    default_message = "Could not upload the payment screenshot. Please try again."
    retryable = True


class RemoteUnavailable(ArenaError):
    default_message = "Service is temporarily unavailable. Please try again."
    retryable = True


class UnknownError(ArenaError):
    default_message = "An unknown error occurred."


class TournamentNotFound(UnknownError):
    default_message = "Tournament not found. It may have been deleted."
