"""
Input validation: Pydantic v2 models and the payment proof rule set.

Used to validate user-supplied text before it enters the registration flow or
the deposit pipeline. Keeps validation logic out of handler code and makes it
trivially testable. Nothing here performs I/O.
"""
from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from arena.services.money import format_amount_tidy, is_supported_currency, minimum_amount

_TEAM_NAME_RE = re.compile(r"^[\w][\w\s\-\.']*$", re.UNICODE)
_PLAYER_SPLIT_RE = re.compile(r"[,\n]+")

UPI_ID_RE       = re.compile(r"^[a-zA-Z0-9._-]+@[a-zA-Z0-9.-]+$")
UPI_TXN_RE      = re.compile(r"^[0-9]{12}$")
EMAIL_RE        = re.compile(r"^[A-Za-z0-9+_.-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$")
NGN_ACCOUNT_RE  = re.compile(r"^[0-9]{10}$")
PLAIN_REF_RE    = re.compile(r"^[A-Za-z0-9\-_/]+$")

MIN_REFERENCE_LENGTH = 3

# Amount above which a bank statement must accompany the screenshot.
BANK_STATEMENT_THRESHOLDS = {"NGN": 50_000.0}
# Amount above which admins are warned to double-check.
LARGE_AMOUNT_THRESHOLDS = {"NGN": 1_000_000.0, "INR": 100_000.0, "USD": 5_000.0, "EUR": 5_000.0, "GBP": 5_000.0}


class PaymentMethod:
    UPI           = "upi"
    BANK_TRANSFER = "bank_transfer"

    ALL = (UPI, BANK_TRANSFER)

    LABELS = {
        UPI:           "UPI",
        BANK_TRANSFER: "Bank transfer",
    }

    REFERENCE_LABELS = {
        UPI:           "UPI Transaction ID",
        BANK_TRANSFER: "Bank transfer reference",
    }


# ─────────────────────────── Registration text input ──────────────────────────

class TeamNameInput(BaseModel):
    """
    Team name typed on the DETAILS step.

    Attributes
    ----------
    team_name : 2–50 chars, letters / digits / spaces / - . '
    """

    team_name: str

    @field_validator("team_name")
    @classmethod
    def validate_team_name(cls, v: str) -> str:
        v = " ".join(v.split())
        if not v:
            raise ValueError("Team name is required")
        if len(v) < 2 or len(v) > 50:
            raise ValueError("Team name must be between 2 and 50 characters")
        if not _TEAM_NAME_RE.match(v):
            raise ValueError("Team name may contain only letters, digits, spaces and - . '")
        return v


class PlayerIdsInput(BaseModel):
    """
    In-game player IDs, one per team member, typed as a comma or newline
    separated list.
    """

    player_ids: Tuple[str, ...]
    team_size: int = Field(default=4, ge=1)

    @field_validator("player_ids", mode="before")
    @classmethod
    def split_player_ids(cls, v):
        if isinstance(v, str):
            v = _PLAYER_SPLIT_RE.split(v)
        return tuple(str(p).strip() for p in v if str(p).strip())

    @field_validator("player_ids")
    @classmethod
    def validate_player_ids(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        if not v:
            raise ValueError("All player in-game IDs are required")
        if len(set(v)) != len(v):
            raise ValueError("Player in-game IDs must be unique")
        for pid in v:
            if len(pid) > 40:
                raise ValueError(f"Player ID is too long: {pid[:40]}…")
        return v

    def check_team_size(self) -> None:
        if len(self.player_ids) > self.team_size:
            raise ValueError(f"A team can have at most {self.team_size} player(s)")


# ─────────────────────────── Payment proof ────────────────────────────────────

class DepositAmountInput(BaseModel):
    amount: float
    currency: str = "INR"

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        v = v.strip().upper()
        if not is_supported_currency(v):
            raise ValueError(f"Unsupported currency: {v}")
        return v

    @field_validator("amount")
    @classmethod
    def validate_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Amount must be greater than 0")
        return round(v, 2)

    @model_validator(mode="after")
    def check_minimum(self) -> "DepositAmountInput":
        floor = minimum_amount(self.currency)
        if self.amount < floor:
            raise ValueError(f"Minimum deposit is {format_amount_tidy(floor, self.currency)}")
        return self


class PaymentProof(BaseModel):
    """
    A user's claim that money was sent, plus where the evidence lives.

    Built up step by step in the deposit dialog with model_copy(update=...)
    and validated with validate_payment_proof before anything is uploaded.
    `request_id` is generated once per dialog and keys the idempotent submit.
    """

    currency: str = "INR"
    amount: float = 0.0
    payment_method: str = PaymentMethod.UPI
    reference: str = ""
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    sender_upi_id: Optional[str] = None
    upi_app_name: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    payer_email: Optional[str] = None

    screenshot_url: Optional[str] = None
    receipt_url: Optional[str] = None
    bank_statement_url: Optional[str] = None

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("reference")
    @classmethod
    def strip_reference(cls, v: str) -> str:
        return v.strip()

    @property
    def reference_label(self) -> str:
        return PaymentMethod.REFERENCE_LABELS.get(self.payment_method, "Payment reference")

    @property
    def requires_bank_statement(self) -> bool:
        threshold = BANK_STATEMENT_THRESHOLDS.get(self.currency)
        return threshold is not None and self.amount > threshold

    def details(self) -> dict:
        """Method-specific fields stored with the pending deposit."""
        keys = ("sender_upi_id", "upi_app_name", "bank_name", "account_number", "account_name", "payer_email")
        return {k: getattr(self, k) for k in keys if getattr(self, k)}


@dataclass
class ProofValidationResult:
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    @property
    def risk_score(self) -> int:
        return min(len(self.errors) * 30 + len(self.warnings) * 10, 100)


def validate_payment_proof(
    proof: PaymentProof,
    has_evidence: bool = False,
    has_bank_statement: bool = False,
    has_receipt: bool = False,
) -> ProofValidationResult:
    """
    Check a proof before any upload or store write.

    Evidence counts as present when bytes are about to be uploaded
    (`has_*` flags) or a URL is already on the proof.
    """
    result = ProofValidationResult()
    errors, warnings = result.errors, result.warnings

    # Amount / currency
    if proof.amount <= 0:
        errors.append("Amount must be greater than 0")
    if not is_supported_currency(proof.currency):
        errors.append(f"Unsupported currency: {proof.currency}")
    elif proof.amount > 0 and proof.amount < minimum_amount(proof.currency):
        errors.append(
            f"Minimum deposit is {format_amount_tidy(minimum_amount(proof.currency), proof.currency)}"
        )

    if proof.payment_method not in PaymentMethod.ALL:
        errors.append(f"Unsupported payment method: {proof.payment_method}")

    # Reference
    label = proof.reference_label
    if not proof.reference:
        errors.append(f"{label} is required")
    elif len(proof.reference) < MIN_REFERENCE_LENGTH:
        errors.append(f"{label} appears too short (minimum {MIN_REFERENCE_LENGTH} characters)")
    elif proof.payment_method == PaymentMethod.UPI and not UPI_TXN_RE.match(proof.reference):
        warnings.append(f"{label} format appears unusual: {proof.reference}")
    elif not PLAIN_REF_RE.match(proof.reference):
        warnings.append(f"{label} format appears unusual: {proof.reference}")

    # Method-specific
    if proof.payment_method == PaymentMethod.UPI:
        _check_upi(proof, errors, warnings)
    elif proof.payment_method == PaymentMethod.BANK_TRANSFER:
        _check_bank_transfer(proof, errors, warnings)

    if proof.payer_email and not EMAIL_RE.match(proof.payer_email):
        errors.append(f"Invalid email format: {proof.payer_email}")

    # Documents
    if not (has_evidence or proof.screenshot_url):
        errors.append("Payment screenshot is required")
    if proof.requires_bank_statement and not (has_bank_statement or proof.bank_statement_url):
        threshold = BANK_STATEMENT_THRESHOLDS[proof.currency]
        errors.append(
            f"Bank statement required for {proof.currency} amounts above "
            f"{format_amount_tidy(threshold, proof.currency)}"
        )
    if not (has_receipt or proof.receipt_url):
        warnings.append("Payment receipt not provided (recommended for faster verification)")

    large = LARGE_AMOUNT_THRESHOLDS.get(proof.currency)
    if large is not None and proof.amount > large:
        warnings.append(
            f"Large amount transaction (>{format_amount_tidy(large, proof.currency)}) "
            "requires additional verification"
        )

    return result


def _check_upi(proof: PaymentProof, errors: List[str], warnings: List[str]) -> None:
    if proof.sender_upi_id:
        if not UPI_ID_RE.match(proof.sender_upi_id):
            errors.append(f"Invalid UPI ID format: {proof.sender_upi_id}")
        elif len(proof.sender_upi_id) > 50:
            warnings.append("UPI ID is unusually long")
    if not proof.upi_app_name:
        warnings.append("UPI app name not specified")


def _check_bank_transfer(proof: PaymentProof, errors: List[str], warnings: List[str]) -> None:
    if not proof.bank_name or len(proof.bank_name.strip()) < 2:
        errors.append("Bank name is required")

    account_number = (proof.account_number or "").replace(" ", "")
    if not account_number:
        errors.append("Account number is required")
    elif proof.currency == "NGN" and not NGN_ACCOUNT_RE.match(account_number):
        errors.append("Nigerian account numbers must be 10 digits")

    account_name = (proof.account_name or "").strip()
    if len(account_name) < 3:
        errors.append("Account holder name must be at least 3 characters")
    elif len(account_name) > 100:
        warnings.append("Account name is unusually long")


def first_error(exc: ValidationError) -> str:
    """Human-readable message of the first pydantic error, without the 'Value error, ' prefix."""
    errors = exc.errors()
    if not errors:
        return str(exc)
    msg = errors[0].get("msg", "")
    return msg.removeprefix("Value error, ")
