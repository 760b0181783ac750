"""
Unit tests: input validation (validators.py).

Covers the pydantic models for text typed into the bot and the payment proof
rule set:
  - TeamNameInput / PlayerIdsInput (registration DETAILS step)
  - DepositAmountInput (currency minimums)
  - validate_payment_proof: reference length, UPI and bank-transfer rules,
    evidence and NGN bank statement threshold, warnings

All tests are synchronous; no database session required.
"""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from arena.validators import (
    DepositAmountInput,
    PaymentMethod,
    PaymentProof,
    PlayerIdsInput,
    TeamNameInput,
    first_error,
    validate_payment_proof,
)


def _upi_proof(**kwargs) -> PaymentProof:
    defaults = dict(
        currency="INR",
        amount=500.0,
        payment_method=PaymentMethod.UPI,
        reference="412345678901",
        sender_upi_id="alpha@okaxis",
        upi_app_name="GPay",
    )
    defaults.update(kwargs)
    return PaymentProof(**defaults)


def _bank_proof(**kwargs) -> PaymentProof:
    defaults = dict(
        currency="NGN",
        amount=20_000.0,
        payment_method=PaymentMethod.BANK_TRANSFER,
        reference="TRF-20231114-001",
        bank_name="GTBank",
        account_number="0123456789",
        account_name="Ada Obi",
    )
    defaults.update(kwargs)
    return PaymentProof(**defaults)


# ─────────────────────────── Team name ────────────────────────────────────────

class TestTeamNameInput:
    def test_valid_name(self) -> None:
        assert TeamNameInput(team_name="Alpha Squad").team_name == "Alpha Squad"

    def test_whitespace_collapsed(self) -> None:
        assert TeamNameInput(team_name="  Alpha   Squad ").team_name == "Alpha Squad"

    def test_punctuation_allowed(self) -> None:
        assert TeamNameInput(team_name="Team-X's v.2").team_name == "Team-X's v.2"

    def test_blank_raises_required(self) -> None:
        with pytest.raises(ValidationError) as exc:
            TeamNameInput(team_name="   ")
        assert first_error(exc.value) == "Team name is required"

    def test_single_char_raises(self) -> None:
        with pytest.raises(ValidationError):
            TeamNameInput(team_name="A")

    def test_too_long_raises(self) -> None:
        with pytest.raises(ValidationError):
            TeamNameInput(team_name="A" * 51)

    def test_special_chars_raise(self) -> None:
        with pytest.raises(ValidationError):
            TeamNameInput(team_name="<b>Alpha</b>")


# ─────────────────────────── Player IDs ───────────────────────────────────────

class TestPlayerIdsInput:
    def test_comma_separated(self) -> None:
        p = PlayerIdsInput(player_ids="p1, p2 ,p3")
        assert p.player_ids == ("p1", "p2", "p3")

    def test_newline_separated(self) -> None:
        p = PlayerIdsInput(player_ids="p1\np2\n\n")
        assert p.player_ids == ("p1", "p2")

    def test_empty_raises(self) -> None:
        with pytest.raises(ValidationError) as exc:
            PlayerIdsInput(player_ids=" , ,")
        assert first_error(exc.value) == "All player in-game IDs are required"

    def test_duplicates_raise(self) -> None:
        with pytest.raises(ValidationError):
            PlayerIdsInput(player_ids="p1,p1")

    def test_too_long_id_raises(self) -> None:
        with pytest.raises(ValidationError):
            PlayerIdsInput(player_ids="x" * 41)

    def test_team_size_exceeded(self) -> None:
        p = PlayerIdsInput(player_ids="p1,p2,p3", team_size=2)
        with pytest.raises(ValueError, match="at most 2 player"):
            p.check_team_size()

    def test_team_size_ok(self) -> None:
        PlayerIdsInput(player_ids="p1,p2", team_size=2).check_team_size()


# ─────────────────────────── Deposit amount ───────────────────────────────────

class TestDepositAmountInput:
    def test_valid_amount_rounded(self) -> None:
        d = DepositAmountInput(amount=150.456, currency="inr")
        assert d.amount == 150.46
        assert d.currency == "INR"

    def test_string_amount_coerced(self) -> None:
        assert DepositAmountInput(amount="500", currency="INR").amount == 500.0

    @pytest.mark.parametrize("amount", [0, -5])
    def test_non_positive_raises(self, amount: float) -> None:
        with pytest.raises(ValidationError) as exc:
            DepositAmountInput(amount=amount)
        assert first_error(exc.value) == "Amount must be greater than 0"

    def test_below_ngn_minimum_raises(self) -> None:
        with pytest.raises(ValidationError) as exc:
            DepositAmountInput(amount=99, currency="NGN")
        assert first_error(exc.value) == "Minimum deposit is ₦100"

    def test_unsupported_currency_raises(self) -> None:
        with pytest.raises(ValidationError) as exc:
            DepositAmountInput(amount=100, currency="XYZ")
        assert "Unsupported currency" in first_error(exc.value)


# ─────────────────────────── Payment proof: reference ─────────────────────────

class TestProofReference:
    def test_reference_too_short_fails(self) -> None:
        result = validate_payment_proof(_upi_proof(reference="12"), has_evidence=True)
        assert not result.is_valid
        assert "UPI Transaction ID appears too short (minimum 3 characters)" in result.errors

    def test_five_char_reference_passes_reference_check(self) -> None:
        result = validate_payment_proof(_upi_proof(reference="12345"), has_evidence=True)
        assert not any("Transaction ID" in e for e in result.errors)
        assert result.is_valid

    def test_unusual_upi_reference_is_only_a_warning(self) -> None:
        result = validate_payment_proof(_upi_proof(reference="12345"), has_evidence=True)
        assert any("format appears unusual" in w for w in result.warnings)

    def test_blank_reference_required(self) -> None:
        result = validate_payment_proof(_upi_proof(reference="   "), has_evidence=True)
        assert "UPI Transaction ID is required" in result.errors

    def test_bank_reference_label(self) -> None:
        result = validate_payment_proof(_bank_proof(reference="ab"), has_evidence=True)
        assert "Bank transfer reference appears too short (minimum 3 characters)" in result.errors


# ─────────────────────────── Payment proof: amount / method ───────────────────

class TestProofAmount:
    def test_zero_amount_fails(self) -> None:
        result = validate_payment_proof(_upi_proof(amount=0), has_evidence=True)
        assert "Amount must be greater than 0" in result.errors

    def test_below_minimum_fails(self) -> None:
        result = validate_payment_proof(_upi_proof(amount=5), has_evidence=True)
        assert "Minimum deposit is ₹10" in result.errors

    def test_unsupported_currency_fails(self) -> None:
        result = validate_payment_proof(_upi_proof(currency="xyz"), has_evidence=True)
        assert "Unsupported currency: XYZ" in result.errors

    def test_unknown_method_fails(self) -> None:
        result = validate_payment_proof(_upi_proof(payment_method="crypto"), has_evidence=True)
        assert "Unsupported payment method: crypto" in result.errors

    def test_large_amount_warns(self) -> None:
        result = validate_payment_proof(_upi_proof(amount=150_000), has_evidence=True)
        assert result.is_valid
        assert any("Large amount" in w for w in result.warnings)


class TestProofUpi:
    def test_invalid_sender_upi_fails(self) -> None:
        result = validate_payment_proof(_upi_proof(sender_upi_id="not-an-id"), has_evidence=True)
        assert "Invalid UPI ID format: not-an-id" in result.errors

    def test_sender_upi_optional(self) -> None:
        assert validate_payment_proof(_upi_proof(sender_upi_id=None), has_evidence=True).is_valid

    def test_missing_app_name_warns(self) -> None:
        result = validate_payment_proof(_upi_proof(upi_app_name=None), has_evidence=True)
        assert "UPI app name not specified" in result.warnings

    def test_invalid_email_fails(self) -> None:
        result = validate_payment_proof(_upi_proof(payer_email="nope"), has_evidence=True)
        assert any(e.startswith("Invalid email format") for e in result.errors)


class TestProofBankTransfer:
    def test_valid(self) -> None:
        assert validate_payment_proof(_bank_proof(), has_evidence=True).is_valid

    def test_missing_bank_name(self) -> None:
        result = validate_payment_proof(_bank_proof(bank_name=None), has_evidence=True)
        assert "Bank name is required" in result.errors

    def test_missing_account_number(self) -> None:
        result = validate_payment_proof(_bank_proof(account_number=""), has_evidence=True)
        assert "Account number is required" in result.errors

    def test_ngn_account_must_be_ten_digits(self) -> None:
        result = validate_payment_proof(_bank_proof(account_number="12345"), has_evidence=True)
        assert "Nigerian account numbers must be 10 digits" in result.errors

    def test_account_number_spaces_ignored(self) -> None:
        assert validate_payment_proof(_bank_proof(account_number="01234 56789"), has_evidence=True).is_valid

    def test_short_account_name(self) -> None:
        result = validate_payment_proof(_bank_proof(account_name="Al"), has_evidence=True)
        assert "Account holder name must be at least 3 characters" in result.errors


# ─────────────────────────── Payment proof: documents ─────────────────────────

class TestProofDocuments:
    def test_screenshot_required(self) -> None:
        result = validate_payment_proof(_upi_proof())
        assert "Payment screenshot is required" in result.errors

    def test_screenshot_url_counts_as_evidence(self) -> None:
        assert validate_payment_proof(_upi_proof(screenshot_url="https://cdn/x.png")).is_valid

    def test_ngn_above_threshold_requires_statement(self) -> None:
        proof = _bank_proof(amount=50_001)
        assert proof.requires_bank_statement
        result = validate_payment_proof(proof, has_evidence=True)
        assert "Bank statement required for NGN amounts above ₦50,000" in result.errors

    def test_ngn_above_threshold_with_statement_passes(self) -> None:
        result = validate_payment_proof(_bank_proof(amount=60_000), has_evidence=True, has_bank_statement=True)
        assert result.is_valid

    def test_ngn_at_threshold_needs_no_statement(self) -> None:
        proof = _bank_proof(amount=50_000)
        assert not proof.requires_bank_statement
        assert validate_payment_proof(proof, has_evidence=True).is_valid

    def test_inr_never_requires_statement(self) -> None:
        assert not _upi_proof(amount=90_000).requires_bank_statement

    def test_missing_receipt_is_warning(self) -> None:
        result = validate_payment_proof(_upi_proof(), has_evidence=True)
        assert result.is_valid
        assert any("receipt" in w for w in result.warnings)
        assert validate_payment_proof(_upi_proof(), has_evidence=True, has_receipt=True).risk_score < result.risk_score


class TestPaymentProofModel:
    def test_request_id_generated_once(self) -> None:
        proof = _upi_proof()
        copy = proof.model_copy(update={"reference": "999999999999"})
        assert proof.request_id == copy.request_id
        assert _upi_proof().request_id != proof.request_id

    def test_details_only_set_fields(self) -> None:
        details = _upi_proof(upi_app_name=None).details()
        assert details == {"sender_upi_id": "alpha@okaxis"}

    def test_round_trips_through_fsm_dict(self) -> None:
        proof = _bank_proof()
        assert PaymentProof.model_validate(proof.model_dump()) == proof
