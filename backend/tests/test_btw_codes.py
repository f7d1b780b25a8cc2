"""
Unit Tests for the BTW code rules

Tests cover:
- VAT amount per code (21%, 9%, 0%, no code)
- Base amount from an amount including VAT
- Booking rule validation: debet/credit exclusivity, unknown codes,
  amount mismatch warnings and side/account type warnings
- BTW code suggestion per account type
- Code labels

These tests are independent of database and can run without DB dependencies.
"""
import pytest
from decimal import Decimal

from app.services.btw.codes import (
    BTW_CODES,
    calculate_btw_amount,
    calculate_base_from_total,
    format_btw_code,
    format_euro,
    is_valid_btw_code,
    round_cents,
    suggest_btw_code,
    validate_boekingsregel,
)


class TestBtwCodeTable:
    """Tests for the static code table."""

    def test_all_aangifte_codes_present(self):
        """Every code used on the aangifte is in the table."""
        expected = {"1a", "1b", "1c", "1d", "1e", "2a", "3a", "3b", "4a", "4b", "5b", "5b-laag", "geen"}
        assert set(BTW_CODES) == expected

    def test_rates(self):
        assert BTW_CODES["1a"].percentage == Decimal("21.0")
        assert BTW_CODES["1b"].percentage == Decimal("9.0")
        assert BTW_CODES["5b-laag"].percentage == Decimal("9.0")
        assert BTW_CODES["2a"].percentage == Decimal("0.0")

    def test_low_voorbelasting_reports_on_5b(self):
        """5b-laag is reported under rubriek 5b."""
        assert BTW_CODES["5b-laag"].rubriek == "5b"

    def test_is_valid_btw_code(self):
        assert is_valid_btw_code("1a")
        assert not is_valid_btw_code("6z")
        assert not is_valid_btw_code(None)
        assert not is_valid_btw_code("")


class TestBtwAmount:
    """Tests for VAT amount calculation."""

    def test_21_percent_of_100(self):
        """21% of €100 is €21.00."""
        assert calculate_btw_amount(Decimal("100"), "1a") == Decimal("21.00")

    def test_9_percent(self):
        assert calculate_btw_amount(Decimal("100.00"), "1b") == Decimal("9.00")

    def test_voorbelasting_uses_same_rate(self):
        assert calculate_btw_amount(Decimal("250.00"), "5b") == Decimal("52.50")

    def test_rounding_half_up(self):
        """0.005 rounds up to the next cent."""
        # 99.99 * 0.21 = 20.9979
        assert calculate_btw_amount(Decimal("99.99"), "1a") == Decimal("21.00")
        # 0.50 * 0.09 = 0.045
        assert calculate_btw_amount(Decimal("0.50"), "1b") == Decimal("0.05")

    def test_zero_rate_codes(self):
        assert calculate_btw_amount(Decimal("1000"), "2a") == Decimal("0.00")
        assert calculate_btw_amount(Decimal("1000"), "3b") == Decimal("0.00")

    def test_no_code_geen_and_unknown(self):
        """Missing, 'geen', '0' and unknown codes give no VAT."""
        assert calculate_btw_amount(Decimal("100"), None) == Decimal("0.00")
        assert calculate_btw_amount(Decimal("100"), "geen") == Decimal("0.00")
        assert calculate_btw_amount(Decimal("100"), "0") == Decimal("0.00")
        assert calculate_btw_amount(Decimal("100"), "xx") == Decimal("0.00")

    def test_accepts_plain_numbers(self):
        assert calculate_btw_amount(100, "1a") == Decimal("21.00")
        assert calculate_btw_amount("100", "1a") == Decimal("21.00")

    def test_base_from_total(self):
        assert calculate_base_from_total(Decimal("121.00"), "1a") == Decimal("100.00")
        assert calculate_base_from_total(Decimal("109.00"), "5b-laag") == Decimal("100.00")

    def test_base_from_total_without_vat(self):
        assert calculate_base_from_total(Decimal("50.00"), "geen") == Decimal("50.00")
        assert calculate_base_from_total(Decimal("50.00"), None) == Decimal("50.00")

    def test_round_cents_and_format(self):
        assert round_cents("2.675") == Decimal("2.68")
        assert format_euro(Decimal("21")) == "€21.00"


class TestValidateBoekingsregel:
    """Tests for booking rule validation."""

    def test_valid_sales_rule(self):
        result = validate_boekingsregel(0, Decimal("100"), "1a", Decimal("21.00"), "omzet")

        assert result.is_valid
        assert result.errors == []
        assert result.warnings == []

    def test_debet_and_credit_is_error(self):
        result = validate_boekingsregel(Decimal("10"), Decimal("10"))

        assert not result.is_valid
        assert "Een boekingsregel kan niet zowel debet als credit hebben" in result.errors

    def test_neither_debet_nor_credit_is_error(self):
        result = validate_boekingsregel(0, 0)

        assert not result.is_valid
        assert "Een boekingsregel moet debet of credit hebben" in result.errors

    def test_unknown_code_is_error(self):
        result = validate_boekingsregel(Decimal("100"), 0, "9z")

        assert not result.is_valid
        assert "Ongeldige BTW-code: 9z" in result.errors

    def test_amount_mismatch_is_warning(self):
        """A wrong VAT amount does not block saving."""
        result = validate_boekingsregel(0, Decimal("100"), "1a", Decimal("20.00"))

        assert result.is_valid
        assert len(result.warnings) == 1
        assert "Verwacht: €21.00, ingevoerd: €20.00" in result.warnings[0]

    def test_amount_check_can_be_skipped(self):
        """Invoice cost lines carry the code but book their BTW elsewhere."""
        result = validate_boekingsregel(
            Decimal("100"), 0, "5b", Decimal("0"), "kosten", check_btw_amount=False
        )

        assert result.warnings == []

    def test_one_cent_difference_accepted(self):
        result = validate_boekingsregel(0, Decimal("100"), "1a", Decimal("21.01"))

        assert result.warnings == []

    def test_geen_code_skips_amount_check(self):
        result = validate_boekingsregel(Decimal("100"), 0, "geen", Decimal("0"))

        assert result.is_valid
        assert result.warnings == []

    def test_voorbelasting_on_omzet_account_warns(self):
        result = validate_boekingsregel(Decimal("100"), 0, "5b", Decimal("21"), "omzet")

        assert "Omzet rekening met voorbelasting code - controleer of dit correct is" in result.warnings

    def test_verschuldigd_on_kosten_account_warns(self):
        result = validate_boekingsregel(0, Decimal("100"), "1a", Decimal("21"), "kosten")

        assert "Kosten rekening met verschuldigd BTW code - controleer of dit correct is" in result.warnings

    def test_voorbelasting_on_credit_side_warns(self):
        result = validate_boekingsregel(0, Decimal("100"), "5b", Decimal("21"))

        assert "Voorbelasting staat meestal op de debet kant (inkopen/kosten)" in result.warnings

    def test_verschuldigd_on_debet_side_warns(self):
        result = validate_boekingsregel(Decimal("100"), 0, "1a", Decimal("21"))

        assert "Verschuldigd BTW staat meestal op de credit kant (omzet)" in result.warnings

    def test_to_dict(self):
        result = validate_boekingsregel(0, 0)
        data = result.to_dict()

        assert data["is_valid"] is False
        assert data["errors"] == result.errors
        assert data["warnings"] == []


class TestSuggestBtwCode:
    """Tests for code suggestion per account type."""

    @pytest.mark.parametrize("account_type,expected", [
        ("omzet", "1a"),
        ("kosten", "5b"),
        ("activa", "geen"),
        ("passiva", "geen"),
    ])
    def test_default_per_account_type(self, account_type, expected):
        assert suggest_btw_code(account_type) == expected

    def test_reduced_rate_keywords(self):
        """Food, books, newspapers and medicine point to the 9% rate."""
        assert suggest_btw_code("omzet", "Verkoop boeken") == "1b"
        assert suggest_btw_code("kosten", "Inkoop voedingsmiddelen") == "5b-laag"
        assert suggest_btw_code("kosten", "Abonnement KRANT") == "5b-laag"

    def test_unknown_or_missing_type(self):
        assert suggest_btw_code(None) is None
        assert suggest_btw_code("onbekend") is None


class TestFormatBtwCode:
    """Tests for code labels."""

    def test_label(self):
        assert format_btw_code("1a") == "1a - Leveringen/diensten belast met hoog tarief (21%)"

    def test_zero_rate_label(self):
        assert format_btw_code("2a") == "2a - Leveringen naar landen buiten de EU (0%)"

    def test_no_code(self):
        assert format_btw_code(None) == "Geen BTW"

    def test_unknown_code_is_returned_as_is(self):
        assert format_btw_code("zz") == "zz"
