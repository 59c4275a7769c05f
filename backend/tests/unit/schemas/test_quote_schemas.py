"""
Unit Tests for Quote Schemas
Tests for: field validation, normalisation, aliases
"""
import pytest
from pydantic import ValidationError

from app.schemas.quote import QuoteSubmitRequest, QuoteUpdate, QuoteStatusEnum


def valid_payload(**overrides) -> dict:
    data = {
        "name": "Ravi Kumar",
        "phone": "+91 9876543210",
        "email": "ravi@example.com",
    }
    data.update(overrides)
    return data


class TestQuoteSubmitRequest:
    """Public form payload"""

    def test_minimal_payload(self):
        """Test that name, phone and email are enough"""
        quote = QuoteSubmitRequest(**valid_payload())

        assert quote.company is None

    def test_email_lowercased(self):
        """Test that email case cannot be used to dodge duplicate checks"""
        quote = QuoteSubmitRequest(**valid_payload(email="Ravi.Kumar@Example.COM"))

        assert quote.email == "ravi.kumar@example.com"

    def test_camel_case_aliases(self):
        """Test that the website's camelCase field names are accepted"""
        quote = QuoteSubmitRequest(**valid_payload(
            productName="MCB 32A", projectDetails="Office fit-out"
        ))

        assert quote.product_name == "MCB 32A"
        assert quote.project_details == "Office fit-out"

    def test_blank_optionals_become_none(self):
        """Test that empty optional inputs are stored as NULL"""
        quote = QuoteSubmitRequest(**valid_payload(company="   ", whatsapp=""))

        assert quote.company is None
        assert quote.whatsapp is None

    def test_whitespace_stripped(self):
        """Test that leading/trailing whitespace is removed"""
        quote = QuoteSubmitRequest(**valid_payload(name="  Ravi Kumar  "))

        assert quote.name == "Ravi Kumar"

    @pytest.mark.parametrize("phone", ["+91 9876543210", "(123) 456-7890", "0300 1234567", "555-1111"])
    def test_phone_formats_accepted(self, phone):
        """Test common international phone formats"""
        assert QuoteSubmitRequest(**valid_payload(phone=phone)).phone == phone

    @pytest.mark.parametrize("phone", ["call me", "12ab34", "+1 (234) 567 8900 ext 5"])
    def test_invalid_phone_rejected(self, phone):
        """Test that non-numeric phones fail validation"""
        with pytest.raises(ValidationError):
            QuoteSubmitRequest(**valid_payload(phone=phone))

    def test_name_too_short(self):
        """Test the two-character minimum for names"""
        with pytest.raises(ValidationError):
            QuoteSubmitRequest(**valid_payload(name="R"))

    def test_details_too_long(self):
        """Test the project details length cap"""
        with pytest.raises(ValidationError):
            QuoteSubmitRequest(**valid_payload(project_details="x" * 1001))

    def test_invalid_email(self):
        """Test that malformed emails are rejected"""
        with pytest.raises(ValidationError):
            QuoteSubmitRequest(**valid_payload(email="not-an-email"))

    def test_anti_bot_keys_ignored(self):
        """Test that decoy, timing and captcha keys are not customer fields"""
        quote = QuoteSubmitRequest(**valid_payload(
            honeypot=1, website=["x"], formStartTs="soon", captchaToken="tok"
        ))

        dumped = quote.model_dump()
        assert not {"honeypot", "website", "form_start_ts", "captcha_token"} & set(dumped)


class TestQuoteUpdate:

    def test_status_only(self):
        update = QuoteUpdate(status="quoted")

        assert update.status == QuoteStatusEnum.QUOTED
        assert update.model_dump(exclude_unset=True) == {"status": QuoteStatusEnum.QUOTED}

    def test_unknown_status_rejected(self):
        """Test that only workflow statuses are accepted"""
        with pytest.raises(ValidationError):
            QuoteUpdate(status="archived")
