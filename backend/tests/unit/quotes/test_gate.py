"""
Unit Tests for the quote intake gate
Tests for: layer order, raw-body signals, captcha, honeypot, form timing, rate limit,
quota, duplicate suppression
"""
import pytest
from datetime import timedelta
from unittest.mock import AsyncMock

from app.core.exceptions import CaptchaProviderError
from app.core.rate_limiter import InMemoryRateLimitStore
from app.modules.quotes.gate import IntakeGate, QuoteGateConfig, epoch_ms
from app.modules.quotes.repository import QuoteRepository
from app.modules.quotes.results import (
    BotSignals,
    RejectionLayer,
    RejectedBot,
    RejectedCaptcha,
    RejectedDuplicate,
    RejectedQuotaExceeded,
    RejectedRateLimited,
)
from app.models.quote_request import QuoteRequest


def make_gate(config: QuoteGateConfig = None, store: InMemoryRateLimitStore = None, captcha=None) -> IntakeGate:
    return IntakeGate(store or InMemoryRateLimitStore(), QuoteRepository(), config or QuoteGateConfig(), captcha=captcha)


async def store_quote(db, email: str, phone: str, created_at) -> QuoteRequest:
    quote = QuoteRequest(name="Existing Buyer", email=email, phone=phone, created_at=created_at)
    db.add(quote)
    await db.commit()
    return quote


class TestHoneypot:
    """Decoy fields must be empty"""

    def test_empty_decoys_pass(self, submission_factory):
        """Test that absent or empty decoy fields are accepted"""
        gate = make_gate()
        assert gate.check_honeypot(submission_factory().signals) is None
        assert gate.check_honeypot(submission_factory(decoy_fields={"honeypot": "", "website": None}).signals) is None

    def test_filled_honeypot_rejected(self, submission_factory):
        """Test that any content in a decoy field marks the request as a bot"""
        gate = make_gate()
        result = gate.check_honeypot(submission_factory(decoy_fields={"honeypot": "x"}).signals)

        assert isinstance(result, RejectedBot)
        assert result.layer == RejectionLayer.HONEYPOT
        assert result.message == "Invalid request"

    def test_second_decoy_field_checked(self, submission_factory):
        """Test that every configured decoy field is inspected"""
        gate = make_gate()
        result = gate.check_honeypot(submission_factory(decoy_fields={"website": "http://spam.example"}).signals)

        assert isinstance(result, RejectedBot)

    def test_unconfigured_field_ignored(self, submission_factory):
        """Test that only configured field names count as decoys"""
        gate = make_gate(QuoteGateConfig(honeypot_fields=("honeypot",)))
        assert gate.check_honeypot(submission_factory(decoy_fields={"website": "filled"}).signals) is None


class TestFormTiming:
    """Elapsed time between form render and submission"""

    def _signals(self, submission_factory, metadata, elapsed_ms):
        return submission_factory(form_started_at_ms=epoch_ms(metadata.received_at) - elapsed_ms).signals

    def test_exactly_minimum_accepted(self, submission_factory, metadata_factory):
        """Test that elapsed == 1.5s is allowed"""
        metadata = metadata_factory()
        submission = self._signals(submission_factory, metadata, 1500)

        assert make_gate().check_timing(submission, metadata) is None

    def test_just_below_minimum_rejected(self, submission_factory, metadata_factory):
        """Test that elapsed of 1.499s is too fast"""
        metadata = metadata_factory()
        result = make_gate().check_timing(self._signals(submission_factory, metadata, 1499), metadata)

        assert isinstance(result, RejectedBot)
        assert result.layer == RejectionLayer.TOO_FAST

    def test_exactly_maximum_accepted(self, submission_factory, metadata_factory):
        """Test that a form exactly one hour old is allowed"""
        metadata = metadata_factory()
        submission = self._signals(submission_factory, metadata, 3_600_000)

        assert make_gate().check_timing(submission, metadata) is None

    def test_stale_form_rejected(self, submission_factory, metadata_factory):
        """Test that a form older than one hour is rejected"""
        metadata = metadata_factory()
        result = make_gate().check_timing(self._signals(submission_factory, metadata, 3_600_001), metadata)

        assert isinstance(result, RejectedBot)
        assert result.layer == RejectionLayer.STALE

    def test_negative_elapsed_allowed(self, submission_factory, metadata_factory):
        """Test that a client clock running ahead is not treated as a bot"""
        metadata = metadata_factory()
        submission = self._signals(submission_factory, metadata, -5000)

        assert make_gate().check_timing(submission, metadata) is None

    def test_missing_timestamp_allowed_by_default(self, submission_factory, metadata_factory):
        """Test that older clients without a timestamp can still submit"""
        assert make_gate().check_timing(submission_factory().signals, metadata_factory()) is None

    def test_missing_timestamp_rejected_when_required(self, submission_factory, metadata_factory):
        """Test strict mode for the form timestamp"""
        gate = make_gate(QuoteGateConfig(require_form_timestamp=True))
        result = gate.check_timing(submission_factory().signals, metadata_factory())

        assert isinstance(result, RejectedBot)
        assert result.layer == RejectionLayer.MISSING_TIMESTAMP


class TestGateOrder:
    """Layers run in a fixed order and stop at the first rejection"""

    @pytest.mark.asyncio
    async def test_rate_limit_checked_before_honeypot(self, db_session, submission_factory, metadata_factory):
        """Test that a rate-limited bot sees the rate limit rejection"""
        gate = make_gate(QuoteGateConfig(rate_limit_max=1))
        metadata = metadata_factory()
        bot = submission_factory(decoy_fields={"honeypot": "spam"})

        first = await gate.evaluate(db_session, bot, metadata)
        second = await gate.evaluate(db_session, bot, metadata)

        assert isinstance(first, RejectedBot)
        assert isinstance(second, RejectedRateLimited)

    @pytest.mark.asyncio
    async def test_rejected_requests_count_toward_rate_limit(self, db_session, submission_factory, metadata_factory):
        """Test that the counter increments for every request, not only accepted ones"""
        gate = make_gate()
        metadata = metadata_factory()

        results = [
            await gate.evaluate(db_session, submission_factory(decoy_fields={"website": "x"}), metadata)
            for _ in range(6)
        ]

        assert all(isinstance(r, RejectedBot) for r in results[:5])
        assert isinstance(results[5], RejectedRateLimited)
        assert results[5].message == "Too many quote submissions. Please try again later."

    @pytest.mark.asyncio
    async def test_honeypot_checked_before_duplicate(self, db_session, submission_factory, metadata_factory):
        """Test that a bot repeating a stored quote gets the bot rejection"""
        metadata = metadata_factory()
        await store_quote(db_session, "buyer@example.com", "+1-234-567-8900", metadata.received_at)

        result = await make_gate().evaluate(
            db_session, submission_factory(decoy_fields={"honeypot": "x"}), metadata
        )

        assert isinstance(result, RejectedBot)

    @pytest.mark.asyncio
    async def test_quota_checked_before_duplicate(self, db_session, submission_factory, metadata_factory):
        """Test that an exhausted quota wins over duplicate detection"""
        metadata = metadata_factory()
        for i in range(5):
            await store_quote(db_session, "buyer@example.com", f"+1-234-567-890{i}", metadata.received_at)

        result = await make_gate().evaluate(
            db_session, submission_factory(phone="+1-234-567-8900"), metadata
        )

        assert isinstance(result, RejectedQuotaExceeded)

    @pytest.mark.asyncio
    async def test_clean_submission_passes(self, db_session, submission_factory, metadata_factory):
        """Test that a first-time human submission passes every layer"""
        metadata = metadata_factory()
        submission = submission_factory(form_started_at_ms=epoch_ms(metadata.received_at) - 30_000)

        assert await make_gate().evaluate(db_session, submission, metadata) is None


class TestQuotaAndDuplicate:
    """Database-backed layers"""

    @pytest.mark.asyncio
    async def test_quota_counts_only_current_day(self, db_session, submission_factory, metadata_factory):
        """Test that yesterday's quotes do not use up today's quota"""
        metadata = metadata_factory()
        yesterday = metadata.received_at - timedelta(days=1)
        for i in range(5):
            await store_quote(db_session, "buyer@example.com", f"+1-555-000-000{i}", yesterday)

        result = await make_gate().check_daily_quota(db_session, submission_factory(), metadata)

        assert result is None

    @pytest.mark.asyncio
    async def test_quota_is_per_email(self, db_session, submission_factory, metadata_factory):
        """Test that other customers' quotes do not count"""
        metadata = metadata_factory()
        for i in range(5):
            await store_quote(db_session, f"other{i}@example.com", "+1-555-000-0000", metadata.received_at)

        assert await make_gate().check_daily_quota(db_session, submission_factory(), metadata) is None

    @pytest.mark.asyncio
    async def test_recent_duplicate_rejected(self, db_session, submission_factory, metadata_factory):
        """Test that the same email and phone five minutes later is a duplicate"""
        metadata = metadata_factory()
        await store_quote(db_session, "buyer@example.com", "+1-234-567-8900",
                          metadata.received_at - timedelta(minutes=5))

        result = await make_gate().check_duplicate(db_session, submission_factory(), metadata)

        assert isinstance(result, RejectedDuplicate)
        assert result.layer == RejectionLayer.DUPLICATE
        assert result.message == "We already received your request. Please wait for our response."

    @pytest.mark.asyncio
    async def test_same_email_different_phone_not_duplicate(self, db_session, submission_factory, metadata_factory):
        """Test that duplicates are keyed on both email and phone"""
        metadata = metadata_factory()
        await store_quote(db_session, "buyer@example.com", "+1-999-999-9999", metadata.received_at)

        assert await make_gate().check_duplicate(db_session, submission_factory(), metadata) is None

    @pytest.mark.asyncio
    async def test_previous_day_not_duplicate(self, db_session, submission_factory, metadata_factory):
        """Test that a same-pair quote from yesterday (outside the window) is not a duplicate"""
        metadata = metadata_factory()
        await store_quote(db_session, "buyer@example.com", "+1-234-567-8900",
                          metadata.received_at - timedelta(days=1))

        assert await make_gate().check_duplicate(db_session, submission_factory(), metadata) is None


class TestRejectionLogging:
    """Every rejection is a security event"""

    @pytest.mark.asyncio
    async def test_rejection_logged_with_layer(self, db_session, submission_factory, metadata_factory, caplog):
        """Test that the log record carries ip, email and layer"""
        metadata = metadata_factory(ip_address="198.51.100.7")

        with caplog.at_level("WARNING", logger="supplier"):
            await make_gate().evaluate(db_session, submission_factory(decoy_fields={"honeypot": "x"}), metadata)

        records = [r for r in caplog.records if getattr(r, "event_type", None) == "security"]
        assert len(records) == 1
        assert records[0].layer == "honeypot"
        assert records[0].client_ip == "198.51.100.7"
        assert records[0].email == "buyer@example.com"


class TestBotSignals:
    """Screening inputs read from the raw request body"""

    def test_reads_camel_case_keys(self):
        signals = BotSignals.from_body(
            {"honeypot": "", "website": None, "formStartTs": 1770112800000, "captchaToken": " tok "},
            ("honeypot", "website"),
        )

        assert signals.decoy_fields == {"honeypot": "", "website": None}
        assert signals.form_started_at_ms == 1770112800000
        assert signals.captcha_token == "tok"

    def test_numeric_string_timestamp(self):
        """Test that a timestamp sent as a string is still timed"""
        signals = BotSignals.from_body({"formStartTs": "1770112800000"}, ())

        assert signals.form_started_at_ms == 1770112800000

    @pytest.mark.parametrize("raw", ["soon", True, [1], {"ms": 1}, "nan"])
    def test_unusable_timestamp_ignored(self, raw):
        """Test that a timestamp that is not a finite number counts as missing"""
        assert BotSignals.from_body({"formStartTs": raw}, ()).form_started_at_ms is None

    def test_decoy_keeps_raw_type(self):
        """Test that non-string decoy values reach the honeypot check as sent"""
        signals = BotSignals.from_body({"honeypot": 1}, ("honeypot",))

        assert signals.decoy_fields == {"honeypot": 1}

    @pytest.mark.parametrize("body", [None, ["name"], "text"])
    def test_non_object_body(self, body):
        """Test that a body that is not a JSON object yields empty signals"""
        assert BotSignals.from_body(body, ("honeypot",)) == BotSignals()


class TestHoneypotValueTypes:

    @pytest.mark.parametrize("value", [1, 0, True, False, ["x"], {"a": 1}])
    def test_non_string_decoy_rejected(self, value):
        """Test that any non-blank decoy value is a bot, whatever its JSON type"""
        result = make_gate().check_honeypot(BotSignals(decoy_fields={"honeypot": value}))

        assert isinstance(result, RejectedBot)

    def test_whitespace_decoy_accepted(self):
        assert make_gate().check_honeypot(BotSignals(decoy_fields={"website": "   "})) is None


class TestCaptcha:
    """Optional captcha layer between the rate limit and the honeypot"""

    @pytest.mark.asyncio
    async def test_disabled_without_verifier(self, metadata_factory):
        """Test that no captcha is required when none is configured"""
        assert await make_gate().check_captcha(BotSignals(), metadata_factory()) is None

    @pytest.mark.asyncio
    async def test_missing_token_rejected(self, metadata_factory):
        verifier = AsyncMock()
        gate = make_gate(captcha=verifier)

        result = await gate.check_captcha(BotSignals(), metadata_factory())

        assert isinstance(result, RejectedCaptcha)
        assert result.layer == RejectionLayer.CAPTCHA_MISSING
        assert result.message == "Captcha verification required"
        verifier.verify.assert_not_called()

    @pytest.mark.asyncio
    async def test_refused_token_rejected(self, metadata_factory):
        verifier = AsyncMock()
        verifier.verify.return_value = False
        metadata = metadata_factory(ip_address="198.51.100.20")

        result = await make_gate(captcha=verifier).check_captcha(BotSignals(captcha_token="bad"), metadata)

        assert isinstance(result, RejectedCaptcha)
        assert result.layer == RejectionLayer.CAPTCHA_FAILED
        assert result.message == "Captcha verification failed"
        verifier.verify.assert_awaited_once_with("bad", "198.51.100.20")

    @pytest.mark.asyncio
    async def test_valid_token_passes(self, metadata_factory):
        verifier = AsyncMock()
        verifier.verify.return_value = True

        assert await make_gate(captcha=verifier).check_captcha(
            BotSignals(captcha_token="good"), metadata_factory()
        ) is None

    @pytest.mark.asyncio
    async def test_provider_error_lets_request_continue(self, metadata_factory, caplog):
        """Test that a captcha provider outage is logged and the later layers still decide"""
        verifier = AsyncMock()
        verifier.verify.side_effect = CaptchaProviderError("timed out", "turnstile")

        with caplog.at_level("ERROR", logger="supplier"):
            result = await make_gate(captcha=verifier).check_captcha(
                BotSignals(captcha_token="tok"), metadata_factory()
            )

        assert result is None
        assert any("captcha_verify" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_rate_limit_checked_before_captcha(self, metadata_factory):
        """Test that an IP over its limit is refused without calling the provider"""
        verifier = AsyncMock()
        gate = make_gate(QuoteGateConfig(rate_limit_max=0), captcha=verifier)

        result = await gate.screen(BotSignals(captcha_token="tok"), metadata_factory())

        assert isinstance(result, RejectedRateLimited)
        verifier.verify.assert_not_called()

    @pytest.mark.asyncio
    async def test_captcha_checked_before_honeypot(self, metadata_factory):
        verifier = AsyncMock()
        gate = make_gate(captcha=verifier)

        result = await gate.screen(BotSignals(decoy_fields={"honeypot": "x"}), metadata_factory())

        assert isinstance(result, RejectedCaptcha)


class TestScreening:
    """Layers that run before field validation"""

    @pytest.mark.asyncio
    async def test_screen_counts_toward_rate_limit(self, metadata_factory):
        """Test that screening alone uses up the per-IP allowance"""
        gate = make_gate()
        metadata = metadata_factory()

        results = [await gate.screen(BotSignals(), metadata) for _ in range(6)]

        assert results[:5] == [None] * 5
        assert isinstance(results[5], RejectedRateLimited)

    @pytest.mark.asyncio
    async def test_screen_rejection_logged_without_email(self, metadata_factory, caplog):
        """Test that a rejection before validation is logged with ip and layer only"""
        metadata = metadata_factory(ip_address="198.51.100.8")

        with caplog.at_level("WARNING", logger="supplier"):
            await make_gate().screen(BotSignals(decoy_fields={"website": "x"}), metadata)

        records = [r for r in caplog.records if getattr(r, "event_type", None) == "security"]
        assert len(records) == 1
        assert records[0].layer == "honeypot"
        assert records[0].client_ip == "198.51.100.8"
        assert records[0].email is None
