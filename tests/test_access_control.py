"""
Tests for the access-control pipeline.
"""

from datetime import date, timedelta

import pytest

from intent_gateway.entities import DenialKind
from intent_gateway.models import CredentialLimits, CredentialRecord, EncryptedSecret, UsageCounters
from intent_gateway.services.access_control import origin_allowed, rolled_over

TODAY = date(2026, 1, 5)  # Monday of ISO week 2


def make_record(**fields):
    fields.setdefault("usage", UsageCounters(last_reset=TODAY))
    return CredentialRecord(
        description="image generation",
        encrypted_key=EncryptedSecret(ciphertext="00", iv="00"),
        **fields,
    )


class TestEvaluate:
    def test_allows_fresh_credential(self, access):
        decision = access.evaluate(make_record(), {"prompt": "a cat"})
        assert decision.allowed
        assert decision.warning is None
        assert decision.error is None

    def test_expiry_is_checked_before_payload(self, access, clock):
        """Test that the first failing check is reported."""
        record = make_record(
            expiry_date=clock.datetime() - timedelta(days=1),
            limits=CredentialLimits(max_payload_kb=1),
        )
        decision = access.evaluate(record, {"data": "x" * 2000})
        assert not decision.allowed
        assert decision.error == "API key has expired"
        assert decision.denial is DenialKind.EXPIRED
        assert not decision.retryable

    def test_naive_expiry_is_treated_as_utc(self, access, clock):
        record = make_record(expiry_date=(clock.datetime() - timedelta(hours=1)).replace(tzinfo=None))
        assert access.evaluate(record, {}).error == "API key has expired"

    def test_expiry_warning(self, access, clock):
        record = make_record(expiry_date=clock.datetime() + timedelta(days=2, hours=12))
        decision = access.evaluate(record, {})
        assert decision.allowed
        assert decision.warning == "API key expires in 3 days"

    def test_payload_too_large(self, access):
        record = make_record(limits=CredentialLimits(max_payload_kb=1))
        decision = access.evaluate(record, {"data": "x" * 2000})
        assert decision.error == "Payload size (1.96KB) exceeds limit (1KB)"
        assert decision.denial is DenialKind.PAYLOAD

    def test_large_payload_warning(self, access):
        record = make_record(limits=CredentialLimits(max_payload_kb=1))
        decision = access.evaluate(record, {"data": "x" * 850})
        assert decision.allowed
        assert decision.warning == "Large payload: 84.1% of size limit"

    def test_origin_required_when_allowlisted(self, access):
        record = make_record(allowed_origins=["https://app.example.com"])
        decision = access.evaluate(record, {})
        assert decision.error == "Request origin is required but not provided"
        assert decision.denial is DenialKind.ORIGIN

    def test_origin_not_in_list(self, access):
        record = make_record(allowed_origins=["*.example.com"])
        decision = access.evaluate(record, {}, origin="example.com")
        assert decision.error == "Origin 'example.com' is not in allowed origins list"

    def test_wildcard_origin(self, access):
        record = make_record(allowed_origins=["*.example.com"])
        assert access.evaluate(record, {}, origin="app.sub.example.com").allowed

    def test_daily_quota_is_retryable(self, access):
        record = make_record(usage=UsageCounters(daily_usage=1000, weekly_usage=1000, last_reset=TODAY))
        decision = access.evaluate(record, {})
        assert decision.error == "Daily request limit exceeded"
        assert decision.denial is DenialKind.QUOTA
        assert decision.retryable

    def test_weekly_and_token_quotas(self, access):
        weekly = make_record(usage=UsageCounters(weekly_usage=5000, last_reset=TODAY))
        assert access.evaluate(weekly, {}).error == "Weekly request limit exceeded"

        tokens = make_record(usage=UsageCounters(daily_tokens_used=100000, last_reset=TODAY))
        assert access.evaluate(tokens, {}).error == "Daily token limit exceeded"

    def test_usage_warnings(self, access):
        record = make_record(usage=UsageCounters(daily_usage=950, weekly_usage=3800, last_reset=TODAY))
        decision = access.evaluate(record, {})
        assert decision.allowed
        assert decision.warning == "Near daily request limit: 95.0% used, High weekly usage: 76.0% used"

    def test_warnings_from_all_stages_are_joined(self, access, clock):
        record = make_record(
            expiry_date=clock.datetime() + timedelta(days=3),
            usage=UsageCounters(daily_tokens_used=80000, last_reset=TODAY),
        )
        decision = access.evaluate(record, {})
        assert decision.warning == "API key expires in 3 days, High token usage: 80.0% used"

    def test_stale_counters_roll_over(self, access):
        """Test that yesterday's exhausted quota does not block today."""
        record = make_record(
            usage=UsageCounters(daily_usage=1000, weekly_usage=5000, last_reset=TODAY - timedelta(days=1))
        )
        assert access.evaluate(record, {}).allowed


@pytest.mark.parametrize(
    "origin, pattern, expected",
    [
        ("https://app.example.com", "https://app.example.com", True),
        ("app.sub.example.com", "*.example.com", True),
        ("example.com", "*.example.com", False),
        ("badexample.com", "*.example.com", False),
        ("https://other.com", "https://app.example.com", False),
    ],
)
def test_origin_allowed(origin, pattern, expected):
    assert origin_allowed(origin, pattern) is expected


def test_rollover_keeps_weekly_within_iso_week():
    usage = UsageCounters(daily_usage=5, weekly_usage=20, daily_tokens_used=300, last_reset=TODAY)
    tuesday = rolled_over(usage, TODAY + timedelta(days=1))
    assert (tuesday.daily_usage, tuesday.weekly_usage, tuesday.daily_tokens_used) == (0, 20, 0)
    assert tuesday.last_reset == TODAY + timedelta(days=1)


def test_rollover_resets_weekly_on_new_week():
    usage = UsageCounters(daily_usage=5, weekly_usage=20, last_reset=TODAY - timedelta(days=1))
    assert rolled_over(usage, TODAY).weekly_usage == 0


def test_rollover_same_day_is_unchanged():
    usage = UsageCounters(daily_usage=5, last_reset=TODAY)
    assert rolled_over(usage, TODAY) is usage


@pytest.mark.asyncio
class TestValidateAndUsage:
    async def test_missing_credential(self, access):
        decision = await access.validate("alice", "nope", {})
        assert not decision.allowed
        assert decision.error == "API key not found"
        assert decision.denial is DenialKind.NOT_FOUND

    async def test_update_usage_increments_and_keeps_ttl(self, access, credentials, repository, clock, alice_token):
        await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")
        clock.advance(100)

        assert (await access.update_usage("alice", "image-gen", 50)).ok
        assert (await access.update_usage("alice", "image-gen", 25)).ok

        record = await repository.get_credential("alice", "image-gen")
        assert record.usage.daily_usage == 2
        assert record.usage.weekly_usage == 2
        assert record.usage.daily_tokens_used == 75
        assert await repository.credential_ttl("alice", "image-gen") == 1700

    async def test_update_usage_missing_credential_fails_quietly(self, access, alice_token):
        outcome = await access.update_usage("alice", "nope", 10)
        assert not outcome.ok

    async def test_update_usage_rolls_over_stale_counters(self, access, credentials, repository, alice_token):
        record, _ = await credentials.add_credential(
            "alice", alice_token, "image-gen", "sk-image-0000", "image generation"
        )
        record.usage = UsageCounters(daily_usage=7, weekly_usage=9, daily_tokens_used=70, last_reset=date(2026, 1, 1))
        await repository.save_credential_keep_ttl("alice", "image-gen", record)

        await access.update_usage("alice", "image-gen", 5)

        usage = (await repository.get_credential("alice", "image-gen")).usage
        assert (usage.daily_usage, usage.weekly_usage, usage.daily_tokens_used) == (1, 1, 5)
        assert usage.last_reset == TODAY
