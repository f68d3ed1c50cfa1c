"""
Tests for stored documents and the credential cipher.
"""

import pytest

from intent_gateway.exceptions import ValidationError
from intent_gateway.models import CREDENTIAL_SCHEMA_VERSION, CredentialRecord
from intent_gateway.protocols import CredentialCipher
from intent_gateway.repositories import AesCredentialCipher


def test_legacy_flat_credential_is_upgraded():
    """Test that a document written before schema versioning still loads."""
    legacy = {
        "description": "image generation",
        "encrypted_key": {"encrypted": "abcd", "iv": "0011"},
        "daily_usage": 5,
        "weekly_usage": 9,
        "last_reset": "2026-01-04",
        "max_requests_per_day": 10,
        "retry_enabled": True,
        "some_removed_field": "ignored",
    }

    record = CredentialRecord.model_validate(legacy)

    assert record.schema_version == CREDENTIAL_SCHEMA_VERSION
    assert record.encrypted_key.ciphertext == "abcd"
    assert record.encrypted_key.iv == "0011"
    assert record.usage.daily_usage == 5
    assert record.usage.weekly_usage == 9
    assert record.limits.max_requests_per_day == 10
    assert record.limits.max_requests_per_week == 5000
    assert record.retry.retry_enabled


def test_versioned_credential_is_untouched():
    record = CredentialRecord(
        description="chat completion",
        encrypted_key={"ciphertext": "ab", "iv": "cd"},
    )
    reloaded = CredentialRecord.model_validate_json(record.model_dump_json())
    assert reloaded == record


class TestAesCredentialCipher:
    def test_satisfies_protocol(self):
        assert isinstance(AesCredentialCipher(), CredentialCipher)

    def test_decrypts_with_same_token(self):
        cipher = AesCredentialCipher()
        secret = cipher.encrypt("sk-live-123", "session-token-1")
        assert cipher.decrypt(secret, "session-token-1") == "sk-live-123"

    def test_fresh_iv_per_secret(self):
        cipher = AesCredentialCipher()
        first = cipher.encrypt("sk-live-123", "session-token-1")
        second = cipher.encrypt("sk-live-123", "session-token-1")
        assert first.iv != second.iv
        assert len(bytes.fromhex(first.iv)) == 16
        assert first.ciphertext != second.ciphertext

    def test_rejects_short_token(self):
        with pytest.raises(ValidationError):
            AesCredentialCipher().encrypt("sk-live-123", "short")
