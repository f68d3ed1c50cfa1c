"""
Tests for the credential lifecycle and session TTL binding.
"""

import pytest

from intent_gateway.exceptions import (
    ConfirmationRequiredError,
    CredentialNotFoundError,
    DecryptionError,
    NoActiveSessionError,
    SemanticConflictError,
    TemplateExistsError,
    ValidationError,
)
from intent_gateway.models import CredentialLimits
from intent_gateway.repositories.credential_repository import credential_key


@pytest.mark.asyncio
async def test_add_credential_binds_ttl_to_session(credentials, repository, cipher, alice_token):
    record, ttl = await credentials.add_credential(
        "alice",
        alice_token,
        "image-gen",
        "sk-image-0000",
        "image generation",
        limits=CredentialLimits(max_requests_per_day=10),
        scopes=["images"],
    )

    assert ttl == 1800
    assert await repository.credential_ttl("alice", "image-gen") == await repository.session_ttl("alice")

    stored = await repository.get_credential("alice", "image-gen")
    assert stored.limits.max_requests_per_day == 10
    assert stored.scopes == ["images"]
    assert stored.encrypted_key.ciphertext != "sk-image-0000".encode().hex()
    assert credentials.decrypt_secret(stored, alice_token) == "sk-image-0000"


@pytest.mark.asyncio
async def test_add_credential_requires_session(credentials):
    with pytest.raises(NoActiveSessionError):
        await credentials.add_credential("bob", "bob-token-12345", "chat", "sk-chat-0000", "chat completion")


@pytest.mark.asyncio
async def test_duplicate_template(credentials, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")

    with pytest.raises(TemplateExistsError) as exc_info:
        await credentials.add_credential("alice", alice_token, "image-gen", "sk-other-0000", "chat completion")
    assert exc_info.value.status_code == 409


@pytest.mark.asyncio
async def test_semantic_conflict(credentials, alice_token):
    """Test that a near-duplicate description is rejected."""
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")

    with pytest.raises(SemanticConflictError) as exc_info:
        await credentials.add_credential("alice", alice_token, "images", "sk-image-1111", "Image generation!")

    error = exc_info.value.to_dict()
    assert error["conflicting_template"] == "image-gen"
    assert error["similarity"] == pytest.approx(1.0)


@pytest.mark.asyncio
async def test_update_credential(credentials, repository, clock, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")
    clock.advance(300)

    record, fields = await credentials.update_credential(
        "alice",
        "image-gen",
        {"max_requests_per_day": 10, "retry_enabled": True, "description": "image generation", "bogus": 1},
    )

    assert fields == ["description", "max_requests_per_day", "retry_enabled"]
    assert record.limits.max_requests_per_day == 10
    assert record.limits.max_requests_per_week == 5000
    assert record.retry.retry_enabled
    assert await repository.credential_ttl("alice", "image-gen") == 1500


@pytest.mark.asyncio
@pytest.mark.parametrize("field", ["description", "max_requests_per_day", "scopes", "retry_enabled"])
async def test_update_ignores_null_for_required_fields(credentials, repository, field, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")

    record, fields = await credentials.update_credential("alice", "image-gen", {field: None, "max_payload_kb": 5})

    assert fields == ["max_payload_kb"]
    assert record.description == "image generation"
    assert record.limits.max_requests_per_day == 1000

    stored = await repository.get_credential("alice", "image-gen")
    assert stored is not None
    assert stored.limits.max_payload_kb == 5
    assert [template for template, _, _ in await credentials.list_credentials("alice")] == ["image-gen"]


@pytest.mark.asyncio
async def test_update_can_clear_expiry_date(credentials, repository, clock, alice_token):
    await credentials.add_credential(
        "alice", alice_token, "image-gen", "sk-image-0000", "image generation", expiry_date=clock.datetime()
    )

    record, fields = await credentials.update_credential("alice", "image-gen", {"expiry_date": None})

    assert fields == ["expiry_date"]
    assert record.expiry_date is None
    assert (await repository.get_credential("alice", "image-gen")).expiry_date is None


@pytest.mark.asyncio
async def test_update_rejects_values_the_record_cannot_hold(credentials, repository, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")

    with pytest.raises(ValidationError) as exc_info:
        await credentials.update_credential("alice", "image-gen", {"max_requests_per_day": "lots"})

    assert exc_info.value.status_code == 400
    assert (await repository.get_credential("alice", "image-gen")).limits.max_requests_per_day == 1000


@pytest.mark.asyncio
async def test_update_rejects_conflicting_description(credentials, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")
    await credentials.add_credential("alice", alice_token, "chat", "sk-chat-0000", "chat completion")

    with pytest.raises(SemanticConflictError):
        await credentials.update_credential("alice", "chat", {"description": "image generation"})


@pytest.mark.asyncio
async def test_update_missing_credential(credentials, alice_token):
    with pytest.raises(CredentialNotFoundError):
        await credentials.update_credential("alice", "nope", {"max_requests_per_day": 1})


@pytest.mark.asyncio
async def test_delete_requires_confirmation(credentials, repository, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")

    with pytest.raises(ConfirmationRequiredError):
        await credentials.delete_credential("alice", "image-gen")
    assert await repository.get_credential("alice", "image-gen") is not None

    await credentials.delete_credential("alice", "image-gen", confirm=True)
    assert await repository.get_credential("alice", "image-gen") is None

    with pytest.raises(CredentialNotFoundError):
        await credentials.delete_credential("alice", "image-gen", confirm=True)


@pytest.mark.asyncio
async def test_list_credentials_with_ttl(credentials, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")
    await credentials.add_credential("alice", alice_token, "chat", "sk-chat-0000", "chat completion")

    listed = await credentials.list_credentials("alice")
    assert [(template, ttl) for template, _, ttl in listed] == [("chat", 1800), ("image-gen", 1800)]


@pytest.mark.asyncio
async def test_sync_realigns_drifted_ttls(credentials, repository, store, clock, alice_token):
    """Test that a sync pass sets every credential TTL to the session's."""
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")
    await credentials.add_credential("alice", alice_token, "chat", "sk-chat-0000", "chat completion")
    await store.expire(credential_key("alice", "image-gen"), 5000)
    clock.advance(1680)

    assert await credentials.sync_credential_ttls("alice") == 2
    assert await repository.credential_ttl("alice", "image-gen") == 120
    assert await repository.credential_ttl("alice", "chat") == 120

    assert await credentials.sync_credential_ttls("alice") == 2
    assert await repository.credential_ttl("alice", "image-gen") == 120


@pytest.mark.asyncio
async def test_sync_without_session_is_noop(credentials):
    assert await credentials.sync_credential_ttls("bob") == 0


@pytest.mark.asyncio
async def test_ensure_ttl_consistent_repairs_missing_expiry(credentials, repository, store, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")
    store.expiry.pop(credential_key("alice", "image-gen"))
    assert await repository.credential_ttl("alice", "image-gen") == -1

    assert await credentials.ensure_ttl_consistent("alice", "image-gen")
    assert await repository.credential_ttl("alice", "image-gen") == 1800


@pytest.mark.asyncio
async def test_ensure_ttl_consistent_leaves_aligned_ttl(credentials, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")
    assert not await credentials.ensure_ttl_consistent("alice", "image-gen")
    assert not await credentials.ensure_ttl_consistent("alice", "missing")


@pytest.mark.asyncio
async def test_decrypt_with_wrong_token(credentials, alice_token):
    # Long enough that garbage plaintext is never valid UTF-8.
    record, _ = await credentials.add_credential(
        "alice", alice_token, "image-gen", "sk-" + "7" * 64, "image generation"
    )
    with pytest.raises(DecryptionError):
        credentials.decrypt_secret(record, "not-the-session-token")


@pytest.mark.asyncio
async def test_credentials_expire_with_session(credentials, repository, clock, alice_token):
    await credentials.add_credential("alice", alice_token, "image-gen", "sk-image-0000", "image generation")
    clock.advance(1800)
    assert await repository.list_credentials("alice") == []
