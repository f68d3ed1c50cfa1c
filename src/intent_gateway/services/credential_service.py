"""Credential lifecycle service.

Adds, updates, deletes and lists a caller's credentials (templates). Every
credential is encrypted with the caller's session token and expires together
with the session.
"""

import logging
from datetime import datetime
from typing import Any

import pydantic

from intent_gateway.exceptions import (
    ConfirmationRequiredError,
    CredentialNotFoundError,
    SemanticConflictError,
    TemplateExistsError,
    ValidationError,
)
from intent_gateway.models import CredentialLimits, CredentialRecord, RetryPolicy, utc_now
from intent_gateway.protocols import CredentialCipher
from intent_gateway.repositories import CredentialRepository

from .template_matcher import TemplateMatcher

logger = logging.getLogger(__name__)

_LIMIT_FIELDS = frozenset(CredentialLimits.model_fields)
_RETRY_FIELDS = frozenset(RetryPolicy.model_fields)
_TOP_LEVEL_FIELDS = frozenset({"description", "expiry_date", "allowed_origins", "scopes"})
UPDATABLE_FIELDS = _LIMIT_FIELDS | _RETRY_FIELDS | _TOP_LEVEL_FIELDS
# The only field an update may clear.
NULLABLE_FIELDS = frozenset({"expiry_date"})


class CredentialService:
    """Manage session-bound credentials.

    Example:
        ```python
        service = CredentialService(repository, cipher, matcher)
        await service.add_credential("alice", token, "image-gen", "sk-...", "image generation")
        ```
    """

    def __init__(
        self,
        repository: CredentialRepository,
        cipher: CredentialCipher,
        matcher: TemplateMatcher,
    ) -> None:
        self._repository = repository
        self._cipher = cipher
        self._matcher = matcher

    async def add_credential(
        self,
        caller_id: str,
        token: str,
        template: str,
        api_key: str,
        description: str,
        limits: CredentialLimits | None = None,
        retry: RetryPolicy | None = None,
        expiry_date: datetime | None = None,
        allowed_origins: list[str] | None = None,
        scopes: list[str] | None = None,
    ) -> tuple[CredentialRecord, int]:
        """Register a new credential.

        Business logic:
        1. Reject a template name that already exists
        2. Reject a description too similar to an existing one
        3. Encrypt the secret with the session token
        4. Store with the session's remaining TTL

        Returns:
            The stored record and the TTL applied

        Raises:
            TemplateExistsError: If the template name is taken
            SemanticConflictError: If the description conflicts with another template
            NoActiveSessionError: If the caller has no live session
        """
        if await self._repository.get_credential(caller_id, template) is not None:
            logger.warning("Template already exists for user %s: %s", caller_id, template)
            raise TemplateExistsError(
                f"An API key with template '{template}' already exists for this user",
                template=template,
            )

        await self._reject_conflicting_description(caller_id, description)

        record = CredentialRecord(
            description=description,
            encrypted_key=self._cipher.encrypt(api_key, token),
            limits=limits or CredentialLimits(),
            retry=retry or RetryPolicy(),
            expiry_date=expiry_date,
            allowed_origins=allowed_origins or [],
            scopes=scopes or [],
        )
        ttl = await self._repository.put_credential_with_session_ttl(caller_id, template, record)

        logger.info(
            "API key saved for user %s: template=%s scopes=%s has_expiry=%s",
            caller_id,
            template,
            record.scopes,
            record.expiry_date is not None,
        )
        return record, ttl

    async def update_credential(
        self,
        caller_id: str,
        template: str,
        changes: dict[str, Any],
    ) -> tuple[CredentialRecord, list[str]]:
        """Apply the provided fields to an existing credential.

        Args:
            caller_id: The caller identity
            template: The template to update
            changes: Field name to new value; unknown names are ignored, and
                so is None for any field except ``expiry_date``

        Returns:
            The updated record and the names of the fields that were applied

        Raises:
            CredentialNotFoundError: If the template does not exist
            SemanticConflictError: If a new description conflicts with another template
            ValidationError: If a value does not fit the stored document
        """
        record = await self._require(caller_id, template)
        changes = {
            name: value
            for name, value in changes.items()
            if name in UPDATABLE_FIELDS and (value is not None or name in NULLABLE_FIELDS)
        }

        description = changes.get("description")
        if description is not None and description != record.description:
            await self._reject_conflicting_description(caller_id, description, exclude=template)

        limits = {name: value for name, value in changes.items() if name in _LIMIT_FIELDS}
        retry = {name: value for name, value in changes.items() if name in _RETRY_FIELDS}
        top_level = {name: value for name, value in changes.items() if name in _TOP_LEVEL_FIELDS}

        document = record.model_dump()
        document.update(top_level)
        document["limits"].update(limits)
        document["retry"].update(retry)
        document["last_modified"] = utc_now()
        try:
            updated = CredentialRecord.model_validate(document)
        except pydantic.ValidationError as e:
            raise ValidationError(f"Invalid update for API key '{template}': {e.errors()[0]['msg']}") from e

        await self._repository.put_credential_with_session_ttl(caller_id, template, updated)

        logger.info("API key updated for user %s: template=%s fields=%s", caller_id, template, sorted(changes))
        return updated, sorted(changes)

    async def delete_credential(self, caller_id: str, template: str, confirm: bool = False) -> CredentialRecord:
        """Delete a credential. Deletion must be confirmed explicitly.

        Returns:
            The deleted record

        Raises:
            CredentialNotFoundError: If the template does not exist
            ConfirmationRequiredError: If ``confirm`` is False
        """
        record = await self._require(caller_id, template)
        if not confirm:
            raise ConfirmationRequiredError(
                f"Set confirm to true to delete API key '{template}'",
                template=template,
            )

        await self._repository.delete_credential(caller_id, template)
        logger.info("API key deleted for user %s: template=%s", caller_id, template)
        return record

    async def list_credentials(self, caller_id: str) -> list[tuple[str, CredentialRecord, int]]:
        """All credentials of a caller with their remaining TTL."""
        return [
            (template, record, await self._repository.credential_ttl(caller_id, template))
            for template, record in await self._repository.list_credentials(caller_id)
        ]

    async def get_credential(self, caller_id: str, template: str) -> CredentialRecord:
        return await self._require(caller_id, template)

    async def sync_credential_ttls(self, caller_id: str) -> int:
        """Align every credential's expiry with the session; safe to re-run."""
        return await self._repository.sync_credential_ttls(caller_id)

    async def ensure_ttl_consistent(self, caller_id: str, template: str) -> bool:
        """Repair credential TTLs when this one outlives its session.

        Returns:
            True if a sync pass was run
        """
        credential_ttl = await self._repository.credential_ttl(caller_id, template)
        session_ttl = await self._repository.session_ttl(caller_id)
        if session_ttl <= 0 or credential_ttl == -2:
            return False

        if credential_ttl == -1 or credential_ttl > session_ttl:
            logger.info(
                "Stale API key TTL for user %s (key=%d, session=%d); resyncing",
                caller_id,
                credential_ttl,
                session_ttl,
            )
            await self._repository.sync_credential_ttls(caller_id)
            return True
        return False

    def decrypt_secret(self, record: CredentialRecord, token: str) -> str:
        """Decrypt a credential's secret with the session token.

        Raises:
            DecryptionError: If the token does not decrypt the secret
        """
        return self._cipher.decrypt(record.encrypted_key, token)

    async def _require(self, caller_id: str, template: str) -> CredentialRecord:
        record = await self._repository.get_credential(caller_id, template)
        if record is None:
            raise CredentialNotFoundError(
                f"No API key with template '{template}' found for this user",
                template=template,
            )
        return record

    async def _reject_conflicting_description(
        self, caller_id: str, description: str, exclude: str | None = None
    ) -> None:
        conflict = await self._matcher.check_description_conflict(caller_id, description, exclude=exclude)
        if conflict is None:
            return

        logger.info(
            "Semantic conflict detected for user %s: conflicting=%s similarity=%.3f",
            caller_id,
            conflict.template,
            conflict.confidence,
        )
        raise SemanticConflictError(
            f"Description is too similar to existing API key '{conflict.template}'",
            similarity=conflict.confidence,
            conflicting_template=conflict.template,
        )
