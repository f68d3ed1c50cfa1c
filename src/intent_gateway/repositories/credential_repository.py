"""Typed access to session and credential records.

Key layout:
    user:{caller}                    session record (JSON), session TTL
    session_token:{token}            caller id, same TTL as the session
    user:{caller}:keys:{template}    credential record (JSON), session's remaining TTL

Credential TTLs are kept equal to the session TTL by a reconciliation pass
(``sync_credential_ttls``) that is idempotent and safe to re-run; it is not
atomic across keys.
"""

import logging

from pydantic import ValidationError

from intent_gateway.exceptions import CredentialNotFoundError, NoActiveSessionError
from intent_gateway.models import CredentialRecord, SessionRecord
from intent_gateway.protocols import KeyValueStore

logger = logging.getLogger(__name__)

SESSION_PREFIX = "user"
TOKEN_INDEX_PREFIX = "session_token"
KEYS_SEGMENT = "keys"


def session_key(caller_id: str) -> str:
    return f"{SESSION_PREFIX}:{caller_id}"


def token_index_key(token: str) -> str:
    return f"{TOKEN_INDEX_PREFIX}:{token}"


def credential_key(caller_id: str, template: str) -> str:
    return f"{SESSION_PREFIX}:{caller_id}:{KEYS_SEGMENT}:{template}"


def credential_pattern(caller_id: str) -> str:
    return f"{SESSION_PREFIX}:{caller_id}:{KEYS_SEGMENT}:*"


class CredentialRepository:
    """Store adapter for session and credential records.

    Store errors propagate unchanged; corrupt documents are logged and
    treated as absent.
    """

    def __init__(self, store: KeyValueStore) -> None:
        self._store = store

    # ---------- Sessions ----------

    async def get_session(self, caller_id: str) -> SessionRecord | None:
        raw = await self._store.get(session_key(caller_id))
        if raw is None:
            return None
        try:
            return SessionRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Failed to parse session data for %s", caller_id)
            return None

    async def create_session(self, caller_id: str, record: SessionRecord, ttl: int) -> bool:
        """Create a session only if none exists; writes the token index on success."""
        created = await self._store.set(session_key(caller_id), record.model_dump_json(), ttl=ttl, nx=True)
        if created:
            await self._store.set(token_index_key(record.token), caller_id, ttl=ttl)
        return created

    async def delete_session(self, caller_id: str) -> int:
        """Delete a session and its token index entry. Returns 0 if there was none."""
        record = await self.get_session(caller_id)
        deleted = await self._store.delete(session_key(caller_id))
        if record is not None:
            await self._store.delete(token_index_key(record.token))
        return deleted

    async def session_ttl(self, caller_id: str) -> int:
        return await self._store.ttl(session_key(caller_id))

    async def caller_for_token(self, token: str) -> str | None:
        return await self._store.get(token_index_key(token))

    async def session_keys(self) -> list[str]:
        """All session keys (``user:{caller}``), excluding credential keys."""
        keys = await self._store.keys(f"{SESSION_PREFIX}:*")
        return [key for key in keys if f":{KEYS_SEGMENT}:" not in key]

    async def get_session_by_key(self, key: str) -> SessionRecord | None:
        raw = await self._store.get(key)
        if raw is None:
            return None
        try:
            return SessionRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Failed to parse session data for key %s", key)
            return None

    async def ttl_for_key(self, key: str) -> int:
        return await self._store.ttl(key)

    # ---------- Credentials ----------

    async def get_credential(self, caller_id: str, template: str) -> CredentialRecord | None:
        raw = await self._store.get(credential_key(caller_id, template))
        if raw is None:
            return None
        try:
            return CredentialRecord.model_validate_json(raw)
        except ValidationError:
            logger.warning("Failed to parse API key data for %s/%s", caller_id, template)
            return None

    async def credential_keys(self, caller_id: str) -> list[str]:
        return sorted(await self._store.keys(credential_pattern(caller_id)))

    async def list_credentials(self, caller_id: str) -> list[tuple[str, CredentialRecord]]:
        """All parseable credentials of a caller, ordered by template name."""
        credentials: list[tuple[str, CredentialRecord]] = []
        for key in await self.credential_keys(caller_id):
            raw = await self._store.get(key)
            if raw is None:
                continue
            template = key.rsplit(":", 1)[-1]
            try:
                credentials.append((template, CredentialRecord.model_validate_json(raw)))
            except ValidationError:
                logger.warning("Failed to parse API key data for key %s", key)
        return credentials

    async def put_credential_with_session_ttl(
        self, caller_id: str, template: str, record: CredentialRecord
    ) -> int:
        """Write a credential whose expiry equals the session's remaining TTL.

        Returns:
            The TTL applied, in seconds

        Raises:
            NoActiveSessionError: If the caller has no live session
        """
        ttl = await self.session_ttl(caller_id)
        if ttl <= 0:
            raise NoActiveSessionError(f"No active session for user {caller_id}")

        await self._store.set(credential_key(caller_id, template), record.model_dump_json(), ttl=ttl)
        logger.info("Set API key with session TTL for user %s", caller_id, extra={"template": template, "ttl": ttl})
        return ttl

    async def save_credential_keep_ttl(self, caller_id: str, template: str, record: CredentialRecord) -> None:
        """Overwrite an existing credential without touching its expiry.

        Raises:
            CredentialNotFoundError: If the credential expired or was deleted meanwhile
        """
        written = await self._store.set(
            credential_key(caller_id, template), record.model_dump_json(), xx=True, keep_ttl=True
        )
        if not written:
            raise CredentialNotFoundError(f"API key not found: {template}")

    async def delete_credential(self, caller_id: str, template: str) -> int:
        return await self._store.delete(credential_key(caller_id, template))

    async def credential_ttl(self, caller_id: str, template: str) -> int:
        return await self._store.ttl(credential_key(caller_id, template))

    async def sync_credential_ttls(self, caller_id: str) -> int:
        """Set every credential's expiry to the session's current remaining TTL.

        Returns:
            Number of credential keys updated (0 if the session is gone)
        """
        ttl = await self.session_ttl(caller_id)
        if ttl <= 0:
            logger.warning("Session for user %s has already expired or doesn't exist", caller_id)
            return 0

        keys = await self.credential_keys(caller_id)
        updated = 0
        for key in keys:
            if await self._store.expire(key, ttl):
                updated += 1

        logger.info("Synced %d API keys with session TTL for user %s (ttl=%ds)", updated, caller_id, ttl)
        return updated
