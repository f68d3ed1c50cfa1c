"""Token resolver.

Maps an opaque session token to the caller that owns it. The token index
(``session_token:{token}``) makes this a point lookup; sessions written
without an index entry are still found by scanning session records.
"""

import logging

from intent_gateway.entities import TokenResolution
from intent_gateway.models import SessionRecord
from intent_gateway.repositories import CredentialRepository

logger = logging.getLogger(__name__)

TOKEN_REQUIRED = "Token is required"
TOKEN_EXPIRED = "Token has expired"
TOKEN_INVALID = "Invalid or expired token"


class TokenResolver:
    """Resolve session tokens to caller identities.

    A session whose store TTL has reached zero is invalid even if the record
    can still be read. Store errors propagate.
    """

    def __init__(self, repository: CredentialRepository) -> None:
        self._repository = repository

    async def resolve(self, token: str | None) -> TokenResolution:
        """Resolve a token.

        Args:
            token: The presented session token

        Returns:
            TokenResolution with caller id and remaining TTL, or the reason it is invalid
        """
        if not token:
            return TokenResolution.invalid(TOKEN_REQUIRED)

        caller_id = await self._repository.caller_for_token(token)
        if caller_id is not None:
            session = await self._repository.get_session(caller_id)
            if self._owns(session, token):
                ttl = await self._repository.session_ttl(caller_id)
                return self._resolution(caller_id, ttl)
            logger.warning("Token index for caller %s points to a stale session", caller_id)

        return await self._scan(token)

    async def _scan(self, token: str) -> TokenResolution:
        """Fallback: first active session record holding the token wins."""
        for key in await self._repository.session_keys():
            session = await self._repository.get_session_by_key(key)
            if not self._owns(session, token):
                continue

            caller_id = key.split(":", 1)[1]
            ttl = await self._repository.ttl_for_key(key)
            logger.info("Resolved token for caller %s by session scan", caller_id)
            return self._resolution(caller_id, ttl)

        return TokenResolution.invalid(TOKEN_INVALID)

    @staticmethod
    def _owns(session: SessionRecord | None, token: str) -> bool:
        return session is not None and session.is_active and session.token == token

    @staticmethod
    def _resolution(caller_id: str, ttl: int) -> TokenResolution:
        if ttl <= 0:
            return TokenResolution.invalid(TOKEN_EXPIRED)
        return TokenResolution(valid=True, caller_id=caller_id, remaining_ttl=ttl)
