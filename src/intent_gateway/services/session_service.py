"""Session lifecycle service.

One active session per caller. Logging in issues a fresh token and
resynchronises the caller's credential TTLs to the new session.
"""

import logging
import secrets
import time

from intent_gateway.config import settings
from intent_gateway.entities import SessionStatus
from intent_gateway.exceptions import (
    InvalidCredentialsError,
    SessionConflictError,
    SessionNotFoundError,
)
from intent_gateway.models import SessionRecord
from intent_gateway.repositories import CredentialRepository

logger = logging.getLogger(__name__)


def generate_token(length: int) -> str:
    """Hex token of exactly ``length`` characters."""
    return secrets.token_hex((length + 1) // 2)[:length]


class SessionService:
    """Log callers in and out."""

    def __init__(
        self,
        repository: CredentialRepository,
        users: dict[str, str] | None = None,
        session_ttl: int | None = None,
        token_length: int | None = None,
    ) -> None:
        self._repository = repository
        self._users = users if users is not None else settings.demo_users
        self._session_ttl = session_ttl or settings.session_ttl
        self._token_length = token_length or settings.token_length

    async def login(self, caller_id: str, password: str) -> SessionRecord:
        """Start a session for a configured user.

        Business logic:
        1. Check the password
        2. Reject if an active session with a positive TTL exists
        3. Create the session with a create-only write (a racing login loses)
        4. Resync the caller's credential TTLs (failure is logged, not raised)

        Returns:
            The new session record, including the token

        Raises:
            InvalidCredentialsError: Unknown user or wrong password
            SessionConflictError: The caller already has a live session
        """
        expected = self._users.get(caller_id)
        if expected is None or not secrets.compare_digest(expected, password):
            logger.warning("Invalid login attempt for user: %s", caller_id)
            raise InvalidCredentialsError("User not found or invalid credentials")

        existing = await self._repository.get_session(caller_id)
        if existing is not None:
            ttl = await self._repository.session_ttl(caller_id)
            if existing.is_active and ttl > 0:
                logger.warning("User already active login attempt: %s (remaining=%ds)", caller_id, ttl)
                raise SessionConflictError(
                    "This user is currently active in another session",
                    remaining_time=ttl,
                )
            # Inactive or non-expiring leftovers block the create-only write.
            await self._repository.delete_session(caller_id)

        record = SessionRecord(
            status="active",
            token=generate_token(self._token_length),
            activated_at=int(time.time()),
        )
        if not await self._repository.create_session(caller_id, record, self._session_ttl):
            ttl = await self._repository.session_ttl(caller_id)
            logger.warning("Concurrent login lost the race for user: %s", caller_id)
            raise SessionConflictError(
                "This user is currently active in another session",
                remaining_time=max(ttl, 0),
            )

        try:
            await self._repository.sync_credential_ttls(caller_id)
        except Exception:
            logger.warning("Failed to sync API keys with session TTL for user %s", caller_id, exc_info=True)

        logger.info("User login successful: %s (ttl=%ds)", caller_id, self._session_ttl)
        return record

    async def logout(self, caller_id: str) -> None:
        """End a caller's session.

        Raises:
            SessionNotFoundError: If the caller has no session
        """
        if await self._repository.delete_session(caller_id) == 0:
            raise SessionNotFoundError("No active session found for this user")
        logger.info("User logout successful: %s", caller_id)

    async def status(self, caller_id: str) -> SessionStatus:
        session = await self._repository.get_session(caller_id)
        ttl = await self._repository.session_ttl(caller_id) if session is not None else -2
        return SessionStatus(
            caller_id=caller_id,
            active=session is not None and session.is_active and ttl > 0,
            remaining_ttl=max(ttl, 0),
            activated_at=session.activated_at if session is not None else None,
        )

    @property
    def session_ttl(self) -> int:
        return self._session_ttl
