"""Access-control pipeline.

Checks run in a fixed order and the first hard failure wins:

1. expiry date
2. payload size
3. origin allowlist
4. usage quotas

Non-fatal warnings from every stage are accumulated and joined with ", ".
Denials are returned as values; store errors while loading the credential
propagate.
"""

import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from intent_gateway.config import settings
from intent_gateway.entities import AccessDecision, DenialKind, SideEffectOutcome
from intent_gateway.models import CredentialLimits, CredentialRecord, UsageCounters, utc_now
from intent_gateway.repositories import CredentialRepository
from intent_gateway.utils import size_kb

logger = logging.getLogger(__name__)

PAYLOAD_WARNING_PERCENT = 80
USAGE_NEAR_PERCENT = 90
USAGE_HIGH_PERCENT = 75


@dataclass(frozen=True)
class _Check:
    """Outcome of one stage: an error ends the pipeline, a warning is kept."""

    kind: DenialKind | None = None
    error: str | None = None
    warning: str | None = None


def rolled_over(usage: UsageCounters, today: date) -> UsageCounters:
    """Counters as they stand on ``today``: daily counters reset on a new day,
    weekly on a new ISO week."""
    if usage.last_reset >= today:
        return usage

    same_week = usage.last_reset.isocalendar()[:2] == today.isocalendar()[:2]
    return UsageCounters(
        daily_usage=0,
        weekly_usage=usage.weekly_usage if same_week else 0,
        daily_tokens_used=0,
        last_reset=today,
    )


def check_expiry(expiry_date: datetime | None, now: datetime, warning_days: int) -> _Check:
    if expiry_date is None:
        return _Check()

    if expiry_date.tzinfo is None:
        expiry_date = expiry_date.replace(tzinfo=timezone.utc)

    if expiry_date < now:
        return _Check(DenialKind.EXPIRED, "API key has expired")

    days_left = math.ceil((expiry_date - now) / timedelta(days=1))
    if days_left <= warning_days:
        return _Check(warning=f"API key expires in {days_left} days")
    return _Check()


def check_payload_size(payload: Any, max_payload_kb: int) -> _Check:
    payload_kb = size_kb(payload)
    if payload_kb > max_payload_kb:
        return _Check(
            DenialKind.PAYLOAD,
            f"Payload size ({payload_kb:.2f}KB) exceeds limit ({max_payload_kb}KB)",
        )

    percent = payload_kb / max_payload_kb * 100 if max_payload_kb else 0.0
    if percent > PAYLOAD_WARNING_PERCENT:
        return _Check(warning=f"Large payload: {percent:.1f}% of size limit")
    return _Check()


def origin_allowed(origin: str, pattern: str) -> bool:
    """Exact match, or ``*.domain`` matching any origin ending in ``.domain``."""
    if pattern == origin:
        return True
    if pattern.startswith("*."):
        return origin.endswith(pattern[1:])
    return False


def check_origin(origin: str | None, allowed_origins: list[str]) -> _Check:
    if not allowed_origins:
        return _Check()
    if not origin:
        return _Check(DenialKind.ORIGIN, "Request origin is required but not provided")
    if any(origin_allowed(origin, pattern) for pattern in allowed_origins):
        return _Check()
    return _Check(DenialKind.ORIGIN, f"Origin '{origin}' is not in allowed origins list")


def check_quotas(usage: UsageCounters, limits: CredentialLimits) -> _Check:
    metrics = (
        # (used, limit, exceeded, near, high)
        (usage.daily_usage, limits.max_requests_per_day,
         "Daily request limit exceeded", "Near daily request limit", "High daily usage"),
        (usage.weekly_usage, limits.max_requests_per_week,
         "Weekly request limit exceeded", "Near weekly request limit", "High weekly usage"),
        (usage.daily_tokens_used, limits.max_tokens_per_day,
         "Daily token limit exceeded", "Near daily token limit", "High token usage"),
    )

    for used, limit, exceeded, _, _ in metrics:
        if used >= limit:
            return _Check(DenialKind.QUOTA, exceeded)

    warnings = []
    for used, limit, _, near, high in metrics:
        percent = used / limit * 100
        if percent >= USAGE_NEAR_PERCENT:
            warnings.append(f"{near}: {percent:.1f}% used")
        elif percent >= USAGE_HIGH_PERCENT:
            warnings.append(f"{high}: {percent:.1f}% used")

    return _Check(warning=", ".join(warnings) or None)


class AccessControlService:
    """Decide whether a caller may use a credential right now.

    Example:
        ```python
        decision = await access.validate("alice", "image-gen", payload, origin="https://app.example.com")
        if not decision.allowed:
            ...
        ```
    """

    def __init__(
        self,
        repository: CredentialRepository,
        expiry_warning_days: int | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._repository = repository
        self._warning_days = (
            expiry_warning_days if expiry_warning_days is not None else settings.expiry_warning_days
        )
        self._clock = clock

    async def validate(
        self,
        caller_id: str,
        template: str,
        payload: Any,
        origin: str | None = None,
    ) -> AccessDecision:
        """Run the access-control pipeline for one request.

        Args:
            caller_id: The caller identity
            template: The selected template
            payload: The caller's payload
            origin: Request origin, if the client sent one

        Returns:
            AccessDecision; when denied, ``error`` names the first tripped check
        """
        record = await self._repository.get_credential(caller_id, template)
        if record is None:
            return AccessDecision.deny(DenialKind.NOT_FOUND, "API key not found")

        return self.evaluate(record, payload, origin)

    def evaluate(self, record: CredentialRecord, payload: Any, origin: str | None = None) -> AccessDecision:
        """Apply the checks to an already loaded credential."""
        now = self._clock()
        usage = rolled_over(record.usage, now.date())

        checks = (
            lambda: check_expiry(record.expiry_date, now, self._warning_days),
            lambda: check_payload_size(payload, record.limits.max_payload_kb),
            lambda: check_origin(origin, record.allowed_origins),
            lambda: check_quotas(usage, record.limits),
        )

        warnings: list[str] = []
        for run in checks:
            result = run()
            if result.error is not None:
                logger.info("Access denied: %s", result.error)
                return AccessDecision.deny(result.kind, result.error)
            if result.warning:
                warnings.append(result.warning)

        return AccessDecision(allowed=True, warning=", ".join(warnings) or None)

    async def update_usage(self, caller_id: str, template: str, tokens_used: int) -> SideEffectOutcome:
        """Count one request and ``tokens_used`` tokens against a credential.

        Counters roll over first when the stored reset date is stale. The
        record is written back without changing its TTL. Read-modify-write is
        not atomic, so concurrent updates may lose increments.
        """
        try:
            record = await self._repository.get_credential(caller_id, template)
            if record is None:
                return SideEffectOutcome.failure(f"API key not found: {template}")

            usage = rolled_over(record.usage, self._clock().date())
            record.usage = UsageCounters(
                daily_usage=usage.daily_usage + 1,
                weekly_usage=usage.weekly_usage + 1,
                daily_tokens_used=usage.daily_tokens_used + max(tokens_used, 0),
                last_reset=usage.last_reset,
            )
            await self._repository.save_credential_keep_ttl(caller_id, template, record)
        except Exception as e:
            logger.exception("Failed to update usage for %s:%s", caller_id, template)
            return SideEffectOutcome.failure(e)

        logger.debug("Updated usage for %s:%s (tokens=%d)", caller_id, template, tokens_used)
        return SideEffectOutcome.success()
