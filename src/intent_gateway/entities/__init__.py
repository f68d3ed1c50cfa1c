"""Domain entities for internal representation.

These are frozen dataclasses returned by services. They are NOT used for
API contracts (see the dto package) nor for persisted documents (see
``intent_gateway.models``).
"""

from .access_decision import AccessDecision, DenialKind
from .cache_lookup import CacheLookup
from .proxy_result import ProxyResult
from .session_status import SessionStatus
from .side_effect import SideEffectOutcome
from .template_match import MatchResult, TemplateMatch
from .token_resolution import TokenResolution

__all__ = [
    "AccessDecision",
    "CacheLookup",
    "DenialKind",
    "MatchResult",
    "ProxyResult",
    "SessionStatus",
    "SideEffectOutcome",
    "TemplateMatch",
    "TokenResolution",
]
