import os
from dataclasses import dataclass, field
from functools import lru_cache

import redis.asyncio as redis
from dotenv import load_dotenv

load_dotenv()


def _parse_users(raw: str) -> dict[str, str]:
    """Parse ``user:password`` pairs separated by commas."""
    users: dict[str, str] = {}
    for pair in raw.split(","):
        user_id, _, password = pair.strip().partition(":")
        if user_id and password:
            users[user_id] = password
    return users


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment variables."""

    # Redis
    redis_url: str = os.getenv("REDIS_URL", "redis://localhost:6379")
    redis_password: str | None = os.getenv("REDIS_PASSWORD")

    # Sessions
    session_ttl: int = int(os.getenv("SESSION_TTL", "1800"))  # 30 minutes
    token_length: int = int(os.getenv("TOKEN_LENGTH", "16"))
    demo_users: dict[str, str] = field(
        default_factory=lambda: _parse_users(
            os.getenv("DEMO_USERS", "demo1:pass1,demo2:pass2,demo3:pass3")
        )
    )

    # Semantic cache
    cache_ttl: int = int(os.getenv("CACHE_TTL", "21600"))  # 6 hours
    cache_max_entries: int = int(os.getenv("CACHE_MAX_ENTRIES", "3"))
    cache_similarity_threshold: float = float(os.getenv("CACHE_SIMILARITY_THRESHOLD", "0.85"))

    # Template matching
    match_threshold: float = float(os.getenv("MATCH_THRESHOLD", "0.75"))
    conflict_threshold: float = float(os.getenv("CONFLICT_THRESHOLD", "0.9"))
    description_conflict_threshold: float = float(
        os.getenv("DESCRIPTION_CONFLICT_THRESHOLD", "0.85")
    )

    # Access control
    expiry_warning_days: int = int(os.getenv("EXPIRY_WARNING_DAYS", "7"))

    # Upstream
    upstream_base_url: str = os.getenv("UPSTREAM_BASE_URL", "http://localhost:9000")
    upstream_timeout: float = float(os.getenv("UPSTREAM_TIMEOUT", "30"))

    # API
    api_host: str = os.getenv("API_HOST", "0.0.0.0")
    api_port: int = int(os.getenv("API_PORT", "8000"))
    api_reload: bool = os.getenv("API_RELOAD", "true").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    def __post_init__(self) -> None:
        """Validate settings after initialization."""
        for name in (
            "cache_similarity_threshold",
            "match_threshold",
            "conflict_threshold",
            "description_conflict_threshold",
        ):
            value = getattr(self, name)
            if not 0 <= value <= 1:
                raise ValueError(f"{name.upper()} must be between 0 and 1, got {value}")

        if self.conflict_threshold < self.match_threshold:
            raise ValueError("CONFLICT_THRESHOLD must not be lower than MATCH_THRESHOLD")

        if self.cache_max_entries < 1:
            raise ValueError("CACHE_MAX_ENTRIES must be at least 1")

        if self.session_ttl <= 0:
            raise ValueError("SESSION_TTL must be positive")


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


# Global settings instance
settings = get_settings()


def get_redis_client() -> redis.Redis:
    """Create an asyncio Redis client instance."""
    return redis.from_url(
        settings.redis_url,
        password=settings.redis_password,
        decode_responses=True,
    )
