import logging

from intent_gateway.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging for the gateway process."""
    logging.basicConfig(level=(level or settings.log_level).upper(), format=LOG_FORMAT)
