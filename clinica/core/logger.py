import logging
import sys

from clinica.core.config import settings


def resolve_level(level=None, environment=None) -> int:
    """Explicit LOG_LEVEL wins; otherwise debug output only outside production."""
    level = level if level is not None else settings.LOG_LEVEL
    environment = environment if environment is not None else settings.ENVIRONMENT
    if level:
        value = logging.getLevelName(level.upper())
        return value if isinstance(value, int) else logging.INFO
    return logging.INFO if environment == "production" else logging.DEBUG


def setup_logging(name: str = "clinica", level=None) -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(resolve_level(level))

    # Scripts and the app both import this module; keep a single stdout handler
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)

    return logger

logger = setup_logging()
