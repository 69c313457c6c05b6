import logging, os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DEFAULT_LEVEL = os.getenv("CLASSTRACK_LOG_LEVEL", "INFO").upper()

def setup_logging():
    # Configure root once
    logging.basicConfig(level=getattr(logging, _DEFAULT_LEVEL, logging.INFO), format=LOG_FORMAT)

    logger = logging.getLogger("classtrack")
    logger.setLevel(getattr(logging, _DEFAULT_LEVEL, logging.INFO))
    return logger

def get_logger(name: str | None = None) -> logging.Logger:
    base = logging.getLogger("classtrack")
    return base.getChild(name) if name else base

logger = setup_logging()
