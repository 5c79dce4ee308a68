import hashlib
import logging

import structlog


def configure_logging(level: int = logging.INFO):
    logging.basicConfig(level=level, format="%(message)s")
    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
    )

    # passlib checks optional backends on first use and logs about it
    logging.getLogger("passlib").setLevel(logging.ERROR)
    logging.getLogger("passlib.handlers").setLevel(logging.ERROR)


def get_logger(name: str | None = None):
    if not structlog.is_configured():
        configure_logging()
    return structlog.get_logger(name)


def token_ref(value: str | None) -> str | None:
    """Short, log-safe reference to a token value (never log the whole thing)."""
    if not value:
        return None
    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:12]
    head = value.split("_", 2)
    if len(head) >= 3:
        return f"{head[0]}_{head[1]}:{digest}"
    return digest
