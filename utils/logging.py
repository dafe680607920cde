import logging
import sys
from typing import Iterable, Optional

# Client libraries that log every request at INFO/DEBUG
_NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "httpx", "httpcore", "aiosmtplib")


def setup_logging(level: Optional[str] = "INFO", quiet: Iterable[str] = _NOISY_LOGGERS) -> None:
    """
    Configure application-wide logging.
    Uses a concise formatter compatible with Uvicorn's style and keeps storage,
    HTTP and SMTP client chatter at WARNING.
    """
    log_level = getattr(logging, str(level).upper(), logging.INFO)
    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Clear existing handlers to avoid duplicates in reloads
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
