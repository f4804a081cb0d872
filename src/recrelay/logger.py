"""
Logging configuration for recrelay
"""

import logging
import re
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Vendor download URLs are presigned; their query strings are credentials
_URL_QUERY_RE = re.compile(r"(https?://[^\s?\"']+)\?[^\s\"']+")

_NOISY_LOGGERS = ("requests", "urllib3", "botocore", "boto3", "s3transfer")


def redact_url(text: str) -> str:
    """Replace the query string of every URL in `text` with a placeholder"""
    return _URL_QUERY_RE.sub(r"\1?<redacted>", text)


class RedactQueryStrings(logging.Filter):
    """Strip URL query strings from log records before they are emitted"""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_url(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """
    Configure logging for the application

    The stderr handler also carries uvicorn's records when the server is
    started with `log_config=None`.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        verbose: Enable verbose logging (DEBUG level)
    """
    if verbose:
        level = "DEBUG"

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(RedactQueryStrings())
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[handler],
    )

    for noisy in _NOISY_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
