"""
Logging filters: API key masking and correlation id stamping
"""

import re
import logging
from typing import List

from app.core.correlation import get_correlation_id


class SensitiveDataFilter(logging.Filter):
    """
    Masks model provider keys and other secrets in log records

    Provider error messages often echo the key that was rejected, and those
    messages are logged by the generation client.
    """

    SENSITIVE_PATTERNS: List[str] = [
        r'(api[_-]?key)["\']?\s*[:=]\s*["\']?[\w-]{10,}',
        r'(password)["\']?\s*[:=]\s*["\']?[\w-]{8,}',
        r'(bearer\s+)[\w.-]{10,}',
        r'(sk-ant-)[\w-]{20,}',  # Anthropic
        r'(sk-)(?!ant-)[\w-]{20,}',  # OpenAI
        r'(AIza)[\w-]{35}',  # Google
        r'(redis://[^:@/\s]*:)[^@\s]+',  # password in a Redis URL
    ]

    def __init__(self):
        super().__init__()
        self.compiled_patterns = [
            re.compile(pattern, re.IGNORECASE)
            for pattern in self.SENSITIVE_PATTERNS
        ]

    def filter(self, record: logging.LogRecord) -> bool:
        if record.msg:
            record.msg = self._sanitize_string(str(record.msg))

        if isinstance(record.args, tuple):
            record.args = tuple(
                self._sanitize_string(arg) if isinstance(arg, str) else arg
                for arg in record.args
            )

        if record.exc_text:
            record.exc_text = self._sanitize_string(record.exc_text)

        return True

    def _sanitize_string(self, text: str) -> str:
        sanitized = text
        for pattern in self.compiled_patterns:
            sanitized = pattern.sub(r'\1***REDACTED***', sanitized)
        return sanitized


class CorrelationIdFilter(logging.Filter):
    """Adds the active correlation id to every record as ``correlation_id``"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = get_correlation_id() or "-"
        return True


def setup_secure_logging() -> None:
    """
    Install the filters on the root handlers and on the loggers that see
    provider keys

    Call once at startup, after logging.basicConfig.
    """
    sensitive_filter = SensitiveDataFilter()
    correlation_filter = CorrelationIdFilter()

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        handler.addFilter(sensitive_filter)
        handler.addFilter(correlation_filter)

    sensitive_loggers = [
        'app.core.config',
        'app.core.llm_providers',
        'app.core.generation',
        'GenerationClient',
        'ChatModelPool',
        'uvicorn',
        'uvicorn.access',
        'uvicorn.error'
    ]

    for logger_name in sensitive_loggers:
        logging.getLogger(logger_name).addFilter(sensitive_filter)

    logging.getLogger(__name__).info("Secure logging filter configured")
