import re
import logging
from typing import Pattern, List, Tuple


class SecretRedactionFilter(logging.Filter):
    """
    Logging filter that masks secrets before log records are written.

    Room host keys are the only credential a host holds, so any log line that
    carries one (for example a dumped room item) gets the value replaced.
    """

    SECRET_PATTERNS: List[Tuple[Pattern, str]] = [
        # hostKey in dict reprs, JSON and key=value pairs
        (
            re.compile(
                r'''(["']?host_?key["']?\s*[:=]\s*["']?)[A-Za-z0-9]+''',
                re.IGNORECASE
            ),
            r'\1[HOST_KEY_REDACTED]'
        ),

        # AWS Access Keys (AKIA... format, 20 chars)
        (
            re.compile(
                r'\b(AKIA[0-9A-Z]{16})\b'
            ),
            '[AWS_KEY_REDACTED]'
        ),

        # AWS secret access key in key/value form
        (
            re.compile(
                r'(aws_secret_access_key["\s:=]+)[A-Za-z0-9/+=]{40}',
                re.IGNORECASE
            ),
            r'\1[AWS_SECRET_REDACTED]'
        ),

        # Bearer tokens in Authorization headers
        (
            re.compile(
                r'\bBearer\s+[A-Za-z0-9_.-]{20,}',
                re.IGNORECASE
            ),
            'Bearer [TOKEN_REDACTED]'
        ),
    ]

    def __init__(self, name: str = ""):
        super().__init__(name)
        self._redaction_count = 0

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact the formatted message in place. Always lets the record through."""
        original_msg = record.getMessage()
        redacted_msg = redact_secrets(original_msg)

        # Update the record's message and args to prevent re-formatting issues
        if redacted_msg != original_msg:
            self._redaction_count += 1
            record.msg = redacted_msg
            record.args = ()

        return True

    def get_redaction_count(self) -> int:
        return self._redaction_count

    def reset_count(self) -> None:
        self._redaction_count = 0


def redact_secrets(text: str) -> str:
    """Apply every redaction pattern to ``text``."""
    if not text:
        return text
    redacted = text
    for pattern, replacement in SecretRedactionFilter.SECRET_PATTERNS:
        redacted = pattern.sub(replacement, redacted)
    return redacted
