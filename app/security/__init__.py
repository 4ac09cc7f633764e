"""
Security module for log hygiene.
"""
from app.security.secret_redactor import (
    SecretRedactionFilter,
    redact_secrets
)

__all__ = [
    'SecretRedactionFilter',
    'redact_secrets'
]
