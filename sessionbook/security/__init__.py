"""Security package for sessionbook."""

from sessionbook.security.config import (
    auth_rate_limit,
    configure_security_headers,
    reservation_rate_limit,
    validate_input_length,
)

__all__ = [
    'auth_rate_limit',
    'configure_security_headers',
    'reservation_rate_limit',
    'validate_input_length',
]
