"""Security configuration and middleware."""

from flask import abort, request


MAX_REQUEST_BYTES = 1024 * 1024


def configure_security_headers(app):
    """Configure security headers."""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        # Prevent MIME type sniffing
        response.headers['X-Content-Type-Options'] = 'nosniff'

        # Prevent clickjacking
        response.headers['X-Frame-Options'] = 'DENY'

        # Control referrer information
        response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'

        # The API only serves JSON; nothing should be embedded or executed
        response.headers['Content-Security-Policy'] = "default-src 'none'; frame-ancestors 'none'"

        # Booking state changes constantly
        if request.path.startswith('/api/'):
            response.headers.setdefault('Cache-Control', 'no-store')

        # HSTS for HTTPS (only add if using HTTPS)
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        return response

    return app


def validate_input_length(app):
    """Middleware to validate request payload size."""
    @app.before_request
    def limit_request_size():
        if request.content_length and request.content_length > MAX_REQUEST_BYTES:
            abort(413)  # Payload Too Large

    return app


def auth_rate_limit():
    """Rate limit for authentication endpoints."""
    return "5 per minute"


def reservation_rate_limit():
    """Rate limit for reserving spots."""
    return "30 per minute"


__all__ = [
    'configure_security_headers',
    'validate_input_length',
    'auth_rate_limit',
    'reservation_rate_limit',
]
