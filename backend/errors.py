# backend/errors.py
"""
Error taxonomy shared by the services and the HTTP layer.

Services raise these; app.py turns them into {"error": message} responses
with the attached status code. Anything else is an internal error.
"""


class PosError(Exception):
    status_code = 500

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class ValidationError(PosError):
    """Missing or malformed input."""
    status_code = 400


class NotFoundError(PosError):
    status_code = 404


class ConflictError(PosError):
    """Request is well formed but clashes with current state (stock, sales history)."""
    status_code = 400


class AuthenticationError(PosError):
    status_code = 401


class ConfigurationError(PosError):
    status_code = 500
