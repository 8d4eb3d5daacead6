"""
Error taxonomy for bracket operations.

Every error carries a user-facing message; the Flask layer turns them into
JSON responses using ``status_code``.
"""


class TournamentError(Exception):
    status_code = 400

    def __init__(self, message, field_errors=None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors or {}

    def to_dict(self):
        data = {'error': self.message}
        if self.field_errors:
            data['field_errors'] = self.field_errors
        return data


class ValidationError(TournamentError):
    """Malformed input."""
    status_code = 400


class StateConflict(TournamentError):
    """Operation is not legal in the current tournament or match state."""
    status_code = 409


class SeedingIncomplete(ValidationError, StateConflict):
    """Manual seeds are missing or do not form a permutation of 1..N."""


class AuthorizationError(TournamentError):
    status_code = 403


class NotFound(TournamentError):
    status_code = 404


class CollaboratorFailure(TournamentError):
    """A rating engine or match store call failed."""
    status_code = 502
