"""Error taxonomy for ledger operations.

Service functions raise these; the Flask error handlers registered in
``create_app`` turn them into ``{"error": message}`` JSON responses.
Invite acceptance is the exception: its expected failures are returned as a
structured result instead of being raised.
"""


class LedgerError(Exception):
    status_code = 500
    default_message = 'Something went wrong, please try again'

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(LedgerError):
    status_code = 401
    default_message = 'You must sign in'


class AuthorizationError(LedgerError):
    # Also used for unknown games so existence is never revealed
    status_code = 403
    default_message = 'Access denied'


class NotFoundError(LedgerError):
    status_code = 404
    default_message = 'Not found'


class ConflictError(LedgerError):
    status_code = 409
    default_message = 'Conflict'


class ValidationError(LedgerError):
    status_code = 400
    default_message = 'Invalid input'
