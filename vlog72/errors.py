"""
Domain errors raised by the service layer.

Each error carries a stable ``code`` and an HTTP status; ``main`` renders
them as ``{"code": ..., "message": ...}``.
"""


class DomainError(Exception):
    code = 'error'
    status_code = 400
    default_message = 'Request failed'

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {'code': self.code, 'message': self.message}


class NotFound(DomainError):
    code = 'not_found'
    status_code = 404
    default_message = 'Not found'


class NotOwner(DomainError):
    code = 'not_owner'
    status_code = 403
    default_message = 'Only the owner can do this'


class ItemExpired(DomainError):
    code = 'item_expired'
    status_code = 403
    default_message = 'This vlog has expired'


class NotExpired(DomainError):
    code = 'not_expired'
    status_code = 400
    default_message = "This vlog hasn't expired yet"


class AlreadyLiked(DomainError):
    code = 'already_liked'
    status_code = 409
    default_message = 'Already liked this vlog'


class NotLiked(DomainError):
    code = 'not_liked'
    status_code = 404
    default_message = 'Like not found'


class AlreadyFollowing(DomainError):
    code = 'already_following'
    status_code = 409
    default_message = 'Already following this user'


class NotFollowing(DomainError):
    code = 'not_following'
    status_code = 404
    default_message = 'Not following this user'


class ValidationError(DomainError):
    code = 'validation_error'
    status_code = 400
    default_message = 'Invalid input'
