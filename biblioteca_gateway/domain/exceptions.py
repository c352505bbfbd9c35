"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class ValidationError(DomainException):
    """Malformed input: bad penalty days, empty reason, invalid policy values"""

    pass


class NotFoundError(DomainException):
    """Referenced loan, book or user does not exist"""

    pass


class ForbiddenError(DomainException):
    """Caller lacks the role required for the operation"""

    pass


class BlobStoreError(DomainException):
    """File storage service failed or is unavailable"""

    pass


class NotificationError(DomainException):
    """Notification could not be delivered"""

    pass
