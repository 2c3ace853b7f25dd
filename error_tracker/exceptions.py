"""
Exception types shared across the error tracker.
"""


class UserError(Exception):
    """
    A predictable, user-facing failure such as a validation error.

    Raising it from a handler sends the message back to the user verbatim.
    It is never fingerprinted, stored or forwarded to the operator channel.

    Example:
        if balance < amount:
            raise UserError("You do not have enough funds for this transaction.")
    """

    expected = True

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ErrorStoreError(Exception):
    """Raised when an error store operation fails."""
    pass


class StoreConnectionError(ErrorStoreError):
    """Raised when the store backend cannot be reached after retries."""
    pass


class NotificationError(Exception):
    """Raised when the operator channel rejects or cannot receive a message."""
    pass
