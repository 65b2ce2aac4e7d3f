"""Failure conditions reported back to the originating connection."""


class ChatError(Exception):
    """Base class. ``message`` is safe to send to the client."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotAuthenticated(ChatError):
    def __init__(self, message: str = "User not authenticated"):
        super().__init__(message)


class StoreUnavailable(ChatError):
    def __init__(self, message: str = "Chat store unavailable"):
        super().__init__(message)


class BusUnavailable(ChatError):
    def __init__(self, message: str = "Event bus unavailable"):
        super().__init__(message)


class InvalidInput(ChatError):
    pass
