class ChatError(Exception):
    """Base class for failures handled at the intent boundary."""

    reason = "error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.reason)
        self.message = message or self.reason


class ValidationError(ChatError):
    """Intent payload is malformed or missing fields."""

    reason = "invalid payload"


class NotFoundError(ChatError):
    """A referenced chat, message or user does not exist."""

    reason = "not found"


class StoreError(ChatError):
    """Persistence failed or stored data could not be decoded."""

    reason = "store failure"


class PolicyError(ChatError):
    """The intent is well formed but not allowed, e.g. hard-deleting a broadcast chat."""

    reason = "not allowed"
