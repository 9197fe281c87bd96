"""Error taxonomy for the relay engine.

Every error a client can trigger derives from :class:`ChatError` and carries a
stable ``code`` that is sent back in the ``error`` frame next to the
human-readable message.
"""


class ChatError(Exception):
    code = "error"
    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationFailed(ChatError):
    code = "validation_error"
    default_message = "Invalid request"


class InvalidNickname(ValidationFailed):
    code = "invalid_nickname"
    default_message = "Nickname must be between 3 and 20 characters"


class EmptyMessage(ValidationFailed):
    code = "empty_message"
    default_message = "Message must contain text, an image or audio"


class ConflictError(ChatError):
    code = "conflict"


class NicknameTaken(ConflictError):
    code = "nickname_taken"
    default_message = "Nickname already exists"


class AuthError(ChatError):
    code = "auth_error"


class InvalidCredential(AuthError):
    code = "invalid_credential"
    default_message = "Invalid credentials"


class NotAuthenticated(AuthError):
    code = "not_authenticated"
    default_message = "Not authenticated"


class AlreadyAuthenticated(AuthError):
    code = "already_authenticated"
    default_message = "Already authenticated"


class NotFoundError(ChatError):
    code = "not_found"


class UserNotFound(NotFoundError):
    code = "user_not_found"
    default_message = "User not found"


class UnknownRecipient(NotFoundError):
    code = "unknown_recipient"
    default_message = "Recipient not found"


class MalformedFrame(ChatError):
    code = "malformed_frame"
    default_message = "Server error: malformed request"


class ServerError(ChatError):
    code = "server_error"
    default_message = "Server error"


class PersistenceError(Exception):
    """Snapshot read or write failure. Logged, never sent to clients."""
