"""Custom exception types for the email assistant.

Error messages follow one convention throughout the project:
- What failed (specific operation or component)
- Why it failed (the specific condition)
- How to fix it (actionable guidance, where there is any)
"""


class AssistantError(Exception):
    """Base exception for all email assistant errors."""

    pass


class ConfigValidationError(AssistantError):
    """Raised when config.yaml fails Pydantic validation.

    Includes specific field errors with actionable messages.
    """

    pass


class ConfigLoadError(AssistantError):
    """Raised when config.yaml cannot be loaded (unreadable file, YAML parse error)."""

    pass


class AuthenticationError(AssistantError):
    """Raised when provider tokens cannot be acquired or refreshed."""

    pass


class ProviderError(AssistantError):
    """Raised when a mail provider call fails.

    Attributes:
        status_code: HTTP status code from the provider (if any)
        error_code: Provider-specific error code (if available)
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_code: str | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error_code = error_code


class MessageNotFoundError(ProviderError):
    """Raised when a message no longer exists at the provider.

    The learning engine treats this as "email deleted", never as a
    correction signal.
    """

    def __init__(self, message: str, message_id: str | None = None):
        super().__init__(message, status_code=404, error_code="NotFound")
        self.message_id = message_id


class RateLimitExceeded(ProviderError):
    """Raised when provider rate limits persist after all retries."""

    def __init__(self, message: str, retry_after: str | None = None):
        super().__init__(message, status_code=429, error_code="RateLimited")
        self.retry_after = retry_after


class GenerationError(AssistantError):
    """Base class for failures of the external text-generation call.

    Attributes:
        purpose: Which call site issued the request
            ('profile_update', 'action_learning', 'classification')
    """

    def __init__(self, message: str, purpose: str = "unknown"):
        super().__init__(message)
        self.purpose = purpose


class GenerationTimeoutError(GenerationError):
    """Raised when a text-generation call exceeds its wall-clock budget.

    Attributes:
        timeout: The budget in seconds that was exceeded
    """

    def __init__(self, message: str, purpose: str = "unknown", timeout: float = 0.0):
        super().__init__(message, purpose=purpose)
        self.timeout = timeout


class GenerationProcessError(GenerationError):
    """Raised when the generator exits non-zero or the API returns an error.

    Attributes:
        exit_code: Process exit code or HTTP status (if available)
        stderr: Captured error output (truncated)
    """

    def __init__(
        self,
        message: str,
        purpose: str = "unknown",
        exit_code: int | None = None,
        stderr: str = "",
    ):
        super().__init__(message, purpose=purpose)
        self.exit_code = exit_code
        self.stderr = stderr


class ClassificationError(AssistantError):
    """Raised when an email cannot be classified.

    Attributes:
        email_id: The provider message ID that failed classification
    """

    def __init__(self, message: str, email_id: str | None = None):
        super().__init__(message)
        self.email_id = email_id


class PersistenceError(AssistantError):
    """Raised when state (profile, predictions, labels) cannot be read or written.

    This aborts the current command; in-memory changes from the run are lost.
    """

    pass


class DatabaseError(PersistenceError):
    """Raised when SQLite operations fail."""

    pass
