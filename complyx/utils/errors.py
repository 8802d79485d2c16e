"""Custom exception hierarchy for the Complyx knowledge pipeline.

All application exceptions inherit from :class:`ComplyxError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "pinecone", "rss") caused the failure.

    ComplyxError  (base -- catch-all for any pipeline error)
    +-- ValidationError     (bad metadata, bad filter, bad URL)
    +-- NotFoundError       (unknown feed id, unknown document)
    +-- TransientIOError    (network / provider failure, retry on next run)
    |   +-- FetchError      (URL, file or feed retrieval failure)
    |   +-- LLMError        (generation provider call failure)
    |   +-- RAGError        (embedding or vector-store backend failure)
    +-- ConfigurationError  (dimension mismatch, missing credentials)

Validation and not-found errors are raised before any I/O happens.
Configuration errors are fatal and never retried.
"""


class ComplyxError(Exception):
    """Base exception for all Complyx errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  ``__str__`` prefixes the provider name in brackets, e.g.
    ``[pinecone] Index not ready``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Caller errors (rejected before any I/O)
# ---------------------------------------------------------------------------

class ValidationError(ComplyxError):
    """Raised when input fails validation.

    ``errors`` lists every violation found so a caller can fix them all in
    a single pass.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        errors: list[str] | None = None,
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
        self._errors = list(errors) if errors else [message]

    @property
    def errors(self) -> list[str]:
        return list(self._errors)


class NotFoundError(ComplyxError):
    """Raised when a feed or document id does not exist."""

    def __init__(
        self,
        message: str = "Resource not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# I/O errors
# ---------------------------------------------------------------------------

class TransientIOError(ComplyxError):
    """Raised when an external call fails in a way the next run may fix."""

    def __init__(
        self,
        message: str = "External service call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class FetchError(TransientIOError):
    """Raised when a file, URL or feed cannot be retrieved or parsed."""

    def __init__(
        self,
        message: str = "Content fetch failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class LLMError(TransientIOError):
    """Raised when a chat completion or streaming call fails."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class RAGError(TransientIOError):
    """Raised when an embedding or vector-store backend operation fails."""

    def __init__(
        self,
        message: str = "RAG operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Fatal errors
# ---------------------------------------------------------------------------

class ConfigurationError(ComplyxError):
    """Raised when required configuration is missing or inconsistent."""

    def __init__(
        self,
        message: str = "Invalid or missing configuration",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
