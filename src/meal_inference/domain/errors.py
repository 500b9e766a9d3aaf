"""Error taxonomy for the inference pipeline."""


class InferenceError(Exception):
    """Base class for pipeline failures."""

    retryable = False


class TransportError(InferenceError):
    """Network failure or timeout talking to a remote dependency."""

    retryable = True


class RateLimited(InferenceError):
    """The model provider asked us to slow down."""

    retryable = True

    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class RequestRejected(InferenceError):
    """Permanent rejection of a request, such as malformed media or bad credentials."""


class MalformedResponse(InferenceError):
    """Model output could not be parsed even after balanced-brace repair."""


class ValidationFailure(InferenceError):
    """Model output parsed but is missing required fields."""


class DependencyUnavailable(InferenceError):
    """A guarded dependency is short-circuited by its breaker."""
