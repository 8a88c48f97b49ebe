"""Error taxonomy for push notification dispatch.

Transport failures are classified from the raw gateway signal into
``ServerUnavailableError``, ``UnauthorizedError`` and ``InvalidRequestError``.
Every transport error can be rewritten into the response mapping persisted
on the notification record.
"""

from __future__ import annotations

from numbers import Integral

__all__ = [
    "InvalidRequestError",
    "PersistenceError",
    "PublishError",
    "PushDispatchError",
    "QueueClosedError",
    "RecordNotFoundError",
    "ServerUnavailableError",
    "TransportConfigurationError",
    "TransportError",
    "TransportStatusError",
    "UnauthorizedError",
    "ValidationError",
    "WorkerConfigurationError",
    "classify_transport_error",
    "error_response",
]


class PushDispatchError(Exception):
    """Base exception for all push-dispatch errors."""


class ValidationError(PushDispatchError):
    """Raised when a notification request is missing or has invalid recipients."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        """Initialize ValidationError.

        Args:
            message: Error message
            errors: Field-level validation messages
        """
        super().__init__(message)
        self.errors: list[str] = errors or []


class TransportStatusError(Exception):
    """Raw numeric failure signal raised by a push transport.

    This is the unclassified gateway status, not part of the public
    taxonomy; the dispatch engine classifies it.
    """

    def __init__(self, status_code: int, body: object = None) -> None:
        super().__init__(f"Push gateway responded with status {status_code}")
        self.status_code: int = status_code
        self.body: object = body


class TransportError(PushDispatchError):
    """Classified transport failure persisted on the record response."""

    default_message: str = "Push gateway error"
    default_status: str = "Unknown Error"

    def __init__(
        self,
        message: str | None = None,
        *,
        code: int | None = None,
        status: str | None = None,
    ) -> None:
        """Initialize TransportError.

        Args:
            message: Error message (defaults to the class message)
            code: Numeric gateway status code, if any
            status: Human-readable classification
        """
        self.message: str = message or self.default_message
        super().__init__(self.message)
        self.code: int | None = code
        self.status: str = status or self.default_status

    def to_response(self) -> dict[str, object]:
        """Rewrite the error into the response mapping stored on the record."""
        return {"code": self.code, "message": self.message, "status": self.status}


class ServerUnavailableError(TransportError):
    """Gateway returned a 5xx status."""

    default_message = "Push gateway server unavailable"
    default_status = "Internal Server Error"


class UnauthorizedError(TransportError):
    """Gateway rejected the API credential."""

    default_message = "Unauthorized (401). Check that your API key is correct."
    default_status = "Unauthorized"


class InvalidRequestError(TransportError):
    """Gateway rejected the request as malformed."""

    default_message = "Invalid Request"
    default_status = "Invalid Request"


class RecordNotFoundError(PushDispatchError):
    """Raised by the queue worker when a job references a missing record."""

    def __init__(self, record_id: str) -> None:
        super().__init__(f"Notification with id {record_id} does not exist")
        self.record_id: str = record_id


class PersistenceError(PushDispatchError):
    """Raised when the record store fails to create, read or save."""

    def __init__(self, message: str, record_id: str | None = None) -> None:
        super().__init__(message)
        self.record_id: str | None = record_id


class PublishError(PushDispatchError):
    """Raised when a job for a record cannot be published to the work queue."""

    def __init__(self, record_id: str, queue_name: str) -> None:
        super().__init__(f"Failed to publish notification {record_id} to queue {queue_name!r}")
        self.record_id: str = record_id
        self.queue_name: str = queue_name


class QueueClosedError(PushDispatchError):
    """Raised when publishing to a work queue that has been shut down."""


class WorkerConfigurationError(PushDispatchError):
    """Raised when the queue worker cannot start with its current bindings."""


class TransportConfigurationError(PushDispatchError):
    """Raised when a live dispatch is attempted without a push transport."""


def classify_transport_error(error: BaseException | int) -> BaseException:
    """Classify a raw transport failure signal.

    Numeric codes (bare integers or ``TransportStatusError``) are mapped as:

    - ``>= 500``: ``ServerUnavailableError``
    - ``== 401``: ``UnauthorizedError``
    - any other code not in {200, 401} and ``<= 500``: ``InvalidRequestError``

    Opaque errors and already classified errors are returned unchanged.

    Args:
        error: Exception raised by the transport, or a bare status code

    Returns:
        The classified error
    """
    if isinstance(error, TransportStatusError):
        code: int = error.status_code
    elif isinstance(error, Integral) and not isinstance(error, bool):
        code = int(error)
    else:
        return error  # pyright: ignore[reportReturnType]  # narrowed to BaseException

    if code >= 500:
        classified: BaseException = ServerUnavailableError(code=code)
    elif code == 401:
        classified = UnauthorizedError(code=code)
    elif code != 200:
        classified = InvalidRequestError(code=code)
    else:
        classified = TransportError(f"Unexpected gateway status {code}", code=code)

    if isinstance(error, BaseException):
        classified.__cause__ = error
    return classified


def error_response(error: BaseException) -> dict[str, object]:
    """Build the ``{code, message, status}`` response for any send error."""
    if isinstance(error, TransportError):
        return error.to_response()
    code = getattr(error, "code", None)
    return {
        "code": code if isinstance(code, int) else None,
        "message": str(error) or type(error).__name__,
        "status": type(error).__name__,
    }
