"""Error taxonomy shared by both transports.

Every failure the CLI reports maps onto one of these classes, each carrying
its exit code. A FAULTED/CANCELLED job status is not an error: it travels as
ordinary data inside `OperationResult`.
"""

from __future__ import annotations

from enum import Enum

from core.domain.models import Metadata

EXIT_OK = 0
EXIT_TRANSPORT = 1
EXIT_VALIDATION = 2


class BwsCliError(Exception):
    """Base class for classified failures."""

    exit_code = EXIT_TRANSPORT
    category = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(BwsCliError):
    """Local precondition violated; no network call was attempted."""

    exit_code = EXIT_VALIDATION
    category = "validation"


class InvalidRequest(ValidationError):
    pass


class InvalidEndpoint(ValidationError):
    pass


class MissingInputFile(ValidationError):
    pass


class AuthenticationError(BwsCliError):
    """The bearer token could not be built; no network call was attempted."""

    exit_code = EXIT_VALIDATION
    category = "authentication"


class InvalidKeyEncoding(AuthenticationError):
    pass


class InvalidTtl(AuthenticationError):
    pass


class TransportErrorKind(str, Enum):
    UNAUTHENTICATED = "Unauthenticated"
    PERMISSION_DENIED = "PermissionDenied"
    DEADLINE_EXCEEDED = "DeadlineExceeded"
    UNAVAILABLE = "Unavailable"
    INVALID_ARGUMENT = "InvalidArgument"
    NOT_FOUND = "NotFound"
    OTHER = "Other"


class TransportError(BwsCliError):
    """Failure reported by the transport (gRPC status or non-2xx HTTP status).

    `native_code` and `detail` keep the transport's own diagnostic, e.g.
    `UNAUTHENTICATED` / `"invalid token"` or `401 Unauthorized` / body text.
    """

    exit_code = EXIT_TRANSPORT
    category = "transport"

    def __init__(
        self,
        kind: TransportErrorKind,
        *,
        native_code: str,
        detail: str = "",
        metadata: Metadata | None = None,
    ) -> None:
        super().__init__(f"{native_code} - '{detail}'")
        self.kind = kind
        self.native_code = native_code
        self.detail = detail
        self.metadata: Metadata = metadata or {}


class UnexpectedError(BwsCliError):
    """Anything the transports' own error model does not anticipate.

    Only used to report; the original exception is always re-raised.
    """

    category = "unexpected"

    def __init__(self, original: BaseException) -> None:
        super().__init__(f"{type(original).__name__}: {original}")
        self.original = original
