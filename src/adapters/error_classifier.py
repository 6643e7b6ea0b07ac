"""Maps transport-native failures onto the shared error taxonomy.

gRPC reports a status code plus detail text and trailers; httpx reports an
HTTP status with a body, or a local exception (timeout, connection refused).
Both end up as `TransportError` with the native diagnostic preserved.
"""

from __future__ import annotations

import grpc
import httpx

from core.domain.models import merge_metadata
from core.errors import BwsCliError, TransportError, TransportErrorKind, UnexpectedError

_GRPC_KINDS: dict[grpc.StatusCode, TransportErrorKind] = {
    grpc.StatusCode.UNAUTHENTICATED: TransportErrorKind.UNAUTHENTICATED,
    grpc.StatusCode.PERMISSION_DENIED: TransportErrorKind.PERMISSION_DENIED,
    grpc.StatusCode.DEADLINE_EXCEEDED: TransportErrorKind.DEADLINE_EXCEEDED,
    grpc.StatusCode.UNAVAILABLE: TransportErrorKind.UNAVAILABLE,
    grpc.StatusCode.INVALID_ARGUMENT: TransportErrorKind.INVALID_ARGUMENT,
    grpc.StatusCode.NOT_FOUND: TransportErrorKind.NOT_FOUND,
}

_HTTP_KINDS: dict[int, TransportErrorKind] = {
    400: TransportErrorKind.INVALID_ARGUMENT,
    401: TransportErrorKind.UNAUTHENTICATED,
    403: TransportErrorKind.PERMISSION_DENIED,
    404: TransportErrorKind.NOT_FOUND,
    408: TransportErrorKind.DEADLINE_EXCEEDED,
    422: TransportErrorKind.INVALID_ARGUMENT,
    502: TransportErrorKind.UNAVAILABLE,
    503: TransportErrorKind.UNAVAILABLE,
    504: TransportErrorKind.DEADLINE_EXCEEDED,
}


def classify(failure: BaseException) -> BwsCliError:
    """Return the taxonomy error for `failure`.

    Already classified errors pass through; anything unknown becomes an
    `UnexpectedError`, which callers must re-raise.
    """

    if isinstance(failure, BwsCliError):
        return failure
    if isinstance(failure, grpc.RpcError):
        return classify_rpc_error(failure)
    if isinstance(failure, httpx.HTTPStatusError):
        return classify_http_status(failure.response)
    if isinstance(failure, httpx.TimeoutException):
        return TransportError(
            TransportErrorKind.DEADLINE_EXCEEDED,
            native_code=type(failure).__name__,
            detail=str(failure) or "The request timed out.",
        )
    if isinstance(failure, httpx.TransportError):
        return TransportError(
            TransportErrorKind.UNAVAILABLE,
            native_code=type(failure).__name__,
            detail=str(failure),
        )
    return UnexpectedError(failure)


def classify_rpc_error(error: grpc.RpcError) -> TransportError:
    code = error.code() if hasattr(error, "code") else grpc.StatusCode.UNKNOWN
    detail = error.details() if hasattr(error, "details") else str(error)
    trailers = error.trailing_metadata() if hasattr(error, "trailing_metadata") else None
    code = code or grpc.StatusCode.UNKNOWN
    return TransportError(
        _GRPC_KINDS.get(code, TransportErrorKind.OTHER),
        native_code=code.name,
        detail=detail or "",
        metadata=merge_metadata(trailers),
    )


def classify_http_status(response: httpx.Response) -> TransportError:
    try:
        body = response.text
    except httpx.ResponseNotRead:
        body = ""
    return TransportError(
        _HTTP_KINDS.get(response.status_code, TransportErrorKind.OTHER),
        native_code=f"{response.status_code} {response.reason_phrase}".strip(),
        detail=body.strip(),
        metadata=merge_metadata(response.headers.multi_items()),
    )
