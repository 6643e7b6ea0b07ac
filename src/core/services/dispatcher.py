"""Operation dispatch.

The dispatcher is the call boundary of an invocation: it starts the per-call
deadline, invokes the selected transport strategy and turns whatever the
transport raises into the shared error taxonomy. It keeps no state between
operations.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Awaitable, Callable, Protocol, TypeVar

from core.domain.models import BwsModel, CallDeadline, ConnectionContext, HealthReport, OperationResult
from core.errors import BwsCliError, UnexpectedError
from core.interfaces.transport import BwsTransport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Operation(str, Enum):
    """Logical BWS operations, valued by their CLI sub-command."""

    HEALTH_CHECK = "healthcheck"
    LIVE_DETECTION = "livedetect"
    VIDEO_LIVE_DETECTION = "videolivedetect"
    PHOTO_VERIFY = "photoverify"
    ENROLL = "enroll"
    VERIFY = "verify"
    SEARCH = "search"
    SET_TAGS = "settags"
    GET_TEMPLATE_STATUS = "gettemplate"
    GET_CLASS_COUNT = "classcount"
    DELETE_TEMPLATE = "deletetemplate"

    @property
    def method(self) -> str:
        """Name of the `BwsTransport` coroutine implementing the operation."""

        return _METHODS[self]


_METHODS: dict[Operation, str] = {
    Operation.HEALTH_CHECK: "health_check",
    Operation.LIVE_DETECTION: "live_detection",
    Operation.VIDEO_LIVE_DETECTION: "video_live_detection",
    Operation.PHOTO_VERIFY: "photo_verify",
    Operation.ENROLL: "enroll",
    Operation.VERIFY: "verify",
    Operation.SEARCH: "search",
    Operation.SET_TAGS: "set_template_tags",
    Operation.GET_TEMPLATE_STATUS: "get_template_status",
    Operation.GET_CLASS_COUNT: "get_class_count",
    Operation.DELETE_TEMPLATE: "delete_template",
}


class ErrorClassifier(Protocol):
    def __call__(self, failure: BaseException) -> BwsCliError: ...


class OperationDispatcher:
    """Runs one operation through a transport strategy.

    Per call: Pending -> InFlight -> Succeeded(result) | TransportFailed(error).
    A FAULTED job status is a successful call; callers inspect `result.status`.
    """

    def __init__(
        self,
        transport: BwsTransport,
        context: ConnectionContext,
        *,
        classify: ErrorClassifier,
    ) -> None:
        self._transport = transport
        self._context = context
        self._classify = classify

    async def health_check(self) -> HealthReport:
        return await self._call(Operation.HEALTH_CHECK, self._transport.health_check)

    async def execute(self, operation: Operation, request: BwsModel) -> OperationResult:
        if operation is Operation.HEALTH_CHECK:
            raise ValueError("Use health_check() for the health checks")
        method = getattr(self._transport, operation.method)
        return await self._call(operation, lambda deadline: method(request, deadline))

    async def _call(
        self,
        operation: Operation,
        invoke: Callable[[CallDeadline | None], Awaitable[T]],
    ) -> T:
        # The deadline is anchored when the call starts, not when the client was built.
        deadline = self._context.start_deadline()
        logger.debug(
            "%s via %s (deadline: %s)",
            operation.value,
            self._transport.name,
            f"{deadline.millis} ms" if deadline else "none",
        )
        try:
            return await invoke(deadline)
        except Exception as exc:
            error = self._classify(exc)
            if isinstance(error, UnexpectedError) or error is exc:
                raise
            raise error from exc
