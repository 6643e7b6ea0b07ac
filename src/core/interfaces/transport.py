"""Contrato de transporte BWS.

Por qué Protocol:
- Define un contrato estructural (duck typing) sin herencia rígida.
- gRPC y REST son estrategias intercambiables seleccionadas en runtime
  (`--rest`), sin condicionales repartidos por los call sites.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from core.domain.models import (
    CallDeadline,
    DeleteTemplateRequest,
    FaceClassCountRequest,
    FaceEnrollmentRequest,
    FaceSearchRequest,
    FaceTemplateStatusRequest,
    FaceVerificationRequest,
    HealthReport,
    LivenessDetectionRequest,
    OperationResult,
    PhotoVerifyRequest,
    SetTemplateTagsRequest,
    VideoLivenessDetectionRequest,
)


@runtime_checkable
class BwsTransport(Protocol):
    """One coroutine per BWS operation, identical semantics on every transport.

    Rules:
    - Implementations raise their native errors (grpc.RpcError, httpx errors);
      classification happens at the dispatcher's call boundary.
    - `deadline` is None when the call has no client-imposed deadline.
    - Used as an async context manager so the channel/client is always released.
    """

    name: str

    async def __aenter__(self) -> "BwsTransport": ...

    async def __aexit__(self, *exc_info: object) -> None: ...

    async def aclose(self) -> None: ...

    async def health_check(self, deadline: CallDeadline | None = None) -> HealthReport: ...

    async def live_detection(
        self, request: LivenessDetectionRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def video_live_detection(
        self, request: VideoLivenessDetectionRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def photo_verify(
        self, request: PhotoVerifyRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def enroll(
        self, request: FaceEnrollmentRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def verify(
        self, request: FaceVerificationRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def search(
        self, request: FaceSearchRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def set_template_tags(
        self, request: SetTemplateTagsRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def get_template_status(
        self, request: FaceTemplateStatusRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def get_class_count(
        self, request: FaceClassCountRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...

    async def delete_template(
        self, request: DeleteTemplateRequest, deadline: CallDeadline | None = None
    ) -> OperationResult: ...
