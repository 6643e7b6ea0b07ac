"""BWS over JSON/HTTP (`--rest`).

Request bodies are the same wire dicts the gRPC transport converts to
protobuf, and responses are validated against the same models, so both
transports expose identical semantics.

Each call is bounded as a whole by its deadline (httpx timeouts only bound
single connect/read/write steps), and bodies are streamed so the receive cap
is enforced before an oversized response is held in memory.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from core.config import AppSettings
from core.domain.models import (
    BwsModel,
    CallDeadline,
    DeleteTemplateRequest,
    DeleteTemplateResponse,
    FaceClassCountRequest,
    FaceClassCountResponse,
    FaceEnrollmentRequest,
    FaceEnrollmentResponse,
    FaceSearchRequest,
    FaceSearchResponse,
    FaceTemplateStatus,
    FaceTemplateStatusRequest,
    FaceVerificationRequest,
    FaceVerificationResponse,
    HealthCheck,
    HealthReport,
    LivenessDetectionRequest,
    LivenessDetectionResponse,
    OperationResult,
    PhotoVerifyRequest,
    PhotoVerifyResponse,
    SetTemplateTagsRequest,
    SetTemplateTagsResponse,
    Transport,
    VideoLivenessDetectionRequest,
    merge_metadata,
)
from core.errors import TransportError, TransportErrorKind

logger = logging.getLogger(__name__)


class RestTransport:
    """`BwsTransport` strategy backed by an `httpx.AsyncClient`."""

    name = Transport.HTTP.label()

    def __init__(self, client: httpx.AsyncClient, settings: AppSettings | None = None) -> None:
        self._client = client
        self._max_bytes = (settings or AppSettings()).max_receive_message_bytes

    async def __aenter__(self) -> "RestTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _send(
        self,
        method: str,
        url: str,
        deadline: CallDeadline | None,
        *,
        json: Any = None,
        params: dict[str, Any] | None = None,
        check_status: bool = True,
    ) -> httpx.Response:
        timeout = deadline.remaining() if deadline else None
        logger.debug("%s %s%s", method, self._client.base_url, url)
        request = self._client.build_request(method, url, json=json, params=params, timeout=timeout)
        try:
            response = await asyncio.wait_for(self._receive(request), timeout)
        except asyncio.TimeoutError as exc:
            limit = f"{deadline.millis} ms" if deadline else "the deadline"
            raise httpx.ReadTimeout(f"No complete response within {limit}.", request=request) from exc
        if check_status:
            response.raise_for_status()
        return response

    async def _receive(self, request: httpx.Request) -> httpx.Response:
        """Send `request` and read the raw body, failing as soon as it exceeds the cap."""

        response = await self._client.send(request, stream=True)
        try:
            declared = response.headers.get("content-length", "")
            if declared.isdigit() and int(declared) > self._max_bytes:
                raise self._too_large(response, int(declared))
            body = bytearray()
            async for chunk in response.aiter_raw():
                body.extend(chunk)
                if len(body) > self._max_bytes:
                    raise self._too_large(response, len(body))
        finally:
            await response.aclose()
        # Rebuilt from the raw bytes so content decoding still follows the headers.
        return httpx.Response(
            response.status_code,
            headers=response.headers,
            content=bytes(body),
            request=request,
            extensions=response.extensions,
        )

    def _too_large(self, response: httpx.Response, size: int) -> TransportError:
        return TransportError(
            TransportErrorKind.OTHER,
            native_code="ResponseTooLarge",
            detail=f"{size} bytes exceed the limit of {self._max_bytes} bytes.",
            metadata=merge_metadata(response.headers.multi_items()),
        )

    @staticmethod
    def _result(operation: str, response: httpx.Response, model: type[BwsModel]) -> OperationResult:
        # Template management endpoints answer with an empty (or non-JSON) body.
        has_body = bool(model.model_fields) and bool(response.content.strip())
        payload = model.model_validate(response.json()) if has_body else model()
        return OperationResult(
            operation=operation,
            server_response=f"{response.status_code} {response.reason_phrase}".strip(),
            payload=payload,
            metadata=merge_metadata(response.headers.multi_items()),
        )

    async def health_check(self, deadline: CallDeadline | None = None) -> HealthReport:
        report = HealthReport(host=str(self._client.base_url), transport=Transport.HTTP)
        # Checks run sequentially so the output order is fixed. A not-ready
        # service answers 503 and that is its readiness status, as NOT_SERVING is over gRPC.
        for name, url in (("liveness", "/livez"), ("readiness", "/readyz")):
            response = await self._send("GET", url, deadline, check_status=False)
            status = response.text.strip() or f"{response.status_code} {response.reason_phrase}".strip()
            report.checks.append(HealthCheck(name=name, status=status))
            report.metadata = merge_metadata(response.headers.multi_items())
        return report

    async def live_detection(
        self, request: LivenessDetectionRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        response = await self._send("POST", "/api/v1/livenessdetection", deadline, json=request.to_wire())
        return self._result("LivenessDetection", response, LivenessDetectionResponse)

    async def video_live_detection(
        self, request: VideoLivenessDetectionRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        response = await self._send("POST", "/api/v1/videolivenessdetection", deadline, json=request.to_wire())
        return self._result("VideoLivenessDetection", response, LivenessDetectionResponse)

    async def photo_verify(self, request: PhotoVerifyRequest, deadline: CallDeadline | None = None) -> OperationResult:
        response = await self._send("POST", "/api/v1/photoverify", deadline, json=request.to_wire())
        return self._result("PhotoVerify", response, PhotoVerifyResponse)

    async def enroll(self, request: FaceEnrollmentRequest, deadline: CallDeadline | None = None) -> OperationResult:
        body = [image.to_wire() for image in request.images]
        response = await self._send("POST", f"/api/face/v1/enroll/{request.class_id}", deadline, json=body)
        return self._result("Enroll", response, FaceEnrollmentResponse)

    async def verify(self, request: FaceVerificationRequest, deadline: CallDeadline | None = None) -> OperationResult:
        body = request.image.to_wire()
        response = await self._send("POST", f"/api/face/v1/verify/{request.class_id}", deadline, json=body)
        return self._result("Verify", response, FaceVerificationResponse)

    async def search(self, request: FaceSearchRequest, deadline: CallDeadline | None = None) -> OperationResult:
        response = await self._send("POST", "/api/face/v1/search", deadline, json=request.to_wire())
        return self._result("Search", response, FaceSearchResponse)

    async def set_template_tags(
        self, request: SetTemplateTagsRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        url = f"/api/face/v1/template/{request.class_id}/tags"
        response = await self._send("PUT", url, deadline, json=list(request.tags))
        return self._result("SetTemplateTags", response, SetTemplateTagsResponse)

    async def get_template_status(
        self, request: FaceTemplateStatusRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        params = {"downloadThumbnails": "true"} if request.download_thumbnails else None
        url = f"/api/face/v1/template/status/{request.class_id}"
        response = await self._send("GET", url, deadline, params=params)
        return self._result("GetTemplateStatus", response, FaceTemplateStatus)

    async def get_class_count(
        self, request: FaceClassCountRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        params = {"tags": list(request.tags)} if request.tags else None
        response = await self._send("GET", "/api/face/v1/classcount", deadline, params=params)
        return self._result("GetClassCount", response, FaceClassCountResponse)

    async def delete_template(
        self, request: DeleteTemplateRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        response = await self._send("DELETE", f"/api/face/v1/template/{request.class_id}", deadline)
        return self._result("DeleteTemplate", response, DeleteTemplateResponse)
