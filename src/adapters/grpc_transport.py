"""BWS over gRPC (default transport).

Requests are converted from the shared wire dicts with protobuf's JSON
mapping, and responses go back through the same mapping into the shared
pydantic models.
"""

from __future__ import annotations

import logging
from typing import Any, Callable

import grpc.aio
from google.protobuf import json_format
from google.protobuf.message import Message

from adapters.grpc_contracts import (
    BioIDWebServiceStub,
    FaceRecognitionStub,
    HealthStub,
    bws_pb2,
    face_pb2,
    health_pb2,
)
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

logger = logging.getLogger(__name__)

HEALTH_SERVICES = ("liveness", "readiness")


def to_message(request: BwsModel, message_type: type[Message]) -> Message:
    """Convert a request model into its protobuf message."""

    return json_format.ParseDict(request.to_wire(), message_type())


def from_message(message: Message, model: type[BwsModel]) -> BwsModel:
    return model.model_validate(json_format.MessageToDict(message))


class GrpcTransport:
    """`BwsTransport` strategy backed by a `grpc.aio` channel."""

    name = Transport.RPC.label()

    def __init__(self, channel: grpc.aio.Channel, target: str) -> None:
        self._channel = channel
        self.target = target
        self._bws = BioIDWebServiceStub(channel)
        self._face = FaceRecognitionStub(channel)
        self._health = HealthStub(channel)

    async def __aenter__(self) -> "GrpcTransport":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._channel.close()

    async def _unary(
        self,
        operation: str,
        rpc: Callable[..., Any],
        message: Message,
        model: type[BwsModel],
        deadline: CallDeadline | None,
    ) -> OperationResult:
        timeout = deadline.remaining() if deadline else None
        logger.debug("Calling %s at %s", operation, self.target)
        call = rpc(message, timeout=timeout)
        response = await call

        code = await call.code()
        details = await call.details()
        metadata = merge_metadata(await call.initial_metadata(), await call.trailing_metadata())
        return OperationResult(
            operation=operation,
            server_response=f"{code.name} - '{details}'" if details else code.name,
            payload=from_message(response, model),
            metadata=metadata,
        )

    async def health_check(self, deadline: CallDeadline | None = None) -> HealthReport:
        report = HealthReport(host=self.target, transport=Transport.RPC)
        for service in HEALTH_SERVICES:
            timeout = deadline.remaining() if deadline else None
            call = self._health.Check(health_pb2.HealthCheckRequest(service=service), timeout=timeout)
            response = await call
            status = health_pb2.HealthCheckResponse.ServingStatus.Name(response.status)
            report.checks.append(HealthCheck(name=service, status=status))
            report.metadata = merge_metadata(await call.initial_metadata(), await call.trailing_metadata())
        return report

    async def live_detection(
        self, request: LivenessDetectionRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        message = to_message(request, bws_pb2.LivenessDetectionRequest)
        return await self._unary(
            "LivenessDetection", self._bws.LivenessDetection, message, LivenessDetectionResponse, deadline
        )

    async def video_live_detection(
        self, request: VideoLivenessDetectionRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        message = to_message(request, bws_pb2.VideoLivenessDetectionRequest)
        return await self._unary(
            "VideoLivenessDetection", self._bws.VideoLivenessDetection, message, LivenessDetectionResponse, deadline
        )

    async def photo_verify(self, request: PhotoVerifyRequest, deadline: CallDeadline | None = None) -> OperationResult:
        message = to_message(request, bws_pb2.PhotoVerifyRequest)
        return await self._unary("PhotoVerify", self._bws.PhotoVerify, message, PhotoVerifyResponse, deadline)

    async def enroll(self, request: FaceEnrollmentRequest, deadline: CallDeadline | None = None) -> OperationResult:
        message = to_message(request, face_pb2.FaceEnrollmentRequest)
        return await self._unary("Enroll", self._face.Enroll, message, FaceEnrollmentResponse, deadline)

    async def verify(self, request: FaceVerificationRequest, deadline: CallDeadline | None = None) -> OperationResult:
        message = to_message(request, face_pb2.FaceVerificationRequest)
        return await self._unary("Verify", self._face.Verify, message, FaceVerificationResponse, deadline)

    async def search(self, request: FaceSearchRequest, deadline: CallDeadline | None = None) -> OperationResult:
        message = to_message(request, face_pb2.FaceSearchRequest)
        return await self._unary("Search", self._face.Search, message, FaceSearchResponse, deadline)

    async def set_template_tags(
        self, request: SetTemplateTagsRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        message = to_message(request, face_pb2.SetTemplateTagsRequest)
        return await self._unary(
            "SetTemplateTags", self._face.SetTemplateTags, message, SetTemplateTagsResponse, deadline
        )

    async def get_template_status(
        self, request: FaceTemplateStatusRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        message = to_message(request, face_pb2.FaceTemplateStatusRequest)
        return await self._unary(
            "GetTemplateStatus", self._face.GetTemplateStatus, message, FaceTemplateStatus, deadline
        )

    async def get_class_count(
        self, request: FaceClassCountRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        message = to_message(request, face_pb2.FaceClassCountRequest)
        return await self._unary("GetClassCount", self._face.GetClassCount, message, FaceClassCountResponse, deadline)

    async def delete_template(
        self, request: DeleteTemplateRequest, deadline: CallDeadline | None = None
    ) -> OperationResult:
        message = to_message(request, face_pb2.DeleteTemplateRequest)
        return await self._unary("DeleteTemplate", self._face.DeleteTemplate, message, DeleteTemplateResponse, deadline)
