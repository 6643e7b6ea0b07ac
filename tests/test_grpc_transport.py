"""Integration tests for the gRPC transport against an in-process grpc.aio server.

The fake services record the request and the invocation metadata so the tests
can check what actually went over the wire.
"""

import asyncio

import grpc
import pytest

from adapters.error_classifier import classify
from adapters.grpc_contracts import bws_pb2, bws_pb2_grpc, face_pb2, face_pb2_grpc, health_pb2, health_pb2_grpc
from adapters.transport_factory import build_transport
from core.domain.models import ConnectionContext, JobStatus, Transport
from core.errors import TransportError, TransportErrorKind
from core.services import requests
from core.services.dispatcher import Operation, OperationDispatcher


class FakeBws(bws_pb2_grpc.BioIDWebServiceServicer):
    def __init__(self):
        self.requests = []
        self.metadata = []
        self.delay = 0.0
        self.abort_with = None

    async def _record(self, request, context):
        self.requests.append(request)
        self.metadata.append(dict(context.invocation_metadata()))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.abort_with:
            await context.abort(*self.abort_with)

    async def LivenessDetection(self, request, context):
        await self._record(request, context)
        context.set_trailing_metadata((("x-job-id", "job-1"),))
        return bws_pb2.LivenessDetectionResponse(live=True, liveness_score=0.87)

    async def PhotoVerify(self, request, context):
        await self._record(request, context)
        return bws_pb2.PhotoVerifyResponse(
            status=bws_pb2.FAULTED,
            errors=[bws_pb2.JobError(error_code="NoFaceFound", message="No face found in the photo")],
        )


class FakeFace(face_pb2_grpc.FaceRecognitionServicer):
    def __init__(self):
        self.requests = []

    async def GetClassCount(self, request, context):
        self.requests.append(request)
        return face_pb2.FaceClassCountResponse(count=len(request.tags) + 40)

    async def SetTemplateTags(self, request, context):
        self.requests.append(request)
        return face_pb2.SetTemplateTagsResponse()

    async def DeleteTemplate(self, request, context):
        self.requests.append(request)
        await context.abort(grpc.StatusCode.NOT_FOUND, f"No template for class {request.classId}")

    async def GetTemplateStatus(self, request, context):
        self.requests.append(request)
        return face_pb2.FaceTemplateStatus(classId=request.classId, available=True, tags=["vip"], feature_vectors=2)


class FakeHealth(health_pb2_grpc.HealthServicer):
    def __init__(self):
        self.metadata = []

    async def Check(self, request, context):
        self.metadata.append(dict(context.invocation_metadata()))
        return health_pb2.HealthCheckResponse(status=health_pb2.HealthCheckResponse.SERVING)


@pytest.fixture
async def bws_server():
    """Start an in-process server on a free localhost port."""
    server = grpc.aio.server()
    services = {"bws": FakeBws(), "face": FakeFace(), "health": FakeHealth()}
    bws_pb2_grpc.add_BioIDWebServiceServicer_to_server(services["bws"], server)
    face_pb2_grpc.add_FaceRecognitionServicer_to_server(services["face"], server)
    health_pb2_grpc.add_HealthServicer_to_server(services["health"], server)
    port = server.add_insecure_port("127.0.0.1:0")
    await server.start()

    services["host"] = f"http://127.0.0.1:{port}"
    yield services
    await server.stop(None)


def make_context(host, signing_key=None, deadline_millis=None):
    return ConnectionContext(
        host=host,
        client_id="test-client" if signing_key else None,
        signing_key=signing_key,
        transport=Transport.RPC,
        deadline_millis=deadline_millis,
    )


# ============================================================================
# Authentication metadata
# ============================================================================


@pytest.mark.integration
async def test_call_carries_bearer_and_reference(bws_server, settings, token_source, signing_key, caplog):
    """Test authorization and reference-number metadata reach the server."""
    context = make_context(bws_server["host"], signing_key)

    async with build_transport(context, token_source, settings) as transport:
        result = await OperationDispatcher(transport, context, classify=classify).execute(
            Operation.LIVE_DETECTION, requests.build_live_detection([b"one", b"two"], "up")
        )

    metadata = bws_server["bws"].metadata[-1]
    assert metadata["authorization"] == f"Bearer {token_source.token()}"
    assert metadata["reference-number"].startswith("bws-cli-grpc-")
    assert "without TLS" in caplog.text

    sent = bws_server["bws"].requests[-1]
    assert [list(image.tags) for image in sent.live_images] == [[], ["up"]]
    assert sent.live_images[1].image == b"two"

    assert result.status is JobStatus.SUCCEEDED
    assert result.server_response == "OK"
    assert result.summary() == "Live: True (0.8700)"
    assert result.metadata["x-job-id"] == ["job-1"]


@pytest.mark.integration
async def test_health_check_without_credentials(bws_server, settings):
    """Test both checks run, in order, without an authorization header."""
    context = make_context(bws_server["host"])

    async with build_transport(context, None, settings) as transport:
        report = await OperationDispatcher(transport, context, classify=classify).health_check()

    assert [(p.name, p.status) for p in report.checks] == [("liveness", "SERVING"), ("readiness", "SERVING")]
    assert all("authorization" not in m for m in bws_server["health"].metadata)


# ============================================================================
# Results and failures
# ============================================================================


@pytest.mark.integration
async def test_faulted_job_is_a_result(bws_server, settings, token_source, signing_key):
    """Test a FAULTED job status is returned, not raised."""
    context = make_context(bws_server["host"], signing_key)

    async with build_transport(context, token_source, settings) as transport:
        result = await OperationDispatcher(transport, context, classify=classify).execute(
            Operation.PHOTO_VERIFY, requests.build_photo_verify([b"a"], [b"photo"])
        )

    assert result.status is JobStatus.FAULTED
    assert [(e.error_code, e.message) for e in result.errors] == [("NoFaceFound", "No face found in the photo")]
    assert bws_server["bws"].requests[-1].photo == b"photo"


@pytest.mark.integration
async def test_unauthenticated_status(bws_server, settings, token_source, signing_key):
    """Test a server-side UNAUTHENTICATED keeps the native code and detail."""
    bws_server["bws"].abort_with = (grpc.StatusCode.UNAUTHENTICATED, "invalid token")
    context = make_context(bws_server["host"], signing_key)

    async with build_transport(context, token_source, settings) as transport:
        with pytest.raises(TransportError) as exc_info:
            await OperationDispatcher(transport, context, classify=classify).execute(
                Operation.LIVE_DETECTION, requests.build_live_detection([b"a"])
            )

    error = exc_info.value
    assert error.kind is TransportErrorKind.UNAUTHENTICATED
    assert error.native_code == "UNAUTHENTICATED"
    assert error.detail == "invalid token"


@pytest.mark.integration
async def test_deadline_exceeded(bws_server, settings, token_source, signing_key):
    """Test a slow server fails the call with DeadlineExceeded."""
    bws_server["bws"].delay = 1.0
    context = make_context(bws_server["host"], signing_key, deadline_millis=50)

    async with build_transport(context, token_source, settings) as transport:
        with pytest.raises(TransportError) as exc_info:
            await OperationDispatcher(transport, context, classify=classify).execute(
                Operation.LIVE_DETECTION, requests.build_live_detection([b"a"])
            )

    assert exc_info.value.kind is TransportErrorKind.DEADLINE_EXCEEDED


@pytest.mark.integration
async def test_not_found_status(bws_server, settings, token_source, signing_key):
    """Test NOT_FOUND from the server maps to NotFound."""
    context = make_context(bws_server["host"], signing_key)

    async with build_transport(context, token_source, settings) as transport:
        with pytest.raises(TransportError) as exc_info:
            await OperationDispatcher(transport, context, classify=classify).execute(
                Operation.DELETE_TEMPLATE, requests.build_delete_template(1)
            )

    assert exc_info.value.kind is TransportErrorKind.NOT_FOUND
    assert exc_info.value.detail == "No template for class 1"


@pytest.mark.integration
async def test_template_management(bws_server, settings, token_source, signing_key):
    """Test int64 class ids and counts survive the protobuf JSON mapping."""
    context = make_context(bws_server["host"], signing_key)

    async with build_transport(context, token_source, settings) as transport:
        dispatcher = OperationDispatcher(transport, context, classify=classify)
        count = await dispatcher.execute(Operation.GET_CLASS_COUNT, requests.build_class_count(["a", "b"]))
        tags = await dispatcher.execute(Operation.SET_TAGS, requests.build_set_tags(42, ["vip"]))
        status = await dispatcher.execute(Operation.GET_TEMPLATE_STATUS, requests.build_template_status(42))

    assert count.payload.count == 42
    assert tags.summary() == "Template tags set."
    assert status.payload.class_id == 42
    assert status.payload.tags == ["vip"]
    assert list(bws_server["face"].requests[1].tags) == ["vip"]


@pytest.mark.integration
async def test_get_template_status_is_repeatable(bws_server, settings, token_source, signing_key):
    """Test two status reads of the same template map to identical payloads."""
    context = make_context(bws_server["host"], signing_key)

    async with build_transport(context, token_source, settings) as transport:
        dispatcher = OperationDispatcher(transport, context, classify=classify)
        first = await dispatcher.execute(Operation.GET_TEMPLATE_STATUS, requests.build_template_status(7))
        second = await dispatcher.execute(Operation.GET_TEMPLATE_STATUS, requests.build_template_status(7))

    assert len(bws_server["face"].requests) == 2
    assert first.payload.model_dump_json() == second.payload.model_dump_json()
    assert first.payload.feature_vectors == 2
