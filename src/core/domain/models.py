"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Un único contrato de datos para ambos transportes: el request que viaja
  como JSON (HTTP) es el mismo dict que se convierte a protobuf (gRPC), y
  ambas respuestas se validan contra los mismos modelos.
- Los alias camelCase reproducen los nombres JSON de los mensajes protobuf.

Nota:
- Estos modelos describen *qué* es la información, no *cómo* se transporta.
"""

from __future__ import annotations

import base64
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer
from pydantic.alias_generators import to_camel
from pydantic.config import ConfigDict


def _decode_base64(value: Any) -> Any:
    if isinstance(value, str):
        return base64.b64decode(value)
    return value


def _encode_base64(value: bytes) -> str:
    return base64.b64encode(value).decode("ascii")


# Binary fields travel base64 encoded in JSON and in protobuf's JSON mapping.
WireBytes = Annotated[
    bytes,
    BeforeValidator(_decode_base64),
    PlainSerializer(_encode_base64, return_type=str),
]


class BwsModel(BaseModel):
    """Base for every BWS data contract (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        """Dict in the JSON shape shared by the RESTful API and protobuf JSON mapping."""

        return self.model_dump(mode="json", by_alias=True)


# --------------------------------------------------------------------------
# Connection
# --------------------------------------------------------------------------


class Transport(str, Enum):
    """Wire protocol used to reach the service."""

    RPC = "rpc"
    HTTP = "http"

    @classmethod
    def from_flag(cls, rest: bool) -> "Transport":
        return cls.HTTP if rest else cls.RPC

    def label(self) -> str:
        return "gRPC" if self is Transport.RPC else "RESTful"


class ConnectionContext(BaseModel):
    """Immutable description of one invocation's connection.

    Created once from validated CLI input and never mutated. `client_id` and
    `signing_key` are only absent for the unauthenticated health check.
    """

    model_config = ConfigDict(frozen=True)

    host: str = Field(..., min_length=1, description="Base URI of the BWS host.")
    client_id: str | None = Field(default=None, description="BWS client identifier.")
    signing_key: bytes | None = Field(
        default=None,
        repr=False,
        description="Decoded symmetric signing key.",
    )
    transport: Transport = Field(default=Transport.RPC)
    deadline_millis: int | None = Field(
        default=None,
        description="Per-call deadline in milliseconds; absent or <= 0 means none.",
    )

    @property
    def has_deadline(self) -> bool:
        return self.deadline_millis is not None and self.deadline_millis > 0

    @property
    def is_authenticated(self) -> bool:
        return bool(self.client_id) and self.signing_key is not None

    def start_deadline(self) -> "CallDeadline | None":
        """Absolute deadline for a call starting now, or None without deadline."""

        if not self.has_deadline:
            return None
        assert self.deadline_millis is not None
        return CallDeadline.after_millis(self.deadline_millis)


@dataclass(frozen=True)
class CallDeadline:
    """Absolute point in (monotonic) time by which a call must finish."""

    expires_at: float
    millis: int

    @classmethod
    def after_millis(cls, millis: int) -> "CallDeadline":
        return cls(expires_at=time.monotonic() + millis / 1000.0, millis=millis)

    def remaining(self) -> float:
        """Seconds left; never negative so transports fail with their own deadline error."""

        return max(self.expires_at - time.monotonic(), 0.0)


# --------------------------------------------------------------------------
# Shared message parts
# --------------------------------------------------------------------------


class JobStatus(str, Enum):
    """Server reported outcome of a processing job (independent of transport success)."""

    SUCCEEDED = "SUCCEEDED"
    FAULTED = "FAULTED"
    CANCELLED = "CANCELLED"


class JobError(BwsModel):
    error_code: str = Field(default="", description="Stable code identifying the error.")
    message: str = Field(default="", description="Plain text description (english).")


class ImageData(BwsModel):
    image: WireBytes = Field(..., repr=False)
    tags: list[str] = Field(default_factory=list)


class PointD(BwsModel):
    x: float = 0.0
    y: float = 0.0


class Face(BwsModel):
    left_eye: PointD | None = None
    right_eye: PointD | None = None
    texture_liveness_score: float = 0.0
    motion_liveness_score: float = 0.0
    movement_direction: float = 0.0


class QualityAssessment(BwsModel):
    check: str = ""
    score: float = 0.0
    message: str = ""


class ImageProperties(BwsModel):
    rotated: int = 0
    faces: list[Face] = Field(default_factory=list)
    quality_score: float = 0.0
    quality_assessments: list[QualityAssessment] = Field(default_factory=list)
    frame_number: int = 0


# --------------------------------------------------------------------------
# Requests
# --------------------------------------------------------------------------


class LivenessDetectionRequest(BwsModel):
    live_images: list[ImageData] = Field(default_factory=list)


class VideoLivenessDetectionRequest(BwsModel):
    video: WireBytes = Field(..., repr=False)


class PhotoVerifyRequest(BwsModel):
    live_images: list[ImageData] = Field(default_factory=list)
    photo: WireBytes = Field(..., repr=False)
    disable_liveness_detection: bool = False


class FaceEnrollmentRequest(BwsModel):
    class_id: int = Field(..., ge=0)
    images: list[ImageData] = Field(default_factory=list)


class FaceVerificationRequest(BwsModel):
    class_id: int = Field(..., ge=0)
    image: ImageData


class FaceSearchRequest(BwsModel):
    images: list[ImageData] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    top_matches: bool = False


class SetTemplateTagsRequest(BwsModel):
    class_id: int = Field(..., ge=0)
    tags: list[str] = Field(default_factory=list)


class FaceTemplateStatusRequest(BwsModel):
    class_id: int = Field(..., ge=0)
    download_thumbnails: bool = False


class FaceClassCountRequest(BwsModel):
    tags: list[str] = Field(default_factory=list)


class DeleteTemplateRequest(BwsModel):
    class_id: int = Field(..., ge=0)


# --------------------------------------------------------------------------
# Responses
# --------------------------------------------------------------------------


class JobResponse(BwsModel):
    """Response carrying a job status and the errors collected by the job."""

    status: JobStatus = JobStatus.SUCCEEDED
    errors: list[JobError] = Field(default_factory=list)

    def summary(self) -> str:
        return f"Job status: {self.status.value}"


class LivenessDetectionResponse(JobResponse):
    image_properties: list[ImageProperties] = Field(default_factory=list)
    live: bool = False
    liveness_score: float = 0.0

    def summary(self) -> str:
        return f"Live: {self.live} ({self.liveness_score:.4f})"


class AccuracyLevel(str, Enum):
    NOT_RECOGNIZED = "NOT_RECOGNIZED"
    LEVEL_1 = "LEVEL_1"
    LEVEL_2 = "LEVEL_2"
    LEVEL_3 = "LEVEL_3"
    LEVEL_4 = "LEVEL_4"
    LEVEL_5 = "LEVEL_5"


class PhotoVerifyResponse(JobResponse):
    image_properties: list[ImageProperties] = Field(default_factory=list)
    photo_properties: ImageProperties | None = None
    verification_level: AccuracyLevel = AccuracyLevel.NOT_RECOGNIZED
    verification_score: float = 0.0
    live: bool = False
    liveness_score: float = 0.0

    def summary(self) -> str:
        return (
            f"VerificationLevel: {self.verification_level.value} ({self.verification_score:.4f})"
            f" - Live: {self.live} ({self.liveness_score:.4f})"
        )


class EnrollmentAction(str, Enum):
    NONE = "NONE"
    NEW_TEMPLATE_CREATED = "NEW_TEMPLATE_CREATED"
    TEMPLATE_UPDATED = "TEMPLATE_UPDATED"
    TEMPLATE_UPGRADED = "TEMPLATE_UPGRADED"
    TEMPLATE_IMPORTED = "TEMPLATE_IMPORTED"
    ENROLLMENT_FAILED = "ENROLLMENT_FAILED"


class Thumbnail(BwsModel):
    enrolled: datetime | None = None
    image: WireBytes = Field(default=b"", repr=False)


class FaceTemplateStatus(BwsModel):
    class_id: int = 0
    available: bool = False
    enrolled: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    encoder_version: int = 0
    feature_vectors: int = 0
    thumbnails_stored: int = 0
    thumbnails: list[Thumbnail] = Field(default_factory=list)

    def summary(self) -> str:
        if not self.available:
            return f"ClassId: {self.class_id} - Available: False"
        enrolled = self.enrolled.isoformat() if self.enrolled else "-"
        return (
            f"ClassId: {self.class_id} - Available: True - Enrolled: {enrolled}"
            f" - Tags: [{', '.join(self.tags)}] - EncoderVersion: {self.encoder_version}"
            f" - FeatureVectors: {self.feature_vectors} - ThumbnailsStored: {self.thumbnails_stored}"
        )


class FaceEnrollmentResponse(JobResponse):
    image_properties: list[ImageProperties] = Field(default_factory=list)
    performed_action: EnrollmentAction = EnrollmentAction.NONE
    enrolled_images: int = 0
    template_status: FaceTemplateStatus | None = None

    def summary(self) -> str:
        return f"PerformedAction: {self.performed_action.value} - EnrolledImages: {self.enrolled_images}"


class FaceVerificationResponse(JobResponse):
    image_properties: ImageProperties | None = None
    verified: bool = False
    score: float = 0.0

    def summary(self) -> str:
        return f"Verified: {self.verified} ({self.score:.4f})"


class TemplateMatchResult(BwsModel):
    class_id: int = 0
    score: float = 0.0


class SearchResult(BwsModel):
    matches: list[TemplateMatchResult] = Field(default_factory=list)


class FaceSearchResponse(JobResponse):
    image_properties: list[ImageProperties] = Field(default_factory=list)
    result: list[SearchResult] = Field(default_factory=list)

    def summary(self) -> str:
        matches = [m for r in self.result for m in r.matches]
        found = ", ".join(f"{m.class_id} ({m.score:.4f})" for m in matches) or "none"
        return f"Searched persons: {len(self.result)} - Matches: {found}"


class FaceClassCountResponse(BwsModel):
    count: int = 0

    def summary(self) -> str:
        return f"Class count: {self.count}"


class SetTemplateTagsResponse(BwsModel):
    def summary(self) -> str:
        return "Template tags set."


class DeleteTemplateResponse(BwsModel):
    def summary(self) -> str:
        return "Template deleted."


# --------------------------------------------------------------------------
# Results
# --------------------------------------------------------------------------

Metadata = dict[str, list[str]]


def merge_metadata(*entries: Any) -> Metadata:
    """Collect (key, value) pairs into key -> values, keeping arrival order."""

    merged: Metadata = {}
    for pairs in entries:
        for key, value in pairs or ():
            if isinstance(value, bytes):
                value = _encode_base64(value)
            merged.setdefault(str(key), []).append(str(value))
    return merged


@dataclass
class OperationResult:
    """Successful transport round-trip of one operation.

    `status` is None for operations whose response carries no job status
    (template management). A FAULTED or CANCELLED status is still a result,
    never an exception.
    """

    operation: str
    server_response: str
    payload: BwsModel
    metadata: Metadata = field(default_factory=dict)

    @property
    def status(self) -> JobStatus | None:
        if isinstance(self.payload, JobResponse):
            return self.payload.status
        return None

    @property
    def errors(self) -> list[JobError]:
        if isinstance(self.payload, JobResponse):
            return list(self.payload.errors)
        return []

    def summary(self) -> str:
        return self.payload.summary()  # type: ignore[attr-defined]


@dataclass(frozen=True)
class HealthCheck:
    name: str
    status: str


@dataclass
class HealthReport:
    host: str
    transport: Transport
    checks: list[HealthCheck] = field(default_factory=list)
    metadata: Metadata = field(default_factory=dict)
