"""Request builders.

Every precondition is checked here, before a token is minted or a client is
built: an invalid invocation never reaches the network and never sends a
partial request.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

from core.domain.models import (
    DeleteTemplateRequest,
    FaceClassCountRequest,
    FaceEnrollmentRequest,
    FaceSearchRequest,
    FaceTemplateStatusRequest,
    FaceVerificationRequest,
    ImageData,
    LivenessDetectionRequest,
    PhotoVerifyRequest,
    SetTemplateTagsRequest,
    VideoLivenessDetectionRequest,
)
from core.errors import InvalidRequest, MissingInputFile

logger = logging.getLogger(__name__)

MAX_LIVE_IMAGES = 2


def read_input_files(paths: Iterable[Path]) -> list[bytes]:
    """Read image/video files in the given order.

    A path that does not exist (or is not a regular file) is a validation
    error; any other I/O failure propagates unchanged.
    """

    contents: list[bytes] = []
    for path in paths:
        if not path.is_file():
            raise MissingInputFile(f"Input file not found: {path}")
        contents.append(path.read_bytes())
    return contents


def tag_live_images(images: Sequence[bytes], challenge: str | None) -> list[ImageData]:
    """Wrap live images; the challenge tag goes on the second image only.

    Directional tags (up, down, left, right) are opaque to the client.
    """

    live_images = [ImageData(image=image) for image in images]
    tag = (challenge or "").strip()
    if tag:
        if len(live_images) > 1:
            live_images[1].tags.append(tag)
        else:
            logger.debug("Challenge %r ignored: it requires two live images", tag)
    return live_images


def _require_live_images(images: Sequence[bytes], api: str) -> None:
    if not images or len(images) > MAX_LIVE_IMAGES:
        raise InvalidRequest(f"{api} requires one or two live images, got {len(images)}.")


def _require_class_id(class_id: int) -> None:
    if class_id < 0:
        raise InvalidRequest(f"Class ID must not be negative, got {class_id}.")


def build_live_detection(images: Sequence[bytes], challenge: str | None = None) -> LivenessDetectionRequest:
    _require_live_images(images, "LivenessDetection")
    return LivenessDetectionRequest(live_images=tag_live_images(images, challenge))


def build_video_live_detection(videos: Sequence[bytes]) -> VideoLivenessDetectionRequest:
    if len(videos) != 1:
        raise InvalidRequest(f"VideoLivenessDetection requires exactly one video, got {len(videos)}.")
    return VideoLivenessDetectionRequest(video=videos[0])


def build_photo_verify(
    images: Sequence[bytes],
    photos: Sequence[bytes],
    *,
    disable_liveness_detection: bool = False,
    challenge: str | None = None,
) -> PhotoVerifyRequest:
    if not images or len(photos) != 1:
        raise InvalidRequest("PhotoVerify requires at least one or more live images and one ID photo.")
    _require_live_images(images, "PhotoVerify")
    return PhotoVerifyRequest(
        live_images=tag_live_images(images, challenge),
        photo=photos[0],
        disable_liveness_detection=disable_liveness_detection,
    )


def build_enroll(images: Sequence[bytes], class_id: int) -> FaceEnrollmentRequest:
    _require_class_id(class_id)
    if not images:
        raise InvalidRequest("Enroll requires at least one image.")
    return FaceEnrollmentRequest(class_id=class_id, images=[ImageData(image=i) for i in images])


def build_verify(images: Sequence[bytes], class_id: int) -> FaceVerificationRequest:
    _require_class_id(class_id)
    if len(images) != 1:
        raise InvalidRequest(f"Verify requires exactly one image, got {len(images)}.")
    return FaceVerificationRequest(class_id=class_id, image=ImageData(image=images[0]))


def build_search(
    images: Sequence[bytes],
    tags: Sequence[str] | None = None,
    *,
    top_matches: bool = False,
) -> FaceSearchRequest:
    if not images:
        raise InvalidRequest("Search requires at least one image.")
    return FaceSearchRequest(
        images=[ImageData(image=i) for i in images],
        tags=list(tags or []),
        top_matches=top_matches,
    )


def build_set_tags(class_id: int, tags: Sequence[str] | None = None) -> SetTemplateTagsRequest:
    _require_class_id(class_id)
    return SetTemplateTagsRequest(class_id=class_id, tags=list(tags or []))


def build_template_status(class_id: int, *, download_thumbnails: bool = False) -> FaceTemplateStatusRequest:
    _require_class_id(class_id)
    return FaceTemplateStatusRequest(class_id=class_id, download_thumbnails=download_thumbnails)


def build_class_count(tags: Sequence[str] | None = None) -> FaceClassCountRequest:
    return FaceClassCountRequest(tags=list(tags or []))


def build_delete_template(class_id: int) -> DeleteTemplateRequest:
    _require_class_id(class_id)
    return DeleteTemplateRequest(class_id=class_id)
