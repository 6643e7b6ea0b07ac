"""Authenticated `grpc.aio` channels for BWS.

Every outbound call carries two metadata entries: a `reference-number`
correlation id and `authorization: Bearer <token>`. Over TLS they are added
by channel call credentials. grpc refuses call credentials on plain-text
channels, so for `http://` hosts (on-premises/test deployments) a client
interceptor adds the same metadata instead and a warning is logged: the
token then travels unencrypted.
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

import grpc
import grpc.aio

from adapters.correlation import ReferenceNumbers
from adapters.endpoint import Endpoint
from adapters.token_issuer import BearerTokenSource
from core.config import AppSettings

logger = logging.getLogger(__name__)

MetadataPairs = Sequence[tuple[str, str]]


class CallMetadata:
    """Produces the per-call authentication and correlation metadata."""

    def __init__(self, token_source: BearerTokenSource, references: ReferenceNumbers) -> None:
        self._token_source = token_source
        self._references = references

    def __call__(self) -> MetadataPairs:
        # grpc metadata keys must be lower-case.
        return (
            ("reference-number", self._references.next()),
            ("authorization", self._token_source.authorization()),
        )


class BearerAuthPlugin(grpc.AuthMetadataPlugin):
    """Call-credential hook, invoked by grpc for every call on a TLS channel."""

    def __init__(self, metadata: Callable[[], MetadataPairs]) -> None:
        self._metadata = metadata

    def __call__(self, context: grpc.AuthMetadataContext, callback: grpc.AuthMetadataPluginCallback) -> None:
        try:
            callback(self._metadata(), None)
        except Exception as exc:  # reported to grpc, which fails the call with UNAUTHENTICATED/UNAVAILABLE
            callback((), exc)


class BearerMetadataInterceptor(grpc.aio.UnaryUnaryClientInterceptor):
    """Adds the call metadata on channels where call credentials are not allowed."""

    def __init__(self, metadata: Callable[[], MetadataPairs]) -> None:
        self._metadata = metadata

    async def intercept_unary_unary(self, continuation, client_call_details, request):
        metadata = grpc.aio.Metadata(*tuple(client_call_details.metadata or ()))
        for key, value in self._metadata():
            metadata.add(key, value)
        details = grpc.aio.ClientCallDetails(
            method=client_call_details.method,
            timeout=client_call_details.timeout,
            metadata=metadata,
            credentials=client_call_details.credentials,
            wait_for_ready=client_call_details.wait_for_ready,
        )
        return await continuation(details, request)


def channel_options(settings: AppSettings) -> list[tuple[str, object]]:
    # The default 4 MB limit is too small for thumbnails and image diagnostics.
    return [
        ("grpc.max_receive_message_length", settings.max_receive_message_bytes),
        ("grpc.primary_user_agent", settings.user_agent),
    ]


def build_channel(
    endpoint: Endpoint,
    settings: AppSettings | None = None,
    *,
    token_source: BearerTokenSource | None = None,
) -> grpc.aio.Channel:
    """Create the channel; without `token_source` the channel is unauthenticated."""

    settings = settings or AppSettings()
    options = channel_options(settings)

    if token_source is None:
        if endpoint.secure:
            return grpc.aio.secure_channel(endpoint.grpc_target, grpc.ssl_channel_credentials(), options=options)
        return grpc.aio.insecure_channel(endpoint.grpc_target, options=options)

    metadata = CallMetadata(
        token_source,
        ReferenceNumbers(settings.correlation_prefix, "grpc", settings.correlation_scope),
    )

    if endpoint.secure:
        credentials = grpc.composite_channel_credentials(
            grpc.ssl_channel_credentials(),
            grpc.metadata_call_credentials(BearerAuthPlugin(metadata), name="bws-bearer"),
        )
        return grpc.aio.secure_channel(endpoint.grpc_target, credentials, options=options)

    logger.warning(
        "Insecure connection to %s: the bearer token is sent without TLS. "
        "Use an https:// host outside of test deployments.",
        endpoint.grpc_target,
    )
    return grpc.aio.insecure_channel(
        endpoint.grpc_target,
        options=options,
        interceptors=[BearerMetadataInterceptor(metadata)],
    )
