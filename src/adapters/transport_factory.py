"""Builds the transport strategy for one invocation.

Authentication material is attached here, once per client/channel; the
dispatcher never sees tokens.
"""

from __future__ import annotations

import logging

import httpx

from adapters.endpoint import parse_endpoint
from adapters.grpc_channel import build_channel
from adapters.grpc_transport import GrpcTransport
from adapters.http_client import build_async_client
from adapters.rest_transport import RestTransport
from adapters.token_issuer import BearerTokenSource
from core.config import AppSettings
from core.domain.models import ConnectionContext, Transport
from core.errors import AuthenticationError
from core.interfaces.transport import BwsTransport

logger = logging.getLogger(__name__)


def build_token_source(context: ConnectionContext, settings: AppSettings) -> BearerTokenSource:
    """Mint the invocation's bearer token (raises `AuthenticationError` subclasses)."""

    if not context.is_authenticated or context.client_id is None or context.signing_key is None:
        raise AuthenticationError("A client ID and a signing key are required for this operation.")
    return BearerTokenSource.from_settings(settings, context.client_id, context.signing_key)


def build_transport(
    context: ConnectionContext,
    token_source: BearerTokenSource | None,
    settings: AppSettings | None = None,
    *,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> BwsTransport:
    """Return the transport selected by `context.transport`.

    A malformed host fails with `InvalidEndpoint`; connection problems only
    surface on the first call.
    """

    settings = settings or AppSettings()
    endpoint = parse_endpoint(context.host)
    logger.debug("Using %s transport for %s", context.transport.label(), endpoint.base_url)

    if context.transport is Transport.HTTP:
        client = build_async_client(endpoint, settings, token_source=token_source, transport=http_transport)
        return RestTransport(client, settings)

    channel = build_channel(endpoint, settings, token_source=token_source)
    return GrpcTransport(channel, endpoint.grpc_target)
