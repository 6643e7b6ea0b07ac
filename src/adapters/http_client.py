"""Builder de `httpx.AsyncClient` para el API RESTful de BWS.

Por qué un builder:
- Centraliza base_url, headers de autenticación y correlación para que todas
  las operaciones REST se comporten igual.
- Facilita testeo: se puede inyectar un `httpx.MockTransport`.
"""

from __future__ import annotations

import httpx

from adapters.correlation import ReferenceNumbers
from adapters.endpoint import Endpoint
from adapters.token_issuer import BearerTokenSource
from core.config import AppSettings, CorrelationScope, TokenPolicy

REFERENCE_HEADER = "Reference-Number"


def build_async_client(
    endpoint: Endpoint,
    settings: AppSettings | None = None,
    *,
    token_source: BearerTokenSource | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    """Crea un `httpx.AsyncClient` autenticado contra `endpoint`.

    - `Authorization: Bearer <token>` is a default header captured at build
      time; the refresh policy re-stamps it per request.
    - `Reference-Number` is a default header for the per-client scope and is
      stamped per request for the per-call scope.
    - No client-side timeout: deadlines are passed per request.
    """

    settings = settings or AppSettings()
    references = ReferenceNumbers(settings.correlation_prefix, "restful", settings.correlation_scope)

    headers: dict[str, str] = {
        "User-Agent": settings.user_agent,
        "Accept": "application/json",
    }
    request_hooks = []

    if token_source is not None:
        headers["Authorization"] = token_source.authorization()
        if token_source.policy is TokenPolicy.REFRESH:

            async def _stamp_authorization(request: httpx.Request) -> None:
                request.headers["Authorization"] = token_source.authorization()

            request_hooks.append(_stamp_authorization)

        if references.scope is CorrelationScope.PER_CLIENT:
            headers[REFERENCE_HEADER] = references.next()
        else:

            async def _stamp_reference(request: httpx.Request) -> None:
                request.headers[REFERENCE_HEADER] = references.next()

            request_hooks.append(_stamp_reference)

    return httpx.AsyncClient(
        base_url=endpoint.base_url,
        headers=headers,
        timeout=httpx.Timeout(None),
        follow_redirects=True,
        event_hooks={"request": request_hooks, "response": []},
        transport=transport,
    )
