"""Host URI parsing shared by both transports."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from core.errors import InvalidEndpoint

_DEFAULT_PORTS = {"http": 80, "https": 443}


@dataclass(frozen=True)
class Endpoint:
    url: httpx.URL
    scheme: str
    host: str
    port: int

    @property
    def secure(self) -> bool:
        return self.scheme == "https"

    @property
    def grpc_target(self) -> str:
        """`host:port` as expected by grpc channel constructors."""

        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @property
    def base_url(self) -> str:
        return str(self.url).rstrip("/")


def parse_endpoint(host: str) -> Endpoint:
    """Validate `--host`; anything that is not an absolute http(s) URI is rejected."""

    try:
        url = httpx.URL(host.strip())
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidEndpoint(f"Invalid host URI {host!r}: {exc}") from exc

    if url.scheme not in _DEFAULT_PORTS:
        raise InvalidEndpoint(f"Invalid host URI {host!r}: scheme must be http or https.")
    if not url.host:
        raise InvalidEndpoint(f"Invalid host URI {host!r}: missing host name.")

    return Endpoint(
        url=url,
        scheme=url.scheme,
        host=url.host,
        port=url.port or _DEFAULT_PORTS[url.scheme],
    )
