"""Configuración del Core.

Por qué aquí:
- Centraliza variables de entorno (pydantic-settings) sin contaminar la CLI.
- Permite que adaptadores (token, HTTP, gRPC) lean políticas de forma consistente.

Los flags de cada invocación (host, client id, key, deadline) no viven aquí:
llegan por la CLI y se convierten en un `ConnectionContext`.
"""

from __future__ import annotations

import os
import sys
from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from core import __version__

# grpc and .NET both use int.MaxValue as the "unbounded" receive size.
MAX_MESSAGE_BYTES = 2_147_483_647


def get_user_config_dir() -> Path:
    """Directorio de configuración por usuario (cross-platform, sin dependencias)."""

    if sys.platform.startswith("win"):
        base = Path(os.environ.get("APPDATA", str(Path.home())))
        return base / "bws-cli"
    if sys.platform == "darwin":
        return Path.home() / "Library" / "Application Support" / "bws-cli"

    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        return Path(xdg) / "bws-cli"
    return Path.home() / ".config" / "bws-cli"


def get_user_env_file() -> Path:
    return get_user_config_dir() / ".env"


class TokenPolicy(str, Enum):
    """How long a bearer token is used by one client/channel."""

    FIXED = "fixed"
    REFRESH = "refresh"


class CorrelationScope(str, Enum):
    """Whether `Reference-Number` is minted per call or once per client."""

    PER_CALL = "per_call"
    PER_CLIENT = "per_client"


class AppSettings(BaseSettings):
    """Configuración central de la aplicación.

    Por qué pydantic-settings:
    - Tipado + validación en el borde (env vars) sin ensuciar el Core con lógica.
    - Un único contrato de configuración para CLI/adapters.
    """

    model_config = SettingsConfigDict(
        env_prefix="BWS_CLI_",
        extra="ignore",
        case_sensitive=False,
        # Orden: proyecto primero (dev), luego config global de usuario.
        env_file=(".env", str(get_user_env_file())),
        env_file_encoding="utf-8",
    )

    token_ttl_minutes: int = Field(
        default=20,
        gt=0,
        description="Lifetime of the issued JWT in minutes.",
    )
    token_algorithm: Literal["HS256", "HS512"] = Field(
        default="HS256",
        description="HMAC algorithm used to sign the JWT.",
    )
    token_audience: str = Field(
        default="BWS",
        min_length=1,
        description="Audience claim of the issued JWT.",
    )
    token_policy: TokenPolicy = Field(
        default=TokenPolicy.FIXED,
        description="fixed: one token per client lifetime; refresh: re-issue close to expiry.",
    )
    token_refresh_margin_seconds: int = Field(
        default=60,
        ge=0,
        description="Remaining lifetime below which the refresh policy re-issues the token.",
    )

    correlation_scope: CorrelationScope = Field(
        default=CorrelationScope.PER_CALL,
        description="Mint the Reference-Number per call or once per client (both transports).",
    )
    correlation_prefix: str = Field(
        default="bws-cli",
        min_length=1,
        description="Prefix of the Reference-Number header value.",
    )

    max_receive_message_bytes: int = Field(
        default=MAX_MESSAGE_BYTES,
        gt=0,
        le=MAX_MESSAGE_BYTES,
        description="Maximum accepted response size (images/thumbnails can be large).",
    )
    user_agent: str = Field(
        default=f"bws-cli/{__version__}",
        min_length=1,
        description="User-Agent for HTTP calls.",
    )

    log_level: str = Field(
        default="WARNING",
        description="Root log level (DEBUG, INFO, WARNING, ERROR).",
    )
