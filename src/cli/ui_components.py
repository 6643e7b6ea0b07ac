"""Componentes de UI para CLI (Rich).

Por qué separar componentes:
- Evita mezclar lógica de gating (reporter) con detalles visuales.
- Permite reutilizar tablas/textos en resultados, health checks y errores.
"""

from __future__ import annotations

from rich.table import Table
from rich.text import Text

from core.domain.models import HealthCheck, JobError, Metadata, Transport
from core.errors import AuthenticationError, BwsCliError, TransportError, ValidationError


def build_metadata_table(metadata: Metadata, title: str) -> Table:
    """Tabla key -> valores (headers/trailers pueden repetir claves)."""

    table = Table(title=title, title_justify="left", show_lines=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Value", style="white", overflow="fold")
    for key, values in metadata.items():
        table.add_row(key, " - ".join(values))
    return table


def job_error_text(error: JobError) -> Text:
    return Text(f"  {error.error_code}: {error.message}", style="red")


def health_line(transport: Transport, host: str, check: HealthCheck) -> Text:
    line = Text(f"{transport.label()} service {check.name}-check @ {host}: ")
    healthy = check.status.upper() in ("SERVING", "HEALTHY")
    line.append(check.status, style="green" if healthy else "yellow")
    return line


def failure_text(error: BwsCliError) -> Text:
    """Una línea roja con el diagnóstico nativo del fallo."""

    if isinstance(error, TransportError):
        message = f"Call failed ({error.kind.value}): {error.native_code} - '{error.detail}'"
    elif isinstance(error, ValidationError):
        message = f"Invalid input: {error.message}"
    elif isinstance(error, AuthenticationError):
        message = f"Authentication failed: {error.message}"
    else:
        message = error.message
    return Text(message, style="bold red")
