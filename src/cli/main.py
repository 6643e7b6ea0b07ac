"""CLI principal (Typer).

Por qué Typer:
- Sub-comandos y flags tipados sin boilerplate de argparse.
- `typer.Exit(code)` deja el código de salida en un solo sitio.

Cada invocación hace exactamente una operación lógica:
validar entrada -> token -> cliente/canal -> llamada -> reporte -> exit code.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Callable, Optional

import typer
from rich.console import Console
from rich.text import Text

from adapters.endpoint import parse_endpoint
from adapters.error_classifier import classify
from adapters.token_issuer import TokenIssuer, decode_signing_key
from adapters.transport_factory import build_token_source, build_transport
from cli.reporter import ResultReporter
from core.config import AppSettings
from core.domain.models import BwsModel, ConnectionContext, HealthReport, OperationResult, Transport
from core.domain.verbosity import Verbosity
from core.errors import EXIT_OK, BwsCliError
from core.logging_config import configure_logging
from core.services import requests
from core.services.dispatcher import Operation, OperationDispatcher

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="BioID Web Service (BWS 3) client: liveness detection, photo verify and face recognition.",
)

_HOST = typer.Option(..., "--host", help="BWS host, e.g. https://bws.bioid.com")
_CLIENT_ID = typer.Option(..., "--clientid", help="BWS client ID.")
_KEY = typer.Option(..., "--key", help="Base64 encoded signing key of the client.")
_REST = typer.Option(False, "--rest", "-r", help="Use the RESTful API instead of gRPC.")
_DEADLINE = typer.Option(
    None,
    "--deadline",
    "-d",
    help="Per-call deadline in milliseconds (0 or less: no deadline).",
)
_VERBOSITY = typer.Option(
    Verbosity.default(),
    "--verbosity",
    "-v",
    case_sensitive=False,
    help="Output verbosity: quiet, minimal, normal, detailed, diagnostic.",
)
_CLASS_ID = typer.Option(..., "--classid", "-i", help="Class ID of the biometric template.")
_TAGS = typer.Option(None, "--tags", help="Tag (repeat the option for several tags).")


def _connection(
    host: str,
    *,
    client_id: str | None,
    key: str | None,
    rest: bool,
    deadline: int | None,
) -> ConnectionContext:
    # Endpoint and key are validated before anything touches the network.
    parse_endpoint(host)
    return ConnectionContext(
        host=host,
        client_id=client_id,
        signing_key=decode_signing_key(key) if key is not None else None,
        transport=Transport.from_flag(rest),
        deadline_millis=deadline,
    )


async def _run_operation(
    context: ConnectionContext,
    settings: AppSettings,
    operation: Operation,
    request: BwsModel,
) -> OperationResult:
    token_source = build_token_source(context, settings)
    async with build_transport(context, token_source, settings) as transport:
        dispatcher = OperationDispatcher(transport, context, classify=classify)
        return await dispatcher.execute(operation, request)


async def _run_health_check(context: ConnectionContext, settings: AppSettings) -> HealthReport:
    async with build_transport(context, None, settings) as transport:
        dispatcher = OperationDispatcher(transport, context, classify=classify)
        return await dispatcher.health_check()


def _invoke(
    operation: Operation,
    build_request: Callable[[], BwsModel],
    *,
    host: str,
    client_id: str,
    key: str,
    rest: bool,
    deadline: int | None,
    verbosity: Verbosity,
) -> None:
    settings = AppSettings()
    configure_logging(settings.log_level)
    reporter = ResultReporter(verbosity)

    try:
        request = build_request()
        context = _connection(host, client_id=client_id, key=key, rest=rest, deadline=deadline)
        reporter.announce(operation.value, context.transport, host)
        result = asyncio.run(_run_operation(context, settings, operation, request))
    except BwsCliError as exc:
        logger.debug("%s failed (%s): %s", operation.value, exc.category, exc)
        reporter.render_failure(exc)
        raise typer.Exit(code=exc.exit_code)
    except Exception as exc:
        reporter.render_unexpected(exc)
        raise

    reporter.render(result)
    raise typer.Exit(code=EXIT_OK)


def _files(paths: Optional[list[Path]]) -> list[bytes]:
    return requests.read_input_files(paths or [])


@app.command()
def healthcheck(
    host: str = _HOST,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Check liveness and readiness of the BWS host (no credentials needed)."""

    settings = AppSettings()
    configure_logging(settings.log_level)
    reporter = ResultReporter(verbosity)

    try:
        context = _connection(host, client_id=None, key=None, rest=rest, deadline=deadline)
        reporter.announce(Operation.HEALTH_CHECK.value, context.transport, host)
        report = asyncio.run(_run_health_check(context, settings))
    except BwsCliError as exc:
        logger.debug("%s failed (%s): %s", Operation.HEALTH_CHECK.value, exc.category, exc)
        reporter.render_failure(exc)
        raise typer.Exit(code=exc.exit_code)
    except Exception as exc:
        reporter.render_unexpected(exc)
        raise

    reporter.render_health(report)
    raise typer.Exit(code=EXIT_OK)


@app.command()
def livedetect(
    files: Optional[list[Path]] = typer.Argument(None, help="One or two live images."),
    challenge: Optional[str] = typer.Option(None, "--challenge", help="Head motion tag of the second image."),
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Liveness detection with one or two live images."""

    _invoke(
        Operation.LIVE_DETECTION,
        lambda: requests.build_live_detection(_files(files), challenge),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def videolivedetect(
    files: Optional[list[Path]] = typer.Argument(None, help="Exactly one video file."),
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Liveness detection on a short video."""

    _invoke(
        Operation.VIDEO_LIVE_DETECTION,
        lambda: requests.build_video_live_detection(_files(files)),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def photoverify(
    files: Optional[list[Path]] = typer.Argument(None, help="One or two live images."),
    photo: Optional[Path] = typer.Option(None, "--photo", help="ID photo to compare the live images with."),
    disablelive: bool = typer.Option(False, "--disablelive", help="Skip the liveness detection."),
    challenge: Optional[str] = typer.Option(None, "--challenge", help="Head motion tag of the second image."),
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Verify that live images show the person of an ID photo."""

    _invoke(
        Operation.PHOTO_VERIFY,
        lambda: requests.build_photo_verify(
            _files(files),
            _files([photo] if photo else None),
            disable_liveness_detection=disablelive,
            challenge=challenge,
        ),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def enroll(
    files: Optional[list[Path]] = typer.Argument(None, help="One or more face images."),
    classid: int = _CLASS_ID,
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Create or update the biometric template of a class."""

    _invoke(
        Operation.ENROLL,
        lambda: requests.build_enroll(_files(files), classid),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def verify(
    files: Optional[list[Path]] = typer.Argument(None, help="Exactly one face image."),
    classid: int = _CLASS_ID,
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """One-to-one comparison of an image with a template."""

    _invoke(
        Operation.VERIFY,
        lambda: requests.build_verify(_files(files), classid),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def search(
    files: Optional[list[Path]] = typer.Argument(None, help="One or more face images."),
    tags: Optional[list[str]] = _TAGS,
    topmatches: bool = typer.Option(False, "--topmatches", help="Only report the best matches."),
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """One-to-many search among the templates carrying the given tags."""

    _invoke(
        Operation.SEARCH,
        lambda: requests.build_search(_files(files), tags, top_matches=topmatches),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def settags(
    classid: int = _CLASS_ID,
    tags: Optional[list[str]] = _TAGS,
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Replace the tags of a template (no tags clears them)."""

    _invoke(
        Operation.SET_TAGS,
        lambda: requests.build_set_tags(classid, tags),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def gettemplate(
    classid: int = _CLASS_ID,
    thumbnails: bool = typer.Option(False, "--thumbnails", help="Also download the stored thumbnails."),
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Status of a biometric template."""

    _invoke(
        Operation.GET_TEMPLATE_STATUS,
        lambda: requests.build_template_status(classid, download_thumbnails=thumbnails),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def classcount(
    tags: Optional[list[str]] = _TAGS,
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Number of templates (optionally only those carrying all tags)."""

    _invoke(
        Operation.GET_CLASS_COUNT,
        lambda: requests.build_class_count(tags),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def deletetemplate(
    classid: int = _CLASS_ID,
    host: str = _HOST,
    clientid: str = _CLIENT_ID,
    key: str = _KEY,
    rest: bool = _REST,
    deadline: Optional[int] = _DEADLINE,
    verbosity: Verbosity = _VERBOSITY,
) -> None:
    """Delete a biometric template."""

    _invoke(
        Operation.DELETE_TEMPLATE,
        lambda: requests.build_delete_template(classid),
        host=host,
        client_id=clientid,
        key=key,
        rest=rest,
        deadline=deadline,
        verbosity=verbosity,
    )


@app.command()
def token(
    sub: str = typer.Option(..., "--sub", help="Subject: the BWS client ID."),
    key: str = typer.Option(..., "--key", help="Base64 encoded signing key."),
    expiry: int = typer.Option(5, "--expiry", help="Token lifetime in minutes."),
    iss: Optional[str] = typer.Option(None, "--iss", help="Issuer (default: the subject)."),
    aud: str = typer.Option("BWS", "--aud", help="Audience."),
    alg: str = typer.Option("HS512", "--alg", help="HS256 or HS512."),
) -> None:
    """Print a signed JWT for a BWS client (for use with other tools)."""

    console = Console(highlight=False)
    err_console = Console(stderr=True)
    try:
        issuer = TokenIssuer(algorithm=alg.upper(), audience=aud)
    except ValueError as exc:
        raise typer.BadParameter(str(exc), param_hint="--alg") from exc

    try:
        jwt_token = issuer.issue_with_key(sub, decode_signing_key(key), expiry, issuer=iss)
    except BwsCliError as exc:
        err_console.print(Text(exc.message, style="bold red"))
        raise typer.Exit(code=exc.exit_code)

    console.print(jwt_token, soft_wrap=True)


def run() -> None:
    app()
