"""Integration tests for the `bws` command line (Typer CliRunner).

The transport factory is replaced by a stub so these tests exercise argument
handling, validation ordering, reporting and exit codes without a network.
"""

import jwt
import pytest
from typer.testing import CliRunner

import cli.main
from cli.main import app
from core.domain.models import (
    FaceClassCountResponse,
    HealthCheck,
    HealthReport,
    JobError,
    JobStatus,
    LivenessDetectionResponse,
    OperationResult,
    Transport,
)
from core.errors import EXIT_OK, EXIT_TRANSPORT, EXIT_VALIDATION, TransportError, TransportErrorKind

HOST = "https://bws.example.com"

runner = CliRunner()


class StubTransport:
    def __init__(self, context, failure=None, payload=None):
        self.context = context
        self.failure = failure
        self.payload = payload or LivenessDetectionResponse(live=True, liveness_score=0.9)
        self.calls = []
        self.closed = False

    name = "stub"

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.closed = True

    async def health_check(self, deadline=None):
        return HealthReport(HOST, self.context.transport, [HealthCheck("liveness", "SERVING"), HealthCheck("readiness", "SERVING")])

    def __getattr__(self, method):
        async def call(request, deadline=None):
            self.calls.append((method, request, deadline))
            if self.failure is not None:
                raise self.failure
            return OperationResult(method, "OK", self.payload)

        return call


class BuiltTransports(list):
    """Stubs built during one test; `configure` sets options for the next ones."""

    def __init__(self):
        super().__init__()
        self.options = {}

    def configure(self, **options):
        self.options.update(options)


@pytest.fixture
def transports(monkeypatch, tmp_path):
    """Patch the transport factory; returns the list of built stubs."""
    built = BuiltTransports()

    def fake_build_transport(context, token_source, settings=None, **kwargs):
        transport = StubTransport(context, **built.options)
        transport.token_source = token_source
        built.append(transport)
        return transport

    monkeypatch.setattr(cli.main, "build_transport", fake_build_transport)
    # Keep a developer .env in the working directory out of the tests.
    monkeypatch.chdir(tmp_path)
    return built


@pytest.fixture
def credentials(signing_key_b64):
    return ["--host", HOST, "--clientid", "test-client", "--key", signing_key_b64]


# ============================================================================
# Validation (exit 2, nothing built)
# ============================================================================


@pytest.mark.integration
def test_livedetect_without_images(transports, credentials):
    result = runner.invoke(app, ["livedetect", *credentials])
    assert result.exit_code == EXIT_VALIDATION
    assert transports == []


@pytest.mark.integration
def test_photoverify_without_live_images(transports, credentials, image_files):
    result = runner.invoke(app, ["photoverify", "--photo", str(image_files[1]), *credentials])
    assert result.exit_code == EXIT_VALIDATION
    assert transports == []


@pytest.mark.integration
def test_livedetect_too_many_images(transports, credentials, image_files):
    paths = [str(p) for p in image_files]
    result = runner.invoke(app, ["livedetect", *paths, paths[0], *credentials])
    assert result.exit_code == EXIT_VALIDATION
    assert transports == []


@pytest.mark.integration
def test_missing_input_file(transports, credentials, tmp_path):
    result = runner.invoke(app, ["verify", str(tmp_path / "missing.png"), "-i", "1", *credentials])
    assert result.exit_code == EXIT_VALIDATION
    assert "Input file not found" in result.output


@pytest.mark.integration
def test_invalid_key(transports, image_files):
    result = runner.invoke(
        app, ["livedetect", str(image_files[0]), "--host", HOST, "--clientid", "c", "--key", "not base64!"]
    )
    assert result.exit_code == EXIT_VALIDATION
    assert transports == []


@pytest.mark.integration
def test_invalid_host(transports, credentials, image_files, signing_key_b64):
    result = runner.invoke(
        app,
        ["livedetect", str(image_files[0]), "--host", "ftp://bws", "--clientid", "c", "--key", signing_key_b64],
    )
    assert result.exit_code == EXIT_VALIDATION
    assert transports == []


@pytest.mark.integration
def test_missing_client_id(transports, image_files, signing_key_b64):
    """Test credentials are required for every operation but healthcheck."""
    result = runner.invoke(app, ["livedetect", str(image_files[0]), "--host", HOST, "--key", signing_key_b64])
    assert result.exit_code == EXIT_VALIDATION


# ============================================================================
# Successful calls
# ============================================================================


@pytest.mark.integration
def test_healthcheck_minimal(transports):
    """Test healthcheck needs no credentials and prints one line per check."""
    result = runner.invoke(app, ["healthcheck", "--host", HOST, "-v", "minimal"])

    assert result.exit_code == EXIT_OK
    assert [line for line in result.output.splitlines() if line.strip()] == [
        f"gRPC service liveness-check @ {HOST}: SERVING",
        f"gRPC service readiness-check @ {HOST}: SERVING",
    ]
    assert transports[0].token_source is None
    assert transports[0].closed


@pytest.mark.integration
def test_livedetect_with_challenge(transports, credentials, image_files):
    """Test two images are sent with the challenge tag on the second one."""
    paths = [str(p) for p in image_files]
    result = runner.invoke(app, ["livedetect", *paths, "--challenge", "up", *credentials, "-d", "500"])

    assert result.exit_code == EXIT_OK
    (transport,) = transports
    method, request, deadline = transport.calls[0]
    assert method == "live_detection"
    assert [image.tags for image in request.live_images] == [[], ["up"]]
    assert deadline.millis == 500
    assert transport.token_source.token()
    assert "Live: True (0.9000)" in result.output
    assert "No errors." in result.output


@pytest.mark.integration
def test_rest_flag_selects_http(transports, credentials):
    transports.configure(payload=FaceClassCountResponse(count=7))
    result = runner.invoke(app, ["classcount", "--tags", "a", "--tags", "b", "-r", *credentials])

    assert result.exit_code == EXIT_OK
    (transport,) = transports
    assert transport.context.transport is Transport.HTTP
    assert transport.calls[0][1].tags == ["a", "b"]
    assert "via RESTful" in result.output
    assert "Class count: 7" in result.output


@pytest.mark.integration
def test_faulted_job_exits_zero(transports, credentials, image_files):
    """Test a FAULTED job is a completed call (exit 0) with errors reported."""
    transports.configure(
        payload=LivenessDetectionResponse(
            status=JobStatus.FAULTED, errors=[JobError(error_code="NoFaceFound", message="No face")]
        )
    )
    result = runner.invoke(app, ["livedetect", str(image_files[0]), *credentials])

    assert result.exit_code == EXIT_OK
    assert "NoFaceFound" in result.output


@pytest.mark.integration
def test_quiet_prints_nothing(transports, credentials, image_files):
    result = runner.invoke(app, ["livedetect", str(image_files[0]), *credentials, "-v", "quiet"])
    assert result.exit_code == EXIT_OK
    assert result.output.strip() == ""


@pytest.mark.integration
def test_photoverify_and_template_options(transports, credentials, image_files):
    photo = str(image_files[1])
    runner.invoke(app, ["photoverify", str(image_files[0]), "--photo", photo, "--disablelive", *credentials])
    runner.invoke(app, ["gettemplate", "-i", "42", "--thumbnails", *credentials])
    runner.invoke(app, ["search", str(image_files[0]), "--tags", "vip", "--topmatches", *credentials])

    photo_request = transports[0].calls[0][1]
    assert photo_request.photo == image_files[1].read_bytes()
    assert photo_request.disable_liveness_detection is True
    assert transports[1].calls[0][1].download_thumbnails is True
    assert transports[2].calls[0][1].top_matches is True


# ============================================================================
# Failures
# ============================================================================


@pytest.mark.integration
def test_transport_error_exits_one(transports, credentials, image_files):
    transports.configure(
        failure=TransportError(TransportErrorKind.UNAVAILABLE, native_code="UNAVAILABLE", detail="connection refused")
    )
    result = runner.invoke(app, ["verify", str(image_files[0]), "-i", "3", *credentials])

    assert result.exit_code == EXIT_TRANSPORT
    assert "connection refused" in result.output
    assert transports[0].closed


@pytest.mark.integration
def test_unexpected_error_propagates(transports, credentials, image_files):
    transports.configure(failure=RuntimeError("boom"))
    result = runner.invoke(app, ["verify", str(image_files[0]), "-i", "3", *credentials])

    assert isinstance(result.exception, RuntimeError)
    assert "Unexpected error calling service." in result.output


# ============================================================================
# token
# ============================================================================


@pytest.mark.integration
def test_token_command(signing_key, signing_key_b64):
    result = runner.invoke(app, ["token", "--sub", "client", "--key", signing_key_b64, "--expiry", "10"])

    assert result.exit_code == EXIT_OK
    token = result.output.strip()
    assert jwt.get_unverified_header(token)["alg"] == "HS512"
    claims = jwt.decode(token, signing_key, algorithms=["HS512"], audience="BWS")
    assert claims["sub"] == claims["iss"] == "client"
    assert claims["exp"] - claims["iat"] == 600


@pytest.mark.integration
def test_token_command_invalid_key():
    result = runner.invoke(app, ["token", "--sub", "client", "--key", "@@@"])
    assert result.exit_code == EXIT_VALIDATION
