"""Shared test fixtures for bws-cli tests."""

import base64
import io

import pytest
from rich.console import Console

from adapters.token_issuer import BearerTokenSource, TokenIssuer
from cli.reporter import ResultReporter
from core.config import AppSettings
from core.domain.verbosity import Verbosity

SIGNING_KEY = bytes(range(64))


@pytest.fixture
def signing_key() -> bytes:
    """Raw 64-byte HMAC key."""
    return SIGNING_KEY


@pytest.fixture
def signing_key_b64(signing_key) -> str:
    """The same key as passed on the command line."""
    return base64.b64encode(signing_key).decode("ascii")


@pytest.fixture
def settings() -> AppSettings:
    """Settings with defaults only (no .env files)."""
    return AppSettings(_env_file=None)


@pytest.fixture
def token_source(settings, signing_key) -> BearerTokenSource:
    return BearerTokenSource(
        TokenIssuer(),
        "test-client",
        signing_key,
        ttl_minutes=settings.token_ttl_minutes,
    )


@pytest.fixture
def image_files(tmp_path):
    """Two small "images" on disk (content is opaque to the client)."""
    first = tmp_path / "live1.png"
    second = tmp_path / "live2.png"
    first.write_bytes(b"\x89PNG-first")
    second.write_bytes(b"\x89PNG-second")
    return [first, second]


def make_console() -> Console:
    return Console(file=io.StringIO(), width=200, color_system=None, force_terminal=False, highlight=False)


class CapturedReporter:
    """A `ResultReporter` factory whose stdout/stderr end up in strings."""

    def __init__(self):
        self.out = make_console()
        self.err = make_console()

    def reporter(self, verbosity: Verbosity) -> ResultReporter:
        return ResultReporter(verbosity, out=self.out, err=self.err)

    @property
    def stdout(self) -> str:
        return self.out.file.getvalue()

    @property
    def stderr(self) -> str:
        return self.err.file.getvalue()


@pytest.fixture
def captured():
    """Factory for reporters with captured output (one capture per call)."""
    return CapturedReporter
