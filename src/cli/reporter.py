"""Verbosity-gated rendering of results and failures.

| tier       | adds                                                     |
|------------|----------------------------------------------------------|
| quiet      | nothing                                                  |
| minimal    | one summary line (health: one line per check)            |
| normal     | call line, server response, job status, errors / "No errors." |
| detailed   | transport metadata (headers / trailers)                  |
| diagnostic | full typed payload as JSON                               |

The reporter exclusively owns stdout and stderr while rendering; styling is
carried by each printed segment, so nothing leaks into the terminal after a
render, whichever way it ends.
"""

from __future__ import annotations

from rich.console import Console
from rich.text import Text

from cli.ui_components import build_metadata_table, failure_text, health_line, job_error_text
from core.domain.models import HealthReport, OperationResult, Transport
from core.domain.verbosity import Verbosity
from core.errors import BwsCliError, TransportError


class ResultReporter:
    def __init__(
        self,
        verbosity: Verbosity = Verbosity.NORMAL,
        *,
        out: Console | None = None,
        err: Console | None = None,
    ) -> None:
        self.verbosity = verbosity
        self._out = out or Console(highlight=False)
        self._err = err or Console(stderr=True, highlight=False)

    def shows(self, tier: Verbosity) -> bool:
        return self.verbosity.at_least(tier)

    def _line(self, text: str | Text, *, error: bool = False) -> None:
        console = self._err if error else self._out
        console.print(text if isinstance(text, Text) else Text(text), soft_wrap=True)

    def announce(self, operation: str, transport: Transport, host: str) -> None:
        if self.shows(Verbosity.NORMAL):
            self._line(f"Calling {operation} via {transport.label()} at {host} ...")

    def render(self, result: OperationResult) -> None:
        status = result.status
        if self.shows(Verbosity.MINIMAL):
            summary = result.summary()
            self._line(f"{summary} [{status.value}]" if status else summary)

        if self.shows(Verbosity.NORMAL):
            self._line(f"Server response: {result.server_response}")
            if status is not None:
                self._line(f"Job status: {status.value}")
            errors = result.errors
            if errors:
                self._line("Errors:")
                for error in errors:
                    self._line(job_error_text(error), error=True)
            else:
                self._line("No errors.")

        if self.shows(Verbosity.DETAILED) and result.metadata:
            self._out.print(build_metadata_table(result.metadata, "Response Metadata"))

        if self.shows(Verbosity.DIAGNOSTIC):
            self._line("Response Content:")
            self._out.print_json(result.payload.model_dump_json(by_alias=True))

    def render_health(self, report: HealthReport) -> None:
        if self.shows(Verbosity.MINIMAL):
            for check in report.checks:
                self._line(health_line(report.transport, report.host, check))

        if self.shows(Verbosity.NORMAL) and report.metadata:
            self._out.print(build_metadata_table(report.metadata, "Response Metadata"))

    def render_failure(self, error: BwsCliError) -> None:
        if self.shows(Verbosity.MINIMAL):
            self._line(failure_text(error), error=True)
        if self.shows(Verbosity.DETAILED) and isinstance(error, TransportError) and error.metadata:
            self._err.print(build_metadata_table(error.metadata, "Response Metadata"))

    def render_unexpected(self, exc: BaseException) -> None:
        # Shown at every tier: the original exception propagates right after.
        self._line(Text("Unexpected error calling service.", style="bold red"), error=True)
        if self.shows(Verbosity.NORMAL):
            self._line(Text(f"{type(exc).__name__}: {exc}", style="red"), error=True)
