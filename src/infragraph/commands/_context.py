"""AppContext -- the object every command receives via ``@click.pass_obj``.

Built once by the root group from the merged settings.  It owns the
lazily opened Workspace and turns ServiceResults into CLI output and
exit codes.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import click

from infragraph.config.logging import configure_logging
from infragraph.output.formatters import OutputSettings, format_result
from infragraph.services.telemetry import enable_telemetry

if TYPE_CHECKING:
    from infragraph.config.settings import InfragraphSettings
    from infragraph.infrastructure.workspace import Workspace
    from infragraph.services.result import ServiceResult


class AppContext:
    """Settings, output mode, and the workspace for one invocation.

    The workspace is not created until a command asks for it, so
    ``--help``, ``--version``, and ``--examples`` never discover plugins
    or read the graph file.
    """

    def __init__(self, settings: InfragraphSettings) -> None:
        self.settings = settings
        self.output = OutputSettings(
            json_output=settings.json_output,
            quiet=settings.quiet,
            verbose=settings.verbose,
        )
        self._workspace: Workspace | None = None

        configure_logging(verbose=settings.verbose, log_json=settings.log_json)
        if settings.verbose:
            enable_telemetry()

    @property
    def workspace(self) -> Workspace:
        if self._workspace is None:
            from infragraph.infrastructure.workspace import Workspace

            self._workspace = Workspace(self.settings)
        return self._workspace

    def emit(self, result: ServiceResult) -> None:
        """Print *result*; a failed result goes to stderr and exits 1."""
        text = format_result(result, settings=self.output)
        if not result.ok:
            click.echo(text, err=True)
            raise SystemExit(1)
        click.echo(text)
        self._echo_warnings(result)

    def _echo_warnings(self, result: ServiceResult) -> None:
        # JSON output already carries them in the payload.
        if self.output.json_output:
            return
        for warning in result.warnings:
            click.echo(f"WARNING: {warning}", err=True)
