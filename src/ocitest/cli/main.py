"""CLI entry point for ocitest."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import List, Optional

import click
from colorama import just_fix_windows_console

from ocitest import __version__, bootstrap
from ocitest.core import (
    CapabilityGate,
    ConformanceRun,
    ExecutionContext,
    RuntimeTarget,
    RuntimeTargetError,
    Suite,
    SuiteError,
    build_plan,
)
from ocitest.core.capabilities import skip_reason
from ocitest.core.models import default_privilege
from ocitest.core.selection import compile_pattern
from ocitest.reporting import JsonReporter, ReportManager, Reporter, TerminalReporter
from ocitest.suite import load_suite


CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class CliState:
    """Holds global CLI state."""

    def __init__(self, verbose: bool) -> None:
        self.verbose = verbose


def _print_version(_: click.Context, __: click.Parameter, value: bool) -> None:
    if not value or click.get_current_context().resilient_parsing:
        return
    click.echo(f"ocitest {__version__}")
    raise click.exceptions.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show the ocitest version and exit.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Conformance harness for OCI container runtimes."""

    _configure_logging(verbose)
    bootstrap()
    ctx.obj = CliState(verbose=verbose)


@cli.command()
@click.argument("pattern", required=False, default=".")
@click.option(
    "--runtime",
    envvar="OCITEST_RUNTIME",
    type=click.Path(dir_okay=False),
    help="Runtime binary under test (defaults to the suite's runtime, relative to --project-dir).",
)
@click.option(
    "--suite",
    "suite_path",
    type=click.Path(exists=True, dir_okay=False),
    help="YAML suite file (defaults to the bundled runtime-tools suite).",
)
@click.option(
    "--project-dir",
    type=click.Path(exists=True, file_okay=False),
    default=".",
    show_default=True,
    help="Directory relative suite paths resolve against.",
)
@click.option(
    "--log-dir",
    type=click.Path(file_okay=False),
    help="Per-case log directory (default: log/ under the suite root, where the cases run).",
)
@click.option("--debug/--no-debug", default=True, show_default=True, help="Propagate debug variables to each case.")
@click.option("--settle-delay", type=click.FloatRange(min=0), help="Seconds to wait after each case (suite default otherwise).")
@click.option("--timeout", type=click.FloatRange(min=0, min_open=True), help="Kill a case after this many seconds.")
@click.option("--sudo/--no-sudo", "use_sudo", default=None, help="Run cases through sudo (default: unless already root).")
@click.option("--list", "list_only", is_flag=True, help="List scheduled, skipped and excluded cases without running.")
@click.option(
    "--report",
    "report_format",
    type=click.Choice(["terminal", "json"]),
    default="terminal",
    show_default=True,
    help="Report format; json also writes a report file.",
)
@click.option("--report-path", type=str, help="When --report json, write to this path (default: <log-dir>/report.json).")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.pass_obj
def run(
    state: CliState,
    pattern: str,
    runtime: Optional[str],
    suite_path: Optional[str],
    project_dir: str,
    log_dir: Optional[str],
    debug: bool,
    settle_delay: Optional[float],
    timeout: Optional[float],
    use_sudo: Optional[bool],
    list_only: bool,
    report_format: str,
    report_path: Optional[str],
    no_color: bool,
) -> None:
    """Run the conformance cases whose id matches PATTERN (default: all)."""

    just_fix_windows_console()
    try:
        compile_pattern(pattern)
    except ValueError as exc:
        raise click.BadParameter(str(exc), param_hint="PATTERN") from exc
    project = Path(project_dir).resolve()
    try:
        suite = load_suite(suite_path, project_dir=project)
    except SuiteError as exc:
        raise click.ClickException(str(exc)) from exc

    if list_only:
        _list_cases(suite, pattern)
        raise click.exceptions.Exit(0)

    runtime_path = runtime or suite.default_runtime
    if runtime_path is None:
        raise click.ClickException("No runtime given; pass --runtime or set OCITEST_RUNTIME")
    try:
        target = RuntimeTarget.resolve(runtime_path, base=project)
    except RuntimeTargetError as exc:
        raise click.ClickException(str(exc)) from exc

    if use_sudo is None:
        privilege = default_privilege()
    else:
        privilege = ("sudo",) if use_sudo else tuple()
    context = ExecutionContext(
        log_dir=Path(log_dir).resolve() if log_dir else suite.root / "log",
        pattern=pattern,
        debug=debug,
        settle_delay=settle_delay if settle_delay is not None else suite.settle_delay,
        timeout=timeout if timeout is not None else suite.timeout,
        privilege=privilege,
    )
    reporters: List[Reporter] = [TerminalReporter(use_color=not no_color)]
    if report_format == "json":
        reporters.append(
            JsonReporter(report_path or str(context.log_dir / "report.json"), runtime=str(target.path))
        )
    conformance = ConformanceRun(
        suite,
        target,
        context,
        project_dir=project,
        reporter=ReportManager(reporters),
    )
    try:
        report = conformance.execute()
    except Exception as exc:  # pragma: no cover - CLI error translation
        raise click.ClickException(str(exc)) from exc
    raise click.exceptions.Exit(report.exit_code)


def _list_cases(suite: Suite, pattern: str) -> None:
    plan = build_plan(suite, CapabilityGate.for_host(suite.rules), pattern)
    for entry in plan.entries:
        if entry.runnable:
            click.echo(f"RUN      {entry.case.id}")
        else:
            click.echo(f"SKIP     {entry.case.id} ({skip_reason(entry.blocked_by)})")
    for case in plan.excluded:
        click.echo(f"EXCLUDED {case.id} [{case.status.value}] {case.reason}")


def main(argv: Optional[list[str]] = None) -> int:
    """Program entry point for console_scripts shim."""

    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=argv, prog_name="ocitest", standalone_mode=True)
    except SystemExit as exc:  # click may raise exit code
        return int(exc.code or 0)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
