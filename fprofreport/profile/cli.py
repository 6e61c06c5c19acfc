# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
CLI for the profile command.

Profiles Erlang expressions with fprof and prints the report.
"""

from pathlib import Path
from typing import Optional

import click

from fprofreport.analysis.cli import open_output
from fprofreport.errors import FprofReportError
from fprofreport.profile.facility import FprofFacility
from fprofreport.profile.options import (
    load_profile_settings,
    ProfileOptions,
    ProfileSettings,
)
from fprofreport.profile.runner import profile_with_options


def _split_arguments(
    expressions: tuple[str, ...], args: tuple[str, ...]
) -> tuple[list[str], list[str]]:
    """
    Split the command line into targets and arguments for the profiled code.

    With -e, the expressions are the targets and every positional argument
    is passed to the profiled code. Without -e, the first positional argument
    is a script file and the rest are passed to it.
    """
    if expressions:
        return list(expressions), list(args)
    if not args:
        raise click.UsageError("Nothing to profile. Give an expression with -e or a SCRIPT file.")

    script = Path(args[0])
    if not script.is_file():
        raise click.ClickException(f"No such file: {script}")
    return [script.read_text(encoding="utf-8")], list(args[1:])


@click.command(name="profile", context_settings={"allow_interspersed_args": False})
@click.argument("args", nargs=-1, metavar="[SCRIPT] [ARGS]...")
@click.option(
    "--eval",
    "-e",
    "expressions",
    multiple=True,
    help="Erlang expression to profile (can be repeated).",
)
@click.option(
    "--sort",
    type=str,
    default=None,
    help="Sort the output by acc (default) or own.",
)
@click.option(
    "--details/--no-details",
    default=None,
    help="Include profile data for each profiled process.",
)
@click.option(
    "--callers/--no-callers",
    default=None,
    help="Show immediate callers and called functions.",
)
@click.option(
    "--config",
    "-c",
    "config_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="JSON options file. Command line flags take precedence.",
)
@click.option(
    "--pa",
    "-p",
    "code_paths",
    multiple=True,
    help="Add a directory to the Erlang code path (can be repeated).",
)
@click.option(
    "--require",
    "-r",
    "requires",
    multiple=True,
    help="Glob of Erlang source files to load before profiling (can be repeated).",
)
@click.option("--erl", type=str, default=None, help="Path to the erl executable.")
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Seconds to wait for each profiling run.",
)
@click.option(
    "--output",
    "-o",
    "output_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file path (default: stdout).",
)
def profile_command(
    args: tuple[str, ...],
    expressions: tuple[str, ...],
    sort: Optional[str],
    details: Optional[bool],
    callers: Optional[bool],
    config_file: Optional[Path],
    code_paths: tuple[str, ...],
    requires: tuple[str, ...],
    erl: Optional[str],
    timeout: Optional[float],
    output_file: Optional[Path],
) -> None:
    """
    Profile Erlang code with fprof and print the report.

    Each -e expression is profiled and reported in order. Without -e, SCRIPT
    (a file holding an Erlang expression) is profiled instead. Remaining
    arguments are passed to the profiled code, which reads them with
    init:get_plain_arguments/0. Options must come before SCRIPT or ARGS.

    \b
    Examples:
      fprofreport profile -e 'lists:seq(1, 100000)'
      fprofreport profile -p ebin -e 'my_app:run()' --callers --sort own
      fprofreport profile -r 'src/*.erl' --details bench.script input.txt
    """
    try:
        settings = load_profile_settings(config_file) if config_file else ProfileSettings()
        defaults = settings.options
        options = ProfileOptions(
            sort=sort if sort is not None else defaults.sort,
            details=defaults.details if details is None else details,
            callers=defaults.callers if callers is None else callers,
        )
        targets, argv = _split_arguments(expressions, args)
        facility = FprofFacility(
            erl=erl or settings.erl,
            code_paths=settings.code_paths + code_paths,
            requires=settings.requires + requires,
            timeout=timeout if timeout is not None else settings.timeout,
            argv=argv,
        )

        with open_output(output_file) as out:
            for target in targets:
                profile_with_options(target, facility, out, options)
    except FprofReportError as e:
        raise click.ClickException(str(e))
