# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
fprofreport CLI entry point.

Provides command-line interface for profiling and report rendering.
"""

import sys
from importlib.metadata import PackageNotFoundError, version

import click
from fprofreport.analysis.cli import report_command
from fprofreport.logger_setup import setup_logging
from fprofreport.profile.cli import profile_command


def _get_package_version() -> str:
    """Get package version from metadata."""
    try:
        return version("fprofreport")
    except PackageNotFoundError:
        return "0+unknown"


EXAMPLES = """
Examples:
  fprofreport profile -e 'lists:seq(1, 100000)'
  fprofreport profile -p ebin -e 'my_app:run()' --callers --details
  fprofreport report fprof.analysis
  fprofreport report fprof.analysis.zst --format json
"""


@click.group(epilog=EXAMPLES)
@click.version_option(version=_get_package_version(), prog_name="fprofreport")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """fprofreport: readable reports from Erlang fprof analyses."""
    setup_logging(verbose)


# Register subcommands
main.add_command(report_command)
main.add_command(profile_command)


if __name__ == "__main__":
    sys.exit(main())
