# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
CLI implementation for the report command.

Renders an existing fprof analysis dump (plain or Zstd-compressed).
"""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional, TextIO

import click
import zstandard as zstd

from fprofreport.analysis.decoder import decode_report
from fprofreport.analysis.renderer import report_to_dict, write_report
from fprofreport.compression import read_analysis_text
from fprofreport.errors import FprofReportError


@contextmanager
def open_output(output_file: Optional[Path]) -> Iterator[TextIO]:
    """
    Open the report destination: a file if given, stdout otherwise.

    The destination is flushed (and closed, for files) on every exit path.
    """
    if output_file is None:
        out = click.get_text_stream("stdout")
        try:
            yield out
        finally:
            out.flush()
        return

    output_file.parent.mkdir(parents=True, exist_ok=True)
    with open(output_file, "w", encoding="utf-8") as out:
        yield out
    click.echo(f"Output written to {output_file}", err=True)


@click.command(name="report")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--format",
    "-f",
    "output_format",
    type=click.Choice(["text", "json"]),
    default="text",
    show_default=True,
    help="Output format.",
)
@click.option(
    "--output",
    "-o",
    "output_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Output file path (default: stdout).",
)
def report_command(
    file: Path,
    output_format: str,
    output_file: Optional[Path],
) -> None:
    """
    Render an fprof analysis file as a readable report.

    FILE is the output of fprof:analyse/1 (optionally Zstd-compressed).

    \b
    Examples:
      fprofreport report fprof.analysis
      fprofreport report fprof.analysis.zst -o report.txt
      fprofreport report fprof.analysis --format json
    """
    try:
        text = read_analysis_text(file)
    except (OSError, zstd.ZstdError) as e:
        raise click.ClickException(f"Cannot read {file}: {e}")

    try:
        if output_format == "json":
            data = report_to_dict(decode_report(text))
            with open_output(output_file) as out:
                out.write(json.dumps(data, indent=2) + "\n")
        else:
            with open_output(output_file) as out:
                write_report(text, out)
    except FprofReportError as e:
        raise click.ClickException(str(e))
