# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Tracing/analysis facilities that produce fprof analysis text.

The report pipeline never instruments or times code itself. A facility
runs the workload under a tracer and hands back the raw analysis terms;
FprofFacility does so with Erlang's fprof in an ``erl`` subprocess.
"""

import glob
import logging
import os
import re
import subprocess
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Iterable, Optional, Sequence

from fprofreport.analysis.terms import format_term
from fprofreport.compression import decode_analysis_bytes
from fprofreport.errors import ConfigurationError, ProfilingError
from fprofreport.profile.options import ProfileOptions

logger = logging.getLogger(__name__)

DEFAULT_ERL = "erl"
TRACE_FILE_NAME = "fprof.trace"
ANALYSIS_FILE_NAME = "fprof.analysis"

# Strings, quoted atoms and $c literals are matched whole so a % inside them
# is not taken for a comment.
_QUOTED_OR_COMMENT = re.compile(
    r"""
    "(?:[^"\\]|\\.)*"
  | '(?:[^'\\]|\\.)*'
  | \$\\?.
  | %[^\n]*
    """,
    re.VERBOSE | re.DOTALL,
)


def expand_requires(patterns: Iterable[str]) -> list[str]:
    """
    Expand glob patterns of Erlang source files to load before profiling.

    Keeps regular files only, without duplicates, in pattern order.

    Raises:
        ConfigurationError: If a pattern matches no file
    """
    files: list[str] = []
    for pattern in patterns:
        matched = [
            path for path in sorted(glob.glob(pattern, recursive=True)) if os.path.isfile(path)
        ]
        if not matched:
            raise ConfigurationError(
                f"No files matched pattern '{pattern}' given to --require"
            )
        for path in matched:
            if path not in files:
                files.append(path)
    return files


def strip_comments(expression: str) -> str:
    """Remove ``%`` comments from Erlang source text."""
    return _QUOTED_OR_COMMENT.sub(
        lambda m: "" if m.group().startswith("%") else m.group(), expression
    )


def prepare_expression(expression: str) -> str:
    """Expression text without comments or a trailing ``.`` terminator."""
    expression = strip_comments(expression).strip()
    while expression.endswith("."):
        expression = expression[:-1].rstrip()
    return expression


class AnalysisFacility(ABC):
    """A tracer that profiles a target and returns fprof analysis text."""

    @abstractmethod
    def analyse(self, target: str, options: ProfileOptions) -> str:
        """
        Profile a target and return the analysis text.

        Args:
            target: What to profile, in the facility's own notation
            options: Sort key and detail flags forwarded to the analysis

        Raises:
            ProfilingError: If tracing or analysis fails
        """


class FprofFacility(AnalysisFacility):
    """
    Profiles an Erlang expression with fprof in a fresh ``erl`` node.

    Required source files are compiled and loaded into the node first.
    The trace and analysis files live in a temporary directory that is
    removed afterwards.

    Example:
        >>> facility = FprofFacility(code_paths=["ebin"])
        >>> text = facility.analyse("lists:seq(1, 1000)", ProfileOptions(sort="own"))
    """

    def __init__(
        self,
        erl: Optional[str] = None,
        code_paths: Sequence[str] = (),
        requires: Sequence[str] = (),
        timeout: Optional[float] = None,
        argv: Sequence[str] = (),
    ) -> None:
        """
        Args:
            erl: Path to the ``erl`` executable (default: "erl" on PATH)
            code_paths: Directories added to the code path with ``-pa``
            requires: Glob patterns of Erlang source files to load
            timeout: Seconds to wait for the node before giving up
            argv: Arguments for the profiled code, passed after ``-extra``
                and read with ``init:get_plain_arguments/0``

        Raises:
            ConfigurationError: If a require pattern matches no file
        """
        self.erl = erl or DEFAULT_ERL
        self.code_paths = list(code_paths)
        self.required_files = expand_requires(requires)
        self.timeout = timeout
        self.argv = list(argv)

    def build_script(self, target: str, options: ProfileOptions, workdir: Path) -> str:
        """
        Build the Erlang expression passed to ``erl -eval``.

        The target is placed on lines of its own so nothing after it can be
        taken into a trailing comment.
        """
        trace_file = format_term(str(workdir / TRACE_FILE_NAME))
        dest_file = format_term(str(workdir / ANALYSIS_FILE_NAME))
        required = "[" + ",".join(format_term(path) for path in self.required_files) + "]"
        analyse_options = (
            f"[{{dest, {dest_file}}}, {{totals, true}}, "
            f"{{details, {str(options.details).lower()}}}, "
            f"{{callers, {str(options.callers).lower()}}}, "
            f"{{sort, {options.sort}}}]"
        )
        return (
            "try "
            "Load = fun(F) -> "
            "{ok, M, B} = compile:file(F, [binary, report_errors]), "
            "{module, M} = code:load_binary(M, F, B) end, "
            f"lists:foreach(Load, {required}), "
            f"fprof:apply(fun() ->\n{prepare_expression(target)}\nend, [], [{{file, {trace_file}}}]), "
            f"ok = fprof:profile([{{file, {trace_file}}}]), "
            f"ok = fprof:analyse({analyse_options}), "
            "halt(0) "
            "catch Class:Reason:Stack -> "
            'io:format(standard_error, "~p:~p~n~p~n", [Class, Reason, Stack]), '
            "halt(1) "
            "end."
        )

    def build_command(self, script: str) -> list[str]:
        command = [self.erl, "-noshell"]
        for path in self.code_paths:
            command.extend(["-pa", path])
        command.extend(["-eval", script])
        if self.argv:
            command.extend(["-extra", *self.argv])
        return command

    def analyse(self, target: str, options: ProfileOptions) -> str:
        if not prepare_expression(target):
            raise ConfigurationError("Nothing to profile: the expression is empty")

        with tempfile.TemporaryDirectory(prefix="fprofreport_") as tmpdir:
            workdir = Path(tmpdir)
            command = self.build_command(self.build_script(target, options, workdir))
            logger.debug("Running: %s", " ".join(command))

            try:
                result = subprocess.run(
                    command,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout,
                )
            except FileNotFoundError as e:
                raise ProfilingError(f"Erlang executable not found: {self.erl}") from e
            except subprocess.TimeoutExpired as e:
                raise ProfilingError(f"Profiling timed out after {self.timeout} seconds") from e

            logger.debug("erl exited with status %d", result.returncode)
            if result.returncode != 0:
                details = (result.stderr or result.stdout or "").strip()
                raise ProfilingError(
                    f"Profiling failed with exit status {result.returncode}"
                    + (f":\n{details}" if details else "")
                )

            analysis_path = workdir / ANALYSIS_FILE_NAME
            if not analysis_path.exists():
                raise ProfilingError("Profiling finished without writing an analysis")
            return decode_analysis_bytes(analysis_path.read_bytes())
