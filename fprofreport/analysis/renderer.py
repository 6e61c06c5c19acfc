# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Fixed-column text rendering of decoded fprof reports.

Example output:

                                                                   CNT    ACC (ms)    OWN (ms)
    Total                                                       200279    1972.188    1964.579
    Mod.caller_1/0                                                   3     200.000       0.017
      Mod.some_function/0                                            5     300.000       0.017  <--
        Mod.called_1/0                                               4     250.000       0.010

Fields follow io:format rules: text is right-justified unless the width
is negative and is cut to the field width; numbers that do not fit are
printed as a run of ``*``.

Functions are named ``module.function/arity`` whatever language the module
comes from: Elixir modules lose their ``Elixir.`` prefix and Erlang modules
are printed bare, without the ``:`` Elixir would put in front of them.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Optional, TextIO, Union

from fprofreport.analysis.decoder import decode_report, ReportDecoder
from fprofreport.analysis.model import (
    CallerCalleeGroup,
    entry_to_dict,
    FunctionRecord,
    FunctionRef,
    ModuleFunctionArity,
    ProcessBlock,
    ReportEntry,
    TotalRow,
)
from fprofreport.analysis.terms import Atom
from fprofreport.errors import ReportWriteError

logger = logging.getLogger(__name__)

_ANONYMOUS_FUN = re.compile(r"-(?P<outer>.+)/(?P<arity>\d+)-fun-\d+-\Z")
_ELIXIR_PREFIX = "Elixir."

CALLER_PREFIX = ""
MARKED_PREFIX = "  "
CALLEE_PREFIX = "    "
MARKED_SUFFIX = "<--"


@dataclass(frozen=True)
class ColumnLayout:
    """
    Column widths of the report.

    Attributes:
        name: Function/label column; negative means left-justified
        count: Call count column
        acc: Accumulated time column
        own: Own time column
        suffix: Trailing marker column
        separator: Length of the dash line above each process block
        decimals: Digits after the decimal point for times
    """

    name: int = -60
    count: int = 10
    acc: int = 12
    own: int = 12
    suffix: int = 5
    separator: int = 100
    decimals: int = 3


def _fit_text(text: str, width: int) -> str:
    size = abs(width)
    text = text[:size]
    return text.ljust(size) if width < 0 else text.rjust(size)


def _fit_number(text: str, width: int) -> str:
    size = abs(width)
    if len(text) > size:
        return "*" * size
    return text.ljust(size) if width < 0 else text.rjust(size)


def format_module(module: str) -> str:
    """Module name as shown in reports (Elixir modules without their prefix)."""
    if module.startswith(_ELIXIR_PREFIX):
        return module[len(_ELIXIR_PREFIX) :]
    return module


def format_function(function: FunctionRef) -> str:
    """
    Render a function reference.

    Examples:
        >>> format_function(ModuleFunctionArity("Mod", "some_function", 0))
        'Mod.some_function/0'
        >>> format_function(ModuleFunctionArity("fprof", "apply_start_stop", 4))
        'fprof.apply_start_stop/4'
        >>> format_function(ModuleFunctionArity("Elixir.Test", "-run/0-fun-0-", 0))
        'anonymous fn/0 in Test.run/0'
    """
    if not isinstance(function, ModuleFunctionArity):
        return function.text

    module = format_module(function.module)
    match = _ANONYMOUS_FUN.match(function.function)
    if match:
        return (
            f"anonymous fn/{function.arity} in "
            f"{module}.{match.group('outer')}/{match.group('arity')}"
        )
    return f"{module}.{function.function}/{function.arity}"


class ReportRenderer:
    """
    Writes a decoded report to a text stream.

    Nothing is buffered: each entry is written as soon as it is rendered, so
    a failure part way through leaves the earlier output in place.
    """

    def __init__(self, out: TextIO, layout: Optional[ColumnLayout] = None) -> None:
        self.out = out
        self.layout = layout or ColumnLayout()

    def _write(self, text: str) -> None:
        try:
            self.out.write(text)
        except (OSError, ValueError) as e:
            raise ReportWriteError(f"Cannot write report: {e}") from e

    def flush(self) -> None:
        try:
            self.out.flush()
        except (OSError, ValueError) as e:
            raise ReportWriteError(f"Cannot flush report: {e}") from e

    def _count_cell(self, value: Union[int, str], width: int) -> str:
        if isinstance(value, str):
            return _fit_text(value, width)
        return _fit_number(str(value), width)

    def _time_cell(self, value: Union[float, str], width: int) -> str:
        if isinstance(value, str):
            return _fit_text(value, width)
        return _fit_number(f"{value:.{self.layout.decimals}f}", width)

    def format_row(
        self,
        name: str,
        count: Union[int, str],
        acc: Union[float, str],
        own: Union[float, str],
        suffix: str = "",
    ) -> str:
        """Format one report line, including its newline."""
        layout = self.layout
        return (
            _fit_text(name, layout.name)
            + self._count_cell(count, layout.count)
            + self._time_cell(acc, layout.acc)
            + self._time_cell(own, layout.own)
            + _fit_text(suffix, layout.suffix)
            + "\n"
        )

    def render_header(self, total: TotalRow) -> None:
        self._write("\n")
        self._write(self.format_row("", "CNT", "ACC (ms)", "OWN (ms)"))
        self._write(self.format_row("Total", total.count, total.acc_ms, total.own_ms))

    def render_function(self, record: FunctionRecord, prefix: str = "", suffix: str = "") -> None:
        self._write(
            self.format_row(
                prefix + format_function(record.function),
                record.count,
                record.acc_ms,
                record.own_ms,
                suffix,
            )
        )

    def render_process(self, block: ProcessBlock) -> None:
        self._write("\n" + "-" * self.layout.separator + "\n")
        self._write(self.format_row(block.label, block.count, "", block.own_ms))
        if block.spawned_by is not None:
            self._write(f"  spawned by {block.spawned_by}\n")
        if block.spawned_as is not None:
            self._write(f"  as {format_function(block.spawned_as)}\n")
        if block.initial_calls:
            self._write("  initial calls:\n")
            for call in block.initial_calls:
                self._write(f"    {format_function(call)}\n")
        self._write("\n")

    def render_group(self, group: CallerCalleeGroup) -> None:
        self._write("\n")
        for caller in group.callers:
            self.render_function(caller, CALLER_PREFIX)
        self.render_function(group.marked, MARKED_PREFIX, MARKED_SUFFIX)
        for callee in group.callees:
            self.render_function(callee, CALLEE_PREFIX)

    def render_entry(self, entry: ReportEntry) -> None:
        if isinstance(entry, ProcessBlock):
            self.render_process(entry)
        elif isinstance(entry, CallerCalleeGroup):
            self.render_group(entry)
        else:
            self.render_function(entry)

    def render(self, decoder: ReportDecoder) -> int:
        """
        Render the header and every entry of a decoded report.

        Returns:
            Number of entries rendered

        Raises:
            DecodeError: If an entry cannot be decoded (earlier output stays)
            ReportWriteError: If the destination rejects output
        """
        self.render_header(decoder.total)
        count = 0
        for entry in decoder:
            self.render_entry(entry)
            count += 1
        return count


def write_report(text: str, out: TextIO, layout: Optional[ColumnLayout] = None) -> int:
    """
    Decode analysis text and write the formatted report.

    The destination is flushed whether or not rendering succeeds. When
    rendering fails, a failing flush is logged and the rendering error is
    the one raised.

    Args:
        text: Complete fprof analysis output
        out: Destination text stream
        layout: Column layout (default: ColumnLayout())

    Returns:
        Number of entries rendered
    """
    renderer = ReportRenderer(out, layout)
    try:
        count = renderer.render(decode_report(text))
    except Exception:
        try:
            renderer.flush()
        except ReportWriteError as flush_error:
            logger.debug("Flush after failed render also failed: %s", flush_error)
        raise
    renderer.flush()
    return count


def _jsonable(value: Any) -> Any:
    if isinstance(value, Atom):
        return value.name
    if isinstance(value, (tuple, list)):
        return [_jsonable(v) for v in value]
    if isinstance(value, bytes):
        return value.decode("latin-1")
    return value


def report_to_dict(decoder: ReportDecoder) -> dict[str, Any]:
    """
    Convert a decoded report to a JSON-serializable dictionary.

    Consumes the decoder.
    """
    return {
        "options": {key: _jsonable(value) for key, value in decoder.options.items()},
        "total": decoder.total.to_dict(),
        "entries": [entry_to_dict(entry) for entry in decoder],
    }
