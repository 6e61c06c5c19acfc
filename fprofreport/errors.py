# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Error types raised by the fprofreport pipeline.

Every error is fatal for the current profiling run. Callers (normally the
CLI) decide how to present them; output that was already written is kept.
"""

from typing import Optional


class FprofReportError(Exception):
    """Base class for all fprofreport errors."""

    pass


class TermSyntaxError(FprofReportError):
    """Exception raised when analysis text is not well-formed term syntax."""

    def __init__(self, reason: str, position: int, line: Optional[int] = None):
        self.reason = reason
        self.position = position
        self.line = line
        where = f"line {line}, offset {position}" if line else f"offset {position}"
        super().__init__(f"Syntax error at {where}: {reason}")


class IncompleteTermError(TermSyntaxError):
    """A term was started but the input ended before its terminator."""

    pass


class DecodeError(FprofReportError):
    """A well-formed term does not have any recognized report shape."""

    pass


class ConfigurationError(FprofReportError):
    """Invalid profiling options, raised before any tracing starts."""

    pass


class ReportWriteError(FprofReportError):
    """The report destination refused further output."""

    pass


class ProfilingError(FprofReportError):
    """The tracing/analysis facility failed to produce analysis text."""

    pass
