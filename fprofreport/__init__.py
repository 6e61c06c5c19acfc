# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
fprofreport: turn Erlang fprof analysis output into readable reports.

Modules:
- analysis: term reader, report decoder and fixed-column renderer
- profile: profiling options, the fprof facility and profile()
- compression: plain or Zstd-compressed analysis dumps
- errors: error taxonomy
"""

from fprofreport.analysis.renderer import ColumnLayout, write_report
from fprofreport.errors import (
    ConfigurationError,
    DecodeError,
    FprofReportError,
    IncompleteTermError,
    ProfilingError,
    ReportWriteError,
    TermSyntaxError,
)

__all__ = [
    "ColumnLayout",
    "write_report",
    # Errors
    "FprofReportError",
    "TermSyntaxError",
    "IncompleteTermError",
    "DecodeError",
    "ConfigurationError",
    "ReportWriteError",
    "ProfilingError",
]
