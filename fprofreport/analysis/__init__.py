# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
fprofreport analysis module.

The report pipeline, leaves first:
- terms: TermReader and iter_terms parse serialized terms lazily
- model: typed report records
- decoder: ReportDecoder maps terms to records by shape
- renderer: ReportRenderer writes the fixed-column report
"""

from .decoder import decode_entry, decode_function, decode_report, ReportDecoder
from .model import (
    CallerCalleeGroup,
    FunctionRecord,
    ModuleFunctionArity,
    OpaqueFunction,
    ProcessBlock,
    TotalRow,
)
from .renderer import (
    ColumnLayout,
    format_function,
    report_to_dict,
    ReportRenderer,
    write_report,
)
from .terms import Atom, format_term, iter_terms, next_term, parse_term, TermReader

__all__ = [
    # Terms
    "Atom",
    "TermReader",
    "next_term",
    "iter_terms",
    "parse_term",
    "format_term",
    # Model
    "ModuleFunctionArity",
    "OpaqueFunction",
    "TotalRow",
    "FunctionRecord",
    "ProcessBlock",
    "CallerCalleeGroup",
    # Decoder
    "ReportDecoder",
    "decode_report",
    "decode_entry",
    "decode_function",
    # Renderer
    "ColumnLayout",
    "ReportRenderer",
    "format_function",
    "write_report",
    "report_to_dict",
]
