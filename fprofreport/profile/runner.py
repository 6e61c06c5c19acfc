# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Profile-and-report orchestration.

Options are validated before the facility is invoked, so a bad sort key
never starts a trace. Profiling runs are not retried: the workload may
have side effects.
"""

import logging
from typing import Optional, TextIO

from fprofreport.analysis.renderer import ColumnLayout, write_report
from fprofreport.profile.facility import AnalysisFacility
from fprofreport.profile.options import ProfileOptions

logger = logging.getLogger(__name__)


def profile(
    target: str,
    facility: AnalysisFacility,
    out: TextIO,
    *,
    sort: str = "acc",
    details: bool = False,
    callers: bool = False,
    layout: Optional[ColumnLayout] = None,
) -> int:
    """
    Profile a target and write its report.

    Args:
        target: What to profile, passed to the facility unchanged
        facility: Tracing/analysis facility producing the analysis text
        out: Destination for the report
        sort: Sort key forwarded to the facility ("acc" or "own")
        details: Ask the facility for per-process blocks
        callers: Ask the facility for caller/callee groups
        layout: Column layout of the report

    Returns:
        Number of report entries written

    Raises:
        ConfigurationError: If the options are invalid (nothing is traced)
        ProfilingError: If the facility fails
        TermSyntaxError, DecodeError: If the analysis text is malformed
        ReportWriteError: If the destination rejects output
    """
    options = ProfileOptions(sort=sort, details=details, callers=callers)
    return profile_with_options(target, facility, out, options, layout)


def profile_with_options(
    target: str,
    facility: AnalysisFacility,
    out: TextIO,
    options: ProfileOptions,
    layout: Optional[ColumnLayout] = None,
) -> int:
    """Same as profile(), with already validated options."""
    logger.info("Profiling %s (sort=%s)", target, options.sort)
    analysis = facility.analyse(target, options)
    logger.debug("Analysis text is %d characters", len(analysis))
    return write_report(analysis, out, layout)
