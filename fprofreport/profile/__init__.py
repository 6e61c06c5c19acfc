# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
fprofreport profile module.

Runs a workload under a tracing/analysis facility and reports on it.
"""

from fprofreport.profile.facility import AnalysisFacility, FprofFacility
from fprofreport.profile.options import load_profile_settings, ProfileOptions
from fprofreport.profile.runner import profile

__all__ = [
    "AnalysisFacility",
    "FprofFacility",
    "ProfileOptions",
    "load_profile_settings",
    "profile",
]
