# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Pytest configuration and shared fixtures for fprofreport tests.
"""

import json
import tempfile
from pathlib import Path
from typing import Generator

import pytest

from fprofreport.logger_setup import logger


# Minimal analysis: options, totals and one function entry
MINIMAL_ANALYSIS = """\
{analysis_options, [{callers, false}, {sort, acc}, {totals, true}, {details, false}]}.
[{totals, 1, 2.500, 2.500}].
{{lists,seq,2}, 1, 2.500, 2.500}.
"""

VALID_PROFILE_OPTIONS = {
    "sort": "own",
    "details": True,
    "callers": False,
    "code_paths": ["ebin"],
    "erl": "/usr/local/bin/erl",
    "timeout": 30,
}


@pytest.fixture(autouse=True)
def reset_package_logger() -> Generator[None, None, None]:
    """Keep handlers installed by CLI runs from leaking between tests."""
    yield
    for handler in list(logger.handlers):
        logger.removeHandler(handler)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def minimal_analysis_file(temp_dir: Path) -> Path:
    """Create a small valid analysis file."""
    filepath = temp_dir / "minimal.analysis"
    filepath.write_text(MINIMAL_ANALYSIS)
    return filepath


@pytest.fixture
def profile_options_file(temp_dir: Path) -> Path:
    """Create a valid JSON options file."""
    filepath = temp_dir / "profile.json"
    filepath.write_text(json.dumps(VALID_PROFILE_OPTIONS))
    return filepath
