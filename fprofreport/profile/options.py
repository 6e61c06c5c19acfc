# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Profiling options forwarded to the tracing/analysis facility.

The options are only passed through: the facility sorts and shapes its
analysis output accordingly, and the report pipeline trusts that output.
Options can come from CLI flags or from a JSON options file validated
against PROFILE_OPTIONS_SCHEMA.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Union

import jsonschema

from fprofreport.errors import ConfigurationError

SORT_KEYS = ("acc", "own")
DEFAULT_SORT_KEY = "acc"

PROFILE_OPTIONS_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": False,
    "properties": {
        "sort": {"type": "string", "enum": list(SORT_KEYS)},
        "details": {"type": "boolean"},
        "callers": {"type": "boolean"},
        "code_paths": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "requires": {"type": "array", "items": {"type": "string", "minLength": 1}},
        "erl": {"type": "string", "minLength": 1},
        "timeout": {"type": "number", "exclusiveMinimum": 0},
    },
}


def validate_sort_key(sort: str) -> str:
    """
    Check a sort key.

    Raises:
        ConfigurationError: If the key is not one of SORT_KEYS
    """
    if sort not in SORT_KEYS:
        raise ConfigurationError(
            f"Unknown sort key '{sort}'. Expected one of: {', '.join(SORT_KEYS)}"
        )
    return sort


@dataclass(frozen=True)
class ProfileOptions:
    """
    Options baked into the analysis by the facility.

    Attributes:
        sort: Sort key, "acc" (default) or "own"
        details: Include per-process blocks
        callers: Include caller/callee groups instead of bare functions
    """

    sort: str = DEFAULT_SORT_KEY
    details: bool = False
    callers: bool = False

    def __post_init__(self) -> None:
        validate_sort_key(self.sort)


@dataclass(frozen=True)
class ProfileSettings:
    """Everything an options file can configure."""

    options: ProfileOptions = field(default_factory=ProfileOptions)
    code_paths: tuple[str, ...] = ()
    requires: tuple[str, ...] = ()
    erl: Optional[str] = None
    timeout: Optional[float] = None


def parse_profile_settings(config: dict[str, Any], source: str = "<options>") -> ProfileSettings:
    """
    Validate and convert a decoded options mapping.

    Raises:
        ConfigurationError: If the mapping does not match the schema
    """
    try:
        jsonschema.validate(config, PROFILE_OPTIONS_SCHEMA)
    except jsonschema.ValidationError as e:
        raise ConfigurationError(f"Invalid profile options '{source}': {e.message}") from e

    return ProfileSettings(
        options=ProfileOptions(
            sort=config.get("sort", DEFAULT_SORT_KEY),
            details=config.get("details", False),
            callers=config.get("callers", False),
        ),
        code_paths=tuple(config.get("code_paths", ())),
        requires=tuple(config.get("requires", ())),
        erl=config.get("erl"),
        timeout=config.get("timeout"),
    )


def load_profile_settings(config_path: Union[str, Path]) -> ProfileSettings:
    """
    Load profile settings from a JSON options file.

    Example file:

        {"sort": "own", "callers": true, "code_paths": ["_build/default/lib/app/ebin"]}

    Raises:
        ConfigurationError: If the file is missing, is not valid JSON, or
            fails schema validation
    """
    config_path = Path(config_path)
    try:
        with open(config_path, encoding="utf-8") as f:
            config = json.load(f)
    except FileNotFoundError as e:
        raise ConfigurationError(f"Options file not found: {config_path}") from e
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in options file '{config_path}': {e}") from e

    return parse_profile_settings(config, str(config_path))
