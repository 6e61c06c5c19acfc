# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Typed records decoded from an fprof analysis.

A report is one TotalRow followed by entries; each entry is exactly one of
ProcessBlock, CallerCalleeGroup or FunctionRecord. All times are wall clock
milliseconds.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Union


@dataclass(frozen=True)
class ModuleFunctionArity:
    """A ``{Module, Function, Arity}`` function reference."""

    module: str
    function: str
    arity: int

    def __post_init__(self) -> None:
        if self.arity < 0:
            raise ValueError(f"arity must be non-negative, got {self.arity}")

    def to_dict(self) -> dict[str, Any]:
        return {"module": self.module, "function": self.function, "arity": self.arity}


@dataclass(frozen=True)
class OpaqueFunction:
    """
    Any other function term, kept as its generic textual rendering.

    fprof uses these for pseudo functions such as ``suspend``,
    ``garbage_collect`` and ``undefined`` (the non-profiled outer caller).
    """

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"text": self.text}


FunctionRef = Union[ModuleFunctionArity, OpaqueFunction]


@dataclass(frozen=True)
class TotalRow:
    """Totals over all profiled processes."""

    count: int
    acc_ms: float
    own_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {"count": self.count, "acc_ms": self.acc_ms, "own_ms": self.own_ms}


@dataclass(frozen=True)
class FunctionRecord:
    """Call count and times of one function."""

    function: FunctionRef
    count: int
    acc_ms: float
    own_ms: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "function": self.function.to_dict(),
            "count": self.count,
            "acc_ms": self.acc_ms,
            "own_ms": self.own_ms,
        }


@dataclass(frozen=True)
class ProcessBlock:
    """
    Per-process section header, present when details were requested.

    Attributes:
        label: Process identifier as printed by fprof (e.g. "<0.28.0>")
        count: Number of calls made in the process
        own_ms: Own time of the process
        spawned_by: Label of the parent process, if known
        spawned_as: Function the process was spawned with, if known
        initial_calls: Initial calls of the process, in order
    """

    label: str
    count: int
    own_ms: float
    spawned_by: Optional[str] = None
    spawned_as: Optional[FunctionRef] = None
    initial_calls: tuple[FunctionRef, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "process",
            "label": self.label,
            "count": self.count,
            "own_ms": self.own_ms,
            "spawned_by": self.spawned_by,
            "spawned_as": self.spawned_as.to_dict() if self.spawned_as else None,
            "initial_calls": [call.to_dict() for call in self.initial_calls],
        }


@dataclass(frozen=True)
class CallerCalleeGroup:
    """
    A marked function with its immediate callers and callees.

    Caller rows describe the marked function as called from each caller;
    callee rows describe each called function in the context of the
    marked function.
    """

    callers: tuple[FunctionRecord, ...]
    marked: FunctionRecord
    callees: tuple[FunctionRecord, ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "callers",
            "callers": [record.to_dict() for record in self.callers],
            "marked": self.marked.to_dict(),
            "callees": [record.to_dict() for record in self.callees],
        }


ReportEntry = Union[ProcessBlock, CallerCalleeGroup, FunctionRecord]


def entry_to_dict(entry: ReportEntry) -> dict[str, Any]:
    """Convert any report entry to a JSON-serializable dictionary."""
    if isinstance(entry, FunctionRecord):
        return {"type": "function", **entry.to_dict()}
    return entry.to_dict()
