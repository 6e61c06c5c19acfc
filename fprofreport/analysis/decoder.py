# Copyright (c) Meta Platforms, Inc. and affiliates.

"""
Decoder from generic analysis terms to typed report records.

fprof analysis output is a sequence of terms:

1. ``{analysis_options, [{Key, Value}, ...]}``
2. ``[{totals, Cnt, Acc, Own}]``
3. zero or more entries, each one of:
   - ``[{Label, Cnt, undefined, Own}, {spawned_by, ..}, ...]``  (process)
   - ``{Callers, {Fun, Cnt, Acc, Own}, Callees}``                (callers)
   - ``{Fun, Cnt, Acc, Own}``                                     (function)

Entries are matched by shape in the order above; the first match wins.
"""

import logging
from typing import Any, Iterable, Iterator

from fprofreport.analysis.model import (
    CallerCalleeGroup,
    FunctionRecord,
    FunctionRef,
    ModuleFunctionArity,
    OpaqueFunction,
    ProcessBlock,
    ReportEntry,
    TotalRow,
)
from fprofreport.analysis.terms import Atom, format_term, iter_terms, Term, UNDEFINED
from fprofreport.errors import DecodeError

logger = logging.getLogger(__name__)

_TOTALS = Atom("totals")
_ANALYSIS_OPTIONS = Atom("analysis_options")
_PROCESS_KEYS = ("spawned_by", "spawned_as", "initial_calls")


def _is_count(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def _is_time(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _describe(term: Term, limit: int = 120) -> str:
    text = format_term(term)
    if len(text) > limit:
        return text[: limit - 3] + "..."
    return text


def _label_text(term: Term) -> str:
    """Text of a process label, printed without quotes for strings and atoms."""
    if isinstance(term, str):
        return term
    if isinstance(term, Atom):
        return term.name
    return format_term(term)


def decode_function(term: Term) -> FunctionRef:
    """
    Decode a function term.

    ``{Module, Function, Arity}`` with atoms and a non-negative integer
    arity becomes ModuleFunctionArity; any other term is kept as its
    textual rendering.
    """
    if (
        isinstance(term, tuple)
        and len(term) == 3
        and isinstance(term[0], Atom)
        and isinstance(term[1], Atom)
        and _is_count(term[2])
    ):
        return ModuleFunctionArity(term[0].name, term[1].name, term[2])
    return OpaqueFunction(format_term(term))


def decode_analysis_options(term: Term) -> dict[str, Any]:
    """
    Decode the leading ``{analysis_options, [...]}`` term.

    The options are informational only. Anything that does not look like an
    options term decodes to an empty mapping.
    """
    if (
        isinstance(term, tuple)
        and len(term) == 2
        and term[0] == _ANALYSIS_OPTIONS
        and isinstance(term[1], list)
    ):
        options: dict[str, Any] = {}
        for item in term[1]:
            if isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], Atom):
                value = item[1]
                options[item[0].name] = value.name if isinstance(value, Atom) else value
            elif isinstance(item, Atom):
                options[item.name] = True
        return options
    logger.debug("Analysis options term has unexpected shape: %s", _describe(term))
    return {}


def decode_total_row(term: Term) -> TotalRow:
    """
    Decode the totals term, either ``[{totals, ...}]`` or ``{totals, ...}``.

    Raises:
        DecodeError: If the term is not a totals row
    """
    row = term[0] if isinstance(term, list) and len(term) == 1 else term
    if (
        isinstance(row, tuple)
        and len(row) == 4
        and row[0] == _TOTALS
        and _is_count(row[1])
        and _is_time(row[2])
        and _is_time(row[3])
    ):
        return TotalRow(count=row[1], acc_ms=float(row[2]), own_ms=float(row[3]))
    raise DecodeError(f"Expected the totals row, got: {_describe(term)}")


def _is_process_head(term: Term) -> bool:
    return (
        isinstance(term, tuple)
        and len(term) == 4
        and term[2] == UNDEFINED
        and _is_count(term[1])
        and _is_time(term[3])
    )


def _is_function_tuple(term: Term) -> bool:
    return (
        isinstance(term, tuple)
        and len(term) == 4
        and _is_count(term[1])
        and _is_time(term[2])
        and _is_time(term[3])
    )


def _decode_process(head: tuple, info: list) -> ProcessBlock:
    fields: dict[str, Term] = {}
    for item in info:
        if isinstance(item, tuple) and len(item) == 2 and isinstance(item[0], Atom):
            key = item[0].name
            if key in _PROCESS_KEYS:
                fields.setdefault(key, item[1])
                continue
        logger.debug("Ignoring process info item: %s", _describe(item))

    spawned_by = fields.get("spawned_by")
    spawned_as = fields.get("spawned_as")
    initial_calls = fields.get("initial_calls")
    if initial_calls is not None and not isinstance(initial_calls, list):
        raise DecodeError(f"initial_calls must be a list, got: {_describe(initial_calls)}")

    return ProcessBlock(
        label=_label_text(head[0]),
        count=head[1],
        own_ms=float(head[3]),
        spawned_by=_label_text(spawned_by) if spawned_by is not None else None,
        spawned_as=decode_function(spawned_as) if spawned_as is not None else None,
        initial_calls=tuple(decode_function(call) for call in initial_calls or ()),
    )


def _decode_function_record(term: Term) -> FunctionRecord:
    if not _is_function_tuple(term):
        raise DecodeError(f"Expected a function entry, got: {_describe(term)}")
    return FunctionRecord(
        function=decode_function(term[0]),
        count=term[1],
        acc_ms=float(term[2]),
        own_ms=float(term[3]),
    )


def decode_entry(term: Term) -> ReportEntry:
    """
    Decode one report entry term by its shape.

    Raises:
        DecodeError: If the term matches no entry shape
    """
    # Process block: list headed by {Label, Cnt, undefined, Own}
    if isinstance(term, list) and term and _is_process_head(term[0]):
        return _decode_process(term[0], term[1:])
    if _is_process_head(term):
        return _decode_process(term, [])

    # Callers/callees group
    if (
        isinstance(term, tuple)
        and len(term) == 3
        and isinstance(term[0], list)
        and isinstance(term[2], list)
        and _is_function_tuple(term[1])
    ):
        return CallerCalleeGroup(
            callers=tuple(_decode_function_record(t) for t in term[0]),
            marked=_decode_function_record(term[1]),
            callees=tuple(_decode_function_record(t) for t in term[2]),
        )

    if _is_function_tuple(term):
        return _decode_function_record(term)

    raise DecodeError(f"Unrecognized analysis entry: {_describe(term)}")


class ReportDecoder:
    """
    Lazy decoder over a sequence of analysis terms.

    Construction consumes the options term and the totals term; iterating
    yields one entry per remaining term. Iteration stops at the first
    undecodable term by raising DecodeError.

    Example:
        >>> decoder = decode_report(analysis_text)
        >>> decoder.total.count
        200279
        >>> for entry in decoder:
        ...     render(entry)
    """

    def __init__(self, terms: Iterable[Term]) -> None:
        """
        Args:
            terms: Generic terms, normally from iter_terms()

        Raises:
            DecodeError: If the stream holds fewer than two terms or the
                second term is not the totals row
            TermSyntaxError: If the underlying text is malformed
        """
        self._terms = iter(terms)

        options_term = next(self._terms, None)
        if options_term is None:
            raise DecodeError("Analysis is empty: expected options and totals terms")
        self.options = decode_analysis_options(options_term)
        logger.debug("Analysis options: %s", self.options)

        total_term = next(self._terms, None)
        if total_term is None:
            raise DecodeError("Analysis ended before the totals row")
        self.total = decode_total_row(total_term)
        self.entry_count = 0

    def __iter__(self) -> Iterator[ReportEntry]:
        for term in self._terms:
            entry = decode_entry(term)
            self.entry_count += 1
            yield entry


def decode_report(text: str) -> ReportDecoder:
    """Create a ReportDecoder over analysis text."""
    return ReportDecoder(iter_terms(text))
