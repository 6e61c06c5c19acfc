# Copyright (c) Meta Platforms, Inc. and affiliates.

"""Tests for the report decoder."""

import unittest

from fprofreport.analysis.decoder import (
    decode_analysis_options,
    decode_entry,
    decode_function,
    decode_report,
    decode_total_row,
    ReportDecoder,
)
from fprofreport.analysis.model import (
    CallerCalleeGroup,
    FunctionRecord,
    ModuleFunctionArity,
    OpaqueFunction,
    ProcessBlock,
    TotalRow,
)
from fprofreport.analysis.terms import iter_terms, parse_term
from fprofreport.errors import DecodeError, IncompleteTermError, TermSyntaxError
from tests.test_base import (
    BaseReportTest,
    CALLERS_DETAILS_ANALYSIS,
    CALLERS_DETAILS_ENTRY_COUNT,
    FLAT_ANALYSIS,
    FLAT_ENTRY_COUNT,
    OPTIONS_ONLY_ANALYSIS,
    TRUNCATED_ANALYSIS,
    UNKNOWN_ENTRY_ANALYSIS,
)


class DecodeFunctionTest(unittest.TestCase):
    """Tests for decode_function."""

    def test_mfa(self):
        self.assertEqual(
            decode_function(parse_term("{'Elixir.Mod', some_function, 0}")),
            ModuleFunctionArity("Elixir.Mod", "some_function", 0),
        )

    def test_pseudo_function_is_opaque(self):
        self.assertEqual(decode_function(parse_term("suspend")), OpaqueFunction("suspend"))

    def test_mfa_with_argument_list_is_opaque(self):
        term = parse_term('{erlang, apply, ["#Fun<foo.0.2837>", []]}')
        self.assertEqual(
            decode_function(term),
            OpaqueFunction('{erlang,apply,["#Fun<foo.0.2837>",[]]}'),
        )

    def test_negative_arity_is_opaque(self):
        self.assertIsInstance(decode_function(parse_term("{m, f, -1}")), OpaqueFunction)


class DecodeHeaderTest(unittest.TestCase):
    """Tests for the options and totals terms."""

    def test_analysis_options(self):
        options = decode_analysis_options(
            parse_term("{analysis_options, [{callers, true}, {sort, own}, {totals, true}]}")
        )
        self.assertEqual(options, {"callers": True, "sort": "own", "totals": True})

    def test_unexpected_options_term_is_ignored(self):
        self.assertEqual(decode_analysis_options(parse_term("{something, else}")), {})

    def test_total_row_list_form(self):
        total = decode_total_row(parse_term("[{totals, 200279, 1972.188, 1964.579}]"))
        self.assertEqual(total, TotalRow(200279, 1972.188, 1964.579))

    def test_total_row_bare_tuple(self):
        total = decode_total_row(parse_term("{totals, 3, 4, 1.5}"))
        self.assertEqual(total, TotalRow(3, 4.0, 1.5))
        self.assertIsInstance(total.acc_ms, float)

    def test_total_row_wrong_shape(self):
        with self.assertRaises(DecodeError):
            decode_total_row(parse_term("[{{m,f,0}, 1, 1.0, 1.0}]"))


class DecodeEntryTest(unittest.TestCase):
    """Tests for the shape-based entry discrimination."""

    def test_process_block_with_info(self):
        entry = decode_entry(
            parse_term(
                '[{"<0.28.0>", 9627, undefined, 1659.074},'
                ' {spawned_by, "<0.26.0>"},'
                " {spawned_as, {foo, start, 1}},"
                " {initial_calls, [{erlang, apply, 2}, {foo, create_file_slow, 2}]}]"
            )
        )
        self.assertEqual(
            entry,
            ProcessBlock(
                label="<0.28.0>",
                count=9627,
                own_ms=1659.074,
                spawned_by="<0.26.0>",
                spawned_as=ModuleFunctionArity("foo", "start", 1),
                initial_calls=(
                    ModuleFunctionArity("erlang", "apply", 2),
                    ModuleFunctionArity("foo", "create_file_slow", 2),
                ),
            ),
        )

    def test_process_block_without_info(self):
        entry = decode_entry(parse_term('[{"<0.28.0>", 10, undefined, 1.5}]'))
        self.assertIsInstance(entry, ProcessBlock)
        self.assertIsNone(entry.spawned_by)
        self.assertIsNone(entry.spawned_as)
        self.assertEqual(entry.initial_calls, ())

    def test_process_block_bare_tuple(self):
        entry = decode_entry(parse_term('{"<0.1.0>", 1, undefined, 0.5}'))
        self.assertEqual(entry, ProcessBlock("<0.1.0>", 1, 0.5))

    def test_process_block_ignores_unknown_keys(self):
        entry = decode_entry(
            parse_term('[{"<0.28.0>", 1, undefined, 1.0}, {registered_name, foo}]')
        )
        self.assertEqual(entry, ProcessBlock("<0.28.0>", 1, 1.0))

    def test_process_block_atom_label(self):
        entry = decode_entry(parse_term("[{my_server, 1, undefined, 1.0}]"))
        self.assertEqual(entry.label, "my_server")

    def test_process_block_initial_calls_must_be_list(self):
        with self.assertRaises(DecodeError):
            decode_entry(parse_term('[{"<0.1.0>", 1, undefined, 1.0}, {initial_calls, foo}]'))

    def test_caller_callee_group(self):
        entry = decode_entry(
            parse_term(
                "{[{undefined, 0, 1691.076, 0.030}],"
                " {{fprof, apply_start_stop, 4}, 0, 1691.076, 0.030},"
                " [{{foo, create_file_slow, 2}, 1, 1691.046, 0.103},"
                "  {suspend, 1, 0.000, 0.000}]}"
            )
        )
        self.assertIsInstance(entry, CallerCalleeGroup)
        self.assertEqual(entry.callers, (FunctionRecord(OpaqueFunction("undefined"), 0, 1691.076, 0.03),))
        self.assertEqual(
            entry.marked,
            FunctionRecord(ModuleFunctionArity("fprof", "apply_start_stop", 4), 0, 1691.076, 0.03),
        )
        self.assertEqual(len(entry.callees), 2)
        self.assertEqual(entry.callees[1].function, OpaqueFunction("suspend"))

    def test_caller_callee_group_empty_lists(self):
        entry = decode_entry(parse_term("{[], {{m, f, 0}, 1, 1.0, 1.0}, []}"))
        self.assertEqual(entry.callers, ())
        self.assertEqual(entry.callees, ())

    def test_caller_callee_group_bad_member(self):
        with self.assertRaises(DecodeError):
            decode_entry(parse_term("{[{m, f, 0}], {{m, f, 0}, 1, 1.0, 1.0}, []}"))

    def test_function_record(self):
        entry = decode_entry(parse_term("{{'Elixir.Test', bottleneck, 0}, 1, 1599.490, 0.007}"))
        self.assertEqual(
            entry,
            FunctionRecord(ModuleFunctionArity("Elixir.Test", "bottleneck", 0), 1, 1599.49, 0.007),
        )

    def test_function_record_integer_times(self):
        entry = decode_entry(parse_term("{garbage_collect, 2, 0, 0}"))
        self.assertEqual(entry, FunctionRecord(OpaqueFunction("garbage_collect"), 2, 0.0, 0.0))

    def test_unrecognized_shape(self):
        for text in ("{unexpected, entry}", "[]", "42", "{{m,f,0}, -1, 1.0, 1.0}", "{a, b, c, d}"):
            with self.subTest(text=text):
                with self.assertRaises(DecodeError):
                    decode_entry(parse_term(text))


class ReportDecoderTest(BaseReportTest):
    """Tests for ReportDecoder over whole analyses."""

    def test_callers_details_sample(self):
        decoder = decode_report(CALLERS_DETAILS_ANALYSIS.read_text())
        self.assertEqual(decoder.total, TotalRow(9627, 1691.119, 1659.074))
        self.assertEqual(decoder.options["callers"], True)
        self.assertEqual(decoder.options["sort"], "acc")

        entries = list(decoder)
        self.assertEqual(len(entries), CALLERS_DETAILS_ENTRY_COUNT)
        self.assertIsInstance(entries[0], ProcessBlock)
        self.assertIsInstance(entries[1], CallerCalleeGroup)
        self.assertIsInstance(entries[2], CallerCalleeGroup)
        self.assertEqual(entries[0].spawned_as, OpaqueFunction('{erlang,apply,["#Fun<foo.0.2837>",[]]}'))
        self.assertEqual(decoder.entry_count, CALLERS_DETAILS_ENTRY_COUNT)

    def test_flat_sample(self):
        entries = list(decode_report(FLAT_ANALYSIS.read_text()))
        self.assertEqual(len(entries), FLAT_ENTRY_COUNT)
        self.assertTrue(all(isinstance(e, FunctionRecord) for e in entries))

    def test_flat_sample_total_matches_counts(self):
        decoder = decode_report(FLAT_ANALYSIS.read_text())
        self.assertEqual(decoder.total.count, sum(e.count for e in decoder))

    def test_deterministic(self):
        text = CALLERS_DETAILS_ANALYSIS.read_text()
        first = decode_report(text)
        second = decode_report(text)
        self.assertEqual(first.total, second.total)
        self.assertEqual(list(first), list(second))

    def test_total_row_available_without_consuming_entries(self):
        decoder = decode_report(UNKNOWN_ENTRY_ANALYSIS.read_text())
        self.assertEqual(decoder.total, TotalRow(2, 3.0, 2.0))

    def test_options_only_is_decode_error(self):
        with self.assertRaises(DecodeError):
            decode_report(OPTIONS_ONLY_ANALYSIS.read_text())

    def test_empty_input_is_decode_error(self):
        with self.assertRaises(DecodeError):
            ReportDecoder(iter([]))

    def test_unknown_entry_stops_decoding(self):
        decoder = decode_report(UNKNOWN_ENTRY_ANALYSIS.read_text())
        entries = []
        with self.assertRaises(DecodeError):
            for entry in decoder:
                entries.append(entry)
        self.assertEqual(len(entries), 1)
        self.assertEqual(entries[0].function, ModuleFunctionArity("lists", "seq", 2))

    def test_truncated_input(self):
        decoder = decode_report(TRUNCATED_ANALYSIS.read_text())
        entries = []
        with self.assertRaises(IncompleteTermError):
            for entry in decoder:
                entries.append(entry)
        self.assertEqual(len(entries), 1)

    def test_unterminated_tuple_yields_no_entries(self):
        with self.assertRaises(TermSyntaxError):
            ReportDecoder(iter_terms("{1,2,3"))


if __name__ == "__main__":
    unittest.main()
