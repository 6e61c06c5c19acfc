# Copyright (c) Meta Platforms, Inc. and affiliates.

"""Tests for compression module."""

from pathlib import Path

import zstandard as zstd

from fprofreport.compression import (
    decode_analysis_bytes,
    detect_compression,
    read_analysis_bytes,
    read_analysis_text,
)
from tests.test_base import BaseReportTest, EXAMPLE_INPUTS_DIR, FLAT_ANALYSIS


class CompressionTest(BaseReportTest):
    """Tests for plain and Zstd-compressed analysis dumps."""

    def _compress(self, filename: str, data: bytes) -> Path:
        path = self.temp_dir / filename
        path.write_bytes(zstd.ZstdCompressor().compress(data))
        return path

    def test_detect_compression_none(self) -> None:
        """Test detection of uncompressed file."""
        self.assertEqual(detect_compression(FLAT_ANALYSIS), "none")

    def test_detect_compression_zstd(self) -> None:
        """Test detection by magic number, whatever the extension."""
        path = self._compress("flat.analysis", FLAT_ANALYSIS.read_bytes())
        self.assertEqual(detect_compression(path), "zstd")

    def test_detect_compression_nonexistent(self) -> None:
        """Test detection raises error for non-existent file."""
        with self.assertRaises(FileNotFoundError):
            detect_compression(EXAMPLE_INPUTS_DIR / "nonexistent.analysis")

    def test_detect_compression_short_file(self) -> None:
        path = self.create_temp_file("short.analysis", "ok")
        self.assertEqual(detect_compression(path), "none")

    def test_read_uncompressed(self) -> None:
        self.assertEqual(read_analysis_text(FLAT_ANALYSIS), FLAT_ANALYSIS.read_text())

    def test_read_compressed(self) -> None:
        """Compressed and plain dumps read back the same text."""
        path = self._compress("flat.analysis.zst", FLAT_ANALYSIS.read_bytes())
        self.assertEqual(read_analysis_bytes(path), FLAT_ANALYSIS.read_bytes())
        self.assertEqual(read_analysis_text(path), FLAT_ANALYSIS.read_text())

    def test_read_concatenated_frames(self) -> None:
        cctx = zstd.ZstdCompressor()
        path = self.temp_dir / "frames.analysis.zst"
        path.write_bytes(cctx.compress(b"first. ") + cctx.compress(b"second."))
        self.assertEqual(read_analysis_text(path), "first. second.")


class DecodeAnalysisBytesTest(BaseReportTest):
    """Tests for text decoding of analysis dumps."""

    def test_utf8(self) -> None:
        self.assertEqual(decode_analysis_bytes("{'café', 1}.".encode("utf-8")), "{'café', 1}.")

    def test_latin1_fallback(self) -> None:
        """Dumps written with Erlang's default latin-1 file encoding still decode."""
        data = "{'café', 1}.".encode("latin-1")
        self.assertEqual(decode_analysis_bytes(data), "{'café', 1}.")

    def test_latin1_compressed_dump(self) -> None:
        path = self.temp_dir / "latin1.analysis.zst"
        path.write_bytes(zstd.ZstdCompressor().compress("'ångström'.".encode("latin-1")))
        self.assertEqual(read_analysis_text(path), "'ångström'.")
